"""
SLA Module
==========

Bounded context for service level tracking.

Responsibilities:
- Project due dates in business time (business calendar)
- Own SLA cycles: open, pause/resume, resolve, manual override, reprice
- Administer SLA policies per priority
- Escalate cycles at risk or breached (background job)
- Hot-reload the calendar configuration via watchdog
"""
