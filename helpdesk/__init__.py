"""
Intranet Helpdesk
=================

Ticket lifecycle, SLA engine and authorization model of the intranet
portal.

Architecture Pattern: Modular Monolith
- access: principals and the authorization evaluator
- sla: business calendar, SLA policies and cycles, escalation
- tickets: ticket aggregate, state machine, intake validation
- notifications: event fan-out, inbox, audit log, webhooks
- reporting: read-only dashboards and exports
"""

__version__ = "1.0.0"
