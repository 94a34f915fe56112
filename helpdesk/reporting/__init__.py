"""
Reporting Module
================

Read-only projections over tickets, SLA cycles and assignees:
the helpdesk dashboard and ticket exports (CSV/JSON).

Nothing in this module writes to the database.
"""
