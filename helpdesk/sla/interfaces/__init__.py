"""
SLA Interfaces Layer
====================

Interface adapters (controllers) for the SLA module.

Contains:
- Controllers: FastAPI route handlers for SLA policy administration

Per-ticket SLA routes (cycle history, due date override) live with the
ticket routes since they are scoped to one ticket.
"""

from helpdesk.sla.interfaces.controllers import sla_router

__all__ = ["sla_router"]
