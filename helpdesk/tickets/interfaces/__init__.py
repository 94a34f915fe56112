"""
Ticket Interfaces Layer
=======================

FastAPI routes for the ticket lifecycle.
"""

from helpdesk.tickets.interfaces.controllers import build_ticket_service, tickets_router

__all__ = ["build_ticket_service", "tickets_router"]
