"""
Ticket Infrastructure Layer
===========================
"""

from helpdesk.tickets.infrastructure.models import (
    TicketAssigneeModel,
    TicketAttachmentModel,
    TicketCategoryModel,
    TicketCommentModel,
    TicketEventModel,
    TicketModel,
)
from helpdesk.tickets.infrastructure.repositories import (
    SQLAlchemyCategoryRepository,
    SQLAlchemyTicketRepository,
)

__all__ = [
    "TicketAssigneeModel",
    "TicketAttachmentModel",
    "TicketCategoryModel",
    "TicketCommentModel",
    "TicketEventModel",
    "TicketModel",
    "SQLAlchemyCategoryRepository",
    "SQLAlchemyTicketRepository",
]
