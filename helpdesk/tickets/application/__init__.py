"""
Ticket Application Layer
========================

Contains:
- Services: the ticket lifecycle orchestration
- DTOs: Data transfer objects for API serialization
- Repository interfaces implemented by the infrastructure layer
"""

from helpdesk.tickets.application.dto import (
    AssigneesResponse,
    AttachmentCreateRequest,
    AttachmentResponse,
    CategoryResponse,
    CommentCreateRequest,
    CommentResponse,
    TicketAssigneesRequest,
    TicketCreateRequest,
    TicketDraft,
    TicketEventResponse,
    TicketResponse,
    TicketSummaryResponse,
    TicketUpdateRequest,
)
from helpdesk.tickets.application.services import (
    AccessDirectory,
    ICategoryRepository,
    ITicketRepository,
    TicketLocks,
    TicketService,
    ticket_locks,
)

__all__ = [
    # DTOs
    "AssigneesResponse",
    "AttachmentCreateRequest",
    "AttachmentResponse",
    "CategoryResponse",
    "CommentCreateRequest",
    "CommentResponse",
    "TicketAssigneesRequest",
    "TicketCreateRequest",
    "TicketDraft",
    "TicketEventResponse",
    "TicketResponse",
    "TicketSummaryResponse",
    "TicketUpdateRequest",
    # Services
    "TicketLocks",
    "TicketService",
    "ticket_locks",
    # Repository Interfaces
    "AccessDirectory",
    "ICategoryRepository",
    "ITicketRepository",
]
