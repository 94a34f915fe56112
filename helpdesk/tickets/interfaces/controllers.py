"""
Ticket Controllers (API Routes)
===============================

FastAPI routes for the ticket lifecycle.

Controllers are thin - they resolve the principal and delegate to
`TicketService`, which owns authorization and the unit of work.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.access.domain import Principal
from helpdesk.access.infrastructure import SQLAlchemyPrincipalRepository
from helpdesk.access.interfaces import get_current_principal
from helpdesk.config import TicketStatus
from helpdesk.infrastructure.database import get_session
from helpdesk.notifications.application import EventDispatcher
from helpdesk.notifications.infrastructure import (
    SQLAlchemyAdminSettingsRepository,
    SQLAlchemyAuditLogRepository,
    SQLAlchemyNotificationRepository,
    SQLAlchemyNotificationSettingsRepository,
    webhook_emitter,
)
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.application import ResolutionDueAtOverrideRequest, SLACycleResponse, SLAPolicyService
from helpdesk.sla.infrastructure import SQLAlchemySLACycleRepository, SQLAlchemySLAPolicyRepository
from helpdesk.sla.infrastructure.external import calendar_manager
from helpdesk.tickets.application import (
    AssigneesResponse,
    AttachmentCreateRequest,
    AttachmentResponse,
    CategoryResponse,
    CommentCreateRequest,
    CommentResponse,
    TicketAssigneesRequest,
    TicketCreateRequest,
    TicketEventResponse,
    TicketResponse,
    TicketService,
    TicketSummaryResponse,
    TicketUpdateRequest,
)
from helpdesk.tickets.infrastructure import SQLAlchemyCategoryRepository, SQLAlchemyTicketRepository

logger = get_logger(__name__)
router = APIRouter(prefix="/tickets", tags=["Tickets"])


# ========== Example payloads for Swagger ==========

TICKET_CREATE_EXAMPLE = {
    "title": "Impressora do 2º andar sem toner",
    "description": "A impressora HP do corredor não imprime desde ontem.",
    "requesterSectorId": "c8a1f0e2-3b7d-4c55-9a61-0f2b8d9e7a10",
    "categoryId": "5d7e9c1a-8f42-4b6e-a3d0-2c9b71e4f856",
    "priority": "ALTA",
    "tags": ["impressora"],
    "requestData": {"patrimonio": "IMP-0042"},
}


# ========== Dependencies ==========

def build_ticket_service(session: AsyncSession, cycle_manager=None, emitter=None) -> TicketService:
    """Wire a `TicketService` onto one session."""
    ticket_repo = SQLAlchemyTicketRepository(session)
    directory = SQLAlchemyPrincipalRepository(session)
    audit_repo = SQLAlchemyAuditLogRepository(session)
    dispatcher = EventDispatcher(
        event_log=ticket_repo,
        notification_repository=SQLAlchemyNotificationRepository(session),
        settings_repository=SQLAlchemyNotificationSettingsRepository(session),
        audit_repository=audit_repo,
        directory=directory,
    )
    return TicketService(
        session=session,
        ticket_repository=ticket_repo,
        category_repository=SQLAlchemyCategoryRepository(session),
        cycle_repository=SQLAlchemySLACycleRepository(session),
        policy_service=SLAPolicyService(SQLAlchemySLAPolicyRepository(session)),
        directory=directory,
        dispatcher=dispatcher,
        admin_settings_repository=SQLAlchemyAdminSettingsRepository(session),
        cycle_manager=cycle_manager or calendar_manager.cycle_manager(),
        webhook_emitter=emitter or webhook_emitter,
    )


async def get_ticket_service(session: AsyncSession = Depends(get_session)) -> TicketService:
    """Get ticket service instance."""
    return build_ticket_service(session)


# ========== Route Handlers ==========

@router.get(
    "/categories",
    response_model=List[CategoryResponse],
    summary="Active category tree",
)
async def list_categories(
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.list_categories()


@router.get(
    "",
    response_model=List[TicketSummaryResponse],
    summary="List visible tickets",
    description="""
    Tickets created by the caller or belonging to one of the caller's
    sectors (requester or target side). Global admins see every ticket.

    Closed tickets (RESOLVIDO, CANCELADO) are hidden unless `include_closed`
    is set or a `status` filter is given. `q` matches title, description
    or the ticket number (`42` or `#42`).
    """,
)
async def list_tickets(
    status_filter: Optional[TicketStatus] = Query(None, alias="status"),
    q: Optional[str] = Query(None, max_length=200),
    include_closed: bool = Query(False),
    limit: int = Query(200, ge=1, le=500),
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.list_tickets(
        principal,
        status=status_filter,
        q=q,
        include_closed=include_closed,
        limit=limit,
    )


@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a ticket",
    description="""
    Opens a ticket in ABERTO together with SLA cycle 1.

    `requestData` is validated against the category's form schema.
    Without `targetSectorId` the ticket goes to the default helpdesk sector.
    """,
    openapi_extra={"requestBody": {"content": {"application/json": {"example": TICKET_CREATE_EXAMPLE}}}},
)
async def create_ticket(
    request: TicketCreateRequest,
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.create_ticket(principal, request)


@router.get(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Ticket detail",
    responses={404: {"description": "Ticket not found or not visible"}},
)
async def get_ticket(
    ticket_id: str,
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.get_ticket(principal, ticket_id)


@router.patch(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Update a ticket",
    description="""
    Partial update. Status, priority, category and target sector require
    staff of the target sector (or a global admin); the creator may edit
    title, description, tags, request data and the related resource.

    Moving to RESOLVIDO closes the SLA cycle, leaving it reopens the ticket
    with a new cycle, and AGUARDANDO_USUARIO pauses the SLA clock.
    """,
    responses={
        403: {"description": "Not allowed"},
        422: {"description": "Invalid transition or field values"},
    },
)
async def update_ticket(
    ticket_id: str,
    request: TicketUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.update_ticket(principal, ticket_id, request)


@router.put("/{ticket_id}/assignees", response_model=AssigneesResponse, summary="Set assignees")
async def set_assignees(
    ticket_id: str,
    request: TicketAssigneesRequest,
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.set_assignees(principal, ticket_id, request)


@router.get("/{ticket_id}/comments", response_model=List[CommentResponse], summary="List comments")
async def list_comments(
    ticket_id: str,
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.list_comments(principal, ticket_id)


@router.post(
    "/{ticket_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a comment",
)
async def add_comment(
    ticket_id: str,
    request: CommentCreateRequest,
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.add_comment(principal, ticket_id, request)


@router.get("/{ticket_id}/attachments", response_model=List[AttachmentResponse], summary="List attachments")
async def list_attachments(
    ticket_id: str,
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.list_attachments(principal, ticket_id)


@router.post(
    "/{ticket_id}/attachments",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register attachment metadata",
)
async def add_attachment(
    ticket_id: str,
    request: AttachmentCreateRequest,
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.add_attachment(principal, ticket_id, request)


@router.get("/{ticket_id}/events", response_model=List[TicketEventResponse], summary="Ticket history")
async def list_events(
    ticket_id: str,
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.list_events(principal, ticket_id)


@router.get("/{ticket_id}/sla-cycles", response_model=List[SLACycleResponse], summary="SLA cycle history")
async def list_sla_cycles(
    ticket_id: str,
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.list_cycles(principal, ticket_id)


@router.put(
    "/{ticket_id}/sla/resolution-due-at",
    response_model=SLACycleResponse,
    summary="Override the resolution due date",
    description="""
    Pins the current cycle's resolution due date. The override survives
    priority changes and is carried into the next cycle on reopen.
    """,
)
async def override_resolution_due_at(
    ticket_id: str,
    request: ResolutionDueAtOverrideRequest,
    principal: Principal = Depends(get_current_principal),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.override_resolution_due_at(principal, ticket_id, request)


# Export router
tickets_router = router
