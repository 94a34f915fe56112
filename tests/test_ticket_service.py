from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy import func, select

from helpdesk.config import (
    WEBHOOK_ENABLED_KEY,
    WEBHOOK_URL_KEY,
    NotificationType,
    SLAState,
    TicketEventType,
    TicketPriority,
    TicketStatus,
)
from helpdesk.core import (
    AuthorizationException,
    ConfigurationException,
    InvalidTransitionException,
    ResourceNotFoundException,
    ValidationException,
)
from helpdesk.notifications.infrastructure import (
    SQLAlchemyAdminSettingsRepository,
    SQLAlchemyNotificationSettingsRepository,
    WebhookEmitter,
)
from helpdesk.notifications.infrastructure.models import AuditLogModel, NotificationModel
from helpdesk.sla.application import ResolutionDueAtOverrideRequest
from helpdesk.sla.infrastructure.models import SLACycleModel, SLAPolicyModel
from helpdesk.tickets.application import (
    AttachmentCreateRequest,
    CommentCreateRequest,
    TicketAssigneesRequest,
    TicketUpdateRequest,
)
from helpdesk.tickets.interfaces.controllers import build_ticket_service


@pytest.fixture
async def requester(load_principal, directory):
    return await load_principal(directory.dp_user_id)


@pytest.fixture
async def agent(load_principal, directory):
    return await load_principal(directory.tech_coord_id)


@pytest.fixture
async def opened(ticket_service, ticket_payload, requester):
    return await ticket_service.create_ticket(requester, ticket_payload())


async def enable_webhook(session, url="https://hooks.example.com/helpdesk"):
    settings_repo = SQLAlchemyAdminSettingsRepository(session)
    await settings_repo.set(WEBHOOK_URL_KEY, url)
    await settings_repo.set(WEBHOOK_ENABLED_KEY, "true")
    await session.commit()


async def test_create_opens_ticket_with_first_cycle(ticket_service, ticket_payload, requester, directory, session):
    ticket = await ticket_service.create_ticket(requester, ticket_payload(priority="ALTA", tags=["toner", " toner "]))

    assert ticket.number == 1
    assert ticket.status == TicketStatus.ABERTO
    assert ticket.priority == TicketPriority.ALTA
    assert ticket.target_sector_id == directory.tech_id
    assert ticket.tags == ["toner"]
    assert ticket.request_data == {"patrimonio": "IMP-0042"}
    assert ticket.current_cycle.cycle_number == 1
    assert ticket.can_manage is False

    events = await ticket_service.list_events(requester, ticket.id)
    assert [e.type for e in events] == [TicketEventType.TICKET_CREATED]
    audit = (await session.execute(select(AuditLogModel.action))).scalars().all()
    assert audit == ["ticket_create"]


async def test_create_notifies_helpdesk_staff(opened, session, directory):
    recipients = set((await session.execute(
        select(NotificationModel.recipient_user_id).where(NotificationModel.type == NotificationType.TICKET_CREATED.value)
    )).scalars().all())
    assert recipients == {directory.admin_id, directory.tech_coord_id}


async def test_ticket_numbers_are_sequential(ticket_service, ticket_payload, requester):
    first = await ticket_service.create_ticket(requester, ticket_payload())
    second = await ticket_service.create_ticket(requester, ticket_payload(title="Outro"))
    assert (first.number, second.number) == (1, 2)


async def test_create_defaults_to_media_priority(opened):
    assert opened.priority == TicketPriority.MEDIA
    assert opened.current_cycle.priority == TicketPriority.MEDIA


async def test_create_requires_requester_membership(ticket_service, ticket_payload, load_principal, directory):
    outsider = await load_principal(directory.outsider_id)
    with pytest.raises(AuthorizationException):
        await ticket_service.create_ticket(outsider, ticket_payload())


async def test_create_validates_request_data(ticket_service, ticket_payload, requester, session):
    with pytest.raises(ValidationException) as exc_info:
        await ticket_service.create_ticket(requester, ticket_payload(request_data={"andar": "99"}))

    assert "request_data.patrimonio" in exc_info.value.details
    assert (await session.execute(select(func.count(SLACycleModel.id)))).scalar_one() == 0


async def test_create_rejects_inactive_category(ticket_service, ticket_payload, requester, directory):
    with pytest.raises(ValidationException):
        await ticket_service.create_ticket(requester, ticket_payload(category_id=directory.retired_category_id))


async def test_create_rejects_unknown_related_resource(ticket_service, ticket_payload, requester, directory):
    with pytest.raises(ValidationException):
        await ticket_service.create_ticket(requester, ticket_payload(related_resource_id="missing"))

    ticket = await ticket_service.create_ticket(requester, ticket_payload(related_resource_id=directory.resource_id))
    assert ticket.related_resource_id == directory.resource_id


async def test_create_without_active_policy_fails(ticket_service, ticket_payload, requester, session):
    policy = (await session.execute(
        select(SLAPolicyModel).where(SLAPolicyModel.priority == TicketPriority.URGENTE.value)
    )).scalar_one()
    policy.is_active = False
    await session.commit()

    with pytest.raises(ConfigurationException):
        await ticket_service.create_ticket(requester, ticket_payload(priority="URGENTE"))


async def test_unreadable_ticket_is_reported_missing(opened, ticket_service, load_principal, directory):
    outsider = await load_principal(directory.outsider_id)
    with pytest.raises(ResourceNotFoundException):
        await ticket_service.get_ticket(outsider, opened.id)


async def test_requester_cannot_change_status(opened, ticket_service, requester):
    with pytest.raises(AuthorizationException):
        await ticket_service.update_ticket(requester, opened.id, TicketUpdateRequest(status="EM_ANDAMENTO"))


async def test_creator_may_edit_content(opened, ticket_service, requester):
    updated = await ticket_service.update_ticket(
        requester, opened.id, TicketUpdateRequest(title="Impressora sem toner (2º andar)")
    )
    assert updated.title == "Impressora sem toner (2º andar)"


async def test_creator_cannot_edit_a_closed_ticket(opened, ticket_service, requester, agent):
    await ticket_service.update_ticket(agent, opened.id, TicketUpdateRequest(status="RESOLVIDO"))

    with pytest.raises(ValidationException) as exc_info:
        await ticket_service.update_ticket(
            requester,
            opened.id,
            TicketUpdateRequest(title="Outro título", request_data={"patrimonio": "IMP-0099"}),
        )
    assert "status" in exc_info.value.details

    ticket = await ticket_service.get_ticket(requester, opened.id)
    assert ticket.title == opened.title
    assert ticket.request_data == {"patrimonio": "IMP-0042"}
    assert ticket.request_data_version == opened.request_data_version


async def test_staff_may_still_edit_a_closed_ticket(opened, ticket_service, agent):
    await ticket_service.update_ticket(agent, opened.id, TicketUpdateRequest(status="CANCELADO"))

    updated = await ticket_service.update_ticket(agent, opened.id, TicketUpdateRequest(tags=["duplicado"]))
    assert updated.tags == ["duplicado"]


async def test_requester_cannot_move_ticket_to_another_sector(ticket_service, ticket_payload, requester, directory):
    ticket = await ticket_service.create_ticket(requester, ticket_payload(target_sector_id=directory.dp_id))

    with pytest.raises(AuthorizationException):
        await ticket_service.update_ticket(
            requester, ticket.id, TicketUpdateRequest(target_sector_id=directory.tech_id)
        )

    reloaded = await ticket_service.get_ticket(requester, ticket.id)
    assert reloaded.target_sector_id == directory.dp_id


async def test_status_change_records_first_response(opened, ticket_service, agent):
    updated = await ticket_service.update_ticket(agent, opened.id, TicketUpdateRequest(status="EM_ANDAMENTO"))

    assert updated.status == TicketStatus.EM_ANDAMENTO
    assert updated.current_cycle.first_response_at is not None
    events = [e.type for e in await ticket_service.list_events(agent, opened.id)]
    assert events == [TicketEventType.TICKET_CREATED, TicketEventType.STATUS_CHANGED]


async def test_resolve_then_reopen_opens_second_cycle(opened, ticket_service, agent, session):
    resolved = await ticket_service.update_ticket(agent, opened.id, TicketUpdateRequest(status="RESOLVIDO"))
    assert resolved.closed_at is not None
    first_cycle = resolved.current_cycle
    assert first_cycle.resolved_at is not None

    reopened = await ticket_service.update_ticket(agent, opened.id, TicketUpdateRequest(status="EM_ANDAMENTO"))
    assert reopened.closed_at is None
    assert reopened.current_cycle.cycle_number == 2

    cycles = await ticket_service.list_cycles(agent, opened.id)
    assert [c.cycle_number for c in cycles] == [1, 2]
    assert cycles[0].resolved_at == first_cycle.resolved_at
    assert [c.resolved_at is None for c in cycles] == [False, True]

    events = [e.type for e in await ticket_service.list_events(agent, opened.id)]
    assert TicketEventType.RESOLVED in events
    assert events[-1] == TicketEventType.REOPENED


async def test_terminal_to_terminal_is_rejected(opened, ticket_service, agent):
    await ticket_service.update_ticket(agent, opened.id, TicketUpdateRequest(status="CANCELADO"))
    with pytest.raises(InvalidTransitionException):
        await ticket_service.update_ticket(agent, opened.id, TicketUpdateRequest(status="RESOLVIDO"))


async def test_rejected_update_writes_nothing(opened, ticket_service, agent):
    with pytest.raises(ValidationException):
        await ticket_service.update_ticket(
            agent, opened.id, TicketUpdateRequest(status="EM_ANDAMENTO", category_id="missing")
        )

    ticket = await ticket_service.get_ticket(agent, opened.id)
    assert ticket.status == TicketStatus.ABERTO
    assert len(await ticket_service.list_events(agent, opened.id)) == 1


async def test_priority_change_reprices_open_cycle(opened, ticket_service, agent, cycle_manager):
    updated = await ticket_service.update_ticket(agent, opened.id, TicketUpdateRequest(priority="URGENTE"))
    cycle = updated.current_cycle

    assert cycle.priority == TicketPriority.URGENTE
    assert cycle.resolution_due_at == cycle_manager.calendar.add_business_minutes(cycle.opened_at, 480)
    events = [e.type for e in await ticket_service.list_events(agent, opened.id)]
    assert TicketEventType.PRIORITY_CHANGED in events


async def test_waiting_on_user_pauses_cycle(opened, ticket_service, agent):
    updated = await ticket_service.update_ticket(agent, opened.id, TicketUpdateRequest(status="AGUARDANDO_USUARIO"))
    assert updated.current_cycle.state == "PAUSED"

    resumed = await ticket_service.update_ticket(agent, opened.id, TicketUpdateRequest(status="EM_ANDAMENTO"))
    assert resumed.current_cycle.state == "RUNNING"


async def test_public_staff_comment_counts_as_first_response(opened, ticket_service, agent, requester):
    await ticket_service.add_comment(requester, opened.id, CommentCreateRequest(body="Alguma novidade?"))
    assert (await ticket_service.get_ticket(agent, opened.id)).current_cycle.first_response_at is None

    await ticket_service.add_comment(agent, opened.id, CommentCreateRequest(body="Nota interna", is_internal=True))
    assert (await ticket_service.get_ticket(agent, opened.id)).current_cycle.first_response_at is None

    await ticket_service.add_comment(agent, opened.id, CommentCreateRequest(body="Estamos verificando."))
    assert (await ticket_service.get_ticket(agent, opened.id)).current_cycle.first_response_at is not None


async def test_internal_comments_are_hidden_from_requester(opened, ticket_service, agent, requester):
    await ticket_service.add_comment(agent, opened.id, CommentCreateRequest(body="Nota interna", is_internal=True))
    await ticket_service.add_comment(agent, opened.id, CommentCreateRequest(body="Resposta pública"))

    assert [c.body for c in await ticket_service.list_comments(requester, opened.id)] == ["Resposta pública"]
    assert len(await ticket_service.list_comments(agent, opened.id)) == 2

    with pytest.raises(AuthorizationException):
        await ticket_service.add_comment(requester, opened.id, CommentCreateRequest(body="x", is_internal=True))


async def test_set_assignees_diffs_current_set(opened, ticket_service, agent, directory, session):
    first = await ticket_service.set_assignees(
        agent, opened.id, TicketAssigneesRequest(assignee_ids=[directory.tech_coord_id, directory.admin_id])
    )
    assert first.added == [directory.tech_coord_id, directory.admin_id]

    second = await ticket_service.set_assignees(
        agent, opened.id, TicketAssigneesRequest(assignee_ids=[directory.admin_id])
    )
    assert second.added == []
    assert second.removed == [directory.tech_coord_id]

    unchanged = await ticket_service.set_assignees(
        agent, opened.id, TicketAssigneesRequest(assignee_ids=[directory.admin_id])
    )
    assert (unchanged.added, unchanged.removed) == ([], [])

    ticket = await ticket_service.get_ticket(agent, opened.id)
    assert ticket.assignee_ids == [directory.admin_id]
    events = [e.type for e in await ticket_service.list_events(agent, opened.id)]
    assert events.count(TicketEventType.ASSIGNEES_CHANGED) == 2


async def test_set_assignees_rejects_unknown_users(opened, ticket_service, agent):
    with pytest.raises(ValidationException):
        await ticket_service.set_assignees(agent, opened.id, TicketAssigneesRequest(assignee_ids=["ghost"]))


async def test_add_attachment(opened, ticket_service, requester):
    attachment = await ticket_service.add_attachment(requester, opened.id, AttachmentCreateRequest(
        original_name="foto.jpg", storage_name="abc123.jpg", mime_type="image/jpeg", size_bytes=2048,
    ))
    assert attachment.uploaded_by == requester.user_id
    assert [a.id for a in await ticket_service.list_attachments(requester, opened.id)] == [attachment.id]


async def test_override_resolution_due_at(opened, ticket_service, agent, requester, session):
    due = datetime.now(timezone.utc) + timedelta(days=20)
    request = ResolutionDueAtOverrideRequest(resolution_due_at=due, reason="Aguardando fornecedor")

    with pytest.raises(AuthorizationException):
        await ticket_service.override_resolution_due_at(requester, opened.id, request)

    cycle = await ticket_service.override_resolution_due_at(agent, opened.id, request)
    assert cycle.resolution_due_at == due
    assert cycle.resolution_due_at_manual is True
    assert cycle.resolution_due_at_updated_by == agent.user_id
    assert cycle.health.resolution == SLAState.OK

    audit = (await session.execute(select(AuditLogModel.action))).scalars().all()
    assert "sla_override" in audit


async def test_list_tickets_is_scoped_to_visible_sectors(ticket_service, ticket_payload, requester, load_principal, directory):
    await ticket_service.create_ticket(requester, ticket_payload())
    outsider = await load_principal(directory.outsider_id)
    admin = await load_principal(directory.admin_id)

    assert len(await ticket_service.list_tickets(requester)) == 1
    assert await ticket_service.list_tickets(outsider) == []
    assert len(await ticket_service.list_tickets(admin, q="toner")) == 1
    assert await ticket_service.list_tickets(admin, q="scanner") == []


async def test_closed_tickets_are_hidden_unless_requested(opened, ticket_service, agent):
    await ticket_service.update_ticket(agent, opened.id, TicketUpdateRequest(status="RESOLVIDO"))

    assert await ticket_service.list_tickets(agent) == []
    assert len(await ticket_service.list_tickets(agent, include_closed=True)) == 1
    assert len(await ticket_service.list_tickets(agent, status=TicketStatus.RESOLVIDO)) == 1


async def test_webhooks_are_sent_after_commit(session, cycle_manager, emitter, webhook_recorder, ticket_payload, requester):
    await enable_webhook(session)
    service = build_ticket_service(session, cycle_manager=cycle_manager, emitter=emitter)

    ticket = await service.create_ticket(requester, ticket_payload())
    await emitter.drain()

    (payload,) = webhook_recorder.payloads
    assert payload["type"] == "ticket_created"
    assert payload["data"]["ticketId"] == ticket.id
    assert payload["idempotencyKey"].startswith(f"ticket_created:{ticket.id}:")


async def test_failed_action_sends_no_webhook(session, cycle_manager, emitter, webhook_recorder, opened, agent):
    await enable_webhook(session)
    service = build_ticket_service(session, cycle_manager=cycle_manager, emitter=emitter)

    with pytest.raises(ValidationException):
        await service.update_ticket(agent, opened.id, TicketUpdateRequest(status="RESOLVIDO", category_id="missing"))
    await emitter.drain()

    assert webhook_recorder.requests == []


async def test_unreachable_webhook_does_not_fail_the_action(session, cycle_manager, ticket_payload, requester):
    await enable_webhook(session, url="https://unreachable.example.com")
    attempts = []

    def refuse(request):
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    emitter = WebhookEmitter(retry_delay_seconds=0, transport=httpx.MockTransport(refuse))
    service = build_ticket_service(session, cycle_manager=cycle_manager, emitter=emitter)

    ticket = await service.create_ticket(requester, ticket_payload())
    await emitter.drain()

    assert ticket.number == 1
    assert len(attempts) == 2


async def test_disabled_notification_type_still_records_event(session, ticket_service, opened, agent):
    await SQLAlchemyNotificationSettingsRepository(session).set(NotificationType.TICKET_STATUS, False)
    await session.commit()

    await ticket_service.update_ticket(agent, opened.id, TicketUpdateRequest(status="EM_ANDAMENTO"))

    status_notifications = (await session.execute(
        select(func.count(NotificationModel.id)).where(NotificationModel.type == NotificationType.TICKET_STATUS.value)
    )).scalar_one()
    assert status_notifications == 0
    events = [e.type for e in await ticket_service.list_events(agent, opened.id)]
    assert TicketEventType.STATUS_CHANGED in events
