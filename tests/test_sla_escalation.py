from datetime import timedelta

import pytest
from sqlalchemy import func, select

from helpdesk.config import NotificationType
from helpdesk.notifications.infrastructure import SQLAlchemyNotificationSettingsRepository
from helpdesk.notifications.infrastructure.models import NotificationModel
from helpdesk.sla.infrastructure.external import CalendarConfigManager
from helpdesk.sla.infrastructure.models import SLAAlertDedupModel
from helpdesk.sla.services import SLAEscalationJob
from helpdesk.tickets.application import TicketAssigneesRequest, TicketUpdateRequest


@pytest.fixture
def config_manager(tmp_path):
    manager = CalendarConfigManager()
    manager.load(tmp_path / "sla_config.yaml")
    return manager


@pytest.fixture
async def ticket(ticket_service, ticket_payload, load_principal, directory):
    requester = await load_principal(directory.dp_user_id)
    return await ticket_service.create_ticket(requester, ticket_payload())


async def alert_notifications(session, user_id):
    stmt = select(NotificationModel.data).where(
        NotificationModel.recipient_user_id == user_id,
        NotificationModel.type == NotificationType.TICKET_STATUS.value,
    )
    rows = (await session.execute(stmt)).scalars().all()
    return [row["alertType"] for row in rows if "alertType" in row]


async def test_breached_cycle_alerts_admins_once(config_manager, session, ticket, directory):
    job = SLAEscalationJob(config_manager)
    later = ticket.current_cycle.resolution_due_at + timedelta(hours=1)

    summary = await job.evaluate(session, now=later)
    assert summary == {"tickets_evaluated": 1, "alerts_raised": 2, "notifications_created": 2}
    assert sorted(await alert_notifications(session, directory.admin_id)) == ["FIRST_BREACH", "RES_BREACH"]

    again = await job.evaluate(session, now=later + timedelta(hours=1))
    assert again["alerts_raised"] == 0
    assert (await session.execute(select(func.count(SLAAlertDedupModel.id)))).scalar_one() == 2


async def test_risk_alert_reaches_assignees(config_manager, session, ticket_service, ticket, load_principal, directory):
    agent = await load_principal(directory.tech_coord_id)
    await ticket_service.set_assignees(agent, ticket.id, TicketAssigneesRequest(assignee_ids=[directory.tech_coord_id]))
    await ticket_service.update_ticket(agent, ticket.id, TicketUpdateRequest(status="EM_ANDAMENTO"))

    near_due = ticket.current_cycle.resolution_due_at - timedelta(minutes=30)
    await SLAEscalationJob(config_manager).evaluate(session, now=near_due)

    assert await alert_notifications(session, directory.tech_coord_id) == ["RES_RISK"]


async def test_resolved_tickets_are_not_evaluated(config_manager, session, ticket_service, ticket, load_principal, directory):
    agent = await load_principal(directory.tech_coord_id)
    await ticket_service.update_ticket(agent, ticket.id, TicketUpdateRequest(status="RESOLVIDO"))

    summary = await SLAEscalationJob(config_manager).evaluate(
        session, now=ticket.current_cycle.resolution_due_at + timedelta(days=1)
    )
    assert summary["tickets_evaluated"] == 0


async def test_sweep_is_skipped_when_status_notifications_are_off(config_manager, session, ticket):
    await SQLAlchemyNotificationSettingsRepository(session).set(NotificationType.TICKET_STATUS, False)
    await session.commit()

    summary = await SLAEscalationJob(config_manager).evaluate(
        session, now=ticket.current_cycle.resolution_due_at + timedelta(days=1)
    )
    assert summary["alerts_raised"] == 0
    assert (await session.execute(select(func.count(SLAAlertDedupModel.id)))).scalar_one() == 0


async def test_run_commits_its_own_session(config_manager, session_maker, ticket):
    job = SLAEscalationJob(config_manager, session_factory=session_maker)

    summary = await job.run()

    assert summary["tickets_evaluated"] == 1
    async with session_maker() as fresh:
        assert (await fresh.execute(select(func.count(SLAAlertDedupModel.id)))).scalar_one() == summary["alerts_raised"]
