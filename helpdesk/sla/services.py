"""
SLA Services
============

Background SLA escalation.

Every sweep looks at the current cycle of each active ticket and raises
at most one alert of each kind per (ticket, cycle):

- FIRST_RISK / FIRST_BREACH while the first response is still pending
- RES_RISK / RES_BREACH for the resolution due date

Alerts become inbox notifications for the ticket's assignees and the
global admins. The sweep only writes notifications and de-duplication
markers; cycle rows are never touched here.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.access.infrastructure import SQLAlchemyPrincipalRepository
from helpdesk.config import ACTIVE_STATUSES, NotificationType, SLAAlertType
from helpdesk.notifications.domain import NotificationDraft, unique_recipients
from helpdesk.notifications.infrastructure import (
    SQLAlchemyNotificationRepository,
    SQLAlchemyNotificationSettingsRepository,
)
from helpdesk.shared.infrastructure.logging import get_logger, log_latency
from helpdesk.sla.domain import CycleRecord
from helpdesk.sla.infrastructure.models import SLACycleModel
from helpdesk.sla.infrastructure.repositories import SQLAlchemyAlertDedupRepository
from helpdesk.tickets.infrastructure import SQLAlchemyTicketRepository, TicketModel

logger = get_logger(__name__)


@dataclass(frozen=True)
class EscalationAlert:
    type: SLAAlertType
    title: str
    message: str


def escalation_alerts(
    cycle: CycleRecord,
    ticket_title: str,
    now: datetime,
    risk_minutes: int,
) -> List[EscalationAlert]:
    """
    Alerts due for `cycle` at `now`.

    Risk means less than `risk_minutes` wall-clock minutes left; breach
    means the due date has passed. Paused and resolved cycles raise nothing.
    """
    if cycle.paused_at is not None or cycle.resolved_at is not None:
        return []

    window = timedelta(minutes=risk_minutes)
    alerts = []

    if cycle.first_response_at is None:
        if now > cycle.first_response_due_at:
            alerts.append(EscalationAlert(
                SLAAlertType.FIRST_BREACH,
                "SLA estourado: Primeira resposta",
                f'Chamado "{ticket_title}" estourou o SLA de primeira resposta.',
            ))
        elif cycle.first_response_due_at - now < window:
            alerts.append(EscalationAlert(
                SLAAlertType.FIRST_RISK,
                "SLA em risco: Primeira resposta",
                f'Chamado "{ticket_title}" está próximo do prazo de primeira resposta.',
            ))

    if now > cycle.resolution_due_at:
        alerts.append(EscalationAlert(
            SLAAlertType.RES_BREACH,
            "SLA estourado: Resolução",
            f'Chamado "{ticket_title}" estourou o SLA de resolução.',
        ))
    elif cycle.resolution_due_at - now < window:
        alerts.append(EscalationAlert(
            SLAAlertType.RES_RISK,
            "SLA em risco: Resolução",
            f'Chamado "{ticket_title}" está próximo do prazo de resolução.',
        ))

    return alerts


class SLAEscalationJob:
    """
    Periodic sweep raising SLA risk/breach notifications.

    This service:
    1. Queries the open cycle of every active ticket
    2. Works out which alerts are due
    3. Records each alert once per cycle
    4. Notifies assignees and global admins
    """

    def __init__(
        self,
        config_manager,  # CalendarConfigManager from external.py
        session_factory: Optional[Callable[[], AsyncSession]] = None,
    ):
        self._config_manager = config_manager
        self._session_factory = session_factory

    async def run(self) -> Optional[dict]:
        """Scheduler entry point; opens its own session and never raises."""
        if self._session_factory is None:
            from helpdesk.infrastructure.database import get_session_maker
            self._session_factory = get_session_maker()

        try:
            async with self._session_factory() as session:
                with log_latency(logger, "sla_escalation_sweep"):
                    summary = await self.evaluate(session)
                await session.commit()
            return summary
        except Exception:
            logger.exception("SLA escalation sweep failed")
            return None

    async def evaluate(self, session: AsyncSession, now: Optional[datetime] = None) -> dict:
        """
        Evaluate every active ticket; the caller commits.

        Returns:
            Summary of evaluation results
        """
        now = now or datetime.now(timezone.utc)
        risk_minutes = self._config_manager.config.escalation.risk_threshold_minutes

        settings_repo = SQLAlchemyNotificationSettingsRepository(session)
        if not await settings_repo.is_enabled(NotificationType.TICKET_STATUS):
            logger.debug("ticket_status notifications disabled, skipping SLA sweep")
            return {"tickets_evaluated": 0, "alerts_raised": 0, "notifications_created": 0}

        stmt = (
            select(TicketModel, SLACycleModel)
            .join(SLACycleModel, SLACycleModel.ticket_id == TicketModel.id)
            .where(
                TicketModel.status.in_([s.value for s in ACTIVE_STATUSES]),
                SLACycleModel.resolved_at.is_(None),
            )
        )
        rows = (await session.execute(stmt)).all()

        latest = {}
        for ticket, cycle in rows:
            current = latest.get(ticket.id)
            if current is None or cycle.cycle_number > current[1].cycle_number:
                latest[ticket.id] = (ticket, cycle)

        dedup_repo = SQLAlchemyAlertDedupRepository(session)
        notification_repo = SQLAlchemyNotificationRepository(session)
        ticket_repo = SQLAlchemyTicketRepository(session)
        admins = await SQLAlchemyPrincipalRepository(session).admin_user_ids()

        alerts_raised = 0
        notifications_created = 0

        for ticket, cycle in latest.values():
            for alert in escalation_alerts(cycle, ticket.title, now, risk_minutes):
                if not await dedup_repo.try_record(ticket.id, cycle.cycle_number, alert.type):
                    continue
                alerts_raised += 1

                assignees = await ticket_repo.assignee_ids(ticket.id)
                recipients = unique_recipients([*assignees, *admins])
                if not recipients:
                    continue

                notifications_created += await notification_repo.add_many(NotificationDraft(
                    type=NotificationType.TICKET_STATUS,
                    recipients=recipients,
                    title=alert.title,
                    message=alert.message,
                    link_url=f"/tickets/{ticket.id}",
                    data={"alertType": alert.type.value},
                ))
                logger.info(
                    "SLA alert raised",
                    extra={
                        "ticket_id": ticket.id,
                        "cycle_number": cycle.cycle_number,
                        "alert_type": alert.type.value,
                        "recipients": len(recipients),
                    },
                )

        return {
            "tickets_evaluated": len(latest),
            "alerts_raised": alerts_raised,
            "notifications_created": notifications_created,
        }
