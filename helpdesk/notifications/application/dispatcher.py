"""
Event Dispatcher
================

Fans out ticket events inside the caller's transaction:

1. the `ticket_events` row is appended (always);
2. the event type maps to a notification type and a recipient set
   (creator, assignees, target-sector staff) minus the actor; rows are
   written unless that type is switched off;
3. webhook envelopes are queued in an outbox which the caller hands to
   the emitter only after the transaction commits.

Audit entries go through the same object so services depend on one
collaborator for all their side effects.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from helpdesk.config import NotificationType, TicketEventType, TicketStatus, WebhookEventType
from helpdesk.notifications.application.services import (
    IAuditLogRepository,
    INotificationRepository,
    INotificationSettingsRepository,
)
from helpdesk.notifications.domain import (
    NotificationDraft,
    TicketEvent,
    TicketSnapshot,
    WebhookEnvelope,
    unique_recipients,
)
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.tickets.domain.state_machine import STATUS_LABELS

logger = get_logger(__name__)


class TicketEventLog(Protocol):
    async def add_event(
        self,
        ticket_id: str,
        actor_user_id: Optional[str],
        event_type: TicketEventType,
        data: Dict[str, Any],
        at: datetime,
    ) -> Any:
        ...


class RecipientDirectory(Protocol):
    async def staff_user_ids(self, sector_id: str) -> List[str]:
        ...

    async def admin_user_ids(self) -> List[str]:
        ...


NOTIFICATION_TYPES = {
    TicketEventType.TICKET_CREATED: NotificationType.TICKET_CREATED,
    TicketEventType.STATUS_CHANGED: NotificationType.TICKET_STATUS,
    TicketEventType.ASSIGNEES_CHANGED: NotificationType.TICKET_STATUS,
    TicketEventType.COMMENT_ADDED: NotificationType.TICKET_COMMENT,
}


def ticket_webhook_data(ticket: TicketSnapshot, **extra: Any) -> Dict[str, Any]:
    """Normalized webhook `data` block for a ticket."""
    data = {
        "ticketId": ticket.id,
        "number": ticket.number,
        "title": ticket.title,
        "status": ticket.status,
        "priority": ticket.priority,
        "requesterSectorId": ticket.requester_sector_id,
        "targetSectorId": ticket.target_sector_id,
        "createdBy": ticket.created_by,
    }
    data.update(extra)
    return data


class EventDispatcher:
    """
    Per-request fan-out of ticket events.

    One instance per unit of work: the webhook outbox belongs to the
    transaction that produced it.
    """

    def __init__(
        self,
        event_log: TicketEventLog,
        notification_repository: INotificationRepository,
        settings_repository: INotificationSettingsRepository,
        audit_repository: IAuditLogRepository,
        directory: RecipientDirectory,
    ):
        self._events = event_log
        self._notifications = notification_repository
        self._settings = settings_repository
        self._audit = audit_repository
        self._directory = directory
        self._outbox: List[WebhookEnvelope] = []

    @property
    def outbox(self) -> List[WebhookEnvelope]:
        return list(self._outbox)

    def drain(self) -> List[WebhookEnvelope]:
        """Hand the queued envelopes over and clear the outbox."""
        envelopes, self._outbox = self._outbox, []
        return envelopes

    def discard(self) -> None:
        """Drop queued envelopes after a rollback."""
        self._outbox.clear()

    async def dispatch(self, event: TicketEvent) -> Optional[NotificationDraft]:
        """Append the event row and write its notifications."""
        await self._events.add_event(
            event.ticket.id,
            event.actor_id,
            event.type,
            event.data,
            event.at,
        )

        draft = await self._plan(event)
        if draft is None or not draft.recipients:
            return None

        if not await self._settings.is_enabled(draft.type):
            logger.debug(
                "Notification type disabled, skipping",
                extra={"notification_type": draft.type.value, "ticket_id": event.ticket.id},
            )
            return None

        await self._notifications.add_many(draft)
        return draft

    def queue_webhook(
        self,
        event_type: WebhookEventType,
        data: Dict[str, Any],
        at: Optional[datetime] = None,
    ) -> WebhookEnvelope:
        envelope = WebhookEnvelope.build(event_type, data, at or datetime.now(timezone.utc))
        self._outbox.append(envelope)
        return envelope

    async def audit(
        self,
        actor_id: Optional[str],
        action: str,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self._audit.add(actor_id, action, target_type=target_type, target_id=target_id, metadata=metadata)

    async def _plan(self, event: TicketEvent) -> Optional[NotificationDraft]:
        notification_type = NOTIFICATION_TYPES.get(event.type)
        if notification_type is None:
            return None

        ticket = event.ticket
        actor = event.actor_name or "Alguém"

        if event.type == TicketEventType.TICKET_CREATED:
            staff = await self._directory.staff_user_ids(ticket.target_sector_id)
            admins = await self._directory.admin_user_ids()
            recipients = unique_recipients([*staff, *admins, *ticket.assignee_ids], exclude=event.actor_id)
            title = "Novo chamado criado"
            message = f"{actor} criou o chamado: {ticket.title}"

        elif event.type == TicketEventType.STATUS_CHANGED:
            target = TicketStatus(event.data.get("to", ticket.status))
            recipients = unique_recipients([ticket.created_by, *ticket.assignee_ids], exclude=event.actor_id)
            title = "Status do chamado alterado"
            message = f"Chamado #{ticket.number} alterado para: {STATUS_LABELS[target]}"

        elif event.type == TicketEventType.ASSIGNEES_CHANGED:
            recipients = unique_recipients(event.data.get("added", []), exclude=event.actor_id)
            title = "Você foi atribuído a um chamado"
            message = f"Chamado #{ticket.number}: {ticket.title}"

        else:
            if event.data.get("isInternal"):
                # Internal notes never reach the requester
                staff = await self._directory.staff_user_ids(ticket.target_sector_id)
                candidates = [*ticket.assignee_ids, *staff]
            else:
                candidates = [ticket.created_by, *ticket.assignee_ids]
            recipients = unique_recipients(candidates, exclude=event.actor_id)
            title = "Novo comentário no chamado"
            message = f"{actor} comentou no chamado #{ticket.number}: {ticket.title}"

        return NotificationDraft(
            type=notification_type,
            recipients=recipients,
            title=title,
            message=message,
            link_url=ticket.link_url,
            data={"ticketId": ticket.id, "eventType": event.type.value},
        )
