"""
Notification Domain Entities
============================

Value objects flowing out of the event dispatcher: the ticket event
itself, inbox notification drafts and outbound webhook envelopes.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from helpdesk.config import NotificationType, TicketEventType, WebhookEventType


@dataclass(frozen=True)
class TicketSnapshot:
    """The ticket fields an event needs to address its recipients."""
    id: str
    number: int
    title: str
    status: str
    priority: str
    created_by: str
    requester_sector_id: str
    target_sector_id: str
    assignee_ids: Tuple[str, ...] = ()

    @property
    def link_url(self) -> str:
        return f"/tickets/{self.id}"


@dataclass(frozen=True)
class TicketEvent:
    """One row of ticket history, before it is persisted."""
    type: TicketEventType
    ticket: TicketSnapshot
    actor_id: Optional[str]
    at: datetime
    data: Dict[str, Any] = field(default_factory=dict, hash=False)
    actor_name: str = ""


@dataclass(frozen=True)
class NotificationDraft:
    """Inbox rows to create, one per recipient."""
    type: NotificationType
    recipients: Tuple[str, ...]
    title: str
    message: str
    link_url: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class WebhookConfig:
    url: str = ""
    enabled: bool = False

    @property
    def active(self) -> bool:
        return self.enabled and bool(self.url)


@dataclass(frozen=True)
class WebhookEnvelope:
    """
    Outbound webhook body.

    The idempotency key is `{type}:{ticketId}:{epochMillis}`; receivers
    use it to drop the duplicate produced by a retry.
    """
    type: WebhookEventType
    idempotency_key: str
    timestamp: datetime
    data: Dict[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def build(
        cls,
        event_type: WebhookEventType,
        data: Dict[str, Any],
        at: Optional[datetime] = None,
    ) -> "WebhookEnvelope":
        at = at or datetime.now(timezone.utc)
        ticket_id = data.get("ticketId") or "unknown"
        millis = int(at.timestamp() * 1000)
        return cls(
            type=WebhookEventType(event_type),
            idempotency_key=f"{WebhookEventType(event_type).value}:{ticket_id}:{millis}",
            timestamp=at,
            data=dict(data),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "idempotencyKey": self.idempotency_key,
            "timestamp": self.timestamp.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
            "data": self.data,
        }


def unique_recipients(candidates: Iterable[Optional[str]], exclude: Optional[str] = None) -> Tuple[str, ...]:
    """First-seen order, without blanks, duplicates or the excluded actor."""
    seen: List[str] = []
    for user_id in candidates:
        if user_id and user_id != exclude and user_id not in seen:
            seen.append(user_id)
    return tuple(seen)
