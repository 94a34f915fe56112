"""
Notification Domain Layer
=========================
"""

from helpdesk.notifications.domain.entities import (
    NotificationDraft,
    TicketEvent,
    TicketSnapshot,
    WebhookConfig,
    WebhookEnvelope,
    unique_recipients,
)

__all__ = [
    "NotificationDraft",
    "TicketEvent",
    "TicketSnapshot",
    "WebhookConfig",
    "WebhookEnvelope",
    "unique_recipients",
]
