"""
Notification Infrastructure Layer
=================================
"""

from helpdesk.notifications.infrastructure.models import (
    AdminSettingModel,
    AuditLogModel,
    NotificationModel,
    NotificationSettingModel,
)
from helpdesk.notifications.infrastructure.repositories import (
    SQLAlchemyAdminSettingsRepository,
    SQLAlchemyAuditLogRepository,
    SQLAlchemyNotificationRepository,
    SQLAlchemyNotificationSettingsRepository,
)
from helpdesk.notifications.infrastructure.webhooks import WebhookEmitter, webhook_emitter

__all__ = [
    "AdminSettingModel",
    "AuditLogModel",
    "NotificationModel",
    "NotificationSettingModel",
    "SQLAlchemyAdminSettingsRepository",
    "SQLAlchemyAuditLogRepository",
    "SQLAlchemyNotificationRepository",
    "SQLAlchemyNotificationSettingsRepository",
    "WebhookEmitter",
    "webhook_emitter",
]
