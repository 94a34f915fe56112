"""
Notification Application Layer
==============================
"""

from helpdesk.notifications.application.dispatcher import (
    NOTIFICATION_TYPES,
    EventDispatcher,
    ticket_webhook_data,
)
from helpdesk.notifications.application.dto import (
    AuditLogResponse,
    MarkReadResponse,
    NotificationResponse,
    NotificationSettingResponse,
    NotificationSettingUpdateRequest,
    UnreadCountResponse,
    WebhookConfigResponse,
    WebhookConfigUpdateRequest,
)
from helpdesk.notifications.application.services import (
    AdminSettingsService,
    IAdminSettingsRepository,
    IAuditLogRepository,
    INotificationRepository,
    INotificationSettingsRepository,
    NotificationService,
    NotificationSettingsService,
    load_webhook_config,
)

__all__ = [
    "NOTIFICATION_TYPES",
    "EventDispatcher",
    "ticket_webhook_data",
    "AuditLogResponse",
    "MarkReadResponse",
    "NotificationResponse",
    "NotificationSettingResponse",
    "NotificationSettingUpdateRequest",
    "UnreadCountResponse",
    "WebhookConfigResponse",
    "WebhookConfigUpdateRequest",
    "AdminSettingsService",
    "IAdminSettingsRepository",
    "IAuditLogRepository",
    "INotificationRepository",
    "INotificationSettingsRepository",
    "NotificationService",
    "NotificationSettingsService",
    "load_webhook_config",
]
