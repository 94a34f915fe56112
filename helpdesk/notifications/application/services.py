"""
Notification Application Services
=================================

Inbox reads/acknowledgements and the admin-editable settings that the
dispatcher and webhook emitter consult at call time.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from helpdesk.config import WEBHOOK_ENABLED_KEY, WEBHOOK_URL_KEY, NotificationType
from helpdesk.core import ResourceNotFoundException
from helpdesk.notifications.application.dto import (
    AuditLogResponse,
    NotificationResponse,
    NotificationSettingResponse,
    NotificationSettingUpdateRequest,
    WebhookConfigResponse,
    WebhookConfigUpdateRequest,
)
from helpdesk.notifications.domain import NotificationDraft, WebhookConfig
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class INotificationRepository(ABC):
    """Interface for inbox rows."""

    @abstractmethod
    async def add_many(self, draft: NotificationDraft) -> int:
        """Insert one row per recipient; returns the row count."""

    @abstractmethod
    async def list_for_user(
        self,
        user_id: str,
        since_id: Optional[int] = None,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[Any]:
        """Newest first."""

    @abstractmethod
    async def unread_count(self, user_id: str) -> int:
        """Unread rows for a user."""

    @abstractmethod
    async def mark_read(self, notification_id: int, user_id: str) -> bool:
        """False when the row does not exist or belongs to someone else."""

    @abstractmethod
    async def mark_all_read(self, user_id: str) -> int:
        """Returns the number of rows flipped."""


class INotificationSettingsRepository(ABC):
    """Interface for per-type notification toggles."""

    @abstractmethod
    async def is_enabled(self, notification_type: NotificationType) -> bool:
        """Missing rows count as enabled."""

    @abstractmethod
    async def list_all(self) -> Dict[str, Tuple[bool, datetime]]:
        """Stored toggles keyed by type."""

    @abstractmethod
    async def set(self, notification_type: NotificationType, enabled: bool) -> Tuple[bool, datetime]:
        """Upsert a toggle."""


class IAuditLogRepository(ABC):
    """Interface for the append-only audit trail."""

    @abstractmethod
    async def add(
        self,
        actor_user_id: Optional[str],
        action: str,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        ip: Optional[str] = None,
    ) -> None:
        """Append an audit row."""

    @abstractmethod
    async def list_recent(self, limit: int = 200) -> List[Any]:
        """Newest first."""


class IAdminSettingsRepository(ABC):
    """Interface for the admin key-value store."""

    @abstractmethod
    async def get_many(self, keys: List[str]) -> Dict[str, str]:
        """Values for the keys that exist."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Upsert one key."""


async def load_webhook_config(settings_repository: IAdminSettingsRepository) -> WebhookConfig:
    """Read the webhook target from the admin settings store."""
    values = await settings_repository.get_many([WEBHOOK_URL_KEY, WEBHOOK_ENABLED_KEY])
    return WebhookConfig(
        url=(values.get(WEBHOOK_URL_KEY) or "").strip(),
        enabled=values.get(WEBHOOK_ENABLED_KEY) == "true",
    )


# ========== Application Services ==========

class NotificationService:
    """A user's inbox. Every call is scoped to the requesting user."""

    def __init__(self, notification_repository: INotificationRepository):
        self._repo = notification_repository

    async def list_notifications(
        self,
        user_id: str,
        since_id: Optional[int] = None,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[NotificationResponse]:
        rows = await self._repo.list_for_user(user_id, since_id=since_id, unread_only=unread_only, limit=limit)
        return [NotificationResponse.model_validate(row) for row in rows]

    async def unread_count(self, user_id: str) -> int:
        return await self._repo.unread_count(user_id)

    async def mark_read(self, notification_id: int, user_id: str) -> None:
        if not await self._repo.mark_read(notification_id, user_id):
            raise ResourceNotFoundException("Notification", str(notification_id))

    async def mark_all_read(self, user_id: str) -> int:
        updated = await self._repo.mark_all_read(user_id)
        logger.debug("Notifications marked read", extra={"user_id": user_id, "updated": updated})
        return updated


class NotificationSettingsService:
    """Admin toggles per notification type."""

    def __init__(
        self,
        settings_repository: INotificationSettingsRepository,
        audit_repository: IAuditLogRepository,
    ):
        self._settings = settings_repository
        self._audit = audit_repository

    async def list_settings(self) -> List[NotificationSettingResponse]:
        stored = await self._settings.list_all()
        result = []
        for notification_type in NotificationType:
            enabled, updated_at = stored.get(notification_type.value, (True, None))
            result.append(NotificationSettingResponse(
                type=notification_type,
                enabled=enabled,
                updated_at=updated_at,
            ))
        return result

    async def update_setting(self, request: NotificationSettingUpdateRequest, actor_id: str) -> NotificationSettingResponse:
        enabled, updated_at = await self._settings.set(request.type, request.enabled)
        await self._audit.add(
            actor_id,
            "notification_setting_update",
            target_type="notification_setting",
            target_id=request.type.value,
            metadata={"enabled": enabled},
        )
        logger.info(
            "Notification setting updated",
            extra={"notification_type": request.type.value, "enabled": enabled},
        )
        return NotificationSettingResponse(type=request.type, enabled=enabled, updated_at=updated_at)


class AdminSettingsService:
    """Webhook target and audit trail reads for the admin screens."""

    def __init__(
        self,
        admin_settings_repository: IAdminSettingsRepository,
        audit_repository: IAuditLogRepository,
    ):
        self._settings = admin_settings_repository
        self._audit = audit_repository

    async def get_webhook(self) -> WebhookConfigResponse:
        config = await load_webhook_config(self._settings)
        return WebhookConfigResponse(url=config.url, enabled=config.enabled)

    async def update_webhook(self, request: WebhookConfigUpdateRequest, actor_id: str) -> WebhookConfigResponse:
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if "url" in changes:
            await self._settings.set(WEBHOOK_URL_KEY, changes["url"])
        if "enabled" in changes:
            await self._settings.set(WEBHOOK_ENABLED_KEY, "true" if changes["enabled"] else "false")

        await self._audit.add(
            actor_id,
            "settings_update",
            target_type="admin_settings",
            target_id="webhook",
            metadata=changes,
        )
        return await self.get_webhook()

    async def audit_trail(self, limit: int = 200) -> List[AuditLogResponse]:
        rows = await self._audit.list_recent(limit)
        return [AuditLogResponse.model_validate(row) for row in rows]
