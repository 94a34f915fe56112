"""
Notification Infrastructure Repositories
========================================

SQLAlchemy implementations of the inbox, toggle, audit and admin
settings repositories.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config import NotificationType
from helpdesk.notifications.application.services import (
    IAdminSettingsRepository,
    IAuditLogRepository,
    INotificationRepository,
    INotificationSettingsRepository,
)
from helpdesk.notifications.domain import NotificationDraft
from helpdesk.notifications.infrastructure.models import (
    AdminSettingModel,
    AuditLogModel,
    NotificationModel,
    NotificationSettingModel,
)


class SQLAlchemyNotificationRepository(INotificationRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add_many(self, draft: NotificationDraft) -> int:
        if not draft.recipients:
            return 0
        self._session.add_all([
            NotificationModel(
                recipient_user_id=user_id,
                type=NotificationType(draft.type).value,
                title=draft.title,
                message=draft.message,
                link_url=draft.link_url,
                data=dict(draft.data),
                is_read=False,
            )
            for user_id in draft.recipients
        ])
        await self._session.flush()
        return len(draft.recipients)

    async def list_for_user(
        self,
        user_id: str,
        since_id: Optional[int] = None,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[NotificationModel]:
        stmt = select(NotificationModel).where(NotificationModel.recipient_user_id == user_id)
        if since_id is not None:
            stmt = stmt.where(NotificationModel.id > since_id)
        if unread_only:
            stmt = stmt.where(NotificationModel.is_read.is_(False))
        stmt = stmt.order_by(NotificationModel.id.desc()).limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def unread_count(self, user_id: str) -> int:
        stmt = select(func.count()).select_from(NotificationModel).where(
            NotificationModel.recipient_user_id == user_id,
            NotificationModel.is_read.is_(False),
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def mark_read(self, notification_id: int, user_id: str) -> bool:
        model = await self._session.get(NotificationModel, notification_id)
        if model is None or model.recipient_user_id != user_id:
            return False
        model.is_read = True
        await self._session.flush()
        return True

    async def mark_all_read(self, user_id: str) -> int:
        stmt = (
            update(NotificationModel)
            .where(
                NotificationModel.recipient_user_id == user_id,
                NotificationModel.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0


class SQLAlchemyNotificationSettingsRepository(INotificationSettingsRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get(self, notification_type: NotificationType) -> Optional[NotificationSettingModel]:
        stmt = select(NotificationSettingModel).where(
            NotificationSettingModel.type == NotificationType(notification_type).value
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def is_enabled(self, notification_type: NotificationType) -> bool:
        model = await self._get(notification_type)
        return True if model is None else model.enabled

    async def list_all(self) -> Dict[str, Tuple[bool, datetime]]:
        result = await self._session.execute(select(NotificationSettingModel))
        return {m.type: (m.enabled, m.updated_at) for m in result.scalars().all()}

    async def set(self, notification_type: NotificationType, enabled: bool) -> Tuple[bool, datetime]:
        model = await self._get(notification_type)
        now = datetime.now(timezone.utc)
        if model is None:
            model = NotificationSettingModel(type=NotificationType(notification_type).value)
            self._session.add(model)
        model.enabled = enabled
        model.updated_at = now
        await self._session.flush()
        return model.enabled, model.updated_at


class SQLAlchemyAuditLogRepository(IAuditLogRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(
        self,
        actor_user_id: Optional[str],
        action: str,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        ip: Optional[str] = None,
    ) -> None:
        self._session.add(AuditLogModel(
            actor_user_id=actor_user_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            metadata_json=metadata or {},
            ip=ip,
        ))
        await self._session.flush()

    async def list_recent(self, limit: int = 200) -> List[AuditLogModel]:
        stmt = select(AuditLogModel).order_by(AuditLogModel.id.desc()).limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class SQLAlchemyAdminSettingsRepository(IAdminSettingsRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_many(self, keys: List[str]) -> Dict[str, str]:
        if not keys:
            return {}
        stmt = select(AdminSettingModel.key, AdminSettingModel.value).where(AdminSettingModel.key.in_(keys))
        return dict((await self._session.execute(stmt)).all())

    async def set(self, key: str, value: str) -> None:
        model = await self._session.get(AdminSettingModel, key)
        if model is None:
            model = AdminSettingModel(key=key)
            self._session.add(model)
        model.value = value
        model.updated_at = datetime.now(timezone.utc)
        await self._session.flush()
