"""
Notification Controllers (API Routes)
=====================================

- /notifications: the caller's inbox
- /admin/notifications/settings, /admin/webhook, /admin/audit: global
  admin screens
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.access.domain import Principal
from helpdesk.access.interfaces import get_current_principal, require_admin
from helpdesk.infrastructure.database import get_session
from helpdesk.notifications.application import (
    AdminSettingsService,
    AuditLogResponse,
    MarkReadResponse,
    NotificationResponse,
    NotificationService,
    NotificationSettingResponse,
    NotificationSettingsService,
    NotificationSettingUpdateRequest,
    UnreadCountResponse,
    WebhookConfigResponse,
    WebhookConfigUpdateRequest,
)
from helpdesk.notifications.infrastructure import (
    SQLAlchemyAdminSettingsRepository,
    SQLAlchemyAuditLogRepository,
    SQLAlchemyNotificationRepository,
    SQLAlchemyNotificationSettingsRepository,
)

router = APIRouter(prefix="/notifications", tags=["Notifications"])
admin_router = APIRouter(prefix="/admin", tags=["Administration"])


# ========== Dependencies ==========

async def get_notification_service(session: AsyncSession = Depends(get_session)) -> NotificationService:
    return NotificationService(SQLAlchemyNotificationRepository(session))


async def get_settings_service(session: AsyncSession = Depends(get_session)) -> NotificationSettingsService:
    return NotificationSettingsService(
        SQLAlchemyNotificationSettingsRepository(session),
        SQLAlchemyAuditLogRepository(session),
    )


async def get_admin_settings_service(session: AsyncSession = Depends(get_session)) -> AdminSettingsService:
    return AdminSettingsService(
        SQLAlchemyAdminSettingsRepository(session),
        SQLAlchemyAuditLogRepository(session),
    )


# ========== Inbox ==========

@router.get(
    "",
    response_model=List[NotificationResponse],
    summary="List my notifications",
    description="""
    Newest first. Pass the highest id already seen as `since_id` to poll
    for new entries only.
    """,
)
async def list_notifications(
    since_id: Optional[int] = Query(None, ge=0),
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    principal: Principal = Depends(get_current_principal),
    service: NotificationService = Depends(get_notification_service),
):
    return await service.list_notifications(
        principal.user_id,
        since_id=since_id,
        unread_only=unread_only,
        limit=limit,
    )


@router.get("/unread-count", response_model=UnreadCountResponse, summary="Unread badge count")
async def unread_count(
    principal: Principal = Depends(get_current_principal),
    service: NotificationService = Depends(get_notification_service),
):
    return UnreadCountResponse(count=await service.unread_count(principal.user_id))


@router.post("/read-all", response_model=MarkReadResponse, summary="Mark all my notifications read")
async def mark_all_read(
    principal: Principal = Depends(get_current_principal),
    service: NotificationService = Depends(get_notification_service),
):
    return MarkReadResponse(updated=await service.mark_all_read(principal.user_id))


@router.post(
    "/{notification_id}/read",
    response_model=MarkReadResponse,
    summary="Mark one notification read",
    responses={404: {"description": "Not found or owned by another user"}},
)
async def mark_read(
    notification_id: int,
    principal: Principal = Depends(get_current_principal),
    service: NotificationService = Depends(get_notification_service),
):
    await service.mark_read(notification_id, principal.user_id)
    return MarkReadResponse(updated=1)


# ========== Admin ==========

@admin_router.get(
    "/notifications/settings",
    response_model=List[NotificationSettingResponse],
    summary="Notification type toggles",
)
async def list_notification_settings(
    admin: Principal = Depends(require_admin),
    service: NotificationSettingsService = Depends(get_settings_service),
):
    return await service.list_settings()


@admin_router.patch(
    "/notifications/settings",
    response_model=NotificationSettingResponse,
    summary="Enable or disable a notification type",
)
async def update_notification_setting(
    request: NotificationSettingUpdateRequest,
    admin: Principal = Depends(require_admin),
    service: NotificationSettingsService = Depends(get_settings_service),
):
    return await service.update_setting(request, admin.user_id)


@admin_router.get("/webhook", response_model=WebhookConfigResponse, summary="Webhook target")
async def get_webhook(
    admin: Principal = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    return await service.get_webhook()


@admin_router.put(
    "/webhook",
    response_model=WebhookConfigResponse,
    summary="Update webhook target",
    description="Events are posted only when enabled and a URL is set.",
)
async def update_webhook(
    request: WebhookConfigUpdateRequest,
    admin: Principal = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    return await service.update_webhook(request, admin.user_id)


@admin_router.get("/audit", response_model=List[AuditLogResponse], summary="Recent audit log entries")
async def audit_trail(
    limit: int = Query(200, ge=1, le=1000),
    admin: Principal = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    return await service.audit_trail(limit)


# Export router
notifications_router = router
