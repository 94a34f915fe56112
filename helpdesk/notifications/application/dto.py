"""
Notification DTOs
=================

Request/response models for the inbox and the admin notification and
webhook settings endpoints.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field, field_validator

from helpdesk.config import NotificationType
from helpdesk.shared.api.schemas import APIModel


class NotificationResponse(APIModel):
    id: int
    type: NotificationType
    title: str
    message: str
    link_url: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    is_read: bool
    created_at: datetime


class UnreadCountResponse(APIModel):
    count: int


class MarkReadResponse(APIModel):
    updated: int


class NotificationSettingResponse(APIModel):
    type: NotificationType
    enabled: bool
    updated_at: Optional[datetime] = None


class NotificationSettingUpdateRequest(APIModel):
    type: NotificationType
    enabled: bool


class WebhookConfigResponse(APIModel):
    url: str = ""
    enabled: bool = False


class WebhookConfigUpdateRequest(APIModel):
    url: Optional[str] = Field(default=None, max_length=500)
    enabled: Optional[bool] = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return v


class AuditLogResponse(APIModel):
    id: int
    actor_user_id: Optional[str] = None
    action: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_json")
    created_at: datetime
