"""
Ticket Application DTOs
=======================

Data Transfer Objects for the ticket API layer.

Request models validate shape only; business rules (category schema,
transitions, permissions) are enforced by the services.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from helpdesk.config import CategoryBranch, SLAState, TicketEventType, TicketPriority, TicketStatus
from helpdesk.shared.api.schemas import APIModel
from helpdesk.sla.application.dto import SLACycleResponse


def _clean_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return None
    cleaned = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


# ========== Request DTOs ==========

class TicketCreateRequest(APIModel):
    """Request model for opening a ticket."""
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    requester_sector_id: str = Field(..., min_length=1)
    target_sector_id: Optional[str] = Field(None, description="Defaults to the configured helpdesk sector")
    category_id: str = Field(..., min_length=1)
    priority: Optional[TicketPriority] = None
    related_resource_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    request_data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)


class TicketUpdateRequest(APIModel):
    """Partial update; only the fields present are applied."""
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    category_id: Optional[str] = Field(None, min_length=1)
    target_sector_id: Optional[str] = Field(None, min_length=1)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    tags: Optional[List[str]] = None
    request_data: Optional[Dict[str, Any]] = None
    related_resource_id: Optional[str] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)


class TicketAssigneesRequest(APIModel):
    assignee_ids: List[str] = Field(default_factory=list)


class CommentCreateRequest(APIModel):
    body: str = Field(..., min_length=1)
    is_internal: bool = False


class AttachmentCreateRequest(APIModel):
    """Metadata of a file already stored by the upload service."""
    original_name: str = Field(..., min_length=1, max_length=255)
    storage_name: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(..., min_length=1, max_length=127)
    size_bytes: int = Field(..., ge=0)


# ========== Internal DTOs ==========

class TicketDraft(BaseModel):
    """Internal DTO handed to the repository when a ticket is inserted."""
    number: int
    title: str
    description: str
    request_data: Dict[str, Any]
    status: TicketStatus = TicketStatus.ABERTO
    priority: TicketPriority
    requester_sector_id: str
    target_sector_id: str
    category_id: str
    created_by: str
    related_resource_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: datetime


# ========== Response DTOs ==========

class CategoryResponse(APIModel):
    id: str
    name: str
    branch: CategoryBranch
    parent_id: Optional[str] = None
    description_template: Optional[str] = None
    form_schema: List[Dict[str, Any]] = Field(default_factory=list)
    children: List["CategoryResponse"] = Field(default_factory=list)


class TicketSummaryResponse(APIModel):
    """Row of the ticket list."""
    id: str
    number: int
    title: str
    status: TicketStatus
    priority: TicketPriority
    requester_sector_id: str
    target_sector_id: str
    category_id: str
    created_by: str
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    closed_at: Optional[datetime] = None
    sla_state: Optional[SLAState] = None


class TicketResponse(TicketSummaryResponse):
    """Full ticket with assignees and its current SLA cycle."""
    description: str
    request_data: Dict[str, Any] = Field(default_factory=dict)
    request_data_version: int = 1
    related_resource_id: Optional[str] = None
    assignee_ids: List[str] = Field(default_factory=list)
    current_cycle: Optional[SLACycleResponse] = None
    can_manage: bool = False


class AssigneesResponse(APIModel):
    assignee_ids: List[str]
    added: List[str] = Field(default_factory=list)
    removed: List[str] = Field(default_factory=list)


class CommentResponse(APIModel):
    id: str
    ticket_id: str
    author_id: str
    author_name: Optional[str] = None
    body: str
    is_internal: bool
    created_at: datetime


class AttachmentResponse(APIModel):
    id: str
    ticket_id: str
    uploaded_by: str
    original_name: str
    storage_name: str
    mime_type: str
    size_bytes: int
    created_at: datetime


class TicketEventResponse(APIModel):
    id: int = Field(..., validation_alias="seq")
    ticket_id: str
    actor_user_id: Optional[str] = None
    type: TicketEventType
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
