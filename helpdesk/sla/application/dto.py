"""
SLA Application DTOs
=====================

Data Transfer Objects for the SLA API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from helpdesk.config import CycleState, SLAState, TicketPriority
from helpdesk.shared.api.schemas import APIModel


# ========== Request DTOs ==========

class SLAPolicyCreateRequest(APIModel):
    """Request model for creating an SLA policy."""
    name: str = Field(..., min_length=1, max_length=255)
    priority: TicketPriority
    first_response_minutes: int = Field(..., gt=0, description="Business minutes to first response")
    resolution_minutes: int = Field(..., gt=0, description="Business minutes to resolution")
    is_active: bool = True


class SLAPolicyUpdateRequest(APIModel):
    """Partial update of an SLA policy."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    first_response_minutes: Optional[int] = Field(None, gt=0)
    resolution_minutes: Optional[int] = Field(None, gt=0)
    is_active: Optional[bool] = None


class ResolutionDueAtOverrideRequest(APIModel):
    """Manual override of the current cycle's resolution due date."""
    resolution_due_at: datetime
    reason: Optional[str] = Field(None, max_length=2000)


# ========== Response DTOs ==========

class SLAPolicyResponse(APIModel):
    id: str
    name: str
    priority: TicketPriority
    first_response_minutes: int
    resolution_minutes: int
    is_active: bool
    created_at: datetime


class SLAHealthResponse(APIModel):
    first_response: SLAState
    resolution: SLAState
    overall: SLAState


class SLACycleResponse(APIModel):
    """Response model for one SLA cycle of a ticket."""
    ticket_id: str
    cycle_number: int
    priority: TicketPriority
    state: CycleState
    opened_at: datetime
    first_response_due_at: datetime
    resolution_due_at: datetime
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    first_response_breached: bool = False
    resolution_breached: bool = False
    resolution_due_at_manual: bool = False
    resolution_due_at_manual_reason: Optional[str] = None
    resolution_due_at_updated_by: Optional[str] = None
    resolution_due_at_updated_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    paused_total_business_minutes: int = 0
    health: Optional[SLAHealthResponse] = None
