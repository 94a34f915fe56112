"""
Reporting DTOs
==============
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from helpdesk.config import SLAState, TicketPriority, TicketStatus
from helpdesk.shared.api.schemas import APIModel


class DashboardRange(str, Enum):
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"

    @property
    def days(self) -> int:
        return 7 if self == DashboardRange.LAST_7_DAYS else 30


class DashboardSummary(APIModel):
    open: int = 0
    in_progress: int = 0
    waiting_user: int = 0
    waiting_approval: int = 0
    resolved: int = Field(0, description="Resolved within the range")
    cancelled: int = Field(0, description="Cancelled within the range")
    sla_ok: int = 0
    sla_risk: int = 0
    sla_breached: int = 0


class QueueItem(APIModel):
    ticket_id: str
    number: int
    title: str
    status: TicketStatus
    priority: TicketPriority
    category_name: str
    category_branch: str
    creator_name: str
    created_at: datetime
    assignees: List[str] = Field(default_factory=list)
    sla_state: SLAState
    resolution_due_at: Optional[datetime] = None


class WipItem(APIModel):
    user_id: str
    user_name: str
    count: int


class ThroughputPoint(APIModel):
    date: date
    opened: int = 0
    resolved: int = 0


class BacklogItem(APIModel):
    category_name: str
    category_branch: str
    count: int


class DashboardResponse(APIModel):
    range: DashboardRange
    generated_at: datetime
    summary: DashboardSummary
    queue: List[QueueItem] = Field(default_factory=list)
    wip_by_assignee: List[WipItem] = Field(default_factory=list)
    throughput: List[ThroughputPoint] = Field(default_factory=list)
    backlog_by_category: List[BacklogItem] = Field(default_factory=list)


class TicketExportRow(APIModel):
    """One exported ticket; the CSV header uses the same (camelCase) names."""
    id: str
    number: int
    title: str
    status: TicketStatus
    priority: TicketPriority
    category_name: str
    category_branch: str
    requester_sector: str
    target_sector: str
    created_by: str
    assignees: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    closed_at: Optional[datetime] = None
    first_response_at: Optional[datetime] = None
    resolution_due_at: Optional[datetime] = None
    sla_state: Optional[SLAState] = None
