"""
SLA Domain Entities
====================

Pure Python domain entities for SLA tracking.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from helpdesk.config import CycleState, SLAState, TicketPriority
from helpdesk.sla.domain.value_objects import SLATargets


@dataclass
class SLAPolicy:
    """
    Targets for one priority.

    Several active policies may share a priority; the most recently
    created one is the one consulted.
    """
    id: Optional[str]
    name: str
    priority: TicketPriority
    first_response_minutes: int
    resolution_minutes: int
    is_active: bool = True
    created_at: Optional[datetime] = None

    @property
    def targets(self) -> SLATargets:
        return SLATargets(
            priority=TicketPriority(self.priority),
            first_response_minutes=self.first_response_minutes,
            resolution_minutes=self.resolution_minutes,
        )


class CycleRecord(Protocol):
    """
    Attribute shape the cycle manager mutates.

    Both the `SLACycle` dataclass and the ORM row satisfy it, so the
    manager can update a loaded row in place.
    """
    ticket_id: str
    cycle_number: int
    priority: str
    opened_at: datetime
    first_response_due_at: datetime
    resolution_due_at: datetime
    first_response_at: Optional[datetime]
    resolved_at: Optional[datetime]
    first_response_breached: bool
    resolution_breached: bool
    resolution_due_at_manual: bool
    resolution_due_at_manual_reason: Optional[str]
    resolution_due_at_updated_by: Optional[str]
    resolution_due_at_updated_at: Optional[datetime]
    paused_at: Optional[datetime]
    paused_total_business_minutes: int


@dataclass
class SLACycle:
    """
    One SLA measurement window of a ticket.

    Numbered per ticket starting at 1. At most one cycle per ticket has
    `resolved_at` unset.
    """
    ticket_id: str
    cycle_number: int
    priority: str
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


def cycle_state(cycle: CycleRecord) -> CycleState:
    if cycle.resolved_at is not None:
        return CycleState.RESOLVED
    if cycle.paused_at is not None:
        return CycleState.PAUSED
    return CycleState.RUNNING


@dataclass(frozen=True)
class SLAHealth:
    """Point-in-time projection of a cycle for dashboards and escalation."""
    first_response: SLAState
    resolution: SLAState

    @property
    def overall(self) -> SLAState:
        """Most urgent of the two measurements."""
        for state in (SLAState.BREACHED, SLAState.RISK, SLAState.OK):
            if state in (self.first_response, self.resolution):
                return state
        return SLAState.MET

    def to_dict(self) -> dict:
        return {
            "first_response": self.first_response.value,
            "resolution": self.resolution.value,
            "overall": self.overall.value,
        }
