"""
SLA Domain Layer
================

Domain layer for the SLA module.

Contains:
- Business calendar: business-minute arithmetic over one weekly definition
- Entities: SLA policies and cycles
- Value Objects: calendar configuration, SLA targets, pinned due dates
- Cycle manager: cycle lifecycle (open, pause/resume, resolve, override)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from helpdesk.sla.domain.calendar import BusinessCalendar, default_calendar
from helpdesk.sla.domain.cycle_manager import SLACycleManager
from helpdesk.sla.domain.entities import (
    CycleRecord,
    SLACycle,
    SLAHealth,
    SLAPolicy,
    cycle_state,
)
from helpdesk.sla.domain.value_objects import (
    BusinessWindow,
    CalendarConfig,
    DashboardConfig,
    EscalationConfig,
    ManualDueDate,
    SLATargets,
)

__all__ = [
    "BusinessCalendar",
    "default_calendar",
    "SLACycleManager",
    # Entities
    "CycleRecord",
    "SLACycle",
    "SLAHealth",
    "SLAPolicy",
    "cycle_state",
    # Value Objects
    "BusinessWindow",
    "CalendarConfig",
    "DashboardConfig",
    "EscalationConfig",
    "ManualDueDate",
    "SLATargets",
]
