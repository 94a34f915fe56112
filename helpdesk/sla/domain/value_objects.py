"""
SLA Value Objects
==================

Immutable value objects for the SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from helpdesk.config import TicketPriority

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):(\d{2})$")


class BusinessWindow(BaseModel):
    """Opening hours of a single weekday, local time."""
    start: time
    end: time


def _default_business_hours() -> Dict[str, Optional[BusinessWindow]]:
    long_day = BusinessWindow(start=time(8, 0), end=time(18, 0))
    return {
        "monday": long_day,
        "tuesday": long_day,
        "wednesday": long_day,
        "thursday": long_day,
        "friday": BusinessWindow(start=time(8, 0), end=time(17, 0)),
        "saturday": None,
        "sunday": None,
    }


class EscalationConfig(BaseModel):
    """Thresholds for the background escalation sweep."""
    risk_threshold_minutes: int = Field(default=240, ge=0, description="Wall-clock minutes before a due date that count as risk")


class DashboardConfig(BaseModel):
    """Risk projection used by reporting: min(ratio * cycle length, cap)."""
    risk_ratio: float = Field(default=0.2, gt=0, le=1)
    risk_cap_minutes: int = Field(default=60, ge=0)


class CalendarConfig(BaseModel):
    """
    Business calendar configuration loaded from YAML.

    Exactly one business-hours definition exists per process. Semantic
    checks (at least one open day, end after start) happen when the
    calendar is built so that a bad file fails loudly at load time.
    """
    utc_offset: str = Field(default="-03:00", description="Fixed offset of local business time, e.g. -03:00")
    business_hours: Dict[str, Optional[BusinessWindow]] = Field(default_factory=_default_business_hours)
    escalation: EscalationConfig = Field(default_factory=EscalationConfig)
    dashboard: DashboardConfig = Field(default_factory=DashboardConfig)

    @field_validator("utc_offset")
    @classmethod
    def validate_offset(cls, v: str) -> str:
        if not _OFFSET_RE.match(v):
            raise ValueError("utc_offset must look like +HH:MM or -HH:MM")
        return v

    @field_validator("business_hours")
    @classmethod
    def validate_weekdays(cls, v: Dict[str, Optional[BusinessWindow]]) -> Dict[str, Optional[BusinessWindow]]:
        normalized = {key.lower(): window for key, window in v.items()}
        unknown = set(normalized) - set(WEEKDAYS)
        if unknown:
            raise ValueError(f"unknown weekday(s): {sorted(unknown)}")
        # Days left out of the file are closed
        return {day: normalized.get(day) for day in WEEKDAYS}

    @property
    def offset(self) -> timedelta:
        sign, hours, minutes = _OFFSET_RE.match(self.utc_offset).groups()
        delta = timedelta(hours=int(hours), minutes=int(minutes))
        return -delta if sign == "-" else delta


@dataclass(frozen=True)
class SLATargets:
    """Minutes granted by an SLA policy for one priority."""
    priority: TicketPriority
    first_response_minutes: int
    resolution_minutes: int

    def __post_init__(self):
        if self.first_response_minutes < 0 or self.resolution_minutes < 0:
            raise ValueError("SLA minutes cannot be negative")


@dataclass(frozen=True)
class ManualDueDate:
    """A manually pinned resolution due date that may carry into a new cycle."""
    priority: TicketPriority
    due_at: datetime
    reason: Optional[str]
    updated_by: Optional[str]
    updated_at: Optional[datetime]
