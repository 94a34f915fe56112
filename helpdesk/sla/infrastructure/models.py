"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for the SLA module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.config import SLAAlertType, TicketPriority
from helpdesk.infrastructure.database import Base, UTCDateTime


def _uuid() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SLAPolicyModel(Base):
    """
    Database model for SLA policies.

    Maps to the 'ticket_sla_policies' table.
    """
    __tablename__ = "ticket_sla_policies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    priority: Mapped[TicketPriority] = mapped_column(String(20), nullable=False, index=True)
    first_response_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    resolution_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_now)


class SLACycleModel(Base):
    """
    Database model for SLA cycles.

    Maps to the 'ticket_sla_cycles' table. Satisfies the domain
    `CycleRecord` shape so the cycle manager mutates rows in place.
    """
    __tablename__ = "ticket_sla_cycles"
    __table_args__ = (
        UniqueConstraint("ticket_id", "cycle_number", name="uq_ticket_sla_cycles_ticket_cycle"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    ticket_id: Mapped[str] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), index=True, nullable=False)
    cycle_number: Mapped[int] = mapped_column(Integer, nullable=False)
    priority: Mapped[TicketPriority] = mapped_column(String(20), nullable=False)

    opened_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    first_response_due_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    resolution_due_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    first_response_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    first_response_breached: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolution_breached: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Manual override audit trail
    resolution_due_at_manual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolution_due_at_manual_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolution_due_at_updated_by: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"), nullable=True)
    resolution_due_at_updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Pause bookkeeping
    paused_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    paused_total_business_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class SLAAlertDedupModel(Base):
    """
    One row per escalation alert already raised.

    Maps to the 'sla_alerts_dedup' table.
    """
    __tablename__ = "sla_alerts_dedup"
    __table_args__ = (
        UniqueConstraint("ticket_id", "cycle_number", "alert_type", name="uq_sla_alerts_dedup"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[str] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False)
    cycle_number: Mapped[int] = mapped_column(Integer, nullable=False)
    alert_type: Mapped[SLAAlertType] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_now)
