"""
Ticket Infrastructure Models
============================

SQLAlchemy ORM models for the ticket aggregate and its append-only
children (events, comments, attachment metadata).
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.config import CategoryBranch, TicketEventType, TicketPriority, TicketStatus
from helpdesk.infrastructure.database import Base, UTCDateTime


def _uuid() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TicketCategoryModel(Base):
    """
    Maps to the 'ticket_categories' table.

    Roots have `parent_id = NULL`; root names are unique per branch
    (enforced by the admin service).
    """
    __tablename__ = "ticket_categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    branch: Mapped[CategoryBranch] = mapped_column(String(20), nullable=False)
    parent_id: Mapped[Optional[str]] = mapped_column(ForeignKey("ticket_categories.id"), nullable=True, index=True)
    description_template: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    form_schema: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_now)


class TicketModel(Base):
    """
    Database model for the ticket aggregate root.

    Maps to the 'tickets' table. `closed_at` is set iff the status is
    RESOLVIDO or CANCELADO.
    """
    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    number: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    request_data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    request_data_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    status: Mapped[TicketStatus] = mapped_column(String(30), nullable=False, index=True, default=TicketStatus.ABERTO.value)
    priority: Mapped[TicketPriority] = mapped_column(String(20), nullable=False, default=TicketPriority.MEDIA.value)

    requester_sector_id: Mapped[str] = mapped_column(ForeignKey("sectors.id"), nullable=False, index=True)
    target_sector_id: Mapped[str] = mapped_column(ForeignKey("sectors.id"), nullable=False, index=True)
    category_id: Mapped[str] = mapped_column(ForeignKey("ticket_categories.id"), nullable=False)
    created_by: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    related_resource_id: Mapped[Optional[str]] = mapped_column(ForeignKey("resources.id", ondelete="SET NULL"), nullable=True)
    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_now)
    closed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)


class TicketAssigneeModel(Base):
    """Maps to the 'ticket_assignees' table."""
    __tablename__ = "ticket_assignees"
    __table_args__ = (
        UniqueConstraint("ticket_id", "user_id", name="uq_ticket_assignees_ticket_user"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    ticket_id: Mapped[str] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    assigned_by: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_now)


class TicketEventModel(Base):
    """
    Append-only ticket history.

    Maps to the 'ticket_events' table. Ordered by (created_at, seq).
    """
    __tablename__ = "ticket_events"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[str] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), index=True, nullable=False)
    actor_user_id: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"), nullable=True)
    type: Mapped[TicketEventType] = mapped_column(String(30), nullable=False)
    data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_now)


class TicketCommentModel(Base):
    """Maps to the 'ticket_comments' table (append-only)."""
    __tablename__ = "ticket_comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    ticket_id: Mapped[str] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), index=True, nullable=False)
    author_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_now)


class TicketAttachmentModel(Base):
    """Attachment metadata; file storage is handled elsewhere."""
    __tablename__ = "ticket_attachments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    ticket_id: Mapped[str] = mapped_column(ForeignKey("tickets.id", ondelete="CASCADE"), index=True, nullable=False)
    uploaded_by: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(127), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_now)
