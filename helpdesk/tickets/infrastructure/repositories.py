"""
Ticket Infrastructure Repositories
==================================

Concrete implementations of the ticket and category repository
interfaces using SQLAlchemy.

Ticket rows are returned as ORM objects: the state machine and the
service mutate them in place and the unit of work flushes the changes.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config import ACTIVE_STATUSES, CategoryBranch, TicketEventType, TicketPriority, TicketStatus
from helpdesk.tickets.application.dto import AttachmentCreateRequest, TicketDraft
from helpdesk.tickets.application.services import ICategoryRepository, ITicketRepository
from helpdesk.tickets.domain import Category, FieldSpec
from helpdesk.tickets.infrastructure.models import (
    TicketAssigneeModel,
    TicketAttachmentModel,
    TicketCategoryModel,
    TicketCommentModel,
    TicketEventModel,
    TicketModel,
)


def _category_from_model(model: TicketCategoryModel) -> Category:
    return Category(
        id=model.id,
        name=model.name,
        branch=CategoryBranch(model.branch),
        parent_id=model.parent_id,
        description_template=model.description_template,
        form_schema=[FieldSpec.from_dict(item) for item in (model.form_schema or []) if item.get("key")],
        is_active=model.is_active,
    )


class SQLAlchemyCategoryRepository(ICategoryRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list(self, active_only: bool = True) -> List[Category]:
        stmt = select(TicketCategoryModel)
        if active_only:
            stmt = stmt.where(TicketCategoryModel.is_active.is_(True))
        stmt = stmt.order_by(TicketCategoryModel.branch, TicketCategoryModel.name)
        result = await self._session.execute(stmt)
        return [_category_from_model(m) for m in result.scalars().all()]

    async def get(self, category_id: str) -> Optional[Category]:
        model = await self._session.get(TicketCategoryModel, category_id)
        return _category_from_model(model) if model else None


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of the ticket repository.

    Also serves as the dispatcher's event log.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, ticket_id: str, for_update: bool = False) -> Optional[TicketModel]:
        stmt = select(TicketModel).where(TicketModel.id == ticket_id)
        if for_update:
            # Rendered as FOR UPDATE on PostgreSQL, ignored by SQLite
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def next_number(self) -> int:
        result = await self._session.execute(select(func.max(TicketModel.number)))
        return (result.scalar_one_or_none() or 0) + 1

    async def create(self, draft: TicketDraft) -> TicketModel:
        model = TicketModel(
            number=draft.number,
            title=draft.title,
            description=draft.description,
            request_data=dict(draft.request_data),
            request_data_version=1,
            status=TicketStatus(draft.status).value,
            priority=TicketPriority(draft.priority).value,
            requester_sector_id=draft.requester_sector_id,
            target_sector_id=draft.target_sector_id,
            category_id=draft.category_id,
            created_by=draft.created_by,
            related_resource_id=draft.related_resource_id,
            tags=list(draft.tags),
            created_at=draft.created_at,
            updated_at=draft.created_at,
        )
        self._session.add(model)
        await self._session.flush()
        return model

    async def list_visible(
        self,
        user_id: str,
        sector_ids: Optional[Iterable[str]],
        status: Optional[TicketStatus] = None,
        q: Optional[str] = None,
        include_closed: bool = False,
        limit: int = 200,
    ) -> List[TicketModel]:
        stmt = select(TicketModel)

        if sector_ids is not None:
            sector_ids = list(sector_ids)
            stmt = stmt.where(or_(
                TicketModel.created_by == user_id,
                TicketModel.requester_sector_id.in_(sector_ids),
                TicketModel.target_sector_id.in_(sector_ids),
            ))

        if status is not None:
            stmt = stmt.where(TicketModel.status == TicketStatus(status).value)
        elif not include_closed:
            stmt = stmt.where(TicketModel.status.in_([s.value for s in ACTIVE_STATUSES]))

        if q:
            term = q.strip()
            pattern = f"%{term}%"
            conditions = [TicketModel.title.ilike(pattern), TicketModel.description.ilike(pattern)]
            if term.lstrip("#").isdigit():
                conditions.append(TicketModel.number == int(term.lstrip("#")))
            stmt = stmt.where(or_(*conditions))

        stmt = stmt.order_by(TicketModel.updated_at.desc(), TicketModel.number.desc()).limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # ---- assignees ----

    async def assignee_ids(self, ticket_id: str) -> List[str]:
        stmt = (
            select(TicketAssigneeModel.user_id)
            .where(TicketAssigneeModel.ticket_id == ticket_id)
            .order_by(TicketAssigneeModel.created_at, TicketAssigneeModel.id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def add_assignee(self, ticket_id: str, user_id: str, assigned_by: str, at: datetime) -> None:
        self._session.add(TicketAssigneeModel(
            ticket_id=ticket_id,
            user_id=user_id,
            assigned_by=assigned_by,
            created_at=at,
        ))
        await self._session.flush()

    async def remove_assignee(self, ticket_id: str, user_id: str) -> None:
        await self._session.execute(
            delete(TicketAssigneeModel).where(
                TicketAssigneeModel.ticket_id == ticket_id,
                TicketAssigneeModel.user_id == user_id,
            )
        )

    # ---- history ----

    async def add_event(
        self,
        ticket_id: str,
        actor_user_id: Optional[str],
        event_type: TicketEventType,
        data: Dict[str, Any],
        at: datetime,
    ) -> TicketEventModel:
        model = TicketEventModel(
            ticket_id=ticket_id,
            actor_user_id=actor_user_id,
            type=TicketEventType(event_type).value,
            data=dict(data),
            created_at=at,
        )
        self._session.add(model)
        await self._session.flush()
        return model

    async def list_events(self, ticket_id: str) -> List[TicketEventModel]:
        stmt = (
            select(TicketEventModel)
            .where(TicketEventModel.ticket_id == ticket_id)
            .order_by(TicketEventModel.created_at, TicketEventModel.seq)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # ---- comments and attachments ----

    async def add_comment(self, ticket_id: str, author_id: str, body: str, is_internal: bool, at: datetime) -> TicketCommentModel:
        model = TicketCommentModel(
            ticket_id=ticket_id,
            author_id=author_id,
            body=body,
            is_internal=is_internal,
            created_at=at,
        )
        self._session.add(model)
        await self._session.flush()
        return model

    async def list_comments(self, ticket_id: str, include_internal: bool) -> List[TicketCommentModel]:
        stmt = select(TicketCommentModel).where(TicketCommentModel.ticket_id == ticket_id)
        if not include_internal:
            stmt = stmt.where(TicketCommentModel.is_internal.is_(False))
        stmt = stmt.order_by(TicketCommentModel.created_at, TicketCommentModel.id)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def add_attachment(
        self,
        ticket_id: str,
        uploaded_by: str,
        request: AttachmentCreateRequest,
        at: datetime,
    ) -> TicketAttachmentModel:
        model = TicketAttachmentModel(
            ticket_id=ticket_id,
            uploaded_by=uploaded_by,
            original_name=request.original_name,
            storage_name=request.storage_name,
            mime_type=request.mime_type,
            size_bytes=request.size_bytes,
            created_at=at,
        )
        self._session.add(model)
        await self._session.flush()
        return model

    async def list_attachments(self, ticket_id: str) -> List[TicketAttachmentModel]:
        stmt = (
            select(TicketAttachmentModel)
            .where(TicketAttachmentModel.ticket_id == ticket_id)
            .order_by(TicketAttachmentModel.created_at, TicketAttachmentModel.id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
