"""
Reporting Repository
====================

Read-only SQLAlchemy queries for dashboards and exports.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.access.infrastructure import SectorModel, UserModel
from helpdesk.config import TicketStatus
from helpdesk.reporting.application.services import IReportingRepository
from helpdesk.sla.infrastructure import SLACycleModel, SQLAlchemySLACycleRepository
from helpdesk.tickets.infrastructure import TicketAssigneeModel, TicketCategoryModel, TicketModel


class SQLAlchemyReportingRepository(IReportingRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def tickets(
        self,
        statuses: Optional[Iterable[TicketStatus]] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[TicketModel]:
        stmt = select(TicketModel)
        if statuses is not None:
            stmt = stmt.where(TicketModel.status.in_([TicketStatus(s).value for s in statuses]))
        if created_from is not None:
            stmt = stmt.where(TicketModel.created_at >= created_from)
        if created_to is not None:
            stmt = stmt.where(TicketModel.created_at < created_to)
        stmt = stmt.order_by(TicketModel.created_at, TicketModel.number)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def closed_at_since(self, status: TicketStatus, since: datetime) -> List[datetime]:
        result = await self._session.execute(
            select(TicketModel.closed_at).where(
                TicketModel.status == TicketStatus(status).value,
                TicketModel.closed_at.is_not(None),
                TicketModel.closed_at >= since,
            )
        )
        return list(result.scalars().all())

    async def created_at_since(self, since: datetime) -> List[datetime]:
        result = await self._session.execute(
            select(TicketModel.created_at).where(TicketModel.created_at >= since)
        )
        return list(result.scalars().all())

    async def latest_cycles(self, ticket_ids: List[str]) -> Dict[str, SLACycleModel]:
        return await SQLAlchemySLACycleRepository(self._session).latest_for_tickets(ticket_ids)

    async def assignments(self, ticket_ids: List[str]) -> List[Tuple[str, str]]:
        if not ticket_ids:
            return []
        result = await self._session.execute(
            select(TicketAssigneeModel.ticket_id, TicketAssigneeModel.user_id)
            .where(TicketAssigneeModel.ticket_id.in_(ticket_ids))
            .order_by(TicketAssigneeModel.created_at, TicketAssigneeModel.id)
        )
        return [(ticket_id, user_id) for ticket_id, user_id in result.all()]

    async def categories(self) -> Dict[str, Tuple[str, str]]:
        result = await self._session.execute(
            select(TicketCategoryModel.id, TicketCategoryModel.name, TicketCategoryModel.branch)
        )
        return {category_id: (name, branch) for category_id, name, branch in result.all()}

    async def user_names(self) -> Dict[str, str]:
        result = await self._session.execute(select(UserModel.id, UserModel.name))
        return dict(result.all())

    async def sector_names(self) -> Dict[str, str]:
        result = await self._session.execute(select(SectorModel.id, SectorModel.name))
        return dict(result.all())
