"""
SLA Infrastructure Repositories
=================================

Concrete implementations of the SLA repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
policies, cycles and escalation markers.
"""

from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.config import SLAAlertType, TicketPriority
from helpdesk.core import RepositoryException
from helpdesk.sla.application.services import (
    ISLAAlertDedupRepository,
    ISLACycleRepository,
    ISLAPolicyRepository,
)
from helpdesk.sla.domain import SLACycle, SLAPolicy
from helpdesk.sla.infrastructure.models import SLAAlertDedupModel, SLACycleModel, SLAPolicyModel


def _policy_from_model(model: SLAPolicyModel) -> SLAPolicy:
    return SLAPolicy(
        id=model.id,
        name=model.name,
        priority=TicketPriority(model.priority),
        first_response_minutes=model.first_response_minutes,
        resolution_minutes=model.resolution_minutes,
        is_active=model.is_active,
        created_at=model.created_at,
    )


class SQLAlchemySLAPolicyRepository(ISLAPolicyRepository):
    """
    SQLAlchemy implementation of the SLA policy repository.

    Precedence among active policies sharing a priority is explicit:
    newest `created_at` first, ties broken by id.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list(self, active_only: bool = False) -> List[SLAPolicy]:
        stmt = select(SLAPolicyModel)
        if active_only:
            stmt = stmt.where(SLAPolicyModel.is_active.is_(True))
        stmt = stmt.order_by(SLAPolicyModel.priority, SLAPolicyModel.created_at.desc(), SLAPolicyModel.id.desc())
        result = await self._session.execute(stmt)
        return [_policy_from_model(m) for m in result.scalars().all()]

    async def get(self, policy_id: str) -> Optional[SLAPolicy]:
        model = await self._session.get(SLAPolicyModel, policy_id)
        return _policy_from_model(model) if model else None

    async def add(self, policy: SLAPolicy) -> SLAPolicy:
        model = SLAPolicyModel(
            name=policy.name,
            priority=TicketPriority(policy.priority).value,
            first_response_minutes=policy.first_response_minutes,
            resolution_minutes=policy.resolution_minutes,
            is_active=policy.is_active,
        )
        if policy.created_at is not None:
            model.created_at = policy.created_at
        self._session.add(model)
        await self._session.flush()
        return _policy_from_model(model)

    async def save(self, policy: SLAPolicy) -> SLAPolicy:
        model = await self._session.get(SLAPolicyModel, policy.id)
        if model is None:
            raise RepositoryException(f"SLA policy {policy.id} not found")

        model.name = policy.name
        model.first_response_minutes = policy.first_response_minutes
        model.resolution_minutes = policy.resolution_minutes
        model.is_active = policy.is_active
        await self._session.flush()
        return _policy_from_model(model)

    async def active_for_priority(self, priority: TicketPriority) -> Optional[SLAPolicy]:
        stmt = (
            select(SLAPolicyModel)
            .where(
                SLAPolicyModel.priority == TicketPriority(priority).value,
                SLAPolicyModel.is_active.is_(True),
            )
            .order_by(SLAPolicyModel.created_at.desc(), SLAPolicyModel.id.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _policy_from_model(model) if model else None


class SQLAlchemySLACycleRepository(ISLACycleRepository):
    """
    SQLAlchemy implementation of the SLA cycle repository.

    Returns ORM rows; the cycle manager mutates them in place and the
    unit of work flushes the changes.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def current(self, ticket_id: str) -> Optional[SLACycleModel]:
        stmt = (
            select(SLACycleModel)
            .where(SLACycleModel.ticket_id == ticket_id)
            .order_by(SLACycleModel.cycle_number.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_ticket(self, ticket_id: str) -> List[SLACycleModel]:
        stmt = (
            select(SLACycleModel)
            .where(SLACycleModel.ticket_id == ticket_id)
            .order_by(SLACycleModel.cycle_number.asc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def add(self, cycle: SLACycle) -> SLACycleModel:
        model = SLACycleModel(
            ticket_id=cycle.ticket_id,
            cycle_number=cycle.cycle_number,
            priority=TicketPriority(cycle.priority).value,
            opened_at=cycle.opened_at,
            first_response_due_at=cycle.first_response_due_at,
            resolution_due_at=cycle.resolution_due_at,
            first_response_at=cycle.first_response_at,
            resolved_at=cycle.resolved_at,
            first_response_breached=cycle.first_response_breached,
            resolution_breached=cycle.resolution_breached,
            resolution_due_at_manual=cycle.resolution_due_at_manual,
            resolution_due_at_manual_reason=cycle.resolution_due_at_manual_reason,
            resolution_due_at_updated_by=cycle.resolution_due_at_updated_by,
            resolution_due_at_updated_at=cycle.resolution_due_at_updated_at,
            paused_at=cycle.paused_at,
            paused_total_business_minutes=cycle.paused_total_business_minutes,
        )
        self._session.add(model)
        await self._session.flush()
        return model

    async def latest_for_tickets(self, ticket_ids: List[str]) -> Dict[str, SLACycleModel]:
        if not ticket_ids:
            return {}

        latest = (
            select(SLACycleModel.ticket_id, func.max(SLACycleModel.cycle_number).label("cycle_number"))
            .where(SLACycleModel.ticket_id.in_(ticket_ids))
            .group_by(SLACycleModel.ticket_id)
            .subquery()
        )
        stmt = select(SLACycleModel).join(
            latest,
            (SLACycleModel.ticket_id == latest.c.ticket_id)
            & (SLACycleModel.cycle_number == latest.c.cycle_number),
        )
        result = await self._session.execute(stmt)
        return {cycle.ticket_id: cycle for cycle in result.scalars().all()}


class SQLAlchemyAlertDedupRepository(ISLAAlertDedupRepository):
    """
    De-duplication markers for escalation alerts.

    The unique (ticket, cycle, alert type) constraint backs the check; the
    escalation job runs with max_instances=1 so check-then-insert is
    enough inside one sweep.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def try_record(self, ticket_id: str, cycle_number: int, alert_type: str) -> bool:
        alert_type = SLAAlertType(alert_type).value
        stmt = select(SLAAlertDedupModel.id).where(
            SLAAlertDedupModel.ticket_id == ticket_id,
            SLAAlertDedupModel.cycle_number == cycle_number,
            SLAAlertDedupModel.alert_type == alert_type,
        )
        existing = (await self._session.execute(stmt)).scalar_one_or_none()
        if existing is not None:
            return False

        self._session.add(SLAAlertDedupModel(
            ticket_id=ticket_id,
            cycle_number=cycle_number,
            alert_type=alert_type,
        ))
        await self._session.flush()
        return True
