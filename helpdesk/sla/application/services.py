"""
SLA Application Services
=========================

Application services orchestrate SLA policy administration and the
read-side view of cycles.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from helpdesk.config import TicketPriority
from helpdesk.core import ConfigurationException, ResourceNotFoundException
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.application.dto import (
    SLACycleResponse,
    SLAHealthResponse,
    SLAPolicyCreateRequest,
    SLAPolicyResponse,
    SLAPolicyUpdateRequest,
)
from helpdesk.sla.domain import (
    CycleRecord,
    SLACycle,
    SLACycleManager,
    SLAPolicy,
    SLATargets,
    cycle_state,
)

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ISLAPolicyRepository(ABC):
    """Interface for SLA policy data access."""

    @abstractmethod
    async def list(self, active_only: bool = False) -> List[SLAPolicy]:
        """List policies ordered by priority then newest first."""

    @abstractmethod
    async def get(self, policy_id: str) -> Optional[SLAPolicy]:
        """Get a policy by id."""

    @abstractmethod
    async def add(self, policy: SLAPolicy) -> SLAPolicy:
        """Persist a new policy."""

    @abstractmethod
    async def save(self, policy: SLAPolicy) -> SLAPolicy:
        """Persist changes to an existing policy."""

    @abstractmethod
    async def active_for_priority(self, priority: TicketPriority) -> Optional[SLAPolicy]:
        """Most recently created active policy for `priority`."""


class ISLACycleRepository(ABC):
    """Interface for SLA cycle data access."""

    @abstractmethod
    async def current(self, ticket_id: str) -> Optional[CycleRecord]:
        """Highest-numbered cycle of a ticket."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[CycleRecord]:
        """All cycles of a ticket, oldest first."""

    @abstractmethod
    async def add(self, cycle: SLACycle) -> CycleRecord:
        """Persist a newly opened cycle."""

    @abstractmethod
    async def latest_for_tickets(self, ticket_ids: List[str]) -> Dict[str, CycleRecord]:
        """Highest-numbered cycle per ticket id."""


class ISLAAlertDedupRepository(ABC):
    """Interface for escalation de-duplication."""

    @abstractmethod
    async def try_record(self, ticket_id: str, cycle_number: int, alert_type: str) -> bool:
        """Record an alert; False when it was already raised for this cycle."""


# ========== Application Services ==========

class SLAPolicyService:
    """
    Administration and lookup of SLA policies.

    Lookup never falls back to built-in minutes: a priority without an
    active policy is a configuration gap and blocks the cycle from opening.
    """

    def __init__(self, policy_repository: ISLAPolicyRepository):
        self._policy_repo = policy_repository

    async def list_policies(self, active_only: bool = False) -> List[SLAPolicyResponse]:
        policies = await self._policy_repo.list(active_only=active_only)
        return [SLAPolicyResponse.model_validate(p) for p in policies]

    async def create_policy(self, request: SLAPolicyCreateRequest) -> SLAPolicyResponse:
        policy = SLAPolicy(
            id=None,
            name=request.name,
            priority=TicketPriority(request.priority),
            first_response_minutes=request.first_response_minutes,
            resolution_minutes=request.resolution_minutes,
            is_active=request.is_active,
        )
        policy = await self._policy_repo.add(policy)
        logger.info(
            "SLA policy created",
            extra={"policy_id": policy.id, "priority": policy.priority},
        )
        return SLAPolicyResponse.model_validate(policy)

    async def update_policy(self, policy_id: str, request: SLAPolicyUpdateRequest) -> SLAPolicyResponse:
        policy = await self._policy_repo.get(policy_id)
        if policy is None:
            raise ResourceNotFoundException("SLA policy", policy_id)

        for field, value in request.model_dump(exclude_unset=True).items():
            setattr(policy, field, value)

        policy = await self._policy_repo.save(policy)
        logger.info("SLA policy updated", extra={"policy_id": policy_id})
        return SLAPolicyResponse.model_validate(policy)

    async def resolve_targets(self, priority: TicketPriority) -> SLATargets:
        """
        Targets for `priority`.

        Raises:
            ConfigurationException: no active policy exists for the priority
        """
        policy = await self._policy_repo.active_for_priority(priority)
        if policy is None:
            raise ConfigurationException(
                f"No active SLA policy for priority {TicketPriority(priority).value}",
                details={"priority": TicketPriority(priority).value},
            )
        return policy.targets


def cycle_to_response(
    cycle: CycleRecord,
    manager: Optional[SLACycleManager] = None,
    now: Optional[datetime] = None,
) -> SLACycleResponse:
    """Serialize a cycle, with its health projection when a manager is given."""
    health = None
    if manager is not None:
        projection = manager.health(cycle, now or datetime.now(timezone.utc))
        health = SLAHealthResponse(**projection.to_dict())

    return SLACycleResponse(
        ticket_id=cycle.ticket_id,
        cycle_number=cycle.cycle_number,
        priority=cycle.priority,
        state=cycle_state(cycle).value,
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
        paused_total_business_minutes=cycle.paused_total_business_minutes or 0,
        health=health,
    )
