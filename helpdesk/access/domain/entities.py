"""
Access Domain Entities
======================

The authenticated principal as seen by the helpdesk core, plus the
inputs the authorization evaluator reasons about.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from helpdesk.config import OverrideEffect, RoleName


class Action(str, Enum):
    """Actions the evaluator can be asked about."""
    TICKET_CREATE = "ticket:create"
    TICKET_READ = "ticket:read"
    TICKET_COMMENT = "ticket:comment"
    TICKET_COMMENT_INTERNAL = "ticket:comment_internal"
    TICKET_MANAGE = "ticket:manage"
    SLA_OVERRIDE = "sla:override"
    RESOURCE_VIEW = "resource:view"
    REPORT_VIEW = "report:view"
    ADMIN_MANAGE = "admin:manage"


MANAGEMENT_ACTIONS = frozenset({
    Action.TICKET_MANAGE,
    Action.SLA_OVERRIDE,
    Action.TICKET_COMMENT_INTERNAL,
})

STAFF_ROLES = frozenset({RoleName.ADMIN, RoleName.COORDINATOR})


@dataclass(frozen=True)
class RoleAssignment:
    """A (sector, role) pair held by a user."""
    sector_id: str
    role: RoleName
    sector_name: Optional[str] = None


@dataclass(frozen=True)
class Principal:
    """
    Authenticated user with derived role memberships.

    Built from the identity subsystem; the core only reads it.
    """
    user_id: str
    email: str = ""
    name: str = ""
    roles: Tuple[RoleAssignment, ...] = ()
    # resource_id -> effect
    overrides: Dict[str, OverrideEffect] = field(default_factory=dict, hash=False, compare=False)

    @property
    def is_global_admin(self) -> bool:
        return any(r.role == RoleName.ADMIN for r in self.roles)

    @property
    def sector_ids(self) -> FrozenSet[str]:
        return frozenset(r.sector_id for r in self.roles)

    def effective_role(self, sector_id: Optional[str]) -> Optional[RoleName]:
        """
        Highest-privilege role held in `sector_id`.

        A user may carry several rows for the same sector; Admin beats
        Coordenador beats Usuario regardless of row order.
        """
        if sector_id is None:
            return None
        found = [r.role for r in self.roles if r.sector_id == sector_id]
        if not found:
            return None
        return max(found, key=lambda role: role.rank)

    def is_member(self, sector_id: Optional[str]) -> bool:
        return self.effective_role(sector_id) is not None

    def is_staff(self, sector_id: Optional[str]) -> bool:
        return self.effective_role(sector_id) in STAFF_ROLES


@dataclass(frozen=True)
class AccessContext:
    """
    What an action targets.

    Ticket actions fill the sector fields (and creator); resource actions
    fill `resource_id` and `resource_sector_id`.
    """
    requester_sector_id: Optional[str] = None
    target_sector_id: Optional[str] = None
    creator_id: Optional[str] = None
    resource_id: Optional[str] = None
    resource_sector_id: Optional[str] = None
