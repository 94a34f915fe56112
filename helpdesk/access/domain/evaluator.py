"""
Authorization Evaluator
=======================

Pure decision function over role assignments and override rows.

Rules, first match wins:
1. Global admin (Admin role in any sector) is always allowed.
2. An explicit per-user override for the context's resource decides.
3. Role defaults:
   - management actions need Coordenador/Admin in the target sector;
   - create needs membership in the requester sector;
   - read/comment need membership in the requester or target sector,
     or being the ticket creator;
   - resource view needs membership in the resource's sector;
   - reports need Coordenador/Admin in the helpdesk (target) sector;
   - admin actions have no role default.
4. Deny.
"""

from typing import Optional

from helpdesk.access.domain.entities import (
    MANAGEMENT_ACTIONS,
    AccessContext,
    Action,
    Principal,
)
from helpdesk.config import OverrideEffect
from helpdesk.core import AuthorizationException


class AuthorizationEvaluator:
    """Stateless; safe to share across requests."""

    def can_act(
        self,
        principal: Optional[Principal],
        action: Action,
        context: Optional[AccessContext] = None,
    ) -> bool:
        if principal is None:
            return False
        context = context or AccessContext()

        if principal.is_global_admin:
            return True

        if context.resource_id is not None:
            effect = principal.overrides.get(context.resource_id)
            if effect == OverrideEffect.ALLOW:
                return True
            if effect == OverrideEffect.DENY:
                return False

        return self._role_default(principal, action, context)

    def ensure(
        self,
        principal: Optional[Principal],
        action: Action,
        context: Optional[AccessContext] = None,
    ) -> None:
        """Raise a generic forbidden error; the matching rule is not leaked."""
        if not self.can_act(principal, action, context):
            raise AuthorizationException(action.value)

    @staticmethod
    def _role_default(principal: Principal, action: Action, context: AccessContext) -> bool:
        if action in MANAGEMENT_ACTIONS:
            return principal.is_staff(context.target_sector_id)

        if action == Action.TICKET_CREATE:
            return principal.is_member(context.requester_sector_id)

        if action in (Action.TICKET_READ, Action.TICKET_COMMENT):
            if context.creator_id is not None and context.creator_id == principal.user_id:
                return True
            return (
                principal.is_member(context.requester_sector_id)
                or principal.is_member(context.target_sector_id)
            )

        if action == Action.RESOURCE_VIEW:
            return principal.is_member(context.resource_sector_id)

        if action == Action.REPORT_VIEW:
            return principal.is_staff(context.target_sector_id)

        return False


evaluator = AuthorizationEvaluator()
