"""
Access Dependencies
===================

The intranet gateway authenticates users and forwards the user id in a
header (`settings.auth_header`). These dependencies turn it into a
`Principal`; authorization itself stays in the evaluator.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.access.domain import AccessContext, Action, Principal, evaluator
from helpdesk.access.infrastructure import SQLAlchemyPrincipalRepository
from helpdesk.config import settings
from helpdesk.core import AuthenticationException
from helpdesk.infrastructure.database import get_session


async def get_current_principal(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> Principal:
    """
    Load the calling user.

    Raises:
        AuthenticationException: header missing, or user unknown/inactive
    """
    user_id = (request.headers.get(settings.auth_header) or "").strip()
    if not user_id:
        raise AuthenticationException("Authentication required")

    principal = await SQLAlchemyPrincipalRepository(session).load(user_id)
    if principal is None:
        raise AuthenticationException("Unknown or inactive user")

    request.state.user_id = principal.user_id
    return principal


async def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Principal allowed on /admin routes (global admins only)."""
    evaluator.ensure(principal, Action.ADMIN_MANAGE, AccessContext())
    return principal
