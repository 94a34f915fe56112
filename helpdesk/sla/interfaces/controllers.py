"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA policy administration.

Controllers are thin - they delegate to application services.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.access.domain import Principal
from helpdesk.access.interfaces import require_admin
from helpdesk.infrastructure.database import get_session
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.application import (
    SLAPolicyCreateRequest,
    SLAPolicyResponse,
    SLAPolicyService,
    SLAPolicyUpdateRequest,
)
from helpdesk.sla.infrastructure import SQLAlchemySLAPolicyRepository

logger = get_logger(__name__)
router = APIRouter(prefix="/admin/sla-policies", tags=["SLA Policies"])


POLICY_EXAMPLE = {
    "id": "0b6f3a52-1d8e-4f7a-9c20-6e5d4b3a2f19",
    "name": "Urgente",
    "priority": "URGENTE",
    "firstResponseMinutes": 60,
    "resolutionMinutes": 480,
    "isActive": True,
    "createdAt": "2024-01-15T10:00:00Z",
}


# ========== Dependencies ==========

async def get_policy_service(session: AsyncSession = Depends(get_session)) -> SLAPolicyService:
    """Get SLA policy service instance."""
    return SLAPolicyService(SQLAlchemySLAPolicyRepository(session))


# ========== Route Handlers ==========

@router.get(
    "",
    response_model=List[SLAPolicyResponse],
    summary="List SLA policies",
    responses={200: {"content": {"application/json": {"example": [POLICY_EXAMPLE]}}}},
)
async def list_policies(
    active_only: bool = Query(False),
    admin: Principal = Depends(require_admin),
    service: SLAPolicyService = Depends(get_policy_service),
):
    return await service.list_policies(active_only=active_only)


@router.post(
    "",
    response_model=SLAPolicyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an SLA policy",
    description="""
    Minutes are business minutes on the configured calendar.

    When several active policies exist for one priority, the most recently
    created one is used for new cycles. Existing cycles keep their due dates.
    """,
)
async def create_policy(
    request: SLAPolicyCreateRequest,
    admin: Principal = Depends(require_admin),
    service: SLAPolicyService = Depends(get_policy_service),
):
    policy = await service.create_policy(request)
    logger.info("SLA policy created by admin", extra={"policy_id": policy.id, "user_id": admin.user_id})
    return policy


@router.patch(
    "/{policy_id}",
    response_model=SLAPolicyResponse,
    summary="Update an SLA policy",
    responses={404: {"description": "Policy not found"}},
)
async def update_policy(
    policy_id: str,
    request: SLAPolicyUpdateRequest,
    admin: Principal = Depends(require_admin),
    service: SLAPolicyService = Depends(get_policy_service),
):
    return await service.update_policy(policy_id, request)


# Export router
sla_router = router
