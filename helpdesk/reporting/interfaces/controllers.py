"""
Reporting Controllers (API Routes)
==================================

Dashboard and ticket exports for helpdesk staff.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.access.domain import AccessContext, Action, Principal, evaluator
from helpdesk.access.infrastructure import SQLAlchemyPrincipalRepository
from helpdesk.access.interfaces import get_current_principal
from helpdesk.config import TicketStatus, settings
from helpdesk.infrastructure.database import get_session
from helpdesk.reporting.application import (
    DashboardRange,
    DashboardResponse,
    ReportingService,
    TicketExportRow,
    render_csv,
)
from helpdesk.reporting.infrastructure import SQLAlchemyReportingRepository
from helpdesk.sla.infrastructure.external import calendar_manager

router = APIRouter(prefix="/reports", tags=["Reports"])


# ========== Dependencies ==========

async def require_report_viewer(
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
) -> Principal:
    """Staff of the helpdesk sector, or a global admin."""
    sector = await SQLAlchemyPrincipalRepository(session).get_sector_by_name(settings.tickets_target_sector_name)
    context = AccessContext(target_sector_id=sector.id if sector is not None else None)
    evaluator.ensure(principal, Action.REPORT_VIEW, context)
    return principal


async def get_reporting_service(session: AsyncSession = Depends(get_session)) -> ReportingService:
    return ReportingService(SQLAlchemyReportingRepository(session), calendar_manager.cycle_manager())


# ========== Route Handlers ==========

@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Helpdesk dashboard",
    description="""
    Counts by status, SLA traffic light, the active queue, work in progress
    per assignee, daily opened/resolved series and backlog per category.

    `range` (7d or 30d) bounds the resolved/cancelled counts and the
    throughput series; the queue always shows every active ticket.
    """,
)
async def dashboard(
    range_: DashboardRange = Query(DashboardRange.LAST_7_DAYS, alias="range"),
    viewer: Principal = Depends(require_report_viewer),
    service: ReportingService = Depends(get_reporting_service),
):
    return await service.dashboard(range_)


@router.get("/tickets.json", response_model=List[TicketExportRow], summary="Export tickets as JSON")
async def export_tickets_json(
    status: Optional[TicketStatus] = Query(None),
    created_from: Optional[date] = Query(None),
    created_to: Optional[date] = Query(None),
    viewer: Principal = Depends(require_report_viewer),
    service: ReportingService = Depends(get_reporting_service),
):
    return await service.export_tickets(status=status, created_from=created_from, created_to=created_to)


@router.get(
    "/tickets.csv",
    summary="Export tickets as CSV",
    response_class=Response,
    responses={200: {"content": {"text/csv": {}}}},
)
async def export_tickets_csv(
    status: Optional[TicketStatus] = Query(None),
    created_from: Optional[date] = Query(None),
    created_to: Optional[date] = Query(None),
    viewer: Principal = Depends(require_report_viewer),
    service: ReportingService = Depends(get_reporting_service),
):
    rows = await service.export_tickets(status=status, created_from=created_from, created_to=created_to)
    return Response(
        content=render_csv(rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="tickets.csv"'},
    )


# Export router
reports_router = router
