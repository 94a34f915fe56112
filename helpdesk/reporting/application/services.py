"""
Reporting Services
==================

Dashboard aggregates and ticket exports.

SLA state is the resolution projection of the cycle manager (risk window
min(20% of the cycle length, 60 minutes) with the default calendar
config). Tickets without a cycle count as OK.
"""

import csv
import io
from abc import ABC, abstractmethod
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from helpdesk.config import ACTIVE_STATUSES, SLAState, TicketStatus
from helpdesk.reporting.application.dto import (
    BacklogItem,
    DashboardRange,
    DashboardResponse,
    DashboardSummary,
    QueueItem,
    ThroughputPoint,
    TicketExportRow,
    WipItem,
)
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.domain import CycleRecord, SLACycleManager

logger = get_logger(__name__)

# Statuses that count as work in progress for an assignee
WIP_STATUSES = {TicketStatus.ABERTO.value, TicketStatus.EM_ANDAMENTO.value}


class IReportingRepository(ABC):
    """Read-only queries behind the dashboard and exports."""

    @abstractmethod
    async def tickets(
        self,
        statuses: Optional[Iterable[TicketStatus]] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Any]:
        """Tickets, oldest first."""

    @abstractmethod
    async def closed_at_since(self, status: TicketStatus, since: datetime) -> List[datetime]:
        """`closed_at` of tickets in `status` closed at or after `since`."""

    @abstractmethod
    async def created_at_since(self, since: datetime) -> List[datetime]:
        """`created_at` of tickets opened at or after `since`."""

    @abstractmethod
    async def latest_cycles(self, ticket_ids: List[str]) -> Dict[str, CycleRecord]:
        """Most recent cycle per ticket."""

    @abstractmethod
    async def assignments(self, ticket_ids: List[str]) -> List[Tuple[str, str]]:
        """(ticket_id, user_id) pairs in assignment order."""

    @abstractmethod
    async def categories(self) -> Dict[str, Tuple[str, str]]:
        """category id -> (name, branch)."""

    @abstractmethod
    async def user_names(self) -> Dict[str, str]:
        """user id -> display name."""

    @abstractmethod
    async def sector_names(self) -> Dict[str, str]:
        """sector id -> name."""


def report_sla_state(manager: SLACycleManager, cycle: Optional[CycleRecord], now: datetime) -> SLAState:
    """Traffic light for one ticket: OK, RISK or BREACHED."""
    if cycle is None:
        return SLAState.OK
    state = manager.health(cycle, now).resolution
    return SLAState.OK if state == SLAState.MET else state


def throughput_series(
    days: int,
    now: datetime,
    opened: Iterable[datetime],
    resolved: Iterable[datetime],
) -> List[ThroughputPoint]:
    """Per-UTC-day counts for the last `days` days, today included."""
    today = now.astimezone(timezone.utc).date()
    series = {today - timedelta(days=offset): ThroughputPoint(date=today - timedelta(days=offset))
              for offset in range(days - 1, -1, -1)}

    for moment in opened:
        point = series.get(moment.astimezone(timezone.utc).date())
        if point is not None:
            point.opened += 1
    for moment in resolved:
        point = series.get(moment.astimezone(timezone.utc).date())
        if point is not None:
            point.resolved += 1

    return [series[day] for day in sorted(series)]


def render_csv(rows: List[TicketExportRow]) -> str:
    """CSV with a camelCase header; list cells are joined with '; '."""
    fields = [field.alias or name for name, field in TicketExportRow.model_fields.items()]
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=fields)
    writer.writeheader()
    for row in rows:
        record = row.model_dump(mode="json", by_alias=True)
        for key, value in record.items():
            if isinstance(value, list):
                record[key] = "; ".join(str(v) for v in value)
            elif value is None:
                record[key] = ""
        writer.writerow(record)
    return buffer.getvalue()


class ReportingService:
    """Builds dashboard and export payloads from the reporting repository."""

    def __init__(self, repository: IReportingRepository, cycle_manager: SLACycleManager):
        self._repo = repository
        self._manager = cycle_manager

    async def dashboard(self, range_: DashboardRange, now: Optional[datetime] = None) -> DashboardResponse:
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(days=range_.days)

        active = await self._repo.tickets(statuses=ACTIVE_STATUSES)
        ticket_ids = [t.id for t in active]
        cycles = await self._repo.latest_cycles(ticket_ids)
        assignments = await self._repo.assignments(ticket_ids)
        categories = await self._repo.categories()
        names = await self._repo.user_names()

        summary = DashboardSummary()
        status_counts = Counter(t.status for t in active)
        summary.open = status_counts[TicketStatus.ABERTO.value]
        summary.in_progress = status_counts[TicketStatus.EM_ANDAMENTO.value]
        summary.waiting_user = status_counts[TicketStatus.AGUARDANDO_USUARIO.value]
        summary.waiting_approval = status_counts[TicketStatus.AGUARDANDO_APROVACAO.value]

        resolved_at = await self._repo.closed_at_since(TicketStatus.RESOLVIDO, since)
        summary.resolved = len(resolved_at)
        summary.cancelled = len(await self._repo.closed_at_since(TicketStatus.CANCELADO, since))

        assignees_by_ticket: Dict[str, List[str]] = defaultdict(list)
        for ticket_id, user_id in assignments:
            assignees_by_ticket[ticket_id].append(user_id)

        queue = []
        for ticket in active:
            cycle = cycles.get(ticket.id)
            state = report_sla_state(self._manager, cycle, now)
            if state == SLAState.OK:
                summary.sla_ok += 1
            elif state == SLAState.RISK:
                summary.sla_risk += 1
            else:
                summary.sla_breached += 1

            category_name, category_branch = categories.get(ticket.category_id, ("", ""))
            queue.append(QueueItem(
                ticket_id=ticket.id,
                number=ticket.number,
                title=ticket.title,
                status=ticket.status,
                priority=ticket.priority,
                category_name=category_name,
                category_branch=category_branch,
                creator_name=names.get(ticket.created_by, ""),
                created_at=ticket.created_at,
                assignees=[names.get(u, u) for u in assignees_by_ticket.get(ticket.id, [])],
                sla_state=state,
                resolution_due_at=cycle.resolution_due_at if cycle is not None else None,
            ))

        status_by_ticket = {t.id: t.status for t in active}
        wip = Counter(
            user_id for ticket_id, user_id in assignments
            if status_by_ticket.get(ticket_id) in WIP_STATUSES
        )
        wip_by_assignee = sorted(
            (WipItem(user_id=u, user_name=names.get(u, u), count=c) for u, c in wip.items()),
            key=lambda item: (-item.count, item.user_name),
        )

        backlog = Counter(t.category_id for t in active)
        backlog_by_category = []
        for category_id, count in backlog.items():
            name, branch = categories.get(category_id, ("Sem categoria", ""))
            backlog_by_category.append(BacklogItem(category_name=name, category_branch=branch, count=count))
        backlog_by_category.sort(key=lambda item: (-item.count, item.category_name))

        throughput = throughput_series(
            range_.days,
            now,
            await self._repo.created_at_since(since),
            resolved_at,
        )

        logger.debug("Dashboard built", extra={"range": range_.value, "active_tickets": len(active)})
        return DashboardResponse(
            range=range_,
            generated_at=now,
            summary=summary,
            queue=queue,
            wip_by_assignee=wip_by_assignee,
            throughput=throughput,
            backlog_by_category=backlog_by_category,
        )

    async def export_tickets(
        self,
        status: Optional[TicketStatus] = None,
        created_from: Optional[date] = None,
        created_to: Optional[date] = None,
        limit: int = 5000,
        now: Optional[datetime] = None,
    ) -> List[TicketExportRow]:
        """Tickets created in [created_from, created_to] (whole UTC days)."""
        now = now or datetime.now(timezone.utc)
        start = datetime.combine(created_from, datetime.min.time(), tzinfo=timezone.utc) if created_from else None
        end = (
            datetime.combine(created_to + timedelta(days=1), datetime.min.time(), tzinfo=timezone.utc)
            if created_to else None
        )

        tickets = await self._repo.tickets(
            statuses=[status] if status is not None else None,
            created_from=start,
            created_to=end,
            limit=limit,
        )
        ticket_ids = [t.id for t in tickets]
        cycles = await self._repo.latest_cycles(ticket_ids)
        categories = await self._repo.categories()
        names = await self._repo.user_names()
        sectors = await self._repo.sector_names()

        assignees_by_ticket: Dict[str, List[str]] = defaultdict(list)
        for ticket_id, user_id in await self._repo.assignments(ticket_ids):
            assignees_by_ticket[ticket_id].append(names.get(user_id, user_id))

        rows = []
        for ticket in tickets:
            cycle = cycles.get(ticket.id)
            category_name, category_branch = categories.get(ticket.category_id, ("", ""))
            is_open = ticket.status not in (TicketStatus.RESOLVIDO.value, TicketStatus.CANCELADO.value)
            rows.append(TicketExportRow(
                id=ticket.id,
                number=ticket.number,
                title=ticket.title,
                status=ticket.status,
                priority=ticket.priority,
                category_name=category_name,
                category_branch=category_branch,
                requester_sector=sectors.get(ticket.requester_sector_id, ticket.requester_sector_id),
                target_sector=sectors.get(ticket.target_sector_id, ticket.target_sector_id),
                created_by=names.get(ticket.created_by, ticket.created_by),
                assignees=assignees_by_ticket.get(ticket.id, []),
                tags=list(ticket.tags or []),
                created_at=ticket.created_at,
                updated_at=ticket.updated_at,
                closed_at=ticket.closed_at,
                first_response_at=cycle.first_response_at if cycle is not None else None,
                resolution_due_at=cycle.resolution_due_at if cycle is not None else None,
                sla_state=report_sla_state(self._manager, cycle, now) if is_open else None,
            ))

        logger.info("Tickets exported", extra={"rows": len(rows), "status": status.value if status else None})
        return rows
