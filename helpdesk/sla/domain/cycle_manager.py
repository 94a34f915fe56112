"""
SLA Cycle Manager
=================

Owns the lifecycle of SLA cycles:

    RUNNING -> (PAUSED <-> RUNNING)* -> RESOLVED

Operations mutate a `CycleRecord` in place and are idempotent where the
same ticket event can legitimately be replayed (double resolve, double
pause). Breach flags only ever go from False to True.
"""

from datetime import datetime, timedelta
from typing import Optional

from helpdesk.config import CycleState, SLAState, TicketPriority
from helpdesk.core import ValidationException
from helpdesk.sla.domain.calendar import BusinessCalendar
from helpdesk.sla.domain.entities import CycleRecord, SLACycle, SLAHealth, cycle_state
from helpdesk.sla.domain.value_objects import DashboardConfig, ManualDueDate, SLATargets


class SLACycleManager:
    """Pure cycle arithmetic on top of a business calendar."""

    def __init__(self, calendar: BusinessCalendar, dashboard: Optional[DashboardConfig] = None):
        self.calendar = calendar
        self.dashboard = dashboard or DashboardConfig()

    def open_cycle(
        self,
        ticket_id: str,
        targets: SLATargets,
        opened_at: datetime,
        previous_cycle_number: int = 0,
        pinned_override: Optional[ManualDueDate] = None,
    ) -> SLACycle:
        """
        Create cycle N = previous + 1 with projected due dates.

        A pinned manual due date replaces the computed resolution due date
        only when it was set for the same priority and still lies ahead.
        """
        cycle = SLACycle(
            ticket_id=ticket_id,
            cycle_number=previous_cycle_number + 1,
            priority=targets.priority.value,
            opened_at=opened_at,
            first_response_due_at=self.calendar.add_business_minutes(opened_at, targets.first_response_minutes),
            resolution_due_at=self.calendar.add_business_minutes(opened_at, targets.resolution_minutes),
        )

        if (
            pinned_override is not None
            and pinned_override.priority == targets.priority
            and pinned_override.due_at > opened_at
        ):
            cycle.resolution_due_at = pinned_override.due_at
            cycle.resolution_due_at_manual = True
            cycle.resolution_due_at_manual_reason = pinned_override.reason
            cycle.resolution_due_at_updated_by = pinned_override.updated_by
            cycle.resolution_due_at_updated_at = pinned_override.updated_at

        return cycle

    def record_first_response(self, cycle: CycleRecord, at: datetime) -> bool:
        """Set the first response once. Returns False when already recorded."""
        if cycle.first_response_at is not None or cycle.resolved_at is not None:
            return False

        due = cycle.first_response_due_at
        if cycle.paused_at is not None:
            # Time spent in the still-open pause does not count
            pending = self.calendar.business_minutes_between(cycle.paused_at, at)
            if pending:
                due = self.calendar.add_business_minutes(due, pending)

        cycle.first_response_at = at
        if at > due:
            cycle.first_response_breached = True
        return True

    def pause(self, cycle: CycleRecord, at: datetime) -> bool:
        if cycle_state(cycle) != CycleState.RUNNING:
            return False
        cycle.paused_at = at
        return True

    def resume(self, cycle: CycleRecord, at: datetime) -> int:
        """
        Close the open pause and push due dates out by its business length.

        Returns the business minutes added (0 when nothing was paused).
        A manual resolution due date is left where it was pinned.
        """
        if cycle_state(cycle) != CycleState.PAUSED:
            return 0

        elapsed = self.calendar.business_minutes_between(cycle.paused_at, at)
        cycle.paused_total_business_minutes = (cycle.paused_total_business_minutes or 0) + elapsed
        if elapsed:
            if cycle.first_response_at is None:
                cycle.first_response_due_at = self.calendar.add_business_minutes(cycle.first_response_due_at, elapsed)
            if not cycle.resolution_due_at_manual:
                cycle.resolution_due_at = self.calendar.add_business_minutes(cycle.resolution_due_at, elapsed)
        cycle.paused_at = None
        return elapsed

    def resolve(self, cycle: CycleRecord, at: datetime) -> bool:
        """Close the cycle once. Returns False when it was already resolved."""
        if cycle.resolved_at is not None:
            return False
        if cycle.paused_at is not None:
            self.resume(cycle, at)

        cycle.resolved_at = at
        if at > cycle.resolution_due_at:
            cycle.resolution_breached = True
        return True

    def override_resolution_due_at(
        self,
        cycle: CycleRecord,
        new_due_at: datetime,
        reason: Optional[str],
        acting_user_id: str,
        at: datetime,
    ) -> None:
        """Pin the resolution due date. Breach flags already set stay set."""
        if cycle.resolved_at is not None:
            raise ValidationException(
                "Cannot override the due date of a resolved SLA cycle",
                {"resolution_due_at": "cycle already resolved"},
            )
        cycle.resolution_due_at = new_due_at
        cycle.resolution_due_at_manual = True
        cycle.resolution_due_at_manual_reason = reason
        cycle.resolution_due_at_updated_by = acting_user_id
        cycle.resolution_due_at_updated_at = at

    def reprice(self, cycle: CycleRecord, targets: SLATargets) -> bool:
        """
        Recompute due dates of an open cycle after a priority change.

        Projection restarts from `opened_at` plus the pause already
        accumulated. Met first responses and manual resolution dates are
        kept.
        """
        if cycle.resolved_at is not None:
            return False

        paused = cycle.paused_total_business_minutes or 0
        if cycle.first_response_at is None:
            cycle.first_response_due_at = self.calendar.add_business_minutes(
                cycle.opened_at, targets.first_response_minutes + paused
            )
        if not cycle.resolution_due_at_manual:
            cycle.resolution_due_at = self.calendar.add_business_minutes(
                cycle.opened_at, targets.resolution_minutes + paused
            )
        cycle.priority = targets.priority.value
        return True

    def pinned_override(self, cycle: CycleRecord) -> Optional[ManualDueDate]:
        """Manual due date of `cycle`, as carried into the next one."""
        if not cycle.resolution_due_at_manual:
            return None
        return ManualDueDate(
            priority=TicketPriority(cycle.priority),
            due_at=cycle.resolution_due_at,
            reason=cycle.resolution_due_at_manual_reason,
            updated_by=cycle.resolution_due_at_updated_by,
            updated_at=cycle.resolution_due_at_updated_at,
        )

    # ------------------------------------------------------------------
    # Read-side projection
    # ------------------------------------------------------------------

    def health(self, cycle: CycleRecord, now: datetime, risk_minutes: Optional[float] = None) -> SLAHealth:
        """
        Project the cycle at `now`.

        Paused cycles are evaluated as of the moment they were paused.
        Without `risk_minutes` the risk window is
        min(ratio * cycle length, cap), computed per measurement.
        """
        reference = cycle.paused_at or now
        return SLAHealth(
            first_response=self._measure(
                cycle.opened_at,
                cycle.first_response_due_at,
                cycle.first_response_at,
                cycle.first_response_breached,
                reference,
                risk_minutes,
            ),
            resolution=self._measure(
                cycle.opened_at,
                cycle.resolution_due_at,
                cycle.resolved_at,
                cycle.resolution_breached,
                reference,
                risk_minutes,
            ),
        )

    def _measure(
        self,
        opened_at: datetime,
        due_at: datetime,
        met_at: Optional[datetime],
        breached: bool,
        reference: datetime,
        risk_minutes: Optional[float],
    ) -> SLAState:
        if met_at is not None:
            return SLAState.BREACHED if breached else SLAState.MET
        if breached or reference > due_at:
            return SLAState.BREACHED

        if risk_minutes is None:
            length = (due_at - opened_at).total_seconds() / 60
            risk_minutes = min(length * self.dashboard.risk_ratio, self.dashboard.risk_cap_minutes)
        if due_at - reference <= timedelta(minutes=risk_minutes):
            return SLAState.RISK
        return SLAState.OK
