from datetime import datetime, timedelta, timezone

import pytest

from helpdesk.config import CycleState, SLAState, TicketPriority
from helpdesk.core import ValidationException
from helpdesk.sla.domain import SLATargets, cycle_state
from helpdesk.sla.services import escalation_alerts

T = datetime(2024, 3, 5, 13, 0, tzinfo=timezone.utc)  # Tuesday 10:00 local
ALTA = SLATargets(TicketPriority.ALTA, 240, 1440)
URGENTE = SLATargets(TicketPriority.URGENTE, 60, 480)


@pytest.fixture
def cycle(cycle_manager):
    return cycle_manager.open_cycle("t-1", ALTA, T)


def test_open_cycle_projects_due_dates(cycle):
    assert cycle.cycle_number == 1
    assert cycle.priority == "ALTA"
    # 240 business minutes: Tuesday 14:00 local
    assert cycle.first_response_due_at == datetime(2024, 3, 5, 17, 0, tzinfo=timezone.utc)
    # 1440: 480 on Tuesday, 600 on Wednesday, 360 on Thursday
    assert cycle.resolution_due_at == datetime(2024, 3, 7, 17, 0, tzinfo=timezone.utc)
    assert cycle_state(cycle) == CycleState.RUNNING


def test_first_response_is_recorded_once(cycle_manager, cycle):
    assert cycle_manager.record_first_response(cycle, T + timedelta(minutes=30))
    assert not cycle_manager.record_first_response(cycle, T + timedelta(minutes=45))

    assert cycle.first_response_at == T + timedelta(minutes=30)
    assert cycle.first_response_breached is False


def test_late_first_response_is_breached(cycle_manager, cycle):
    cycle_manager.record_first_response(cycle, cycle.first_response_due_at + timedelta(minutes=1))
    assert cycle.first_response_breached is True


def test_pause_and_resume_push_due_dates(cycle_manager, calendar, cycle):
    original_first_due = cycle.first_response_due_at
    original_resolution_due = cycle.resolution_due_at

    paused_at = calendar.add_business_minutes(T, 100)
    resumed_at = calendar.add_business_minutes(paused_at, 500)
    assert cycle_manager.pause(cycle, paused_at)
    assert cycle_state(cycle) == CycleState.PAUSED
    assert not cycle_manager.pause(cycle, paused_at)

    assert cycle_manager.resume(cycle, resumed_at) == 500
    assert cycle.paused_at is None
    assert cycle.paused_total_business_minutes == 500
    assert cycle.first_response_due_at == calendar.add_business_minutes(original_first_due, 500)
    assert cycle.resolution_due_at == calendar.add_business_minutes(original_resolution_due, 500)
    # Thursday 14:00 + 500 -> Friday 12:20 local
    assert cycle.resolution_due_at == datetime(2024, 3, 8, 15, 20, tzinfo=timezone.utc)


def test_resume_without_pause_is_noop(cycle_manager, cycle):
    due = cycle.resolution_due_at
    assert cycle_manager.resume(cycle, T + timedelta(hours=1)) == 0
    assert cycle.resolution_due_at == due


def test_first_response_during_pause_discounts_open_pause(cycle_manager, calendar, cycle):
    cycle_manager.pause(cycle, T + timedelta(minutes=10))
    # Past the original due date, but most of the wait was paused
    answered = cycle.first_response_due_at + timedelta(minutes=30)
    cycle_manager.record_first_response(cycle, answered)
    assert cycle.first_response_breached is False


def test_late_resolution_is_breached_and_idempotent(cycle_manager, cycle):
    late = cycle.resolution_due_at + timedelta(minutes=10)
    assert cycle_manager.resolve(cycle, late)
    assert cycle.resolution_breached is True
    assert cycle_state(cycle) == CycleState.RESOLVED

    assert not cycle_manager.resolve(cycle, late + timedelta(hours=1))
    assert cycle.resolved_at == late


def test_resolving_a_paused_cycle_closes_the_pause(cycle_manager, calendar, cycle):
    cycle_manager.pause(cycle, T + timedelta(minutes=10))
    resolved = calendar.add_business_minutes(T, 70)
    cycle_manager.resolve(cycle, resolved)

    assert cycle.paused_at is None
    assert cycle.paused_total_business_minutes == 60
    assert cycle.resolution_breached is False


def test_breach_flags_never_clear(cycle_manager, cycle):
    cycle_manager.record_first_response(cycle, cycle.first_response_due_at + timedelta(hours=1))
    cycle_manager.override_resolution_due_at(cycle, T + timedelta(days=30), "Aguardando peça", "u-1", T)
    assert cycle.first_response_breached is True

    cycle_manager.reprice(cycle, SLATargets(TicketPriority.BAIXA, 1440, 10080))
    assert cycle.first_response_breached is True


def test_override_pins_resolution_due_date(cycle_manager, cycle):
    pinned = T + timedelta(days=5)
    cycle_manager.override_resolution_due_at(cycle, pinned, "Fornecedor externo", "coord-1", T + timedelta(hours=1))

    assert cycle.resolution_due_at == pinned
    assert cycle.resolution_due_at_manual is True
    assert cycle.resolution_due_at_manual_reason == "Fornecedor externo"
    assert cycle.resolution_due_at_updated_by == "coord-1"
    assert cycle.resolution_due_at_updated_at == T + timedelta(hours=1)
    # Past the computed due date but before the pinned one
    assert cycle_manager.health(cycle, T + timedelta(days=4)).resolution == SLAState.OK


def test_override_of_resolved_cycle_is_rejected(cycle_manager, cycle):
    cycle_manager.resolve(cycle, T + timedelta(hours=1))
    with pytest.raises(ValidationException):
        cycle_manager.override_resolution_due_at(cycle, T + timedelta(days=1), None, "u-1", T + timedelta(hours=2))


def test_manual_due_date_survives_pause(cycle_manager, calendar, cycle):
    pinned = T + timedelta(days=5)
    cycle_manager.override_resolution_due_at(cycle, pinned, None, "u-1", T)
    cycle_manager.pause(cycle, T + timedelta(minutes=10))
    cycle_manager.resume(cycle, calendar.add_business_minutes(T, 200))

    assert cycle.resolution_due_at == pinned


def test_reprice_restarts_from_opened_at(cycle_manager, calendar, cycle):
    assert cycle_manager.reprice(cycle, URGENTE)

    assert cycle.priority == "URGENTE"
    assert cycle.first_response_due_at == calendar.add_business_minutes(T, 60)
    assert cycle.resolution_due_at == calendar.add_business_minutes(T, 480)


def test_reprice_keeps_met_first_response_and_accumulated_pause(cycle_manager, calendar, cycle):
    cycle_manager.record_first_response(cycle, T + timedelta(minutes=5))
    first_due = cycle.first_response_due_at
    cycle_manager.pause(cycle, T + timedelta(minutes=10))
    cycle_manager.resume(cycle, calendar.add_business_minutes(T + timedelta(minutes=10), 30))

    cycle_manager.reprice(cycle, URGENTE)

    assert cycle.first_response_due_at == first_due
    assert cycle.resolution_due_at == calendar.add_business_minutes(T, 480 + 30)


def test_reprice_of_resolved_cycle_is_noop(cycle_manager, cycle):
    cycle_manager.resolve(cycle, T + timedelta(hours=1))
    due = cycle.resolution_due_at
    assert not cycle_manager.reprice(cycle, URGENTE)
    assert cycle.resolution_due_at == due


def test_reopen_carries_pinned_override_for_same_priority(cycle_manager, cycle):
    pinned = T + timedelta(days=10)
    cycle_manager.override_resolution_due_at(cycle, pinned, "Projeto", "u-1", T)
    cycle_manager.resolve(cycle, T + timedelta(hours=2))

    reopened = cycle_manager.open_cycle(
        "t-1", ALTA, T + timedelta(days=1),
        previous_cycle_number=cycle.cycle_number,
        pinned_override=cycle_manager.pinned_override(cycle),
    )

    assert reopened.cycle_number == 2
    assert reopened.resolution_due_at == pinned
    assert reopened.resolution_due_at_manual is True
    assert reopened.resolution_due_at_manual_reason == "Projeto"


def test_reopen_ignores_pinned_override_for_other_priority_or_past_date(cycle_manager, calendar, cycle):
    cycle_manager.override_resolution_due_at(cycle, T + timedelta(days=10), None, "u-1", T)
    override = cycle_manager.pinned_override(cycle)
    later = T + timedelta(days=11)

    other_priority = cycle_manager.open_cycle("t-1", URGENTE, T + timedelta(days=1), 1, override)
    expired = cycle_manager.open_cycle("t-1", ALTA, later, 1, override)

    assert other_priority.resolution_due_at_manual is False
    assert expired.resolution_due_at_manual is False
    assert expired.resolution_due_at == calendar.add_business_minutes(later, 1440)


def test_health_projection(cycle_manager, cycle):
    due = cycle.resolution_due_at
    # Risk window: min(20% of the cycle length, 60 minutes)
    assert cycle_manager.health(cycle, due - timedelta(hours=2)).resolution == SLAState.OK
    assert cycle_manager.health(cycle, due - timedelta(minutes=30)).resolution == SLAState.RISK
    assert cycle_manager.health(cycle, due + timedelta(minutes=1)).resolution == SLAState.BREACHED

    cycle_manager.resolve(cycle, due - timedelta(hours=1))
    health = cycle_manager.health(cycle, due + timedelta(days=1))
    assert health.resolution == SLAState.MET
    assert health.to_dict()["resolution"] == "MET"


def test_health_of_paused_cycle_is_frozen_at_pause(cycle_manager, cycle):
    cycle_manager.pause(cycle, T + timedelta(minutes=10))
    assert cycle_manager.health(cycle, T + timedelta(days=30)).overall == SLAState.OK


def test_overall_is_most_urgent_measurement(cycle_manager, cycle):
    now = cycle.first_response_due_at + timedelta(minutes=1)
    health = cycle_manager.health(cycle, now)
    assert health.first_response == SLAState.BREACHED
    assert health.resolution == SLAState.OK
    assert health.overall == SLAState.BREACHED


def test_escalation_alerts_for_running_cycle(cycle):
    first_breach = escalation_alerts(cycle, "Impressora", cycle.first_response_due_at + timedelta(minutes=1), 240)
    assert [a.type.value for a in first_breach] == ["FIRST_BREACH"]

    near_resolution = escalation_alerts(cycle, "Impressora", cycle.resolution_due_at - timedelta(minutes=10), 240)
    assert [a.type.value for a in near_resolution] == ["FIRST_BREACH", "RES_RISK"]


def test_escalation_alerts_skip_paused_and_resolved(cycle_manager, cycle):
    late = cycle.resolution_due_at + timedelta(days=1)
    cycle_manager.pause(cycle, T + timedelta(minutes=5))
    assert escalation_alerts(cycle, "x", late, 240) == []

    cycle_manager.resolve(cycle, T + timedelta(minutes=6))
    assert escalation_alerts(cycle, "x", late, 240) == []
