from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from helpdesk.config import CycleState, TicketEventType, TicketPriority, TicketStatus, WebhookEventType
from helpdesk.core import InvalidTransitionException
from helpdesk.sla.domain import SLATargets, cycle_state
from helpdesk.tickets.domain import state_machine

T = datetime(2024, 3, 5, 13, 0, tzinfo=timezone.utc)
TERMINAL = [TicketStatus.RESOLVIDO, TicketStatus.CANCELADO]
OPEN = [s for s in TicketStatus if s not in TERMINAL]


def test_same_status_is_noop():
    assert state_machine.plan("ABERTO", "ABERTO") is None


@pytest.mark.parametrize("source", TERMINAL)
@pytest.mark.parametrize("target", TERMINAL)
def test_terminal_to_terminal_is_rejected(source, target):
    if source == target:
        pytest.skip("same status")
    with pytest.raises(InvalidTransitionException):
        state_machine.plan(source.value, target.value)


@pytest.mark.parametrize("source", OPEN)
@pytest.mark.parametrize("target", OPEN)
def test_open_statuses_move_freely(source, target):
    plan = state_machine.plan(source.value, target.value)
    if source == target:
        assert plan is None
    else:
        assert not plan.resolve and not plan.reopen
        assert plan.events == (TicketEventType.STATUS_CHANGED,)


def test_leaving_aberto_records_first_response():
    plan = state_machine.plan("ABERTO", "EM_ANDAMENTO")
    assert plan.record_first_response
    assert plan.webhooks == (WebhookEventType.TICKET_STATUS_CHANGED,)


def test_resolving_emits_resolved_event_and_webhook():
    plan = state_machine.plan("EM_ANDAMENTO", "RESOLVIDO")
    assert plan.resolve
    assert plan.events == (TicketEventType.STATUS_CHANGED, TicketEventType.RESOLVED)
    assert plan.webhooks == (WebhookEventType.TICKET_STATUS_CHANGED, WebhookEventType.TICKET_RESOLVED)


def test_reopening_emits_reopened_event():
    plan = state_machine.plan("RESOLVIDO", "EM_ANDAMENTO")
    assert plan.reopen and not plan.resolve
    assert TicketEventType.REOPENED in plan.events


@pytest.mark.parametrize("target, webhook", [
    (TicketStatus.EM_ANDAMENTO, WebhookEventType.TICKET_APPROVED),
    (TicketStatus.CANCELADO, WebhookEventType.TICKET_REJECTED),
])
def test_leaving_approval_emits_decision_webhook(target, webhook):
    plan = state_machine.plan("AGUARDANDO_APROVACAO", target.value)
    assert webhook in plan.webhooks


def test_apply_sets_closed_at_only_for_terminal_targets():
    ticket = SimpleNamespace(status="EM_ANDAMENTO", closed_at=None, updated_at=T)

    state_machine.apply(ticket, state_machine.plan("EM_ANDAMENTO", "CANCELADO"), T + timedelta(hours=1))
    assert ticket.status == "CANCELADO"
    assert ticket.closed_at == T + timedelta(hours=1)

    state_machine.apply(ticket, state_machine.plan("CANCELADO", "ABERTO"), T + timedelta(hours=2))
    assert ticket.status == "ABERTO"
    assert ticket.closed_at is None
    assert ticket.updated_at == T + timedelta(hours=2)


def test_waiting_on_user_pauses_and_resumes_cycle(cycle_manager, calendar):
    cycle = cycle_manager.open_cycle("t-1", SLATargets(TicketPriority.MEDIA, 480, 4320), T)

    state_machine.apply_to_cycle(state_machine.plan("ABERTO", "AGUARDANDO_USUARIO"), cycle, cycle_manager, T)
    assert cycle.first_response_at == T
    assert cycle_state(cycle) == CycleState.PAUSED

    resumed_at = calendar.add_business_minutes(T, 120)
    state_machine.apply_to_cycle(
        state_machine.plan("AGUARDANDO_USUARIO", "EM_ANDAMENTO"), cycle, cycle_manager, resumed_at
    )
    assert cycle_state(cycle) == CycleState.RUNNING
    assert cycle.paused_total_business_minutes == 120


def test_reopen_straight_into_waiting_pauses_new_cycle(cycle_manager):
    plan = state_machine.plan("RESOLVIDO", "AGUARDANDO_USUARIO")
    fresh = cycle_manager.open_cycle("t-1", SLATargets(TicketPriority.MEDIA, 480, 4320), T, previous_cycle_number=1)

    state_machine.apply_to_cycle(plan, fresh, cycle_manager, T)

    assert fresh.cycle_number == 2
    assert fresh.first_response_at is None
    assert cycle_state(fresh) == CycleState.PAUSED
