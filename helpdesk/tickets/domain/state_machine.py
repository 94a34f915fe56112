"""
Ticket State Machine
====================

Status transitions and the side effects they imply.

    non-terminal -> non-terminal     free
    non-terminal -> RESOLVIDO/CANCELADO   resolve the SLA cycle, set closed_at
    terminal     -> non-terminal     reopen: new SLA cycle, clear closed_at
    terminal     -> terminal         rejected
    same status                      no-op

Entering AGUARDANDO_USUARIO pauses the cycle and leaving it resumes.
Leaving ABERTO records the first response.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from helpdesk.config import TicketEventType, TicketStatus, WebhookEventType
from helpdesk.core import InvalidTransitionException
from helpdesk.sla.domain import CycleRecord, SLACycleManager
from helpdesk.tickets.domain.entities import TicketRecord

STATUS_LABELS = {
    TicketStatus.ABERTO: "Aberto",
    TicketStatus.EM_ANDAMENTO: "Em andamento",
    TicketStatus.AGUARDANDO_USUARIO: "Aguardando usuário",
    TicketStatus.AGUARDANDO_APROVACAO: "Aguardando aprovação",
    TicketStatus.RESOLVIDO: "Resolvido",
    TicketStatus.CANCELADO: "Cancelado",
}


@dataclass(frozen=True)
class TransitionPlan:
    """Everything a status change implies, decided before any mutation."""
    source: TicketStatus
    target: TicketStatus
    record_first_response: bool = False
    pause: bool = False
    resume: bool = False
    resolve: bool = False
    reopen: bool = False
    events: Tuple[TicketEventType, ...] = ()
    webhooks: Tuple[WebhookEventType, ...] = ()


class TicketStateMachine:
    """Stateless; plans are pure, `apply*` mutate the given records."""

    def plan(self, current: str, target: str) -> Optional[TransitionPlan]:
        """
        Plan the move from `current` to `target`.

        Returns None for a same-status change.

        Raises:
            InvalidTransitionException: terminal -> terminal
        """
        source = TicketStatus(current)
        target = TicketStatus(target)
        if source == target:
            return None
        if source.is_terminal and target.is_terminal:
            raise InvalidTransitionException(source.value, target.value)

        reopen = source.is_terminal
        resolve = target.is_terminal

        events = [TicketEventType.STATUS_CHANGED]
        if target == TicketStatus.RESOLVIDO:
            events.append(TicketEventType.RESOLVED)
        if reopen:
            events.append(TicketEventType.REOPENED)

        webhooks = [WebhookEventType.TICKET_STATUS_CHANGED]
        if source == TicketStatus.AGUARDANDO_APROVACAO:
            webhooks.append(
                WebhookEventType.TICKET_REJECTED if target == TicketStatus.CANCELADO
                else WebhookEventType.TICKET_APPROVED
            )
        if target == TicketStatus.RESOLVIDO:
            webhooks.append(WebhookEventType.TICKET_RESOLVED)

        return TransitionPlan(
            source=source,
            target=target,
            record_first_response=source == TicketStatus.ABERTO,
            pause=target == TicketStatus.AGUARDANDO_USUARIO,
            resume=source == TicketStatus.AGUARDANDO_USUARIO,
            resolve=resolve,
            reopen=reopen,
            events=tuple(events),
            webhooks=tuple(webhooks),
        )

    def apply(self, ticket: TicketRecord, plan: TransitionPlan, at: datetime) -> None:
        """Move the ticket; `closed_at` is set iff the target is terminal."""
        ticket.status = plan.target.value
        ticket.closed_at = at if plan.target.is_terminal else None
        ticket.updated_at = at

    def apply_to_cycle(
        self,
        plan: TransitionPlan,
        cycle: Optional[CycleRecord],
        manager: SLACycleManager,
        at: datetime,
    ) -> None:
        """
        Run the SLA side effects on the current cycle.

        On reopen `cycle` is the freshly opened one; only a pause applies.
        """
        if cycle is None:
            return
        if plan.reopen:
            if plan.pause:
                manager.pause(cycle, at)
            return

        if plan.record_first_response:
            manager.record_first_response(cycle, at)
        if plan.resume:
            manager.resume(cycle, at)
        if plan.pause:
            manager.pause(cycle, at)
        if plan.resolve:
            manager.resolve(cycle, at)


state_machine = TicketStateMachine()
