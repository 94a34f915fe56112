"""
Ticket Domain Layer
===================

Category tree, intake validation and the ticket state machine.
"""

from helpdesk.tickets.domain.entities import (
    Category,
    CategoryTree,
    FieldRules,
    FieldSpec,
    TicketRecord,
)
from helpdesk.tickets.domain.intake import TypedValue, serialize_request_data, validate_request_data
from helpdesk.tickets.domain.state_machine import (
    STATUS_LABELS,
    TicketStateMachine,
    TransitionPlan,
    state_machine,
)

__all__ = [
    "Category",
    "CategoryTree",
    "FieldRules",
    "FieldSpec",
    "TicketRecord",
    "TypedValue",
    "serialize_request_data",
    "validate_request_data",
    "STATUS_LABELS",
    "TicketStateMachine",
    "TransitionPlan",
    "state_machine",
]
