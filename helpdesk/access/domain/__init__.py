"""
Access Domain Layer
===================

Principal, role assignments and the pure authorization evaluator.
"""

from helpdesk.access.domain.entities import (
    Action,
    AccessContext,
    Principal,
    RoleAssignment,
    MANAGEMENT_ACTIONS,
    STAFF_ROLES,
)
from helpdesk.access.domain.evaluator import AuthorizationEvaluator, evaluator

__all__ = [
    "Action",
    "AccessContext",
    "Principal",
    "RoleAssignment",
    "MANAGEMENT_ACTIONS",
    "STAFF_ROLES",
    "AuthorizationEvaluator",
    "evaluator",
]
