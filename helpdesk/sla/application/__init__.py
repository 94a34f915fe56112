"""
SLA Application Layer
======================

Application layer for the SLA module.

Contains:
- Services: policy administration and lookup, cycle serialization
- DTOs: Data transfer objects for API serialization
- Repository interfaces implemented by the infrastructure layer
"""

from helpdesk.sla.application.dto import (
    ResolutionDueAtOverrideRequest,
    SLACycleResponse,
    SLAHealthResponse,
    SLAPolicyCreateRequest,
    SLAPolicyResponse,
    SLAPolicyUpdateRequest,
)
from helpdesk.sla.application.services import (
    ISLAAlertDedupRepository,
    ISLACycleRepository,
    ISLAPolicyRepository,
    SLAPolicyService,
    cycle_to_response,
)

__all__ = [
    # DTOs
    "ResolutionDueAtOverrideRequest",
    "SLACycleResponse",
    "SLAHealthResponse",
    "SLAPolicyCreateRequest",
    "SLAPolicyResponse",
    "SLAPolicyUpdateRequest",
    # Services
    "SLAPolicyService",
    "cycle_to_response",
    # Repository Interfaces
    "ISLAAlertDedupRepository",
    "ISLACycleRepository",
    "ISLAPolicyRepository",
]
