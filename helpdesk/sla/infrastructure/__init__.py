"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for the SLA module:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer
- External: calendar config watcher and scheduler
"""

from helpdesk.sla.infrastructure.models import SLAAlertDedupModel, SLACycleModel, SLAPolicyModel
from helpdesk.sla.infrastructure.repositories import (
    SQLAlchemyAlertDedupRepository,
    SQLAlchemySLACycleRepository,
    SQLAlchemySLAPolicyRepository,
)

__all__ = [
    "SLAAlertDedupModel",
    "SLACycleModel",
    "SLAPolicyModel",
    "SQLAlchemyAlertDedupRepository",
    "SQLAlchemySLACycleRepository",
    "SQLAlchemySLAPolicyRepository",
]
