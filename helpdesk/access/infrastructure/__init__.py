"""
Access Infrastructure Layer
===========================

ORM models for identity tables and the principal repository.
"""

from helpdesk.access.infrastructure.models import (
    UserModel,
    SectorModel,
    UserSectorRoleModel,
    ResourceModel,
    ResourceOverrideModel,
)
from helpdesk.access.infrastructure.repositories import SQLAlchemyPrincipalRepository

__all__ = [
    "UserModel",
    "SectorModel",
    "UserSectorRoleModel",
    "ResourceModel",
    "ResourceOverrideModel",
    "SQLAlchemyPrincipalRepository",
]
