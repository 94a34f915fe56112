"""
Access Infrastructure Repositories
==================================

Builds `Principal` objects and answers the sector/role lookups the
ticket and notification modules need.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.access.domain import Principal, RoleAssignment
from helpdesk.access.infrastructure.models import (
    ResourceModel,
    ResourceOverrideModel,
    SectorModel,
    UserModel,
    UserSectorRoleModel,
)
from helpdesk.config import OverrideEffect, RoleName


class SQLAlchemyPrincipalRepository:
    """Read-only view over identity tables."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def load(self, user_id: str) -> Optional[Principal]:
        """Load an active user with role assignments and overrides."""
        user = await self._session.get(UserModel, user_id)
        if user is None or not user.is_active:
            return None

        stmt = (
            select(UserSectorRoleModel.sector_id, UserSectorRoleModel.role, SectorModel.name)
            .join(SectorModel, SectorModel.id == UserSectorRoleModel.sector_id)
            .where(UserSectorRoleModel.user_id == user_id)
        )
        rows = (await self._session.execute(stmt)).all()
        roles = tuple(
            RoleAssignment(sector_id=sector_id, role=RoleName(role), sector_name=sector_name)
            for sector_id, role, sector_name in rows
        )

        override_rows = (await self._session.execute(
            select(ResourceOverrideModel.resource_id, ResourceOverrideModel.effect)
            .where(ResourceOverrideModel.user_id == user_id)
        )).all()
        overrides = {}
        for resource_id, effect in override_rows:
            effect = OverrideEffect(effect)
            # DENY wins when both rows exist for one resource
            if overrides.get(resource_id) != OverrideEffect.DENY:
                overrides[resource_id] = effect

        return Principal(
            user_id=user.id,
            email=user.email,
            name=user.name,
            roles=roles,
            overrides=overrides,
        )

    async def get_sector(self, sector_id: str) -> Optional[SectorModel]:
        return await self._session.get(SectorModel, sector_id)

    async def get_sector_by_name(self, name: str) -> Optional[SectorModel]:
        result = await self._session.execute(select(SectorModel).where(SectorModel.name == name))
        return result.scalar_one_or_none()

    async def get_user(self, user_id: str) -> Optional[UserModel]:
        return await self._session.get(UserModel, user_id)

    async def existing_user_ids(self, user_ids: List[str]) -> List[str]:
        if not user_ids:
            return []
        result = await self._session.execute(
            select(UserModel.id).where(UserModel.id.in_(user_ids), UserModel.is_active.is_(True))
        )
        return list(result.scalars().all())

    async def staff_user_ids(self, sector_id: str) -> List[str]:
        """Active users holding Coordenador or Admin in `sector_id`."""
        stmt = (
            select(UserSectorRoleModel.user_id)
            .join(UserModel, UserModel.id == UserSectorRoleModel.user_id)
            .where(
                UserSectorRoleModel.sector_id == sector_id,
                UserSectorRoleModel.role.in_([RoleName.ADMIN.value, RoleName.COORDINATOR.value]),
                UserModel.is_active.is_(True),
            )
        )
        result = await self._session.execute(stmt)
        return sorted(set(result.scalars().all()))

    async def admin_user_ids(self) -> List[str]:
        """Active global admins."""
        stmt = (
            select(UserSectorRoleModel.user_id)
            .join(UserModel, UserModel.id == UserSectorRoleModel.user_id)
            .where(UserSectorRoleModel.role == RoleName.ADMIN.value, UserModel.is_active.is_(True))
        )
        result = await self._session.execute(stmt)
        return sorted(set(result.scalars().all()))

    async def user_names(self, user_ids: List[str]) -> dict:
        if not user_ids:
            return {}
        result = await self._session.execute(
            select(UserModel.id, UserModel.name).where(UserModel.id.in_(user_ids))
        )
        return dict(result.all())

    async def get_resource(self, resource_id: str) -> Optional[ResourceModel]:
        return await self._session.get(ResourceModel, resource_id)
