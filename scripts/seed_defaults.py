#!/usr/bin/env python3
"""
Seed Helpdesk Defaults
======================

Creates the tables (development databases only), the helpdesk sector,
the default SLA policies and the INFRA/DEV/SUPORTE category roots.

With --admin-email an active global admin is created in the helpdesk
sector as well.

Usage:
    python scripts/seed_defaults.py [--admin-email admin@example.com]
"""

import argparse
import asyncio

from sqlalchemy import select

from helpdesk.access.infrastructure.models import SectorModel, UserModel, UserSectorRoleModel
from helpdesk.config import RoleName, settings
from helpdesk.infrastructure.database import close_database, create_tables, get_session_context, init_database
from helpdesk.seed import ensure_ticket_defaults
from helpdesk.shared.infrastructure.logging import setup_logging


async def ensure_admin(session, email: str) -> None:
    user = (await session.execute(select(UserModel).where(UserModel.email == email))).scalar_one_or_none()
    if user is not None:
        print(f"Admin user already exists: {email}")
        return

    sector = (await session.execute(
        select(SectorModel).where(SectorModel.name == settings.tickets_target_sector_name)
    )).scalar_one()
    user = UserModel(email=email, name="Administrador", is_active=True)
    session.add(user)
    await session.flush()
    session.add(UserSectorRoleModel(user_id=user.id, sector_id=sector.id, role=RoleName.ADMIN.value))
    print(f"Created admin user: {email} ({user.id})")


async def main(admin_email: str = None):
    setup_logging()
    init_database()
    if settings.environment != "production":
        await create_tables()

    try:
        async with get_session_context() as session:
            created = await ensure_ticket_defaults(session)
            print(f"Defaults: {created}")
            if admin_email:
                await ensure_admin(session, admin_email)
    finally:
        await close_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed helpdesk defaults")
    parser.add_argument("--admin-email", default=None, help="Create a global admin with this email")
    args = parser.parse_args()
    asyncio.run(main(args.admin_email))
