"""
Ticket defaults.

Idempotent: rows are matched by name and only missing ones are inserted,
so this runs safely on every deploy.
"""

from typing import Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.access.infrastructure.models import SectorModel
from helpdesk.config import CategoryBranch, TicketPriority, settings
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.infrastructure.models import SLAPolicyModel
from helpdesk.tickets.infrastructure.models import TicketCategoryModel

logger = get_logger(__name__)

# name, priority, first response minutes, resolution minutes (business time)
DEFAULT_POLICIES = [
    ("SLA Urgente", TicketPriority.URGENTE, 60, 480),
    ("SLA Alta", TicketPriority.ALTA, 240, 1440),
    ("SLA Média", TicketPriority.MEDIA, 480, 4320),
    ("SLA Baixa", TicketPriority.BAIXA, 1440, 10080),
]


async def ensure_ticket_defaults(session: AsyncSession) -> Dict[str, int]:
    """Create the helpdesk sector, default SLA policies and category roots."""
    created = {"sectors": 0, "policies": 0, "categories": 0}

    sector_name = settings.tickets_target_sector_name
    sector = (await session.execute(
        select(SectorModel).where(SectorModel.name == sector_name)
    )).scalar_one_or_none()
    if sector is None:
        session.add(SectorModel(name=sector_name))
        created["sectors"] += 1

    existing_policies = set((await session.execute(select(SLAPolicyModel.name))).scalars().all())
    for name, priority, first_response, resolution in DEFAULT_POLICIES:
        if name in existing_policies:
            continue
        session.add(SLAPolicyModel(
            name=name,
            priority=priority.value,
            first_response_minutes=first_response,
            resolution_minutes=resolution,
            is_active=True,
        ))
        created["policies"] += 1

    existing_roots = set((await session.execute(
        select(TicketCategoryModel.name).where(TicketCategoryModel.parent_id.is_(None))
    )).scalars().all())
    for branch in CategoryBranch:
        if branch.value in existing_roots:
            continue
        session.add(TicketCategoryModel(name=branch.value, branch=branch.value, parent_id=None, is_active=True))
        created["categories"] += 1

    await session.flush()
    if any(created.values()):
        logger.info("Ticket defaults created", extra=created)
    return created
