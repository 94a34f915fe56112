"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database (aiosqlite) with the
ticket defaults seeded plus a small directory:

    Tech: admin (Admin), tech_coord (Coordenador)
    DP:   dp_user (Usuario), dp_coord (Coordenador)
    outsider: active user without any role
"""

import json
from types import SimpleNamespace

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import helpdesk.models  # noqa: F401
from helpdesk.access.infrastructure import SQLAlchemyPrincipalRepository
from helpdesk.access.infrastructure.models import ResourceModel, SectorModel, UserModel, UserSectorRoleModel
from helpdesk.config import RoleName, settings
from helpdesk.infrastructure.database import Base, get_session
from helpdesk.notifications.infrastructure import WebhookEmitter
from helpdesk.seed import ensure_ticket_defaults
from helpdesk.sla.domain import SLACycleManager, default_calendar
from helpdesk.tickets.infrastructure.models import TicketCategoryModel

PRINTER_SCHEMA = [
    {"key": "patrimonio", "label": "Patrimônio", "type": "text", "required": True, "rules": {"minLen": 3}},
    {"key": "andar", "label": "Andar", "type": "number", "rules": {"min": 0, "max": 20}},
]


@pytest.fixture
def calendar():
    return default_calendar()


@pytest.fixture
def cycle_manager(calendar):
    return SLACycleManager(calendar)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def directory(session_maker):
    """Seed defaults, sectors, users and a printer category; returns their ids."""
    async with session_maker() as session:
        await ensure_ticket_defaults(session)
        tech = (await session.execute(
            select(SectorModel).where(SectorModel.name == settings.tickets_target_sector_name)
        )).scalar_one()
        dp = SectorModel(name="DP")
        session.add(dp)
        await session.flush()

        users = {}
        for key, name in [
            ("admin", "Ana Admin"),
            ("tech_coord", "Caio Coordenador"),
            ("dp_user", "Davi Usuario"),
            ("dp_coord", "Dora Coordenadora"),
            ("outsider", "Otto Externo"),
        ]:
            user = UserModel(email=f"{key}@example.com", name=name)
            session.add(user)
            users[key] = user
        await session.flush()

        for key, sector, role in [
            ("admin", tech, RoleName.ADMIN),
            ("tech_coord", tech, RoleName.COORDINATOR),
            ("dp_user", dp, RoleName.USER),
            ("dp_coord", dp, RoleName.COORDINATOR),
        ]:
            session.add(UserSectorRoleModel(user_id=users[key].id, sector_id=sector.id, role=role.value))

        support_root = (await session.execute(
            select(TicketCategoryModel).where(
                TicketCategoryModel.name == "SUPORTE",
                TicketCategoryModel.parent_id.is_(None),
            )
        )).scalar_one()
        printer = TicketCategoryModel(
            name="Impressora",
            branch="SUPORTE",
            parent_id=support_root.id,
            form_schema=PRINTER_SCHEMA,
        )
        retired = TicketCategoryModel(name="Fax", branch="SUPORTE", parent_id=support_root.id, is_active=False)
        resource = ResourceModel(name="Portal RH", sector_id=dp.id)
        session.add_all([printer, retired, resource])
        await session.commit()

        return SimpleNamespace(
            tech_id=tech.id,
            dp_id=dp.id,
            printer_id=printer.id,
            retired_category_id=retired.id,
            resource_id=resource.id,
            **{f"{key}_id": user.id for key, user in users.items()},
        )


@pytest.fixture
async def session(session_maker, directory):
    async with session_maker() as session:
        yield session


@pytest.fixture
def load_principal(session):
    async def load(user_id):
        return await SQLAlchemyPrincipalRepository(session).load(user_id)
    return load


class WebhookRecorder:
    """httpx handler capturing posted webhook payloads."""

    def __init__(self, status_code=200):
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code)

    @property
    def payloads(self):
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def webhook_recorder():
    return WebhookRecorder()


@pytest.fixture
def emitter(webhook_recorder):
    return WebhookEmitter(retry_delay_seconds=0, transport=httpx.MockTransport(webhook_recorder))


@pytest.fixture
def ticket_service(session, cycle_manager, emitter):
    from helpdesk.tickets.interfaces.controllers import build_ticket_service
    return build_ticket_service(session, cycle_manager=cycle_manager, emitter=emitter)


@pytest.fixture
def ticket_payload(directory):
    def build(**overrides):
        from helpdesk.tickets.application import TicketCreateRequest
        data = {
            "title": "Impressora sem toner",
            "description": "A impressora do corredor não imprime.",
            "requester_sector_id": directory.dp_id,
            "category_id": directory.printer_id,
            "request_data": {"patrimonio": "IMP-0042"},
        }
        data.update(overrides)
        return TicketCreateRequest(**data)
    return build


@pytest.fixture
async def client(session_maker, directory):
    """API client bound to the test database; lifespan is not run."""
    from helpdesk.main import app

    async def override_get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    """Headers the intranet gateway would forward for `user_id`."""
    def headers(user_id: str) -> dict:
        return {settings.auth_header: user_id}
    return headers
