"""
Intranet Helpdesk - Main Application
====================================

Ticket lifecycle, SLA engine and authorization model of the intranet
portal.

Modules:
- Tickets: intake, status lifecycle, assignees, comments, attachments
- SLA: business-calendar due dates, cycles, policies, escalation
- Notifications: inbox, admin toggles, audit trail, outbound webhooks
- Reports: helpdesk dashboard and ticket exports

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects, state machine, evaluator
- Infrastructure: Database, calendar config watcher, scheduler, webhooks
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from helpdesk.config import settings
from helpdesk.core import ConfigurationException

# Infrastructure
from helpdesk.infrastructure.database import close_database, create_tables, init_database
from helpdesk.notifications.infrastructure import webhook_emitter

# SLA Module - External services
from helpdesk.sla.infrastructure.external import SLAScheduler, calendar_manager
from helpdesk.sla.services import SLAEscalationJob

# Module Routers
from helpdesk.notifications.interfaces import admin_router, notifications_router
from helpdesk.reporting.interfaces import reports_router
from helpdesk.sla.interfaces import sla_router
from helpdesk.tickets.interfaces import tickets_router

# Middleware and Logging
from helpdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    register_exception_handlers,
)
from helpdesk.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)

# Global service instances
sla_scheduler = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database (and tables outside production)
    3. Load the business calendar and watch it for changes
    4. Start the SLA escalation scheduler

    SHUTDOWN:
    1. Stop SLA scheduler
    2. Stop config watcher
    3. Wait for in-flight webhook deliveries
    4. Close database connections
    """
    global sla_scheduler

    # === STARTUP ===
    setup_logging()
    logger.info("Starting Helpdesk Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    if settings.environment != "production":
        # Use migrations in production
        try:
            await create_tables()
        except Exception as e:
            logger.warning(f"Database not available - running in degraded mode: {e}")

    logger.info("Loading business calendar")
    try:
        calendar_manager.load(settings.sla_config_path)
    except ConfigurationException as e:
        logger.error(f"Invalid business calendar, refusing to start: {e.message}")
        raise
    calendar_manager.start_watching()

    if settings.sla_evaluation_interval > 0:
        escalation_job = SLAEscalationJob(calendar_manager)
        sla_scheduler = SLAScheduler(interval_seconds=settings.sla_evaluation_interval)
        await sla_scheduler.start(escalation_job.run)
    else:
        logger.info("SLA escalation job disabled (sla_evaluation_interval=0)")

    logger.info("Helpdesk Service started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Helpdesk Service")

    if sla_scheduler:
        await sla_scheduler.stop()
        sla_scheduler = None

    calendar_manager.stop_watching()

    await webhook_emitter.drain()

    await close_database()

    logger.info("Helpdesk Service shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Intranet Helpdesk API",
    description="""
    ## Intranet Helpdesk

    Ticket lifecycle with business-hours SLA tracking and sector/role based
    authorization.

    ---

    ### Tickets
    - `GET /tickets/categories` - category tree with intake forms
    - `GET|POST /tickets` - list visible tickets / open a ticket
    - `GET|PATCH /tickets/{id}` - detail / update status, priority, fields
    - `PUT /tickets/{id}/assignees` - set assignees
    - `GET|POST /tickets/{id}/comments`, `/attachments`
    - `GET /tickets/{id}/events`, `/sla-cycles`
    - `PUT /tickets/{id}/sla/resolution-due-at` - manual SLA override

    ### SLA
    Due dates are computed in business minutes (Mon-Thu 08-18, Fri 08-17,
    UTC-03:00 by default). Default policies (first response / resolution):

    | Priority | First response | Resolution |
    |----------|---------------|------------|
    | URGENTE  | 60            | 480        |
    | ALTA     | 240           | 1440       |
    | MEDIA    | 480           | 4320       |
    | BAIXA    | 1440          | 10080      |

    ### Notifications and admin
    - `GET /notifications`, `/notifications/unread-count`
    - `POST /notifications/{id}/read`, `/notifications/read-all`
    - `/admin/sla-policies`, `/admin/notifications/settings`, `/admin/webhook`, `/admin/audit`

    ### Reports
    - `GET /reports/dashboard`, `/reports/tickets.csv`, `/reports/tickets.json`

    Every route expects the authenticated user id in the `X-User-Id` header.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
register_exception_handlers(app)

# === Include Module Routers ===
app.include_router(tickets_router)
app.include_router(sla_router)
app.include_router(notifications_router)
app.include_router(admin_router)
app.include_router(reports_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint for load balancers and orchestrators.

    Returns service health status including:
    - Business calendar status
    - Scheduler state
    - Pending webhook deliveries
    """
    calendar = calendar_manager.config
    checks = {
        "business_calendar": f"loaded (UTC{calendar.utc_offset})",
        "sla_scheduler": "running" if sla_scheduler and sla_scheduler.is_running else "stopped",
        "pending_webhooks": webhook_emitter.pending,
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Intranet Helpdesk",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "tickets": {"prefix": "/tickets"},
            "sla": {"prefix": "/admin/sla-policies"},
            "notifications": {"prefix": "/notifications"},
            "admin": {"prefix": "/admin"},
            "reports": {"prefix": "/reports"},
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "helpdesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
