"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="intranet-helpdesk", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/intranet",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Configuration ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to the business calendar / escalation YAML file"
    )
    sla_evaluation_interval: int = Field(
        default=300,
        description="Seconds between SLA escalation sweeps (0 disables the job)",
        ge=0
    )

    # ========== Tickets ==========
    tickets_target_sector_name: str = Field(
        default="Tech",
        description="Sector that receives tickets when no target sector is given"
    )

    # ========== Auth ==========
    auth_header: str = Field(
        default="X-User-Id",
        description="Header carrying the authenticated user id (set by the intranet gateway)"
    )

    # ========== Webhooks ==========
    webhook_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for each webhook delivery attempt",
        ge=0.1,
        le=30
    )
    webhook_retry_delay_seconds: float = Field(
        default=1.0,
        description="Backoff before the single webhook retry",
        ge=0
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:5000", "http://localhost:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "test", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class RoleName(str, Enum):
    """Roles a user can hold inside a sector."""
    ADMIN = "Admin"
    COORDINATOR = "Coordenador"
    USER = "Usuario"

    @property
    def rank(self) -> int:
        return ROLE_RANK[self]


ROLE_RANK = {RoleName.USER: 1, RoleName.COORDINATOR: 2, RoleName.ADMIN: 3}


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    ABERTO = "ABERTO"
    EM_ANDAMENTO = "EM_ANDAMENTO"
    AGUARDANDO_USUARIO = "AGUARDANDO_USUARIO"
    AGUARDANDO_APROVACAO = "AGUARDANDO_APROVACAO"
    RESOLVIDO = "RESOLVIDO"
    CANCELADO = "CANCELADO"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({TicketStatus.RESOLVIDO, TicketStatus.CANCELADO})
ACTIVE_STATUSES = [s for s in TicketStatus if s not in TERMINAL_STATUSES]


class TicketPriority(str, Enum):
    """Ticket priority levels."""
    BAIXA = "BAIXA"
    MEDIA = "MEDIA"
    ALTA = "ALTA"
    URGENTE = "URGENTE"


class CategoryBranch(str, Enum):
    """Root branches of the ticket category tree."""
    INFRA = "INFRA"
    DEV = "DEV"
    SUPORTE = "SUPORTE"


class TicketEventType(str, Enum):
    """Append-only ticket history vocabulary."""
    TICKET_CREATED = "ticket_created"
    STATUS_CHANGED = "status_changed"
    ASSIGNEES_CHANGED = "assignees_changed"
    COMMENT_ADDED = "comment_added"
    ATTACHMENT_ADDED = "attachment_added"
    RESOLVED = "resolved"
    REOPENED = "reopened"
    PRIORITY_CHANGED = "priority_changed"
    CATEGORY_CHANGED = "category_changed"


class NotificationType(str, Enum):
    """Inbox notification types; each one can be toggled by admins."""
    TICKET_CREATED = "ticket_created"
    TICKET_COMMENT = "ticket_comment"
    TICKET_STATUS = "ticket_status"
    RESOURCE_UPDATED = "resource_updated"


class WebhookEventType(str, Enum):
    """Outbound webhook vocabulary."""
    TICKET_CREATED = "ticket_created"
    TICKET_APPROVED = "ticket_approved"
    TICKET_REJECTED = "ticket_rejected"
    TICKET_STATUS_CHANGED = "ticket_status_changed"
    TICKET_COMMENTED = "ticket_commented"
    TICKET_RESOLVED = "ticket_resolved"


class OverrideEffect(str, Enum):
    """Per-user, per-resource access override."""
    ALLOW = "ALLOW"
    DENY = "DENY"


class CycleState(str, Enum):
    """Lifecycle of a single SLA cycle."""
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    RESOLVED = "RESOLVED"


class SLAState(str, Enum):
    """SLA health projection shown on dashboards."""
    OK = "OK"
    RISK = "RISK"
    BREACHED = "BREACHED"
    MET = "MET"


class SLAAlertType(str, Enum):
    """Escalation alerts, raised once per ticket cycle."""
    FIRST_RISK = "FIRST_RISK"
    FIRST_BREACH = "FIRST_BREACH"
    RES_RISK = "RES_RISK"
    RES_BREACH = "RES_BREACH"


# ========== Admin setting keys ==========

WEBHOOK_URL_KEY = "WEBHOOK_EVENTS_URL"
WEBHOOK_ENABLED_KEY = "WEBHOOK_EVENTS_ENABLED"
