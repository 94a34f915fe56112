"""
Ticket Application Services
===========================

Orchestrates every ticket action:

    principal -> authorization -> state machine -> SLA cycle manager
              -> event dispatcher -> single commit -> webhooks

Each mutating action runs under a per-ticket asyncio lock and the row
lock of the ticket (SELECT ... FOR UPDATE where the backend has it), so
the status change, the cycle update and the event rows commit together.
Everything that can reject the action is checked before the first write.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

import asyncio
import weakref
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.access.domain import AccessContext, Action, Principal, evaluator
from helpdesk.config import (
    TicketEventType,
    TicketPriority,
    TicketStatus,
    WebhookEventType,
    settings,
)
from helpdesk.core import (
    ConfigurationException,
    ResourceNotFoundException,
    ValidationException,
)
from helpdesk.notifications.application import (
    EventDispatcher,
    IAdminSettingsRepository,
    load_webhook_config,
    ticket_webhook_data,
)
from helpdesk.notifications.domain import TicketEvent, TicketSnapshot, WebhookConfig
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.application import (
    ISLACycleRepository,
    ResolutionDueAtOverrideRequest,
    SLACycleResponse,
    SLAPolicyService,
    cycle_to_response,
)
from helpdesk.sla.domain import CycleRecord, SLACycleManager, SLATargets
from helpdesk.tickets.application.dto import (
    AssigneesResponse,
    AttachmentCreateRequest,
    AttachmentResponse,
    CategoryResponse,
    CommentCreateRequest,
    CommentResponse,
    TicketAssigneesRequest,
    TicketCreateRequest,
    TicketDraft,
    TicketEventResponse,
    TicketResponse,
    TicketSummaryResponse,
    TicketUpdateRequest,
)
from helpdesk.tickets.domain import (
    Category,
    CategoryTree,
    serialize_request_data,
    state_machine,
    validate_request_data,
)

logger = get_logger(__name__)

MANAGED_FIELDS = {"status", "priority", "category_id", "target_sector_id"}


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for the ticket aggregate and its append-only children."""

    @abstractmethod
    async def get(self, ticket_id: str, for_update: bool = False) -> Optional[Any]:
        """Ticket row, optionally locked for the rest of the transaction."""

    @abstractmethod
    async def next_number(self) -> int:
        """Next sequential human-facing ticket number."""

    @abstractmethod
    async def create(self, draft: TicketDraft) -> Any:
        """Insert a ticket."""

    @abstractmethod
    async def list_visible(
        self,
        user_id: str,
        sector_ids: Optional[Iterable[str]],
        status: Optional[TicketStatus] = None,
        q: Optional[str] = None,
        include_closed: bool = False,
        limit: int = 200,
    ) -> List[Any]:
        """Tickets of the given sectors or created by the user; all when `sector_ids` is None."""

    @abstractmethod
    async def assignee_ids(self, ticket_id: str) -> List[str]:
        """Current assignees in assignment order."""

    @abstractmethod
    async def add_assignee(self, ticket_id: str, user_id: str, assigned_by: str, at: datetime) -> None:
        """Add one assignee."""

    @abstractmethod
    async def remove_assignee(self, ticket_id: str, user_id: str) -> None:
        """Remove one assignee."""

    @abstractmethod
    async def add_event(
        self,
        ticket_id: str,
        actor_user_id: Optional[str],
        event_type: TicketEventType,
        data: Dict[str, Any],
        at: datetime,
    ) -> Any:
        """Append a history row."""

    @abstractmethod
    async def list_events(self, ticket_id: str) -> List[Any]:
        """History ordered by (created_at, seq)."""

    @abstractmethod
    async def add_comment(self, ticket_id: str, author_id: str, body: str, is_internal: bool, at: datetime) -> Any:
        """Append a comment."""

    @abstractmethod
    async def list_comments(self, ticket_id: str, include_internal: bool) -> List[Any]:
        """Comments oldest first."""

    @abstractmethod
    async def add_attachment(self, ticket_id: str, uploaded_by: str, request: AttachmentCreateRequest, at: datetime) -> Any:
        """Record attachment metadata."""

    @abstractmethod
    async def list_attachments(self, ticket_id: str) -> List[Any]:
        """Attachments oldest first."""


class ICategoryRepository(ABC):
    """Interface for ticket categories."""

    @abstractmethod
    async def list(self, active_only: bool = True) -> List[Category]:
        """All categories, as flat records."""

    @abstractmethod
    async def get(self, category_id: str) -> Optional[Category]:
        """One category by id."""


class AccessDirectory(Protocol):
    """Identity lookups the ticket service needs."""

    async def get_sector(self, sector_id: str) -> Any: ...

    async def get_sector_by_name(self, name: str) -> Any: ...

    async def get_resource(self, resource_id: str) -> Any: ...

    async def existing_user_ids(self, user_ids: List[str]) -> List[str]: ...

    async def user_names(self, user_ids: List[str]) -> Dict[str, str]: ...


class TicketLocks:
    """
    Process-local mutex per ticket id.

    Locks live only while someone holds or waits on them.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


ticket_locks = TicketLocks()

# Serializes ticket number allocation
NUMBERING_LOCK_KEY = "__ticket_number__"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TicketService:
    """
    Ticket lifecycle: create, read, update, assign, comment, attach and
    override the SLA due date.

    One instance per request; it owns the unit of work of that request.
    """

    def __init__(
        self,
        session: AsyncSession,
        ticket_repository: ITicketRepository,
        category_repository: ICategoryRepository,
        cycle_repository: ISLACycleRepository,
        policy_service: SLAPolicyService,
        directory: AccessDirectory,
        dispatcher: EventDispatcher,
        admin_settings_repository: IAdminSettingsRepository,
        cycle_manager: SLACycleManager,
        webhook_emitter,
    ):
        self._session = session
        self._tickets = ticket_repository
        self._categories = category_repository
        self._cycles = cycle_repository
        self._policies = policy_service
        self._directory = directory
        self._dispatcher = dispatcher
        self._admin_settings = admin_settings_repository
        self._manager = cycle_manager
        self._emitter = webhook_emitter

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(self, lock_key: str) -> AsyncIterator[None]:
        """
        Lock, run, commit, then hand queued webhooks to the emitter.

        Any exception rolls back the whole action and drops its webhooks.
        """
        async with ticket_locks.get(lock_key):
            try:
                yield
                webhook_config = await load_webhook_config(self._admin_settings)
                await self._session.commit()
            except Exception:
                await self._session.rollback()
                self._dispatcher.discard()
                raise
        self._emit(webhook_config)

    def _emit(self, config: WebhookConfig) -> None:
        envelopes = self._dispatcher.drain()
        if envelopes:
            self._emitter.emit(config, envelopes)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _context(ticket) -> AccessContext:
        return AccessContext(
            requester_sector_id=ticket.requester_sector_id,
            target_sector_id=ticket.target_sector_id,
            creator_id=ticket.created_by,
        )

    async def _load(self, principal: Principal, ticket_id: str, for_update: bool = False):
        """Ticket the principal can read; anything else is reported as missing."""
        ticket = await self._tickets.get(ticket_id, for_update=for_update)
        if ticket is None or not evaluator.can_act(principal, Action.TICKET_READ, self._context(ticket)):
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    async def _snapshot(self, ticket, assignee_ids: Optional[List[str]] = None) -> TicketSnapshot:
        if assignee_ids is None:
            assignee_ids = await self._tickets.assignee_ids(ticket.id)
        return TicketSnapshot(
            id=ticket.id,
            number=ticket.number,
            title=ticket.title,
            status=ticket.status,
            priority=ticket.priority,
            created_by=ticket.created_by,
            requester_sector_id=ticket.requester_sector_id,
            target_sector_id=ticket.target_sector_id,
            assignee_ids=tuple(assignee_ids),
        )

    async def _active_category(self, category_id: str) -> Category:
        category = await self._categories.get(category_id)
        if category is None or not category.is_active:
            raise ValidationException(
                "Invalid category",
                {"category_id": f"category {category_id} does not exist or is inactive"},
            )
        return category

    async def _check_resource(self, resource_id: Optional[str]) -> None:
        if resource_id is not None and await self._directory.get_resource(resource_id) is None:
            raise ValidationException(
                "Invalid related resource",
                {"related_resource_id": f"resource {resource_id} does not exist"},
            )

    async def _default_target_sector_id(self) -> str:
        sector = await self._directory.get_sector_by_name(settings.tickets_target_sector_name)
        if sector is None:
            raise ConfigurationException(
                f"Default target sector '{settings.tickets_target_sector_name}' does not exist",
                details={"tickets_target_sector_name": settings.tickets_target_sector_name},
            )
        return sector.id

    def _summary(self, ticket, cycle: Optional[CycleRecord], now: datetime) -> Dict[str, Any]:
        return {
            "id": ticket.id,
            "number": ticket.number,
            "title": ticket.title,
            "status": ticket.status,
            "priority": ticket.priority,
            "requester_sector_id": ticket.requester_sector_id,
            "target_sector_id": ticket.target_sector_id,
            "category_id": ticket.category_id,
            "created_by": ticket.created_by,
            "tags": list(ticket.tags or []),
            "created_at": ticket.created_at,
            "updated_at": ticket.updated_at,
            "closed_at": ticket.closed_at,
            "sla_state": self._manager.health(cycle, now).resolution if cycle is not None else None,
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_categories(self) -> List[CategoryResponse]:
        """Active category tree, branch roots first."""
        tree = CategoryTree(await self._categories.list(active_only=True))
        return [CategoryResponse.model_validate(node) for node in tree.to_nested()]

    async def list_tickets(
        self,
        principal: Principal,
        status: Optional[TicketStatus] = None,
        q: Optional[str] = None,
        include_closed: bool = False,
        limit: int = 200,
    ) -> List[TicketSummaryResponse]:
        sector_ids = None if principal.is_global_admin else principal.sector_ids
        tickets = await self._tickets.list_visible(
            principal.user_id,
            sector_ids,
            status=status,
            q=q,
            include_closed=include_closed,
            limit=limit,
        )
        cycles = await self._cycles.latest_for_tickets([t.id for t in tickets])
        now = _utcnow()
        return [TicketSummaryResponse(**self._summary(t, cycles.get(t.id), now)) for t in tickets]

    async def get_ticket(self, principal: Principal, ticket_id: str) -> TicketResponse:
        ticket = await self._load(principal, ticket_id)
        cycle = await self._cycles.current(ticket.id)
        now = _utcnow()
        return TicketResponse(
            **self._summary(ticket, cycle, now),
            description=ticket.description,
            request_data=dict(ticket.request_data or {}),
            request_data_version=ticket.request_data_version,
            related_resource_id=ticket.related_resource_id,
            assignee_ids=await self._tickets.assignee_ids(ticket.id),
            current_cycle=cycle_to_response(cycle, self._manager, now) if cycle is not None else None,
            can_manage=evaluator.can_act(principal, Action.TICKET_MANAGE, self._context(ticket)),
        )

    async def list_events(self, principal: Principal, ticket_id: str) -> List[TicketEventResponse]:
        ticket = await self._load(principal, ticket_id)
        events = await self._tickets.list_events(ticket.id)
        return [TicketEventResponse.model_validate(e) for e in events]

    async def list_cycles(self, principal: Principal, ticket_id: str) -> List[SLACycleResponse]:
        ticket = await self._load(principal, ticket_id)
        now = _utcnow()
        return [cycle_to_response(c, self._manager, now) for c in await self._cycles.list_for_ticket(ticket.id)]

    async def list_comments(self, principal: Principal, ticket_id: str) -> List[CommentResponse]:
        ticket = await self._load(principal, ticket_id)
        include_internal = evaluator.can_act(principal, Action.TICKET_COMMENT_INTERNAL, self._context(ticket))
        comments = await self._tickets.list_comments(ticket.id, include_internal=include_internal)
        names = await self._directory.user_names(sorted({c.author_id for c in comments}))
        return [
            CommentResponse(
                id=c.id,
                ticket_id=c.ticket_id,
                author_id=c.author_id,
                author_name=names.get(c.author_id),
                body=c.body,
                is_internal=c.is_internal,
                created_at=c.created_at,
            )
            for c in comments
        ]

    async def list_attachments(self, principal: Principal, ticket_id: str) -> List[AttachmentResponse]:
        ticket = await self._load(principal, ticket_id)
        return [AttachmentResponse.model_validate(a) for a in await self._tickets.list_attachments(ticket.id)]

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create_ticket(self, principal: Principal, request: TicketCreateRequest) -> TicketResponse:
        """
        Open a ticket together with its first SLA cycle.

        Raises:
            AuthorizationException: not a member of the requester sector
            ValidationException: unknown sector/category, bad request data
            ConfigurationException: no active SLA policy for the priority
        """
        evaluator.ensure(
            principal,
            Action.TICKET_CREATE,
            AccessContext(requester_sector_id=request.requester_sector_id),
        )

        if await self._directory.get_sector(request.requester_sector_id) is None:
            raise ValidationException(
                "Invalid requester sector",
                {"requester_sector_id": f"sector {request.requester_sector_id} does not exist"},
            )
        if request.target_sector_id is not None:
            if await self._directory.get_sector(request.target_sector_id) is None:
                raise ValidationException(
                    "Invalid target sector",
                    {"target_sector_id": f"sector {request.target_sector_id} does not exist"},
                )
            target_sector_id = request.target_sector_id
        else:
            target_sector_id = await self._default_target_sector_id()

        category = await self._active_category(request.category_id)
        values = validate_request_data(category.form_schema, request.request_data)
        await self._check_resource(request.related_resource_id)

        priority = request.priority or TicketPriority.MEDIA
        targets = await self._policies.resolve_targets(priority)

        async with self._transaction(NUMBERING_LOCK_KEY):
            now = _utcnow()
            ticket = await self._tickets.create(TicketDraft(
                number=await self._tickets.next_number(),
                title=request.title.strip(),
                description=request.description,
                request_data=serialize_request_data(values),
                priority=priority,
                requester_sector_id=request.requester_sector_id,
                target_sector_id=target_sector_id,
                category_id=category.id,
                created_by=principal.user_id,
                related_resource_id=request.related_resource_id,
                tags=request.tags,
                created_at=now,
            ))
            await self._cycles.add(self._manager.open_cycle(ticket.id, targets, now))

            snapshot = await self._snapshot(ticket, [])
            await self._dispatcher.dispatch(TicketEvent(
                type=TicketEventType.TICKET_CREATED,
                ticket=snapshot,
                actor_id=principal.user_id,
                actor_name=principal.name,
                at=now,
                data={"priority": priority.value, "categoryId": category.id},
            ))
            await self._dispatcher.audit(
                principal.user_id,
                "ticket_create",
                target_type="ticket",
                target_id=ticket.id,
                metadata={"number": ticket.number, "title": ticket.title},
            )
            self._dispatcher.queue_webhook(WebhookEventType.TICKET_CREATED, ticket_webhook_data(snapshot), now)

        logger.info(
            "Ticket created",
            extra={"ticket_id": ticket.id, "ticket_number": ticket.number, "priority": priority.value},
        )
        return await self.get_ticket(principal, ticket.id)

    async def update_ticket(self, principal: Principal, ticket_id: str, request: TicketUpdateRequest) -> TicketResponse:
        """
        Apply a partial update.

        Status, priority, category and target sector are management
        changes; title, description, tags, request data and the related
        resource may also be edited by the ticket's creator.
        """
        changes = request.model_dump(exclude_unset=True)
        if not changes:
            return await self.get_ticket(principal, ticket_id)

        async with self._transaction(ticket_id):
            ticket = await self._load(principal, ticket_id, for_update=True)
            context = self._context(ticket)

            if MANAGED_FIELDS & changes.keys():
                evaluator.ensure(principal, Action.TICKET_MANAGE, context)
            elif ticket.created_by != principal.user_id:
                evaluator.ensure(principal, Action.TICKET_MANAGE, context)
            elif (
                TicketStatus(ticket.status).is_terminal
                and not evaluator.can_act(principal, Action.TICKET_MANAGE, context)
            ):
                raise ValidationException(
                    "Closed tickets cannot be edited",
                    {"status": f"ticket is {ticket.status}"},
                )

            # Everything that can reject the update is checked before the first write
            plan = None
            if changes.get("status") is not None:
                plan = state_machine.plan(ticket.status, changes["status"])

            new_priority = changes.get("priority")
            if new_priority is not None and TicketPriority(new_priority).value == ticket.priority:
                new_priority = None

            new_category = None
            if changes.get("category_id") is not None and changes["category_id"] != ticket.category_id:
                new_category = await self._active_category(changes["category_id"])

            new_target = changes.get("target_sector_id")
            if new_target is not None and new_target != ticket.target_sector_id:
                if await self._directory.get_sector(new_target) is None:
                    raise ValidationException(
                        "Invalid target sector",
                        {"target_sector_id": f"sector {new_target} does not exist"},
                    )
            else:
                new_target = None

            request_values = None
            if changes.get("request_data") is not None:
                schema_category = new_category or await self._categories.get(ticket.category_id)
                schema = schema_category.form_schema if schema_category else []
                request_values = serialize_request_data(validate_request_data(schema, changes["request_data"]))

            if "related_resource_id" in changes:
                await self._check_resource(changes["related_resource_id"])

            effective_priority = TicketPriority(new_priority or ticket.priority)
            reprice_targets: Optional[SLATargets] = None
            if new_priority is not None:
                reprice_targets = await self._policies.resolve_targets(effective_priority)
            reopen_targets: Optional[SLATargets] = None
            if plan is not None and plan.reopen:
                reopen_targets = reprice_targets or await self._policies.resolve_targets(effective_priority)

            # Mutation
            now = _utcnow()
            cycle = await self._cycles.current(ticket.id)
            events: List[tuple] = []
            changed_fields: List[str] = []

            if new_priority is not None:
                previous = ticket.priority
                ticket.priority = effective_priority.value
                if cycle is not None and cycle.resolved_at is None:
                    self._manager.reprice(cycle, reprice_targets)
                events.append((TicketEventType.PRIORITY_CHANGED, {"from": previous, "to": ticket.priority}))
                changed_fields.append("priority")

            if new_category is not None:
                previous = ticket.category_id
                ticket.category_id = new_category.id
                events.append((TicketEventType.CATEGORY_CHANGED, {"from": previous, "to": new_category.id}))
                changed_fields.append("category_id")

            if new_target is not None:
                ticket.target_sector_id = new_target
                changed_fields.append("target_sector_id")

            for field in ("title", "description", "tags"):
                value = changes.get(field)
                if value is not None and getattr(ticket, field) != value:
                    setattr(ticket, field, value)
                    changed_fields.append(field)

            if "related_resource_id" in changes and ticket.related_resource_id != changes["related_resource_id"]:
                ticket.related_resource_id = changes["related_resource_id"]
                changed_fields.append("related_resource_id")

            if request_values is not None and request_values != (ticket.request_data or {}):
                ticket.request_data = request_values
                ticket.request_data_version = (ticket.request_data_version or 1) + 1
                changed_fields.append("request_data")

            if plan is not None:
                source = plan.source.value
                state_machine.apply(ticket, plan, now)
                if plan.reopen:
                    pinned = self._manager.pinned_override(cycle) if cycle is not None else None
                    new_cycle = self._manager.open_cycle(
                        ticket.id,
                        reopen_targets,
                        now,
                        previous_cycle_number=cycle.cycle_number if cycle is not None else 0,
                        pinned_override=pinned,
                    )
                    state_machine.apply_to_cycle(plan, new_cycle, self._manager, now)
                    await self._cycles.add(new_cycle)
                else:
                    state_machine.apply_to_cycle(plan, cycle, self._manager, now)

                for event_type in plan.events:
                    if event_type == TicketEventType.STATUS_CHANGED:
                        data = {"from": source, "to": plan.target.value}
                    elif event_type == TicketEventType.RESOLVED:
                        data = {"previousStatus": source}
                    else:
                        data = {"cycleNumber": new_cycle.cycle_number}
                    events.append((event_type, data))
                changed_fields.append("status")

            if changed_fields:
                ticket.updated_at = now
                snapshot = await self._snapshot(ticket)
                for event_type, data in events:
                    await self._dispatcher.dispatch(TicketEvent(
                        type=event_type,
                        ticket=snapshot,
                        actor_id=principal.user_id,
                        actor_name=principal.name,
                        at=now,
                        data=data,
                    ))
                if plan is not None:
                    for webhook_type in plan.webhooks:
                        self._dispatcher.queue_webhook(
                            webhook_type,
                            ticket_webhook_data(snapshot, previousStatus=plan.source.value),
                            now,
                        )
                await self._dispatcher.audit(
                    principal.user_id,
                    "ticket_update",
                    target_type="ticket",
                    target_id=ticket.id,
                    metadata={"fields": changed_fields},
                )

        if changed_fields:
            logger.info("Ticket updated", extra={"ticket_id": ticket_id, "fields": changed_fields})
        return await self.get_ticket(principal, ticket_id)

    async def set_assignees(
        self,
        principal: Principal,
        ticket_id: str,
        request: TicketAssigneesRequest,
    ) -> AssigneesResponse:
        """Replace the assignee set; re-sending the current set is a no-op."""
        requested: List[str] = []
        for user_id in request.assignee_ids:
            if user_id and user_id not in requested:
                requested.append(user_id)

        async with self._transaction(ticket_id):
            ticket = await self._load(principal, ticket_id, for_update=True)
            evaluator.ensure(principal, Action.TICKET_MANAGE, self._context(ticket))

            known = set(await self._directory.existing_user_ids(requested))
            unknown = [user_id for user_id in requested if user_id not in known]
            if unknown:
                raise ValidationException(
                    "Unknown assignees",
                    {"assignee_ids": f"users not found or inactive: {', '.join(unknown)}"},
                )

            current = await self._tickets.assignee_ids(ticket.id)
            added = [user_id for user_id in requested if user_id not in current]
            removed = [user_id for user_id in current if user_id not in requested]

            if added or removed:
                now = _utcnow()
                for user_id in removed:
                    await self._tickets.remove_assignee(ticket.id, user_id)
                for user_id in added:
                    await self._tickets.add_assignee(ticket.id, user_id, principal.user_id, now)
                ticket.updated_at = now

                await self._dispatcher.dispatch(TicketEvent(
                    type=TicketEventType.ASSIGNEES_CHANGED,
                    ticket=await self._snapshot(ticket, requested),
                    actor_id=principal.user_id,
                    actor_name=principal.name,
                    at=now,
                    data={"assigneeIds": requested, "added": added, "removed": removed},
                ))
                await self._dispatcher.audit(
                    principal.user_id,
                    "ticket_assignees",
                    target_type="ticket",
                    target_id=ticket.id,
                    metadata={"added": added, "removed": removed},
                )

        return AssigneesResponse(assignee_ids=requested, added=added, removed=removed)

    async def add_comment(self, principal: Principal, ticket_id: str, request: CommentCreateRequest) -> CommentResponse:
        """
        Append a comment.

        A public comment by staff of the target sector counts as the first
        response of the open cycle.
        """
        async with self._transaction(ticket_id):
            ticket = await self._load(principal, ticket_id, for_update=True)
            context = self._context(ticket)
            evaluator.ensure(principal, Action.TICKET_COMMENT, context)
            if request.is_internal:
                evaluator.ensure(principal, Action.TICKET_COMMENT_INTERNAL, context)

            now = _utcnow()
            comment = await self._tickets.add_comment(ticket.id, principal.user_id, request.body, request.is_internal, now)

            if not request.is_internal and evaluator.can_act(principal, Action.TICKET_MANAGE, context):
                cycle = await self._cycles.current(ticket.id)
                if cycle is not None:
                    self._manager.record_first_response(cycle, now)
            ticket.updated_at = now

            snapshot = await self._snapshot(ticket)
            await self._dispatcher.dispatch(TicketEvent(
                type=TicketEventType.COMMENT_ADDED,
                ticket=snapshot,
                actor_id=principal.user_id,
                actor_name=principal.name,
                at=now,
                data={"commentId": comment.id, "isInternal": request.is_internal},
            ))
            await self._dispatcher.audit(
                principal.user_id,
                "ticket_comment",
                target_type="ticket",
                target_id=ticket.id,
                metadata={"commentId": comment.id, "isInternal": request.is_internal},
            )
            if not request.is_internal:
                self._dispatcher.queue_webhook(
                    WebhookEventType.TICKET_COMMENTED,
                    ticket_webhook_data(snapshot, commentId=comment.id),
                    now,
                )

        return CommentResponse(
            id=comment.id,
            ticket_id=comment.ticket_id,
            author_id=comment.author_id,
            author_name=principal.name or None,
            body=comment.body,
            is_internal=comment.is_internal,
            created_at=comment.created_at,
        )

    async def add_attachment(
        self,
        principal: Principal,
        ticket_id: str,
        request: AttachmentCreateRequest,
    ) -> AttachmentResponse:
        async with self._transaction(ticket_id):
            ticket = await self._load(principal, ticket_id, for_update=True)
            evaluator.ensure(principal, Action.TICKET_COMMENT, self._context(ticket))

            now = _utcnow()
            attachment = await self._tickets.add_attachment(ticket.id, principal.user_id, request, now)
            ticket.updated_at = now

            await self._dispatcher.dispatch(TicketEvent(
                type=TicketEventType.ATTACHMENT_ADDED,
                ticket=await self._snapshot(ticket),
                actor_id=principal.user_id,
                actor_name=principal.name,
                at=now,
                data={"attachmentId": attachment.id, "originalName": attachment.original_name},
            ))
            await self._dispatcher.audit(
                principal.user_id,
                "ticket_attachment",
                target_type="ticket",
                target_id=ticket.id,
                metadata={"attachmentId": attachment.id, "originalName": attachment.original_name},
            )

        return AttachmentResponse.model_validate(attachment)

    async def override_resolution_due_at(
        self,
        principal: Principal,
        ticket_id: str,
        request: ResolutionDueAtOverrideRequest,
    ) -> SLACycleResponse:
        """Pin the current cycle's resolution due date (audited)."""
        async with self._transaction(ticket_id):
            ticket = await self._load(principal, ticket_id, for_update=True)
            evaluator.ensure(principal, Action.SLA_OVERRIDE, self._context(ticket))

            cycle = await self._cycles.current(ticket.id)
            if cycle is None:
                raise ValidationException(
                    "Ticket has no SLA cycle",
                    {"resolution_due_at": "no SLA cycle to override"},
                )

            now = _utcnow()
            previous = cycle.resolution_due_at
            new_due_at = _as_utc(request.resolution_due_at)
            self._manager.override_resolution_due_at(cycle, new_due_at, request.reason, principal.user_id, now)
            await self._dispatcher.audit(
                principal.user_id,
                "sla_override",
                target_type="ticket",
                target_id=ticket.id,
                metadata={
                    "cycleNumber": cycle.cycle_number,
                    "previousDueAt": previous.isoformat(),
                    "resolutionDueAt": new_due_at.isoformat(),
                    "reason": request.reason,
                },
            )

        logger.info(
            "SLA resolution due date overridden",
            extra={"ticket_id": ticket_id, "cycle_number": cycle.cycle_number},
        )
        return cycle_to_response(cycle, self._manager, _utcnow())
