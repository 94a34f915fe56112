from datetime import datetime, timezone

import httpx
import pytest

from helpdesk.config import NotificationType, TicketEventType, WebhookEventType
from helpdesk.notifications.application import EventDispatcher
from helpdesk.notifications.domain import TicketEvent, TicketSnapshot, WebhookConfig, WebhookEnvelope
from helpdesk.notifications.infrastructure import WebhookEmitter

T = datetime(2024, 3, 5, 13, 0, tzinfo=timezone.utc)

TICKET = TicketSnapshot(
    id="t-1",
    number=7,
    title="Impressora sem toner",
    status="ABERTO",
    priority="MEDIA",
    created_by="creator",
    requester_sector_id="dp",
    target_sector_id="tech",
    assignee_ids=("agent-1", "agent-2"),
)


class FakeEventLog:
    def __init__(self):
        self.events = []

    async def add_event(self, ticket_id, actor_user_id, event_type, data, at):
        self.events.append((ticket_id, actor_user_id, event_type))


class FakeNotifications:
    def __init__(self):
        self.drafts = []

    async def add_many(self, draft):
        self.drafts.append(draft)
        return len(draft.recipients)


class FakeSettings:
    def __init__(self, disabled=()):
        self.disabled = set(disabled)

    async def is_enabled(self, notification_type):
        return notification_type not in self.disabled


class FakeAudit:
    def __init__(self):
        self.entries = []

    async def add(self, actor_id, action, target_type=None, target_id=None, metadata=None):
        self.entries.append((actor_id, action, target_id))


class FakeDirectory:
    async def staff_user_ids(self, sector_id):
        return ["staff-1", "agent-1"] if sector_id == "tech" else []

    async def admin_user_ids(self):
        return ["admin-1"]


@pytest.fixture
def fakes():
    return {
        "event_log": FakeEventLog(),
        "notification_repository": FakeNotifications(),
        "settings_repository": FakeSettings(),
        "audit_repository": FakeAudit(),
        "directory": FakeDirectory(),
    }


@pytest.fixture
def dispatcher(fakes):
    return EventDispatcher(**fakes)


def event(event_type, actor_id="actor", **data):
    return TicketEvent(type=event_type, ticket=TICKET, actor_id=actor_id, at=T, data=data, actor_name="Ana")


async def test_created_notifies_staff_admins_and_assignees(dispatcher, fakes):
    draft = await dispatcher.dispatch(event(TicketEventType.TICKET_CREATED))

    assert draft.type == NotificationType.TICKET_CREATED
    assert draft.recipients == ("staff-1", "agent-1", "admin-1", "agent-2")
    assert draft.link_url == "/tickets/t-1"
    assert fakes["event_log"].events == [("t-1", "actor", TicketEventType.TICKET_CREATED)]


async def test_actor_never_notifies_themselves(dispatcher):
    draft = await dispatcher.dispatch(event(TicketEventType.STATUS_CHANGED, actor_id="agent-1", to="RESOLVIDO"))

    assert draft.recipients == ("creator", "agent-2")
    assert draft.message == "Chamado #7 alterado para: Resolvido"


async def test_assignment_notifies_only_added_users(dispatcher):
    draft = await dispatcher.dispatch(event(TicketEventType.ASSIGNEES_CHANGED, added=["agent-3", "actor"]))
    assert draft.recipients == ("agent-3",)


async def test_internal_comment_skips_requester(dispatcher):
    public = await dispatcher.dispatch(event(TicketEventType.COMMENT_ADDED, isInternal=False))
    internal = await dispatcher.dispatch(event(TicketEventType.COMMENT_ADDED, isInternal=True))

    assert "creator" in public.recipients
    assert internal.recipients == ("agent-1", "agent-2", "staff-1")


async def test_disabled_type_still_logs_the_event(fakes):
    fakes["settings_repository"] = FakeSettings(disabled={NotificationType.TICKET_COMMENT})
    dispatcher = EventDispatcher(**fakes)

    assert await dispatcher.dispatch(event(TicketEventType.COMMENT_ADDED)) is None
    assert fakes["notification_repository"].drafts == []
    assert len(fakes["event_log"].events) == 1


async def test_events_without_notification_type_are_only_logged(dispatcher, fakes):
    assert await dispatcher.dispatch(event(TicketEventType.PRIORITY_CHANGED)) is None
    assert fakes["event_log"].events[0][2] == TicketEventType.PRIORITY_CHANGED


async def test_outbox_drain_and_discard(dispatcher):
    dispatcher.queue_webhook(WebhookEventType.TICKET_CREATED, {"ticketId": "t-1"}, T)
    assert len(dispatcher.outbox) == 1
    assert len(dispatcher.drain()) == 1
    assert dispatcher.outbox == []

    dispatcher.queue_webhook(WebhookEventType.TICKET_RESOLVED, {"ticketId": "t-1"}, T)
    dispatcher.discard()
    assert dispatcher.drain() == []


def test_envelope_payload_shape():
    envelope = WebhookEnvelope.build(WebhookEventType.TICKET_CREATED, {"ticketId": "t-1", "number": 7}, T)
    payload = envelope.to_payload()

    assert payload == {
        "type": "ticket_created",
        "idempotencyKey": f"ticket_created:t-1:{int(T.timestamp() * 1000)}",
        "timestamp": "2024-03-05T13:00:00Z",
        "data": {"ticketId": "t-1", "number": 7},
    }


async def test_emitter_delivers_each_envelope():
    received = []

    def handler(request):
        received.append(request.headers["content-type"])
        return httpx.Response(204)

    emitter = WebhookEmitter(transport=httpx.MockTransport(handler))
    config = WebhookConfig(url="https://hooks.example.com/helpdesk", enabled=True)
    tasks = emitter.emit(config, [
        WebhookEnvelope.build(WebhookEventType.TICKET_CREATED, {"ticketId": "t-1"}, T),
        WebhookEnvelope.build(WebhookEventType.TICKET_COMMENTED, {"ticketId": "t-1"}, T),
    ])

    assert [await task for task in tasks] == [True, True]
    assert received == ["application/json", "application/json"]
    assert emitter.pending == 0


async def test_emitter_retries_once_then_drops():
    attempts = []

    def handler(request):
        attempts.append(request.url)
        raise httpx.ConnectError("connection refused", request=request)

    emitter = WebhookEmitter(retry_delay_seconds=0, transport=httpx.MockTransport(handler))
    config = WebhookConfig(url="https://unreachable.example.com", enabled=True)
    (task,) = emitter.emit(config, [WebhookEnvelope.build(WebhookEventType.TICKET_CREATED, {"ticketId": "t-1"}, T)])

    assert await task is False
    assert len(attempts) == 2


async def test_emitter_gives_up_after_two_timeouts():
    attempts = []

    def handler(request):
        attempts.append(request.extensions.get("timeout"))
        raise httpx.ReadTimeout("no answer", request=request)

    emitter = WebhookEmitter(timeout_seconds=5, retry_delay_seconds=0, transport=httpx.MockTransport(handler))
    (task,) = emitter.emit(
        WebhookConfig(url="https://slow.example.com", enabled=True),
        [WebhookEnvelope.build(WebhookEventType.TICKET_COMMENTED, {"ticketId": "t-1"}, T)],
    )

    assert await task is False
    assert len(attempts) == 2
    assert attempts[0]["read"] == 5


async def test_emitter_retries_on_server_error():
    statuses = iter([503, 200])
    emitter = WebhookEmitter(
        retry_delay_seconds=0,
        transport=httpx.MockTransport(lambda request: httpx.Response(next(statuses))),
    )
    (task,) = emitter.emit(
        WebhookConfig(url="https://hooks.example.com", enabled=True),
        [WebhookEnvelope.build(WebhookEventType.TICKET_RESOLVED, {"ticketId": "t-1"}, T)],
    )
    assert await task is True


def test_inactive_webhook_config_sends_nothing():
    emitter = WebhookEmitter(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    envelope = WebhookEnvelope.build(WebhookEventType.TICKET_CREATED, {"ticketId": "t-1"}, T)

    assert emitter.emit(WebhookConfig(url="https://hooks.example.com", enabled=False), [envelope]) == []
    assert emitter.emit(WebhookConfig(url="", enabled=True), [envelope]) == []
