"""
Webhook Emitter
===============

Fire-and-forget delivery of ticket webhooks.

Each envelope is posted from a detached asyncio task: a bounded timeout
per attempt, one retry after a fixed delay, then the envelope is dropped.
Nothing is reported back to the request that produced it; failures only
show up in the logs.
"""

import asyncio
from typing import Iterable, List, Optional, Set

import httpx

from helpdesk.config import settings
from helpdesk.core import WebhookDeliveryException
from helpdesk.notifications.domain import WebhookConfig, WebhookEnvelope
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class WebhookEmitter:
    """
    Posts webhook envelopes in the background.

    `transport` is only set by tests (httpx.MockTransport).
    """

    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        retry_delay_seconds: Optional[float] = None,
        max_attempts: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout_seconds if timeout_seconds is not None else settings.webhook_timeout_seconds
        self._retry_delay = (
            retry_delay_seconds if retry_delay_seconds is not None else settings.webhook_retry_delay_seconds
        )
        self._max_attempts = max_attempts
        self._transport = transport
        self._tasks: Set[asyncio.Task] = set()

    def emit(self, config: WebhookConfig, envelopes: Iterable[WebhookEnvelope]) -> List[asyncio.Task]:
        """Schedule delivery and return immediately."""
        envelopes = list(envelopes)
        if not envelopes:
            return []
        if not config.active:
            logger.debug("Webhook disabled, skipping", extra={"envelopes": len(envelopes)})
            return []

        tasks = []
        for envelope in envelopes:
            task = asyncio.create_task(self._deliver(config.url, envelope))
            # Keep a strong reference until the task finishes
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            tasks.append(task)
        return tasks

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _deliver(self, url: str, envelope: WebhookEnvelope) -> bool:
        extra = {"webhook_type": envelope.type.value, "idempotency_key": envelope.idempotency_key}
        try:
            for attempt in range(1, self._max_attempts + 1):
                try:
                    await self._post(url, envelope)
                    logger.info("Webhook delivered", extra={**extra, "attempt": attempt})
                    return True
                except WebhookDeliveryException as e:
                    logger.warning(
                        "Webhook attempt failed",
                        extra={**extra, "attempt": attempt, "error": e.message},
                    )
                if attempt < self._max_attempts:
                    await asyncio.sleep(self._retry_delay)

            logger.error("Webhook dropped after retry", extra=extra)
            return False
        except Exception:
            logger.exception("Unexpected webhook failure", extra=extra)
            return False

    async def _post(self, url: str, envelope: WebhookEnvelope) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, json=envelope.to_payload())
        except httpx.HTTPError as e:
            raise WebhookDeliveryException(str(e) or e.__class__.__name__) from e

        if response.status_code >= 400:
            raise WebhookDeliveryException(
                f"endpoint returned HTTP {response.status_code}",
                {"status_code": response.status_code},
            )


webhook_emitter = WebhookEmitter()
