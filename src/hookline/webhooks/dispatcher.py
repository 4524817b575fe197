"""Outbound webhook delivery.

One call to :meth:`WebhookDispatcher.attempt` is one delivery attempt:

1. skip inactive subscriptions and terminal records,
2. merge delivery metadata into a copy of the stored payload,
3. sign the merged payload with the subscription's current secret,
4. POST it, bounded by the subscription's timeout,
5. record the outcome on the delivery record and the subscription counters,
6. persist, then either schedule the next attempt or give up.

Attempts never raise. Timeouts, connection errors and non-2xx responses all
become a ``failed`` record and, while attempts remain, a delayed retry task.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

import httpx

from hookline.config import settings as default_settings
from hookline.exceptions import ConfigurationError, HooklineError
from hookline.logging import get_logger
from hookline.models import DeliveryRecord, DeliveryStatus
from hookline.models.base import Clock, utc_now
from hookline.queue.retry import enqueue_retry

from .retry import RetryPolicy
from .signing import canonical_json, sign

if TYPE_CHECKING:
    from datetime import datetime

    from hookline.config import Settings
    from hookline.models import Subscription
    from hookline.queue import TaskQueue
    from hookline.storage import WebhookStore

logger = get_logger(__name__)

ExhaustedCallback = Callable[["Subscription", DeliveryRecord], Awaitable[None]]

INTERRUPTED_ERROR = "Attempt interrupted before completion"


class WebhookDispatcher:
    """Creates delivery records and runs delivery attempts.

    Example:
        ```python
        dispatcher = WebhookDispatcher(storage, queue)

        # Fan an event out to every listening subscription
        await dispatcher.dispatch_event("user.created", {"user_id": 42})

        # Worker side: one attempt per claimed task
        await dispatcher.run(task.delivery_id)
        ```
    """

    def __init__(
        self,
        storage: WebhookStore,
        queue: TaskQueue,
        *,
        retry_policy: RetryPolicy | None = None,
        settings: Settings | None = None,
        clock: Clock | None = None,
        on_exhausted: ExhaustedCallback | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            storage: Repository for subscriptions and delivery records.
            queue: Task queue that schedules attempts.
            retry_policy: Backoff policy. Defaults to the configured one.
            settings: Header names, User-Agent and body truncation.
            clock: Injectable "now" source.
            on_exhausted: Awaited once when a delivery fails for good.
        """
        self._storage = storage
        self._queue = queue
        self._settings = settings or default_settings
        self._retry_policy = retry_policy or RetryPolicy.from_settings(self._settings)
        self._clock = clock or utc_now
        self._on_exhausted = on_exhausted

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def enqueue(
        self,
        subscription: Subscription,
        event_type: str,
        payload: Mapping[str, Any],
    ) -> DeliveryRecord:
        """Create a pending delivery record and schedule its first attempt.

        The record is persisted before the task is enqueued, so a worker
        always finds it.
        """
        record = DeliveryRecord(
            subscription_id=subscription.id,
            event_type=event_type,
            payload=copy.deepcopy(dict(payload)),
            created_at=self._clock(),
        )
        await self._storage.save_delivery(record)
        await self._enqueue(record.id, 0)

        logger.info(
            "Delivery enqueued",
            delivery_id=record.id,
            subscription_id=subscription.id,
            event_type=event_type,
        )
        return record

    async def dispatch_event(
        self,
        event_type: str,
        payload: Mapping[str, Any],
    ) -> list[DeliveryRecord]:
        """Enqueue one delivery per active subscription listening to the event.

        Returns:
            Delivery records created, one per subscription.
        """
        subscriptions = await self._storage.list_subscriptions_for_event(event_type)
        if not subscriptions:
            logger.debug("No subscriptions for event", event_type=event_type)
            return []

        records: list[DeliveryRecord] = []
        for subscription in subscriptions:
            records.append(await self.enqueue(subscription, event_type, payload))
        return records

    async def run(self, delivery_id: str) -> DeliveryRecord | None:
        """Worker entrypoint: load the record and subscription, then attempt.

        Returns:
            The updated record, or None when the record or its subscription
            no longer exists.
        """
        record = await self._storage.get_delivery(delivery_id)
        if record is None:
            logger.warning("Delivery not found, dropping task", delivery_id=delivery_id)
            return None

        subscription = await self._storage.get_subscription(record.subscription_id)
        if subscription is None:
            logger.warning(
                "Subscription not found, dropping task",
                delivery_id=delivery_id,
                subscription_id=record.subscription_id,
            )
            return None

        return await self.attempt(subscription, record)

    async def attempt(self, subscription: Subscription, record: DeliveryRecord) -> DeliveryRecord:
        """Run one delivery attempt and persist its outcome."""
        if not subscription.is_active():
            logger.info(
                "Subscription inactive, skipping attempt",
                delivery_id=record.id,
                subscription_id=subscription.id,
                status=subscription.status.value,
            )
            return record

        if record.is_terminal(subscription.max_retries):
            logger.info(
                "Delivery already terminal, skipping attempt",
                delivery_id=record.id,
                status=record.status.value,
                attempts=record.attempts,
            )
            return record

        # Left in processing by a worker whose lease expired
        if record.status == DeliveryStatus.PROCESSING:
            record.mark_failed(INTERRUPTED_ERROR, now=self._clock())
            if record.is_terminal(subscription.max_retries):
                await self._save(record)
                await self._give_up(subscription, record)
                return record

        record.start_attempt()
        if not await self._save(record):
            # Stored state is unchanged; run the same attempt again later
            await self._schedule(record.id, self._retry_policy.next_delay_ms(record.attempts))
            return record

        now = self._clock()
        max_chars = self._settings.response_body_max_chars
        try:
            body, headers = self._prepare_request(subscription, record, now)
            response = await asyncio.wait_for(
                self._post(str(subscription.url), body, headers, subscription.timeout_seconds),
                timeout=subscription.timeout_seconds,
            )
            if 200 <= response.status_code < 300:
                record.mark_successful(
                    response_code=response.status_code,
                    response_body=response.text,
                    now=self._clock(),
                    max_body_chars=max_chars,
                )
            else:
                record.mark_failed(
                    f"HTTP {response.status_code}",
                    response_code=response.status_code,
                    response_body=response.text,
                    now=self._clock(),
                    max_body_chars=max_chars,
                )
        except (httpx.TimeoutException, TimeoutError):
            record.mark_failed(
                f"Request timed out after {subscription.timeout_seconds}s", now=self._clock()
            )
        except httpx.HTTPError as e:
            record.mark_failed(f"Request failed: {e}", now=self._clock())
        except HooklineError as e:
            record.mark_failed(e.message, now=self._clock())
        except Exception as e:
            logger.exception("Unexpected delivery error", delivery_id=record.id)
            record.mark_failed(f"Unexpected error: {e}", now=self._clock())

        await self._record_outcome(subscription, record)
        return record

    async def retry_delivery(self, delivery_id: str) -> bool:
        """Manually schedule another attempt of a failed delivery.

        The attempt runs after the same backoff an automatic retry would
        wait, so a manual retry never bypasses the retry schedule.

        Returns:
            True if an attempt was enqueued. False when the record or its
            subscription is missing, the subscription is inactive, or the
            record is not failed with attempts remaining.
        """
        record = await self._storage.get_delivery(delivery_id)
        if record is None:
            return False
        subscription = await self._storage.get_subscription(record.subscription_id)
        if subscription is None or not subscription.is_active():
            return False
        if not record.can_retry(subscription.max_retries):
            return False

        delay_ms = self._retry_policy.next_delay_ms(max(record.attempts, 1))
        await self._enqueue(record.id, delay_ms)
        logger.info(
            "Manual retry enqueued",
            delivery_id=record.id,
            attempts=record.attempts,
            delay_ms=delay_ms,
        )
        return True

    def build_payload(
        self,
        subscription: Subscription,
        record: DeliveryRecord,
        now: datetime,
    ) -> dict[str, Any]:
        """Stored payload plus ``webhook`` and ``event`` metadata.

        Works on a deep copy; the record's payload is never touched.
        """
        merged = copy.deepcopy(dict(record.payload))
        merged["webhook"] = {"id": subscription.id, "name": subscription.name}
        merged["event"] = {
            "type": record.event_type,
            "id": record.id,
            "timestamp": now.isoformat(),
        }
        return merged

    def build_headers(
        self,
        subscription: Subscription,
        signature: str,
        now: datetime,
    ) -> dict[str, str]:
        security = self._settings.security
        return {
            "Content-Type": "application/json",
            security.signature_header: signature,
            security.timestamp_header: str(int(now.timestamp())),
            security.id_header: subscription.id,
            "User-Agent": self._settings.user_agent,
        }

    def _prepare_request(
        self,
        subscription: Subscription,
        record: DeliveryRecord,
        now: datetime,
    ) -> tuple[bytes, dict[str, str]]:
        if not subscription.secret:
            raise ConfigurationError(f"Subscription {subscription.id} has no secret")
        payload = self.build_payload(subscription, record, now)
        signature = sign(payload, subscription.secret)
        return canonical_json(payload), self.build_headers(subscription, signature, now)

    @staticmethod
    async def _post(
        url: str,
        body: bytes,
        headers: dict[str, str],
        timeout_seconds: float,
    ) -> httpx.Response:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            return await client.post(url, content=body, headers=headers)

    async def _record_outcome(self, subscription: Subscription, record: DeliveryRecord) -> None:
        succeeded = record.status == DeliveryStatus.SUCCESSFUL
        await self._save(record)
        try:
            await self._storage.increment_subscription_counter(
                subscription.id,
                "success" if succeeded else "failure",
                record.completed_at or self._clock(),
            )
        except Exception:
            logger.exception(
                "Could not update subscription counters",
                delivery_id=record.id,
                subscription_id=subscription.id,
            )

        if succeeded:
            logger.info(
                "Webhook delivered",
                delivery_id=record.id,
                subscription_id=subscription.id,
                event_type=record.event_type,
                response_code=record.response_code,
                attempts=record.attempts,
            )
            return

        if self._retry_policy.is_exhausted(record.attempts, subscription.max_retries):
            await self._give_up(subscription, record)
            return

        delay_ms = self._retry_policy.next_delay_ms(record.attempts)
        logger.info(
            "Webhook attempt failed, retry scheduled",
            delivery_id=record.id,
            subscription_id=subscription.id,
            attempts=record.attempts,
            delay_ms=delay_ms,
            error=record.error_message,
        )
        await self._schedule(record.id, delay_ms)

    async def _save(self, record: DeliveryRecord) -> bool:
        """Persist the record. A storage failure is logged, never raised."""
        try:
            await self._storage.save_delivery(record)
        except Exception:
            logger.exception(
                "Could not persist delivery record",
                delivery_id=record.id,
                status=record.status.value,
                attempts=record.attempts,
            )
            return False
        return True

    async def _schedule(self, delivery_id: str, delay_ms: int) -> None:
        try:
            await self._enqueue(delivery_id, delay_ms)
        except HooklineError:
            # Record stays failed with attempts remaining; retry_delivery resumes it
            logger.exception("Could not schedule retry", delivery_id=delivery_id)

    async def _give_up(self, subscription: Subscription, record: DeliveryRecord) -> None:
        logger.error(
            "Webhook delivery failed permanently",
            delivery_id=record.id,
            subscription_id=subscription.id,
            url=str(subscription.url),
            event_type=record.event_type,
            attempts=record.attempts,
            error=record.error_message,
        )
        if self._on_exhausted is None:
            return
        try:
            await self._on_exhausted(subscription, record)
        except Exception:
            logger.exception("Exhausted-delivery callback failed", delivery_id=record.id)

    @enqueue_retry
    async def _enqueue(self, delivery_id: str, delay_ms: int) -> None:
        await self._queue.enqueue(delivery_id, delay_ms)
