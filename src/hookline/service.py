"""Hookline service layer.

Wires storage, queue, secret rotation, inbound verification, the dispatcher
and the worker pool behind one object.

Example:
    ```python
    from hookline.service import WebhookService

    async with WebhookService.create() as hooks:
        subscription = await hooks.create_subscription(
            url="https://example.com/hooks",
            events=["user.created"],
        )
        await hooks.dispatch_event("user.created", {"user_id": 42})
    ```
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from hookline.config import Settings
from hookline.exceptions import NotFoundError, ValidationError
from hookline.logging import get_logger
from hookline.models import DeliveryRecord, DeliveryStatus, Subscription, SubscriptionStatus
from hookline.models.base import utc_now
from hookline.queue import DeliveryWorker, InProcessTaskQueue
from hookline.storage import HooklineStorage
from hookline.webhooks import InboundVerifier, SecretRotationManager, WebhookDispatcher
from hookline.workflows import SecretSweepResult, run_periodic_secret_sweep, run_secret_sweep

if TYPE_CHECKING:
    from collections.abc import Mapping

    from hookline.models.base import Clock
    from hookline.webhooks.dispatcher import ExhaustedCallback
    from hookline.webhooks.rotation import RotationResult

logger = get_logger(__name__)


@dataclass
class WebhookService:
    """High-level entry point for subscriptions, deliveries and verification.

    Use :meth:`create` for default wiring. ``start()`` launches the worker
    pool and the daily secret sweep; ``close()`` stops both.
    """

    storage: HooklineStorage
    queue: InProcessTaskQueue
    settings: Settings
    rotation: SecretRotationManager
    verifier: InboundVerifier
    dispatcher: WebhookDispatcher
    worker: DeliveryWorker
    clock: Clock = utc_now
    _sweep_task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        clock: Clock | None = None,
        on_exhausted: ExhaustedCallback | None = None,
    ) -> WebhookService:
        """Create a WebhookService with default dependencies.

        Args:
            settings: Optional settings. Uses defaults if None.
            clock: Injectable "now" source shared by every component.
            on_exhausted: Alert hook awaited when a delivery fails for good.
        """
        if settings is None:
            settings = Settings()

        storage = HooklineStorage(
            url=settings.qdrant_url,
            api_key=settings.qdrant_api_key,
            prefix=settings.collection_prefix,
        )
        queue = InProcessTaskQueue(name=settings.queue_name, clock=clock)
        rotation = SecretRotationManager.from_settings(settings, clock=clock)
        dispatcher = WebhookDispatcher(
            storage,
            queue,
            settings=settings,
            clock=clock,
            on_exhausted=on_exhausted,
        )
        return cls(
            storage=storage,
            queue=queue,
            settings=settings,
            rotation=rotation,
            verifier=InboundVerifier.from_settings(settings, rotation, clock=clock),
            dispatcher=dispatcher,
            worker=DeliveryWorker.from_settings(settings, queue, dispatcher),
            clock=clock or utc_now,
        )

    async def initialize(self) -> None:
        """Initialize the service (storage collections, etc.)."""
        await self.storage.initialize()

    async def start(self) -> None:
        """Start the worker pool and the periodic secret sweep."""
        await self.worker.start()
        if self._sweep_task is None:
            self._sweep_task = asyncio.create_task(
                run_periodic_secret_sweep(
                    self.storage,
                    self.rotation,
                    self.settings.secret_sweep_interval_seconds,
                )
            )

    async def close(self) -> None:
        """Stop background tasks and close storage."""
        await self.worker.stop()
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            await asyncio.gather(self._sweep_task, return_exceptions=True)
            self._sweep_task = None
        self.queue.close()
        await self.storage.close()

    async def __aenter__(self) -> WebhookService:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def create_subscription(
        self,
        url: str,
        name: str = "",
        events: list[str] | None = None,
        timeout_seconds: float | None = None,
        max_retries: int | None = None,
    ) -> Subscription:
        """Register a subscription with a freshly generated secret."""
        subscription = Subscription(
            url=url,
            name=name,
            events=events or [],
            secret=self.rotation.generate_secret(),
            timeout_seconds=timeout_seconds or self.settings.default_timeout_seconds,
            max_retries=(
                self.settings.default_max_retries if max_retries is None else max_retries
            ),
        )
        await self.storage.save_subscription(subscription)
        logger.info("Subscription created", subscription_id=subscription.id)
        return subscription

    async def get_subscription(self, subscription_id: str) -> Subscription:
        """Load a subscription.

        Raises:
            NotFoundError: If it does not exist.
        """
        subscription = await self.storage.get_subscription(subscription_id)
        if subscription is None:
            raise NotFoundError("subscription", subscription_id)
        return subscription

    async def list_subscriptions(
        self,
        status: SubscriptionStatus | None = None,
        limit: int | None = None,
    ) -> list[Subscription]:
        """Subscriptions ordered by creation time, optionally by status."""
        return await self.storage.list_subscriptions(status=status, limit=limit)

    async def update_subscription(
        self,
        subscription_id: str,
        *,
        url: str | None = None,
        name: str | None = None,
        events: list[str] | None = None,
        status: SubscriptionStatus | None = None,
        timeout_seconds: float | None = None,
        max_retries: int | None = None,
    ) -> Subscription:
        """Change a subscription's configuration.

        Only the arguments given are applied. Secrets and delivery counters
        are never changed here; use :meth:`rotate_secret` for the secret.

        Raises:
            NotFoundError: If it does not exist.
            ValidationError: If a new value is invalid.
        """
        subscription = await self.get_subscription(subscription_id)
        changes: dict[str, Any] = {
            key: value
            for key, value in {
                "url": url,
                "name": name,
                "events": events,
                "status": status,
                "timeout_seconds": timeout_seconds,
                "max_retries": max_retries,
            }.items()
            if value is not None
        }
        if not changes:
            return subscription

        data = subscription.model_dump()
        data.update(changes)
        data["updated_at"] = self.clock()
        try:
            updated = Subscription.model_validate(data)
        except PydanticValidationError as e:
            loc = e.errors()[0]["loc"]
            raise ValidationError(str(loc[0]) if loc else "subscription", "invalid value") from e

        await self.storage.save_subscription(updated)
        logger.info(
            "Subscription updated",
            subscription_id=subscription_id,
            fields=sorted(changes),
        )
        return updated

    async def delete_subscription(self, subscription_id: str) -> None:
        """Remove a subscription. Its delivery history is kept.

        Raises:
            NotFoundError: If it does not exist.
        """
        if not await self.storage.delete_subscription(subscription_id):
            raise NotFoundError("subscription", subscription_id)
        logger.info("Subscription deleted", subscription_id=subscription_id)

    async def rotate_secret(
        self,
        subscription_id: str,
        grace_period_days: int | None = None,
    ) -> RotationResult:
        """Rotate a subscription's secret and persist it."""
        subscription = await self.get_subscription(subscription_id)
        result = self.rotation.rotate(subscription, grace_period_days)
        await self.storage.save_subscription(subscription)
        return result

    async def dispatch_event(
        self,
        event_type: str,
        payload: Mapping[str, Any],
    ) -> list[DeliveryRecord]:
        return await self.dispatcher.dispatch_event(event_type, payload)

    async def list_deliveries(
        self,
        subscription_id: str,
        status: DeliveryStatus | None = None,
        limit: int = 100,
    ) -> list[DeliveryRecord]:
        """Delivery history of one subscription, newest first."""
        await self.get_subscription(subscription_id)
        return await self.storage.list_deliveries(
            subscription_id=subscription_id,
            status=status,
            limit=limit,
        )

    async def retry_delivery(self, delivery_id: str) -> bool:
        """Manually retry a failed delivery.

        Raises:
            NotFoundError: If the delivery does not exist.
        """
        if await self.storage.get_delivery(delivery_id) is None:
            raise NotFoundError("delivery", delivery_id)
        return await self.dispatcher.retry_delivery(delivery_id)

    async def verify_inbound(
        self,
        subscription_id: str,
        payload: Mapping[str, Any],
        signature: str | None,
        timestamp: str | None,
    ) -> bool:
        """Validate a signed callback against the subscription's secrets.

        Raises:
            NotFoundError: If the subscription does not exist.
        """
        subscription = await self.get_subscription(subscription_id)
        return self.verifier.validate_inbound(payload, signature, timestamp, subscription)

    async def sweep_secrets(self, dry_run: bool = False) -> SecretSweepResult:
        return await run_secret_sweep(self.storage, self.rotation, dry_run=dry_run)
