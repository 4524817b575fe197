"""Subscription storage operations for Hookline."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime
from typing import TYPE_CHECKING, Any

from qdrant_client import models

from hookline.exceptions import NotFoundError, ValidationError

from .retry import qdrant_retry

if TYPE_CHECKING:
    from hookline.models import Subscription, SubscriptionStatus

    from .protocol import CounterOutcome

# Written only through increment_subscription_counter
COUNTER_FIELDS = frozenset(
    {
        "success_count",
        "failure_count",
        "last_triggered_at",
        "last_success_at",
        "last_failure_at",
    }
)


class SubscriptionMixin:
    """Mixin providing subscription operations for HooklineStorage.

    This mixin expects the following attributes/methods from the base class:
    - _collection_name(entity) -> str
    - _key_to_point_id(key) -> str
    - _zero_vector() -> list[float]
    - _model_to_payload(model) -> dict
    - _payload_to_model(payload, model_class) -> ModelT
    - _scroll_all(collection_name, scroll_filter) -> list[dict]
    - client: AsyncQdrantClient
    """

    _collection_name: Any
    _key_to_point_id: Any
    _zero_vector: Any
    _model_to_payload: Any
    _payload_to_model: Any
    _scroll_all: Any
    client: Any

    _counter_locks: defaultdict[str, asyncio.Lock]

    def _counter_lock(self, subscription_id: str) -> asyncio.Lock:
        return self._counter_locks[subscription_id]

    @qdrant_retry
    async def _retrieve_subscription_payload(self, subscription_id: str) -> dict[str, Any] | None:
        results = await self.client.retrieve(
            collection_name=self._collection_name("subscriptions"),
            ids=[self._key_to_point_id(subscription_id)],
            with_payload=True,
        )
        if not results:
            return None
        payload: dict[str, Any] | None = results[0].payload
        return payload

    async def get_subscription(self, subscription_id: str) -> Subscription | None:
        """Get a subscription by ID.

        Args:
            subscription_id: ID of the subscription.

        Returns:
            Subscription or None if not found.
        """
        from hookline.models import Subscription

        payload = await self._retrieve_subscription_payload(subscription_id)
        if payload is None:
            return None
        subscription: Subscription = self._payload_to_model(payload, Subscription)
        return subscription

    @qdrant_retry
    async def save_subscription(self, subscription: Subscription) -> str:
        """Store or update a subscription.

        A new subscription is written whole. For an existing one every field
        except the delivery counters is overwritten, so a save never loses an
        increment made concurrently by a worker.

        Args:
            subscription: Subscription to store.

        Returns:
            The subscription ID.
        """
        collection = self._collection_name("subscriptions")
        point_id = self._key_to_point_id(subscription.id)
        payload = self._model_to_payload(subscription)

        existing = await self.client.retrieve(
            collection_name=collection,
            ids=[point_id],
            with_payload=False,
        )

        if not existing:
            await self.client.upsert(
                collection_name=collection,
                points=[
                    models.PointStruct(
                        id=point_id,
                        vector=self._zero_vector(),
                        payload=payload,
                    )
                ],
            )
            return subscription.id

        for field_name in COUNTER_FIELDS:
            payload.pop(field_name, None)
        await self.client.set_payload(
            collection_name=collection,
            payload=payload,
            points=[point_id],
        )
        return subscription.id

    @qdrant_retry
    async def list_subscriptions(
        self,
        status: SubscriptionStatus | None = None,
        limit: int | None = None,
    ) -> list[Subscription]:
        """List subscriptions, optionally filtered by status.

        Args:
            status: Only return subscriptions in this status.
            limit: Maximum subscriptions to return. None returns all.

        Returns:
            Subscriptions ordered by creation time.
        """
        from hookline.models import Subscription

        scroll_filter = None
        if status is not None:
            scroll_filter = models.Filter(
                must=[
                    models.FieldCondition(
                        key="status",
                        match=models.MatchValue(value=status.value),
                    )
                ]
            )

        payloads = await self._scroll_all(self._collection_name("subscriptions"), scroll_filter)
        subscriptions: list[Subscription] = [
            self._payload_to_model(p, Subscription) for p in payloads
        ]
        subscriptions.sort(key=lambda s: s.created_at)
        if limit is not None:
            return subscriptions[:limit]
        return subscriptions

    async def list_subscriptions_for_event(self, event_type: str) -> list[Subscription]:
        """Active subscriptions that listen to the event type."""
        from hookline.models import SubscriptionStatus

        active = await self.list_subscriptions(status=SubscriptionStatus.ACTIVE)
        return [s for s in active if s.listens_to(event_type)]

    async def list_subscriptions_with_previous_secret(self) -> list[Subscription]:
        """Subscriptions still holding a rotated-out secret."""
        subscriptions = await self.list_subscriptions()
        return [s for s in subscriptions if s.previous_secret]

    async def increment_subscription_counter(
        self,
        subscription_id: str,
        outcome: CounterOutcome,
        triggered_at: datetime,
    ) -> None:
        """Bump success/failure counters and timestamps for one finished attempt.

        Serialized per subscription inside this process.

        Raises:
            ValidationError: If outcome is not "success" or "failure".
            NotFoundError: If the subscription does not exist.
        """
        if outcome not in ("success", "failure"):
            raise ValidationError("outcome", f"expected 'success' or 'failure', got {outcome!r}")

        async with self._counter_lock(subscription_id):
            payload = await self._retrieve_subscription_payload(subscription_id)
            if payload is None:
                raise NotFoundError("subscription", subscription_id)

            stamp = triggered_at.isoformat()
            update: dict[str, Any] = {"last_triggered_at": stamp}
            if outcome == "success":
                update["success_count"] = int(payload.get("success_count") or 0) + 1
                update["last_success_at"] = stamp
            else:
                update["failure_count"] = int(payload.get("failure_count") or 0) + 1
                update["last_failure_at"] = stamp

            await self._set_subscription_payload(subscription_id, update)

    @qdrant_retry
    async def _set_subscription_payload(self, subscription_id: str, update: dict[str, Any]) -> None:
        await self.client.set_payload(
            collection_name=self._collection_name("subscriptions"),
            payload=update,
            points=[self._key_to_point_id(subscription_id)],
        )

    @qdrant_retry
    async def delete_subscription(self, subscription_id: str) -> bool:
        """Delete a subscription.

        Returns:
            True if a subscription was deleted.
        """
        collection = self._collection_name("subscriptions")
        point_id = self._key_to_point_id(subscription_id)

        existing = await self.client.retrieve(
            collection_name=collection,
            ids=[point_id],
            with_payload=False,
        )
        if not existing:
            return False

        await self.client.delete(
            collection_name=collection,
            points_selector=models.PointIdsList(points=[point_id]),
        )
        return True
