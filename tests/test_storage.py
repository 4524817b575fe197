"""Unit tests for the Hookline storage layer.

These tests use qdrant-client's local in-memory mode for fast, isolated testing.
No external Qdrant server is required.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from qdrant_client import AsyncQdrantClient, models

from hookline.exceptions import NotFoundError, StorageError, ValidationError
from hookline.models import DeliveryRecord, DeliveryStatus, Subscription, SubscriptionStatus
from hookline.storage import HooklineStorage, WebhookStore

from conftest import T0


@pytest.fixture
async def storage():
    """Create an in-memory storage instance for testing."""
    store = HooklineStorage(prefix="test")
    # Override with in-memory client
    store._client = AsyncQdrantClient(location=":memory:")
    await store._ensure_collections()
    store._collections_initialized = True

    yield store

    await store.close()


def _subscription(sub_id: str, **kwargs: object) -> Subscription:
    defaults: dict[str, object] = {
        "id": sub_id,
        "url": "https://example.com/hook",
        "secret": "s3cr3t",
        "created_at": T0,
        "updated_at": T0,
    }
    defaults.update(kwargs)
    return Subscription(**defaults)  # type: ignore[arg-type]


class TestHooklineStorageInit:
    """Tests for storage initialization."""

    async def test_creates_collections(self, storage: HooklineStorage) -> None:
        collections = await storage.client.get_collections()
        names = {c.name for c in collections.collections}

        assert {"test_subscriptions", "test_deliveries"} <= names

    async def test_uninitialized_client_raises(self) -> None:
        store = HooklineStorage(prefix="test")
        with pytest.raises(RuntimeError, match="not initialized"):
            _ = store.client

    async def test_initialize_memory_location(self) -> None:
        async with HooklineStorage(url=":memory:", prefix="mem") as store:
            stats = await store.get_stats()
            assert stats.subscriptions == 0
            assert stats.deliveries == 0

    def test_satisfies_protocol(self) -> None:
        assert isinstance(HooklineStorage(), WebhookStore)

    def test_point_id_is_deterministic_uuid(self) -> None:
        first = HooklineStorage._key_to_point_id("sub_abc")
        assert first == HooklineStorage._key_to_point_id("sub_abc")
        assert first != HooklineStorage._key_to_point_id("sub_abd")
        assert len(first) == 36


class TestSubscriptions:
    """Tests for subscription persistence."""

    async def test_save_and_get(self, storage: HooklineStorage) -> None:
        subscription = _subscription("sub_1", name="Orders", events=["user.created"])
        await storage.save_subscription(subscription)

        loaded = await storage.get_subscription("sub_1")

        assert loaded is not None
        assert loaded is not subscription
        assert loaded.name == "Orders"
        assert str(loaded.url) == "https://example.com/hook"
        assert loaded.secret == "s3cr3t"
        assert loaded.created_at == T0

    async def test_get_missing(self, storage: HooklineStorage) -> None:
        assert await storage.get_subscription("sub_missing") is None

    async def test_update_overwrites_fields(self, storage: HooklineStorage) -> None:
        subscription = _subscription("sub_1")
        await storage.save_subscription(subscription)

        subscription.secret = "n3w"
        subscription.previous_secret = "s3cr3t"
        subscription.secret_rotated_at = T0
        await storage.save_subscription(subscription)

        loaded = await storage.get_subscription("sub_1")
        assert loaded is not None
        assert loaded.secret == "n3w"
        assert loaded.previous_secret == "s3cr3t"
        assert loaded.secret_rotated_at == T0

    async def test_save_does_not_clobber_counters(self, storage: HooklineStorage) -> None:
        """A stale copy saved after an increment keeps the stored counters."""
        subscription = _subscription("sub_1")
        await storage.save_subscription(subscription)
        stale = await storage.get_subscription("sub_1")
        assert stale is not None

        await storage.increment_subscription_counter("sub_1", "success", T0)
        stale.name = "Renamed"
        await storage.save_subscription(stale)

        loaded = await storage.get_subscription("sub_1")
        assert loaded is not None
        assert loaded.name == "Renamed"
        assert loaded.success_count == 1

    async def test_list_by_status(self, storage: HooklineStorage) -> None:
        await storage.save_subscription(_subscription("sub_a"))
        await storage.save_subscription(
            _subscription("sub_p", status=SubscriptionStatus.PAUSED)
        )

        active = await storage.list_subscriptions(status=SubscriptionStatus.ACTIVE)
        everything = await storage.list_subscriptions()

        assert [s.id for s in active] == ["sub_a"]
        assert {s.id for s in everything} == {"sub_a", "sub_p"}

    async def test_list_for_event(self, storage: HooklineStorage) -> None:
        await storage.save_subscription(_subscription("sub_users", events=["user.created"]))
        await storage.save_subscription(_subscription("sub_orders", events=["order.paid"]))
        await storage.save_subscription(_subscription("sub_all", events=[]))
        await storage.save_subscription(
            _subscription(
                "sub_paused", events=["user.created"], status=SubscriptionStatus.PAUSED
            )
        )

        result = await storage.list_subscriptions_for_event("user.created")

        assert {s.id for s in result} == {"sub_users", "sub_all"}

    async def test_list_with_previous_secret(self, storage: HooklineStorage) -> None:
        await storage.save_subscription(_subscription("sub_plain"))
        await storage.save_subscription(
            _subscription("sub_rotated", previous_secret="old", secret_rotated_at=T0)
        )

        result = await storage.list_subscriptions_with_previous_secret()

        assert [s.id for s in result] == ["sub_rotated"]

    async def test_delete(self, storage: HooklineStorage) -> None:
        await storage.save_subscription(_subscription("sub_1"))

        assert await storage.delete_subscription("sub_1") is True
        assert await storage.delete_subscription("sub_1") is False
        assert await storage.get_subscription("sub_1") is None


class TestCounters:
    """Tests for increment_subscription_counter()."""

    async def test_success_and_failure(self, storage: HooklineStorage) -> None:
        await storage.save_subscription(_subscription("sub_1"))
        later = T0 + timedelta(minutes=5)

        await storage.increment_subscription_counter("sub_1", "success", T0)
        await storage.increment_subscription_counter("sub_1", "failure", later)

        loaded = await storage.get_subscription("sub_1")
        assert loaded is not None
        assert loaded.success_count == 1
        assert loaded.failure_count == 1
        assert loaded.last_success_at == T0
        assert loaded.last_failure_at == later
        assert loaded.last_triggered_at == later

    async def test_concurrent_increments_not_lost(self, storage: HooklineStorage) -> None:
        await storage.save_subscription(_subscription("sub_1"))

        await asyncio.gather(
            *(storage.increment_subscription_counter("sub_1", "failure", T0) for _ in range(20))
        )

        loaded = await storage.get_subscription("sub_1")
        assert loaded is not None
        assert loaded.failure_count == 20

    async def test_unknown_subscription(self, storage: HooklineStorage) -> None:
        with pytest.raises(NotFoundError):
            await storage.increment_subscription_counter("sub_missing", "success", T0)

    async def test_invalid_outcome(self, storage: HooklineStorage) -> None:
        with pytest.raises(ValidationError):
            await storage.increment_subscription_counter("sub_1", "maybe", T0)  # type: ignore[arg-type]


class TestDeliveries:
    """Tests for delivery record persistence."""

    async def test_save_and_get(self, storage: HooklineStorage) -> None:
        record = DeliveryRecord(
            id="dlv_1",
            subscription_id="sub_1",
            event_type="user.created",
            payload={"user_id": 42, "tags": ["a", "b"]},
            created_at=T0,
        )
        await storage.save_delivery(record)

        loaded = await storage.get_delivery("dlv_1")

        assert loaded is not None
        assert loaded.payload == {"user_id": 42, "tags": ["a", "b"]}
        assert loaded.status == DeliveryStatus.PENDING

    async def test_save_replaces_state(self, storage: HooklineStorage) -> None:
        record = DeliveryRecord(id="dlv_1", subscription_id="sub_1", event_type="e")
        await storage.save_delivery(record)
        record.start_attempt()
        record.mark_failed("HTTP 500", response_code=500)
        await storage.save_delivery(record)

        loaded = await storage.get_delivery("dlv_1")
        assert loaded is not None
        assert loaded.status == DeliveryStatus.FAILED
        assert loaded.attempts == 1
        assert loaded.response_code == 500

    async def test_get_missing(self, storage: HooklineStorage) -> None:
        assert await storage.get_delivery("dlv_missing") is None

    async def test_corrupt_payload_raises_storage_error(self, storage: HooklineStorage) -> None:
        await storage.client.upsert(
            collection_name="test_deliveries",
            points=[
                models.PointStruct(
                    id=storage._key_to_point_id("dlv_bad"),
                    vector=[0.0],
                    payload={"id": "dlv_bad", "status": "exploded"},
                )
            ],
        )

        with pytest.raises(StorageError, match="dlv_bad"):
            await storage.get_delivery("dlv_bad")

    async def test_list_filters_and_orders(self, storage: HooklineStorage) -> None:
        for i in range(3):
            await storage.save_delivery(
                DeliveryRecord(
                    id=f"dlv_{i}",
                    subscription_id="sub_1",
                    event_type="user.created",
                    created_at=T0 + timedelta(minutes=i),
                )
            )
        await storage.save_delivery(
            DeliveryRecord(id="dlv_other", subscription_id="sub_2", event_type="user.created")
        )
        failed = DeliveryRecord(
            id="dlv_failed", subscription_id="sub_1", event_type="e", created_at=T0
        )
        failed.start_attempt()
        failed.mark_failed("boom")
        await storage.save_delivery(failed)

        pending = await storage.list_deliveries(
            subscription_id="sub_1", status=DeliveryStatus.PENDING
        )
        limited = await storage.list_deliveries(subscription_id="sub_1", limit=2)
        failed_only = await storage.list_deliveries(status=DeliveryStatus.FAILED)

        assert [d.id for d in pending] == ["dlv_2", "dlv_1", "dlv_0"]
        assert len(limited) == 2
        assert [d.id for d in failed_only] == ["dlv_failed"]
