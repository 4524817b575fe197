"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from hookline.config import Settings
from hookline.models import DeliveryRecord, Subscription

# Add tests directory to path so shared helpers can be imported
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock for deterministic time-dependent tests."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        """Move forward by a timedelta given as keyword arguments."""
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """Clock pinned to T0."""
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with defaults, independent of the environment."""
    return Settings(env="test", product_name="Hookline")


@pytest.fixture
def subscription() -> Subscription:
    """Active subscription with a known secret."""
    return Subscription(
        id="sub_test123",
        name="Orders",
        url="https://example.com/webhook",
        secret="s3cr3t",
        events=["user.created", "user.deleted"],
        max_retries=3,
        timeout_seconds=5,
        created_at=T0,
        updated_at=T0,
    )


@pytest.fixture
def pending_record(subscription: Subscription) -> DeliveryRecord:
    """Fresh pending delivery for the sample subscription."""
    return DeliveryRecord(
        id="dlv_test456",
        subscription_id=subscription.id,
        event_type="user.created",
        payload={"user_id": 42, "email": "ada@example.com"},
        created_at=T0,
    )


@pytest.fixture
def mock_storage() -> AsyncMock:
    """Create a mock storage instance."""
    storage = AsyncMock()
    storage.get_subscription = AsyncMock(return_value=None)
    storage.save_subscription = AsyncMock(side_effect=lambda s: s.id)
    storage.list_subscriptions = AsyncMock(return_value=[])
    storage.list_subscriptions_for_event = AsyncMock(return_value=[])
    storage.list_subscriptions_with_previous_secret = AsyncMock(return_value=[])
    storage.get_delivery = AsyncMock(return_value=None)
    storage.save_delivery = AsyncMock(side_effect=lambda d: d.id)
    storage.list_deliveries = AsyncMock(return_value=[])
    storage.increment_subscription_counter = AsyncMock()
    return storage


@pytest.fixture
def mock_queue() -> AsyncMock:
    """Create a mock task queue."""
    queue = AsyncMock()
    queue.enqueue = AsyncMock()
    queue.claim = AsyncMock(return_value=None)
    queue.complete = AsyncMock()
    queue.extend = AsyncMock(return_value=True)
    return queue
