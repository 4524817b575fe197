"""Repository interface consumed by the delivery engine.

The dispatcher, rotation sweep and API only talk to this protocol. The
Qdrant-backed :class:`~hookline.storage.HooklineStorage` implements it;
tests substitute ``AsyncMock`` objects.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from hookline.models import (
        DeliveryRecord,
        DeliveryStatus,
        Subscription,
        SubscriptionStatus,
    )

CounterOutcome = Literal["success", "failure"]


@runtime_checkable
class WebhookStore(Protocol):
    """Load/save for subscriptions and deliveries plus atomic counters."""

    async def get_subscription(self, subscription_id: str) -> Subscription | None: ...

    async def save_subscription(self, subscription: Subscription) -> str: ...

    async def list_subscriptions(
        self,
        status: SubscriptionStatus | None = None,
        limit: int | None = None,
    ) -> list[Subscription]: ...

    async def list_subscriptions_for_event(self, event_type: str) -> list[Subscription]: ...

    async def list_subscriptions_with_previous_secret(self) -> list[Subscription]: ...

    async def delete_subscription(self, subscription_id: str) -> bool: ...

    async def get_delivery(self, delivery_id: str) -> DeliveryRecord | None: ...

    async def save_delivery(self, delivery: DeliveryRecord) -> str: ...

    async def list_deliveries(
        self,
        subscription_id: str | None = None,
        status: DeliveryStatus | None = None,
        limit: int = 100,
    ) -> list[DeliveryRecord]: ...

    async def increment_subscription_counter(
        self,
        subscription_id: str,
        outcome: CounterOutcome,
        triggered_at: datetime,
    ) -> None: ...


__all__ = ["CounterOutcome", "WebhookStore"]
