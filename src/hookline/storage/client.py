"""Qdrant storage client for Hookline.

This module provides the main HooklineStorage class that combines
all storage operations through mixins.

Example:
    ```python
    from hookline.storage import HooklineStorage

    async with HooklineStorage() as storage:
        await storage.save_subscription(subscription)
        record = await storage.get_delivery("dlv_abc123")
    ```
"""

from __future__ import annotations

import asyncio
from collections import defaultdict

from pydantic import BaseModel, ConfigDict, Field

from .base import StorageBase
from .deliveries import DeliveryMixin
from .subscriptions import SubscriptionMixin


class StorageStats(BaseModel):
    """Point counts per collection."""

    model_config = ConfigDict(extra="forbid")

    subscriptions: int = Field(default=0, ge=0)
    deliveries: int = Field(default=0, ge=0)


class HooklineStorage(SubscriptionMixin, DeliveryMixin, StorageBase):
    """Async Qdrant storage for subscriptions and delivery records.

    This class combines functionality from multiple mixins:
    - SubscriptionMixin: get/save/list subscriptions, atomic counters
    - DeliveryMixin: get/save/list delivery records

    Counter increments are serialized per subscription within one process.
    Several processes sharing a collection need an external lock.
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        prefix: str | None = None,
    ) -> None:
        super().__init__(url=url, api_key=api_key, prefix=prefix)
        self._counter_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def __aenter__(self) -> HooklineStorage:
        await self.initialize()
        return self

    async def get_stats(self) -> StorageStats:
        """Count stored subscriptions and delivery records."""
        subscriptions = await self.client.count(
            collection_name=self._collection_name("subscriptions"), exact=True
        )
        deliveries = await self.client.count(
            collection_name=self._collection_name("deliveries"), exact=True
        )
        return StorageStats(subscriptions=subscriptions.count, deliveries=deliveries.count)
