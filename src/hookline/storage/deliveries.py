"""Delivery record storage operations for Hookline."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from qdrant_client import models

from .retry import qdrant_retry

if TYPE_CHECKING:
    from hookline.models import DeliveryRecord, DeliveryStatus


class DeliveryMixin:
    """Mixin providing delivery record operations for HooklineStorage."""

    _collection_name: Any
    _key_to_point_id: Any
    _zero_vector: Any
    _model_to_payload: Any
    _payload_to_model: Any
    _scroll_all: Any
    client: Any

    @qdrant_retry
    async def save_delivery(self, delivery: DeliveryRecord) -> str:
        """Store or replace a delivery record.

        Returns:
            The delivery ID.
        """
        await self.client.upsert(
            collection_name=self._collection_name("deliveries"),
            points=[
                models.PointStruct(
                    id=self._key_to_point_id(delivery.id),
                    vector=self._zero_vector(),
                    payload=self._model_to_payload(delivery),
                )
            ],
        )
        return delivery.id

    @qdrant_retry
    async def get_delivery(self, delivery_id: str) -> DeliveryRecord | None:
        """Get a delivery record by ID."""
        from hookline.models import DeliveryRecord

        results = await self.client.retrieve(
            collection_name=self._collection_name("deliveries"),
            ids=[self._key_to_point_id(delivery_id)],
            with_payload=True,
        )
        if not results or results[0].payload is None:
            return None

        delivery: DeliveryRecord = self._payload_to_model(results[0].payload, DeliveryRecord)
        return delivery

    @qdrant_retry
    async def list_deliveries(
        self,
        subscription_id: str | None = None,
        status: DeliveryStatus | None = None,
        limit: int = 100,
    ) -> list[DeliveryRecord]:
        """List delivery records, newest first.

        Args:
            subscription_id: Only records of this subscription.
            status: Only records in this status.
            limit: Maximum records to return.
        """
        from hookline.models import DeliveryRecord

        conditions: list[models.FieldCondition] = []
        if subscription_id is not None:
            conditions.append(
                models.FieldCondition(
                    key="subscription_id",
                    match=models.MatchValue(value=subscription_id),
                )
            )
        if status is not None:
            conditions.append(
                models.FieldCondition(
                    key="status",
                    match=models.MatchValue(value=status.value),
                )
            )

        scroll_filter = models.Filter(must=conditions) if conditions else None
        payloads = await self._scroll_all(self._collection_name("deliveries"), scroll_filter)

        deliveries: list[DeliveryRecord] = [
            self._payload_to_model(p, DeliveryRecord) for p in payloads
        ]
        deliveries.sort(key=lambda d: d.created_at, reverse=True)
        return deliveries[:limit]
