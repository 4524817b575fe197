"""Base storage class and helpers.

Contains initialization, collection management, and shared utilities.
"""

from __future__ import annotations

import hashlib
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from qdrant_client import AsyncQdrantClient, models

from hookline.config import settings
from hookline.exceptions import StorageError
from hookline.models import DeliveryRecord, Subscription

ModelT = TypeVar("ModelT", Subscription, DeliveryRecord)

# Collection suffixes by entity
COLLECTION_NAMES = {
    "subscriptions": "subscriptions",
    "deliveries": "deliveries",
}

# Records are looked up by id and payload filter only; every point carries
# a 1-dimensional zero vector.
VECTOR_SIZE = 1

# Keyword indexes per collection
_INDEXED_FIELDS = {
    "subscriptions": ("id", "status", "events"),
    "deliveries": ("id", "subscription_id", "status", "event_type"),
}


class StorageBase:
    """Base class for Hookline storage with initialization and helpers.

    Provides:
    - Client initialization and lifecycle management
    - Collection creation and indexing
    - Point ID conversion
    - Payload serialization/deserialization
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        prefix: str | None = None,
    ) -> None:
        """Initialize storage client.

        Args:
            url: Qdrant server URL. Defaults to settings.qdrant_url.
                Pass ":memory:" for an in-process instance.
            api_key: Qdrant API key. Defaults to settings.qdrant_api_key.
            prefix: Collection name prefix. Defaults to settings.collection_prefix.
        """
        self._url = url or settings.qdrant_url
        self._api_key = api_key or settings.qdrant_api_key
        self._prefix = prefix or settings.collection_prefix
        self._client: AsyncQdrantClient | None = None
        self._collections_initialized = False

    @property
    def client(self) -> AsyncQdrantClient:
        """Get the Qdrant client, raising if not initialized."""
        if self._client is None:
            raise RuntimeError("Storage not initialized. Call initialize() first.")
        return self._client

    async def initialize(self) -> None:
        """Initialize the storage client and ensure collections exist."""
        if self._url == ":memory:":
            self._client = AsyncQdrantClient(location=":memory:")
        else:
            self._client = AsyncQdrantClient(url=self._url, api_key=self._api_key)
        await self._ensure_collections()
        self._collections_initialized = True

    async def close(self) -> None:
        """Close the storage client connection."""
        if self._client is not None:
            await self._client.close()
            self._client = None
            self._collections_initialized = False

    async def __aenter__(self) -> StorageBase:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _collection_name(self, entity: str) -> str:
        """Get full collection name with prefix."""
        suffix = COLLECTION_NAMES.get(entity, entity)
        return f"{self._prefix}_{suffix}"

    @staticmethod
    def _key_to_point_id(key: str) -> str:
        """Convert an entity id to a valid Qdrant point ID.

        Qdrant requires point IDs to be UUIDs or unsigned integers.
        We hash the key to create a deterministic UUID-format string.
        """
        h = hashlib.sha256(key.encode()).hexdigest()[:32]
        return f"{h[:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"

    @staticmethod
    def _zero_vector() -> list[float]:
        return [0.0] * VECTOR_SIZE

    async def _ensure_collections(self) -> None:
        """Ensure all required collections exist."""
        collections = await self.client.get_collections()
        existing = {c.name for c in collections.collections}

        for entity in COLLECTION_NAMES:
            collection_name = self._collection_name(entity)
            if collection_name in existing:
                continue
            await self.client.create_collection(
                collection_name=collection_name,
                vectors_config=models.VectorParams(
                    size=VECTOR_SIZE,
                    distance=models.Distance.DOT,
                ),
            )
            await self._create_indexes(entity, collection_name)

    async def _create_indexes(self, entity: str, collection_name: str) -> None:
        """Create payload indexes for efficient filtering."""
        for field_name in _INDEXED_FIELDS.get(entity, ()):
            await self.client.create_payload_index(
                collection_name=collection_name,
                field_name=field_name,
                field_schema=models.PayloadSchemaType.KEYWORD,
            )

    @staticmethod
    def _model_to_payload(model: BaseModel) -> dict[str, Any]:
        """Convert a model to a Qdrant payload."""
        return model.model_dump(mode="json")

    @staticmethod
    def _payload_to_model(payload: dict[str, Any], model_class: type[ModelT]) -> ModelT:
        """Convert a Qdrant payload back to a model.

        Raises:
            StorageError: If the stored payload no longer validates.
        """
        try:
            return model_class.model_validate(payload)
        except PydanticValidationError as e:
            raise StorageError(
                f"Stored {model_class.__name__} {payload.get('id')!r} is invalid: {e}"
            ) from e

    async def _scroll_all(
        self,
        collection_name: str,
        scroll_filter: models.Filter | None = None,
        page_size: int = 256,
    ) -> list[dict[str, Any]]:
        """Return every payload matching the filter, following scroll offsets."""
        payloads: list[dict[str, Any]] = []
        offset: Any = None
        while True:
            points, offset = await self.client.scroll(
                collection_name=collection_name,
                scroll_filter=scroll_filter,
                limit=page_size,
                offset=offset,
                with_payload=True,
                with_vectors=False,
            )
            payloads.extend(p.payload for p in points if p.payload is not None)
            if offset is None:
                return payloads
