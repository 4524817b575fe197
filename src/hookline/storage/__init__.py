"""Storage backends for Hookline.

Subscriptions and delivery records are persisted in Qdrant.

Example:
    ```python
    from hookline.storage import HooklineStorage

    async with HooklineStorage() as storage:
        await storage.save_subscription(subscription)
    ```
"""

from .base import COLLECTION_NAMES
from .client import HooklineStorage, StorageStats
from .protocol import CounterOutcome, WebhookStore

__all__ = [
    "COLLECTION_NAMES",
    "CounterOutcome",
    "HooklineStorage",
    "StorageStats",
    "WebhookStore",
]
