"""Data models for Hookline.

Entities:
    - Subscription: A registered webhook destination with its secret pair
    - DeliveryRecord: Persisted state machine for one event notification
    - DeliveryTask: Queue message asking a worker to attempt a delivery
"""

from .base import Clock, generate_id, utc_now
from .delivery import DeliveryRecord, DeliveryStatus
from .subscription import Subscription, SubscriptionStatus
from .task import DeliveryTask

__all__ = [
    # Base helpers
    "Clock",
    "generate_id",
    "utc_now",
    # Entities
    "DeliveryRecord",
    "DeliveryStatus",
    "DeliveryTask",
    "Subscription",
    "SubscriptionStatus",
]
