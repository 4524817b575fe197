"""Hookline: signed webhook delivery.

Delivers events to subscriber endpoints with HMAC-SHA256 signatures,
retries failures with exponential backoff, rotates secrets with a grace
period, and verifies signed callbacks with replay protection.

Quick Start:
    from hookline.service import WebhookService

    async with WebhookService.create() as hooks:
        subscription = await hooks.create_subscription(
            url="https://example.com/hooks",
            events=["user.created"],
        )
        await hooks.start()
        await hooks.dispatch_event("user.created", {"user_id": 42})

Entities:
    - Subscription: Destination URL, secret pair, event filter and counters
    - DeliveryRecord: State machine for one event sent to one subscription
    - DeliveryTask: Queue message scheduling a delivery attempt
"""

__version__ = "0.1.0"

# Configuration
from .config import RetrySettings, SecuritySettings, Settings, settings

# Exceptions
from .exceptions import (
    ConfigurationError,
    HooklineError,
    InvalidTransitionError,
    NotFoundError,
    QueueError,
    SecretRotationError,
    StorageError,
    ValidationError,
)

# Logging
from .logging import (
    bind_context,
    clear_context,
    configure_logging,
    delivery_context,
    get_logger,
)

# Models
from .models import (
    DeliveryRecord,
    DeliveryStatus,
    DeliveryTask,
    Subscription,
    SubscriptionStatus,
)

# Service
from .service import WebhookService

# Webhooks
from .webhooks import (
    InboundVerifier,
    RetryPolicy,
    RotationResult,
    SecretRotationManager,
    WebhookDispatcher,
    canonical_json,
    sign,
    verify,
)

__all__ = [
    "__version__",
    # Configuration
    "RetrySettings",
    "SecuritySettings",
    "Settings",
    "settings",
    # Exceptions
    "ConfigurationError",
    "HooklineError",
    "InvalidTransitionError",
    "NotFoundError",
    "QueueError",
    "SecretRotationError",
    "StorageError",
    "ValidationError",
    # Logging
    "bind_context",
    "clear_context",
    "configure_logging",
    "delivery_context",
    "get_logger",
    # Models
    "DeliveryRecord",
    "DeliveryStatus",
    "DeliveryTask",
    "Subscription",
    "SubscriptionStatus",
    # Service
    "WebhookService",
    # Webhooks
    "InboundVerifier",
    "RetryPolicy",
    "RotationResult",
    "SecretRotationManager",
    "WebhookDispatcher",
    "canonical_json",
    "sign",
    "verify",
]
