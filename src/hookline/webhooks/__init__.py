"""Webhook signing, replay protection, secret rotation and delivery.

Example:
    ```python
    from hookline.webhooks import WebhookDispatcher, sign, verify

    signature = sign({"event": "user.created"}, secret)
    assert verify({"event": "user.created"}, signature, secret)
    ```
"""

from .dispatcher import WebhookDispatcher
from .inbound import InboundVerifier
from .replay import is_fresh, parse_timestamp
from .retry import RetryPolicy, is_exhausted, next_delay
from .rotation import RotationResult, SecretRotationManager
from .signing import canonical_json, sign, verify, verify_any

__all__ = [
    # Signing
    "canonical_json",
    "sign",
    "verify",
    "verify_any",
    # Replay
    "is_fresh",
    "parse_timestamp",
    # Rotation
    "RotationResult",
    "SecretRotationManager",
    # Retry
    "RetryPolicy",
    "is_exhausted",
    "next_delay",
    # Inbound / outbound
    "InboundVerifier",
    "WebhookDispatcher",
]
