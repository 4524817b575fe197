"""Verification of signed callbacks received by the platform.

An inbound request is accepted only when its timestamp lies inside the
replay window AND its signature matches one of the subscription's active
secrets. The timestamp is checked first so stale requests never cost an
HMAC computation.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from hookline.logging import get_logger
from hookline.models.base import Clock, utc_now

from .replay import is_fresh, parse_timestamp
from .signing import verify_any

if TYPE_CHECKING:
    from hookline.config import Settings
    from hookline.models import Subscription

    from .rotation import SecretRotationManager

logger = get_logger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300


class InboundVerifier:
    """Validates (payload, signature, timestamp) triples for a subscription."""

    def __init__(
        self,
        rotation: SecretRotationManager,
        tolerance_seconds: float = DEFAULT_TOLERANCE_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the verifier.

        Args:
            rotation: Decides which secrets are currently acceptable.
            tolerance_seconds: Replay window applied to the timestamp header.
            clock: Injectable "now" source.
        """
        self._rotation = rotation
        self._tolerance = tolerance_seconds
        self._clock = clock or utc_now

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        rotation: SecretRotationManager,
        clock: Clock | None = None,
    ) -> InboundVerifier:
        return cls(
            rotation=rotation,
            tolerance_seconds=settings.security.timestamp_tolerance_seconds,
            clock=clock,
        )

    def validate_inbound(
        self,
        payload: Mapping[str, Any],
        signature_header: str | None,
        timestamp_header: str | int | None,
        subscription: Subscription,
    ) -> bool:
        """Check freshness, then the signature against every active secret.

        Never raises for a bad request: the caller turns False into a 401.
        """
        now = self._clock()

        timestamp = parse_timestamp(timestamp_header)
        if timestamp is None:
            self._reject(subscription, "bad_timestamp")
            return False
        if not is_fresh(timestamp, self._tolerance, now):
            self._reject(subscription, "stale_timestamp", timestamp=timestamp)
            return False

        secrets = self._rotation.active_secrets(subscription, now)
        if not verify_any(payload, signature_header, secrets):
            self._reject(subscription, "bad_signature")
            return False

        return True

    @staticmethod
    def _reject(subscription: Subscription, reason: str, **extra: object) -> None:
        logger.warning(
            "Inbound webhook rejected",
            subscription_id=subscription.id,
            reason=reason,
            **extra,
        )


__all__ = ["InboundVerifier"]
