"""Secret rotation with a grace period.

Each subscription is in one of two states:

- single-secret: only ``secret`` verifies.
- dual-secret (grace): ``secret`` and ``previous_secret`` both verify until
  ``secret_rotated_at + grace_period_days`` has passed.

Outbound signing always uses the current secret. The grace period only
widens what inbound verification accepts, so a peer still holding the old
secret keeps working until it picks up the new one.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from hookline.exceptions import SecretRotationError
from hookline.logging import get_logger
from hookline.models.base import Clock, utc_now

if TYPE_CHECKING:
    from hookline.config import Settings
    from hookline.models import Subscription

logger = get_logger(__name__)

RandomSource = Callable[[int], bytes]

DEFAULT_GRACE_PERIOD_DAYS = 7
DEFAULT_SECRET_BYTES = 32


class RotationResult(BaseModel):
    """Outcome of a rotation.

    ``new_secret`` is returned to the caller once; nothing in Hookline exposes
    it again afterwards.
    """

    model_config = ConfigDict(extra="forbid")

    new_secret: str = Field(repr=False)
    previous_secret_expires_at: datetime = Field(
        description="When the replaced secret stops verifying"
    )
    grace_period_days: int = Field(ge=0)


class SecretRotationManager:
    """Issues new secrets and decides which secrets currently verify.

    Example:
        ```python
        rotation = SecretRotationManager(grace_period_days=7)
        result = rotation.rotate(subscription)
        await storage.save_subscription(subscription)

        rotation.active_secrets(subscription)  # [new, old] during grace
        ```
    """

    def __init__(
        self,
        grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS,
        clock: Clock | None = None,
        random_source: RandomSource | None = None,
        secret_bytes: int = DEFAULT_SECRET_BYTES,
    ) -> None:
        """Initialize the rotation manager.

        Args:
            grace_period_days: Days a rotated-out secret stays valid.
            clock: Injectable "now" source. Defaults to UTC wall clock.
            random_source: Cryptographically secure byte generator.
            secret_bytes: Random bytes per generated secret.
        """
        if grace_period_days < 0:
            raise ValueError("grace_period_days must be >= 0")
        self._grace_period_days = grace_period_days
        self._clock = clock or utc_now
        self._random_source = random_source or secrets.token_bytes
        self._secret_bytes = secret_bytes

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        clock: Clock | None = None,
        random_source: RandomSource | None = None,
    ) -> SecretRotationManager:
        """Build a manager from the security settings group."""
        return cls(
            grace_period_days=settings.security.secret_grace_period_days,
            clock=clock,
            random_source=random_source,
            secret_bytes=settings.security.secret_bytes,
        )

    @property
    def grace_period_days(self) -> int:
        return self._grace_period_days

    def generate_secret(self) -> str:
        """Generate a new hex-encoded random secret."""
        return self._random_source(self._secret_bytes).hex()

    def rotate(
        self,
        subscription: Subscription,
        grace_period_days: int | None = None,
    ) -> RotationResult:
        """Replace the current secret, keeping the old one for the grace period.

        The subscription is mutated in place; the caller persists it.

        Args:
            subscription: Subscription to rotate.
            grace_period_days: Grace period for the replaced secret. Defaults
                to the manager's configured value.

        Returns:
            RotationResult with the new secret.

        Raises:
            SecretRotationError: If the subscription has no current secret.
        """
        if not subscription.secret:
            raise SecretRotationError(
                f"Subscription {subscription.id} has no current secret to rotate"
            )

        days = self._grace_period_days if grace_period_days is None else grace_period_days
        now = self._clock()

        subscription.previous_secret = subscription.secret
        subscription.secret_rotated_at = now
        subscription.secret_grace_period_days = days
        subscription.secret = self.generate_secret()
        subscription.updated_at = now

        logger.info(
            "Subscription secret rotated",
            subscription_id=subscription.id,
            grace_period_days=days,
        )

        return RotationResult(
            new_secret=subscription.secret,
            previous_secret_expires_at=now + timedelta(days=days),
            grace_period_days=days,
        )

    def is_previous_secret_valid(
        self,
        subscription: Subscription,
        now: datetime | None = None,
    ) -> bool:
        """True iff a previous secret exists and the grace period has not elapsed.

        Raises:
            SecretRotationError: If the previous secret has no usable rotation
                timestamp.
        """
        if not subscription.previous_secret:
            return False

        rotated_at = subscription.secret_rotated_at
        if rotated_at is None:
            raise SecretRotationError(
                f"Subscription {subscription.id} has a previous secret but no rotation timestamp"
            )
        if rotated_at.tzinfo is None:
            raise SecretRotationError(
                f"Subscription {subscription.id} has a naive rotation timestamp"
            )

        days = subscription.secret_grace_period_days
        if days is None:
            days = self._grace_period_days

        current = now or self._clock()
        return current - rotated_at <= timedelta(days=days)

    def active_secrets(
        self,
        subscription: Subscription,
        now: datetime | None = None,
    ) -> list[str]:
        """Secrets that currently verify: ``[current]`` or ``[current, previous]``."""
        active: list[str] = []
        if subscription.secret:
            active.append(subscription.secret)
        if self.is_previous_secret_valid(subscription, now):
            active.append(subscription.previous_secret)  # type: ignore[arg-type]
        return active

    def clear_expired_previous(
        self,
        subscription: Subscription,
        now: datetime | None = None,
    ) -> bool:
        """Drop the previous secret once its grace period is over.

        Returns:
            True if a previous secret was cleared.
        """
        if not subscription.previous_secret:
            return False
        if self.is_previous_secret_valid(subscription, now):
            return False

        subscription.previous_secret = None
        subscription.updated_at = now or self._clock()
        logger.info("Expired previous secret cleared", subscription_id=subscription.id)
        return True


__all__ = ["RandomSource", "RotationResult", "SecretRotationManager"]
