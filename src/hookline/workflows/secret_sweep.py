"""Sweep that clears previous secrets whose grace period has ended.

Verification already ignores an expired previous secret, so the sweep is
housekeeping: it removes the stale value from storage. It runs once a day
by default and supports a dry run that only reports what would be cleared.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from hookline.exceptions import SecretRotationError
from hookline.logging import get_logger

if TYPE_CHECKING:
    from hookline.storage import WebhookStore
    from hookline.webhooks.rotation import SecretRotationManager

logger = get_logger(__name__)


class SecretSweepResult(BaseModel):
    """Result of a secret sweep run.

    Attributes:
        scanned: Subscriptions holding a previous secret.
        expired: Of those, how many are past their grace period.
        cleared: Previous secrets actually removed (0 on a dry run).
        errors: Subscriptions skipped because their rotation data is invalid.
        dry_run: Whether storage was left untouched.
        subscription_ids: IDs of the expired subscriptions.
    """

    model_config = ConfigDict(extra="forbid")

    scanned: int = Field(default=0, ge=0)
    expired: int = Field(default=0, ge=0)
    cleared: int = Field(default=0, ge=0)
    errors: int = Field(default=0, ge=0)
    dry_run: bool = False
    subscription_ids: list[str] = Field(default_factory=list)


async def run_secret_sweep(
    storage: WebhookStore,
    rotation: SecretRotationManager,
    dry_run: bool = False,
    now: datetime | None = None,
) -> SecretSweepResult:
    """Clear every previous secret whose grace period has elapsed.

    Args:
        storage: Subscription repository.
        rotation: Decides whether a previous secret is still valid.
        dry_run: Report without modifying anything.
        now: Override the rotation manager's clock.

    Returns:
        SecretSweepResult with counts.
    """
    subscriptions = await storage.list_subscriptions_with_previous_secret()
    result = SecretSweepResult(scanned=len(subscriptions), dry_run=dry_run)

    for subscription in subscriptions:
        try:
            still_valid = rotation.is_previous_secret_valid(subscription, now)
        except SecretRotationError as e:
            logger.error(
                "Invalid rotation data, skipping",
                subscription_id=subscription.id,
                error=e.message,
            )
            result.errors += 1
            continue

        if still_valid:
            continue

        result.expired += 1
        result.subscription_ids.append(subscription.id)
        if dry_run:
            continue

        if rotation.clear_expired_previous(subscription, now):
            await storage.save_subscription(subscription)
            result.cleared += 1

    logger.info(
        "Secret sweep completed",
        scanned=result.scanned,
        expired=result.expired,
        cleared=result.cleared,
        errors=result.errors,
        dry_run=dry_run,
    )
    return result


async def run_periodic_secret_sweep(
    storage: WebhookStore,
    rotation: SecretRotationManager,
    interval_seconds: float,
) -> None:
    """Run :func:`run_secret_sweep` forever, sleeping between runs.

    Cancel the task to stop it. A failed run is logged and the loop goes on.
    """
    logger.info("secret_sweep scheduler started", interval_seconds=interval_seconds)
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            await run_secret_sweep(storage, rotation)
        except asyncio.CancelledError:
            logger.info("secret_sweep scheduler stopped")
            raise
        except Exception:
            logger.exception("secret_sweep run failed")
