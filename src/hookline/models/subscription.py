"""Subscription model: a registered webhook target.

A subscription owns its current/previous secret pair. Delivery records only
reference it by id.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

from .base import generate_id


class SubscriptionStatus(str, Enum):
    """Owner-driven lifecycle status. Not part of the delivery state machine."""

    ACTIVE = "active"
    PAUSED = "paused"
    DISABLED = "disabled"


class Subscription(BaseModel):
    """Configuration and running counters for one webhook destination.

    Attributes:
        id: Unique identifier for this subscription.
        name: Human-readable name, echoed in outbound payloads.
        url: Endpoint that receives POSTed events.
        secret: Current shared secret (hex). Outbound signing uses only this.
        previous_secret: Secret replaced by the last rotation, kept for the
            grace period so inbound signatures made with it still verify.
        secret_rotated_at: When the last rotation happened.
        secret_grace_period_days: Grace period chosen at that rotation.
        events: Subscribed event types. Empty means every event.
        status: active, paused or disabled.
        timeout_seconds: Bound on a single outbound HTTP call.
        max_retries: Maximum delivery attempts per event.
        success_count: Successful attempts so far.
        failure_count: Failed attempts so far.
        last_triggered_at: When the last attempt finished.
        last_success_at: When the last successful attempt finished.
        last_failure_at: When the last failed attempt finished.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("sub"))
    name: str = Field(default="", description="Human-readable name")
    url: HttpUrl = Field(description="Endpoint to receive events")
    secret: str | None = Field(default=None, repr=False, description="Current shared secret")
    previous_secret: str | None = Field(
        default=None, repr=False, description="Secret valid during the rotation grace period"
    )
    secret_rotated_at: datetime | None = Field(default=None, description="Last rotation time")
    secret_grace_period_days: int | None = Field(
        default=None, ge=0, description="Grace period chosen at the last rotation"
    )
    events: list[str] = Field(
        default_factory=list,
        description="Event types to deliver; empty subscribes to all events",
    )
    status: SubscriptionStatus = Field(default=SubscriptionStatus.ACTIVE)
    timeout_seconds: float = Field(default=30, gt=0, le=300)
    max_retries: int = Field(default=3, ge=0, description="Maximum delivery attempts")
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    last_triggered_at: datetime | None = Field(default=None)
    last_success_at: datetime | None = Field(default=None)
    last_failure_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def is_active(self) -> bool:
        """Whether new delivery attempts may start."""
        return self.status == SubscriptionStatus.ACTIVE

    def listens_to(self, event_type: str) -> bool:
        """Check if this subscription wants the given event type."""
        if not self.events:
            return True
        return event_type in self.events
