"""Delivery record: the persisted state machine for one event notification.

States::

    pending -> processing -> successful
                          -> failed -> processing (retry, while attempts remain)

``successful`` is terminal. ``failed`` is terminal once attempts are
exhausted. The stored payload is the event body before metadata is merged
in and never changes after creation.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from hookline.exceptions import InvalidTransitionError

from .base import generate_id

RESPONSE_BODY_MAX_CHARS = 1000


class DeliveryStatus(str, Enum):
    """Status of a delivery record."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESSFUL = "successful"
    FAILED = "failed"


# Allowed source states per target state
_TRANSITIONS: dict[DeliveryStatus, frozenset[DeliveryStatus]] = {
    DeliveryStatus.PROCESSING: frozenset({DeliveryStatus.PENDING, DeliveryStatus.FAILED}),
    DeliveryStatus.SUCCESSFUL: frozenset({DeliveryStatus.PROCESSING}),
    DeliveryStatus.FAILED: frozenset({DeliveryStatus.PROCESSING}),
}


def _truncate(text: str | None, limit: int) -> str | None:
    if not text:
        return None
    return text[:limit]


class DeliveryRecord(BaseModel):
    """One tracked attempt-set notifying a subscription about one event.

    Attributes:
        id: Unique identifier for this delivery.
        subscription_id: Owning subscription (lookup by id, never a live object).
        event_type: Event type string, e.g. "user.created".
        payload: Event body as produced upstream. Immutable.
        status: pending, processing, successful or failed.
        attempts: Attempts started so far. Only increases.
        response_code: HTTP status of the last response, if any.
        response_body: Body of the last response (truncated).
        error_message: Error of the last failed attempt.
        created_at: When the record was created.
        completed_at: When the last attempt finished.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("dlv"))
    subscription_id: str = Field(description="ID of the owning subscription")
    event_type: str = Field(min_length=1, description="Event type")
    payload: dict[str, Any] = Field(
        default_factory=dict, frozen=True, description="Original event body"
    )
    status: DeliveryStatus = Field(default=DeliveryStatus.PENDING)
    attempts: int = Field(default=0, ge=0, description="Attempts started")
    response_code: int | None = Field(default=None)
    response_body: str | None = Field(default=None)
    error_message: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = Field(default=None)

    def _transition(self, target: DeliveryStatus) -> None:
        if self.status not in _TRANSITIONS[target]:
            raise InvalidTransitionError(self.status.value, target.value)
        self.status = target

    def start_attempt(self) -> "DeliveryRecord":
        """Move to processing and count the attempt.

        Valid from pending (first attempt) and failed (scheduled retry).
        """
        self._transition(DeliveryStatus.PROCESSING)
        self.attempts += 1
        self.completed_at = None
        return self

    def mark_successful(
        self,
        response_code: int,
        response_body: str | None = None,
        now: datetime | None = None,
        max_body_chars: int = RESPONSE_BODY_MAX_CHARS,
    ) -> "DeliveryRecord":
        """Record a 2xx response."""
        self._transition(DeliveryStatus.SUCCESSFUL)
        self.response_code = response_code
        self.response_body = _truncate(response_body, max_body_chars)
        self.error_message = None
        self.completed_at = now or datetime.now(UTC)
        return self

    def mark_failed(
        self,
        error: str,
        response_code: int | None = None,
        response_body: str | None = None,
        now: datetime | None = None,
        max_body_chars: int = RESPONSE_BODY_MAX_CHARS,
    ) -> "DeliveryRecord":
        """Record a non-2xx response or a transport failure."""
        self._transition(DeliveryStatus.FAILED)
        self.error_message = error
        self.response_code = response_code
        self.response_body = _truncate(response_body, max_body_chars)
        self.completed_at = now or datetime.now(UTC)
        return self

    def can_retry(self, max_retries: int) -> bool:
        """A failed record may re-enter processing while attempts remain."""
        return self.status == DeliveryStatus.FAILED and self.attempts < max_retries

    def is_terminal(self, max_retries: int) -> bool:
        """Successful, or failed with attempts exhausted."""
        if self.status == DeliveryStatus.SUCCESSFUL:
            return True
        return self.status == DeliveryStatus.FAILED and self.attempts >= max_retries
