"""Queue message for one delivery attempt.

The task carries only the delivery id: workers look the record and its
subscription up again, so attempts may run on different workers.
"""

from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

from .base import generate_id


class DeliveryTask(BaseModel):
    """Message produced by ``enqueue(delivery_id, delay_ms)``.

    Attributes:
        id: Unique identifier for this queue message.
        delivery_id: Delivery record to attempt.
        delay_ms: Requested delay before the attempt may run.
        enqueued_at: When the message was produced.
        run_at: Earliest time a worker may claim it.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=lambda: generate_id("tsk"))
    delivery_id: str = Field(min_length=1)
    delay_ms: int = Field(default=0, ge=0)
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    run_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create(cls, delivery_id: str, delay_ms: int, now: datetime) -> "DeliveryTask":
        """Build a task scheduled ``delay_ms`` after ``now``."""
        return cls(
            delivery_id=delivery_id,
            delay_ms=delay_ms,
            enqueued_at=now,
            run_at=now + timedelta(milliseconds=delay_ms),
        )
