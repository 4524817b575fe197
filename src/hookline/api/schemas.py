"""Request and response schemas for the Hookline API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

from hookline.models import DeliveryRecord, DeliveryStatus, Subscription, SubscriptionStatus


class HealthResponse(BaseModel):
    """Health check response."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(description="healthy or unhealthy")
    version: str
    storage_connected: bool


class CreateSubscriptionRequest(BaseModel):
    """Register a webhook destination."""

    model_config = ConfigDict(extra="forbid")

    url: HttpUrl
    name: str = Field(default="", max_length=200)
    events: list[str] = Field(default_factory=list, description="Empty subscribes to all events")
    timeout_seconds: float | None = Field(default=None, gt=0, le=300)
    max_retries: int | None = Field(default=None, ge=0, le=20)


class UpdateSubscriptionRequest(BaseModel):
    """Partial update. Omitted fields keep their current value."""

    model_config = ConfigDict(extra="forbid")

    url: HttpUrl | None = None
    name: str | None = Field(default=None, max_length=200)
    events: list[str] | None = None
    status: SubscriptionStatus | None = None
    timeout_seconds: float | None = Field(default=None, gt=0, le=300)
    max_retries: int | None = Field(default=None, ge=0, le=20)


class SubscriptionResponse(BaseModel):
    """Subscription without its secrets."""

    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    url: str
    events: list[str]
    status: SubscriptionStatus
    timeout_seconds: float
    max_retries: int
    success_count: int
    failure_count: int
    secret_rotated_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> SubscriptionResponse:
        return cls(
            id=subscription.id,
            name=subscription.name,
            url=str(subscription.url),
            events=subscription.events,
            status=subscription.status,
            timeout_seconds=subscription.timeout_seconds,
            max_retries=subscription.max_retries,
            success_count=subscription.success_count,
            failure_count=subscription.failure_count,
            secret_rotated_at=subscription.secret_rotated_at,
            created_at=subscription.created_at,
        )


class CreateSubscriptionResponse(SubscriptionResponse):
    """Returned once at creation: the only response carrying the secret."""

    secret: str


class SubscriptionListResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    subscriptions: list[SubscriptionResponse]
    count: int


class RotateSecretRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    grace_period_days: int | None = Field(default=None, ge=0, le=365)


class RotateSecretResponse(BaseModel):
    """The new secret, shown once, and when the old one stops verifying."""

    model_config = ConfigDict(extra="forbid")

    subscription_id: str
    secret: str
    previous_secret_expires_at: datetime
    grace_period_days: int


class DispatchEventRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    event_type: str = Field(min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)


class DeliveryResponse(BaseModel):
    """One delivery record."""

    model_config = ConfigDict(extra="forbid")

    id: str
    subscription_id: str
    event_type: str
    payload: dict[str, Any]
    status: DeliveryStatus
    attempts: int
    response_code: int | None = None
    response_body: str | None = None
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_record(cls, record: DeliveryRecord) -> DeliveryResponse:
        return cls.model_validate(record.model_dump())


class DispatchEventResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    event_type: str
    deliveries: list[DeliveryResponse]
    count: int


class DeliveryListResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    subscription_id: str
    deliveries: list[DeliveryResponse]
    count: int


class RetryDeliveryResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    delivery_id: str
    enqueued: bool


class InboundResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    accepted: bool
    subscription_id: str
