"""FastAPI router for Hookline API endpoints."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status

from hookline import __version__
from hookline.exceptions import ValidationError
from hookline.logging import get_logger
from hookline.models import DeliveryStatus, SubscriptionStatus
from hookline.service import WebhookService

from .schemas import (
    CreateSubscriptionRequest,
    CreateSubscriptionResponse,
    DeliveryListResponse,
    DeliveryResponse,
    DispatchEventRequest,
    DispatchEventResponse,
    HealthResponse,
    InboundResponse,
    RetryDeliveryResponse,
    RotateSecretRequest,
    RotateSecretResponse,
    SubscriptionListResponse,
    SubscriptionResponse,
    UpdateSubscriptionRequest,
)

logger = get_logger(__name__)

router = APIRouter()

# Service instance (set by app lifespan)
_service: WebhookService | None = None


def set_service(service: WebhookService | None) -> None:
    """Set the global service instance."""
    global _service
    _service = service


async def get_service() -> WebhookService:
    """Dependency to get the WebhookService instance."""
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return _service


ServiceDep = Annotated[WebhookService, Depends(get_service)]


@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health_check() -> HealthResponse:
    """Check service health."""
    if _service is not None:
        return HealthResponse(status="healthy", version=__version__, storage_connected=True)
    return HealthResponse(status="unhealthy", version=__version__, storage_connected=False)


@router.post(
    "/subscriptions",
    response_model=CreateSubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["subscriptions"],
)
async def create_subscription(
    request: CreateSubscriptionRequest,
    service: ServiceDep,
) -> CreateSubscriptionResponse:
    """Register a subscription. The generated secret is returned only here."""
    subscription = await service.create_subscription(
        url=str(request.url),
        name=request.name,
        events=request.events,
        timeout_seconds=request.timeout_seconds,
        max_retries=request.max_retries,
    )
    base = SubscriptionResponse.from_subscription(subscription)
    return CreateSubscriptionResponse(**base.model_dump(), secret=subscription.secret or "")


@router.get(
    "/subscriptions",
    response_model=SubscriptionListResponse,
    tags=["subscriptions"],
)
async def list_subscriptions(
    service: ServiceDep,
    subscription_status: Annotated[SubscriptionStatus | None, Query(alias="status")] = None,
    limit: Annotated[int | None, Query(ge=1, le=1000)] = None,
) -> SubscriptionListResponse:
    """List subscriptions, oldest first. Secrets are never included."""
    subscriptions = await service.list_subscriptions(status=subscription_status, limit=limit)
    items = [SubscriptionResponse.from_subscription(s) for s in subscriptions]
    return SubscriptionListResponse(subscriptions=items, count=len(items))


@router.get(
    "/subscriptions/{subscription_id}",
    response_model=SubscriptionResponse,
    tags=["subscriptions"],
)
async def get_subscription(subscription_id: str, service: ServiceDep) -> SubscriptionResponse:
    subscription = await service.get_subscription(subscription_id)
    return SubscriptionResponse.from_subscription(subscription)


@router.put(
    "/subscriptions/{subscription_id}",
    response_model=SubscriptionResponse,
    tags=["subscriptions"],
)
async def update_subscription(
    subscription_id: str,
    request: UpdateSubscriptionRequest,
    service: ServiceDep,
) -> SubscriptionResponse:
    """Change url, name, events, status, timeout or retry limit.

    Secrets and delivery counters cannot be set here.
    """
    subscription = await service.update_subscription(
        subscription_id,
        url=str(request.url) if request.url is not None else None,
        name=request.name,
        events=request.events,
        status=request.status,
        timeout_seconds=request.timeout_seconds,
        max_retries=request.max_retries,
    )
    return SubscriptionResponse.from_subscription(subscription)


@router.delete(
    "/subscriptions/{subscription_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["subscriptions"],
)
async def delete_subscription(subscription_id: str, service: ServiceDep) -> None:
    await service.delete_subscription(subscription_id)


@router.post(
    "/subscriptions/{subscription_id}/rotate-secret",
    response_model=RotateSecretResponse,
    tags=["subscriptions"],
)
async def rotate_secret(
    subscription_id: str,
    service: ServiceDep,
    request: Annotated[RotateSecretRequest | None, Body()] = None,
) -> RotateSecretResponse:
    """Rotate the subscription's secret.

    The previous secret keeps verifying inbound requests for the grace
    period. The new secret is shown only in this response.
    """
    grace = request.grace_period_days if request is not None else None
    result = await service.rotate_secret(subscription_id, grace_period_days=grace)
    return RotateSecretResponse(
        subscription_id=subscription_id,
        secret=result.new_secret,
        previous_secret_expires_at=result.previous_secret_expires_at,
        grace_period_days=result.grace_period_days,
    )


@router.get(
    "/subscriptions/{subscription_id}/deliveries",
    response_model=DeliveryListResponse,
    tags=["deliveries"],
)
async def list_deliveries(
    subscription_id: str,
    service: ServiceDep,
    delivery_status: Annotated[DeliveryStatus | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> DeliveryListResponse:
    """Delivery history of a subscription, newest first."""
    records = await service.list_deliveries(subscription_id, status=delivery_status, limit=limit)
    deliveries = [DeliveryResponse.from_record(r) for r in records]
    return DeliveryListResponse(
        subscription_id=subscription_id,
        deliveries=deliveries,
        count=len(deliveries),
    )


@router.post(
    "/deliveries/{delivery_id}/retry",
    response_model=RetryDeliveryResponse,
    tags=["deliveries"],
)
async def retry_delivery(delivery_id: str, service: ServiceDep) -> RetryDeliveryResponse:
    """Schedule another attempt of a failed delivery after the usual backoff.

    Returns 409 when the delivery cannot be retried (not failed, attempts
    exhausted, or subscription inactive).
    """
    enqueued = await service.retry_delivery(delivery_id)
    if not enqueued:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Delivery {delivery_id} cannot be retried",
        )
    return RetryDeliveryResponse(delivery_id=delivery_id, enqueued=True)


@router.post(
    "/events",
    response_model=DispatchEventResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["deliveries"],
)
async def dispatch_event(request: DispatchEventRequest, service: ServiceDep) -> DispatchEventResponse:
    """Fan an event out to every active subscription listening to it."""
    records = await service.dispatch_event(request.event_type, request.payload)
    deliveries = [DeliveryResponse.from_record(r) for r in records]
    return DispatchEventResponse(
        event_type=request.event_type,
        deliveries=deliveries,
        count=len(deliveries),
    )


@router.post(
    "/inbound/{subscription_id}",
    response_model=InboundResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["inbound"],
)
async def receive_inbound(
    subscription_id: str,
    request: Request,
    service: ServiceDep,
) -> InboundResponse:
    """Accept a signed callback.

    Responds 401 when the timestamp is outside the replay window or the
    signature matches none of the subscription's active secrets.
    """
    try:
        payload: Any = await request.json()
    except ValueError as e:
        raise ValidationError("body", "must be valid JSON") from e
    if not isinstance(payload, dict):
        raise ValidationError("body", "must be a JSON object")

    security = service.settings.security
    accepted = await service.verify_inbound(
        subscription_id,
        payload,
        signature=request.headers.get(security.signature_header),
        timestamp=request.headers.get(security.timestamp_header),
    )
    if not accepted:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature or timestamp",
        )

    logger.info("Inbound webhook accepted", subscription_id=subscription_id)
    return InboundResponse(accepted=True, subscription_id=subscription_id)
