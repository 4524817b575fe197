"""Configuration management for Hookline."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings


class RetrySettings(BaseModel):
    """Exponential backoff knobs for failed deliveries.

    The delay before the next attempt is:
        min(initial_delay_seconds * backoff_multiplier ** (attempt - 1), max_delay_seconds)

    Attributes:
        initial_delay_seconds: Delay after the first failed attempt (60 default).
        backoff_multiplier: Growth factor per attempt (2 default).
        max_delay_seconds: Hard ceiling on any single delay (3600 default).
    """

    initial_delay_seconds: float = Field(
        default=60,
        gt=0,
        description="Delay after the first failed attempt",
    )
    backoff_multiplier: float = Field(
        default=2,
        ge=1,
        description="Multiplier applied per additional attempt",
    )
    max_delay_seconds: float = Field(
        default=3600,
        gt=0,
        description="Upper bound for any retry delay",
    )

    @model_validator(mode="after")
    def _validate_ceiling(self) -> "RetrySettings":
        """The ceiling must not undercut the first delay."""
        if self.max_delay_seconds < self.initial_delay_seconds:
            raise ValueError(
                f"max_delay_seconds ({self.max_delay_seconds}) must be >= "
                f"initial_delay_seconds ({self.initial_delay_seconds})"
            )
        return self


class SecuritySettings(BaseModel):
    """Signature, replay window and secret rotation settings.

    Attributes:
        signature_header: Header carrying the hex HMAC-SHA256 signature.
        timestamp_header: Header carrying the Unix timestamp of the request.
        id_header: Header carrying the subscription id.
        timestamp_tolerance_seconds: Replay window, applied symmetrically.
        secret_grace_period_days: How long a rotated-out secret still verifies.
        secret_bytes: Random bytes per generated secret (hex encoded).
    """

    signature_header: str = Field(default="X-Webhook-Signature")
    timestamp_header: str = Field(default="X-Webhook-Timestamp")
    id_header: str = Field(default="X-Webhook-Id")
    timestamp_tolerance_seconds: int = Field(
        default=300,
        ge=0,
        description="Maximum allowed |now - timestamp| for inbound requests",
    )
    secret_grace_period_days: int = Field(
        default=7,
        ge=0,
        description="Days the previous secret stays valid after rotation",
    )
    secret_bytes: int = Field(
        default=32,
        ge=16,
        le=128,
        description="Number of random bytes in a generated secret",
    )


class Settings(BaseSettings):
    """Hookline configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the HOOKLINE_ prefix. Nested groups use a double underscore:
        HOOKLINE_QDRANT_URL=http://localhost:6333
        HOOKLINE_RETRY__MAX_DELAY_SECONDS=1800
        HOOKLINE_SECURITY__TIMESTAMP_TOLERANCE_SECONDS=120
    """

    # Environment
    env: Literal["development", "production", "test"] = Field(
        default="development",
        description="Environment: development, production, or test",
    )
    product_name: str = Field(
        default="Hookline",
        min_length=1,
        description="Product name used in the outbound User-Agent header",
    )

    # Storage
    qdrant_url: str = Field(
        default="http://localhost:6333",
        description="Qdrant connection URL",
    )
    qdrant_api_key: str | None = Field(
        default=None,
        description="Qdrant API key (for cloud)",
    )
    collection_prefix: str = Field(
        default="hookline",
        description="Prefix for Qdrant collection names",
    )

    # Subscription defaults
    default_timeout_seconds: float = Field(
        default=30,
        gt=0,
        le=300,
        description="Request timeout for new subscriptions",
    )
    default_max_retries: int = Field(
        default=3,
        ge=0,
        le=20,
        description="Maximum delivery attempts for new subscriptions",
    )
    response_body_max_chars: int = Field(
        default=1000,
        ge=0,
        description="Response bodies are truncated to this many characters",
    )

    retry: RetrySettings = Field(default_factory=RetrySettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    # Queue and workers
    queue_name: str = Field(default="webhooks", description="Delivery queue name")
    worker_concurrency: int = Field(
        default=10,
        ge=1,
        le=200,
        description="Concurrent delivery workers",
    )
    worker_poll_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Idle sleep between queue polls",
    )
    queue_lease_seconds: int = Field(
        default=120,
        ge=5,
        description="Lease on a claimed task; renewed while the attempt runs",
    )
    secret_sweep_interval_seconds: float = Field(
        default=86400,
        gt=0,
        description="Interval of the expired previous-secret sweep",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    model_config = {
        "env_prefix": "HOOKLINE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
    }

    @property
    def user_agent(self) -> str:
        """User-Agent sent with every outbound delivery."""
        return f"{self.product_name}-Webhook/1.0"


# Global settings instance
settings = Settings()
