"""Unit tests for Hookline configuration."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from hookline.config import RetrySettings, SecuritySettings, Settings


class TestRetrySettings:
    """Tests for RetrySettings model."""

    def test_defaults(self):
        retry = RetrySettings()
        assert retry.initial_delay_seconds == 60
        assert retry.backoff_multiplier == 2
        assert retry.max_delay_seconds == 3600

    def test_ceiling_below_initial_rejected(self):
        with pytest.raises(ValidationError, match="max_delay_seconds"):
            RetrySettings(initial_delay_seconds=120, max_delay_seconds=60)

    def test_multiplier_below_one_rejected(self):
        with pytest.raises(ValidationError):
            RetrySettings(backoff_multiplier=0.5)


class TestSecuritySettings:
    """Tests for SecuritySettings model."""

    def test_defaults(self):
        security = SecuritySettings()
        assert security.signature_header == "X-Webhook-Signature"
        assert security.timestamp_header == "X-Webhook-Timestamp"
        assert security.id_header == "X-Webhook-Id"
        assert security.timestamp_tolerance_seconds == 300
        assert security.secret_grace_period_days == 7
        assert security.secret_bytes == 32

    def test_short_secrets_rejected(self):
        with pytest.raises(ValidationError):
            SecuritySettings(secret_bytes=8)


class TestSettings:
    """Tests for Settings class."""

    def test_default_settings(self):
        settings = Settings()
        assert settings.qdrant_url == "http://localhost:6333"
        assert settings.collection_prefix == "hookline"
        assert settings.default_timeout_seconds == 30
        assert settings.default_max_retries == 3
        assert settings.worker_concurrency == 10
        assert settings.secret_sweep_interval_seconds == 86400

    def test_user_agent(self):
        assert Settings(product_name="Acme").user_agent == "Acme-Webhook/1.0"

    def test_env_override(self):
        """Settings should be overridable via environment variables."""
        with patch.dict(
            os.environ,
            {
                "HOOKLINE_QDRANT_URL": "http://custom:6333",
                "HOOKLINE_DEFAULT_MAX_RETRIES": "5",
            },
        ):
            settings = Settings()
            assert settings.qdrant_url == "http://custom:6333"
            assert settings.default_max_retries == 5

    def test_nested_env_override(self):
        """Nested groups use a double-underscore delimiter."""
        with patch.dict(
            os.environ,
            {
                "HOOKLINE_RETRY__MAX_DELAY_SECONDS": "1800",
                "HOOKLINE_SECURITY__TIMESTAMP_TOLERANCE_SECONDS": "120",
            },
        ):
            settings = Settings()
            assert settings.retry.max_delay_seconds == 1800
            assert settings.security.timestamp_tolerance_seconds == 120

    def test_timeout_bounds(self):
        with pytest.raises(ValidationError):
            Settings(default_timeout_seconds=0)
        with pytest.raises(ValidationError):
            Settings(default_timeout_seconds=301)

    def test_short_lease_is_allowed(self):
        """The worker renews leases, so a lease shorter than the timeout is valid."""
        settings = Settings(queue_lease_seconds=10, default_timeout_seconds=30)
        assert settings.queue_lease_seconds == 10
