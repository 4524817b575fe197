"""Tests for inbound callback verification."""

from __future__ import annotations

from datetime import timedelta

import pytest

from hookline.config import Settings
from hookline.models import Subscription
from hookline.webhooks.inbound import InboundVerifier
from hookline.webhooks.rotation import SecretRotationManager
from hookline.webhooks.signing import sign

from conftest import T0, FakeClock

PAYLOAD = {"event": "user.created", "data": {"id": 7}}


@pytest.fixture
def rotation(clock: FakeClock) -> SecretRotationManager:
    return SecretRotationManager(grace_period_days=7, clock=clock)


@pytest.fixture
def verifier(rotation: SecretRotationManager, clock: FakeClock) -> InboundVerifier:
    return InboundVerifier(rotation, tolerance_seconds=300, clock=clock)


def _ts(clock: FakeClock, offset: int = 0) -> str:
    return str(int(clock().timestamp()) + offset)


class TestValidateInbound:
    """Tests for InboundVerifier.validate_inbound()."""

    def test_valid_request_accepted(
        self, verifier: InboundVerifier, subscription: Subscription, clock: FakeClock
    ) -> None:
        signature = sign(PAYLOAD, "s3cr3t")
        assert verifier.validate_inbound(PAYLOAD, signature, _ts(clock), subscription) is True

    def test_wrong_secret_rejected(
        self, verifier: InboundVerifier, subscription: Subscription, clock: FakeClock
    ) -> None:
        signature = sign(PAYLOAD, "s3cr3t2")
        assert verifier.validate_inbound(PAYLOAD, signature, _ts(clock), subscription) is False

    def test_tolerance_boundary_inclusive(
        self, verifier: InboundVerifier, subscription: Subscription, clock: FakeClock
    ) -> None:
        signature = sign(PAYLOAD, "s3cr3t")
        assert verifier.validate_inbound(PAYLOAD, signature, _ts(clock, -300), subscription)
        assert verifier.validate_inbound(PAYLOAD, signature, _ts(clock, 300), subscription)
        assert not verifier.validate_inbound(PAYLOAD, signature, _ts(clock, -301), subscription)
        assert not verifier.validate_inbound(PAYLOAD, signature, _ts(clock, 301), subscription)

    @pytest.mark.parametrize("timestamp", [None, "", "yesterday", "12.5"])
    def test_malformed_timestamp_rejected(
        self,
        verifier: InboundVerifier,
        subscription: Subscription,
        timestamp: str | None,
    ) -> None:
        signature = sign(PAYLOAD, "s3cr3t")
        assert verifier.validate_inbound(PAYLOAD, signature, timestamp, subscription) is False

    def test_oversized_timestamp_rejected(
        self, verifier: InboundVerifier, subscription: Subscription
    ) -> None:
        """A digit string too large for a float is a rejection, not a crash."""
        signature = sign(PAYLOAD, "s3cr3t")
        assert verifier.validate_inbound(PAYLOAD, signature, "9" * 400, subscription) is False

    def test_missing_signature_rejected(
        self, verifier: InboundVerifier, subscription: Subscription, clock: FakeClock
    ) -> None:
        assert verifier.validate_inbound(PAYLOAD, None, _ts(clock), subscription) is False

    def test_previous_secret_accepted_during_grace(
        self,
        verifier: InboundVerifier,
        rotation: SecretRotationManager,
        subscription: Subscription,
        clock: FakeClock,
    ) -> None:
        rotation.rotate(subscription)
        clock.advance(days=6)

        old_signature = sign(PAYLOAD, "s3cr3t")
        new_signature = sign(PAYLOAD, subscription.secret or "")
        assert verifier.validate_inbound(PAYLOAD, old_signature, _ts(clock), subscription)
        assert verifier.validate_inbound(PAYLOAD, new_signature, _ts(clock), subscription)

    def test_previous_secret_rejected_after_grace(
        self,
        verifier: InboundVerifier,
        rotation: SecretRotationManager,
        subscription: Subscription,
        clock: FakeClock,
    ) -> None:
        rotation.rotate(subscription)
        clock.advance(days=8)

        old_signature = sign(PAYLOAD, "s3cr3t")
        assert verifier.validate_inbound(PAYLOAD, old_signature, _ts(clock), subscription) is False

    def test_stale_request_rejected_even_with_valid_signature(
        self, verifier: InboundVerifier, subscription: Subscription, clock: FakeClock
    ) -> None:
        signature = sign(PAYLOAD, "s3cr3t")
        stale = str(int((T0 - timedelta(hours=1)).timestamp()))
        assert verifier.validate_inbound(PAYLOAD, signature, stale, subscription) is False

    def test_from_settings(self, rotation: SecretRotationManager) -> None:
        settings = Settings(security={"timestamp_tolerance_seconds": 60})
        verifier = InboundVerifier.from_settings(settings, rotation)
        assert verifier._tolerance == 60
