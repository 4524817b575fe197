"""HMAC-SHA256 signing over a canonical JSON form.

The canonical form sorts keys, uses compact separators and keeps unicode and
slashes unescaped, so two parties serializing the same object agree byte for
byte. Outbound request bodies are sent in exactly this form.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from collections.abc import Iterable, Mapping
from typing import Any


def canonical_json(payload: Mapping[str, Any]) -> bytes:
    """Serialize a payload to its canonical UTF-8 bytes.

    Args:
        payload: JSON-compatible mapping.

    Returns:
        Canonical byte representation.
    """
    return json.dumps(
        payload,
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    ).encode("utf-8")


def sign(payload: Mapping[str, Any], secret: str) -> str:
    """Compute the hex HMAC-SHA256 signature of a payload.

    Args:
        payload: JSON-compatible mapping to sign.
        secret: Shared secret.

    Returns:
        Lowercase hex digest.
    """
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=canonical_json(payload),
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify(payload: Mapping[str, Any], signature: object, secret: str | None) -> bool:
    """Verify a signature in constant time.

    Malformed input (non-string or non-ASCII signature, empty signature or
    secret, unserializable payload) fails verification instead of raising.

    Args:
        payload: Payload that was signed.
        signature: Signature received from the peer.
        secret: Shared secret to check against.

    Returns:
        True if the signature matches.
    """
    if not secret or not isinstance(signature, str) or not signature:
        return False
    try:
        expected = sign(payload, secret)
        received = signature.strip().lower().encode("ascii")
    except (TypeError, ValueError):
        return False
    return hmac.compare_digest(expected.encode("ascii"), received)


def verify_any(payload: Mapping[str, Any], signature: object, secrets: Iterable[str]) -> bool:
    """Verify against several secrets, accepting the first match."""
    return any(verify(payload, signature, secret) for secret in secrets)


__all__ = ["canonical_json", "sign", "verify", "verify_any"]
