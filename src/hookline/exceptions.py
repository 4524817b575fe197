"""Hookline exception hierarchy.

Provides structured exceptions for error handling throughout the codebase.
All exceptions inherit from HooklineError for easy catching.

Delivery failures (timeouts, connection errors, non-2xx responses) are not
exceptions at this level: the dispatcher converts them into DeliveryRecord
state. The classes below cover misuse and infrastructure faults.
"""

from __future__ import annotations


class HooklineError(Exception):
    """Base exception for all Hookline errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code for API responses.
    """

    code: str = "hookline_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class ValidationError(HooklineError):
    """Invalid input provided.

    Attributes:
        field: The field that failed validation.
        message: Description of the validation failure.
    """

    code: str = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "field": self.field,
                "message": self.message,
            }
        }


class NotFoundError(HooklineError):
    """Resource not found.

    Attributes:
        resource_type: Type of resource (e.g., "subscription", "delivery").
        resource_id: ID of the missing resource.
    """

    code: str = "not_found"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "resource_type": self.resource_type,
                "resource_id": self.resource_id,
                "message": self.message,
            }
        }


class StorageError(HooklineError):
    """Storage operation failed."""

    code: str = "storage_error"


class QueueError(HooklineError):
    """Task queue rejected or failed to accept a task.

    Treated as transient by the enqueue retry decorator.
    """

    code: str = "queue_error"


class ConfigurationError(HooklineError):
    """Required configuration is missing or invalid."""

    code: str = "configuration_error"


class SecretRotationError(HooklineError):
    """Secret rotation was misused.

    Raised when rotating a subscription without a current secret, or when a
    subscription carries a previous secret with a missing or naive rotation
    timestamp. This is a programming error and is never retried.
    """

    code: str = "secret_rotation_error"


class InvalidTransitionError(HooklineError):
    """Illegal DeliveryRecord status transition.

    Attributes:
        current: Status the record was in.
        target: Status the caller tried to move to.
    """

    code: str = "invalid_transition"

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition delivery from {current} to {target}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "current": self.current,
                "target": self.target,
                "message": self.message,
            }
        }
