"""Courier exception hierarchy.

Provides structured exceptions for error handling throughout the codebase.
All exceptions inherit from CourierError for easy catching.
"""

from __future__ import annotations


class CourierError(Exception):
    """Base exception for all Courier errors.

    All custom exceptions in Courier inherit from this class,
    allowing callers to catch all Courier-related errors with
    a single except clause.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code for API responses.
    """

    code: str = "courier_error"

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


class ValidationError(CourierError):
    """Invalid endpoint configuration or input.

    Raised before anything is persisted, so a rejected change is never
    partially applied.

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


class NotFoundError(CourierError):
    """Resource not found.

    Raised when a requested endpoint or delivery doesn't exist.

    Attributes:
        resource_type: Type of resource (e.g., "webhook", "delivery").
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


class InvalidStateError(CourierError):
    """Operation not allowed in the resource's current state.

    Raised when cancelling a delivery that is no longer pending, or
    retrying a delivery that has not failed.

    Attributes:
        resource_type: Type of resource (e.g., "delivery").
        resource_id: ID of the resource.
        state: The state the resource is in.
        action: The rejected action.
    """

    code: str = "invalid_state"

    def __init__(self, resource_type: str, resource_id: str, state: str, action: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.state = state
        self.action = action
        super().__init__(f"Cannot {action} {resource_type} {resource_id} in state '{state}'")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "resource_type": self.resource_type,
                "resource_id": self.resource_id,
                "state": self.state,
                "action": self.action,
                "message": self.message,
            }
        }


class DeliveryError(CourierError):
    """A single delivery attempt failed at the transport level.

    Only raised inside the transport layer. The attempt pipeline turns it
    into a failed DeliveryAttempt record, so it never reaches callers of
    the dispatcher.

    Attributes:
        http_status: Response status if one was received.
    """

    code: str = "delivery_failure"

    def __init__(self, message: str, http_status: int | None = None) -> None:
        self.http_status = http_status
        super().__init__(message)


class StorageError(CourierError):
    """Storage operation failed.

    Raised when the endpoint/delivery store cannot complete an operation.
    """

    code: str = "storage_error"


class ConfigurationError(CourierError):
    """Configuration error.

    Raised when required configuration is missing or invalid.
    """

    code: str = "configuration_error"
