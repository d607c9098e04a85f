"""
Domain error taxonomy for the dispatch core.

Every error raised by the order lifecycle, assignment and maps services
derives from ``DispatchError`` and belongs to exactly one family. The API
layer maps families to HTTP status codes; callers that only care about the
kind of failure can catch the family instead of individual members.
"""

from typing import Any


class DispatchError(Exception):
    """Base exception for dispatch core errors."""

    family = "DispatchError"
    status_code = 500

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    @property
    def code(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.family,
            "code": self.code,
            "message": self.message,
            "details": {k: _jsonable(v) for k, v in self.context.items()},
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return str(value)


# Families


class ValidationError(DispatchError):
    """Input names something outside the configured vocabulary."""

    family = "ValidationError"
    status_code = 422


class ConflictError(DispatchError):
    """Request is well-formed but clashes with the current order state."""

    family = "ConflictError"
    status_code = 409


class NotFoundError(DispatchError):
    """Referenced entity or location does not exist."""

    family = "NotFoundError"
    status_code = 404


class DependencyError(DispatchError):
    """External mapping provider failed or refused the request."""

    family = "DependencyError"
    status_code = 502


# Validation


class UnknownStatusError(ValidationError):
    """Status label is not part of the active vocabulary."""


class UnknownPriorityError(ValidationError):
    """Priority label is not part of the active vocabulary."""


# Conflict


class InvalidTransitionError(ConflictError):
    """Target status is not reachable from the current status."""

    def __init__(self, message: str, current_status: str, target_status: str, **context: Any):
        super().__init__(
            message,
            current_status=current_status,
            target_status=target_status,
            **context,
        )
        self.current_status = current_status
        self.target_status = target_status


class ConcurrentTransitionError(InvalidTransitionError):
    """Another request changed the order between read and write."""


class MissingAssignmentError(ConflictError):
    """Status requires a vehicle and driver but the order lacks one."""


class VehicleUnavailableError(ConflictError):
    """Vehicle is inactive or already on another active order."""


class DriverUnavailableError(ConflictError):
    """Driver is not active or already on another active order."""


class AssignmentLockedError(ConflictError):
    """Order has departed; its assignment can no longer change."""


class OrderLockedError(ConflictError):
    """Order is in a terminal status and cannot be edited."""


# Not found


class OrderNotFoundError(NotFoundError):
    pass


class CustomerNotFoundError(NotFoundError):
    pass


class VehicleNotFoundError(NotFoundError):
    pass


class DriverNotFoundError(NotFoundError):
    pass


class HandlerNotFoundError(NotFoundError):
    pass


class GeocodeNotFoundError(NotFoundError):
    """Postal code has no unique match in the configured region."""


# Dependency


class ProviderError(DependencyError):
    """Provider unreachable, timed out, or returned an unexpected status."""


class RouteError(DependencyError):
    """Directions API answered with a non-OK status."""

    def __init__(self, message: str, provider_status: str, **context: Any):
        super().__init__(message, provider_status=provider_status, **context)
        self.provider_status = provider_status
