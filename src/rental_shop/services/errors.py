"""Custom service layer errors."""

from __future__ import annotations

from typing import Iterable, Optional


class ServiceError(Exception):
    """Base error for service-layer failures."""


class ValidationError(ServiceError):
    """Raised when a business rule validation fails."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class InvalidTimestampError(ValidationError):
    """Raised when a timestamp cannot be parsed or is of the wrong type."""


class NotFoundError(ServiceError):
    """Raised when an entity is not found."""


class VehicleOverlapError(ServiceError):
    """Raised when a booking would double-book a vehicle."""

    def __init__(self, message: str, conflicting_ids: Iterable[int] = ()) -> None:
        super().__init__(message)
        self.conflicting_ids = tuple(conflicting_ids)


class InvalidTransitionError(ServiceError):
    """Raised when the booking state machine rejects an action."""

    def __init__(self, current_status: str, action: str) -> None:
        super().__init__(
            f"Cannot {action} a booking that is {current_status}."
        )
        self.current_status = current_status
        self.action = action
