"""
Lifecycle error taxonomy and result types.

Pure domain functions return ``Ok`` or ``Err`` values so that a failed
guard is ordinary control flow. Service methods call ``unwrap()`` at their
boundary, which raises the ``LifecycleError`` subclass matching the kind.
"""

import enum
from dataclasses import dataclass
from typing import Generic, NoReturn, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    UNAUTHORIZED = "unauthorized"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    INVALID_OPERATION = "invalid_operation"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"


class LifecycleError(Exception):
    """Base exception for expected, caller-actionable lifecycle failures."""

    kind: ErrorKind = ErrorKind.INVALID_OPERATION
    retryable: bool = False

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class NotFoundError(LifecycleError):
    """Referenced event, option, waitlist entry or template does not exist."""

    kind = ErrorKind.NOT_FOUND


class InvalidTransitionError(LifecycleError):
    """
    Requested status change is not an edge of the transition graph,
    or a transition guard is not met.
    """

    kind = ErrorKind.INVALID_TRANSITION


class UnauthorizedError(LifecycleError):
    """Caller is not the organizer, moderator or participant the operation needs."""

    kind = ErrorKind.UNAUTHORIZED


class CapacityExceededError(LifecycleError):
    """Accept, invite or promotion would exceed max_attendees."""

    kind = ErrorKind.CAPACITY_EXCEEDED


class InvalidOperationError(LifecycleError):
    """Operation is not allowed in the event's current situation."""

    kind = ErrorKind.INVALID_OPERATION


class InputValidationError(LifecycleError):
    """
    Malformed input.

    Causes:
    - Rating outside the configured scale
    - Missing or inconsistent recurrence fields
    """

    kind = ErrorKind.VALIDATION_ERROR


class ConflictError(LifecycleError):
    """
    Concurrent modification detected (optimistic version mismatch).

    Retryable after re-reading the event.
    """

    kind = ErrorKind.CONFLICT
    retryable = True


_ERRORS_BY_KIND: dict[ErrorKind, type[LifecycleError]] = {
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.INVALID_TRANSITION: InvalidTransitionError,
    ErrorKind.UNAUTHORIZED: UnauthorizedError,
    ErrorKind.CAPACITY_EXCEEDED: CapacityExceededError,
    ErrorKind.INVALID_OPERATION: InvalidOperationError,
    ErrorKind.VALIDATION_ERROR: InputValidationError,
    ErrorKind.CONFLICT: ConflictError,
}


def error_for(kind: ErrorKind, message: str) -> LifecycleError:
    """Build the exception matching an error kind."""
    return _ERRORS_BY_KIND[kind](message)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self) -> NoReturn:
        raise error_for(self.kind, self.message)


Result = Union[Ok[T], Err]
