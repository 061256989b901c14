"""Typed booking outcomes and the exceptions raised by reservation stores.

Stores raise exceptions; the validator translates them into a
:class:`BookingResult` so callers always receive a discriminated
success/error value instead of an exception.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ReservationStorageError(RuntimeError):
    """The store could not be reached, timed out or failed to persist."""


class ReservationConflictError(ValueError):
    """The store's no-overlap constraint rejected an insert."""


class ReservationNotFoundError(KeyError):
    pass


class BookingErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    INVALID_INTERVAL = "invalid_interval"
    SLOT_UNAVAILABLE = "slot_unavailable"
    STORE_UNAVAILABLE = "store_unavailable"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"


ERROR_MESSAGES: dict[BookingErrorKind, str] = {
    BookingErrorKind.UNAUTHENTICATED: "You must be signed in as a member to manage bookings.",
    BookingErrorKind.INVALID_INTERVAL: "Booking start time must be earlier than its end time.",
    BookingErrorKind.SLOT_UNAVAILABLE: "The requested time overlaps an existing booking.",
    BookingErrorKind.STORE_UNAVAILABLE: "The booking store is unavailable right now. Please try again shortly.",
    BookingErrorKind.FORBIDDEN: "Only the member who made this booking or an administrator can cancel it.",
    BookingErrorKind.NOT_FOUND: "No booking exists with that id.",
}


@dataclass(frozen=True)
class BookingError:
    kind: BookingErrorKind
    message: str
    # Only reads are safe to retry; a failed insert may have committed.
    retryable: bool = False

    @classmethod
    def of(cls, kind: BookingErrorKind, message: str | None = None, *, retryable: bool = False) -> "BookingError":
        return cls(kind=kind, message=message or ERROR_MESSAGES[kind], retryable=retryable)

    def to_dict(self) -> dict[str, object]:
        return {"error": self.kind.value, "message": self.message, "retryable": self.retryable}


class BookingFailed(Exception):
    """Raised by :meth:`BookingResult.unwrap` on an error result."""

    def __init__(self, error: BookingError) -> None:
        super().__init__(error.message)
        self.error = error


@dataclass(frozen=True)
class BookingResult(Generic[T]):
    value: T | None = None
    error: BookingError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "BookingResult[T]":
        return cls(value=value)

    @classmethod
    def failure(
        cls,
        kind: BookingErrorKind,
        message: str | None = None,
        *,
        retryable: bool = False,
    ) -> "BookingResult[T]":
        return cls(error=BookingError.of(kind, message, retryable=retryable))

    def unwrap(self) -> T:
        if self.error is not None:
            raise BookingFailed(self.error)
        return self.value  # type: ignore[return-value]
