from .booking import Reservation, ReservationRecord, can_reserve, has_time_overlap
from .errors import (
	BookingError,
	BookingErrorKind,
	BookingFailed,
	BookingResult,
	ReservationConflictError,
	ReservationNotFoundError,
	ReservationStorageError,
)
from .events import EventHub, ReservationEvent
from .identity import ADMIN_ROLE, Identity, identity_from_headers
from .store import InMemoryReservationStore, ReservationStore
from .validator import BookingValidator
from .yaml_store import ReservationYamlRepository

__all__ = [
	"Reservation",
	"ReservationRecord",
	"has_time_overlap",
	"can_reserve",
	"BookingError",
	"BookingErrorKind",
	"BookingFailed",
	"BookingResult",
	"ReservationConflictError",
	"ReservationNotFoundError",
	"ReservationStorageError",
	"EventHub",
	"ReservationEvent",
	"ADMIN_ROLE",
	"Identity",
	"identity_from_headers",
	"InMemoryReservationStore",
	"ReservationStore",
	"BookingValidator",
	"ReservationYamlRepository",
]
