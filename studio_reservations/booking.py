from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable


@dataclass(frozen=True)
class Reservation:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError("Reservation start time must be earlier than end time.")


@dataclass(frozen=True)
class ReservationRecord:
    reservation_id: str
    owner_id: str
    start: datetime
    end: datetime
    created_at: datetime
    updated_at: datetime

    def as_interval(self) -> Reservation:
        return Reservation(self.start, self.end)

    def to_dict(self) -> dict[str, str]:
        return {
            "reservation_id": self.reservation_id,
            "owner_id": self.owner_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "updated_at": self.updated_at.isoformat(timespec="seconds"),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ReservationRecord":
        return ReservationRecord(
            reservation_id=str(data["reservation_id"]),
            owner_id=str(data["owner_id"]),
            start=to_utc(datetime.fromisoformat(str(data["start"]))),
            end=to_utc(datetime.fromisoformat(str(data["end"]))),
            created_at=to_utc(datetime.fromisoformat(str(data["created_at"]))),
            updated_at=to_utc(datetime.fromisoformat(str(data["updated_at"]))),
        )


def has_time_overlap(new_start: datetime, new_end: datetime, exist_start: datetime, exist_end: datetime) -> bool:
    """Return True when two time intervals overlap by any amount.

    Intervals are treated as half-open ranges: [start, end)
    so touching boundaries (e.g. 10:00-11:00 and 11:00-12:00) do not overlap.
    """
    if new_start >= new_end:
        raise ValueError("new_start must be earlier than new_end.")
    if exist_start >= exist_end:
        raise ValueError("exist_start must be earlier than exist_end.")

    return new_start < exist_end and exist_start < new_end


def can_reserve(new_start: datetime, new_end: datetime, existing_reservations: Iterable[Reservation]) -> bool:
    """Return True if the requested interval does not overlap any existing reservation."""
    if new_start >= new_end:
        raise ValueError("new_start must be earlier than new_end.")

    for reservation in existing_reservations:
        if has_time_overlap(new_start, new_end, reservation.start, reservation.end):
            return False
    return True


def intersects_window(
    start: datetime,
    end: datetime,
    window_start: datetime | None,
    window_end: datetime | None,
) -> bool:
    """Half-open intersection test where a missing bound is unbounded."""
    if window_end is not None and start >= window_end:
        return False
    if window_start is not None and end <= window_start:
        return False
    return True


def to_utc(value: datetime) -> datetime:
    # Naive values are taken to be UTC already.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_day_bounds(target_date: date) -> tuple[datetime, datetime]:
    start = datetime.combine(target_date, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def parse_day(value: date | str) -> date:
    if isinstance(value, datetime):
        return to_utc(value).date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
