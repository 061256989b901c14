from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Protocol
from uuid import uuid4

from .booking import ReservationRecord, can_reserve, intersects_window, to_utc, utc_now
from .errors import ReservationConflictError, ReservationNotFoundError, ReservationStorageError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 5.0


class ReservationStore(Protocol):
    """Persistence seam used by the booking validator.

    ``insert`` must enforce the no-overlap invariant atomically and raise
    :class:`ReservationConflictError` when it would be broken.
    """

    def find(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        owner_id: str | None = None,
    ) -> list[ReservationRecord]: ...

    def get(self, reservation_id: str) -> ReservationRecord | None: ...

    def insert(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
        now: datetime | None = None,
    ) -> ReservationRecord: ...

    def delete(self, reservation_id: str, now: datetime | None = None) -> ReservationRecord: ...


def filter_records(
    records: list[ReservationRecord],
    start: datetime | None,
    end: datetime | None,
    owner_id: str | None,
) -> list[ReservationRecord]:
    start = to_utc(start) if start is not None else None
    end = to_utc(end) if end is not None else None
    matched = [
        record
        for record in records
        if (owner_id is None or record.owner_id == owner_id)
        and intersects_window(record.start, record.end, start, end)
    ]
    matched.sort(key=lambda record: (record.start, record.reservation_id))
    return matched


def new_record(owner_id: str, start: datetime, end: datetime, now: datetime) -> ReservationRecord:
    # Bookkeeping timestamps are persisted at second precision.
    now = now.replace(microsecond=0)
    return ReservationRecord(
        reservation_id=str(uuid4()),
        owner_id=owner_id,
        start=start,
        end=end,
        created_at=now,
        updated_at=now,
    )


def ensure_no_overlap(start: datetime, end: datetime, existing: list[ReservationRecord]) -> None:
    if not can_reserve(start, end, [record.as_interval() for record in existing]):
        raise ReservationConflictError("Reservation overlaps with an existing reservation.")


class InMemoryReservationStore:
    def __init__(self, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self._items: dict[str, ReservationRecord] = {}
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise ReservationStorageError("Timed out waiting for the reservation store lock.")
        try:
            yield
        finally:
            self._lock.release()

    def find(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        owner_id: str | None = None,
    ) -> list[ReservationRecord]:
        with self._locked():
            records = list(self._items.values())
        return filter_records(records, start, end, owner_id)

    def get(self, reservation_id: str) -> ReservationRecord | None:
        with self._locked():
            return self._items.get(reservation_id)

    def insert(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
        now: datetime | None = None,
    ) -> ReservationRecord:
        start, end = to_utc(start), to_utc(end)
        if start >= end:
            raise ValueError("Reservation start time must be earlier than end time.")

        with self._locked():
            ensure_no_overlap(start, end, list(self._items.values()))
            record = new_record(owner_id, start, end, to_utc(now or utc_now()))
            self._items[record.reservation_id] = record

        logger.debug("Stored reservation %s for %s", record.reservation_id, owner_id)
        return record

    def delete(self, reservation_id: str, now: datetime | None = None) -> ReservationRecord:
        with self._locked():
            record = self._items.pop(reservation_id, None)
        if record is None:
            raise ReservationNotFoundError(reservation_id)
        return record
