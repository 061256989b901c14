from __future__ import annotations

import logging
from collections.abc import Collection
from datetime import date, datetime
from typing import Callable

from .booking import ReservationRecord, parse_day, to_utc, utc_day_bounds, utc_now
from .errors import (
    BookingErrorKind,
    BookingResult,
    ReservationConflictError,
    ReservationNotFoundError,
    ReservationStorageError,
)
from .events import BOOKING_CANCELLED, BOOKING_CREATED, EventHub, ReservationEvent
from .identity import ADMIN_ROLE
from .store import ReservationStore

logger = logging.getLogger(__name__)


def _resolve_owner(owner_id: str | None) -> str | None:
    if owner_id is None:
        return None
    normalized = str(owner_id).strip()
    return normalized or None


class BookingValidator:
    """Validates booking requests and applies them to a reservation store.

    The validator keeps no state between calls; every check reads the store
    afresh. The overlap pre-check only fails fast: the store's insert is the
    authority on conflicts, and a conflict it reports is treated exactly like
    one found up front.
    """

    def __init__(
        self,
        store: ReservationStore,
        clock: Callable[[], datetime] | None = None,
        events: EventHub | None = None,
    ) -> None:
        self.store = store
        self.clock: Callable[[], datetime] = clock or utc_now
        self.events = events

    def _now(self) -> datetime:
        return to_utc(self.clock())

    def _publish(self, event_type: str, record: ReservationRecord, actor_id: str) -> None:
        if self.events is None:
            return
        self.events.publish(ReservationEvent(event_type, record, self._now(), actor_id))

    def propose_booking(
        self,
        owner_id: str | None,
        start: datetime,
        end: datetime,
    ) -> BookingResult[ReservationRecord]:
        owner = _resolve_owner(owner_id)
        if owner is None:
            return BookingResult.failure(BookingErrorKind.UNAUTHENTICATED)

        start, end = to_utc(start), to_utc(end)
        if start >= end:
            return BookingResult.failure(BookingErrorKind.INVALID_INTERVAL)

        try:
            conflicts = self.store.find(start=start, end=end)
        except ReservationStorageError as error:
            logger.warning("Overlap check failed for %s: %s", owner, error)
            return BookingResult.failure(BookingErrorKind.STORE_UNAVAILABLE, retryable=True)
        if conflicts:
            logger.info("Rejected booking for %s: overlaps %d reservation(s)", owner, len(conflicts))
            return BookingResult.failure(BookingErrorKind.SLOT_UNAVAILABLE)

        try:
            record = self.store.insert(owner, start, end, now=self._now())
        except ReservationConflictError:
            logger.info("Store constraint rejected booking for %s at %s", owner, start.isoformat())
            return BookingResult.failure(BookingErrorKind.SLOT_UNAVAILABLE)
        except ReservationStorageError as error:
            # Not retryable: the insert may or may not have committed.
            logger.error("Insert failed for %s: %s", owner, error)
            return BookingResult.failure(BookingErrorKind.STORE_UNAVAILABLE)

        logger.info("Booked %s for %s (%s - %s)", record.reservation_id, owner, record.start, record.end)
        self._publish(BOOKING_CREATED, record, owner)
        return BookingResult.success(record)

    def list_bookings_for_day(self, day: date | str) -> BookingResult[list[ReservationRecord]]:
        try:
            target = parse_day(day)
        except ValueError:
            return BookingResult.failure(
                BookingErrorKind.INVALID_INTERVAL,
                f"'{day}' is not a valid calendar date (expected YYYY-MM-DD).",
            )

        window_start, window_end = utc_day_bounds(target)
        try:
            records = self.store.find(start=window_start, end=window_end)
        except ReservationStorageError as error:
            logger.warning("Listing bookings for %s failed: %s", target, error)
            return BookingResult.failure(BookingErrorKind.STORE_UNAVAILABLE, retryable=True)

        return BookingResult.success(sorted(records, key=lambda record: record.start))

    def list_upcoming_bookings_for_owner(
        self,
        owner_id: str | None,
        now: datetime | None = None,
    ) -> BookingResult[list[ReservationRecord]]:
        owner = _resolve_owner(owner_id)
        if owner is None:
            return BookingResult.failure(BookingErrorKind.UNAUTHENTICATED)

        effective_now = to_utc(now) if now is not None else self._now()
        try:
            records = self.store.find(start=effective_now, owner_id=owner)
        except ReservationStorageError as error:
            logger.warning("Listing upcoming bookings for %s failed: %s", owner, error)
            return BookingResult.failure(BookingErrorKind.STORE_UNAVAILABLE, retryable=True)

        upcoming = [record for record in records if record.start >= effective_now]
        return BookingResult.success(sorted(upcoming, key=lambda record: record.start))

    def cancel_booking(
        self,
        booking_id: str,
        requester_id: str | None,
        *,
        roles: Collection[str] = (),
    ) -> BookingResult[ReservationRecord]:
        requester = _resolve_owner(requester_id)
        if requester is None:
            return BookingResult.failure(BookingErrorKind.UNAUTHENTICATED)

        try:
            record = self.store.get(booking_id)
        except ReservationStorageError as error:
            logger.warning("Lookup of booking %s failed: %s", booking_id, error)
            return BookingResult.failure(BookingErrorKind.STORE_UNAVAILABLE, retryable=True)
        if record is None:
            return BookingResult.failure(BookingErrorKind.NOT_FOUND)

        if record.owner_id != requester and ADMIN_ROLE not in roles:
            logger.info("Refused cancel of %s by %s", booking_id, requester)
            return BookingResult.failure(BookingErrorKind.FORBIDDEN)

        try:
            deleted = self.store.delete(booking_id, now=self._now())
        except ReservationNotFoundError:
            return BookingResult.failure(BookingErrorKind.NOT_FOUND)
        except ReservationStorageError as error:
            logger.error("Delete of booking %s failed: %s", booking_id, error)
            return BookingResult.failure(BookingErrorKind.STORE_UNAVAILABLE)

        logger.info("Cancelled %s by %s", booking_id, requester)
        self._publish(BOOKING_CANCELLED, deleted, requester)
        return BookingResult.success(deleted)
