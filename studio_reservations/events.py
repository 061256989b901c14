from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from .booking import ReservationRecord

logger = logging.getLogger(__name__)

BOOKING_CREATED = "booking.created"
BOOKING_CANCELLED = "booking.cancelled"


@dataclass(frozen=True)
class ReservationEvent:
    event_type: str
    reservation: ReservationRecord
    occurred_at: datetime
    actor_id: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "event_type": self.event_type,
            "reservation": self.reservation.to_dict(),
            "occurred_at": self.occurred_at.isoformat(timespec="seconds"),
            "actor_id": self.actor_id,
        }


Subscriber = Callable[[ReservationEvent], None]


class EventHub:
    """Fan-out of reservation changes to interested listeners."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            self.unsubscribe(callback)

        return unsubscribe

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def publish(self, event: ReservationEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                # A broken listener must not undo a committed booking.
                logger.exception("Reservation event subscriber failed for %s", event.event_type)
