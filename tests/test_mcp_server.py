import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from studio_reservations import BookingValidator, InMemoryReservationStore
from studio_reservations import mcp_server


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


NOW = utc(2024, 5, 31, 12, 0)


class TestMcpTools(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryReservationStore()
        validator = BookingValidator(self.store, clock=lambda: NOW)
        patcher = patch.object(mcp_server, "_validator", lambda: validator)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_propose_and_list(self) -> None:
        created = mcp_server.propose_booking("member-1", "2024-06-01T09:00:00+00:00", "2024-06-01T10:00:00+00:00")
        self.assertTrue(created["ok"])

        listed = mcp_server.list_bookings_for_day("2024-06-01")
        self.assertEqual([row["reservation_id"] for row in listed["reservations"]], [created["reservation"]["reservation_id"]])

        upcoming = mcp_server.list_upcoming_bookings("member-1")
        self.assertEqual(len(upcoming["reservations"]), 1)

    def test_conflict_is_reported_as_payload(self) -> None:
        mcp_server.propose_booking("member-1", "2024-06-01T09:00:00+00:00", "2024-06-01T10:00:00+00:00")
        conflict = mcp_server.propose_booking("member-2", "2024-06-01T09:30:00+00:00", "2024-06-01T10:30:00+00:00")

        self.assertFalse(conflict["ok"])
        self.assertEqual(conflict["error"], "slot_unavailable")

    def test_bad_timestamps(self) -> None:
        result = mcp_server.propose_booking("member-1", "soon", "later")
        self.assertEqual(result["error"], "bad_request")

    def test_cancel_requires_owner_or_admin(self) -> None:
        created = mcp_server.propose_booking("member-1", "2024-06-01T09:00:00+00:00", "2024-06-01T10:00:00+00:00")
        reservation_id = created["reservation"]["reservation_id"]

        self.assertEqual(mcp_server.cancel_booking(reservation_id, "member-2")["error"], "forbidden")
        self.assertTrue(mcp_server.cancel_booking(reservation_id, "staff-1", is_admin=True)["ok"])
        self.assertEqual(mcp_server.cancel_booking(reservation_id, "member-1")["error"], "not_found")

    def test_today_resource_follows_validator_clock(self) -> None:
        self.store.insert("member-1", utc(2024, 5, 31, 9, 0), utc(2024, 5, 31, 10, 0), now=NOW)
        self.store.insert("member-2", utc(2024, 6, 1, 9, 0), utc(2024, 6, 1, 10, 0), now=NOW)

        rows = mcp_server.todays_bookings()

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["owner_id"], "member-1")


if __name__ == "__main__":
    unittest.main()
