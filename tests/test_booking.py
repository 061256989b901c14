import unittest
from datetime import date, datetime, timedelta, timezone

from studio_reservations import Reservation, can_reserve, has_time_overlap
from studio_reservations.booking import ReservationRecord, intersects_window, parse_day, to_utc, utc_day_bounds


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestTimeOverlap(unittest.TestCase):
    def setUp(self) -> None:
        self.exist_start = utc(2024, 6, 1, 9, 0)
        self.exist_end = utc(2024, 6, 1, 10, 0)

    def test_non_overlapping_before_passes(self) -> None:
        self.assertFalse(has_time_overlap(utc(2024, 6, 1, 8, 0), utc(2024, 6, 1, 8, 59), self.exist_start, self.exist_end))

    def test_back_to_back_after_passes(self) -> None:
        self.assertFalse(has_time_overlap(utc(2024, 6, 1, 10, 0), utc(2024, 6, 1, 11, 0), self.exist_start, self.exist_end))

    def test_back_to_back_before_passes(self) -> None:
        self.assertFalse(has_time_overlap(utc(2024, 6, 1, 8, 0), utc(2024, 6, 1, 9, 0), self.exist_start, self.exist_end))

    def test_one_minute_overlap_fails(self) -> None:
        self.assertTrue(has_time_overlap(utc(2024, 6, 1, 9, 59), utc(2024, 6, 1, 10, 30), self.exist_start, self.exist_end))

    def test_fully_containing_fails(self) -> None:
        self.assertTrue(has_time_overlap(utc(2024, 6, 1, 8, 0), utc(2024, 6, 1, 12, 0), self.exist_start, self.exist_end))

    def test_identical_interval_fails(self) -> None:
        self.assertTrue(has_time_overlap(self.exist_start, self.exist_end, self.exist_start, self.exist_end))

    def test_rejects_empty_interval(self) -> None:
        with self.assertRaises(ValueError):
            has_time_overlap(self.exist_start, self.exist_start, self.exist_start, self.exist_end)


class TestCanReserve(unittest.TestCase):
    def setUp(self) -> None:
        self.existing = [
            Reservation(utc(2024, 6, 1, 9, 0), utc(2024, 6, 1, 10, 0)),
            Reservation(utc(2024, 6, 1, 10, 30), utc(2024, 6, 1, 11, 30)),
        ]

    def test_gap_between_reservations_is_free(self) -> None:
        self.assertTrue(can_reserve(utc(2024, 6, 1, 10, 0), utc(2024, 6, 1, 10, 30), self.existing))

    def test_any_overlap_blocks(self) -> None:
        self.assertFalse(can_reserve(utc(2024, 6, 1, 10, 0), utc(2024, 6, 1, 10, 31), self.existing))

    def test_reservation_requires_start_before_end(self) -> None:
        with self.assertRaises(ValueError):
            Reservation(utc(2024, 6, 1, 10, 0), utc(2024, 6, 1, 10, 0))


class TestWindowHelpers(unittest.TestCase):
    def test_utc_day_bounds(self) -> None:
        start, end = utc_day_bounds(date(2024, 6, 1))
        self.assertEqual(start, utc(2024, 6, 1, 0, 0))
        self.assertEqual(end, utc(2024, 6, 2, 0, 0))

    def test_intersects_window_with_open_bounds(self) -> None:
        start, end = utc(2024, 6, 1, 9, 0), utc(2024, 6, 1, 10, 0)
        self.assertTrue(intersects_window(start, end, None, None))
        self.assertTrue(intersects_window(start, end, utc(2024, 6, 1, 9, 30), None))
        self.assertFalse(intersects_window(start, end, utc(2024, 6, 1, 10, 0), None))
        self.assertFalse(intersects_window(start, end, None, utc(2024, 6, 1, 9, 0)))

    def test_to_utc_treats_naive_as_utc_and_converts_aware(self) -> None:
        self.assertEqual(to_utc(datetime(2024, 6, 1, 9, 0)), utc(2024, 6, 1, 9, 0))
        plus_two = timezone(timedelta(hours=2))
        self.assertEqual(to_utc(datetime(2024, 6, 1, 11, 0, tzinfo=plus_two)), utc(2024, 6, 1, 9, 0))

    def test_parse_day_accepts_strings_and_dates(self) -> None:
        self.assertEqual(parse_day("2024-06-01"), date(2024, 6, 1))
        self.assertEqual(parse_day(date(2024, 6, 1)), date(2024, 6, 1))
        with self.assertRaises(ValueError):
            parse_day("June first")


class TestReservationRecord(unittest.TestCase):
    def test_from_dict_normalizes_offsets_to_utc(self) -> None:
        record = ReservationRecord.from_dict(
            {
                "reservation_id": "r-1",
                "owner_id": "member-1",
                "start": "2024-06-01T11:00:00+02:00",
                "end": "2024-06-01T12:00:00+02:00",
                "created_at": "2024-05-30T08:00:00+00:00",
                "updated_at": "2024-05-30T08:00:00+00:00",
            }
        )

        self.assertEqual(record.start, utc(2024, 6, 1, 9, 0))
        self.assertEqual(record.to_dict()["start"], "2024-06-01T09:00:00+00:00")


if __name__ == "__main__":
    unittest.main()
