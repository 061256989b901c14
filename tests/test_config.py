import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from studio_reservations import BookingValidator, InMemoryReservationStore, ReservationYamlRepository
from studio_reservations.config import Settings, build_store, build_validator


class TestSettings(unittest.TestCase):
    def test_defaults(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        self.assertEqual(settings.data_dir, "data")
        self.assertEqual(settings.store_backend, "yaml")
        self.assertEqual(settings.port, 5000)

    def test_reads_prefixed_environment(self) -> None:
        env = {"STUDIO_STORE_BACKEND": "memory", "STUDIO_LOCK_TIMEOUT": "0.5", "STUDIO_PORT": "8080"}
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)

        self.assertEqual(settings.store_backend, "memory")
        self.assertEqual(settings.lock_timeout, 0.5)
        self.assertEqual(settings.port, 8080)

    def test_rejects_unknown_backend(self) -> None:
        with patch.dict(os.environ, {"STUDIO_STORE_BACKEND": "postgres"}, clear=True):
            with self.assertRaises(ValueError):
                Settings(_env_file=None)


class TestWiring(unittest.TestCase):
    def test_memory_backend(self) -> None:
        store = build_store(Settings(_env_file=None, store_backend="memory"))
        self.assertIsInstance(store, InMemoryReservationStore)

    def test_yaml_backend_uses_data_dir(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            data_dir = Path(temp_dir) / "bookings"
            validator = build_validator(Settings(_env_file=None, data_dir=str(data_dir), max_log_events=10))

            self.assertIsInstance(validator, BookingValidator)
            self.assertIsInstance(validator.store, ReservationYamlRepository)
            self.assertTrue((data_dir / "reservations.yaml").exists())
            self.assertEqual(validator.store.max_log_events, 10)


if __name__ == "__main__":
    unittest.main()
