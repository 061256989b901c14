from __future__ import annotations

import logging
import shutil
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

import yaml

from .booking import ReservationRecord, to_utc, utc_now
from .errors import ReservationConflictError, ReservationNotFoundError, ReservationStorageError
from .store import DEFAULT_LOCK_TIMEOUT, ensure_no_overlap, filter_records, new_record

logger = logging.getLogger(__name__)

# The event log is rewritten on every append; older events are dropped.
DEFAULT_MAX_LOG_EVENTS = 5000

_DIRECTORY_LOCKS: dict[Path, threading.Lock] = {}
_DIRECTORY_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    # Repositories opened on the same directory share one lock.
    key = path.resolve()
    with _DIRECTORY_LOCKS_GUARD:
        lock = _DIRECTORY_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _DIRECTORY_LOCKS[key] = lock
        return lock


class ReservationYamlRepository:
    def __init__(
        self,
        base_dir: str | Path = "data",
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        max_log_events: int = DEFAULT_MAX_LOG_EVENTS,
    ) -> None:
        if max_log_events < 1:
            raise ValueError("max_log_events must be positive.")
        self.base_dir = Path(base_dir)
        self.reservations_file = self.base_dir / "reservations.yaml"
        self.log_file = self.base_dir / "reservation_events.yaml"
        self.lock_timeout = lock_timeout
        self.max_log_events = max_log_events
        self._ensure_files()
        self._lock = _lock_for(self.base_dir)

    def _ensure_files(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            for path in (self.reservations_file, self.log_file):
                if not path.exists():
                    path.write_text("[]\n", encoding="utf-8")
        except OSError as error:
            raise ReservationStorageError(f"Cannot prepare data directory: {self.base_dir}") from error

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self.lock_timeout):
            raise ReservationStorageError(f"Timed out waiting for reservation store lock: {self.base_dir}")
        try:
            yield
        finally:
            self._lock.release()

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            path.write_text("[]\n", encoding="utf-8")
            return []
        except (UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_yaml(path, error)
            return []
        except OSError as error:
            raise ReservationStorageError(f"Failed to read YAML file: {path}") from error

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"))
            return []

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            elif path == self.log_file:
                # Logging the skip would re-read this same row.
                logger.warning("Dropping non-mapping event log row %d in %s", index, path)
            else:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping",
                    },
                )
        return sanitized

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise ReservationStorageError(f"Failed to write YAML file: {path}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> None:
        timestamp = utc_now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError:
            logger.warning("Could not back up corrupted file %s", path)

        logger.error("Recovered corrupted YAML file %s: %s", path, error)
        path.write_text("[]\n", encoding="utf-8")
        if path != self.log_file:
            self._log_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        """Append an audit event, keeping only the newest ``max_log_events``.

        The audit log never decides a booking outcome: once a reservation is
        written, a failure here is logged and swallowed.
        """
        timestamp = to_utc(event_time or utc_now()).isoformat(timespec="seconds")
        try:
            events = self._read_yaml_list(self.log_file)
            events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
            self._write_yaml_list(self.log_file, events[-self.max_log_events :])
        except (ReservationStorageError, OSError):
            logger.exception("Failed to record %s event in %s", event_type, self.log_file)

    def _load_records(self) -> list[ReservationRecord]:
        records: list[ReservationRecord] = []
        for index, row in enumerate(self._read_yaml_list(self.reservations_file)):
            try:
                records.append(ReservationRecord.from_dict(row))
            except (KeyError, TypeError, ValueError) as error:
                logger.warning("Skipping malformed reservation row %d: %s", index, error)
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(self.reservations_file.name),
                        "index": index,
                        "reason": str(error),
                    },
                )
        return records

    def read_events(self) -> list[dict[str, Any]]:
        with self._locked():
            return self._read_yaml_list(self.log_file)

    def find(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        owner_id: str | None = None,
    ) -> list[ReservationRecord]:
        with self._locked():
            records = self._load_records()
        return filter_records(records, start, end, owner_id)

    def get(self, reservation_id: str) -> ReservationRecord | None:
        with self._locked():
            for record in self._load_records():
                if record.reservation_id == reservation_id:
                    return record
        return None

    def insert(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
        now: datetime | None = None,
    ) -> ReservationRecord:
        effective_now = to_utc(now or utc_now())
        start, end = to_utc(start), to_utc(end)
        if start >= end:
            raise ValueError("Reservation start time must be earlier than end time.")

        with self._locked():
            existing = self._load_records()
            try:
                ensure_no_overlap(start, end, existing)
            except ReservationConflictError:
                self._log_event(
                    "RESERVATION_CONFLICT_REJECTED",
                    {
                        "owner_id": owner_id,
                        "start": start.isoformat(timespec="seconds"),
                        "end": end.isoformat(timespec="seconds"),
                    },
                    effective_now,
                )
                raise

            record = new_record(owner_id, start, end, effective_now)
            rows = [row.to_dict() for row in existing]
            rows.append(record.to_dict())
            self._write_yaml_list(self.reservations_file, rows)

            self._log_event(
                "RESERVATION_CREATED",
                {
                    "reservation_id": record.reservation_id,
                    "owner_id": owner_id,
                    "start": record.start.isoformat(timespec="seconds"),
                    "end": record.end.isoformat(timespec="seconds"),
                },
                effective_now,
            )
        return record

    def delete(self, reservation_id: str, now: datetime | None = None) -> ReservationRecord:
        effective_now = to_utc(now or utc_now())

        with self._locked():
            records = self._load_records()
            remaining: list[ReservationRecord] = []
            deleted: ReservationRecord | None = None
            for record in records:
                if deleted is None and record.reservation_id == reservation_id:
                    deleted = record
                else:
                    remaining.append(record)

            if deleted is None:
                raise ReservationNotFoundError(reservation_id)

            self._write_yaml_list(self.reservations_file, [row.to_dict() for row in remaining])
            self._log_event(
                "RESERVATION_DELETED",
                {
                    "reservation_id": deleted.reservation_id,
                    "owner_id": deleted.owner_id,
                    "start": deleted.start.isoformat(timespec="seconds"),
                    "end": deleted.end.isoformat(timespec="seconds"),
                },
                effective_now,
            )
        return deleted
