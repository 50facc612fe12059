from __future__ import annotations

import shutil
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator
from uuid import uuid4

import yaml
from filelock import FileLock, Timeout as FileLockTimeout

from .booking import check_reservation, find_overlapping_pairs
from .errors import (
    InvertedRangeError,
    ReservationConflictError,
    ReservationError,
    ReservationNotFoundError,
    ReservationStorageError,
)

LOCK_TIMEOUT_SECONDS = 30


@dataclass(frozen=True)
class ReservationRecord:
    reservation_id: str
    name: str
    start_date: str
    end_date: str
    created_at: datetime
    updated_at: datetime

    def __post_init__(self) -> None:
        if self.end_date < self.start_date:
            raise InvertedRangeError(self.start_date, self.end_date)

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.reservation_id,
            "name": self.name,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "updated_at": self.updated_at.isoformat(timespec="seconds"),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ReservationRecord":
        created_at = datetime.fromisoformat(str(data["created_at"]))
        return ReservationRecord(
            reservation_id=str(data["id"]),
            name=str(data["name"]),
            start_date=str(data["start_date"]),
            end_date=str(data["end_date"]),
            created_at=created_at,
            updated_at=(datetime.fromisoformat(str(data["updated_at"])) if data.get("updated_at") else created_at),
        )


class ReservationYamlRepository:
    """Reservation store backed by a YAML file.

    Insert, update and delete re-run the conflict check against the current
    file contents while holding ``reservations.yaml.lock``. Every repository
    opened on the same directory, in this process or another, takes the same
    lock, so overlapping reservations are never both committed.

    A corrupt reservations file is reported as a storage failure and left in
    place. A corrupt event log is backed up and started afresh.
    """

    def __init__(self, base_dir: str | Path = "data") -> None:
        self.base_dir = Path(base_dir)
        self.reservations_file = self.base_dir / "reservations.yaml"
        self.log_file = self.base_dir / "reservation_events.yaml"
        self._ensure_files()
        self._lock = FileLock(str(self.base_dir / "reservations.yaml.lock"), timeout=LOCK_TIMEOUT_SECONDS)

    def _ensure_files(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            for path in (self.reservations_file, self.log_file):
                if not path.exists():
                    path.write_text("[]\n", encoding="utf-8")
        except OSError as error:
            raise ReservationStorageError(f"Failed to prepare data directory: {self.base_dir}") from error

    @contextmanager
    def _locked(self) -> Iterator[None]:
        try:
            self._lock.acquire()
        except FileLockTimeout as error:
            raise ReservationStorageError(f"Timed out waiting for {self._lock.lock_file}") from error
        try:
            yield
        finally:
            self._lock.release()

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            return self._unreadable(path, error)

        if payload is None:
            return []
        if not isinstance(payload, list):
            return self._unreadable(path, ValueError("top-level YAML is not a list"))

        rows = [row for row in payload if isinstance(row, dict)]
        if len(rows) < len(payload) and path != self.log_file:
            skipped = [index for index, row in enumerate(payload) if not isinstance(row, dict)]
            self._log_event(
                "YAML_ROW_SKIPPED",
                {"file": path.name, "indexes": skipped, "reason": "row is not a mapping"},
            )
        return rows

    def _unreadable(self, path: Path, error: Exception) -> list[dict[str, Any]]:
        if path != self.log_file:
            raise ReservationStorageError(f"Unreadable reservation file {path.name}: {error}") from error

        backup_path = path.with_name(f"{path.stem}.corrupt.{datetime.now():%Y%m%d%H%M%S}{path.suffix}")
        try:
            shutil.copy2(path, backup_path)
        except OSError as copy_error:
            raise ReservationStorageError(f"Failed to back up corrupted event log: {path}") from copy_error

        recovered = [
            {
                "event_time": datetime.now().isoformat(timespec="seconds"),
                "event_type": "YAML_RECOVERED",
                "payload": {"file": path.name, "backup": backup_path.name, "reason": str(error)},
            }
        ]
        self._write_yaml_list(path, recovered)
        return recovered

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise ReservationStorageError(f"Failed to write YAML file: {path}") from error
        finally:
            temp_path.unlink(missing_ok=True)

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now()).isoformat(timespec="seconds")
        with self._locked():
            events = self._read_yaml_list(self.log_file)
            events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
            self._write_yaml_list(self.log_file, events)

    def _load_records(self) -> list[ReservationRecord]:
        rows = self._read_yaml_list(self.reservations_file)
        try:
            return [ReservationRecord.from_dict(row) for row in rows]
        except (KeyError, ValueError) as error:
            raise ReservationStorageError(f"Malformed reservation row in {self.reservations_file.name}") from error

    def _save_records(self, records: list[ReservationRecord]) -> None:
        self._write_yaml_list(self.reservations_file, [record.to_dict() for record in records])

    def read_events(self) -> list[dict[str, Any]]:
        with self._locked():
            return self._read_yaml_list(self.log_file)

    def list_all(self) -> list[ReservationRecord]:
        with self._locked():
            return self._load_records()

    def get(self, reservation_id: str) -> ReservationRecord | None:
        for record in self.list_all():
            if record.reservation_id == reservation_id:
                return record
        return None

    def insert(
        self,
        name: str,
        start_date: str,
        end_date: str,
        now: datetime | None = None,
    ) -> ReservationRecord:
        effective_now = (now or datetime.now()).replace(microsecond=0)

        with self._locked():
            records = self._load_records()
            try:
                accepted = check_reservation(name, start_date, end_date, records)
            except ReservationError as error:
                self._log_rejection("insert", error, name, start_date, end_date, effective_now)
                raise

            record = ReservationRecord(
                reservation_id=str(uuid4()),
                name=accepted.name,
                start_date=accepted.start_date,
                end_date=accepted.end_date,
                created_at=effective_now,
                updated_at=effective_now,
            )
            records.append(record)
            self._save_records(records)

            self._log_event(
                "RESERVATION_CREATED",
                {
                    "id": record.reservation_id,
                    "name": record.name,
                    "start_date": record.start_date,
                    "end_date": record.end_date,
                },
                effective_now,
            )
        return record

    def update(
        self,
        reservation_id: str,
        name: str,
        start_date: str,
        end_date: str,
        now: datetime | None = None,
    ) -> ReservationRecord:
        effective_now = (now or datetime.now()).replace(microsecond=0)

        with self._locked():
            records = self._load_records()
            found_index = -1
            for index, record in enumerate(records):
                if record.reservation_id == reservation_id:
                    found_index = index
                    break

            if found_index < 0:
                raise ReservationNotFoundError(reservation_id)

            current = records[found_index]
            try:
                accepted = check_reservation(name, start_date, end_date, records, exclude_id=reservation_id)
            except ReservationError as error:
                self._log_rejection("update", error, name, start_date, end_date, effective_now, reservation_id)
                raise

            updated = ReservationRecord(
                reservation_id=current.reservation_id,
                name=accepted.name,
                start_date=accepted.start_date,
                end_date=accepted.end_date,
                created_at=current.created_at,
                updated_at=effective_now,
            )
            records[found_index] = updated
            self._save_records(records)

            self._log_event(
                "RESERVATION_UPDATED",
                {
                    "id": reservation_id,
                    "name": updated.name,
                    "start_date": updated.start_date,
                    "end_date": updated.end_date,
                    "previous_start_date": current.start_date,
                    "previous_end_date": current.end_date,
                },
                effective_now,
            )
        return updated

    def delete(self, reservation_id: str, now: datetime | None = None) -> ReservationRecord:
        effective_now = (now or datetime.now()).replace(microsecond=0)

        with self._locked():
            records = self._load_records()
            remaining = [record for record in records if record.reservation_id != reservation_id]
            if len(remaining) == len(records):
                raise ReservationNotFoundError(reservation_id)

            deleted = next(record for record in records if record.reservation_id == reservation_id)
            self._save_records(remaining)

            self._log_event(
                "RESERVATION_DELETED",
                {
                    "id": deleted.reservation_id,
                    "name": deleted.name,
                    "start_date": deleted.start_date,
                    "end_date": deleted.end_date,
                },
                effective_now,
            )
        return deleted

    def find_overlap_anomalies(self, now: datetime | None = None) -> list[tuple[ReservationRecord, ReservationRecord]]:
        """Return stored reservations that overlap each other.

        Each pair is logged as ``OVERLAP_ANOMALY`` the first time it is seen;
        the event log is not touched when every pair is already recorded.
        """
        effective_now = (now or datetime.now()).replace(microsecond=0)
        with self._locked():
            pairs = find_overlapping_pairs(self._load_records())
            if not pairs:
                return pairs

            logged = self._logged_anomalies()
            for first, second in pairs:
                if frozenset((first.reservation_id, second.reservation_id)) in logged:
                    continue
                self._log_event(
                    "OVERLAP_ANOMALY",
                    {
                        "first": first.to_dict(),
                        "second": second.to_dict(),
                    },
                    effective_now,
                )
        return pairs

    def _logged_anomalies(self) -> set[frozenset[str]]:
        keys: set[frozenset[str]] = set()
        for event in self._read_yaml_list(self.log_file):
            payload = event.get("payload")
            if event.get("event_type") != "OVERLAP_ANOMALY" or not isinstance(payload, dict):
                continue
            try:
                keys.add(frozenset((str(payload["first"]["id"]), str(payload["second"]["id"]))))
            except (KeyError, TypeError):
                continue
        return keys

    def _log_rejection(
        self,
        operation: str,
        error: ReservationError,
        name: str | None,
        start_date: str | None,
        end_date: str | None,
        event_time: datetime,
        reservation_id: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {
            "operation": operation,
            "kind": error.kind,
            "reason": str(error),
            "name": name,
            "start_date": start_date,
            "end_date": end_date,
        }
        if reservation_id is not None:
            payload["id"] = reservation_id
        if isinstance(error, ReservationConflictError):
            payload["conflicting_id"] = error.conflicting.reservation_id
        self._log_event("RESERVATION_REJECTED", payload, event_time)
