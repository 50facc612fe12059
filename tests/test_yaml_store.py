import multiprocessing
import tempfile
import threading
import unittest
from datetime import datetime
from pathlib import Path
from typing import Any
from unittest import mock

import yaml

from house_calendar import (
    EmptyNameError,
    InvertedRangeError,
    ReservationConflictError,
    ReservationNotFoundError,
    ReservationStorageError,
    ReservationYamlRepository,
)


class TestReservationYamlRepository(unittest.TestCase):
    def test_insert_assigns_id_and_timestamps(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            now = datetime(2026, 2, 24, 9, 0)
            created = repo.insert("  Alice ", "2026-03-01", "2026-03-05", now=now)

            self.assertTrue(created.reservation_id)
            self.assertEqual(created.name, "Alice")
            self.assertEqual(created.created_at, now)
            self.assertEqual(repo.list_all(), [created])
            self.assertEqual(repo.get(created.reservation_id), created)

    def test_records_survive_reopening(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            data_dir = Path(temp_dir) / "data"
            created = ReservationYamlRepository(data_dir).insert("Alice", "2026-03-01", "2026-03-05")

            reopened = ReservationYamlRepository(data_dir)
            self.assertEqual(reopened.list_all(), [created])

            rows = yaml.safe_load((data_dir / "reservations.yaml").read_text(encoding="utf-8"))
            self.assertEqual(rows[0]["id"], created.reservation_id)
            self.assertEqual(rows[0]["start_date"], "2026-03-01")

    def test_insert_rejects_overlap(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            repo.insert("Alice", "2026-03-01", "2026-03-05")

            with self.assertRaises(ReservationConflictError) as context:
                repo.insert("Bob", "2026-03-05", "2026-03-08")

            self.assertEqual(context.exception.conflicting.name, "Alice")
            self.assertEqual(len(repo.list_all()), 1)

    def test_insert_rejects_invalid_fields(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            with self.assertRaises(EmptyNameError):
                repo.insert("   ", "2026-03-01", "2026-03-05")
            self.assertEqual(repo.list_all(), [])

    def test_update_excludes_itself(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            created = repo.insert("Alice", "2026-03-01", "2026-03-05", now=datetime(2026, 2, 24, 9, 0))

            updated = repo.update(
                created.reservation_id,
                "Alice B.",
                "2026-03-02",
                "2026-03-06",
                now=datetime(2026, 2, 25, 9, 0),
            )

            self.assertEqual(updated.reservation_id, created.reservation_id)
            self.assertEqual(updated.name, "Alice B.")
            self.assertEqual(updated.created_at, created.created_at)
            self.assertEqual(updated.updated_at, datetime(2026, 2, 25, 9, 0))
            self.assertEqual(repo.list_all(), [updated])

    def test_update_rejects_overlap_with_other(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            alice = repo.insert("Alice", "2026-03-01", "2026-03-05")
            repo.insert("Carol", "2026-03-06", "2026-03-10")

            with self.assertRaises(ReservationConflictError) as context:
                repo.update(alice.reservation_id, "Alice", "2026-03-01", "2026-03-07")

            self.assertEqual(context.exception.conflicting.name, "Carol")
            self.assertEqual(repo.get(alice.reservation_id), alice)

    def test_update_and_delete_unknown_id(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            with self.assertRaises(ReservationNotFoundError):
                repo.update("missing", "Alice", "2026-03-01", "2026-03-05")
            with self.assertRaises(ReservationNotFoundError) as context:
                repo.delete("missing")
            self.assertEqual(context.exception.kind, "not_found")

    def test_delete_reservation_removes_record(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            created = repo.insert("Alice", "2026-03-01", "2026-03-05")

            deleted = repo.delete(created.reservation_id)

            self.assertEqual(deleted.reservation_id, created.reservation_id)
            self.assertEqual(repo.list_all(), [])
            repo.insert("Bob", "2026-03-03", "2026-03-04")

    def test_logs_create_update_delete_and_rejection_events(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            created = repo.insert("Alice", "2026-03-01", "2026-03-05")
            repo.update(created.reservation_id, "Alice", "2026-03-02", "2026-03-05")
            with self.assertRaises(ReservationConflictError):
                repo.insert("Bob", "2026-03-04", "2026-03-09")
            repo.delete(created.reservation_id)

            event_types = [event["event_type"] for event in repo.read_events()]
            self.assertEqual(
                event_types,
                ["RESERVATION_CREATED", "RESERVATION_UPDATED", "RESERVATION_REJECTED", "RESERVATION_DELETED"],
            )
            rejected = repo.read_events()[2]["payload"]
            self.assertEqual(rejected["kind"], "conflict")
            self.assertEqual(rejected["conflicting_id"], created.reservation_id)

    def test_overlap_anomalies_are_detected_and_logged(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            data_dir = Path(temp_dir) / "data"
            repo = ReservationYamlRepository(data_dir)
            rows = [
                {"id": "1", "name": "Alice", "start_date": "2026-03-01", "end_date": "2026-03-05", "created_at": "2026-02-01T10:00:00"},
                {"id": "2", "name": "Bob", "start_date": "2026-03-04", "end_date": "2026-03-06", "created_at": "2026-02-01T10:00:00"},
            ]
            (data_dir / "reservations.yaml").write_text(yaml.safe_dump(rows), encoding="utf-8")

            pairs = repo.find_overlap_anomalies()

            self.assertEqual([(first.reservation_id, second.reservation_id) for first, second in pairs], [("1", "2")])
            self.assertIn("OVERLAP_ANOMALY", [event["event_type"] for event in repo.read_events()])

    def test_overlap_anomaly_is_logged_once_per_pair(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            data_dir = Path(temp_dir) / "data"
            repo = ReservationYamlRepository(data_dir)
            rows = [
                {"id": "1", "name": "Alice", "start_date": "2026-03-01", "end_date": "2026-03-05", "created_at": "2026-02-01T10:00:00"},
                {"id": "2", "name": "Bob", "start_date": "2026-03-04", "end_date": "2026-03-06", "created_at": "2026-02-01T10:00:00"},
            ]
            (data_dir / "reservations.yaml").write_text(yaml.safe_dump(rows), encoding="utf-8")

            repo.find_overlap_anomalies()
            log_text = (data_dir / "reservation_events.yaml").read_text(encoding="utf-8")
            for _ in range(3):
                self.assertEqual(len(repo.find_overlap_anomalies()), 1)

            self.assertEqual((data_dir / "reservation_events.yaml").read_text(encoding="utf-8"), log_text)
            anomalies = [event for event in repo.read_events() if event["event_type"] == "OVERLAP_ANOMALY"]
            self.assertEqual(len(anomalies), 1)

    def test_corrupted_reservations_file_is_a_storage_failure(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            data_dir = Path(temp_dir) / "data"
            repo = ReservationYamlRepository(data_dir)
            reservations_path = data_dir / "reservations.yaml"
            reservations_path.write_text("this: [is: invalid", encoding="utf-8")

            with self.assertRaises(ReservationStorageError):
                repo.list_all()
            with self.assertRaises(ReservationStorageError):
                repo.insert("Alice", "2026-03-01", "2026-03-05")
            self.assertEqual(reservations_path.read_text(encoding="utf-8"), "this: [is: invalid")

    def test_corrupted_event_log_is_backed_up_and_restarted(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            data_dir = Path(temp_dir) / "data"
            repo = ReservationYamlRepository(data_dir)
            (data_dir / "reservation_events.yaml").write_text("this: [is: invalid", encoding="utf-8")

            repo.insert("Alice", "2026-03-01", "2026-03-05")

            self.assertEqual(len(list(data_dir.glob("reservation_events.corrupt.*.yaml"))), 1)
            event_types = [event["event_type"] for event in repo.read_events()]
            self.assertEqual(event_types, ["YAML_RECOVERED", "RESERVATION_CREATED"])

    def test_inverted_stored_row_is_a_storage_failure(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            data_dir = Path(temp_dir) / "data"
            repo = ReservationYamlRepository(data_dir)
            rows = [{"id": "1", "name": "Alice", "start_date": "2026-03-05", "end_date": "2026-03-01", "created_at": "2026-02-01T10:00:00"}]
            (data_dir / "reservations.yaml").write_text(yaml.safe_dump(rows), encoding="utf-8")

            with self.assertRaises(ReservationStorageError) as context:
                repo.list_all()
            self.assertIsInstance(context.exception.__cause__, InvertedRangeError)

    def test_non_mapping_rows_are_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            data_dir = Path(temp_dir) / "data"
            repo = ReservationYamlRepository(data_dir)
            created = repo.insert("Alice", "2026-03-01", "2026-03-05")
            rows = yaml.safe_load((data_dir / "reservations.yaml").read_text(encoding="utf-8"))
            (data_dir / "reservations.yaml").write_text(yaml.safe_dump(rows + ["garbage"]), encoding="utf-8")

            self.assertEqual(repo.list_all(), [created])
            self.assertIn("YAML_ROW_SKIPPED", [event["event_type"] for event in repo.read_events()])

    def test_write_failure_raises_storage_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = ReservationYamlRepository(Path(temp_dir) / "data")
            with mock.patch.object(Path, "replace", side_effect=OSError("disk full")):
                with self.assertRaises(ReservationStorageError) as context:
                    repo.insert("Alice", "2026-03-01", "2026-03-05")

            self.assertIsInstance(context.exception.__cause__, OSError)
            self.assertEqual(context.exception.kind, "store_failure")
            self.assertEqual(repo.list_all(), [])


class TestConcurrentCommits(unittest.TestCase):
    def test_concurrent_overlapping_inserts_commit_only_one(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            data_dir = Path(temp_dir) / "data"
            repositories = [ReservationYamlRepository(data_dir) for _ in range(6)]
            barrier = threading.Barrier(len(repositories))
            created: list[str] = []
            conflicts: list[str] = []
            results_lock = threading.Lock()

            def submit(index: int, repo: ReservationYamlRepository) -> None:
                name = f"Guest {index}"
                barrier.wait()
                try:
                    repo.insert(name, "2026-07-01", f"2026-07-{10 + index:02d}")
                except ReservationConflictError:
                    with results_lock:
                        conflicts.append(name)
                else:
                    with results_lock:
                        created.append(name)

            threads = [threading.Thread(target=submit, args=(index, repo)) for index, repo in enumerate(repositories)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            self.assertEqual(len(created), 1)
            self.assertEqual(len(conflicts), len(repositories) - 1)
            self.assertEqual([record.name for record in ReservationYamlRepository(data_dir).list_all()], created)


def _insert_in_child_process(data_dir: str, index: int, barrier: Any, results: Any) -> None:
    repo = ReservationYamlRepository(data_dir)
    barrier.wait()
    try:
        repo.insert(f"Guest {index}", "2026-07-01", f"2026-07-{10 + index:02d}")
    except ReservationConflictError:
        results.put(("conflict", index))
    else:
        results.put(("created", index))


class TestCrossProcessCommits(unittest.TestCase):
    def test_overlapping_inserts_from_separate_processes_commit_only_one(self) -> None:
        context = multiprocessing.get_context("spawn")
        for attempt in range(3):
            with tempfile.TemporaryDirectory() as temp_dir:
                data_dir = str(Path(temp_dir) / "data")
                ReservationYamlRepository(data_dir)
                barrier = context.Barrier(4)
                results = context.Queue()
                processes = [
                    context.Process(target=_insert_in_child_process, args=(data_dir, index, barrier, results))
                    for index in range(4)
                ]
                for process in processes:
                    process.start()
                outcomes = [results.get(timeout=60) for _ in processes]
                for process in processes:
                    process.join(timeout=60)

                created = [f"Guest {index}" for outcome, index in outcomes if outcome == "created"]
                self.assertEqual(len(created), 1, f"attempt {attempt}: {outcomes}")
                stored = [record.name for record in ReservationYamlRepository(data_dir).list_all()]
                self.assertEqual(stored, created)


if __name__ == "__main__":
    unittest.main()
