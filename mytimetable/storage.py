"""
Persistent storage for course occurrences.

This module manages one JSON file (by default
mytimetable/data/occurrences.json) with the schema:

    {"next_id": 7, "occurrences": [{...}, {...}]}

Design rationale:
- records are immutable; the store only ever inserts, replaces or deletes
  whole records
- every change runs inside a transaction: changes are staged in memory and
  written in one step (temp file + rename) when the transaction ends, so a
  reader never sees a half-applied reschedule
- ids are assigned by the store and never reused
"""

from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from mytimetable.config import default_store_path
from mytimetable.errors import StorageFailure
from mytimetable.logging import get_logger
from mytimetable.model import CourseOccurrence

log = get_logger(__name__)

Predicate = Callable[[CourseOccurrence], bool]


class Transaction:
    """
    Staged view of the store. Reads see the staged state, writes only
    reach the file when the surrounding `OccurrenceStore.atomic()` block
    exits without an exception.
    """

    def __init__(self, records: dict[int, CourseOccurrence], next_id: int) -> None:
        self._records = records
        self.next_id = next_id
        self.inserted = 0
        self.updated = 0
        self.deleted = 0

    @property
    def records(self) -> dict[int, CourseOccurrence]:
        return self._records

    def fetch(self, predicate: Optional[Predicate] = None) -> list[CourseOccurrence]:
        out = [occ for _, occ in sorted(self._records.items())]
        if predicate is not None:
            out = [occ for occ in out if predicate(occ)]
        return out

    def get(self, occurrence_id: int) -> Optional[CourseOccurrence]:
        return self._records.get(occurrence_id)

    def insert(self, occurrence: CourseOccurrence) -> int:
        """
        Store a new record and return its id.

        A record without lineage becomes the root of its own lineage.
        """
        new_id = self.next_id
        self.next_id += 1
        lineage = occurrence.lineage_id if occurrence.lineage_id else new_id
        self._records[new_id] = replace(occurrence, id=new_id, lineage_id=lineage)
        self.inserted += 1
        return new_id

    def insert_batch(self, occurrences: Iterable[CourseOccurrence]) -> list[int]:
        return [self.insert(occ) for occ in occurrences]

    def update(self, occurrence: CourseOccurrence) -> None:
        """Replace the stored record with the same id by `occurrence`."""
        if occurrence.id not in self._records:
            raise StorageFailure(f"Cannot update record {occurrence.id}: it no longer exists")
        lineage = occurrence.lineage_id if occurrence.lineage_id else occurrence.id
        self._records[occurrence.id] = replace(occurrence, lineage_id=lineage)
        self.updated += 1

    def delete(self, occurrence_id: int) -> None:
        if occurrence_id not in self._records:
            raise StorageFailure(f"Cannot delete record {occurrence_id}: it no longer exists")
        del self._records[occurrence_id]
        self.deleted += 1


class OccurrenceStore:
    """
    JSON-file backed collection of CourseOccurrence records.

    Every public write opens its own transaction. Use `atomic()` to group
    several writes into one all-or-nothing commit.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        # Custom path mainly for tests, otherwise the package data dir
        self.path = Path(path) if path is not None else default_store_path()

    # ------------------------------------------------------------------
    # File I/O
    # ------------------------------------------------------------------

    def _read(self) -> tuple[dict[int, CourseOccurrence], int]:
        # First run: no file yet means no records
        if not self.path.exists():
            return {}, 1

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            raw = data.get("occurrences", [])
            if not isinstance(raw, list):
                raise StorageFailure(f"{self.path}: 'occurrences' is not a list")
            records: dict[int, CourseOccurrence] = {}
            for item in raw:
                occ = CourseOccurrence.from_dict(item)
                records[occ.id] = occ
            next_id = int(data.get("next_id", 0) or 0)
        except StorageFailure:
            raise
        except (OSError, json.JSONDecodeError, UnicodeDecodeError, AttributeError) as exc:
            raise StorageFailure(f"Cannot read {self.path}: {exc}") from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageFailure(f"Invalid record in {self.path}: {exc}") from exc

        # Never hand out an id that is already taken
        next_id = max([next_id, 1] + [i + 1 for i in records])
        return records, next_id

    def _write(self, records: dict[int, CourseOccurrence], next_id: int) -> None:
        payload = {
            "next_id": next_id,
            "occurrences": [occ.to_dict() for _, occ in sorted(records.items())],
        }
        text = json.dumps(payload, indent=2, ensure_ascii=False)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp_name, self.path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator[Transaction]:
        """
        Group writes into one commit.

        If the block raises, nothing is written and the exception propagates.
        If writing the file fails, StorageFailure is raised and the file on
        disk is left as it was.
        """
        records, next_id = self._read()
        tx = Transaction(dict(records), next_id)
        yield tx

        if not (tx.inserted or tx.updated or tx.deleted):
            return
        try:
            self._write(tx.records, tx.next_id)
        except OSError as exc:
            log.error("store.commit_failed", path=str(self.path), error=str(exc))
            raise StorageFailure(f"Cannot write {self.path}: {exc}") from exc
        log.info(
            "store.committed",
            path=str(self.path),
            inserted=tx.inserted,
            updated=tx.updated,
            deleted=tx.deleted,
        )

    # ------------------------------------------------------------------
    # Single-operation helpers
    # ------------------------------------------------------------------

    def fetch(self, predicate: Optional[Predicate] = None) -> list[CourseOccurrence]:
        """All records ordered by id, optionally filtered by `predicate`."""
        records, _ = self._read()
        return Transaction(records, 0).fetch(predicate)

    def fetch_lineage(self, lineage_id: int) -> list[CourseOccurrence]:
        return self.fetch(lambda occ: occ.root_lineage == lineage_id)

    def get(self, occurrence_id: int) -> Optional[CourseOccurrence]:
        records, _ = self._read()
        return records.get(occurrence_id)

    def insert(self, occurrence: CourseOccurrence) -> int:
        with self.atomic() as tx:
            return tx.insert(occurrence)

    def insert_batch(self, occurrences: Iterable[CourseOccurrence]) -> list[int]:
        with self.atomic() as tx:
            return tx.insert_batch(occurrences)

    def update(self, occurrence: CourseOccurrence) -> None:
        with self.atomic() as tx:
            tx.update(occurrence)

    def delete(self, occurrence_id: int) -> None:
        with self.atomic() as tx:
            tx.delete(occurrence_id)

    def __len__(self) -> int:
        records, _ = self._read()
        return len(records)

