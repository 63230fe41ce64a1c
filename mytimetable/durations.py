"""
Batch duration update.

Changing the default course length rewrites every record: each gets the
new span and the start slots of each day are re-packed so courses follow
each other without gaps or overlaps. Records that started in the same slot
keep sharing their new slot; the order within a day is preserved.

Example with span 3: a Monday with courses starting in slots 1, 3 and 7
becomes 1, 4 and 7.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import replace
from typing import Iterable

from mytimetable.errors import InvalidRange
from mytimetable.logging import get_logger
from mytimetable.model import CourseOccurrence
from mytimetable.storage import OccurrenceStore

log = get_logger(__name__)


def repack_spans(occurrences: Iterable[CourseOccurrence], span: int) -> list[CourseOccurrence]:
    if span < 1:
        raise InvalidRange(f"span must be >= 1, got {span}")

    occurrences = list(occurrences)
    starts_by_day: dict[int, set[int]] = defaultdict(set)
    for occ in occurrences:
        starts_by_day[occ.day_of_week].add(occ.start_slot)

    new_start: dict[tuple[int, int], int] = {}
    for day, starts in starts_by_day.items():
        for rank, slot in enumerate(sorted(starts)):
            new_start[(day, slot)] = 1 + rank * span

    return [
        replace(occ, span=span, start_slot=new_start[(occ.day_of_week, occ.start_slot)])
        for occ in occurrences
    ]


def apply_span(store: OccurrenceStore, span: int) -> int:
    """Re-pack every stored record in one transaction. Returns the number of records updated."""
    with store.atomic() as tx:
        updated = repack_spans(tx.fetch(), span)
        for occ in updated:
            tx.update(occ)

    log.info("durations.repacked", span=span, records=len(updated))
    return len(updated)
