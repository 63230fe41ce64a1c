"""
Undo a reschedule by merging a lineage.

All records of a lineage (the remainder and the moved parts of one or more
reschedules) are folded back into as few records as possible at the
original placement:

1. union the week sets of all records in the lineage
2. compress the union
3. materialize each segment from a template record

The template is a record still sitting at the original placement (not
is_modified). If every record of the lineage was moved, the lineage has
diverged and the caller must say where the merged course goes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from mytimetable.errors import LineageDiverged, UnknownLineage
from mytimetable.logging import get_logger
from mytimetable.model import CourseOccurrence
from mytimetable.storage import OccurrenceStore
from mytimetable.weeks import compress_weeks

log = get_logger(__name__)


@dataclass(frozen=True)
class Placement:
    """Canonical day, slot and location for a diverged lineage."""

    day_of_week: int
    start_slot: int
    location: str = ""


def _template(records: list[CourseOccurrence], canonical: Optional[Placement]) -> CourseOccurrence:
    unmoved = [occ for occ in records if not occ.is_modified]
    if unmoved:
        return min(unmoved, key=lambda occ: occ.id)

    if canonical is None:
        raise LineageDiverged(
            "Every record of this lineage was moved; a canonical day, slot and location is required"
        )
    base = min(records, key=lambda occ: occ.id)
    return CourseOccurrence(
        name=base.name,
        day_of_week=canonical.day_of_week,
        start_slot=canonical.start_slot,
        span=base.span,
        start_week=base.start_week,
        end_week=base.end_week,
        parity=base.parity,
        lineage_id=base.lineage_id,
        location=canonical.location,
        instructor=base.instructor,
        color=base.color,
    )


def plan_merge(
    records: Iterable[CourseOccurrence],
    lineage_id: int,
    canonical: Optional[Placement] = None,
) -> list[CourseOccurrence]:
    """
    Replacement records for the lineage `lineage_id` (not persisted, id = 0).

    `records` may contain records of other lineages; they are ignored.

    Raises:
        UnknownLineage: no record belongs to the lineage
        LineageDiverged: no unmoved record and no `canonical` placement
    """
    family = [occ for occ in records if occ.root_lineage == lineage_id]
    if not family:
        raise UnknownLineage(f"No records with lineage {lineage_id}")

    union: set[int] = set()
    for occ in family:
        weeks = occ.weeks
        if union & weeks:
            log.warning("merge.overlap", lineage_id=lineage_id, occurrence_id=occ.id, weeks=sorted(union & weeks))
        union |= weeks

    template = _template(family, canonical)
    return [
        template.with_segment(seg, lineage_id=lineage_id, is_modified=False)
        for seg in compress_weeks(union)
    ]


def _merge_key(occ: CourseOccurrence) -> tuple:
    # Week set instead of the stored triple: ODD 1-20 and ODD 1-19 are the same course
    return (
        tuple(sorted(occ.weeks)),
        occ.root_lineage,
        occ.day_of_week,
        occ.start_slot,
        occ.span,
        occ.location,
        occ.is_modified,
        occ.name,
        occ.instructor,
        occ.note,
        occ.color,
    )


def _is_noop(family: list[CourseOccurrence], merged: list[CourseOccurrence]) -> bool:
    # Same weeks at the same placement: nothing to undo
    return sorted(map(_merge_key, family)) == sorted(map(_merge_key, merged))


def undo_reschedule(
    store: OccurrenceStore,
    lineage_id: int,
    canonical: Optional[Placement] = None,
) -> list[int]:
    """
    Replace every record of the lineage by its merged form in one transaction.

    Returns the ids of the records that now make up the lineage. A lineage
    that is already merged is left untouched.
    """
    with store.atomic() as tx:
        family = tx.fetch(lambda occ: occ.root_lineage == lineage_id)
        merged = plan_merge(family, lineage_id, canonical)
        if _is_noop(family, merged):
            return [occ.id for occ in family]
        for occ in family:
            tx.delete(occ.id)
        ids = tx.insert_batch(merged)

    log.info("merge.committed", lineage_id=lineage_id, removed=len(family), inserted=len(ids))
    return ids
