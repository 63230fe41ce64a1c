"""
Conflict detection.

Two occurrences conflict in week w if they are on the same day, their slot
ranges overlap and both are active in w.
Slot overlap rule (slots are half-open [start, start + span)):
    start < other_end AND end > other_start

Conflicts are advisory data, never exceptions: callers decide whether to
block a save or proceed anyway.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from mytimetable.model import CourseOccurrence


def _overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    # start < other_end AND end > other_start
    return a_start < b_end and a_end > b_start


@dataclass(frozen=True)
class ConflictTarget:
    """Where and when something is about to be placed."""

    day_of_week: int
    start_slot: int
    span: int
    weeks: frozenset[int]

    @classmethod
    def from_occurrence(cls, occurrence: CourseOccurrence) -> ConflictTarget:
        return cls(occurrence.day_of_week, occurrence.start_slot, occurrence.span, occurrence.weeks)

    def overlaps_time(self, other: CourseOccurrence) -> bool:
        return other.day_of_week == self.day_of_week and _overlaps(
            other.start_slot, other.start_slot + other.span, self.start_slot, self.start_slot + self.span
        )


@dataclass
class ConflictReport:
    """
    Result of a conflict check.

    occurrences: conflicting records in pool order, each once
    weeks: weeks in which at least one conflict happens
    slots: (day, slot) cells occupied by conflicting records (for highlighting)
    by_week: conflicting records per week
    """

    occurrences: list[CourseOccurrence] = field(default_factory=list)
    weeks: set[int] = field(default_factory=set)
    slots: set[tuple[int, int]] = field(default_factory=set)
    by_week: dict[int, list[CourseOccurrence]] = field(default_factory=dict)

    @property
    def has_conflict(self) -> bool:
        return bool(self.occurrences)

    def message(self) -> str:
        """One-line summary, e.g. 'Conflicts with «Physics» (B2), «Art»'."""
        if not self.occurrences:
            return ""
        names = []
        for occ in self.occurrences:
            label = f"«{occ.name}»"
            if occ.location.strip():
                label += f" ({occ.location})"
            names.append(label)
        return "Conflicts with " + ", ".join(names)


def find_conflicts(
    target: ConflictTarget,
    pool: Iterable[CourseOccurrence],
    exclude_id: Optional[int] = None,
) -> ConflictReport:
    """
    Check `target` against every record in `pool` (except the one whose id
    is `exclude_id`). Pure function of its inputs.
    """
    report = ConflictReport()
    seen: set[int] = set()

    for index, other in enumerate(pool):
        if exclude_id is not None and other.id == exclude_id:
            continue
        if not target.overlaps_time(other):
            continue

        hit = False
        for week in sorted(target.weeks):
            if not other.is_active_in(week):
                continue
            hit = True
            report.weeks.add(week)
            report.by_week.setdefault(week, []).append(other)

        if hit:
            # Unpersisted records all share id 0, so fall back to pool position
            key = other.id if other.id else -(index + 1)
            if key not in seen:
                seen.add(key)
                report.occurrences.append(other)
            report.slots |= other.slots()

    return report


def find_conflicts_for(occurrence: CourseOccurrence, pool: Iterable[CourseOccurrence]) -> ConflictReport:
    """
    Editor hint: conflicts of `occurrence` (new or edited) with the stored pool.

    A persisted record is not compared with its own stored version.
    """
    exclude = occurrence.id if occurrence.is_persisted else None
    return find_conflicts(ConflictTarget.from_occurrence(occurrence), pool, exclude_id=exclude)


def find_all_conflicts(
    occurrences: list[CourseOccurrence],
) -> list[tuple[CourseOccurrence, CourseOccurrence, list[int]]]:
    """
    Find conflicting pairs (A, B, shared weeks), each pair once (i < j).
    """
    conflicts: list[tuple[CourseOccurrence, CourseOccurrence, list[int]]] = []

    # Expand week sets once
    targets = [ConflictTarget.from_occurrence(occ) for occ in occurrences]

    # O(n^2) is fine for a single term's records
    for i in range(len(occurrences)):
        for j in range(i + 1, len(occurrences)):
            if not targets[i].overlaps_time(occurrences[j]):
                continue
            shared = sorted(targets[i].weeks & targets[j].weeks)
            if shared:
                conflicts.append((occurrences[i], occurrences[j], shared))

    return conflicts
