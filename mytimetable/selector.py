"""
Which course to show.

The grid has one cell per (day, start slot). Several stored records can
share a cell: a course split by a reschedule, odd/even alternations or plain
duplicates. For a given week exactly one of them is displayed:

1. a record active in that week (lowest id wins if several are)
2. otherwise, unless hidden by configuration, the most recently created
   record (largest id), marked as "not this week"

The displayed week is always passed in explicitly; nothing here reads the
clock or global state.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from mytimetable.model import CourseOccurrence


@dataclass(frozen=True)
class Selection:
    occurrence: CourseOccurrence
    is_current: bool


def select_for_week(
    group: Iterable[CourseOccurrence],
    week: int,
    suppress_non_current: bool = False,
) -> Optional[Selection]:
    """
    Pick the record to display for `week` among records sharing (day, start slot).

    Returns None when nothing should be shown.
    """
    group = list(group)
    if not group:
        return None

    active = [occ for occ in group if occ.is_active_in(week)]
    if active:
        # Overlapping active records are a data problem; pick deterministically
        chosen = min(active, key=lambda occ: (occ.id, occ.start_week, occ.end_week))
        return Selection(chosen, is_current=True)

    if suppress_non_current:
        return None

    latest = max(group, key=lambda occ: (occ.id, -occ.start_week))
    return Selection(latest, is_current=False)


def group_by_cell(occurrences: Iterable[CourseOccurrence]) -> dict[tuple[int, int], list[CourseOccurrence]]:
    """Group records by (day_of_week, start_slot)."""
    groups: dict[tuple[int, int], list[CourseOccurrence]] = defaultdict(list)
    for occ in occurrences:
        groups[(occ.day_of_week, occ.start_slot)].append(occ)
    return dict(groups)


def week_grid(
    occurrences: Iterable[CourseOccurrence],
    week: int,
    suppress_non_current: bool = False,
) -> dict[tuple[int, int], Selection]:
    """Selection for every occupied (day, start slot) cell in `week`."""
    grid: dict[tuple[int, int], Selection] = {}
    for cell, group in sorted(group_by_cell(occurrences).items()):
        selection = select_for_week(group, week, suppress_non_current)
        if selection is not None:
            grid[cell] = selection
    return grid


# ---------------------------------------------------------------------------
# Day agenda (widget)
# ---------------------------------------------------------------------------


class AgendaStatus(str, Enum):
    HAS_COURSES = "has_courses"
    DONE_FOR_TODAY = "done_for_today"
    NO_COURSES_THIS_WEEK = "no_courses_this_week"
    TERM_OVER = "term_over"

    @property
    def message(self) -> str:
        return {
            AgendaStatus.HAS_COURSES: "",
            AgendaStatus.DONE_FOR_TODAY: "No more courses today",
            AgendaStatus.NO_COURSES_THIS_WEEK: "No courses this week",
            AgendaStatus.TERM_OVER: "Enjoy the break",
        }[self]


def day_agenda(occurrences: Iterable[CourseOccurrence], week: int, day_of_week: int) -> list[CourseOccurrence]:
    """
    Records meeting on `day_of_week` in `week`, ordered by start slot.

    Duplicates of the same course (same start slot, name and instructor)
    collapse to one record, preferring one that has a location, then the
    lowest id.
    """
    buckets: dict[tuple[int, str, str], list[CourseOccurrence]] = defaultdict(list)
    for occ in occurrences:
        if occ.day_of_week != day_of_week or not occ.is_active_in(week):
            continue
        buckets[(occ.start_slot, occ.name, occ.instructor)].append(occ)

    chosen = [
        min(group, key=lambda occ: (0 if occ.location.strip() else 1, occ.id))
        for group in buckets.values()
    ]
    return sorted(chosen, key=lambda occ: (occ.start_slot, occ.id))


def agenda_status(
    occurrences: Iterable[CourseOccurrence], week: int, agenda: list[CourseOccurrence]
) -> AgendaStatus:
    """Classify an (empty) agenda for the 'nothing to show' message."""
    if agenda:
        return AgendaStatus.HAS_COURSES
    occurrences = list(occurrences)
    if any(occ.is_active_in(week) for occ in occurrences):
        return AgendaStatus.DONE_FOR_TODAY
    if any(occ.end_week > week for occ in occurrences):
        return AgendaStatus.NO_COURSES_THIS_WEEK
    return AgendaStatus.TERM_OVER
