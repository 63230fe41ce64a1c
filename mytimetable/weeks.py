"""
Week sets.

A course record describes the weeks it meets compactly as
(start_week, end_week, parity). This module converts between that compact
form and explicit sets of week numbers:

    expand_weeks(3, 9, Parity.ODD)   -> {3, 5, 7, 9}
    compress_weeks({1, 2, 3, 6, 8})  -> [(1, 3, ALL), (6, 8, EVEN)]

Everything here is pure; the only package import is the error hierarchy.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Iterable, NamedTuple, Optional

from mytimetable.errors import InvalidRange


class Parity(str, Enum):
    """Which weeks inside [start_week, end_week] a course is active in."""

    ALL = "all"
    ODD = "odd"
    EVEN = "even"

    def matches(self, week: int) -> bool:
        if self is Parity.ALL:
            return True
        if self is Parity.ODD:
            return week % 2 != 0
        if self is Parity.EVEN:
            return week % 2 == 0
        raise AssertionError(f"Unhandled parity: {self!r}")

    @classmethod
    def for_week(cls, week: int) -> Parity:
        """Parity of the step-2 run starting at `week`."""
        return cls.ODD if week % 2 != 0 else cls.EVEN


class Segment(NamedTuple):
    """One compact recurrence: (start_week, end_week, parity)."""

    start_week: int
    end_week: int
    parity: Parity

    def weeks(self) -> frozenset[int]:
        return expand_weeks(self.start_week, self.end_week, self.parity)

    def __str__(self) -> str:
        weeks = str(self.start_week) if self.start_week == self.end_week else f"{self.start_week}-{self.end_week}"
        if self.parity is Parity.ALL:
            return weeks
        return f"{weeks} ({self.parity.value})"


def validate_range(start_week: int, end_week: int, parity: Parity, total_weeks: Optional[int] = None) -> None:
    """
    Raise InvalidRange unless (start_week, end_week, parity) describes a
    non-empty set of weeks inside [1, total_weeks].

    total_weeks=None skips the upper bound (the term length is external).
    """
    if start_week < 1:
        raise InvalidRange(f"start_week must be >= 1, got {start_week}")
    if start_week > end_week:
        raise InvalidRange(f"start_week {start_week} is after end_week {end_week}")
    if total_weeks is not None and end_week > total_weeks:
        raise InvalidRange(f"end_week {end_week} is beyond the last week of the term ({total_weeks})")
    # A one-week range whose only week has the wrong parity is empty
    if start_week == end_week and not Parity(parity).matches(start_week):
        raise InvalidRange(f"week {start_week} is not an {Parity(parity).value} week")


def expand_weeks(
    start_week: int, end_week: int, parity: Parity = Parity.ALL, total_weeks: Optional[int] = None
) -> frozenset[int]:
    """
    Return every week w with start_week <= w <= end_week that matches parity.

    Raises InvalidRange for ranges that would produce an empty set.
    """
    parity = Parity(parity)
    validate_range(start_week, end_week, parity, total_weeks)
    return frozenset(w for w in range(start_week, end_week + 1) if parity.matches(w))


def compress_weeks(weeks: Iterable[int]) -> list[Segment]:
    """
    Compress an arbitrary set of weeks into a minimal list of segments.

    Greedy, left to right: starting at the smallest remaining week, compare the
    longest run of consecutive weeks with the longest run of same-parity weeks
    (step 2). The longer run wins; a tie goes to ALL. The chosen weeks are
    removed and the loop repeats until nothing is left.

    The union of the returned segments equals the input exactly and the
    segments never overlap. The result is sorted by start_week.
    """
    pending = set(weeks)
    for w in pending:
        if w < 1:
            raise InvalidRange(f"week numbers start at 1, got {w}")

    segments: list[Segment] = []
    while pending:
        first = min(pending)

        end_all = first
        while end_all + 1 in pending:
            end_all += 1
        count_all = end_all - first + 1

        end_parity = first
        while end_parity + 2 in pending:
            end_parity += 2
        count_parity = (end_parity - first) // 2 + 1

        if count_all >= count_parity:
            segments.append(Segment(first, end_all, Parity.ALL))
            pending.difference_update(range(first, end_all + 1))
        else:
            segments.append(Segment(first, end_parity, Parity.for_week(first)))
            pending.difference_update(range(first, end_parity + 1, 2))

    return sorted(segments, key=lambda s: s.start_week)


def segments_weeks(segments: Iterable[Segment]) -> frozenset[int]:
    """Union of the week sets of several segments."""
    out: set[int] = set()
    for seg in segments:
        out |= seg.weeks()
    return frozenset(out)


def format_weeks(weeks: Iterable[int]) -> str:
    """
    Human-readable form of a week set, e.g. '1-8, 10-16 (even)'.
    """
    parts = [str(seg) for seg in compress_weeks(weeks)]
    return ", ".join(parts) if parts else "-"


def parse_week_spec(text: str) -> frozenset[int]:
    """
    Parse a comma separated week list like '1-8,10,12-16'.

    Ranges are inclusive. Whitespace is ignored. Raises InvalidRange for
    malformed parts, descending ranges or weeks below 1.
    """
    weeks: set[int] = set()
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                lo_s, hi_s = part.split("-", 1)
                lo, hi = int(lo_s), int(hi_s)
            else:
                lo = hi = int(part)
        except ValueError:
            raise InvalidRange(f"Invalid week list part: {part!r}") from None
        if lo < 1 or lo > hi:
            raise InvalidRange(f"Invalid week range: {part!r}")
        weeks.update(range(lo, hi + 1))
    return frozenset(weeks)


def current_week(term_start: date, today: date) -> int:
    """
    Week number of `today` in a term whose week 1 starts on `term_start`.

    Only whole days count. Days before the term give 0 or negative weeks.
    """
    days = (today - term_start).days
    return days // 7 + 1
