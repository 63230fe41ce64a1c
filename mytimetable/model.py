"""
Central data model definitions used across the project.

This module defines the canonical structure of a CourseOccurrence so that:
- all modules share the same field names
- records are immutable values (changes mean building a new value and
  replacing the stored one)
- the JSON store, the engine and the UI layers stay consistent
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Optional

from mytimetable.errors import InvalidRange
from mytimetable.weeks import Parity, Segment, expand_weeks, validate_range

DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def day_name(day_of_week: int) -> str:
    return DAY_NAMES[day_of_week - 1]


@dataclass(frozen=True)
class CourseOccurrence:
    """
    One stored placement of a course: a day, a range of periods and the
    weeks (start_week..end_week filtered by parity) it meets in.

    id == 0 means the record has not been persisted yet.
    lineage_id groups every record that descends from the same original
    course entry. 0 means "no lineage recorded": the record is its own root.
    """

    name: str
    day_of_week: int
    start_slot: int
    span: int
    start_week: int
    end_week: int
    parity: Parity = Parity.ALL
    id: int = 0
    lineage_id: int = 0
    is_modified: bool = False
    location: str = ""
    instructor: str = ""
    note: str = ""
    color: str = ""

    def __post_init__(self) -> None:
        # Accept "odd"/"even"/"all" from JSON and CLI input
        if not isinstance(self.parity, Parity):
            object.__setattr__(self, "parity", Parity(self.parity))
        if not 1 <= self.day_of_week <= 7:
            raise InvalidRange(f"day_of_week must be 1..7, got {self.day_of_week}")
        if self.start_slot < 1:
            raise InvalidRange(f"start_slot must be >= 1, got {self.start_slot}")
        if self.span < 1:
            raise InvalidRange(f"span must be >= 1, got {self.span}")
        validate_range(self.start_week, self.end_week, self.parity)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def weeks(self) -> frozenset[int]:
        return expand_weeks(self.start_week, self.end_week, self.parity)

    @property
    def segment(self) -> Segment:
        return Segment(self.start_week, self.end_week, self.parity)

    @property
    def end_slot(self) -> int:
        """Last occupied period (inclusive)."""
        return self.start_slot + self.span - 1

    @property
    def is_persisted(self) -> bool:
        return self.id != 0

    @property
    def root_lineage(self) -> int:
        """Lineage this record belongs to; a record without one is its own root."""
        return self.lineage_id if self.lineage_id else self.id

    def is_active_in(self, week: int) -> bool:
        return self.start_week <= week <= self.end_week and self.parity.matches(week)

    def slots(self) -> set[tuple[int, int]]:
        """All (day, slot) cells this record occupies."""
        return {(self.day_of_week, s) for s in range(self.start_slot, self.start_slot + self.span)}

    # ------------------------------------------------------------------
    # Building new values
    # ------------------------------------------------------------------

    def with_segment(self, segment: Segment, **changes: Any) -> CourseOccurrence:
        """
        Copy of this record covering `segment`, not persisted (id = 0).
        Extra keyword arguments replace further fields.
        """
        return replace(
            self,
            id=0,
            start_week=segment.start_week,
            end_week=segment.end_week,
            parity=segment.parity,
            **changes,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["parity"] = self.parity.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CourseOccurrence:
        """
        Build a record from its JSON form. Unknown keys are ignored,
        optional text fields default to "" when missing or null.
        """

        def _text(key: str) -> str:
            value: Optional[Any] = data.get(key)
            return "" if value is None else str(value)

        return cls(
            id=int(data.get("id", 0) or 0),
            lineage_id=int(data.get("lineage_id", 0) or 0),
            name=_text("name"),
            day_of_week=int(data["day_of_week"]),
            start_slot=int(data["start_slot"]),
            span=int(data["span"]),
            start_week=int(data["start_week"]),
            end_week=int(data["end_week"]),
            parity=Parity(data.get("parity", Parity.ALL.value)),
            is_modified=bool(data.get("is_modified", False)),
            location=_text("location"),
            instructor=_text("instructor"),
            note=_text("note"),
            color=_text("color"),
        )

    def describe(self) -> str:
        """Short one-line label, e.g. 'Algebra | Tue 3-4 | weeks 1-16 @ A101'."""
        slots = f"{self.start_slot}-{self.end_slot}" if self.span > 1 else str(self.start_slot)
        bits = [self.name or "(no name)", f"{day_name(self.day_of_week)} {slots}", f"weeks {self.segment}"]
        text = " | ".join(bits)
        if self.location:
            text += f" @ {self.location}"
        return text
