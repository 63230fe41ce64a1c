"""
Rescheduling (course splitting).

Moving some weeks of a course to another day/slot/location replaces the
original record with:
- remainder records: the weeks that stay, compressed, otherwise unchanged
- moved records: the target weeks, compressed, at the new placement and
  flagged is_modified

All of them share the lineage of the original so the split can be undone
(see mytimetable.merge). The weeks of the original are partitioned exactly:
every week either stays or moves, never both.

Planning is pure (plan_reschedule). Committing (apply_plan) is one store
transaction: delete the original, insert the remainder, insert the moved
records, all or nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from mytimetable.conflicts import ConflictReport, ConflictTarget, find_conflicts
from mytimetable.errors import EmptyMoveSet, InvalidRange, StorageFailure, WeekCountMismatch
from mytimetable.logging import get_logger
from mytimetable.model import CourseOccurrence
from mytimetable.storage import OccurrenceStore
from mytimetable.weeks import Parity, compress_weeks, format_weeks

log = get_logger(__name__)


@dataclass(frozen=True)
class RescheduleRequest:
    """What the wizard collected: which weeks move, and where to."""

    original: CourseOccurrence
    moved_weeks: frozenset[int]
    target_weeks: frozenset[int]
    new_day: int
    new_start_slot: int
    new_location: str
    note: str = ""

    @classmethod
    def shift(
        cls,
        original: CourseOccurrence,
        weeks: Iterable[int],
        new_day: int,
        new_start_slot: int,
        new_location: Optional[str] = None,
        note: str = "",
    ) -> RescheduleRequest:
        """Move `weeks` to a new day/slot keeping the same weeks (the wizard default)."""
        weeks = frozenset(weeks)
        return cls(
            original=original,
            moved_weeks=weeks,
            target_weeks=weeks,
            new_day=new_day,
            new_start_slot=new_start_slot,
            new_location=original.location if new_location is None else new_location,
            note=note,
        )


@dataclass
class ReschedulePlan:
    original: CourseOccurrence
    lineage_id: int
    remainder: list[CourseOccurrence]
    moved: list[CourseOccurrence]
    conflicts: ConflictReport = field(default_factory=ConflictReport)

    @property
    def records(self) -> list[CourseOccurrence]:
        return self.remainder + self.moved


@dataclass
class RescheduleResult:
    plan: ReschedulePlan
    remainder_ids: list[int]
    moved_ids: list[int]

    @property
    def lineage_id(self) -> int:
        return self.plan.lineage_id


def preset_weeks(available: Iterable[int], parity: Parity) -> frozenset[int]:
    """Wizard shortcut: all, odd or even weeks of `available`."""
    return frozenset(w for w in available if parity.matches(w))


def plan_reschedule(
    request: RescheduleRequest,
    pool: Iterable[CourseOccurrence] = (),
    total_weeks: Optional[int] = None,
    enforce_equal_week_count: bool = False,
) -> ReschedulePlan:
    """
    Build the records that replace `request.original`. No side effects.

    `pool` is checked for conflicts at the new placement (the original
    itself is ignored), together with the remainder records of this plan.
    Conflicts are reported in the plan, they never stop it.

    Raises:
        EmptyMoveSet: no weeks to move or no target weeks
        InvalidRange: moved weeks outside the course, target weeks outside
            the term, or an invalid new day/slot
        WeekCountMismatch: only with enforce_equal_week_count, when the
            number of target weeks differs from the number of moved weeks
    """
    original = request.original
    moved_weeks = frozenset(request.moved_weeks)
    target_weeks = frozenset(request.target_weeks)

    if not moved_weeks:
        raise EmptyMoveSet("No weeks selected to move")
    if not target_weeks:
        raise EmptyMoveSet("No target weeks selected")
    if not original.is_persisted:
        raise ValueError("Only stored records can be rescheduled")

    available = original.weeks
    stray = moved_weeks - available
    if stray:
        raise InvalidRange(f"Weeks {format_weeks(stray)} are not part of {original.name!r}")
    if min(target_weeks) < 1 or (total_weeks is not None and max(target_weeks) > total_weeks):
        raise InvalidRange(f"Target weeks must lie within the term (1..{total_weeks or '?'})")

    if len(moved_weeks) != len(target_weeks):
        if enforce_equal_week_count:
            raise WeekCountMismatch(
                f"Moving {len(moved_weeks)} weeks onto {len(target_weeks)} target weeks"
            )
        log.warning(
            "reschedule.week_count_changed",
            occurrence_id=original.id,
            moved=len(moved_weeks),
            target=len(target_weeks),
        )

    # Derived records point at the root of the family, not at their parent
    lineage_id = original.root_lineage

    remainder = [
        original.with_segment(seg, lineage_id=lineage_id)
        for seg in compress_weeks(available - moved_weeks)
    ]
    moved = [
        original.with_segment(
            seg,
            lineage_id=lineage_id,
            day_of_week=request.new_day,
            start_slot=request.new_start_slot,
            location=request.new_location,
            note=request.note,
            is_modified=True,
        )
        for seg in compress_weeks(target_weeks)
    ]

    # The remainder is not stored yet but can still clash with the moved weeks
    target = ConflictTarget(request.new_day, request.new_start_slot, original.span, target_weeks)
    conflicts = find_conflicts(target, [*pool, *remainder], exclude_id=original.id)

    return ReschedulePlan(
        original=original,
        lineage_id=lineage_id,
        remainder=remainder,
        moved=moved,
        conflicts=conflicts,
    )


def apply_plan(store: OccurrenceStore, plan: ReschedulePlan) -> RescheduleResult:
    """
    Commit a plan in one transaction.

    Raises StorageFailure (nothing applied) if the original changed or
    vanished since it was read, or if the store cannot be written.
    """
    with store.atomic() as tx:
        current = tx.get(plan.original.id)
        if current is None:
            raise StorageFailure(f"Record {plan.original.id} no longer exists")
        if current != plan.original:
            raise StorageFailure(f"Record {plan.original.id} changed since it was read")
        tx.delete(plan.original.id)
        remainder_ids = tx.insert_batch(plan.remainder)
        moved_ids = tx.insert_batch(plan.moved)

    log.info(
        "reschedule.committed",
        original_id=plan.original.id,
        lineage_id=plan.lineage_id,
        remainder=len(remainder_ids),
        moved=len(moved_ids),
    )
    return RescheduleResult(plan=plan, remainder_ids=remainder_ids, moved_ids=moved_ids)


def reschedule(
    store: OccurrenceStore,
    request: RescheduleRequest,
    total_weeks: Optional[int] = None,
    enforce_equal_week_count: bool = False,
) -> RescheduleResult:
    """
    Plan against the current store contents and commit.

    Conflicts do not stop the commit; callers that want a confirmation step
    call plan_reschedule first, show plan.conflicts, then apply_plan.
    """
    plan = plan_reschedule(
        request,
        pool=store.fetch(),
        total_weeks=total_weeks,
        enforce_equal_week_count=enforce_equal_week_count,
    )
    if plan.conflicts.has_conflict:
        log.warning(
            "reschedule.conflicts_ignored",
            original_id=request.original.id,
            weeks=sorted(plan.conflicts.weeks),
        )
    return apply_plan(store, plan)
