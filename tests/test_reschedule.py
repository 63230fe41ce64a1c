"""
Unit tests for rescheduling (splitting a course).

Contract:
- the weeks of the original are partitioned: every week either stays
  (remainder) or moves, never both
- all derived records share the lineage of the original
- committing is all or nothing
- conflicts are reported, they never block planning
"""

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from mytimetable.errors import EmptyMoveSet, InvalidRange, StorageFailure, WeekCountMismatch
from mytimetable.model import CourseOccurrence
from mytimetable.reschedule import (
    RescheduleRequest,
    apply_plan,
    plan_reschedule,
    preset_weeks,
    reschedule,
)
from mytimetable.storage import OccurrenceStore
from mytimetable.weeks import Parity, Segment, expand_weeks, segments_weeks


def union_weeks(records) -> set[int]:
    out: set[int] = set()
    for occ in records:
        out |= occ.weeks
    return out


class RescheduleTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._dir = tempfile.TemporaryDirectory()
        self.path = Path(self._dir.name) / "occurrences.json"
        self.store = OccurrenceStore(self.path)

    def tearDown(self) -> None:
        self._dir.cleanup()

    def add(self, **kw) -> CourseOccurrence:
        fields = dict(name="Algebra", day_of_week=2, start_slot=3, span=2, start_week=1, end_week=16, location="A101")
        fields.update(kw)
        return self.store.get(self.store.insert(CourseOccurrence(**fields)))


class TestPlanReschedule(RescheduleTestCase):
    def test_move_second_half_of_term(self) -> None:
        original = self.add()
        request = RescheduleRequest.shift(original, range(9, 17), new_day=4, new_start_slot=1, new_location="B201")
        plan = plan_reschedule(request, total_weeks=20)

        self.assertEqual([r.segment for r in plan.remainder], [Segment(1, 8, Parity.ALL)])
        self.assertEqual([m.segment for m in plan.moved], [Segment(9, 16, Parity.ALL)])

        kept, moved = plan.remainder[0], plan.moved[0]
        self.assertEqual((kept.day_of_week, kept.start_slot, kept.location), (2, 3, "A101"))
        self.assertFalse(kept.is_modified)
        self.assertEqual((moved.day_of_week, moved.start_slot, moved.location), (4, 1, "B201"))
        self.assertTrue(moved.is_modified)
        self.assertEqual(moved.span, original.span)

        self.assertEqual(plan.lineage_id, original.id)
        self.assertTrue(all(r.lineage_id == original.id for r in plan.records))
        # Plans are not persisted yet
        self.assertTrue(all(r.id == 0 for r in plan.records))

    def test_move_single_odd_week(self) -> None:
        original = self.add(start_week=1, end_week=7, parity=Parity.ODD)
        plan = plan_reschedule(RescheduleRequest.shift(original, {5}, new_day=5, new_start_slot=7))

        self.assertEqual(union_weeks(plan.remainder), {1, 3, 7})
        self.assertEqual(plan.remainder[0].segment, Segment(1, 3, Parity.ODD))
        self.assertEqual((plan.remainder[-1].start_week, plan.remainder[-1].end_week), (7, 7))
        self.assertEqual(union_weeks(plan.moved), {5})
        self.assertEqual((plan.moved[0].day_of_week, plan.moved[0].start_slot), (5, 7))

    def test_weeks_are_partitioned(self) -> None:
        original = self.add(start_week=2, end_week=18, parity=Parity.EVEN)
        available = expand_weeks(2, 18, Parity.EVEN)
        choices = [{2}, {18}, {4, 6, 8}, {2, 10, 18}, set(available)]
        for moved in choices:
            plan = plan_reschedule(RescheduleRequest.shift(original, moved, new_day=1, new_start_slot=1))
            kept = union_weeks(plan.remainder)
            self.assertEqual(kept | union_weeks(plan.moved), available, moved)
            self.assertFalse(kept & union_weeks(plan.moved), moved)
            self.assertEqual(kept, available - moved)

    def test_moving_every_week_leaves_no_remainder(self) -> None:
        original = self.add(start_week=1, end_week=4)
        plan = plan_reschedule(RescheduleRequest.shift(original, range(1, 5), new_day=1, new_start_slot=1))
        self.assertEqual(plan.remainder, [])
        self.assertEqual(union_weeks(plan.moved), {1, 2, 3, 4})

    def test_target_weeks_may_differ(self) -> None:
        original = self.add()
        request = RescheduleRequest(
            original=original,
            moved_weeks=frozenset({5}),
            target_weeks=frozenset({17}),
            new_day=6,
            new_start_slot=1,
            new_location="",
            note="make-up class",
        )
        plan = plan_reschedule(request, total_weeks=20)
        self.assertEqual(union_weeks(plan.moved), {17})
        self.assertEqual(plan.moved[0].note, "make-up class")
        self.assertNotIn(5, union_weeks(plan.remainder))

    def test_empty_move_set(self) -> None:
        original = self.add()
        with self.assertRaises(EmptyMoveSet):
            plan_reschedule(RescheduleRequest.shift(original, set(), new_day=1, new_start_slot=1))
        with self.assertRaises(EmptyMoveSet):
            plan_reschedule(
                RescheduleRequest(original, frozenset({3}), frozenset(), new_day=1, new_start_slot=1, new_location="")
            )

    def test_weeks_outside_the_course_are_rejected(self) -> None:
        original = self.add(start_week=1, end_week=9, parity=Parity.ODD)
        with self.assertRaises(InvalidRange):
            plan_reschedule(RescheduleRequest.shift(original, {2}, new_day=1, new_start_slot=1))

    def test_target_outside_term_is_rejected(self) -> None:
        original = self.add()
        request = RescheduleRequest(original, frozenset({3}), frozenset({21}), 1, 1, "")
        with self.assertRaises(InvalidRange):
            plan_reschedule(request, total_weeks=20)

    def test_week_count_mismatch(self) -> None:
        original = self.add()
        request = RescheduleRequest(original, frozenset({3, 4}), frozenset({17}), 1, 1, "")
        # Allowed by default
        plan = plan_reschedule(request, total_weeks=20)
        self.assertEqual(union_weeks(plan.moved), {17})
        with self.assertRaises(WeekCountMismatch):
            plan_reschedule(request, total_weeks=20, enforce_equal_week_count=True)

    def test_unsaved_record_cannot_be_rescheduled(self) -> None:
        draft = CourseOccurrence(name="Draft", day_of_week=1, start_slot=1, span=2, start_week=1, end_week=4)
        with self.assertRaises(ValueError):
            plan_reschedule(RescheduleRequest.shift(draft, {1}, new_day=2, new_start_slot=1))

    def test_conflicts_are_reported_not_raised(self) -> None:
        original = self.add()
        blocker = self.add(name="Physics", day_of_week=4, start_slot=1, start_week=10, end_week=12)
        request = RescheduleRequest.shift(original, range(9, 17), new_day=4, new_start_slot=2)
        plan = plan_reschedule(request, pool=self.store.fetch())
        self.assertTrue(plan.conflicts.has_conflict)
        self.assertEqual([o.id for o in plan.conflicts.occurrences], [blocker.id])
        self.assertEqual(plan.conflicts.weeks, {10, 11, 12})
        self.assertEqual(len(plan.moved), 1)

    def test_original_does_not_conflict_with_itself(self) -> None:
        original = self.add()
        request = RescheduleRequest.shift(original, {4}, new_day=2, new_start_slot=4)
        plan = plan_reschedule(request, pool=self.store.fetch())
        self.assertFalse(plan.conflicts.has_conflict)

    def test_moved_weeks_clashing_with_remainder_are_reported(self) -> None:
        original = self.add()
        request = RescheduleRequest(original, frozenset({5}), frozenset({6}), 2, 3, "A101")
        plan = plan_reschedule(request, pool=self.store.fetch())

        self.assertTrue(plan.conflicts.has_conflict)
        self.assertEqual(plan.conflicts.weeks, {6})
        self.assertTrue(all(o.id == 0 and not o.is_modified for o in plan.conflicts.occurrences))

    def test_preset_weeks(self) -> None:
        available = expand_weeks(1, 8)
        self.assertEqual(preset_weeks(available, Parity.ODD), {1, 3, 5, 7})
        self.assertEqual(preset_weeks(available, Parity.EVEN), {2, 4, 6, 8})
        self.assertEqual(preset_weeks(available, Parity.ALL), available)


class TestApplyPlan(RescheduleTestCase):
    def test_commit_replaces_original(self) -> None:
        original = self.add()
        result = reschedule(self.store, RescheduleRequest.shift(original, range(9, 17), new_day=4, new_start_slot=1))

        self.assertIsNone(self.store.get(original.id))
        records = self.store.fetch()
        self.assertEqual(len(records), 2)
        self.assertEqual([o.id for o in records], result.remainder_ids + result.moved_ids)
        self.assertTrue(all(o.lineage_id == original.id for o in records))
        self.assertEqual(union_weeks(records), set(range(1, 17)))

    def test_second_reschedule_keeps_root_lineage(self) -> None:
        original = self.add()
        first = reschedule(self.store, RescheduleRequest.shift(original, range(9, 17), new_day=4, new_start_slot=1))
        moved = self.store.get(first.moved_ids[0])

        second = reschedule(self.store, RescheduleRequest.shift(moved, {16}, new_day=5, new_start_slot=5))
        self.assertEqual(second.lineage_id, original.id)
        # 1-8 stayed, 9-15 moved once, 16 moved twice
        self.assertEqual(len(self.store.fetch_lineage(original.id)), 3)
        self.assertEqual(union_weeks(self.store.fetch_lineage(original.id)), set(range(1, 17)))

    def test_conflicts_do_not_block_commit(self) -> None:
        original = self.add()
        self.add(name="Physics", day_of_week=4, start_slot=1)
        result = reschedule(self.store, RescheduleRequest.shift(original, {3}, new_day=4, new_start_slot=1))
        self.assertTrue(result.plan.conflicts.has_conflict)
        self.assertIsNone(self.store.get(original.id))
        self.assertEqual(self.store.get(result.moved_ids[0]).weeks, {3})

    def test_write_failure_leaves_store_unchanged(self) -> None:
        original = self.add()
        before = self.path.read_text(encoding="utf-8")
        plan = plan_reschedule(RescheduleRequest.shift(original, range(9, 17), new_day=4, new_start_slot=1))

        with mock.patch.object(OccurrenceStore, "_write", side_effect=OSError("read-only file system")):
            with self.assertRaises(StorageFailure):
                apply_plan(self.store, plan)

        self.assertEqual(self.path.read_text(encoding="utf-8"), before)
        self.assertEqual(self.store.fetch(), [original])

    def test_stale_original_is_rejected(self) -> None:
        original = self.add()
        plan = plan_reschedule(RescheduleRequest.shift(original, {2}, new_day=1, new_start_slot=1))
        self.store.update(CourseOccurrence.from_dict({**original.to_dict(), "location": "Moved meanwhile"}))

        with self.assertRaises(StorageFailure):
            apply_plan(self.store, plan)
        self.assertEqual(len(self.store), 1)

    def test_vanished_original_is_rejected(self) -> None:
        original = self.add()
        plan = plan_reschedule(RescheduleRequest.shift(original, {2}, new_day=1, new_start_slot=1))
        self.store.delete(original.id)

        with self.assertRaises(StorageFailure):
            apply_plan(self.store, plan)
        self.assertEqual(len(self.store), 0)

    def test_split_segments_cover_original(self) -> None:
        original = self.add(start_week=1, end_week=15, parity=Parity.ODD)
        result = reschedule(self.store, RescheduleRequest.shift(original, {5, 9}, new_day=1, new_start_slot=1))
        stored = [self.store.get(i) for i in result.remainder_ids]
        self.assertEqual(segments_weeks([o.segment for o in stored]), {1, 3, 7, 11, 13, 15})


if __name__ == "__main__":
    unittest.main()
