"""
CLI (Command Line Interface).

Quick terminal commands for power users and for testing, e.g.:

    mytimetable add "Linear Algebra" --day 2 --slot 3 --start-week 1 --end-week 16
    mytimetable list
    mytimetable week 5
    mytimetable today
    mytimetable conflicts
    mytimetable reschedule 4 --weeks 9-16 --day 4 --slot 1 --location "B 201"
    mytimetable undo 4
    mytimetable durations 2
    mytimetable interactive

Note:
- The interactive UI (including the reschedule wizard) lives in
  mytimetable/interactive.py
- Every command returns an exit code; errors from the engine are printed,
  not raised
"""

from __future__ import annotations

import argparse
from datetime import date, datetime
from typing import Optional

from mytimetable.config import TimetableConfig, get_config
from mytimetable.conflicts import find_all_conflicts, find_conflicts_for
from mytimetable.durations import apply_span
from mytimetable.errors import StorageFailure, TimetableError
from mytimetable.logging import setup_logging
from mytimetable.merge import Placement, undo_reschedule
from mytimetable.model import CourseOccurrence, day_name
from mytimetable.render import agenda_table, conflict_pair_line, console, occurrence_table, week_table
from mytimetable.reschedule import RescheduleRequest, apply_plan, plan_reschedule
from mytimetable.selector import agenda_status, day_agenda, week_grid
from mytimetable.storage import OccurrenceStore
from mytimetable.weeks import Parity, current_week, format_weeks, parse_week_spec, validate_range


def _today_week(config: TimetableConfig, today: Optional[date] = None) -> Optional[int]:
    """
    Current teaching week, or None when no term start is configured.
    """
    if config.term_start is None:
        return None
    return current_week(config.term_start, today or date.today())


def _check_grid(start_slot: int, span: int, config: TimetableConfig) -> None:
    # The engine never clamps slots; the editor keeps courses inside the day
    if start_slot + span - 1 > config.max_daily_slots:
        raise TimetableError(
            f"Slots {start_slot}-{start_slot + span - 1} exceed the daily grid of {config.max_daily_slots} periods"
        )


def _cmd_add(args: argparse.Namespace, store: OccurrenceStore, config: TimetableConfig) -> int:
    """
    Editor path: validate, show conflict hints, save.
    """
    name = (args.name or "").strip()
    if not name:
        print("Please provide a course name.")
        return 1

    span = args.span if args.span is not None else config.default_span
    end_week = args.end_week if args.end_week is not None else config.total_weeks
    parity = Parity(args.parity)

    validate_range(args.start_week, end_week, parity, config.total_weeks)
    _check_grid(args.slot, span, config)

    occ = CourseOccurrence(
        name=name,
        day_of_week=args.day,
        start_slot=args.slot,
        span=span,
        start_week=args.start_week,
        end_week=end_week,
        parity=parity,
        location=args.location,
        instructor=args.instructor,
        note=args.note,
        color=args.color,
    )

    report = find_conflicts_for(occ, store.fetch())
    if report.has_conflict:
        print(f"Warning: {report.message()} in weeks {format_weeks(report.weeks)}")

    new_id = store.insert(occ)
    print(f"Added #{new_id}: {occ.describe()}")
    return 0


def _cmd_list(args: argparse.Namespace, store: OccurrenceStore, config: TimetableConfig) -> int:
    occurrences = store.fetch()
    if not occurrences:
        print("No courses yet.")
        return 0
    occurrences.sort(key=lambda o: (o.day_of_week, o.start_slot, o.start_week, o.id))
    console.print(occurrence_table(occurrences, title=f"Courses ({len(occurrences)})"))
    return 0


def _cmd_remove(args: argparse.Namespace, store: OccurrenceStore, config: TimetableConfig) -> int:
    occ = store.get(args.id)
    if occ is None:
        print(f"Not found: #{args.id}")
        return 1
    store.delete(args.id)
    print(f"Removed #{args.id}: {occ.describe()}")
    return 0


def _cmd_week(args: argparse.Namespace, store: OccurrenceStore, config: TimetableConfig) -> int:
    week = args.week
    if week is None:
        today_week = _today_week(config)
        week = today_week if today_week is not None else 1
    if week < 1:
        print("The term has not started yet.")
        return 0

    hide = config.hide_non_current_week if args.hide_other is None else args.hide_other
    grid = week_grid(store.fetch(), week, suppress_non_current=hide)
    console.print(week_table(grid, week, max_slots=config.max_daily_slots, show_weekend=config.show_weekend))
    return 0


def _cmd_today(args: argparse.Namespace, store: OccurrenceStore, config: TimetableConfig) -> int:
    if config.term_start is None:
        print("Set MYTIMETABLE_TERM_START (YYYY-MM-DD, Monday of week 1) to use this command.")
        return 1

    try:
        day = datetime.strptime(args.date, "%Y-%m-%d").date() if args.date else date.today()
    except ValueError:
        print(f"Invalid date: {args.date!r} (expected YYYY-MM-DD)")
        return 1

    week = current_week(config.term_start, day)
    occurrences = store.fetch()
    agenda = day_agenda(occurrences, week, day.isoweekday())
    status = agenda_status(occurrences, week, agenda)
    title = f"{day.isoformat()} ({day_name(day.isoweekday())}) - week {week}"
    console.print(agenda_table(agenda, status, title=title))
    return 0


def _cmd_conflicts(args: argparse.Namespace, store: OccurrenceStore, config: TimetableConfig) -> int:
    """
    Print all conflicting pairs among stored courses.
    """
    confs = find_all_conflicts(store.fetch())
    if not confs:
        print("No conflicts found.")
        return 0

    confs.sort(key=lambda c: (c[0].day_of_week, c[0].start_slot, c[2][0]))
    print(f"Conflicts found: {len(confs)}")
    for a, b, weeks in confs:
        console.print(conflict_pair_line(a, b, weeks))
    return 0


def _cmd_reschedule(args: argparse.Namespace, store: OccurrenceStore, config: TimetableConfig) -> int:
    """
    Move some weeks of a course. Refuses on conflicts unless --force is given.
    """
    original = store.get(args.id)
    if original is None:
        print(f"Not found: #{args.id}")
        return 1

    moved = parse_week_spec(args.weeks)
    target = parse_week_spec(args.to) if args.to else moved
    new_day = args.day if args.day is not None else original.day_of_week
    new_slot = args.slot if args.slot is not None else original.start_slot
    _check_grid(new_slot, original.span, config)

    request = RescheduleRequest(
        original=original,
        moved_weeks=moved,
        target_weeks=target,
        new_day=new_day,
        new_start_slot=new_slot,
        new_location=args.location if args.location is not None else original.location,
        note=args.note,
    )
    plan = plan_reschedule(
        request,
        pool=store.fetch(),
        total_weeks=config.total_weeks,
        enforce_equal_week_count=config.enforce_equal_week_count,
    )

    if plan.conflicts.has_conflict:
        print(f"Warning: {plan.conflicts.message()} in weeks {format_weeks(plan.conflicts.weeks)}")
        if not args.force:
            print("Nothing changed. Use --force to reschedule anyway.")
            return 1

    result = apply_plan(store, plan)
    print(f"Rescheduled #{original.id} (lineage {result.lineage_id}):")
    for occ_id, occ in zip(result.remainder_ids, plan.remainder):
        print(f"  kept  #{occ_id}: {occ.describe()}")
    for occ_id, occ in zip(result.moved_ids, plan.moved):
        print(f"  moved #{occ_id}: {occ.describe()}")
    return 0


def _cmd_undo(args: argparse.Namespace, store: OccurrenceStore, config: TimetableConfig) -> int:
    canonical = None
    if (args.day is None) != (args.slot is None):
        print("Please give both --day and --slot for the merged course.")
        return 1
    if args.day is not None:
        family = store.fetch_lineage(args.lineage)
        if family:
            _check_grid(args.slot, min(family, key=lambda occ: occ.id).span, config)
        canonical = Placement(args.day, args.slot, args.location or "")

    ids = undo_reschedule(store, args.lineage, canonical)
    print(f"Lineage {args.lineage} now has {len(ids)} record(s): {', '.join(f'#{i}' for i in ids)}")
    return 0


def _cmd_durations(args: argparse.Namespace, store: OccurrenceStore, config: TimetableConfig) -> int:
    n = apply_span(store, args.span)
    print(f"Updated {n} courses to {args.span} periods each.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="mytimetable", description="MyTimetable CLI")
    parser.add_argument("--store", type=str, default=None, help="Path of the JSON store (overrides config)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_add = sub.add_parser("add", help="Add a course")
    p_add.add_argument("name", type=str, help="Course name")
    p_add.add_argument("--day", type=int, required=True, choices=range(1, 8), help="Day of week (1 = Monday)")
    p_add.add_argument("--slot", type=int, required=True, help="First period")
    p_add.add_argument("--span", type=int, default=None, help="Number of periods (default from config)")
    p_add.add_argument("--start-week", type=int, default=1)
    p_add.add_argument("--end-week", type=int, default=None, help="Last week (default: end of term)")
    p_add.add_argument("--parity", choices=[p.value for p in Parity], default=Parity.ALL.value)
    p_add.add_argument("--location", type=str, default="")
    p_add.add_argument("--instructor", type=str, default="")
    p_add.add_argument("--note", type=str, default="")
    p_add.add_argument("--color", type=str, default="")

    sub.add_parser("list", help="List all course records")

    p_remove = sub.add_parser("remove", help="Remove a course record by id")
    p_remove.add_argument("id", type=int)

    p_week = sub.add_parser("week", help="Show the timetable of one week")
    p_week.add_argument("week", type=int, nargs="?", default=None, help="Week number (default: current week)")
    p_week.add_argument(
        "--hide-other", dest="hide_other", action="store_true", default=None, help="Hide courses of other weeks"
    )
    p_week.add_argument("--show-other", dest="hide_other", action="store_false", help="Show courses of other weeks")

    p_today = sub.add_parser("today", help="Show the agenda of a day")
    p_today.add_argument("--date", type=str, default=None, help="YYYY-MM-DD (default: today)")

    sub.add_parser("conflicts", help="Show conflicting courses")

    p_res = sub.add_parser("reschedule", help="Move some weeks of a course")
    p_res.add_argument("id", type=int, help="Record id")
    p_res.add_argument("--weeks", type=str, required=True, help="Weeks to move, e.g. 9-16 or 3,5")
    p_res.add_argument("--to", type=str, default=None, help="Target weeks (default: same weeks)")
    p_res.add_argument("--day", type=int, default=None, choices=range(1, 8))
    p_res.add_argument("--slot", type=int, default=None)
    p_res.add_argument("--location", type=str, default=None)
    p_res.add_argument("--note", type=str, default="")
    p_res.add_argument("--force", action="store_true", help="Proceed despite conflicts")

    p_undo = sub.add_parser("undo", help="Merge a rescheduled course back together")
    p_undo.add_argument("lineage", type=int, help="Lineage id")
    p_undo.add_argument("--day", type=int, default=None, choices=range(1, 8))
    p_undo.add_argument("--slot", type=int, default=None)
    p_undo.add_argument("--location", type=str, default=None)

    p_dur = sub.add_parser("durations", help="Set every course to the same number of periods")
    p_dur.add_argument("span", type=int)

    sub.add_parser("interactive", help="Interactive menu mode")

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    config = get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)
    store = OccurrenceStore(args.store if args.store else config.resolved_store_path())

    if args.command == "interactive":
        from mytimetable.interactive import run_interactive

        run_interactive(store, config)
        raise SystemExit(0)

    handlers = {
        "add": _cmd_add,
        "list": _cmd_list,
        "remove": _cmd_remove,
        "week": _cmd_week,
        "today": _cmd_today,
        "conflicts": _cmd_conflicts,
        "reschedule": _cmd_reschedule,
        "undo": _cmd_undo,
        "durations": _cmd_durations,
    }
    handler = handlers.get(args.command)
    if handler is None:
        raise SystemExit(2)

    try:
        code = handler(args, store, config)
    except StorageFailure as exc:
        print(f"Storage error: {exc}")
        print("Nothing was changed. Please retry.")
        code = 1
    except TimetableError as exc:
        print(f"Error: {exc}")
        code = 1
    raise SystemExit(code)
