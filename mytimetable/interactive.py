from __future__ import annotations

from datetime import date
from typing import Optional

from rich import box
from rich.markup import escape
from rich.table import Table

from mytimetable.config import TimetableConfig
from mytimetable.conflicts import find_all_conflicts, find_conflicts_for
from mytimetable.errors import StorageFailure, TimetableError
from mytimetable.merge import Placement, undo_reschedule
from mytimetable.model import CourseOccurrence, day_name
from mytimetable.render import agenda_table, conflict_pair_line, console, occurrence_table, week_table
from mytimetable.reschedule import RescheduleRequest, apply_plan, plan_reschedule, preset_weeks
from mytimetable.selector import agenda_status, day_agenda, week_grid
from mytimetable.storage import OccurrenceStore
from mytimetable.weeks import Parity, current_week, format_weeks, parse_week_spec, validate_range


def _println(msg: str = "") -> None:
    console.print(msg)


def _prompt(msg: str) -> str:
    # Prompts carry plain text only: "[y/N]" and defaults must not be read as markup
    return console.input(escape(msg))


def _ask_int(msg: str, default: Optional[int], lo: int, hi: int) -> Optional[int]:
    """
    Ask for a number in [lo, hi]. Blank returns `default`, bad input returns None.
    """
    suffix = f" [{default}]" if default is not None else ""
    raw = _prompt(f"{msg}{suffix}: ").strip()
    if not raw:
        return default
    if not raw.isdigit() or not (lo <= int(raw) <= hi):
        _println(f"Please enter a number between {lo} and {hi}.")
        return None
    return int(raw)


def _ask_text(msg: str, default: str = "") -> str:
    suffix = f" [{default}]" if default else ""
    raw = _prompt(f"{msg}{suffix}: ").strip()
    return raw if raw else default


def parse_week_choice(text: str, available: frozenset[int]) -> frozenset[int]:
    """
    Wizard week input: 'all', 'odd', 'even' (subsets of `available`) or a
    week list like '9-16,18'.
    """
    key = text.strip().lower()
    if key in (p.value for p in Parity):
        return preset_weeks(available, Parity(key))
    return parse_week_spec(text)


def _this_week(config: TimetableConfig) -> int:
    if config.term_start is None:
        return 1
    return max(1, current_week(config.term_start, date.today()))


def run_interactive(store: OccurrenceStore, config: TimetableConfig) -> None:
    """
    Interactive menu loop.
    """
    while True:
        occurrences = store.fetch()
        _print_header(occurrences, config)

        choice = _prompt(
            "\n[1] Timetable (choose week)\n"
            "[2] Today\n"
            "[3] View courses\n"
            "[4] Add course\n"
            "[5] Remove course\n"
            "[6] Reschedule course\n"
            "[7] Undo reschedule\n"
            "[8] Show conflicts\n"
            "[0] Exit\n"
            "Select: "
        ).strip()

        if choice == "0":
            _println("Bye.")
            return

        try:
            if choice == "1":
                _flow_week(occurrences, config)
            elif choice == "2":
                _flow_today(occurrences, config)
            elif choice == "3":
                _flow_view(occurrences)
            elif choice == "4":
                _flow_add(store, occurrences, config)
            elif choice == "5":
                _flow_remove(store, occurrences)
            elif choice == "6":
                _flow_reschedule(store, occurrences, config)
            elif choice == "7":
                _flow_undo(store, occurrences, config)
            elif choice == "8":
                _flow_conflicts(occurrences)
            else:
                _println("Invalid choice.")
        except StorageFailure as exc:
            _println(f"[red]Storage error:[/] {escape(str(exc))}")
            _println("Nothing was changed. Please retry.")
        except TimetableError as exc:
            _println(f"[red]Error:[/] {escape(str(exc))}")


def _print_header(occurrences: list[CourseOccurrence], config: TimetableConfig) -> None:
    _println("\n=== MyTimetable (interactive) ===")
    if config.term_start is not None:
        week = current_week(config.term_start, date.today())
        _println(f"Term started {config.term_start.isoformat()} | current week: {week} of {config.total_weeks}")
    else:
        _println("No term start configured (set MYTIMETABLE_TERM_START to track the current week)")
    moved = sum(1 for occ in occurrences if occ.is_modified)
    _println(f"Course records: {len(occurrences)} | rescheduled parts: {moved}")


def _pick_occurrence(occurrences: list[CourseOccurrence], title: str) -> Optional[CourseOccurrence]:
    if not occurrences:
        _println("No courses yet.")
        return None

    table = Table(title=title, box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("Course")
    for i, occ in enumerate(occurrences, start=1):
        table.add_row(str(i), escape(occ.describe()))
    console.print(table)

    i = _ask_int("Enter number (blank = back)", None, 1, len(occurrences))
    if i is None:
        return None
    return occurrences[i - 1]


def _flow_week(occurrences: list[CourseOccurrence], config: TimetableConfig) -> None:
    week = _ask_int("Week", _this_week(config), 1, config.total_weeks)
    if week is None:
        return
    grid = week_grid(occurrences, week, suppress_non_current=config.hide_non_current_week)
    console.print(week_table(grid, week, max_slots=config.max_daily_slots, show_weekend=config.show_weekend))


def _flow_today(occurrences: list[CourseOccurrence], config: TimetableConfig) -> None:
    today = date.today()
    week = _this_week(config)
    agenda = day_agenda(occurrences, week, today.isoweekday())
    status = agenda_status(occurrences, week, agenda)
    title = f"{today.isoformat()} ({day_name(today.isoweekday())}) - week {week}"
    console.print(agenda_table(agenda, status, title=title))


def _flow_view(occurrences: list[CourseOccurrence]) -> None:
    if not occurrences:
        _println("No courses yet.")
        return
    ordered = sorted(occurrences, key=lambda o: (o.day_of_week, o.start_slot, o.start_week, o.id))
    console.print(occurrence_table(ordered, title=f"Courses ({len(ordered)})"))


def _flow_add(store: OccurrenceStore, occurrences: list[CourseOccurrence], config: TimetableConfig) -> None:
    name = _ask_text("Course name (blank = back)")
    if not name:
        return

    day = _ask_int("Day (1 = Mon ... 7 = Sun)", None, 1, 7)
    slot = _ask_int("First period", None, 1, config.max_daily_slots)
    if day is None or slot is None:
        return
    span = _ask_int("Periods", config.default_span, 1, config.max_daily_slots - slot + 1)
    start_week = _ask_int("First week", 1, 1, config.total_weeks)
    end_week = _ask_int("Last week", config.total_weeks, 1, config.total_weeks)
    if span is None or start_week is None or end_week is None:
        return

    parity_in = _ask_text("Weeks: all / odd / even", Parity.ALL.value).lower()
    if parity_in not in (p.value for p in Parity):
        _println("Unknown week type.")
        return
    parity = Parity(parity_in)
    validate_range(start_week, end_week, parity, config.total_weeks)

    occ = CourseOccurrence(
        name=name,
        day_of_week=day,
        start_slot=slot,
        span=span,
        start_week=start_week,
        end_week=end_week,
        parity=parity,
        location=_ask_text("Location"),
        instructor=_ask_text("Instructor"),
    )

    report = find_conflicts_for(occ, occurrences)
    if report.has_conflict:
        _println(f"[yellow]Warning:[/] {escape(report.message())} in weeks {format_weeks(report.weeks)}")
        if _prompt("Save anyway? [y/N]: ").strip().lower() != "y":
            _println("Not saved.")
            return

    new_id = store.insert(occ)
    _println(f"Added #{new_id}: {escape(occ.describe())}")


def _flow_remove(store: OccurrenceStore, occurrences: list[CourseOccurrence]) -> None:
    occ = _pick_occurrence(occurrences, "Remove course")
    if occ is None:
        return
    if _prompt(f"Remove {occ.describe()}? [y/N]: ").strip().lower() != "y":
        return
    store.delete(occ.id)
    _println(f"Removed #{occ.id}")


def _flow_reschedule(store: OccurrenceStore, occurrences: list[CourseOccurrence], config: TimetableConfig) -> None:
    """
    Reschedule wizard.

    Step 1: pick a course and the weeks to move away.
    Step 2: pick target weeks (default: the same weeks) and the new day, slot
            and location. Conflicts are shown before anything is saved.
    """
    original = _pick_occurrence(occurrences, "Reschedule course")
    if original is None:
        return

    available = original.weeks
    _println(f"Weeks of this course: {format_weeks(available)}")
    moved_in = _prompt("Weeks to move (e.g. 9-16, all, odd, even) [blank = back]: ").strip()
    if not moved_in:
        return
    moved = parse_week_choice(moved_in, available)

    target_in = _prompt(f"Target weeks [{format_weeks(moved) if moved else '-'}]: ").strip()
    target = parse_week_choice(target_in, available) if target_in else moved

    new_day = _ask_int("New day (1 = Mon ... 7 = Sun)", original.day_of_week, 1, 7)
    new_slot = _ask_int("New first period", original.start_slot, 1, config.max_daily_slots - original.span + 1)
    if new_day is None or new_slot is None:
        return
    new_location = _ask_text("New location", original.location)
    note = _ask_text("Note")

    request = RescheduleRequest(
        original=original,
        moved_weeks=moved,
        target_weeks=target,
        new_day=new_day,
        new_start_slot=new_slot,
        new_location=new_location,
        note=note,
    )
    plan = plan_reschedule(
        request,
        pool=occurrences,
        total_weeks=config.total_weeks,
        enforce_equal_week_count=config.enforce_equal_week_count,
    )

    _println("\nAfter rescheduling:")
    for occ in plan.remainder:
        _println(f"  kept   {escape(occ.describe())}")
    for occ in plan.moved:
        _println(f"  [yellow]moved[/]  {escape(occ.describe())}")

    if plan.conflicts.has_conflict:
        weeks = format_weeks(plan.conflicts.weeks)
        _println(f"\n[yellow]Warning:[/] {escape(plan.conflicts.message())} in weeks {weeks}")
        confirm = _prompt("Reschedule despite the conflict? [y/N]: ").strip().lower() == "y"
    else:
        confirm = _prompt("Confirm? [Y/n]: ").strip().lower() != "n"

    if not confirm:
        _println("Nothing changed.")
        return

    result = apply_plan(store, plan)
    _println(f"Done. Undo later with lineage id {result.lineage_id}.")


def _flow_undo(store: OccurrenceStore, occurrences: list[CourseOccurrence], config: TimetableConfig) -> None:
    lineages = sorted({occ.root_lineage for occ in occurrences if occ.is_modified})
    if not lineages:
        _println("Nothing has been rescheduled.")
        return

    table = Table(title="Rescheduled courses", box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("Lineage", justify="right")
    table.add_column("Records")
    for i, lineage in enumerate(lineages, start=1):
        family = [occ for occ in occurrences if occ.root_lineage == lineage]
        table.add_row(str(i), str(lineage), "\n".join(escape(occ.describe()) for occ in family))
    console.print(table)

    i = _ask_int("Enter number to undo (blank = back)", None, 1, len(lineages))
    if i is None:
        return
    lineage = lineages[i - 1]

    family = [occ for occ in occurrences if occ.root_lineage == lineage]
    canonical = None
    if all(occ.is_modified for occ in family):
        # Every part was moved: ask where the merged course belongs
        first = min(family, key=lambda occ: occ.id)
        day = _ask_int("Day for the merged course", first.day_of_week, 1, 7)
        slot = _ask_int(
            "First period for the merged course", first.start_slot, 1, config.max_daily_slots - first.span + 1
        )
        if day is None or slot is None:
            return
        canonical = Placement(day, slot, _ask_text("Location", first.location))

    ids = undo_reschedule(store, lineage, canonical)
    _println(f"Merged into {len(ids)} record(s).")


def _flow_conflicts(occurrences: list[CourseOccurrence]) -> None:
    confs = find_all_conflicts(occurrences)
    if not confs:
        _println("No conflicts found.")
        return
    _println(f"Conflicts found: {len(confs)}")
    for a, b, weeks in confs:
        _println(conflict_pair_line(a, b, weeks))
