"""
Terminal rendering with rich.

Builds tables only; all decisions about what to show come from the
selector and the conflict detector.
"""

from __future__ import annotations

from typing import Iterable

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mytimetable.model import DAY_NAMES, CourseOccurrence, day_name
from mytimetable.selector import AgendaStatus, Selection
from mytimetable.weeks import format_weeks

console = Console()


def _slots_label(occ: CourseOccurrence) -> str:
    return f"{occ.start_slot}-{occ.end_slot}" if occ.span > 1 else str(occ.start_slot)


def _cell_text(selection: Selection) -> str:
    occ = selection.occurrence
    text = f"[bold]{escape(occ.name)}[/]"
    if occ.location:
        text += f"\n@ {escape(occ.location)}"
    if occ.is_modified:
        text += "\n[yellow](moved)[/]"
    if not selection.is_current:
        text = f"[dim]{text}\n(not this week)[/]"
    return text


def week_table(
    grid: dict[tuple[int, int], Selection],
    week: int,
    max_slots: int = 12,
    show_weekend: bool = True,
) -> Table:
    """Days as columns, slots as rows. A course is printed in its first slot."""
    days = list(range(1, 8 if show_weekend else 6))

    table = Table(title=f"Week {week}", box=box.SIMPLE, show_lines=True)
    table.add_column("#", justify="right")
    for day in days:
        table.add_column(DAY_NAMES[day - 1])

    # Slots covered by a course that started earlier stay visibly taken
    covered: set[tuple[int, int]] = set()
    for (day, slot), selection in grid.items():
        for s in range(slot + 1, slot + selection.occurrence.span):
            covered.add((day, s))

    last_slot = max([max_slots] + [s.occurrence.end_slot for s in grid.values()])
    for slot in range(1, last_slot + 1):
        row = [str(slot)]
        for day in days:
            selection = grid.get((day, slot))
            if selection is not None:
                row.append(_cell_text(selection))
            elif (day, slot) in covered:
                row.append("[dim]⋮[/]")
            else:
                row.append("")
        table.add_row(*row)
    return table


def occurrence_table(occurrences: Iterable[CourseOccurrence], title: str = "Courses") -> Table:
    table = Table(title=title, box=box.SIMPLE)
    table.add_column("ID", justify="right")
    table.add_column("Lineage", justify="right")
    table.add_column("Course")
    table.add_column("Day")
    table.add_column("Slots")
    table.add_column("Weeks")
    table.add_column("Location")
    table.add_column("Note")

    for occ in occurrences:
        name = f"[bold cyan]{escape(occ.name)}[/]"
        if occ.is_modified:
            name += " [yellow](moved)[/]"
        table.add_row(
            str(occ.id),
            str(occ.root_lineage),
            name,
            day_name(occ.day_of_week),
            _slots_label(occ),
            str(occ.segment),
            escape(occ.location),
            escape(occ.note),
        )
    return table


def agenda_table(agenda: list[CourseOccurrence], status: AgendaStatus, title: str) -> Table:
    table = Table(title=title, box=box.SIMPLE)
    table.add_column("Slots", justify="right")
    table.add_column("Course")
    table.add_column("Location")
    table.add_column("Instructor")

    if status is not AgendaStatus.HAS_COURSES:
        table.add_row("", f"[green]{status.message}[/]", "", "")
        return table

    for occ in agenda:
        table.add_row(_slots_label(occ), escape(occ.name), escape(occ.location), escape(occ.instructor))
    return table


def conflict_pair_line(a: CourseOccurrence, b: CourseOccurrence, weeks: list[int]) -> str:
    return (
        f"- {day_name(a.day_of_week)} {_slots_label(a)} #{a.id} {escape(a.name)}  <->  "
        f"{day_name(b.day_of_week)} {_slots_label(b)} #{b.id} {escape(b.name)}  "
        f"(weeks {format_weeks(weeks)})"
    )
