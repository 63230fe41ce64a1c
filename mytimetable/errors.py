"""
Error hierarchy for the timetable engine.

Two kinds of failures exist:
- programming/contract errors (bad week ranges, empty move sets): the caller
  built invalid input, so we fail loudly instead of correcting it
- storage failures: a transaction could not be committed, nothing was
  written and the caller may retry with the same in-memory objects

A detected conflict is NOT an error. It is returned as data and the caller
decides whether to proceed.
"""


class TimetableError(Exception):
    """Base exception for all timetable errors."""

    pass


class InvalidRange(TimetableError, ValueError):
    """Week range, day or slot outside the allowed bounds.

    Examples: start_week > end_week, end_week beyond the term, an ODD range
    that contains no odd week, day_of_week = 8.
    """

    pass


class EmptyMoveSet(TimetableError, ValueError):
    """A reschedule was requested without weeks to move or target weeks."""

    pass


class WeekCountMismatch(TimetableError, ValueError):
    """Moved and target weeks differ in size while equal counts are enforced."""

    pass


class StorageFailure(TimetableError):
    """The store could not be read or a transaction could not be committed.

    Nothing was applied. Retrying with the same objects is safe.
    """

    pass


class UnknownLineage(TimetableError, LookupError):
    """No stored record belongs to the requested lineage."""

    pass


class LineageDiverged(TimetableError):
    """No record remains at the original placement and no canonical placement was given."""

    pass
