"""
MyTimetable: personal course timetable with week-level rescheduling.

The engine (weeks, conflicts, selector, reschedule, merge) is pure Python
and works on in-memory CourseOccurrence values; storage.OccurrenceStore
persists them as JSON.
"""
