"""
Module: revenue_modules.schedule
Responsibility:
    Recognition schedules (planned vs. recognized per POB per month) and
    the schedule revision log written whenever a plan is rebuilt.
"""

from revenue_modules.schedule.models import (
    RecognitionScheduleEntry,
    RevisionCause,
    ScheduleRevision,
    ScheduleStatus,
)

__all__ = [
    "RecognitionScheduleEntry",
    "RevisionCause",
    "ScheduleRevision",
    "ScheduleStatus",
]
