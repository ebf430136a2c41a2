"""
Module: revenue_modules.modifications
Responsibility:
    Contract modifications (change orders): the DRAFT -> APPLIED state
    machine, the four ASC 606 modification treatments and the revised
    recognition wrapper.

Architecture:
    revenue_modules layer -- the outermost orchestrator.  Calls into the
    allocation service (new POBs, contract transaction price), the
    ScheduleBuilder and RecognitionRunner collaborators, the schedule
    revision log and the disclosure register.
"""

from revenue_modules.modifications.models import (
    ApplyResult,
    ChangeLine,
    ChangeLineInput,
    ChangeOrder,
    ChangeOrderStatus,
    RecognitionRunResult,
    RevisionCause,
    ScheduleRevision,
    Treatment,
)

__all__ = [
    "ApplyResult",
    "ChangeLine",
    "ChangeLineInput",
    "ChangeOrder",
    "ChangeOrderStatus",
    "RecognitionRunResult",
    "RevisionCause",
    "ScheduleRevision",
    "Treatment",
]
