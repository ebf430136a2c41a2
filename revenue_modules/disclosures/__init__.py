"""
Module: revenue_modules.disclosures
Responsibility:
    Read model for ASC 606 disclosures: the contract modification
    register, the variable consideration rollforward and the remaining
    performance obligation snapshot.

Architecture:
    revenue_modules layer.  Written to by the modification engine (the
    register) and by period-close callers (the rollforward); never reads
    other modules' tables.
"""

from revenue_modules.disclosures.models import (
    DisclosureBundle,
    ModificationRegisterEntry,
    RpoSnapshotEntry,
    VcRollforwardEntry,
)

__all__ = [
    "DisclosureBundle",
    "ModificationRegisterEntry",
    "RpoSnapshotEntry",
    "VcRollforwardEntry",
]
