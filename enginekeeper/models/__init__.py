"""
Unified data model exports for enginekeeper.

Example:
    >>> from enginekeeper.models import PackageRecord, Constraint
"""

from __future__ import annotations

from enginekeeper.models.options import TriState
from enginekeeper.models.engine import (
    ROOT_SOURCE,
    Constraint,
    PackageDiagnostic,
    PackageRecord,
    RejectedConstraint,
    SynthesizedRange,
)

__all__ = [
    "ROOT_SOURCE",
    "Constraint",
    "PackageDiagnostic",
    "PackageRecord",
    "RejectedConstraint",
    "SynthesizedRange",
    "TriState",
]
