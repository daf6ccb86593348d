"""
Tri-state option values.

A boolean CLI flag can be explicitly enabled, explicitly disabled, or not
given at all. Only in the last case does the configuration file (and then
the built-in default) decide.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class TriState(Enum):
    """Unset / explicit-false / explicit-true option value."""

    UNSET = "unset"
    FALSE = "false"
    TRUE = "true"

    @classmethod
    def from_flag(cls, value: Optional[bool]) -> "TriState":
        """Convert a Click ``--flag/--no-flag`` value (``None`` when absent)."""
        if value is None:
            return cls.UNSET
        return cls.TRUE if value else cls.FALSE

    @property
    def is_set(self) -> bool:
        return self is not TriState.UNSET

    def resolve(self, fallback: bool) -> bool:
        """Return the explicit value, or ``fallback`` when unset."""
        if self is TriState.UNSET:
            return fallback
        return self is TriState.TRUE
