"""
Engine constraint data models for enginekeeper.

This module defines the records that flow through the resolution engine:
package records from the dependency inventory, the per-engine constraints
extracted from them, per-package diagnostics and synthesized ranges.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

#: Constraint source used for the project's own ``engines`` declaration.
ROOT_SOURCE = "root"


@dataclass(frozen=True)
class PackageRecord:
    """One package from the dependency inventory.

    Args:
        name: Package name (``@scope/name`` for scoped packages).
        engines: Declared ``engines`` mapping, engine name to range.
        bundled: Whether the package ships inside another package's tarball.
        version: Installed or locked version, if known.
        dev: Reachable only through devDependencies.
        peer: Reachable only through peerDependencies.
        optional: Reachable only through optionalDependencies.
        location: Lockfile location (e.g. ``node_modules/a/node_modules/b``).
    """

    name: str
    engines: Mapping[str, str] = field(default_factory=dict)
    bundled: bool = False
    version: Optional[str] = None
    dev: bool = False
    peer: bool = False
    optional: bool = False
    location: Optional[str] = None

    def declared_range(self, engine: str) -> Optional[str]:
        """Return the declared range for ``engine`` or ``None``."""
        value = self.engines.get(engine)
        return value if isinstance(value, str) else None

    def to_display_string(self) -> str:
        """Return ``name@version`` (or just the name when unversioned)."""
        return f"{self.name}@{self.version}" if self.version else self.name


@dataclass(frozen=True)
class Constraint:
    """A declared acceptable range for one engine.

    Args:
        source: Declaring package name, or ``"root"`` for the project itself.
        engine: Engine name (e.g. ``"node"``).
        range: Raw range expression as declared.
    """

    source: str
    engine: str
    range: str

    @property
    def is_root(self) -> bool:
        return self.source == ROOT_SOURCE

    def to_display_string(self) -> str:
        return f"{self.source} requires {self.engine} {self.range}"

    def __str__(self) -> str:
        return self.to_display_string()


@dataclass(frozen=True)
class RejectedConstraint:
    """A constraint ignored because its range could not be parsed."""

    constraint: Constraint
    reason: str

    def to_json(self) -> Dict[str, str]:
        return {
            "source": self.constraint.source,
            "range": self.constraint.range,
            "reason": self.reason,
        }


@dataclass
class PackageDiagnostic:
    """Catalog versions satisfying a single package's declared range.

    Attributes:
        name: Declaring package name.
        range: Declared range expression.
        valid_versions: Catalog versions satisfying ``range``, descending.
    """

    name: str
    range: str
    valid_versions: List[str] = field(default_factory=list)

    @property
    def lowest(self) -> Optional[str]:
        return self.valid_versions[-1] if self.valid_versions else None

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "range": self.range,
            "valid_versions": list(self.valid_versions),
        }


@dataclass(frozen=True)
class SynthesizedRange:
    """A range expression that denotes a version set exactly.

    Attributes:
        expression: Verified range; re-filtering the catalog with it yields
            the original version set.
        display: Terser rendering of ``expression`` with trailing ``.0``
            components dropped where that does not change its meaning.
    """

    expression: str
    display: str

    def __str__(self) -> str:
        return self.display

    def __format__(self, format_spec: str) -> str:
        return format(self.display, format_spec)
