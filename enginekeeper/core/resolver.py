"""Version set resolution for enginekeeper.

Three pure operations over an engine's version catalog:

1. :func:`filter_versions`: the catalog entries satisfying one range.
2. :func:`resolve_graph`: the versions every dependency accepts: the
   intersection of each package's filtered set.
3. :func:`resolve_root`: the versions the project's own ``engines`` field
   accepts.

Neither resolver performs I/O; the catalog is fetched beforehand by
:class:`~enginekeeper.core.catalog.VersionCatalog`. Malformed ranges are a
local failure: the affected constraint is treated as absent and reported
through ``rejected`` so that one broken manifest cannot block resolution of
the whole graph.

Typical usage::

    catalog = await VersionCatalog(http).get_versions("node")
    graph = resolve_graph("node", constraints, catalog)
    root = resolve_root("node", manifest_engines.get("node"), catalog)
    print(graph.valid_versions[:3], graph.bottlenecks())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

from enginekeeper.constants import WILDCARD_RANGE
from enginekeeper.exceptions import InvalidRangeError
from enginekeeper.utils.logger import get_logger
from enginekeeper.utils.version_utils import (
    is_wildcard,
    normalize_equality,
    parse_range,
    parse_version,
    sort_versions,
)
from enginekeeper.models.engine import (
    ROOT_SOURCE,
    Constraint,
    PackageDiagnostic,
    RejectedConstraint,
)

logger = get_logger("core.resolver")

__all__ = [
    "GraphResolution",
    "RootResolution",
    "filter_versions",
    "resolve_graph",
    "resolve_root",
]


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


@dataclass
class GraphResolution:
    """Versions accepted by every package in the dependency graph.

    Attributes:
        engine: Engine name.
        valid_versions: Mutually acceptable versions, descending.
        diagnostics: Per-package filtered sets, in constraint order.
        rejected: Constraints ignored because their range was malformed.
    """

    engine: str
    valid_versions: List[str] = field(default_factory=list)
    diagnostics: List[PackageDiagnostic] = field(default_factory=list)
    rejected: List[RejectedConstraint] = field(default_factory=list)

    @property
    def constraint_count(self) -> int:
        """Number of constraints that took part in the intersection."""
        return len(self.diagnostics)

    def bottlenecks(self) -> List[PackageDiagnostic]:
        """Return the packages that set the graph's lowest accepted version.

        These are the diagnostics whose own lowest accepted version equals
        the graph's lowest, i.e. the packages to blame for the floor. When
        no version satisfies the graph, the packages with the smallest
        filtered sets are returned instead.
        """
        if not self.diagnostics:
            return []

        if not self.valid_versions:
            smallest = min(len(d.valid_versions) for d in self.diagnostics)
            return [d for d in self.diagnostics if len(d.valid_versions) == smallest]

        floor = self.valid_versions[-1]
        return [d for d in self.diagnostics if d.lowest == floor]

    def to_json(self) -> Dict[str, Any]:
        return {
            "engine": self.engine,
            "valid_versions": list(self.valid_versions),
            "packages": [d.to_json() for d in self.diagnostics],
            "rejected": [r.to_json() for r in self.rejected],
        }


@dataclass
class RootResolution:
    """Versions accepted by the project's own ``engines`` declaration.

    Attributes:
        engine: Engine name.
        declared: Range as written in the manifest, or ``None`` if absent.
        effective_range: Range actually applied (``*`` when absent or
            rejected, after ``=N`` normalization otherwise).
        valid_versions: Accepted versions, descending.
        rejected: Set when the declared range could not be parsed.
    """

    engine: str
    declared: Optional[str]
    effective_range: str
    valid_versions: List[str] = field(default_factory=list)
    rejected: Optional[RejectedConstraint] = None

    @property
    def constraint_count(self) -> int:
        """``1`` when the root declares a real restriction, else ``0``."""
        return 0 if is_wildcard(self.effective_range) else 1

    def to_json(self) -> Dict[str, Any]:
        return {
            "engine": self.engine,
            "declared": self.declared,
            "effective_range": self.effective_range,
            "valid_versions": list(self.valid_versions),
            "rejected": self.rejected.to_json() if self.rejected else None,
        }


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def filter_versions(catalog: Sequence[str], expression: str) -> List[str]:
    """Return the catalog entries satisfying ``expression``, in catalog order.

    An empty catalog, or a range nothing satisfies, yields ``[]``.

    Raises:
        InvalidRangeError: If ``expression`` is not a valid npm range.

    Example::

        >>> filter_versions(["14.0.0", "16.0.0", "18.0.0"], ">= 16")
        ['16.0.0', '18.0.0']
    """
    spec = parse_range(expression)
    return [version for version in catalog if spec.match(parse_version(version))]


def resolve_graph(
    engine: str,
    constraints: Sequence[Constraint],
    catalog: Sequence[str],
) -> GraphResolution:
    """Intersect every package constraint for ``engine`` against ``catalog``.

    With no usable constraints the whole catalog is acceptable (fail-open).
    Constraints for other engines are ignored.

    Args:
        engine: Engine to resolve.
        constraints: Extracted package constraints.
        catalog: Released versions of ``engine``, ascending.

    Returns:
        A :class:`GraphResolution` whose ``valid_versions`` are sorted
        descending.
    """
    result = GraphResolution(engine=engine)
    merged: Optional[Set[str]] = None

    for constraint in constraints:
        if constraint.engine != engine:
            continue

        try:
            accepted = filter_versions(catalog, constraint.range)
        except InvalidRangeError as exc:
            logger.warning(
                "Ignoring invalid %s range %r declared by %s",
                engine,
                constraint.range,
                constraint.source,
            )
            result.rejected.append(RejectedConstraint(constraint, exc.message))
            continue

        result.diagnostics.append(
            PackageDiagnostic(
                name=constraint.source,
                range=constraint.range,
                valid_versions=sort_versions(accepted, descending=True),
            )
        )
        merged = set(accepted) if merged is None else merged & set(accepted)

    if merged is None:
        logger.debug("No %s constraints in the graph; accepting every version", engine)
        merged = set(catalog)

    result.valid_versions = sort_versions(merged, descending=True)
    logger.debug(
        "Graph accepts %d of %d %s version(s) across %d constraint(s)",
        len(result.valid_versions),
        len(catalog),
        engine,
        result.constraint_count,
    )
    return result


def resolve_root(
    engine: str,
    declared: Optional[str],
    catalog: Sequence[str],
) -> RootResolution:
    """Resolve the project's own declared range for ``engine``.

    An absent declaration is treated as ``*``. An equality written as
    ``=14`` is rewritten to ``= 14`` before parsing. A malformed range is
    treated as absent and reported through ``rejected``.
    """
    effective = WILDCARD_RANGE
    if isinstance(declared, str) and declared.strip():
        effective = normalize_equality(declared.strip())

    rejected: Optional[RejectedConstraint] = None
    try:
        accepted = filter_versions(catalog, effective)
    except InvalidRangeError as exc:
        logger.warning("Ignoring invalid root %s range %r", engine, declared)
        rejected = RejectedConstraint(
            Constraint(source=ROOT_SOURCE, engine=engine, range=declared or ""),
            exc.message,
        )
        effective = WILDCARD_RANGE
        accepted = list(catalog)

    return RootResolution(
        engine=engine,
        declared=declared,
        effective_range=effective,
        valid_versions=sort_versions(accepted, descending=True),
        rejected=rejected,
    )
