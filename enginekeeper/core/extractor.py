"""Engine constraint extraction for enginekeeper.

Turns a dependency inventory into the flat list of per-package engine
constraints that the graph resolver intersects. A package contributes
nothing when:

- it is bundled inside another package (its author's ``engines`` field was
  never consulted by npm at install time),
- it declares no range for any selected engine, or
- every range it declares for the selected engines is the wildcard.

A package with no opinion, or an explicit "any version", imposes no
restriction, so dropping it keeps the intersection from being tightened by
uninformative declarations.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Set, Tuple

from enginekeeper.utils.logger import get_logger
from enginekeeper.utils.version_utils import is_wildcard
from enginekeeper.models.engine import Constraint, PackageRecord

logger = get_logger("core.extractor")

__all__ = ["extract_constraints", "select_records"]


def _declares_restriction(record: PackageRecord, engines: Sequence[str]) -> bool:
    declared = [record.declared_range(engine) for engine in engines]
    return any(value is not None and not is_wildcard(value) for value in declared)


def select_records(
    records: Iterable[PackageRecord],
    engines: Sequence[str],
    *,
    include_dev: bool = True,
    include_peer: bool = True,
    include_optional: bool = True,
) -> List[PackageRecord]:
    """Return the records that constrain at least one selected engine.

    Args:
        records: Dependency inventory.
        engines: Selected engine names.
        include_dev: Keep packages reachable only through devDependencies.
        include_peer: Keep packages reachable only through peerDependencies.
        include_optional: Keep packages reachable only through
            optionalDependencies.

    Returns:
        The filtered records, in inventory order.
    """
    selected: List[PackageRecord] = []

    for record in records:
        if record.bundled:
            continue
        if record.dev and not include_dev:
            continue
        if record.peer and not include_peer:
            continue
        if record.optional and not include_optional:
            continue
        if not record.engines or not _declares_restriction(record, engines):
            continue
        selected.append(record)

    return selected


def extract_constraints(
    records: Iterable[PackageRecord],
    engines: Sequence[str],
    *,
    include_dev: bool = True,
    include_peer: bool = True,
    include_optional: bool = True,
) -> List[Constraint]:
    """Derive ``(package, engine, range)`` constraints from an inventory.

    Only non-wildcard ranges for selected engines become constraints. The
    same package declaring the same range from several locations in the
    tree yields a single constraint.

    Example::

        >>> records = [
        ...     PackageRecord("a", {"node": ">= 14"}),
        ...     PackageRecord("b", {"node": "*"}),
        ...     PackageRecord("c", {"node": "^18"}, bundled=True),
        ... ]
        >>> [str(c) for c in extract_constraints(records, ["node"])]
        ['a requires node >= 14']
    """
    constraints: List[Constraint] = []
    seen: Set[Tuple[str, str, str]] = set()

    for record in select_records(
        records,
        engines,
        include_dev=include_dev,
        include_peer=include_peer,
        include_optional=include_optional,
    ):
        for engine in engines:
            declared = record.declared_range(engine)
            if declared is None or is_wildcard(declared):
                continue

            key = (record.name, engine, declared)
            if key in seen:
                continue
            seen.add(key)
            constraints.append(Constraint(source=record.name, engine=engine, range=declared))

    logger.debug(
        "Extracted %d constraint(s) for %s",
        len(constraints),
        ", ".join(engines),
    )
    return constraints
