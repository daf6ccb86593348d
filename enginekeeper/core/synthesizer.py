"""Range synthesis for enginekeeper.

Given a set of acceptable versions drawn from an engine's catalog, produce
the shortest range expression that selects exactly that set from the
catalog. The algorithm:

1. **Run detection.** Walk the versions in ascending order, keeping an
   *anchor* (initially the lowest version). A version that satisfies the
   caret range of the current anchor joins the anchor's run; any other
   version becomes the anchor of a new run. Grouping is derived purely
   from caret satisfaction, so ``0.x`` lines (where a caret pins the
   minor) split per minor while ``>=1`` lines split per major.
2. **Anchor simplification.** Each anchor becomes ``^major.minor.patch``;
   the anchors are listed highest first.
3. **Threshold collapse.** If ``>= lowest-anchor`` selects exactly the set
   from the catalog (no holes above the floor), it is used instead of the
   union of anchors.
4. **Bounded runs.** A run whose caret window also holds catalog versions
   outside the set (``~16.14`` or ``>=16 <16.15`` cut a major short) is
   spelled out as closed intervals ``>= first <= last`` over consecutive
   catalog entries instead of a caret.
5. **Verification.** The candidate is re-applied to the catalog and must
   reproduce the set; anything else raises
   :class:`~enginekeeper.exceptions.RangeConsistencyError`.
6. **Display.** A trailing ``.0`` is dropped from every version for the
   display string, unless that changes which versions are selected.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from enginekeeper.constants import WILDCARD_RANGE
from enginekeeper.exceptions import InvalidRangeError, RangeConsistencyError
from enginekeeper.models.engine import SynthesizedRange
from enginekeeper.core.resolver import filter_versions
from enginekeeper.utils.logger import get_logger
from enginekeeper.utils.version_utils import (
    bounded_range,
    caret_anchor,
    satisfies,
    sort_versions,
    strip_trailing_zeros,
    threshold_range,
)

logger = get_logger("core.synthesizer")

__all__ = [
    "bounded_intervals",
    "check_consistency",
    "find_anchors",
    "synthesize_range",
]


def find_anchors(versions: Sequence[str]) -> List[str]:
    """Return the anchor version of every caret-compatible run, ascending.

    Example::

        >>> find_anchors(["1.5.0", "1.9.0", "3.0.0", "3.2.0"])
        ['1.5.0', '3.0.0']
    """
    anchors: List[str] = []

    for version in sort_versions(versions):
        if anchors and satisfies(version, caret_anchor(anchors[-1])):
            continue
        anchors.append(version)

    return anchors


def bounded_intervals(versions: Sequence[str], catalog: Sequence[str]) -> List[str]:
    """Spell ``versions`` out as closed intervals of consecutive catalog entries.

    Intervals are returned in ascending order. Versions missing from the
    catalog are ignored.

    Example::

        >>> bounded_intervals(["1.0.0", "1.2.0", "1.3.0"], ["1.0.0", "1.1.0", "1.2.0", "1.3.0"])
        ['= 1.0.0', '>= 1.2.0 <= 1.3.0']
    """
    wanted = set(versions)
    intervals: List[str] = []
    run: List[str] = []

    for version in sort_versions(catalog):
        if version in wanted:
            run.append(version)
            continue
        if run:
            intervals.append(bounded_range(run[0], run[-1]))
            run = []

    if run:
        intervals.append(bounded_range(run[0], run[-1]))

    return intervals


def check_consistency(
    catalog: Sequence[str],
    expression: str,
    versions: Sequence[str],
) -> bool:
    """Return True if ``expression`` selects exactly ``versions`` from ``catalog``."""
    try:
        matched = filter_versions(catalog, expression)
    except InvalidRangeError:
        return False
    return set(matched) == set(versions)


def _anchor_terms(
    anchors: Sequence[str],
    versions: Sequence[str],
    catalog: Sequence[str],
) -> List[str]:
    terms: List[str] = []

    for anchor in anchors:
        caret = caret_anchor(anchor)
        members = [version for version in versions if satisfies(version, caret)]
        if check_consistency(catalog, caret, members):
            terms.append(caret)
        else:
            logger.debug("Caret %s skips catalog versions; using bounded intervals", caret)
            terms.extend(bounded_intervals(members, catalog))

    return terms


def _verify(
    engine: str,
    catalog: Sequence[str],
    expression: str,
    versions: Sequence[str],
) -> None:
    matched = filter_versions(catalog, expression)
    if set(matched) != set(versions):
        raise RangeConsistencyError(
            engine=engine,
            versions=sort_versions(versions, descending=True),
            expression=expression,
            matched=sort_versions(matched, descending=True),
        )


def synthesize_range(
    versions: Sequence[str],
    catalog: Sequence[str],
    *,
    engine: str,
    constraint_count: int,
) -> Optional[SynthesizedRange]:
    """Synthesize the shortest range denoting ``versions`` over ``catalog``.

    Args:
        versions: Acceptable versions (any order; usually descending).
        catalog: Every released version of ``engine``.
        engine: Engine name, used in error reports.
        constraint_count: Number of constraints that produced ``versions``.
            With none, the result is the wildcard.

    Returns:
        The verified :class:`SynthesizedRange`, or ``None`` when no version
        is acceptable under at least one constraint.

    Raises:
        RangeConsistencyError: The candidate range does not reproduce
            ``versions`` from ``catalog``. This is a defect in the
            synthesizer, never a user error.

    Example::

        >>> catalog = ["1.0.0", "2.0.0", "2.3.0", "3.0.0"]
        >>> synthesize_range(["3.0.0", "2.3.0", "2.0.0"], catalog,
        ...                  engine="node", constraint_count=1).display
        '>= 2.0'
    """
    if constraint_count == 0:
        _verify(engine, catalog, WILDCARD_RANGE, versions)
        return SynthesizedRange(expression=WILDCARD_RANGE, display=WILDCARD_RANGE)

    if not versions:
        logger.debug("No %s version satisfies %d constraint(s)", engine, constraint_count)
        return None

    anchors = find_anchors(versions)
    threshold = threshold_range(anchors[0])

    if check_consistency(catalog, threshold, versions):
        expression = threshold
    else:
        expression = " || ".join(reversed(_anchor_terms(anchors, versions, catalog)))

    logger.debug(
        "Synthesized %s range %r from %d version(s) in %d run(s)",
        engine,
        expression,
        len(versions),
        len(anchors),
    )
    _verify(engine, catalog, expression, versions)

    display = strip_trailing_zeros(expression)
    if display != expression and not check_consistency(catalog, display, versions):
        display = expression

    return SynthesizedRange(expression=expression, display=display)
