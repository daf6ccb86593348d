"""
Version and range helpers for enginekeeper.

Engine versions follow Semantic Versioning and ``engines`` ranges follow
npm's range grammar (comparators, caret, tilde, x-ranges, hyphen ranges,
``||`` unions and whitespace intersections). Parsing and matching are
delegated to :mod:`semantic_version` (``Version`` / ``NpmSpec``); this
module only normalizes the textual quirks that ``NpmSpec`` does not accept,
such as whitespace between an operator and its version (``>= 14``).
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, List

import semantic_version

from enginekeeper.constants import WILDCARD_RANGE
from enginekeeper.exceptions import InvalidRangeError

# Operator followed by whitespace before its version: ">= 14" -> ">=14"
_SPACED_OPERATOR = re.compile(r"(<=|>=|<|>|=|\^|~)\s+(?=[0-9vVxX*])")

# "v" prefix on a version inside a range: ">=v14" -> ">=14"
_VERSION_PREFIX = re.compile(r"(^|[\s<>=^~])[vV](?=\d)")

# Bare equality immediately followed by a digit: "=14" -> "= 14"
_BARE_EQUALITY = re.compile(r"(?<![<>=])=(?=\d)")

# A ".0" component right before whitespace or the end of the string
_TRAILING_ZERO = re.compile(r"\.0(?=\s|$)")

_WHITESPACE = re.compile(r"\s+")


def normalize_version(raw: str) -> str:
    """Strip surrounding whitespace and an optional leading ``v``.

    Examples:
        >>> normalize_version("v20.11.1")
        '20.11.1'
        >>> normalize_version(" 18.0.0 ")
        '18.0.0'
    """
    value = raw.strip()
    if value[:1] in ("v", "V"):
        value = value[1:]
    return value


@lru_cache(maxsize=4096)
def parse_version(raw: str) -> semantic_version.Version:
    """Parse a version token into a :class:`semantic_version.Version`.

    Raises:
        ValueError: If ``raw`` is not a full ``major.minor.patch`` version.
    """
    return semantic_version.Version(normalize_version(raw))


def is_valid_version(raw: str) -> bool:
    """Return True if ``raw`` parses as a semantic version."""
    try:
        parse_version(raw)
    except ValueError:
        return False
    return True


def sort_versions(versions: Iterable[str], *, descending: bool = False) -> List[str]:
    """Sort version strings by semantic-version precedence."""
    return sorted(versions, key=parse_version, reverse=descending)


def normalize_equality(expression: str) -> str:
    """Rewrite an ``=N`` equality comparator as ``= N``.

    Applied to the root project's own declared range before parsing, so a
    manifest that writes ``=14`` resolves exactly like ``= 14``.
    """
    return _BARE_EQUALITY.sub("= ", expression)


def normalize_range(expression: str) -> str:
    """Bring an npm range into the form accepted by ``NpmSpec``.

    Whitespace runs collapse to single spaces and operators are joined to
    their version (``>= 14`` becomes ``>=14``). A ``v`` prefix inside the
    range is dropped, ``~>`` becomes ``~`` and an empty expression becomes
    the wildcard.
    """
    value = _WHITESPACE.sub(" ", expression.strip())
    if not value:
        return WILDCARD_RANGE
    value = value.replace("~>", "~")
    value = _SPACED_OPERATOR.sub(r"\1", value)
    value = _VERSION_PREFIX.sub(r"\1", value)
    return " || ".join(part.strip() or WILDCARD_RANGE for part in value.split("||"))


def is_wildcard(expression: str) -> bool:
    """Return True if ``expression`` admits every version (``*``, ``x`` or empty)."""
    return normalize_range(expression) in (WILDCARD_RANGE, "x", "X")


@lru_cache(maxsize=1024)
def parse_range(expression: str) -> semantic_version.NpmSpec:
    """Parse an npm range expression.

    Raises:
        InvalidRangeError: If the expression is not a valid npm range.
    """
    try:
        return semantic_version.NpmSpec(normalize_range(expression))
    except ValueError as exc:
        raise InvalidRangeError(
            f"Invalid range expression: {exc}",
            range_expression=expression,
        ) from exc


def satisfies(version: str, expression: str) -> bool:
    """Return True if ``version`` satisfies the npm range ``expression``."""
    return parse_range(expression).match(parse_version(version))


def caret_anchor(version: str) -> str:
    """Return the caret range anchored at ``version`` (``^major.minor.patch``)."""
    parsed = parse_version(version)
    return f"^{parsed.major}.{parsed.minor}.{parsed.patch}"


def threshold_range(version: str) -> str:
    """Return the open-ended range ``>= major.minor.patch``."""
    parsed = parse_version(version)
    return f">= {parsed.major}.{parsed.minor}.{parsed.patch}"


def bounded_range(low: str, high: str) -> str:
    """Return the closed range ``>= low <= high``, or ``= low`` when they coincide."""
    lower = parse_version(low)
    upper = parse_version(high)
    if lower == upper:
        return f"= {lower.major}.{lower.minor}.{lower.patch}"
    return (
        f">= {lower.major}.{lower.minor}.{lower.patch} "
        f"<= {upper.major}.{upper.minor}.{upper.patch}"
    )


def strip_trailing_zeros(expression: str) -> str:
    """Drop one trailing ``.0`` component from every version in ``expression``.

    Purely cosmetic: ``">= 14.0.0"`` becomes ``">= 14.0"`` and
    ``"^18.0.0 || ^16.14.0"`` becomes ``"^18.0 || ^16.14"``.
    """
    return _TRAILING_ZERO.sub("", expression)
