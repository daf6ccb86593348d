"""Engine version catalog for enginekeeper.

Provides an async-safe, per-run cache of every released version of each
engine. The first request for an engine fetches its release index; every
later request (including concurrent ones) is served from the cache, and
the returned lists are never mutated afterwards.

Acquisition failures propagate as :class:`~enginekeeper.exceptions.RegistryError`
or :class:`~enginekeeper.exceptions.NetworkError`: an engine whose catalog
cannot be obtained cannot be resolved, and is never treated as having an
empty catalog.

Typical usage::

    from enginekeeper.utils.http import HTTPClient
    from enginekeeper.core.catalog import VersionCatalog

    async with HTTPClient() as client:
        catalog = VersionCatalog(client)
        versions = await catalog.get_versions("node")
        print(versions[-1])         # newest release, e.g. "22.3.0"
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from enginekeeper.exceptions import RegistryError
from enginekeeper.utils.http import HTTPClient
from enginekeeper.utils.logger import get_logger
from enginekeeper.utils.version_utils import normalize_version, parse_version
from enginekeeper.constants import ENGINE_CATALOG_URLS

logger = get_logger("core.catalog")

__all__ = ["VersionCatalog", "parse_release_index"]


class VersionCatalog:
    """Per-process cache of released versions, keyed by engine name.

    Each engine triggers **at most one** request to its release index. A
    lock per engine prevents duplicate fetches when several coroutines
    request the same engine simultaneously.

    Args:
        http_client: A pre-configured :class:`HTTPClient`, or ``None`` for a
            catalog seeded entirely through :meth:`from_versions`.
        sources: Engine name to release index URL. Defaults to
            :data:`~enginekeeper.constants.ENGINE_CATALOG_URLS`.

    Example::

        async with HTTPClient() as client:
            catalog = VersionCatalog(client)
            node, again = await asyncio.gather(
                catalog.get_versions("node"),
                catalog.get_versions("node"),
            )
            assert node == again        # one fetch, shared result
    """

    def __init__(
        self,
        http_client: Optional[HTTPClient],
        sources: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.http_client = http_client
        self.sources: Dict[str, str] = dict(
            ENGINE_CATALOG_URLS if sources is None else sources
        )

        self._versions: Dict[str, Tuple[str, ...]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    @classmethod
    def from_versions(cls, versions: Mapping[str, Iterable[str]]) -> "VersionCatalog":
        """Build an offline catalog from known version lists.

        Example::

            >>> catalog = VersionCatalog.from_versions({"node": ["v18.0.0", "16.0.0"]})
            >>> catalog.get_cached("node")
            ['16.0.0', '18.0.0']
        """
        catalog = cls(http_client=None, sources={})
        for engine, raw_versions in versions.items():
            catalog._versions[engine] = _clean_versions(raw_versions)
        return catalog

    # ------------------------------------------------------------------
    # Public accessors
    # ------------------------------------------------------------------

    @property
    def engines(self) -> List[str]:
        """Engines this catalog can serve (cached or fetchable)."""
        return sorted(set(self.sources) | set(self._versions))

    async def get_versions(self, engine: str) -> List[str]:
        """Return every released version of ``engine``, ascending.

        Raises:
            RegistryError: The engine is unknown or its index is malformed.
            NetworkError: The release index could not be fetched.
        """
        cached = self._versions.get(engine)
        if cached is not None:
            return list(cached)

        lock = self._locks.setdefault(engine, asyncio.Lock())
        async with lock:
            # Another coroutine may have populated the cache while we waited
            cached = self._versions.get(engine)
            if cached is None:
                cached = await self._fetch(engine)
                self._versions[engine] = cached

        return list(cached)

    async def prefetch(self, engines: Iterable[str]) -> None:
        """Fetch several catalogs concurrently; the first failure propagates."""
        await asyncio.gather(*(self.get_versions(engine) for engine in engines))

    def get_cached(self, engine: str) -> Optional[List[str]]:
        """Return the cached versions of ``engine`` without fetching."""
        cached = self._versions.get(engine)
        return list(cached) if cached is not None else None

    # ------------------------------------------------------------------
    # Network helpers (private)
    # ------------------------------------------------------------------

    async def _fetch(self, engine: str) -> Tuple[str, ...]:
        url = self.sources.get(engine)
        if url is None:
            raise RegistryError(
                f"No version catalog is known for engine '{engine}'",
                engine=engine,
            )
        if self.http_client is None:
            raise RegistryError(
                f"Catalog for '{engine}' is not cached and no HTTP client is available",
                engine=engine,
                url=url,
            )

        logger.info("Fetching %s release index from %s", engine, url)
        payload = await self.http_client.get_json(url)
        versions = parse_release_index(payload, engine=engine)
        logger.debug("Loaded %d %s release(s)", len(versions), engine)
        return versions


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def parse_release_index(payload: Any, *, engine: str) -> Tuple[str, ...]:
    """Extract versions from a release index payload.

    Accepts the ``nodejs.org/dist/index.json`` shape (a list of objects with
    a ``version`` key) as well as a plain list of version strings.

    Raises:
        RegistryError: The payload is not a list.
    """
    if not isinstance(payload, list):
        raise RegistryError(
            f"Unexpected {engine} release index format: expected a list",
            engine=engine,
        )

    raw: List[str] = []
    for entry in payload:
        if isinstance(entry, str):
            raw.append(entry)
        elif isinstance(entry, dict) and isinstance(entry.get("version"), str):
            raw.append(entry["version"])

    return _clean_versions(raw)


def _clean_versions(raw_versions: Iterable[str]) -> Tuple[str, ...]:
    """Normalize, de-duplicate and sort versions; drop pre-releases and junk."""
    cleaned: Dict[str, Any] = {}

    for raw in raw_versions:
        value = normalize_version(raw)
        try:
            parsed = parse_version(value)
        except ValueError:
            logger.debug("Skipping unparsable version %r", raw)
            continue
        if parsed.prerelease:
            continue
        cleaned[value] = parsed

    return tuple(sorted(cleaned, key=cleaned.__getitem__))
