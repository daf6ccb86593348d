"""
Centralized constants for enginekeeper.

This module defines immutable configuration values used across
enginekeeper, including network settings, engine catalog sources, npm
manifest locations, and logging formats. All values are intended to be
treated as read-only.
"""

from typing import Final, Mapping, Sequence

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = "enginekeeper/{version}"

# ---------------------------------------------------------------------------
# Engine catalogs
# ---------------------------------------------------------------------------

#: Release index for each supported engine. Each URL returns a JSON array
#: of objects carrying a ``version`` key (e.g. ``"v20.11.1"``).
ENGINE_CATALOG_URLS: Final[Mapping[str, str]] = {
    "node": "https://nodejs.org/dist/index.json",
}

#: Engines checked when none are selected explicitly.
DEFAULT_ENGINES: Final[Sequence[str]] = ("node",)

#: Executable used to detect the locally running version of each engine.
ENGINE_EXECUTABLES: Final[Mapping[str, str]] = {
    "node": "node",
}

#: Universal wildcard range.
WILDCARD_RANGE: Final[str] = "*"

# ---------------------------------------------------------------------------
# npm registry
# ---------------------------------------------------------------------------

#: Manifest endpoint for a single published package version.
NPM_MANIFEST_API: Final[str] = "https://registry.npmjs.org/{package}/{version}"

# ---------------------------------------------------------------------------
# Project layout
# ---------------------------------------------------------------------------

#: Root manifest file name.
PACKAGE_JSON: Final[str] = "package.json"

#: Lockfiles in order of preference.
LOCKFILE_NAMES: Final[Sequence[str]] = (
    "npm-shrinkwrap.json",
    "package-lock.json",
)

#: Installed dependency directory.
NODE_MODULES: Final[str] = "node_modules"

#: Hidden lockfile written by npm 7+ inside ``node_modules``.
HIDDEN_LOCKFILE: Final[str] = ".package-lock.json"

#: Tree loading modes accepted by ``--mode``.
TREE_MODES: Final[Sequence[str]] = ("auto", "actual", "virtual", "ideal")

# ---------------------------------------------------------------------------
# Configuration defaults
# ---------------------------------------------------------------------------

#: Default tree loading mode.
DEFAULT_MODE: Final[str] = "auto"

#: Include devDependencies in the graph.
DEFAULT_INCLUDE_DEV: Final[bool] = False

#: Include peerDependencies in the graph.
DEFAULT_INCLUDE_PEER: Final[bool] = True

#: Rewrite the root ``engines`` field when it is broader than the graph.
DEFAULT_SAVE: Final[bool] = False

#: Check the locally running engine against the graph range.
DEFAULT_CHECK_CURRENT: Final[bool] = True

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default network timeout in seconds.
DEFAULT_TIMEOUT: Final[int] = 30

#: Maximum number of retries for failed HTTP requests.
DEFAULT_MAX_RETRIES: Final[int] = 3

#: Simultaneous requests per client (v1 lockfiles fetch one manifest per package).
DEFAULT_MAX_CONCURRENCY: Final[int] = 10

#: 429 responses tolerated per request before giving up.
MAX_THROTTLED_RETRIES: Final[int] = 5

#: Longest wait honored from a Retry-After header, in seconds.
MAX_RETRY_AFTER: Final[float] = 60.0

# ---------------------------------------------------------------------------
# Security constraints
# ---------------------------------------------------------------------------

#: Maximum allowed file size (in bytes) when reading manifests and lockfiles.
MAX_FILE_SIZE: Final[int] = 64 * 1024 * 1024  # 64 MB

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
