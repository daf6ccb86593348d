"""Dependency inventory loading for enginekeeper.

Builds the flat list of :class:`~enginekeeper.models.engine.PackageRecord`
objects the resolution engine consumes, from whatever the project has on
disk. The tree source is chosen the way npm tooling does it:

- ``actual`` (or ``auto`` with a ``node_modules`` directory): the installed
  tree, read from npm's hidden lockfile ``node_modules/.package-lock.json``
  or, when that is missing, from every installed ``package.json``.
- ``virtual`` (or ``auto`` with a lockfile): ``npm-shrinkwrap.json`` or
  ``package-lock.json``. Version 2 and 3 lockfiles record each package's
  ``engines``; version 1 lockfiles do not, so each locked manifest is
  fetched from the npm registry.
- ``ideal`` (only a ``package.json``): not supported, since building an
  ideal tree needs npm's own resolver.

Typical usage::

    async with HTTPClient() as http:
        inventory = await load_inventory(Path("."), mode="auto", http_client=http)
        manifest = read_root_manifest(Path("."))
        print(inventory.mode, len(inventory.records), manifest.engines)
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from enginekeeper.exceptions import InventoryError, ParseError
from enginekeeper.models.engine import PackageRecord
from enginekeeper.utils.http import HTTPClient
from enginekeeper.utils.logger import get_logger
from enginekeeper.utils.filesystem import detect_indent, read_json_file, safe_read_file
from enginekeeper.utils.version_utils import is_valid_version
from enginekeeper.constants import (
    HIDDEN_LOCKFILE,
    LOCKFILE_NAMES,
    NODE_MODULES,
    NPM_MANIFEST_API,
    PACKAGE_JSON,
)

logger = get_logger("core.inventory")

# Dependency fields of a manifest, mapped to the edges they create
DEPENDENCY_FIELDS = (
    "dependencies",
    "devDependencies",
    "optionalDependencies",
    "peerDependencies",
)

Edges = Dict[str, Dict[str, List[str]]]

__all__ = [
    "Inventory",
    "ProjectInfo",
    "RootManifest",
    "inspect_project",
    "load_inventory",
    "mark_dependency_types",
    "parse_lockfile_packages",
    "read_root_manifest",
    "select_mode",
]


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------


@dataclass
class ProjectInfo:
    """What the project directory contains.

    Attributes:
        path: Project directory.
        has_package: ``package.json`` exists.
        has_node_modules: ``node_modules`` directory exists.
        lockfile: Shrinkwrap or package-lock path, if any.
        lockfile_version: ``lockfileVersion`` of ``lockfile`` (``1`` if
            the field is missing).
    """

    path: Path
    has_package: bool = False
    has_node_modules: bool = False
    lockfile: Optional[Path] = None
    lockfile_version: Optional[int] = None

    @property
    def has_lockfile(self) -> bool:
        return self.lockfile is not None


@dataclass
class RootManifest:
    """The project's own ``package.json``.

    Attributes:
        path: Manifest path.
        data: Decoded JSON, key order preserved.
        indent: Indentation detected in the file, reused when saving.
    """

    path: Path
    data: Dict[str, Any]
    indent: Union[int, str] = 2

    @property
    def name(self) -> Optional[str]:
        value = self.data.get("name")
        return value if isinstance(value, str) else None

    @property
    def engines(self) -> Dict[str, str]:
        """Declared ``engines`` (non-string values are ignored)."""
        return _engines_of(self.data)


@dataclass
class Inventory:
    """Dependency records plus where they came from."""

    mode: str
    source: str
    records: List[PackageRecord] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Project inspection
# ---------------------------------------------------------------------------


def inspect_project(project_dir: Path) -> ProjectInfo:
    """Report which npm artifacts exist in ``project_dir``."""
    info = ProjectInfo(
        path=project_dir,
        has_package=(project_dir / PACKAGE_JSON).is_file(),
        has_node_modules=(project_dir / NODE_MODULES).is_dir(),
    )

    for name in LOCKFILE_NAMES:
        candidate = project_dir / name
        if candidate.is_file():
            info.lockfile = candidate
            data = read_json_file(candidate)
            version = data.get("lockfileVersion", 1) if isinstance(data, dict) else 1
            info.lockfile_version = version if isinstance(version, int) else 1
            break

    return info


def select_mode(info: ProjectInfo, mode: str) -> str:
    """Resolve ``auto`` into the concrete tree mode for ``info``."""
    if mode == "actual" or (mode == "auto" and info.has_node_modules):
        return "actual"
    if mode == "virtual" or (mode == "auto" and info.has_lockfile):
        return "virtual"
    return "ideal"


def read_root_manifest(project_dir: Path) -> Optional[RootManifest]:
    """Load ``package.json`` from ``project_dir``; ``None`` if it is missing.

    Raises:
        ParseError: The manifest is not a JSON object.
    """
    path = project_dir / PACKAGE_JSON
    if not path.is_file():
        return None

    content = safe_read_file(path)
    data = read_json_file(path)
    if not isinstance(data, dict):
        raise ParseError("package.json must contain a JSON object", file_path=str(path))

    return RootManifest(path=path, data=data, indent=detect_indent(content))


# ---------------------------------------------------------------------------
# Inventory loading
# ---------------------------------------------------------------------------


async def load_inventory(
    project_dir: Path,
    *,
    mode: str = "auto",
    http_client: Optional[HTTPClient] = None,
) -> Inventory:
    """Build the dependency inventory for ``project_dir``.

    Args:
        project_dir: Directory containing ``package.json``.
        mode: ``auto``, ``actual``, ``virtual`` or ``ideal``.
        http_client: Needed only for version 1 lockfiles.

    Raises:
        InventoryError: The requested tree cannot be built.
        ParseError: A lockfile or manifest is malformed.
        NetworkError: A registry manifest could not be fetched.
    """
    info = inspect_project(project_dir)
    selected = select_mode(info, mode)

    if selected == "actual":
        if not info.has_node_modules:
            raise InventoryError(
                "No node_modules directory found; run `npm install` first",
                project_path=str(project_dir),
                mode=mode,
            )
        return _load_actual(project_dir)

    if selected == "virtual":
        if info.lockfile is None:
            raise InventoryError(
                "No package-lock.json or npm-shrinkwrap.json found",
                project_path=str(project_dir),
                mode=mode,
            )
        if (info.lockfile_version or 1) < 2:
            if http_client is None:
                raise InventoryError(
                    "A v1 lockfile needs registry access to read engines",
                    project_path=str(project_dir),
                    mode=mode,
                )
            return await _load_v1_lockfile(info.lockfile, http_client)
        logger.info("Lockfile found; loading virtual tree from %s", info.lockfile.name)
        return Inventory(
            mode="virtual",
            source=str(info.lockfile),
            records=parse_lockfile_packages(read_json_file(info.lockfile), str(info.lockfile)),
        )

    raise InventoryError(
        "Building an ideal tree from package.json alone is not supported; "
        "run `npm install` or `npm install --package-lock-only` first",
        project_path=str(project_dir),
        mode=mode,
    )


def _load_actual(project_dir: Path) -> Inventory:
    hidden = project_dir / NODE_MODULES / HIDDEN_LOCKFILE
    if hidden.is_file():
        logger.info("node_modules found; loading tree from %s", hidden)
        return Inventory(
            mode="actual",
            source=str(hidden),
            records=parse_lockfile_packages(read_json_file(hidden), str(hidden)),
        )

    logger.info("node_modules found; loading tree from installed manifests")
    records: List[PackageRecord] = []
    edges: Edges = {}
    _walk_node_modules(project_dir / NODE_MODULES, NODE_MODULES, records, edges)

    root_path = project_dir / PACKAGE_JSON
    root_data = read_json_file(root_path) if root_path.is_file() else None
    if isinstance(root_data, dict):
        edges[""] = _edges_of(root_data)
        records = mark_dependency_types(records, edges)
    else:
        logger.warning(
            "No root package.json; dev, optional and peer filtering is unavailable"
        )

    return Inventory(mode="actual", source=str(project_dir / NODE_MODULES), records=records)


def _walk_node_modules(
    directory: Path,
    location: str,
    records: List[PackageRecord],
    edges: Edges,
) -> None:
    """Collect every installed package under ``directory``, depth first."""
    for child in sorted(directory.iterdir()):
        if not child.is_dir() or child.name.startswith("."):
            continue

        if child.name.startswith("@"):
            # Scope directory: packages live one level down
            for scoped in sorted(child.iterdir()):
                if scoped.is_dir():
                    _read_installed(
                        scoped, f"{location}/{child.name}/{scoped.name}", records, edges
                    )
            continue

        _read_installed(child, f"{location}/{child.name}", records, edges)


def _read_installed(
    package_dir: Path,
    location: str,
    records: List[PackageRecord],
    edges: Edges,
) -> None:
    manifest_path = package_dir / PACKAGE_JSON
    if manifest_path.is_file():
        data = read_json_file(manifest_path)
        if isinstance(data, dict):
            records.append(
                PackageRecord(
                    name=data.get("name") or _name_from_location(location),
                    version=data.get("version"),
                    engines=_engines_of(data),
                    bundled=bool(data.get("_inBundle")),
                    location=location,
                )
            )
            edges[location] = _edges_of(data)

    nested = package_dir / NODE_MODULES
    if nested.is_dir():
        _walk_node_modules(nested, f"{location}/{NODE_MODULES}", records, edges)


def mark_dependency_types(records: List[PackageRecord], edges: Edges) -> List[PackageRecord]:
    """Derive ``dev``, ``optional`` and ``peer`` flags from dependency edges.

    ``edges`` maps each location (``""`` for the project itself) to the
    package names listed under each of :data:`DEPENDENCY_FIELDS`. Names
    resolve the way Node looks modules up, nearest ``node_modules`` first.
    A package is ``dev`` when no path from the project reaches it without a
    root ``devDependencies`` edge; ``optional`` and ``peer`` work the same
    way for optional and peer edges. Packages nothing reaches (extraneous)
    carry all three flags.
    """
    installed = {record.location for record in records if record.location}

    production = _reachable(
        edges,
        installed,
        root_kinds=("dependencies", "optionalDependencies", "peerDependencies"),
        kinds=("dependencies", "optionalDependencies", "peerDependencies"),
    )
    required = _reachable(
        edges,
        installed,
        root_kinds=("dependencies", "devDependencies", "peerDependencies"),
        kinds=("dependencies", "peerDependencies"),
    )
    direct = _reachable(
        edges,
        installed,
        root_kinds=("dependencies", "devDependencies", "optionalDependencies"),
        kinds=("dependencies", "optionalDependencies"),
    )

    return [
        replace(
            record,
            dev=record.location not in production,
            optional=record.location not in required,
            peer=record.location not in direct,
        )
        for record in records
    ]


def _reachable(
    edges: Edges,
    installed: Set[str],
    *,
    root_kinds: Iterable[str],
    kinds: Iterable[str],
) -> Set[str]:
    """Return every installed location reachable from the project root."""
    kinds = tuple(kinds)
    seen: Set[str] = set()
    pending: List[Tuple[str, Tuple[str, ...]]] = [("", tuple(root_kinds))]

    while pending:
        location, followed = pending.pop()
        for kind in followed:
            for name in edges.get(location, {}).get(kind, ()):
                target = _resolve_location(location, name, installed)
                if target is not None and target not in seen:
                    seen.add(target)
                    pending.append((target, kinds))

    return seen


def _resolve_location(location: str, name: str, installed: Set[str]) -> Optional[str]:
    """Find the install location of ``name`` as required from ``location``.

    Example::

        >>> _resolve_location("node_modules/a", "b", {"node_modules/b"})
        'node_modules/b'
    """
    base = location
    while True:
        candidate = f"{base}/{NODE_MODULES}/{name}" if base else f"{NODE_MODULES}/{name}"
        if candidate in installed:
            return candidate
        if not base:
            return None
        head, separator, _ = base.rpartition(f"/{NODE_MODULES}/")
        base = head if separator else ""


def parse_lockfile_packages(data: Any, file_path: str) -> List[PackageRecord]:
    """Convert the ``packages`` map of a v2/v3 lockfile into records.

    The root entry (``""``) and link entries are skipped; the link target
    has its own entry.

    Raises:
        ParseError: ``data`` is not a lockfile object with a ``packages`` map.
    """
    if not isinstance(data, dict) or not isinstance(data.get("packages"), dict):
        raise ParseError("Lockfile has no 'packages' map", file_path=file_path, key="packages")

    records: List[PackageRecord] = []
    for location, entry in data["packages"].items():
        if not location or not isinstance(entry, dict) or entry.get("link"):
            continue

        dev_optional = bool(entry.get("devOptional"))
        records.append(
            PackageRecord(
                name=entry.get("name") or _name_from_location(location),
                version=entry.get("version"),
                engines=_engines_of(entry),
                bundled=bool(entry.get("inBundle")),
                dev=bool(entry.get("dev")) or dev_optional,
                peer=bool(entry.get("peer")),
                optional=bool(entry.get("optional")) or dev_optional,
                location=location,
            )
        )

    logger.debug("Parsed %d package(s) from %s", len(records), file_path)
    return records


async def _load_v1_lockfile(lockfile: Path, http_client: HTTPClient) -> Inventory:
    """Load a v1 lockfile, fetching each locked manifest for its engines."""
    logger.info("v1 lockfile found; fetching manifests for %s", lockfile.name)
    data = read_json_file(lockfile)
    if not isinstance(data, dict):
        raise ParseError("Lockfile must contain a JSON object", file_path=str(lockfile))

    locked: List[Tuple[str, Dict[str, Any]]] = []
    _collect_v1_dependencies(data.get("dependencies"), locked)

    wanted = sorted(
        {
            (name, entry["version"])
            for name, entry in locked
            if isinstance(entry.get("version"), str) and is_valid_version(entry["version"])
        }
    )
    manifests = await asyncio.gather(
        *(_fetch_manifest(http_client, name, version) for name, version in wanted)
    )
    engines_by_key = dict(zip(wanted, manifests))

    records = [
        PackageRecord(
            name=name,
            version=entry.get("version"),
            engines=engines_by_key.get((name, entry.get("version")), {}),
            bundled=bool(entry.get("bundled")),
            dev=bool(entry.get("dev")),
            peer=bool(entry.get("peer")),
            optional=bool(entry.get("optional")),
        )
        for name, entry in locked
    ]
    return Inventory(mode="virtual", source=str(lockfile), records=records)


def _collect_v1_dependencies(
    dependencies: Any,
    out: List[Tuple[str, Dict[str, Any]]],
) -> None:
    if not isinstance(dependencies, dict):
        return
    for name, entry in dependencies.items():
        if isinstance(entry, dict):
            out.append((name, entry))
            _collect_v1_dependencies(entry.get("dependencies"), out)


async def _fetch_manifest(http_client: HTTPClient, name: str, version: str) -> Dict[str, str]:
    url = NPM_MANIFEST_API.format(package=name.replace("/", "%2f"), version=version)
    manifest = await http_client.get_manifest(url)
    return _engines_of(manifest)


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def _edges_of(data: Mapping[str, Any]) -> Dict[str, List[str]]:
    return {
        kind: list(data[kind])
        for kind in DEPENDENCY_FIELDS
        if isinstance(data.get(kind), dict)
    }


def _engines_of(data: Mapping[str, Any]) -> Dict[str, str]:
    """Return the string-valued entries of ``data["engines"]``.

    The legacy array form of ``engines`` carries no ranges and yields ``{}``.
    """
    engines = data.get("engines")
    if not isinstance(engines, dict):
        return {}
    return {key: value for key, value in engines.items() if isinstance(value, str)}


def _name_from_location(location: str) -> str:
    """Derive a package name from a lockfile location.

    Example::

        >>> _name_from_location("node_modules/a/node_modules/@scope/b")
        '@scope/b'
    """
    tail = location.rsplit(f"{NODE_MODULES}/", 1)[-1]
    return tail
