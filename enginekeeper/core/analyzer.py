"""Engine compatibility analysis for enginekeeper.

Orchestrates the resolution pipeline for a whole project:

1. **Inventory**: load the dependency tree and the root ``package.json``.
2. **Extraction**: derive per-package engine constraints.
3. **Resolution**: for every selected engine, concurrently: fetch the
   catalog, resolve the root declaration and the dependency graph, and
   synthesize a display range for each.
4. **Reconciliation**: compare the root set with the graph set and
   synthesize the range the project *should* declare (their intersection).

The resolvers and the synthesizer are pure; this module owns all awaiting.
A catalog that cannot be fetched fails only its own engine, while a
:class:`~enginekeeper.exceptions.RangeConsistencyError` always propagates.

Typical usage::

    async with HTTPClient() as http:
        analysis = await analyze_project(Path("."), AnalysisOptions(), http)
        for report in analysis.reports:
            print(report.engine, report.graph_range, report.reconciliation.status)
"""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from enginekeeper.exceptions import NetworkError
from enginekeeper.models.engine import Constraint, SynthesizedRange
from enginekeeper.core.catalog import VersionCatalog
from enginekeeper.core.extractor import extract_constraints
from enginekeeper.core.inventory import RootManifest, load_inventory, read_root_manifest
from enginekeeper.core.resolver import (
    GraphResolution,
    RootResolution,
    resolve_graph,
    resolve_root,
)
from enginekeeper.core.synthesizer import synthesize_range
from enginekeeper.utils.http import HTTPClient
from enginekeeper.utils.logger import get_logger
from enginekeeper.utils.filesystem import write_json_file
from enginekeeper.utils.version_utils import is_valid_version, normalize_version, satisfies
from enginekeeper.constants import (
    DEFAULT_ENGINES,
    DEFAULT_INCLUDE_DEV,
    DEFAULT_INCLUDE_PEER,
    DEFAULT_MODE,
    ENGINE_EXECUTABLES,
)

logger = get_logger("core.analyzer")

__all__ = [
    "AnalysisOptions",
    "EngineReport",
    "ProjectAnalysis",
    "Reconciliation",
    "ReconciliationStatus",
    "analyze_engine",
    "analyze_project",
    "detect_current_version",
    "reconcile",
    "save_root_ranges",
]


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


class ReconciliationStatus(str, Enum):
    """How the root declaration relates to what the graph supports."""

    MATCH = "match"
    ROOT_NARROWER = "root_narrower"
    ROOT_BROADER = "root_broader"
    DISJOINT = "disjoint"
    UNSATISFIABLE = "unsatisfiable"


@dataclass
class Reconciliation:
    """Comparison of the root and graph version sets.

    Attributes:
        status: Relationship between the two sets.
        suggested: Range denoting their intersection, i.e. what the project
            should declare. ``None`` when the sets share no version.
        unsupported: Versions the root accepts but the graph does not,
            descending.
    """

    status: ReconciliationStatus
    suggested: Optional[SynthesizedRange] = None
    unsupported: List[str] = field(default_factory=list)

    @property
    def is_problem(self) -> bool:
        return self.status not in (
            ReconciliationStatus.MATCH,
            ReconciliationStatus.ROOT_NARROWER,
        )

    def describe(self, engine: str) -> str:
        """Return a one-line human-readable explanation."""
        if self.status is ReconciliationStatus.MATCH:
            return f"Your {engine} engines field matches your dependency graph."
        if self.status is ReconciliationStatus.ROOT_NARROWER:
            return f"Your {engine} engines field is narrower than your dependency graph allows."
        if self.status is ReconciliationStatus.UNSATISFIABLE:
            return f"No {engine} version satisfies every dependency."
        if self.status is ReconciliationStatus.DISJOINT:
            return f"Your {engine} engines field shares no version with your dependency graph."
        return (
            f"Your {engine} engines field allows {len(self.unsupported)} version(s) "
            f"your dependency graph does not support; use {self.suggested}."
        )


@dataclass
class EngineReport:
    """Everything known about one engine after analysis.

    ``error`` is set (and everything else left empty) when the engine's
    catalog could not be obtained.
    """

    engine: str
    root: Optional[RootResolution] = None
    graph: Optional[GraphResolution] = None
    root_range: Optional[SynthesizedRange] = None
    graph_range: Optional[SynthesizedRange] = None
    reconciliation: Optional[Reconciliation] = None
    catalog_size: int = 0
    current_version: Optional[str] = None
    saved: bool = False
    error: Optional[str] = None

    @property
    def current_satisfied(self) -> Optional[bool]:
        """Whether the running engine is inside the graph range (``None`` if unknown)."""
        if self.current_version is None:
            return None
        if self.graph_range is None:
            return False
        return satisfies(self.current_version, self.graph_range.expression)

    @property
    def has_problems(self) -> bool:
        if self.error is not None:
            return True
        if self.reconciliation is not None and self.reconciliation.is_problem and not self.saved:
            return True
        return self.current_satisfied is False and not self.saved

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"engine": self.engine}
        if self.error is not None:
            data["error"] = self.error
            return data

        data["catalog_size"] = self.catalog_size
        data["root"] = self.root.to_json() if self.root else None
        data["root_range"] = _range_json(self.root_range)
        data["graph"] = self.graph.to_json() if self.graph else None
        data["graph_range"] = _range_json(self.graph_range)
        data["bottlenecks"] = [d.name for d in self.graph.bottlenecks()] if self.graph else []
        if self.reconciliation is not None:
            data["status"] = self.reconciliation.status.value
            data["suggested"] = _range_json(self.reconciliation.suggested)
            data["unsupported"] = list(self.reconciliation.unsupported)
        data["current"] = {
            "version": self.current_version,
            "satisfied": self.current_satisfied,
        }
        data["saved"] = self.saved
        return data


@dataclass
class AnalysisOptions:
    """Effective options for one analysis run (after config and CLI merge)."""

    engines: Sequence[str] = DEFAULT_ENGINES
    mode: str = DEFAULT_MODE
    include_dev: bool = DEFAULT_INCLUDE_DEV
    include_peer: bool = DEFAULT_INCLUDE_PEER
    check_current: bool = False


@dataclass
class ProjectAnalysis:
    """Per-engine reports plus the inventory they were derived from."""

    project_dir: Path
    mode: str
    source: str
    package_count: int
    constraints: List[Constraint] = field(default_factory=list)
    reports: List[EngineReport] = field(default_factory=list)
    manifest: Optional[RootManifest] = None

    @property
    def has_problems(self) -> bool:
        return any(report.has_problems for report in self.reports)

    def to_json(self) -> Dict[str, Any]:
        return {
            "project": str(self.project_dir),
            "mode": self.mode,
            "source": self.source,
            "packages": self.package_count,
            "constraints": len(self.constraints),
            "engines": [report.to_json() for report in self.reports],
        }


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def reconcile(
    root: RootResolution,
    graph: GraphResolution,
    catalog: Sequence[str],
) -> Reconciliation:
    """Compare the root and graph version sets and suggest a declaration.

    The suggestion is the synthesized range of the two sets' intersection,
    so it never admits a version either side rejects.
    """
    root_set = set(root.valid_versions)
    graph_set = set(graph.valid_versions)
    common = root_set & graph_set
    unsupported = [v for v in root.valid_versions if v not in graph_set]

    suggested = synthesize_range(
        [v for v in graph.valid_versions if v in common],
        catalog,
        engine=graph.engine,
        constraint_count=root.constraint_count + graph.constraint_count,
    )

    if not graph_set:
        status = ReconciliationStatus.UNSATISFIABLE
    elif root_set == graph_set:
        status = ReconciliationStatus.MATCH
    elif not common:
        status = ReconciliationStatus.DISJOINT
    elif root_set < graph_set:
        status = ReconciliationStatus.ROOT_NARROWER
    else:
        status = ReconciliationStatus.ROOT_BROADER

    return Reconciliation(status=status, suggested=suggested, unsupported=unsupported)


async def analyze_engine(
    engine: str,
    *,
    catalog: VersionCatalog,
    constraints: Sequence[Constraint],
    declared: Optional[str],
    check_current: bool = False,
) -> EngineReport:
    """Resolve, synthesize and reconcile a single engine.

    Raises:
        RegistryError: The engine's catalog is unavailable.
        NetworkError: The catalog could not be fetched.
        RangeConsistencyError: A synthesized range failed verification.
    """
    versions = await catalog.get_versions(engine)

    root = resolve_root(engine, declared, versions)
    graph = resolve_graph(engine, constraints, versions)

    report = EngineReport(
        engine=engine,
        root=root,
        graph=graph,
        catalog_size=len(versions),
        root_range=synthesize_range(
            root.valid_versions,
            versions,
            engine=engine,
            constraint_count=root.constraint_count,
        ),
        graph_range=synthesize_range(
            graph.valid_versions,
            versions,
            engine=engine,
            constraint_count=graph.constraint_count,
        ),
        reconciliation=reconcile(root, graph, versions),
    )

    if check_current:
        report.current_version = await detect_current_version(engine)

    logger.info(
        "%s: root %s, graph %s (%s)",
        engine,
        report.root_range or "none",
        report.graph_range or "none",
        report.reconciliation.status.value if report.reconciliation else "-",
    )
    return report


async def analyze_project(
    project_dir: Path,
    options: AnalysisOptions,
    http_client: HTTPClient,
    *,
    catalog: Optional[VersionCatalog] = None,
) -> ProjectAnalysis:
    """Analyze every selected engine for the project in ``project_dir``.

    Args:
        project_dir: Directory containing ``package.json``.
        options: Effective analysis options.
        http_client: Client shared by the catalog and v1 manifest lookups.
        catalog: Pre-built catalog (defaults to one backed by ``http_client``).

    Raises:
        InventoryError: The dependency tree cannot be loaded.
        ParseError: A manifest or lockfile is malformed.
        RangeConsistencyError: A synthesized range failed verification.
    """
    inventory = await load_inventory(project_dir, mode=options.mode, http_client=http_client)
    manifest = read_root_manifest(project_dir)
    root_engines = manifest.engines if manifest is not None else {}

    constraints = extract_constraints(
        inventory.records,
        list(options.engines),
        include_dev=options.include_dev,
        include_peer=options.include_peer,
    )
    logger.info(
        "Loaded %d package(s) from %s; %d engine constraint(s)",
        len(inventory.records),
        inventory.source,
        len(constraints),
    )

    catalog = catalog or VersionCatalog(http_client)
    results = await asyncio.gather(
        *(
            analyze_engine(
                engine,
                catalog=catalog,
                constraints=constraints,
                declared=root_engines.get(engine),
                check_current=options.check_current,
            )
            for engine in options.engines
        ),
        return_exceptions=True,
    )

    reports: List[EngineReport] = []
    for engine, result in zip(options.engines, results):
        if isinstance(result, NetworkError):
            logger.warning("Cannot resolve %s: %s", engine, result)
            reports.append(EngineReport(engine=engine, error=str(result)))
        elif isinstance(result, BaseException):
            raise result
        else:
            reports.append(result)

    return ProjectAnalysis(
        project_dir=project_dir,
        mode=inventory.mode,
        source=inventory.source,
        package_count=len(inventory.records),
        constraints=constraints,
        reports=reports,
        manifest=manifest,
    )


async def detect_current_version(engine: str) -> Optional[str]:
    """Return the version of the locally installed ``engine``, if any.

    Runs ``<executable> --version`` (e.g. ``node --version``). A missing
    executable or unparsable output yields ``None``.
    """
    executable = ENGINE_EXECUTABLES.get(engine)
    if executable is None:
        logger.debug("No executable known for %s", engine)
        return None

    try:
        process = await asyncio.create_subprocess_exec(
            executable,
            "--version",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        stdout, _ = await process.communicate()
    except OSError as exc:
        logger.debug("Cannot run %s --version: %s", executable, exc)
        return None

    version = normalize_version(stdout.decode("utf-8", errors="replace"))
    if process.returncode != 0 or not is_valid_version(version):
        logger.debug("Unexpected %s --version output: %r", executable, version)
        return None
    return version


def save_root_ranges(manifest: RootManifest, reports: Sequence[EngineReport]) -> List[str]:
    """Write each report's suggested range into the manifest's ``engines``.

    Only engines whose root declaration is broader than the graph are
    rewritten; a disjoint or unsatisfiable engine has nothing to suggest.
    Key order and indentation are kept.

    Returns:
        Engines whose declaration was changed.

    Raises:
        FileOperationError: The manifest could not be written.
    """
    updated: List[str] = []
    engines = manifest.data.get("engines")
    if not isinstance(engines, dict):
        engines = {}

    for report in reports:
        rec = report.reconciliation
        if rec is None or rec.suggested is None:
            continue
        if rec.status is not ReconciliationStatus.ROOT_BROADER:
            continue
        if engines.get(report.engine) == rec.suggested.display:
            continue
        engines[report.engine] = rec.suggested.display
        updated.append(report.engine)

    if not updated:
        return updated

    manifest.data["engines"] = engines
    write_json_file(manifest.path, manifest.data, indent=manifest.indent, create_backup_file=True)
    for report in reports:
        if report.engine in updated:
            report.saved = True

    logger.info("Updated engines in %s: %s", manifest.path, ", ".join(updated))
    return updated


def _range_json(value: Optional[SynthesizedRange]) -> Optional[Dict[str, str]]:
    if value is None:
        return None
    return {"expression": value.expression, "display": value.display}

