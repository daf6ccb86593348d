"""Check command implementation for enginekeeper.

Compares a project's ``engines`` declaration with what its dependency graph
actually supports, and optionally rewrites ``package.json``.

The command orchestrates four core components:

1. **Inventory**: loads the dependency tree (installed ``node_modules``,
   lockfile, or a v1 lockfile plus registry manifests).
2. **VersionCatalog**: fetches every released version of each selected
   engine, once per run.
3. **Resolvers and synthesizer**: compute the root and graph version sets
   and the minimal range denoting each.
4. **Reconciliation**: compares the two sets and suggests the range the
   project should declare.

Typical usage::

    # Check the project in the current directory
    $ enginekeeper check

    # Include devDependencies and rewrite a too-broad engines field
    $ enginekeeper check --dev --save

    # Machine-readable JSON output
    $ enginekeeper check --format json > engines.json
"""

from __future__ import annotations

import sys
import json
import click
import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from enginekeeper.models import TriState
from enginekeeper.exceptions import EngineKeeperError, RangeConsistencyError
from enginekeeper.context import pass_context, EngineKeeperContext
from enginekeeper.core import (
    AnalysisOptions,
    EngineReport,
    ProjectAnalysis,
    analyze_project,
    save_root_ranges,
)
from enginekeeper.constants import TREE_MODES
from enginekeeper.utils import (
    HTTPClient,
    get_logger,
    print_success,
    print_error,
    print_warning,
    print_engine_table,
    get_console,
    status_markup,
)

logger = get_logger("commands.check")


@click.command()
@click.argument(
    "path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.option(
    "--mode",
    type=click.Choice(list(TREE_MODES), case_sensitive=False),
    default=None,
    help="Dependency tree to inspect (default: auto).",
)
@click.option(
    "--engines",
    "-e",
    "engines",
    multiple=True,
    help="Engine to check (repeatable, default: node).",
)
@click.option(
    "--dev/--no-dev",
    default=None,
    help="Include devDependencies in the graph.",
)
@click.option(
    "--peer/--no-peer",
    default=None,
    help="Include peerDependencies in the graph.",
)
@click.option(
    "--save/--no-save",
    default=None,
    help="Rewrite package.json engines when broader than the graph allows.",
)
@click.option(
    "--current/--no-current",
    default=None,
    help="Check the locally installed engine against the graph range.",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "simple", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@pass_context
def check(
    ctx: EngineKeeperContext,
    path: Path,
    mode: Optional[str],
    engines: Tuple[str, ...],
    dev: Optional[bool],
    peer: Optional[bool],
    save: Optional[bool],
    current: Optional[bool],
    format: str,
) -> None:
    """Check which engine versions the dependency graph supports.

    Reads the project's dependency tree, intersects every package's
    ``engines`` constraint against the engine's release catalog, and
    compares the result with the project's own ``engines`` field.

    Boolean flags left off the command line fall back to the configuration
    file, then to the built-in defaults.

    Exits:
        0 if the root declaration is consistent with the graph, 1 if it is
        broader, disjoint, unsatisfiable, the running engine is outside the
        supported range, or an error occurred.
    """
    options = ctx.analysis_options(
        engines=engines,
        mode=mode,
        dev=TriState.from_flag(dev),
        peer=TriState.from_flag(peer),
        current=TriState.from_flag(current),
    )
    do_save = ctx.switch("save", TriState.from_flag(save))

    try:
        has_problems = asyncio.run(_check_async(path, options, do_save, format))
        sys.exit(1 if has_problems else 0)

    except RangeConsistencyError:
        # Internal defect; reported with full context by the CLI entry point
        raise
    except EngineKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)


# ---------------------------------------------------------------------------
# Async orchestration
# ---------------------------------------------------------------------------


async def _check_async(
    path: Path,
    options: AnalysisOptions,
    save: bool,
    format: str,
) -> bool:
    """Async implementation of the check command.

    Returns:
        ``True`` if any engine has problems left after an optional save.
    """
    show_progress: bool = format != "json"

    logger.info("Checking %s (engines: %s)", path, ", ".join(options.engines))

    async with HTTPClient() as http:
        analysis = await analyze_project(path, options, http)

    if save:
        _save(analysis, show_progress)

    if format == "table":
        _display_table(analysis)
    elif format == "simple":
        _display_simple(analysis)
    else:  # json
        _display_json(analysis)

    if show_progress:
        _display_summary(analysis)

    return analysis.has_problems


def _save(analysis: ProjectAnalysis, show_progress: bool) -> None:
    if analysis.manifest is None:
        if show_progress:
            print_warning("No package.json found; nothing to save")
        return

    updated = save_root_ranges(analysis.manifest, analysis.reports)
    if show_progress:
        for report in analysis.reports:
            if report.engine in updated and report.reconciliation is not None:
                print_success(
                    f'Set engines.{report.engine} to "{report.reconciliation.suggested}" '
                    f"in {analysis.manifest.path.name}"
                )


# ---------------------------------------------------------------------------
# Display renderers
# ---------------------------------------------------------------------------


def _display_table(analysis: ProjectAnalysis) -> None:
    """Render one row per engine, then the packages that bound each range."""
    print_engine_table(
        [_create_table_row(report) for report in analysis.reports],
        caption=f"{analysis.package_count} package(s) from {analysis.source}",
    )

    console = get_console()
    for report in analysis.reports:
        if report.graph is None:
            continue

        bottlenecks = report.graph.bottlenecks()
        if bottlenecks:
            console.print(f"\n[bold]{report.engine}[/bold] range is set by:")
            for diagnostic in bottlenecks:
                console.print(f"  • {diagnostic.name}: {diagnostic.range}")

        for rejected in report.graph.rejected:
            print_warning(
                f"{rejected.constraint.source} declares an invalid {report.engine} "
                f"range {rejected.constraint.range!r}; ignored"
            )
        if report.root is not None and report.root.rejected is not None:
            print_warning(
                f"package.json declares an invalid {report.engine} range "
                f"{report.root.declared!r}; treated as *"
            )


def _create_table_row(report: EngineReport) -> Dict[str, str]:
    """Build a Rich-formatted table row dictionary for a single engine."""
    if report.error is not None:
        return {
            "Engine": report.engine,
            "Declared": "[muted]-[/muted]",
            "Root Range": "[muted]-[/muted]",
            "Graph Range": "[red]error[/red]",
            "Status": "[red]✗ ERROR[/red]",
            "Current": "[muted]-[/muted]",
        }

    declared = report.root.declared if report.root and report.root.declared else None
    status = report.reconciliation.status.value if report.reconciliation else "-"

    return {
        "Engine": report.engine,
        "Declared": declared or "[muted]-[/muted]",
        "Root Range": str(report.root_range) if report.root_range else "[red]none[/red]",
        "Graph Range": str(report.graph_range) if report.graph_range else "[red]none[/red]",
        "Status": status_markup(status) + (" [green](saved)[/green]" if report.saved else ""),
        "Current": _render_current(report),
    }


def _render_current(report: EngineReport) -> str:
    satisfied = report.current_satisfied
    if satisfied is None:
        return "[muted]-[/muted]"
    if satisfied:
        return f"[green]✓ {report.current_version}[/green]"
    return f"[red]✗ {report.current_version}[/red]"


def _display_simple(analysis: ProjectAnalysis) -> None:
    """Render one line per engine, with details indented below."""
    console = get_console()

    for report in analysis.reports:
        if report.error is not None:
            console.print(f"[ERROR] {report.engine:10} {report.error}")
            continue

        status = report.reconciliation.status.value if report.reconciliation else "-"
        console.print(
            f"[{status.upper()}] {report.engine:10} "
            f"root: {str(report.root_range or 'none'):20} graph: {report.graph_range or 'none'}"
        )
        if report.graph is not None:
            for diagnostic in report.graph.bottlenecks():
                console.print(f"       Bound by: {diagnostic.name} ({diagnostic.range})")
        if report.current_version is not None:
            console.print(f"       Current: {report.current_version}")


def _display_json(analysis: ProjectAnalysis) -> None:
    """Render the analysis as formatted JSON for machine consumption."""
    print(json.dumps(analysis.to_json(), indent=2))


def _display_summary(analysis: ProjectAnalysis) -> None:
    messages: List[str] = []

    for report in analysis.reports:
        if report.error is not None:
            print_error(f"{report.engine}: {report.error}")
            continue

        rec = report.reconciliation
        if rec is not None:
            message = rec.describe(report.engine)
            if report.saved:
                continue
            if rec.is_problem:
                print_warning(message)
            else:
                messages.append(message)

        if report.current_satisfied is False:
            print_warning(
                f"Current {report.engine} version {report.current_version} is not "
                f"supported by your dependency graph ({report.graph_range or 'none'})"
            )

    for message in messages:
        print_success(message)
