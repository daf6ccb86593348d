"""
Core functionality exports for enginekeeper.

This module provides convenient access to the core subsystems of
enginekeeper. Importing from here keeps user-facing imports clean and
stable:

    from enginekeeper.core import resolve_graph, synthesize_range
"""

from __future__ import annotations

from enginekeeper.core.catalog import VersionCatalog
from enginekeeper.core.extractor import extract_constraints, select_records
from enginekeeper.core.inventory import Inventory, RootManifest, load_inventory, read_root_manifest
from enginekeeper.core.resolver import (
    GraphResolution,
    RootResolution,
    filter_versions,
    resolve_graph,
    resolve_root,
)
from enginekeeper.core.synthesizer import check_consistency, find_anchors, synthesize_range
from enginekeeper.core.analyzer import (
    AnalysisOptions,
    EngineReport,
    ProjectAnalysis,
    Reconciliation,
    ReconciliationStatus,
    analyze_project,
    reconcile,
    save_root_ranges,
)

__all__ = [
    "VersionCatalog",
    "Inventory",
    "RootManifest",
    "load_inventory",
    "read_root_manifest",
    "extract_constraints",
    "select_records",
    "GraphResolution",
    "RootResolution",
    "filter_versions",
    "resolve_graph",
    "resolve_root",
    "check_consistency",
    "find_anchors",
    "synthesize_range",
    "AnalysisOptions",
    "EngineReport",
    "ProjectAnalysis",
    "Reconciliation",
    "ReconciliationStatus",
    "analyze_project",
    "reconcile",
    "save_root_ranges",
]
