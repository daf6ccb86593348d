"""
enginekeeper: runtime engine compatibility for npm projects

enginekeeper works out which versions of a runtime engine (such as Node.js)
a project can actually run on, by intersecting the ``engines`` constraints
declared by every package in its dependency graph.

Features include:
    • Minimal range synthesis (``>= 14.17`` rather than a list of versions)
    • Detection of a root ``engines`` field broader than the graph supports
    • Optional rewrite of ``package.json`` with the suggested range
    • Lockfile, installed-tree and v1-lockfile inventories
"""

from __future__ import annotations

from enginekeeper.__version__ import __version__

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "enginekeeper Contributors"
__license__ = "Apache-2.0"
__description__ = "Find the runtime engine versions an npm dependency graph supports."

__all__ = [
    "__version__",
]
