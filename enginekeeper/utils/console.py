"""
Terminal output for enginekeeper, rendered with Rich.

Everything the ``check`` command shows a person goes through here: the
engine compatibility table, markup for reconciliation statuses and the
``[OK]`` / ``[WARNING]`` / ``[ERROR]`` message lines. Diagnostics go through
:mod:`enginekeeper.utils.logger` instead, and ``--format json`` bypasses
Rich entirely.

Colors follow the ``NO_COLOR`` convention and are also off on CI and when
stdout is not a terminal.
"""

from __future__ import annotations

import os
import sys
import threading
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from rich.table import Table
from rich.theme import Theme
from rich.console import Console

ENGINEKEEPER_THEME = Theme(
    {
        "success": "bold green",
        "error": "bold red",
        "warning": "bold yellow",
        "engine": "bold cyan",
        "range": "bold green",
        "muted": "dim",
        "status.ok": "green",
        "status.broad": "yellow",
        "status.conflict": "red",
    }
)

# Reconciliation status value -> theme style
_STATUS_STYLES: Dict[str, str] = {
    "match": "status.ok",
    "root_narrower": "status.ok",
    "root_broader": "status.broad",
    "disjoint": "status.conflict",
    "unsatisfiable": "status.conflict",
}

#: Compatibility table columns, in order, with their Rich column options.
ENGINE_TABLE_COLUMNS: Tuple[Tuple[str, Dict[str, Any]], ...] = (
    ("Engine", {"style": "engine", "no_wrap": True}),
    ("Declared", {"justify": "center", "style": "muted"}),
    ("Root Range", {"justify": "center"}),
    ("Graph Range", {"justify": "center", "style": "range"}),
    ("Status", {"justify": "center", "no_wrap": True}),
    ("Current", {"justify": "center"}),
)

# Upper case so Rich does not read them as markup tags
_PREFIXES: Dict[str, str] = {
    "success": "[OK]",
    "warning": "[WARNING]",
    "error": "[ERROR]",
}

_console: Optional[Console] = None
_console_lock = threading.Lock()


def _should_use_color() -> bool:
    if os.environ.get("NO_COLOR") or os.environ.get("CI"):
        return False
    try:
        return sys.stdout.isatty()
    except (AttributeError, OSError):
        return False


def get_console() -> Console:
    """Return the process-wide Rich console, creating it on first use."""
    global _console

    if _console is None:
        with _console_lock:
            if _console is None:
                use_color = _should_use_color()
                _console = Console(
                    theme=ENGINEKEEPER_THEME,
                    no_color=not use_color,
                    highlight=use_color,
                )
    return _console


def reconfigure_console() -> None:
    """Forget the cached console so the next one sees a changed ``NO_COLOR``."""
    global _console
    with _console_lock:
        _console = None


def _announce(kind: str, message: str) -> None:
    get_console().print(f"{_PREFIXES[kind]} {message}", style=kind)


def print_success(message: str) -> None:
    _announce("success", message)


def print_warning(message: str) -> None:
    _announce("warning", message)


def print_error(message: str) -> None:
    _announce("error", message)


def status_markup(status: str) -> str:
    """Return Rich markup for a reconciliation status value.

    Underscores read as spaces; unknown values (``"-"``) are left plain.

    Example::

        >>> status_markup("root_broader")
        '[status.broad]root broader[/]'
    """
    label = status.replace("_", " ")
    style = _STATUS_STYLES.get(status.lower())
    return f"[{style}]{label}[/]" if style else label


def print_engine_table(
    rows: Sequence[Mapping[str, str]],
    *,
    caption: Optional[str] = None,
    title: str = "Engine Compatibility",
) -> None:
    """Print one table row per engine.

    Each row maps the names in :data:`ENGINE_TABLE_COLUMNS` to cell markup;
    missing cells are blank. Nothing is printed for an empty row list.
    """
    if not rows:
        return

    table = Table(title=title, caption=caption, header_style="bold", show_lines=True)
    for name, options in ENGINE_TABLE_COLUMNS:
        table.add_column(name, overflow="fold", **options)

    for row in rows:
        table.add_row(*(row.get(name, "") for name, _ in ENGINE_TABLE_COLUMNS))

    get_console().print(table)
