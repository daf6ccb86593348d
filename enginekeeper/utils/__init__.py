"""
Utility helpers for enginekeeper.

This package provides reusable utilities used across enginekeeper, including:

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Filesystem safety helpers
- Async HTTP client utilities
- Version and range helpers

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Filesystem utilities
# ---------------------------------------------------------------------------

from enginekeeper.utils.filesystem import (
    create_backup,
    detect_indent,
    read_json_file,
    safe_read_file,
    safe_write_file,
    write_json_file,
)

# ---------------------------------------------------------------------------
# Logging utilities
# ---------------------------------------------------------------------------

from enginekeeper.utils.logger import (
    disable_logging,
    get_logger,
    is_logging_configured,
    setup_logging,
)

# ---------------------------------------------------------------------------
# Console utilities
# ---------------------------------------------------------------------------

from enginekeeper.utils.console import (
    get_console,
    print_engine_table,
    print_error,
    print_success,
    print_warning,
    reconfigure_console,
    status_markup,
)

# ---------------------------------------------------------------------------
# HTTP utilities
# ---------------------------------------------------------------------------

from enginekeeper.utils.http import HTTPClient

# ---------------------------------------------------------------------------
# Version utilities
# ---------------------------------------------------------------------------

from enginekeeper.utils.version_utils import parse_range, satisfies, sort_versions

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    # Console
    "print_error",
    "print_engine_table",
    "print_success",
    "print_warning",
    "get_console",
    "reconfigure_console",
    "status_markup",
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    "is_logging_configured",
    # Filesystem
    "safe_read_file",
    "safe_write_file",
    "read_json_file",
    "write_json_file",
    "detect_indent",
    "create_backup",
    # HTTP
    "HTTPClient",
    # Version utilities
    "parse_range",
    "satisfies",
    "sort_versions",
]
