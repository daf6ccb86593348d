"""
enginekeeper version information.

Single source of truth for the package version, used by the CLI banner and
the outbound HTTP User-Agent.
"""

from __future__ import annotations

__version__ = "0.2.0"

VERSION_STRING = f"enginekeeper {__version__}"
