"""
Run enginekeeper with ``python -m enginekeeper``.

Behaves exactly like the ``enginekeeper`` console script. The CLI is
imported lazily so that a broken installation (typically one of the
runtime libraries missing) is reported as a short message on stderr
naming the distribution to install, rather than a traceback.
"""

from __future__ import annotations

import sys
from typing import Dict, Optional

# Top-level import name -> distribution name on the index
_DISTRIBUTIONS: Dict[str, str] = {
    "click": "click",
    "rich": "rich",
    "httpx": "httpx[http2]",
    "h2": "httpx[http2]",
    "semantic_version": "semantic_version",
    "tomli": "tomli",
}


def _missing_distribution(exc: ImportError) -> Optional[str]:
    if not exc.name:
        return None
    return _DISTRIBUTIONS.get(exc.name.partition(".")[0])


def _print_startup_error(exc: ImportError) -> None:
    """Explain on stderr why the CLI could not be imported."""
    write = sys.stderr.write
    write("enginekeeper could not start: a required module is missing.\n")
    write(f"Python version : {sys.version}\n")
    try:
        from enginekeeper.__version__ import __version__
    except ImportError:
        __version__ = "<unknown>"
    write(f"enginekeeper version: {__version__}\n")
    write(f"ImportError: {exc}\n")

    distribution = _missing_distribution(exc)
    if distribution:
        write(f'Install it with: pip install "{distribution}"\n')
    else:
        write("Reinstall with: pip install --force-reinstall enginekeeper\n")


def main() -> int:
    """Entry point for ``python -m enginekeeper``; returns the CLI exit code."""
    try:
        from enginekeeper.cli import main as cli_main
    except ImportError as exc:
        _print_startup_error(exc)
        return 1

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
