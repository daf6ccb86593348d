"""
Command-line interface for enginekeeper.

This module provides the main CLI entry point and handles global options,
configuration loading, and command registration.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from enginekeeper.config import load_config
from enginekeeper.__version__ import __version__
from enginekeeper.context import EngineKeeperContext
from enginekeeper.exceptions import ConfigError, EngineKeeperError, RangeConsistencyError
from enginekeeper.utils.console import print_error, print_warning, reconfigure_console
from enginekeeper.utils.logger import get_logger, level_for_verbosity, setup_logging

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar="ENGINEKEEPER_CONFIG",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="ENGINEKEEPER_COLOR",
)
@click.version_option(
    version=__version__,
    prog_name="enginekeeper",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """enginekeeper: find the runtime engine versions your dependency graph supports.

    \b
    Available commands:
      enginekeeper check           Compare engines with the dependency graph

    \b
    Examples:
      enginekeeper check
      enginekeeper check --save
      enginekeeper -v check path/to/project

    Use ``enginekeeper COMMAND --help`` for command-specific options.
    """
    # Respect NO_COLOR for downstream libraries
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()

    _configure_logging(verbose)

    try:
        loaded_config = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    enginekeeper_ctx = EngineKeeperContext(loaded_config, verbose=verbose, color=color)
    ctx.obj = enginekeeper_ctx

    logger.debug("enginekeeper v%s", __version__)
    logger.debug("Config path: %s", enginekeeper_ctx.config_path)
    if loaded_config.source_path:
        logger.debug("Loaded configuration: %s", loaded_config.to_log_dict())
    logger.debug("Verbosity: %s | Color: %s", verbose, color)


def _configure_logging(verbose: int) -> None:
    """Configure logging level based on verbosity flags."""
    level = level_for_verbosity(verbose)
    setup_logging(level=level, verbose=verbose > 1)
    logger.debug("Logging initialized at %s level", logging.getLevelName(level))


# Register CLI subcommands
from enginekeeper.commands.check import check  # noqa: E402

cli.add_command(check)


def main() -> int:
    """Main entry point for the enginekeeper CLI.

    Returns:
        Exit code:
            0   Success
            1   Unhandled or application error, or problems found
            2   Usage error (Click)
            130 Interrupted by user (Ctrl+C)
    """
    try:
        cli(standalone_mode=False)
        return 0

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except click.Abort:
        print_warning("\nOperation cancelled by user")
        return 130

    except RangeConsistencyError as exc:
        print_error(f"Internal error: {exc.message}")
        print_error(f"  engine:     {exc.engine}")
        print_error(f"  versions:   {', '.join(exc.versions) or '<none>'}")
        print_error(f"  expression: {exc.expression}")
        logger.debug("Range consistency failure", exc_info=True)
        return 1

    except EngineKeeperError as exc:
        print_error(str(exc))
        logger.debug(
            "EngineKeeperError details: %s",
            exc.details or "<none>",
            exc_info=True,
        )
        return 1

    except KeyboardInterrupt:
        print_warning("\nOperation cancelled by user")
        return 130

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1


if __name__ == "__main__":
    sys.exit(main())
