"""
Per-invocation state shared by enginekeeper's CLI commands.

The ``cli`` group builds one :class:`EngineKeeperContext` from the global
options and the loaded configuration file. Subcommands receive it through
:data:`pass_context` and ask it to settle their options: a flag given on
the command line wins, then the configuration file, then the built-in
default from :mod:`enginekeeper.constants`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Sequence

import click

from enginekeeper.models import TriState
from enginekeeper.config import EngineKeeperConfig
from enginekeeper.core.analyzer import AnalysisOptions
from enginekeeper.constants import (
    DEFAULT_CHECK_CURRENT,
    DEFAULT_ENGINES,
    DEFAULT_INCLUDE_DEV,
    DEFAULT_INCLUDE_PEER,
    DEFAULT_MODE,
    DEFAULT_SAVE,
)

# Boolean config option -> built-in default
_SWITCH_DEFAULTS: Dict[str, bool] = {
    "dev": DEFAULT_INCLUDE_DEV,
    "peer": DEFAULT_INCLUDE_PEER,
    "save": DEFAULT_SAVE,
    "current": DEFAULT_CHECK_CURRENT,
}


class EngineKeeperContext:
    """Options and configuration for one enginekeeper invocation.

    Attributes:
        config: Loaded configuration (all unset when no file was found).
        config_path: File the configuration came from, if any.
        verbose: Number of ``-v`` flags.
        color: Whether colored terminal output is enabled.
    """

    __slots__ = ("config", "config_path", "verbose", "color")

    def __init__(
        self,
        config: Optional[EngineKeeperConfig] = None,
        *,
        verbose: int = 0,
        color: bool = True,
    ) -> None:
        self.config: EngineKeeperConfig = config or EngineKeeperConfig()
        self.config_path: Optional[Path] = self.config.source_path
        self.verbose = verbose
        self.color = color

    def switch(self, name: str, flag: TriState) -> bool:
        """Settle the boolean option ``name`` (``dev``, ``peer``, ``save`` or ``current``)."""
        configured: Optional[bool] = getattr(self.config, name)
        return flag.resolve(_SWITCH_DEFAULTS[name] if configured is None else configured)

    def analysis_options(
        self,
        *,
        engines: Sequence[str] = (),
        mode: Optional[str] = None,
        dev: TriState = TriState.UNSET,
        peer: TriState = TriState.UNSET,
        current: TriState = TriState.UNSET,
    ) -> AnalysisOptions:
        """Merge command-line values over the configuration and defaults.

        Repeated ``--engine`` values collapse, keeping their first position.
        """
        selected = list(dict.fromkeys(engines)) or self.config.engines or list(DEFAULT_ENGINES)
        return AnalysisOptions(
            engines=selected,
            mode=(mode or self.config.mode or DEFAULT_MODE).lower(),
            include_dev=self.switch("dev", dev),
            include_peer=self.switch("peer", peer),
            check_current=self.switch("current", current),
        )


#: Click decorator injecting the :class:`EngineKeeperContext` into commands.
pass_context = click.make_pass_decorator(EngineKeeperContext, ensure=True)
