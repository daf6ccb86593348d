"""Configuration file loader for enginekeeper.

Handles discovery, loading, parsing, and validation of configuration files.
Supports two formats:

- ``enginekeeper.toml``: settings under ``[enginekeeper]`` table
- ``pyproject.toml``: settings under ``[tool.enginekeeper]`` table

Discovery order:

1. Explicit path from ``--config`` or ``ENGINEKEEPER_CONFIG``
2. ``enginekeeper.toml`` in current directory
3. ``pyproject.toml`` with ``[tool.enginekeeper]`` section

Configuration precedence: defaults < config file < CLI args. Boolean
options left unset in the file stay ``None`` so the caller can tell
"not configured" apart from an explicit ``false``.

Example (``enginekeeper.toml``)::

    [enginekeeper]
    engines = ["node"]
    mode = "virtual"
    dev = true
    save = false
"""

from __future__ import annotations

import tomli as tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from enginekeeper.exceptions import ConfigError
from enginekeeper.utils.logger import get_logger
from enginekeeper.constants import TREE_MODES

logger = get_logger("config")

_BOOLEAN_OPTIONS = ("dev", "peer", "save", "current")


@dataclass
class EngineKeeperConfig:
    """Parsed and validated enginekeeper configuration.

    All fields default to "not configured", so empty config files are valid.

    Attributes:
        engines: Engines to check, or ``None`` for the built-in default.
        mode: Tree loading mode, or ``None`` for the built-in default.
        dev: Include devDependencies.
        peer: Include peerDependencies.
        save: Rewrite the root ``engines`` field when it is too broad.
        current: Check the locally running engine version.
        source_path: Path to loaded config file, or ``None`` if using defaults.
    """

    engines: Optional[List[str]] = None
    mode: Optional[str] = None
    dev: Optional[bool] = None
    peer: Optional[bool] = None
    save: Optional[bool] = None
    current: Optional[bool] = None

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False)

    def to_log_dict(self) -> Dict[str, Any]:
        """Return configured options (those not ``None``) for debug logging."""
        values = {
            "engines": self.engines,
            "mode": self.mode,
            "dev": self.dev,
            "peer": self.peer,
            "save": self.save,
            "current": self.current,
        }
        return {key: value for key, value in values.items() if value is not None}


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file to load.

    Args:
        explicit_path: Explicit config path. If provided, must exist.

    Returns:
        Resolved path to config file, or ``None`` if not found.

    Raises:
        ConfigError: Explicit path provided but does not exist.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    cwd = Path.cwd()

    enginekeeper_toml = cwd / "enginekeeper.toml"
    if enginekeeper_toml.is_file():
        logger.debug("Found enginekeeper.toml: %s", enginekeeper_toml)
        return enginekeeper_toml

    pyproject_toml = cwd / "pyproject.toml"
    if pyproject_toml.is_file() and _pyproject_has_section(pyproject_toml):
        logger.debug("Found [tool.enginekeeper] in pyproject.toml: %s", pyproject_toml)
        return pyproject_toml

    logger.debug("No configuration file found")
    return None


def _pyproject_has_section(path: Path) -> bool:
    """Check if pyproject.toml contains a ``[tool.enginekeeper]`` section.

    An unreadable or invalid pyproject.toml is not ours to report; it is
    simply not used for configuration.
    """
    try:
        raw = _read_toml(path)
    except ConfigError as exc:
        logger.debug("Ignoring %s: %s", path, exc)
        return False
    tool = raw.get("tool", {})
    return isinstance(tool, dict) and "enginekeeper" in tool


def load_config(config_path: Optional[Path] = None) -> EngineKeeperConfig:
    """Load and validate enginekeeper configuration.

    Args:
        config_path: Explicit path to config file. If ``None``, uses
            auto-discovery (see :func:`discover_config_file`).

    Returns:
        Validated :class:`EngineKeeperConfig` with values from file or defaults.

    Raises:
        ConfigError: File cannot be parsed, has unknown keys, or invalid values.
    """
    resolved = discover_config_file(config_path)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        return EngineKeeperConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)

    if resolved.name == "pyproject.toml":
        section = raw.get("tool", {}).get("enginekeeper", {})
    else:
        section = raw.get("enginekeeper", {})

    if not section:
        logger.debug("Config file found but no enginekeeper section, using defaults")
        return EngineKeeperConfig(source_path=resolved)

    if not isinstance(section, dict):
        raise ConfigError(
            "The enginekeeper section must be a table",
            config_path=str(resolved),
        )

    config = _parse_section(section, config_path=str(resolved))
    config.source_path = resolved

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: File cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


def _parse_section(
    section: Dict[str, Any],
    *,
    config_path: str,
) -> EngineKeeperConfig:
    """Parse and validate the ``[enginekeeper]`` or ``[tool.enginekeeper]`` table.

    Raises:
        ConfigError: Unknown keys or incorrect types (e.g., string for boolean).
    """
    config = EngineKeeperConfig()

    known_top = {"engines", "mode", *_BOOLEAN_OPTIONS}
    unknown_top = set(section.keys()) - known_top
    if unknown_top:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown_top))}",
            config_path=config_path,
        )

    if "engines" in section:
        val = section["engines"]
        if (
            not isinstance(val, list)
            or not val
            or not all(isinstance(item, str) and item for item in val)
        ):
            raise ConfigError(
                "engines must be a non-empty list of engine names",
                config_path=config_path,
                option="engines",
            )
        # Preserve order, drop duplicates
        config.engines = list(dict.fromkeys(val))

    if "mode" in section:
        val = section["mode"]
        if val not in TREE_MODES:
            raise ConfigError(
                f"mode must be one of {', '.join(TREE_MODES)}, got {val!r}",
                config_path=config_path,
                option="mode",
            )
        config.mode = val

    for option in _BOOLEAN_OPTIONS:
        if option not in section:
            continue
        val = section[option]
        if not isinstance(val, bool):
            raise ConfigError(
                f"{option} must be a boolean, got {type(val).__name__}",
                config_path=config_path,
                option=option,
            )
        setattr(config, option, val)

    return config
