from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from enginekeeper.config import (
    EngineKeeperConfig,
    discover_config_file,
    load_config,
    _parse_section,
    _pyproject_has_section,
    _read_toml,
)
from enginekeeper.exceptions import ConfigError


@pytest.mark.unit
class TestEngineKeeperConfig:
    """Tests for EngineKeeperConfig dataclass."""

    def test_default_initialization(self) -> None:
        """Test every option starts unset so CLI and defaults can decide."""
        config = EngineKeeperConfig()

        assert config.engines is None
        assert config.mode is None
        assert config.dev is None
        assert config.peer is None
        assert config.save is None
        assert config.current is None
        assert config.source_path is None

    def test_to_log_dict_omits_unset_options(self) -> None:
        """Test to_log_dict returns only configured options, without metadata."""
        config = EngineKeeperConfig(
            engines=["node"],
            save=False,
            source_path=Path("/test/path.toml"),
        )

        result = config.to_log_dict()

        assert result == {"engines": ["node"], "save": False}
        assert "source_path" not in result


@pytest.mark.unit
class TestDiscoverConfigFile:
    """Tests for discover_config_file function."""

    def test_explicit_path_priority(self, tmp_path: Path) -> None:
        """Test explicit path is used when provided and exists."""
        config_file = tmp_path / "custom.toml"
        config_file.write_text("[enginekeeper]\n", encoding="utf-8")
        (tmp_path / "enginekeeper.toml").write_text("[enginekeeper]\n", encoding="utf-8")

        with patch("enginekeeper.config.Path.cwd", return_value=tmp_path):
            result = discover_config_file(config_file)

        assert result == config_file.resolve()

    def test_explicit_path_not_found_raises_error(self, tmp_path: Path) -> None:
        """Test ConfigError raised when explicit path doesn't exist."""
        with pytest.raises(ConfigError) as exc_info:
            discover_config_file(tmp_path / "nonexistent.toml")

        assert "not found" in str(exc_info.value).lower()

    def test_discovers_enginekeeper_toml(self, tmp_path: Path) -> None:
        """Test discovers enginekeeper.toml in current directory."""
        config_file = tmp_path / "enginekeeper.toml"
        config_file.write_text("[enginekeeper]\n", encoding="utf-8")

        with patch("enginekeeper.config.Path.cwd", return_value=tmp_path):
            result = discover_config_file()

        assert result == config_file

    def test_discovers_pyproject_toml_with_section(self, tmp_path: Path) -> None:
        """Test discovers pyproject.toml with [tool.enginekeeper] section."""
        config_file = tmp_path / "pyproject.toml"
        config_file.write_text("[tool.enginekeeper]\nsave = true\n", encoding="utf-8")

        with patch("enginekeeper.config.Path.cwd", return_value=tmp_path):
            result = discover_config_file()

        assert result == config_file

    def test_ignores_pyproject_toml_without_section(self, tmp_path: Path) -> None:
        """Test ignores pyproject.toml without [tool.enginekeeper] section."""
        (tmp_path / "pyproject.toml").write_text("[tool.other]\nkey = 'value'\n", encoding="utf-8")

        with patch("enginekeeper.config.Path.cwd", return_value=tmp_path):
            result = discover_config_file()

        assert result is None

    def test_precedence_order(self, tmp_path: Path) -> None:
        """Test discovery precedence: enginekeeper.toml before pyproject.toml."""
        enginekeeper_toml = tmp_path / "enginekeeper.toml"
        enginekeeper_toml.write_text("[enginekeeper]\n", encoding="utf-8")
        (tmp_path / "pyproject.toml").write_text("[tool.enginekeeper]\n", encoding="utf-8")

        with patch("enginekeeper.config.Path.cwd", return_value=tmp_path):
            result = discover_config_file()

        assert result == enginekeeper_toml


@pytest.mark.unit
class TestPyprojectHasSection:
    """Tests for _pyproject_has_section helper."""

    def test_returns_true_when_section_exists(self, tmp_path: Path) -> None:
        """Test returns True when [tool.enginekeeper] section exists."""
        config_file = tmp_path / "pyproject.toml"
        config_file.write_text("[tool.enginekeeper]\ndev = true\n", encoding="utf-8")

        assert _pyproject_has_section(config_file) is True

    def test_returns_false_on_errors(self, tmp_path: Path) -> None:
        """Test returns False on parse errors or missing files."""
        config_file = tmp_path / "pyproject.toml"
        config_file.write_text("invalid ][[", encoding="utf-8")

        assert _pyproject_has_section(config_file) is False
        assert _pyproject_has_section(tmp_path / "nonexistent.toml") is False


@pytest.mark.unit
class TestReadToml:
    """Tests for _read_toml helper."""

    def test_reads_valid_toml(self, tmp_path: Path) -> None:
        """Test successfully reads and parses valid TOML file."""
        toml_file = tmp_path / "test.toml"
        toml_file.write_text('[enginekeeper]\nengines = ["node"]\n', encoding="utf-8")

        result = _read_toml(toml_file)

        assert result["enginekeeper"]["engines"] == ["node"]

    def test_raises_error_on_invalid_toml(self, tmp_path: Path) -> None:
        """Test raises ConfigError when TOML is invalid."""
        toml_file = tmp_path / "invalid.toml"
        toml_file.write_text("invalid ][[ toml", encoding="utf-8")

        with pytest.raises(ConfigError) as exc_info:
            _read_toml(toml_file)

        assert "Invalid TOML" in str(exc_info.value)

    def test_raises_error_when_file_not_found(self, tmp_path: Path) -> None:
        """Test raises ConfigError when file doesn't exist."""
        with pytest.raises(ConfigError) as exc_info:
            _read_toml(tmp_path / "nonexistent.toml")

        assert "Cannot read" in str(exc_info.value)


@pytest.mark.unit
class TestParseSection:
    """Tests for _parse_section configuration validator."""

    def test_parses_empty_section(self) -> None:
        """Test parsing empty section leaves every option unset."""
        result = _parse_section({}, config_path="test.toml")

        assert result.to_log_dict() == {}

    def test_parses_all_options(self) -> None:
        """Test parsing all configuration options."""
        section = {
            "engines": ["node", "node", "npm"],
            "mode": "virtual",
            "dev": True,
            "peer": False,
            "save": True,
            "current": False,
        }

        result = _parse_section(section, config_path="test.toml")

        assert result.engines == ["node", "npm"]
        assert result.mode == "virtual"
        assert result.dev is True
        assert result.peer is False
        assert result.save is True
        assert result.current is False

    def test_raises_error_on_unknown_keys(self) -> None:
        """Test raises ConfigError when unknown keys are present."""
        with pytest.raises(ConfigError) as exc_info:
            _parse_section({"unknown_key": "value"}, config_path="test.toml")

        assert "Unknown configuration keys" in str(exc_info.value)
        assert "unknown_key" in str(exc_info.value)

    @pytest.mark.parametrize("option", ["dev", "peer", "save", "current"])
    def test_raises_error_on_non_boolean(self, option: str) -> None:
        """Test boolean options reject strings."""
        with pytest.raises(ConfigError) as exc_info:
            _parse_section({option: "true"}, config_path="test.toml")

        assert f"{option} must be a boolean" in str(exc_info.value)
        assert exc_info.value.option == option

    @pytest.mark.parametrize("value", ["node", [], [1], [""]])
    def test_raises_error_on_invalid_engines(self, value: object) -> None:
        """Test engines must be a non-empty list of names."""
        with pytest.raises(ConfigError) as exc_info:
            _parse_section({"engines": value}, config_path="test.toml")

        assert exc_info.value.option == "engines"

    def test_raises_error_on_unknown_mode(self) -> None:
        """Test mode must be one of the known tree modes."""
        with pytest.raises(ConfigError) as exc_info:
            _parse_section({"mode": "lazy"}, config_path="test.toml")

        assert "mode must be one of" in str(exc_info.value)


@pytest.mark.unit
class TestLoadConfig:
    """Tests for load_config main function."""

    def test_returns_defaults_when_no_config_found(self, tmp_path: Path) -> None:
        """Test returns an unset config when no configuration file exists."""
        with patch("enginekeeper.config.Path.cwd", return_value=tmp_path):
            result = load_config()

        assert result == EngineKeeperConfig()

    def test_loads_enginekeeper_toml(self, tmp_path: Path) -> None:
        """Test loads configuration from enginekeeper.toml."""
        config_file = tmp_path / "enginekeeper.toml"
        config_file.write_text("[enginekeeper]\ndev = true\n", encoding="utf-8")

        with patch("enginekeeper.config.Path.cwd", return_value=tmp_path):
            result = load_config()

        assert result.dev is True
        assert result.source_path == config_file

    def test_loads_pyproject_toml(self, tmp_path: Path) -> None:
        """Test loads configuration from pyproject.toml."""
        config_file = tmp_path / "pyproject.toml"
        config_file.write_text('[tool.enginekeeper]\nmode = "actual"\n', encoding="utf-8")

        with patch("enginekeeper.config.Path.cwd", return_value=tmp_path):
            result = load_config()

        assert result.mode == "actual"
        assert result.source_path == config_file

    def test_loads_explicit_config_path(self, tmp_path: Path) -> None:
        """Test loads configuration from explicitly specified path."""
        config_file = tmp_path / "custom.toml"
        config_file.write_text("[enginekeeper]\nsave = true\n", encoding="utf-8")

        result = load_config(config_file)

        assert result.save is True
        assert result.source_path == config_file.resolve()

    def test_raises_error_on_unknown_keys(self, tmp_path: Path) -> None:
        """Test raises ConfigError when config contains unknown keys."""
        config_file = tmp_path / "enginekeeper.toml"
        config_file.write_text("[enginekeeper]\nunknown_option = true\n", encoding="utf-8")

        with patch("enginekeeper.config.Path.cwd", return_value=tmp_path):
            with pytest.raises(ConfigError) as exc_info:
                load_config()

        assert "Unknown configuration keys" in str(exc_info.value)

    def test_handles_empty_section(self, tmp_path: Path) -> None:
        """Test an empty [enginekeeper] section yields an unset config."""
        config_file = tmp_path / "enginekeeper.toml"
        config_file.write_text("[enginekeeper]\n", encoding="utf-8")

        with patch("enginekeeper.config.Path.cwd", return_value=tmp_path):
            result = load_config()

        assert result.to_log_dict() == {}
        assert result.source_path == config_file
