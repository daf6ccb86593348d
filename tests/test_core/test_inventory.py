"""Unit tests for enginekeeper.core.inventory.

Test Coverage:
- Project inspection and tree mode selection
- Lockfile v2/v3 ``packages`` parsing (bundled, dev, peer, optional, links)
- Installed tree loading (hidden lockfile and manifest walk)
- Dependency type flags derived from installed dependency edges
- v1 lockfiles with registry manifest lookups
- Root manifest reading
"""

from __future__ import annotations

import json
import pytest
from pathlib import Path
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock, patch

from enginekeeper.exceptions import InventoryError, ParseError
from enginekeeper.models.engine import PackageRecord
from enginekeeper.utils.http import HTTPClient
from enginekeeper.core.inventory import (
    ProjectInfo,
    inspect_project,
    load_inventory,
    mark_dependency_types,
    parse_lockfile_packages,
    read_root_manifest,
    select_mode,
)


def _write_json(path: Path, data: Any, indent: Any = 2) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=indent) + "\n", encoding="utf-8")


@pytest.fixture
def lockfile_v3() -> Dict[str, Any]:
    return {
        "name": "app",
        "lockfileVersion": 3,
        "packages": {
            "": {"name": "app", "engines": {"node": ">= 14"}},
            "node_modules/a": {"version": "1.0.0", "engines": {"node": ">= 16"}},
            "node_modules/@scope/b": {
                "version": "2.0.0",
                "engines": {"node": "^18"},
                "dev": True,
            },
            "node_modules/a/node_modules/c": {
                "version": "3.0.0",
                "engines": {"node": ">= 20"},
                "inBundle": True,
            },
            "node_modules/d": {"version": "1.0.0", "peer": True, "engines": ["node"]},
            "node_modules/e": {"version": "1.0.0", "devOptional": True},
            "node_modules/linked": {"resolved": "packages/linked", "link": True},
        },
    }


@pytest.mark.unit
class TestModeSelection:
    """Tests for inspect_project and select_mode."""

    def test_inspect_project(self, tmp_path: Path) -> None:
        """Test inspection finds the manifest, node_modules and lockfile."""
        _write_json(tmp_path / "package.json", {"name": "app"})
        _write_json(tmp_path / "package-lock.json", {"lockfileVersion": 2, "packages": {}})
        (tmp_path / "node_modules").mkdir()

        info = inspect_project(tmp_path)

        assert info.has_package is True
        assert info.has_node_modules is True
        assert info.lockfile == tmp_path / "package-lock.json"
        assert info.lockfile_version == 2

    def test_shrinkwrap_preferred(self, tmp_path: Path) -> None:
        """Test npm-shrinkwrap.json wins over package-lock.json."""
        _write_json(tmp_path / "package-lock.json", {"lockfileVersion": 2})
        _write_json(tmp_path / "npm-shrinkwrap.json", {"lockfileVersion": 1})

        info = inspect_project(tmp_path)

        assert info.lockfile == tmp_path / "npm-shrinkwrap.json"
        assert info.lockfile_version == 1

    @pytest.mark.parametrize(
        "has_node_modules, lockfile, mode, expected",
        [
            (True, None, "auto", "actual"),
            (True, Path("package-lock.json"), "auto", "actual"),
            (False, Path("package-lock.json"), "auto", "virtual"),
            (False, None, "auto", "ideal"),
            (True, Path("package-lock.json"), "virtual", "virtual"),
            (False, None, "actual", "actual"),
            (True, None, "ideal", "ideal"),
        ],
    )
    def test_select_mode(
        self,
        has_node_modules: bool,
        lockfile: Any,
        mode: str,
        expected: str,
    ) -> None:
        """Test auto prefers node_modules, then a lockfile, then the manifest."""
        info = ProjectInfo(path=Path("."), has_node_modules=has_node_modules, lockfile=lockfile)

        assert select_mode(info, mode) == expected


@pytest.mark.unit
class TestParseLockfilePackages:
    """Tests for parse_lockfile_packages."""

    def test_records(self, lockfile_v3: Dict[str, Any]) -> None:
        """Test each package entry becomes a record with its flags."""
        records = {r.location: r for r in parse_lockfile_packages(lockfile_v3, "lock")}

        assert "" not in records
        assert "node_modules/linked" not in records

        assert records["node_modules/a"].name == "a"
        assert dict(records["node_modules/a"].engines) == {"node": ">= 16"}

        scoped = records["node_modules/@scope/b"]
        assert scoped.name == "@scope/b"
        assert scoped.dev is True

        nested = records["node_modules/a/node_modules/c"]
        assert nested.name == "c"
        assert nested.bundled is True

    def test_legacy_array_engines_are_empty(self, lockfile_v3: Dict[str, Any]) -> None:
        """Test the array form of engines carries no ranges."""
        records = {r.name: r for r in parse_lockfile_packages(lockfile_v3, "lock")}

        assert dict(records["d"].engines) == {}
        assert records["d"].peer is True

    def test_dev_optional(self, lockfile_v3: Dict[str, Any]) -> None:
        """Test devOptional marks a package as both dev and optional."""
        records = {r.name: r for r in parse_lockfile_packages(lockfile_v3, "lock")}

        assert records["e"].dev is True
        assert records["e"].optional is True

    def test_missing_packages_map_raises(self) -> None:
        """Test a lockfile without a packages map raises ParseError."""
        with pytest.raises(ParseError) as exc_info:
            parse_lockfile_packages({"lockfileVersion": 1}, "package-lock.json")

        assert exc_info.value.key == "packages"


@pytest.mark.unit
class TestLoadInventory:
    """Tests for load_inventory."""

    @pytest.mark.asyncio
    async def test_virtual_tree_from_lockfile(
        self, tmp_path: Path, lockfile_v3: Dict[str, Any]
    ) -> None:
        """Test a v3 lockfile is read without network access."""
        _write_json(tmp_path / "package.json", {"name": "app"})
        _write_json(tmp_path / "package-lock.json", lockfile_v3)

        inventory = await load_inventory(tmp_path)

        assert inventory.mode == "virtual"
        assert inventory.source.endswith("package-lock.json")
        assert {r.name for r in inventory.records} == {"a", "@scope/b", "c", "d", "e"}

    @pytest.mark.asyncio
    async def test_actual_tree_from_hidden_lockfile(
        self, tmp_path: Path, lockfile_v3: Dict[str, Any]
    ) -> None:
        """Test node_modules/.package-lock.json is preferred when installed."""
        _write_json(tmp_path / "node_modules" / ".package-lock.json", lockfile_v3)

        inventory = await load_inventory(tmp_path)

        assert inventory.mode == "actual"
        assert inventory.source.endswith(".package-lock.json")
        assert len(inventory.records) == 5

    @pytest.mark.asyncio
    async def test_actual_tree_from_installed_manifests(self, tmp_path: Path) -> None:
        """Test installed package.json files are walked without a hidden lockfile."""
        modules = tmp_path / "node_modules"
        _write_json(modules / "a" / "package.json", {"name": "a", "engines": {"node": ">=14"}})
        _write_json(
            modules / "@scope" / "b" / "package.json",
            {"name": "@scope/b", "version": "1.0.0"},
        )
        _write_json(
            modules / "a" / "node_modules" / "c" / "package.json",
            {"name": "c", "engines": {"node": "^16"}, "_inBundle": True},
        )
        (modules / ".bin").mkdir()

        inventory = await load_inventory(tmp_path, mode="actual")

        records = {r.location: r for r in inventory.records}
        assert set(records) == {
            "node_modules/a",
            "node_modules/@scope/b",
            "node_modules/a/node_modules/c",
        }
        assert records["node_modules/a/node_modules/c"].bundled is True
        assert records["node_modules/@scope/b"].version == "1.0.0"

    @pytest.mark.asyncio
    async def test_installed_manifests_get_dependency_types(self, tmp_path: Path) -> None:
        """Test the walk flags dev and peer packages from the manifests' edges."""
        _write_json(
            tmp_path / "package.json",
            {
                "name": "app",
                "dependencies": {"a": "^1"},
                "devDependencies": {"jest": "^29"},
            },
        )
        modules = tmp_path / "node_modules"
        _write_json(
            modules / "a" / "package.json",
            {"name": "a", "dependencies": {"c": "^1"}, "peerDependencies": {"react": "^18"}},
        )
        _write_json(modules / "c" / "package.json", {"name": "c"})
        _write_json(modules / "react" / "package.json", {"name": "react"})
        _write_json(
            modules / "jest" / "package.json",
            {"name": "jest", "dependencies": {"c": "^2"}},
        )
        _write_json(modules / "jest" / "node_modules" / "c" / "package.json", {"name": "c"})

        inventory = await load_inventory(tmp_path, mode="actual")

        records = {r.location: r for r in inventory.records}
        assert records["node_modules/a"].dev is False
        assert records["node_modules/c"].dev is False
        assert records["node_modules/react"].peer is True
        assert records["node_modules/react"].dev is False
        assert records["node_modules/jest"].dev is True
        assert records["node_modules/jest/node_modules/c"].dev is True
        assert records["node_modules/a"].peer is False

    @pytest.mark.asyncio
    async def test_installed_manifests_without_root_manifest(self, tmp_path: Path) -> None:
        """Test a missing root package.json leaves the flags unset and warns."""
        _write_json(tmp_path / "node_modules" / "a" / "package.json", {"name": "a"})

        with patch("enginekeeper.core.inventory.logger") as mock_logger:
            inventory = await load_inventory(tmp_path, mode="actual")

        (record,) = inventory.records
        assert record.dev is False
        assert record.peer is False
        mock_logger.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_v1_lockfile_fetches_manifests(self, tmp_path: Path) -> None:
        """Test v1 lockfile entries get their engines from the registry."""
        _write_json(
            tmp_path / "package-lock.json",
            {
                "lockfileVersion": 1,
                "dependencies": {
                    "a": {
                        "version": "1.0.0",
                        "dependencies": {"@scope/b": {"version": "2.0.0", "dev": True}},
                    },
                    "git-dep": {"version": "github:user/repo#abc123", "peer": True},
                },
            },
        )

        manifests = {
            "https://registry.npmjs.org/a/1.0.0": {"engines": {"node": ">= 14"}},
            "https://registry.npmjs.org/@scope%2fb/2.0.0": {"engines": {"node": "^18"}},
        }
        http = MagicMock(spec=HTTPClient)
        http.get_manifest = AsyncMock(side_effect=lambda url: manifests[url])

        inventory = await load_inventory(tmp_path, http_client=http)

        records = {r.name: r for r in inventory.records}
        assert inventory.mode == "virtual"
        assert dict(records["a"].engines) == {"node": ">= 14"}
        assert dict(records["@scope/b"].engines) == {"node": "^18"}
        assert records["@scope/b"].dev is True
        assert dict(records["git-dep"].engines) == {}
        assert records["git-dep"].peer is True
        assert records["a"].peer is False
        assert http.get_manifest.await_count == 2

    @pytest.mark.asyncio
    async def test_v1_lockfile_without_client_raises(self, tmp_path: Path) -> None:
        """Test a v1 lockfile needs registry access."""
        _write_json(tmp_path / "package-lock.json", {"lockfileVersion": 1, "dependencies": {}})

        with pytest.raises(InventoryError):
            await load_inventory(tmp_path)

    @pytest.mark.asyncio
    async def test_ideal_tree_unsupported(self, tmp_path: Path) -> None:
        """Test a project with only package.json raises InventoryError."""
        _write_json(tmp_path / "package.json", {"name": "app"})

        with pytest.raises(InventoryError) as exc_info:
            await load_inventory(tmp_path)

        assert exc_info.value.mode == "auto"

    @pytest.mark.asyncio
    async def test_actual_mode_without_node_modules_raises(self, tmp_path: Path) -> None:
        """Test forcing the actual tree fails when nothing is installed."""
        with pytest.raises(InventoryError):
            await load_inventory(tmp_path, mode="actual")


@pytest.mark.unit
class TestMarkDependencyTypes:
    """Tests for mark_dependency_types."""

    def test_optional_and_extraneous(self) -> None:
        """Test optional-only packages and unreachable packages are flagged."""
        records = [
            PackageRecord("fsevents", location="node_modules/fsevents"),
            PackageRecord("b", location="node_modules/b"),
            PackageRecord("stale", location="node_modules/stale"),
        ]
        edges = {
            "": {"optionalDependencies": ["fsevents"], "dependencies": ["b"]},
            "node_modules/fsevents": {},
            "node_modules/b": {},
        }

        marked = {r.name: r for r in mark_dependency_types(records, edges)}

        assert marked["fsevents"].optional is True
        assert marked["fsevents"].dev is False
        assert marked["b"].optional is False
        assert marked["stale"].dev is True
        assert marked["stale"].optional is True
        assert marked["stale"].peer is True

    def test_nearest_install_wins(self) -> None:
        """Test a nested copy shadows the hoisted one for its parent only."""
        records = [
            PackageRecord("a", location="node_modules/a"),
            PackageRecord("c", location="node_modules/c"),
            PackageRecord("c", location="node_modules/a/node_modules/c"),
        ]
        edges = {
            "": {"dependencies": ["a"], "devDependencies": ["c"]},
            "node_modules/a": {"dependencies": ["c"]},
        }

        marked = {r.location: r for r in mark_dependency_types(records, edges)}

        assert marked["node_modules/a/node_modules/c"].dev is False
        assert marked["node_modules/c"].dev is True


@pytest.mark.unit
class TestReadRootManifest:
    """Tests for read_root_manifest."""

    def test_reads_engines_and_indent(self, tmp_path: Path) -> None:
        """Test engines and indentation are captured."""
        _write_json(
            tmp_path / "package.json",
            {"name": "app", "engines": {"node": ">= 14", "npm": 7}},
            indent=4,
        )

        manifest = read_root_manifest(tmp_path)

        assert manifest is not None
        assert manifest.name == "app"
        assert manifest.engines == {"node": ">= 14"}
        assert manifest.indent == 4

    def test_tab_indent(self, tmp_path: Path) -> None:
        """Test tab-indented manifests are detected."""
        _write_json(tmp_path / "package.json", {"name": "app"}, indent="\t")

        manifest = read_root_manifest(tmp_path)

        assert manifest is not None
        assert manifest.indent == "\t"

    def test_missing_manifest(self, tmp_path: Path) -> None:
        """Test a directory without package.json yields None."""
        assert read_root_manifest(tmp_path) is None

    def test_non_object_manifest_raises(self, tmp_path: Path) -> None:
        """Test a package.json that is not an object raises ParseError."""
        (tmp_path / "package.json").write_text("[]", encoding="utf-8")

        with pytest.raises(ParseError):
            read_root_manifest(tmp_path)
