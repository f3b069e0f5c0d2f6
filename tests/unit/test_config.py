"""Unit tests for config (defaults, merging, project root discovery)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from asmgraph import config as config_mod
from asmgraph.config import (
    ASMGRAPH_DIR,
    default_config,
    find_project_root,
    get_project_root,
    load_config,
    project_config_path,
    resolve_path,
    save_config,
)


@pytest.fixture
def global_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Redirect ~/.asmgraph to a temp directory."""
    d = tmp_path / "home" / ".asmgraph"
    monkeypatch.setattr(config_mod, "_global_config_dir", lambda: d)
    return d


def test_default_config() -> None:
    cfg = default_config()
    assert cfg["excluded_namespaces"] == ["System", "Microsoft", "Mono"]
    assert cfg["root_types"] == ["System.Object"]
    assert cfg["workers"] == 4
    assert cfg["assembly_extensions"] == [".dll", ".exe"]
    assert cfg["logging"]["level"] == "INFO"
    assert any(".asmgraph" in p for p in cfg["ignore"]["builtin_patterns"])


def test_default_config_is_a_fresh_copy() -> None:
    a = default_config()
    a["excluded_namespaces"].append("Vendor")
    assert default_config()["excluded_namespaces"] == ["System", "Microsoft", "Mono"]


def test_load_config_defaults_only(global_dir: Path) -> None:
    assert load_config() == default_config()


def test_load_config_global_then_project(global_dir: Path, tmp_path: Path) -> None:
    save_config(global_dir / "config.json", {"workers": 8, "logging": {"level": "DEBUG"}})
    project = tmp_path / "proj"
    save_config(project_config_path(project), {"workers": 2, "excluded_namespaces": ["Vendor"]})

    cfg = load_config(project)
    assert cfg["workers"] == 2
    assert cfg["excluded_namespaces"] == ["Vendor"]
    # Nested dicts merge key by key
    assert cfg["logging"] == {"level": "DEBUG", "file": None}
    assert cfg["root_types"] == ["System.Object"]


def test_load_config_ignores_invalid_json(global_dir: Path) -> None:
    global_dir.mkdir(parents=True)
    (global_dir / "config.json").write_text("{not json", encoding="utf-8")
    assert load_config() == default_config()


def test_load_config_ignores_non_object_json(global_dir: Path) -> None:
    global_dir.mkdir(parents=True)
    (global_dir / "config.json").write_text("[1, 2]", encoding="utf-8")
    assert load_config() == default_config()


def test_save_config_creates_parent(tmp_path: Path) -> None:
    path = tmp_path / "a" / "b" / "config.json"
    save_config(path, {"workers": 3})
    assert json.loads(path.read_text(encoding="utf-8")) == {"workers": 3}


def test_resolve_path(tmp_path: Path) -> None:
    p = tmp_path / "sub" / ".." / "sub"
    assert resolve_path(p) == (tmp_path / "sub").resolve()


def test_get_project_root_file(tmp_path: Path) -> None:
    f = tmp_path / "Shop.dll"
    f.write_bytes(b"MZ")
    assert get_project_root(f) == tmp_path.resolve()


def test_get_project_root_dir(tmp_path: Path) -> None:
    d = tmp_path / "bin"
    d.mkdir()
    assert get_project_root(d) == d.resolve()


def test_get_project_root_prefers_marker(tmp_path: Path) -> None:
    (tmp_path / ASMGRAPH_DIR).mkdir()
    d = tmp_path / "bin" / "Release"
    d.mkdir(parents=True)
    assert get_project_root(d) == tmp_path.resolve()


def test_find_project_root_not_found(tmp_path: Path) -> None:
    """No .asmgraph in hierarchy returns None."""
    (tmp_path / "a" / "b").mkdir(parents=True)
    assert find_project_root(tmp_path / "a" / "b") is None


def test_find_project_root_from_file(tmp_path: Path) -> None:
    (tmp_path / ASMGRAPH_DIR).mkdir(parents=True)
    f = tmp_path / "bin" / "Shop.dll"
    f.parent.mkdir(parents=True)
    f.write_bytes(b"MZ")
    root = find_project_root(f)
    assert root == tmp_path.resolve()


def test_global_settings_dir_is_not_a_project(global_dir: Path) -> None:
    """~/.asmgraph holds global settings; it does not make ~ a project root."""
    global_dir.mkdir(parents=True)
    bin_dir = global_dir.parent / "src" / "bin"
    bin_dir.mkdir(parents=True)
    assert find_project_root(bin_dir) is None
    assert get_project_root(bin_dir) == bin_dir.resolve()


def test_project_config_path(tmp_path: Path) -> None:
    assert project_config_path(tmp_path) == tmp_path / ASMGRAPH_DIR / "config.json"
