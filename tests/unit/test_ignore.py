"""Unit tests for ignore rules (pattern files, config sources, path matching)."""

from __future__ import annotations

from pathlib import Path

import pytest

from asmgraph.utils.ignore import IgnoreRules, iter_patterns, read_pattern_file


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Temporary directory as project root."""
    return tmp_path


def _config(builtin=(), additional=(), use_gitignore=False) -> dict:
    return {
        "ignore": {
            "use_gitignore": use_gitignore,
            "builtin_patterns": list(builtin),
            "additional_patterns": list(additional),
        },
    }


# --- read_pattern_file ---


def test_read_pattern_file_missing_returns_empty(tmp_path: Path) -> None:
    assert read_pattern_file(tmp_path / "nonexistent") == []


def test_read_pattern_file_strips_comments_and_blanks(tmp_path: Path) -> None:
    f = tmp_path / ".asmgraphignore"
    f.write_text("# test doubles\n\n*.Tests.dll\n  \n  packages/  \n")
    assert read_pattern_file(f) == ["*.Tests.dll", "packages/"]


# --- IgnoreRules.matches ---


def test_empty_rules_never_match(project_root: Path) -> None:
    assert IgnoreRules(project_root).matches(project_root / "Shop.dll") is False


def test_glob(project_root: Path) -> None:
    rules = IgnoreRules(project_root, ["*.Tests.dll"])
    assert rules.matches(project_root / "Shop.Tests.dll") is True
    assert rules.matches(project_root / "bin" / "Shop.Tests.dll") is True
    assert rules.matches(project_root / "bin" / "Shop.dll") is False


def test_build_directories(project_root: Path) -> None:
    """obj/ and ref/ hold intermediate and reference assemblies."""
    rules = IgnoreRules(project_root, ["obj/", "ref/"])
    assert rules.matches(project_root / "obj" / "Debug" / "Shop.dll") is True
    assert rules.matches(project_root / "bin" / "ref" / "Shop.dll") is True
    assert rules.matches(project_root / "obj") is True
    assert rules.matches(project_root / "bin" / "Debug" / "Shop.dll") is False


def test_negation(project_root: Path) -> None:
    rules = IgnoreRules(project_root, ["*.exe", "!Launcher.exe"])
    assert rules.matches(project_root / "tool.exe") is True
    assert rules.matches(project_root / "Launcher.exe") is False


def test_outside_root(project_root: Path, tmp_path_factory: pytest.TempPathFactory) -> None:
    elsewhere = tmp_path_factory.mktemp("elsewhere")
    assert IgnoreRules(project_root, ["*.dll"]).matches(elsewhere / "Shop.dll") is False


def test_accepts_str_paths(project_root: Path) -> None:
    rules = IgnoreRules(project_root.as_posix(), ["*.exe"])
    assert rules.matches((project_root / "tool.exe").as_posix()) is True


# --- iter_patterns / from_config ---


def test_builtin_and_additional(project_root: Path) -> None:
    result = list(iter_patterns(project_root, _config(builtin=["obj/"], additional=["packages/"])))
    assert result == [("obj/", "builtin"), ("packages/", "additional")]


def test_reads_asmgraphignore(project_root: Path) -> None:
    (project_root / ".asmgraphignore").write_text("*.Tests.dll\n")
    assert list(iter_patterns(project_root, _config())) == [("*.Tests.dll", "file")]


def test_gitignore_toggle(project_root: Path) -> None:
    (project_root / ".gitignore").write_text("publish/\n")
    assert ("publish/", "gitignore") in iter_patterns(project_root, _config(use_gitignore=True))
    assert list(iter_patterns(project_root, _config(use_gitignore=False))) == []


def test_missing_section_reads_gitignore(project_root: Path) -> None:
    (project_root / ".gitignore").write_text("publish/\n")
    assert list(iter_patterns(project_root, {})) == [("publish/", "gitignore")]


def test_from_config(project_root: Path) -> None:
    (project_root / ".asmgraphignore").write_text("# tests\n*.Tests.dll\n")
    rules = IgnoreRules.from_config(project_root, _config(builtin=["obj/"]))
    assert rules.patterns == ["obj/", "*.Tests.dll"]
    assert rules.matches(project_root / "bin" / "Shop.Tests.dll") is True
    assert rules.matches(project_root / "obj" / "Shop.dll") is True
    assert rules.matches(project_root / "bin" / "Shop.dll") is False
