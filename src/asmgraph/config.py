"""Settings: built-in defaults, then ~/.asmgraph/config.json, then <project>/.asmgraph/config.json."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

# Marker directory of a project (and name of the global settings directory)
ASMGRAPH_DIR = ".asmgraph"
CONFIG_FILENAME = "config.json"

_DEFAULTS: dict[str, Any] = {
    # Namespace prefixes treated as platform code, never modeled
    "excluded_namespaces": ["System", "Microsoft", "Mono"],
    # Base types that do not count as a parent class
    "root_types": ["System.Object"],
    "workers": 4,
    "assembly_extensions": [".dll", ".exe"],
    "logging": {
        "level": "INFO",
        "file": None,
    },
    "ignore": {
        "use_gitignore": True,
        # Intermediate and reference-assembly build output
        "builtin_patterns": ["obj/", "ref/", ASMGRAPH_DIR + "/"],
        "additional_patterns": [],
    },
}


def _global_config_dir() -> Path:
    return Path.home() / ASMGRAPH_DIR


def global_config_path() -> Path:
    """Path to the global config file (~/.asmgraph/config.json)."""
    return _global_config_dir() / CONFIG_FILENAME


def project_config_path(project_root: Path) -> Path:
    """Path to the project config file (<project>/.asmgraph/config.json)."""
    return project_root / ASMGRAPH_DIR / CONFIG_FILENAME


def default_config() -> dict[str, Any]:
    """A fresh copy of the built-in settings."""
    return copy.deepcopy(_DEFAULTS)


def read_config_file(path: Path) -> dict[str, Any] | None:
    """The JSON object stored at path; None if missing, unreadable, or not an object."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None


def merge_into(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively apply override to base (nested dicts merge key by key). Returns base."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merge_into(current, value)
        else:
            base[key] = value
    return base


def load_config(project_root: Path | None = None) -> dict[str, Any]:
    """
    Effective settings for a project: defaults, overridden by the global file,
    overridden by the project file. With no project_root only the first two apply.
    """
    config = default_config()
    layers = [global_config_path()]
    if project_root is not None:
        layers.append(project_config_path(Path(project_root).resolve()))
    for path in layers:
        data = read_config_file(path)
        if data is not None:
            merge_into(config, data)
    return config


def save_config(path: Path, data: dict[str, Any]) -> None:
    """Write a settings dict as indented JSON, creating the directory if needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def resolve_path(path: Path) -> Path:
    """Absolute, normalized form of path."""
    return Path(path).resolve()


def find_project_root(path: Path) -> Path | None:
    """
    Nearest directory at or above path holding a .asmgraph directory, or None.
    The global settings directory in the home folder does not mark a project.
    """
    start = Path(path).resolve()
    if start.is_file():
        start = start.parent
    global_dir = _global_config_dir().resolve()
    for candidate in (start, *start.parents):
        marker = candidate / ASMGRAPH_DIR
        if marker.is_dir() and marker.resolve() != global_dir:
            return candidate
    return None


def get_project_root(path: Path) -> Path:
    """
    Project root for path: find_project_root, falling back to path itself
    (its directory when path is a file).
    """
    found = find_project_root(path)
    if found is not None:
        return found
    resolved = Path(path).resolve()
    return resolved.parent if resolved.is_file() else resolved
