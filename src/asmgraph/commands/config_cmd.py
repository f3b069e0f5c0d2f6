"""Config command: show effective settings or edit the global / project config file."""

from __future__ import annotations

import json
import sys
from argparse import Namespace
from dataclasses import dataclass
from pathlib import Path
from typing import Any, NoReturn

from asmgraph.config import (
    find_project_root,
    global_config_path,
    load_config,
    project_config_path,
    read_config_file,
    save_config,
)


def _fail(message: str) -> NoReturn:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _lookup(data: dict[str, Any], dotted: str) -> Any:
    """Value at a dotted key such as 'ignore.additional_patterns'; None if absent."""
    node: Any = data
    for part in dotted.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def _assign(data: dict[str, Any], dotted: str, value: Any) -> None:
    """Set a dotted key, replacing non-dict intermediates with dicts."""
    *parents, leaf = dotted.split(".")
    node = data
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            child = node[part] = {}
        node = child
    node[leaf] = value


def _parse_value(text: str) -> Any:
    """JSON if it parses (8, true, ["A"], "x"), else the raw string (DEBUG)."""
    text = text.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


@dataclass(frozen=True)
class _Target:
    """The config file an edit is written to."""

    path: Path
    label: str

    @classmethod
    def choose(cls, project_root: Path | None, use_global: bool) -> _Target:
        if use_global or project_root is None:
            return cls(global_config_path(), "global")
        return cls(project_config_path(project_root), f"project ({project_root.as_posix()})")

    def read(self) -> dict[str, Any]:
        return read_config_file(self.path) or {}


def _set_value(target: _Target, assignment: str) -> None:
    key, sep, raw_value = assignment.partition("=")
    key = key.strip()
    if not sep:
        _fail("--set requires KEY=VALUE (e.g. workers=8).")
    if not key:
        _fail("empty key in KEY=VALUE.")
    value = _parse_value(raw_value)
    data = target.read()
    _assign(data, key, value)
    save_config(target.path, data)
    print(f"Set {key} = {json.dumps(value)} in {target.label} config.")


def _edit_list(
    target: _Target,
    project_root: Path | None,
    key: str,
    item: str,
    add: bool,
) -> None:
    """Add item to, or remove it from, the list at key in the target file."""
    key, item = key.strip(), item.strip()
    if not key:
        _fail(f"empty key in --{'add' if add else 'remove'} KEY VALUE.")
    data = target.read()
    items = _lookup(data, key)
    if not isinstance(items, list):
        # Not in this file yet: start from the effective value so defaults are kept
        effective = _lookup(load_config(project_root), key)
        if effective is not None and not isinstance(effective, list):
            _fail(f"{key} is not a list.")
        items = list(effective or [])
    if add:
        if item not in items:
            items.append(item)
    else:
        items = [x for x in items if x != item]
    _assign(data, key, items)
    save_config(target.path, data)
    if add:
        print(f"Added {json.dumps(item)} to {key} in {target.label} config.")
    else:
        print(f"Removed {json.dumps(item)} from {key} in {target.label} config.")


def _show(project_root: Path | None) -> None:
    layers = "defaults + global"
    if project_root is not None:
        layers += f" + project ({project_root.as_posix()})"
    print(f"# Config: {layers}")
    print(json.dumps(load_config(project_root), indent=2))


def run(args: Namespace) -> None:
    """Run the config command. Edits are applied before --show prints the result."""
    show = getattr(args, "show", False)
    set_key = getattr(args, "set_key", None)
    add_key = getattr(args, "add_key", None)
    remove_key = getattr(args, "remove_key", None)

    if not (show or set_key or add_key or remove_key):
        _fail("specify --show, --set KEY=VALUE, --add KEY VALUE, or --remove KEY VALUE.")

    project_root = find_project_root(Path(getattr(args, "path", Path("."))))
    target = _Target.choose(project_root, getattr(args, "global_", False))

    if set_key:
        _set_value(target, set_key)
    if add_key:
        _edit_list(target, project_root, add_key[0], add_key[1], add=True)
    if remove_key:
        _edit_list(target, project_root, remove_key[0], remove_key[1], add=False)
    if show:
        _show(project_root)
