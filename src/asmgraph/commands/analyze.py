"""Analyze command: extract class relationships from assemblies and report them."""

from __future__ import annotations

import csv
import json
import logging
import sys
import time
from argparse import Namespace
from pathlib import Path
from typing import TextIO

from asmgraph.analysis import ParsedAssembly, parse_assembly_files
from asmgraph.config import get_project_root, load_config
from asmgraph.utils.ignore import IgnoreRules

logger = logging.getLogger(__name__)


def _collect_assemblies(paths: list[Path], rules: IgnoreRules, extensions: list[str]) -> list[Path]:
    """
    Collect assembly files. Explicit file arguments are always taken; directories
    are searched recursively for matching extensions, honouring ignore patterns.
    """
    suffixes = {e.lower() for e in extensions}
    found: dict[str, Path] = {}
    for path in paths:
        path = path.resolve()
        if path.is_file():
            found.setdefault(path.as_posix(), path)
            continue
        if not path.is_dir():
            logger.warning("No such file or directory: %s", path.as_posix())
            continue
        for entry in path.rglob("*"):
            if not entry.is_file() or entry.suffix.lower() not in suffixes:
                continue
            if rules.matches(entry):
                continue
            found.setdefault(entry.resolve().as_posix(), entry.resolve())
    return [found[k] for k in sorted(found)]


def _write_json(assemblies: list[ParsedAssembly], out: TextIO) -> None:
    """Write assemblies as a JSON array to out (e.g. sys.stdout)."""
    json.dump([a.to_dict() for a in assemblies], out, indent=2)
    out.write("\n")


def _write_csv(assemblies: list[ParsedAssembly], out: TextIO) -> None:
    """Write one CSV row per relationship edge."""
    writer = csv.DictWriter(
        out, fieldnames=["file", "source", "target", "relationship"], lineterminator="\n"
    )
    writer.writeheader()
    for assembly in assemblies:
        for edge in assembly.relationships():
            writer.writerow({"file": assembly.file_name, **edge.to_dict()})


def _write_text(assemblies: list[ParsedAssembly], out: TextIO) -> None:
    """Human-readable summary per assembly and class."""
    for assembly in assemblies:
        out.write(f"{assembly.file_name} (sha256 {assembly.content_hash[:12]})\n")
        out.write(
            f"  {len(assembly.classes)} classes, {len(assembly.interfaces)} interfaces\n"
        )
        for parsed in assembly.classes:
            header = f"  class {parsed.name}"
            if parsed.parent is not None:
                header += f" : {parsed.parent.full_name}"
            out.write(header + "\n")
            rels = parsed.relationships
            for label, refs in (
                ("realizes" if rels.inherits_from_interfaces else "inherits", rels.inherits),
                ("composes", rels.composes),
                ("aggregates", rels.aggregates),
                ("uses", rels.uses),
            ):
                if refs:
                    out.write(f"    {label}: {', '.join(r.full_name for r in refs)}\n")
        for iface in assembly.interfaces:
            out.write(f"  interface {iface.name}\n")


_WRITERS = {
    "text": _write_text,
    "json": _write_json,
    "csv": _write_csv,
}


def run(args: Namespace) -> None:
    """Run the analyze command."""
    paths = [Path(p) for p in (getattr(args, "paths", None) or [Path(".")])]
    fmt = getattr(args, "format", "text") or "text"
    dry_run = getattr(args, "dry_run", False)

    project_root = get_project_root(paths[0])
    config = load_config(project_root)

    excluded = list(config.get("excluded_namespaces") or [])
    for prefix in getattr(args, "exclude_namespace", None) or []:
        if prefix not in excluded:
            excluded.append(prefix)
    root_types = list(config.get("root_types") or [])
    workers = getattr(args, "workers", None) or int(config.get("workers") or 1)
    extensions = list(config.get("assembly_extensions") or [".dll", ".exe"])

    rules = IgnoreRules.from_config(project_root, config)
    files = _collect_assemblies(paths, rules, extensions)

    if not files:
        print("No assemblies found (.dll, .exe).", file=sys.stderr)
        return

    if dry_run:
        print(f"Would analyze {len(files)} assembly file(s).", file=sys.stderr)
        for f in files:
            print(f"  {f.as_posix()}", file=sys.stderr)
        return

    start = time.perf_counter()
    results = parse_assembly_files(files, excluded, root_types, workers=workers)
    elapsed = time.perf_counter() - start

    assemblies = [r.assembly for r in results if r.assembly is not None]
    failed = [r for r in results if r.error is not None]

    _WRITERS[fmt](assemblies, sys.stdout)

    class_count = sum(len(a.classes) for a in assemblies)
    interface_count = sum(len(a.interfaces) for a in assemblies)
    edge_count = sum(len(a.relationships()) for a in assemblies)
    print(
        f"Analyzed {len(assemblies)} assembly file(s) in {elapsed:.1f}s: "
        f"{class_count} classes, {interface_count} interfaces, {edge_count} relationships.",
        file=sys.stderr,
    )
    if failed:
        for result in failed:
            print(f"  failed: {result.path.as_posix()}: {result.error}", file=sys.stderr)
        sys.exit(1)
