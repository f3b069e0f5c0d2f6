"""CLI entry point: argument parsing, logging setup, and subcommand dispatch."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from asmgraph import __version__
from asmgraph.config import load_config, resolve_path

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _log_level(verbose: bool, quiet: bool, configured: Optional[str]) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.ERROR
    level = logging.getLevelName((configured or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Configure the asmgraph logger. The level comes from -v/-q, else from the
    logging.level setting; records go to stderr and, if logging.file is set,
    to that file as well.
    """
    log_cfg = load_config(None).get("logging") or {}
    logger = logging.getLogger("asmgraph")
    logger.setLevel(_log_level(verbose, quiet, log_cfg.get("level")))
    if logger.handlers:
        return
    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    log_file = log_cfg.get("file")
    if not log_file:
        return
    try:
        file_handler = logging.FileHandler(Path(log_file).expanduser(), encoding="utf-8")
    except OSError as e:
        logger.warning("Cannot open log file %s: %s", log_file, e)
        return
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)


def _verbosity_flags(parser: argparse.ArgumentParser, nested: bool = False) -> None:
    # Nested copies leave the value set by the top-level parser untouched
    extra = {"default": argparse.SUPPRESS, "help": argparse.SUPPRESS} if nested else {}
    group = parser.add_mutually_exclusive_group()
    group.add_argument("-v", "--verbose", action="store_true", **{"help": "Verbose (DEBUG) output.", **extra})
    group.add_argument("-q", "--quiet", action="store_true", **{"help": "Quiet (errors only).", **extra})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="asmgraph",
        description="Extract class relationships (inheritance, composition, aggregation, usage) from .NET assemblies.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _verbosity_flags(parser)

    # Repeated on each subcommand so "asmgraph analyze bin -v" works
    common = argparse.ArgumentParser(add_help=False)
    _verbosity_flags(common, nested=True)

    commands = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    analyze = commands.add_parser(
        "analyze", parents=[common],
        help="Analyze assemblies and report classes and relationships.",
    )
    analyze.add_argument(
        "paths", nargs="*", type=Path, default=[Path(".")],
        help="Assembly files or directories to search (default: .).",
    )
    analyze.add_argument(
        "--format", "-f", choices=("text", "json", "csv"), default="text", help="Output format.",
    )
    analyze.add_argument(
        "--exclude-namespace", "-x", dest="exclude_namespace", action="append", metavar="PREFIX",
        help="Additional namespace prefix to treat as library code (repeatable).",
    )
    analyze.add_argument(
        "--workers", "-j", type=int, help="Assemblies parsed in parallel (default: config).",
    )
    analyze.add_argument(
        "--dry-run", action="store_true", help="List the assemblies that would be analyzed.",
    )

    config = commands.add_parser("config", parents=[common], help="Show or edit configuration.")
    config.add_argument(
        "path", type=Path, nargs="?", default=Path("."),
        help="Project path for project-local config (default: .).",
    )
    config.add_argument("--show", action="store_true", help="Display current settings.")
    config.add_argument("--set", dest="set_key", metavar="KEY=VALUE", help="Set a configuration value.")
    config.add_argument(
        "--add", dest="add_key", nargs=2, metavar=("KEY", "VALUE"),
        help="Append VALUE to list KEY (e.g. excluded_namespaces Newtonsoft).",
    )
    config.add_argument(
        "--remove", dest="remove_key", nargs=2, metavar=("KEY", "VALUE"),
        help="Remove VALUE from list KEY.",
    )
    config.add_argument(
        "--global", dest="global_", action="store_true",
        help="With --set/--add/--remove: write to global config even inside a project.",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose, quiet=args.quiet)

    if args.command == "analyze":
        from asmgraph.commands.analyze import run

        args.paths = [resolve_path(p) for p in args.paths]
    else:
        from asmgraph.commands.config_cmd import run

        args.path = resolve_path(args.path)
    run(args)
