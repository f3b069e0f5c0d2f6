"""Ignore rules for assembly discovery: builtin, .asmgraphignore, .gitignore and configured patterns."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

from pathspec import GitIgnoreSpec

IGNORE_FILE = ".asmgraphignore"
GITIGNORE = ".gitignore"


def read_pattern_file(path: Path) -> list[str]:
    """Pattern lines of a gitignore-style file, without blanks and comments."""
    if not path.is_file():
        return []
    patterns = []
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line and not line.startswith("#"):
            patterns.append(line)
    return patterns


def iter_patterns(project_root: Path, config: dict) -> Iterator[tuple[str, str]]:
    """
    Yield (pattern, source) pairs in order: builtin, file (.asmgraphignore),
    gitignore (only if ignore.use_gitignore), additional.
    """
    section = config.get("ignore") or {}
    for pattern in section.get("builtin_patterns") or []:
        yield pattern, "builtin"
    for pattern in read_pattern_file(project_root / IGNORE_FILE):
        yield pattern, "file"
    if section.get("use_gitignore", True):
        for pattern in read_pattern_file(project_root / GITIGNORE):
            yield pattern, "gitignore"
    for pattern in section.get("additional_patterns") or []:
        yield pattern, "additional"


class IgnoreRules:
    """Compiled gitignore-style patterns, matched relative to a project root."""

    def __init__(self, project_root: Path | str, patterns: Iterable[str] = ()) -> None:
        self.root = Path(project_root).resolve()
        self.patterns = list(patterns)
        self._spec = GitIgnoreSpec.from_lines(self.patterns)

    @classmethod
    def from_config(cls, project_root: Path | str, config: dict) -> IgnoreRules:
        root = Path(project_root).resolve()
        return cls(root, [pattern for pattern, _ in iter_patterns(root, config)])

    def matches(self, path: Path | str) -> bool:
        """True if path is ignored. Paths outside the root never are."""
        try:
            rel = Path(path).resolve().relative_to(self.root).as_posix()
        except ValueError:
            return False
        # Directory patterns such as "obj/" need the trailing slash to match the directory itself
        return self._spec.match_file(rel) or self._spec.match_file(rel + "/")
