"""Shared utilities: hashing, ignore rules."""

from asmgraph.utils.hashing import bytes_hash
from asmgraph.utils.ignore import IgnoreRules, iter_patterns, read_pattern_file

__all__ = [
    "IgnoreRules",
    "bytes_hash",
    "iter_patterns",
    "read_pattern_file",
]
