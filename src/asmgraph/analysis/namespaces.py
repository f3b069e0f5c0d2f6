"""Namespace filter: separates program types from platform/framework types."""

from __future__ import annotations

from typing import Iterable, Optional

# Platform library namespace roots (framework, runtime, Mono)
DEFAULT_EXCLUDED_NAMESPACES: tuple[str, ...] = ("System", "Microsoft", "Mono")


class NamespaceFilter:
    """Decide whether a namespace belongs to the analyzed program."""

    def __init__(self, excluded_prefixes: Optional[Iterable[str]] = None) -> None:
        if excluded_prefixes is None:
            excluded_prefixes = DEFAULT_EXCLUDED_NAMESPACES
        self._prefixes = tuple(p for p in excluded_prefixes if p)

    @property
    def excluded_prefixes(self) -> tuple[str, ...]:
        return self._prefixes

    def is_in_scope(self, namespace: Optional[str]) -> bool:
        """
        Return True if the namespace is non-empty and does not start with an
        excluded prefix. Types outside any namespace are never in scope.
        """
        if not namespace:
            return False
        return not namespace.startswith(self._prefixes)
