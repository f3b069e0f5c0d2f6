"""Assembly model builder: runs classification and extraction over a module."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from asmgraph.utils.hashing import bytes_hash

from .classifier import TypeClassifier, split_methods
from .dotnet import DotnetModule, ModuleLoadError
from .entities import ParsedAssembly, ParsedType, TypeKind
from .interfaces import deduplicate_interfaces
from .metadata import ModuleReader, TypeDefinition, TypeRef
from .namespaces import NamespaceFilter
from .relationships import RelationshipExtractor

logger = logging.getLogger(__name__)

# Base types that do not count as a parent class
DEFAULT_ROOT_TYPES: tuple[str, ...] = ("System.Object",)


class AssemblyModelBuilder:
    """Build a ParsedAssembly from a ModuleReader."""

    def __init__(
        self,
        namespace_filter: Optional[NamespaceFilter] = None,
        root_types: Optional[Iterable[str]] = None,
    ) -> None:
        self._filter = namespace_filter or NamespaceFilter()
        self._root_types = frozenset(DEFAULT_ROOT_TYPES if root_types is None else root_types)
        self._classifier = TypeClassifier(self._filter)
        self._extractor = RelationshipExtractor()

    def build(self, reader: ModuleReader, file_name: str, content_hash: str = "") -> ParsedAssembly:
        """
        Classify every type of the module, extract relationships for classes,
        and return the immutable assembly model.

        Raises:
            ExtractionInvariantError: If a built class violates an invariant.
        """
        classified = self._classifier.partition(reader.iter_types())

        classes: List[ParsedType] = []
        for type_def in classified.classes:
            parsed = self._build_class(reader, type_def)
            parsed.check_invariants()
            classes.append(parsed)

        interfaces = [
            ParsedType(ref=type_def.ref, kind=TypeKind.INTERFACE, methods=type_def.methods)
            for type_def in classified.interfaces
        ]

        logger.debug(
            "%s: %d classes, %d interfaces", file_name, len(classes), len(interfaces)
        )
        return ParsedAssembly(
            file_name=file_name,
            content_hash=content_hash,
            classes=tuple(classes),
            interfaces=tuple(interfaces),
        )

    def _parent_of(self, type_def: TypeDefinition) -> Optional[TypeRef]:
        base = type_def.base_type
        if base is None or base.full_name in self._root_types:
            return None
        return base

    def _build_class(self, reader: ModuleReader, type_def: TypeDefinition) -> ParsedType:
        parent = self._parent_of(type_def)

        parent_interfaces: tuple[TypeRef, ...] = ()
        if type_def.base_type is not None:
            parent_def = reader.resolve(type_def.base_type)
            if parent_def is not None:
                parent_interfaces = parent_def.interfaces

        interfaces = deduplicate_interfaces(type_def.interfaces, parent_interfaces, reader.resolve)
        constructors, methods = split_methods(type_def.methods)
        relationships = self._extractor.extract(
            type_def.ref, constructors, methods, parent, interfaces
        )
        return ParsedType(
            ref=type_def.ref,
            kind=TypeKind.CLASS,
            parent=parent,
            interfaces=tuple(interfaces),
            fields=type_def.fields,
            constructors=tuple(constructors),
            methods=tuple(methods),
            relationships=relationships,
        )


def parse_assembly(
    data: bytes,
    file_name: str,
    excluded_namespaces: Optional[Iterable[str]] = None,
    root_types: Optional[Iterable[str]] = None,
) -> ParsedAssembly:
    """
    Parse one assembly image held in memory.

    Raises:
        ModuleLoadError: If the image is not a readable .NET module.
    """
    module = DotnetModule.from_bytes(data, file_name)
    builder = AssemblyModelBuilder(NamespaceFilter(excluded_namespaces), root_types)
    return builder.build(module, file_name, bytes_hash(data))


def parse_assembly_file(
    path: Path | str,
    excluded_namespaces: Optional[Iterable[str]] = None,
    root_types: Optional[Iterable[str]] = None,
) -> ParsedAssembly:
    """Read and parse an assembly file. Raises ModuleLoadError if unreadable."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ModuleLoadError(f"Cannot read {path.as_posix()}: {e}") from e
    return parse_assembly(data, path.name, excluded_namespaces, root_types)


@dataclass(frozen=True)
class AssemblyResult:
    """Outcome of parsing one file: an assembly, or the load error message."""

    path: Path
    assembly: Optional[ParsedAssembly] = None
    error: Optional[str] = None


def _parse_one(
    path: Path,
    excluded_namespaces: Optional[tuple[str, ...]],
    root_types: Optional[tuple[str, ...]],
) -> AssemblyResult:
    try:
        assembly = parse_assembly_file(path, excluded_namespaces, root_types)
    except ModuleLoadError as e:
        logger.warning("Skipping %s: %s", path.as_posix(), e)
        return AssemblyResult(path=path, error=str(e))
    return AssemblyResult(path=path, assembly=assembly)


def parse_assembly_files(
    paths: Iterable[Path | str],
    excluded_namespaces: Optional[Iterable[str]] = None,
    root_types: Optional[Iterable[str]] = None,
    workers: int = 4,
) -> List[AssemblyResult]:
    """
    Parse several assemblies on a thread pool. Each parse is independent;
    results are returned in input order. Load errors are reported per file.
    """
    files = [Path(p) for p in paths]
    excluded = tuple(excluded_namespaces) if excluded_namespaces is not None else None
    roots = tuple(root_types) if root_types is not None else None
    if not files:
        return []
    with ThreadPoolExecutor(max_workers=max(1, min(workers, len(files)))) as pool:
        return list(pool.map(lambda p: _parse_one(p, excluded, roots), files))
