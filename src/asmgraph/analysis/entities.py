"""Parsed type and assembly models produced by the analysis."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .metadata import FieldRecord, MethodRecord, TypeRef
from .relationships import Relationship, RelationshipSet


class ExtractionInvariantError(Exception):
    """Raised when a parsed type breaks a structural invariant (extractor bug)."""


class TypeKind(Enum):
    """Kinds of types we model."""

    CLASS = "class"
    INTERFACE = "interface"


@dataclass(frozen=True)
class ParsedType:
    """One analyzed class or interface. Holds only TypeRefs to other types."""

    ref: TypeRef
    kind: TypeKind
    parent: Optional[TypeRef] = None  # Parent class (classes only)
    interfaces: tuple[TypeRef, ...] = ()  # Deduplicated declared interfaces
    fields: tuple[FieldRecord, ...] = ()
    constructors: tuple[MethodRecord, ...] = ()
    methods: tuple[MethodRecord, ...] = ()  # Ordinary methods, constructors excluded
    relationships: RelationshipSet = field(default_factory=RelationshipSet)

    @property
    def name(self) -> str:
        return self.ref.full_name

    def check_invariants(self) -> None:
        """Raise ExtractionInvariantError if the relationship sets are inconsistent."""
        rels = self.relationships
        if self.kind is TypeKind.INTERFACE:
            if self.parent is not None:
                raise ExtractionInvariantError(f"Interface {self.name} has a parent class")
        elif self.parent is not None:
            if rels.inherits != (self.parent,) or rels.inherits_from_interfaces:
                raise ExtractionInvariantError(
                    f"{self.name}: inherits must be exactly the parent {self.parent.full_name}"
                )
        elif rels.inherits != self.interfaces or not rels.inherits_from_interfaces:
            raise ExtractionInvariantError(
                f"{self.name}: inherits must equal the deduplicated interfaces"
            )

        for label, refs in (
            ("uses", rels.uses),
            ("aggregates", rels.aggregates),
            ("composes", rels.composes),
            ("inherits", rels.inherits),
        ):
            if self.ref in refs:
                raise ExtractionInvariantError(f"{self.name} references itself in {label}")
            if len(set(refs)) != len(refs):
                raise ExtractionInvariantError(f"{self.name} has duplicates in {label}")

    def edges(self) -> List[Relationship]:
        return self.relationships.edges(self.name)

    def to_dict(self) -> dict:
        """Convert to dictionary for export."""
        if self.kind is TypeKind.INTERFACE:
            return {"name": self.name}
        rels = self.relationships
        return {
            "name": self.name,
            "parent": self.parent.full_name if self.parent is not None else None,
            "interfaces": [i.full_name for i in self.interfaces],
            "uses": [r.full_name for r in rels.uses],
            "aggregates": [r.full_name for r in rels.aggregates],
            "composes": [r.full_name for r in rels.composes],
            "inherits": [r.full_name for r in rels.inherits],
        }


@dataclass(frozen=True)
class ParsedAssembly:
    """Classes and interfaces of one assembly file. Built once, never mutated."""

    file_name: str
    content_hash: str  # SHA-256 of the image
    classes: tuple[ParsedType, ...] = ()
    interfaces: tuple[ParsedType, ...] = ()

    def get_type(self, full_name: str) -> ParsedType | None:
        """Return the class or interface with this qualified name, or None."""
        for parsed in self.classes + self.interfaces:
            if parsed.name == full_name:
                return parsed
        return None

    def relationships(self) -> List[Relationship]:
        """All class edges, in class declaration order."""
        edges: List[Relationship] = []
        for parsed in self.classes:
            edges.extend(parsed.edges())
        return edges

    def to_dict(self) -> dict:
        """Convert to dictionary for export."""
        return {
            "file": self.file_name,
            "hash": self.content_hash,
            "classes": [c.to_dict() for c in self.classes],
            "interfaces": [i.to_dict() for i in self.interfaces],
        }
