"""Class relationship models and the bytecode-driven relationship extractor."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from .metadata import Instruction, MethodRecord, OpKind, TypeRef

logger = logging.getLogger(__name__)


class RelationshipType(Enum):
    """Kinds of relationships between classes and interfaces."""

    INHERITS = "inherits"  # class -> parent class
    REALIZES = "realizes"  # class without parent -> interface
    COMPOSES = "composes"
    AGGREGATES = "aggregates"
    USES = "uses"


@dataclass(frozen=True)
class Relationship:
    """One directed edge between two types, by qualified name."""

    relationship_type: RelationshipType
    source: str
    target: str

    def to_dict(self) -> dict:
        """Convert to dictionary for export."""
        return {
            "source": self.source,
            "target": self.target,
            "relationship": self.relationship_type.value,
        }


@dataclass(frozen=True)
class RelationshipSet:
    """Per-type relationship sets. Tuples are duplicate-free, in discovery order."""

    uses: tuple[TypeRef, ...] = ()
    aggregates: tuple[TypeRef, ...] = ()
    composes: tuple[TypeRef, ...] = ()
    inherits: tuple[TypeRef, ...] = ()
    inherits_from_interfaces: bool = False  # inherits holds interfaces, not a parent

    def edges(self, source: str) -> List[Relationship]:
        """Flatten into edges from source, inheritance first."""
        inherit_kind = (
            RelationshipType.REALIZES if self.inherits_from_interfaces else RelationshipType.INHERITS
        )
        groups = (
            (inherit_kind, self.inherits),
            (RelationshipType.COMPOSES, self.composes),
            (RelationshipType.AGGREGATES, self.aggregates),
            (RelationshipType.USES, self.uses),
        )
        return [
            Relationship(relationship_type=kind, source=source, target=ref.full_name)
            for kind, refs in groups
            for ref in refs
        ]


def _is_class_ref(ref: Optional[TypeRef]) -> bool:
    """True for a resolved, non-generic reference type."""
    return ref is not None and not ref.is_value_type and not ref.is_generic_instance


def _add(target: Dict[TypeRef, None], ref: TypeRef, owner: TypeRef) -> None:
    if ref == owner:
        return
    target.setdefault(ref, None)


class RelationshipExtractor:
    """
    Derive uses / aggregates / composes / inherits for one class.

    - uses: class-typed parameters of ordinary methods, plus constructor
      parameters that are not composed.
    - aggregates: objects constructed in ordinary method bodies.
    - composes: reference-typed fields stored from constructor bodies.
    - inherits: the parent class, or the deduplicated interfaces when there
      is no parent.

    A type never appears in its own sets. Operands the reader could not
    resolve are skipped.
    """

    def extract(
        self,
        owner: TypeRef,
        constructors: Sequence[MethodRecord],
        methods: Sequence[MethodRecord],
        parent: Optional[TypeRef],
        interfaces: Sequence[TypeRef],
    ) -> RelationshipSet:
        uses: Dict[TypeRef, None] = {}
        aggregates: Dict[TypeRef, None] = {}
        composes: Dict[TypeRef, None] = {}

        self._collect_using(owner, methods, uses)
        self._collect_aggregation(owner, methods, aggregates)
        self._collect_composition(owner, constructors, composes, uses)

        if parent is not None:
            inherits = [parent] if parent != owner else []
        else:
            inherits = [i for i in interfaces if i != owner]

        return RelationshipSet(
            uses=tuple(uses),
            aggregates=tuple(aggregates),
            composes=tuple(composes),
            inherits=tuple(inherits),
            inherits_from_interfaces=parent is None,
        )

    def _collect_using(
        self,
        owner: TypeRef,
        methods: Iterable[MethodRecord],
        uses: Dict[TypeRef, None],
    ) -> None:
        for method in methods:
            for param in method.parameters:
                if _is_class_ref(param):
                    _add(uses, param, owner)

    def _collect_aggregation(
        self,
        owner: TypeRef,
        methods: Iterable[MethodRecord],
        aggregates: Dict[TypeRef, None],
    ) -> None:
        for method in methods:
            for insn in self._body(method, OpKind.CONSTRUCT):
                if insn.operand.is_generic_instance:
                    continue
                _add(aggregates, insn.operand, owner)

    def _collect_composition(
        self,
        owner: TypeRef,
        constructors: Sequence[MethodRecord],
        composes: Dict[TypeRef, None],
        uses: Dict[TypeRef, None],
    ) -> None:
        for ctor in constructors:
            for insn in self._body(ctor, OpKind.STORE_FIELD):
                if _is_class_ref(insn.operand):
                    _add(composes, insn.operand, owner)

        # Parameters never stored into a field are transient dependencies
        for ctor in constructors:
            for param in ctor.parameters:
                if _is_class_ref(param) and param not in composes:
                    _add(uses, param, owner)

    @staticmethod
    def _body(method: MethodRecord, op: OpKind) -> List[Instruction]:
        """Instructions of kind op with a resolved operand; empty if no body."""
        if method.instructions is None:
            return []
        found: List[Instruction] = []
        for insn in method.instructions:
            if insn.op is not op:
                continue
            if insn.operand is None:
                logger.debug(
                    "Unresolved %s operand in %s.%s",
                    op.value,
                    method.declaring_type.full_name,
                    method.name,
                )
                continue
            found.append(insn)
        return found
