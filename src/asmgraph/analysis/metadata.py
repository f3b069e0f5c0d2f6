"""Assembly metadata records and the reader contract the engine consumes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class TypeRef:
    """Non-owning reference to a type: qualified name plus module of origin.

    Two refs are equal when name and module match; the flags describe the
    reference site and do not take part in equality.
    """

    full_name: str  # e.g. "Shop.Cart" or "Shop.Cart/Line" for nested types
    module: str  # module or assembly the type comes from
    is_generic_instance: bool = field(default=False, compare=False)
    is_value_type: bool = field(default=False, compare=False)

    @property
    def namespace(self) -> str:
        outer = self.full_name.split("/", 1)[0]
        ns, _, _ = outer.rpartition(".")
        return ns

    def __str__(self) -> str:
        return self.full_name


class OpKind(Enum):
    """The two bytecode operations relationship extraction interprets."""

    CONSTRUCT = "newobj"
    STORE_FIELD = "stfld"


@dataclass(frozen=True)
class Instruction:
    """A decoded instruction reduced to what the extractor needs.

    CONSTRUCT: operand is the constructed type.
    STORE_FIELD: operand is the field's declared type, declaring_type the
    type that declares the field. operand is None when the reader could not
    resolve the token.
    """

    op: OpKind
    operand: Optional[TypeRef] = None
    declaring_type: Optional[TypeRef] = None


@dataclass(frozen=True)
class FieldRecord:
    name: str
    field_type: Optional[TypeRef]
    declaring_type: Optional[TypeRef] = None

    @property
    def is_value_type(self) -> bool:
        return self.field_type is not None and self.field_type.is_value_type


@dataclass(frozen=True)
class MethodRecord:
    """A method or constructor. instructions is None when there is no body."""

    name: str
    declaring_type: TypeRef
    parameters: tuple[Optional[TypeRef], ...] = ()  # None: not a nominal type (array, T, ...)
    is_constructor: bool = False
    instructions: Optional[tuple[Instruction, ...]] = None

    @property
    def has_body(self) -> bool:
        return self.instructions is not None


@dataclass(frozen=True)
class TypeDefinition:
    """A type defined in the module being read."""

    ref: TypeRef
    namespace: str
    is_interface: bool = False
    is_enum: bool = False
    is_value_type: bool = False
    base_type: Optional[TypeRef] = None
    interfaces: tuple[TypeRef, ...] = ()
    fields: tuple[FieldRecord, ...] = ()
    methods: tuple[MethodRecord, ...] = ()

    @property
    def full_name(self) -> str:
        return self.ref.full_name


@runtime_checkable
class ModuleReader(Protocol):
    """What the engine needs from a bytecode reader."""

    @property
    def name(self) -> str:
        """Module name (identity of the types it defines)."""
        ...

    def iter_types(self) -> Iterable[TypeDefinition]:
        """Yield type definitions in module declaration order."""
        ...

    def resolve(self, ref: TypeRef) -> TypeDefinition | None:
        """Return the definition for ref if it lives in this module, else None."""
        ...


class InMemoryModule:
    """ModuleReader over already-built TypeDefinition records."""

    def __init__(self, name: str, types: Iterable[TypeDefinition]) -> None:
        self._name = name
        self._types: list[TypeDefinition] = list(types)
        self._by_ref: dict[TypeRef, TypeDefinition] = {t.ref: t for t in self._types}

    @property
    def name(self) -> str:
        return self._name

    def iter_types(self) -> Iterator[TypeDefinition]:
        return iter(self._types)

    def resolve(self, ref: TypeRef) -> TypeDefinition | None:
        return self._by_ref.get(ref)
