"""Bytecode reader for .NET assemblies, built on dnfile (metadata) and dncil (CIL bodies)."""

from __future__ import annotations

import logging
import struct
from dataclasses import replace
from typing import Any, Dict, Iterator, List, Optional, Tuple

import dnfile
import pefile
from dncil.cil.body import CilMethodBody
from dncil.cil.body.reader import CilMethodBodyReaderBase
from dncil.cil.error import MethodBodyFormatError
from dncil.cil.opcode import OpCodes
from dncil.clr.token import InvalidToken, Token

from .metadata import FieldRecord, Instruction, MethodRecord, OpKind, TypeDefinition, TypeRef
from .signatures import SignatureError, read_field_signature, read_method_parameters, read_type_spec

logger = logging.getLogger(__name__)

# Metadata table numbers used by instruction tokens
TABLE_FIELD = 0x04
TABLE_METHODDEF = 0x06
TABLE_MEMBERREF = 0x0A

TD_INTERFACE = 0x20
CONSTRUCTOR_NAMES = (".ctor", ".cctor")
DEFAULT_CORLIB = "mscorlib"

# Raised by dnfile when walking structurally invalid tables
MALFORMED_IMAGE_ERRORS = (AttributeError, IndexError, KeyError, TypeError, ValueError, struct.error)


class ModuleLoadError(Exception):
    """Raised when an image is unreadable or is not a valid .NET module."""


def _text(value: Any) -> str:
    """Heap string column as str ('' for null)."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    inner = getattr(value, "value", value)
    if isinstance(inner, bytes):
        return inner.decode("utf-8", errors="replace")
    return str(inner)


def _blob(value: Any) -> bytes:
    """Blob heap column as bytes."""
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    inner = getattr(value, "value", None)
    if isinstance(inner, (bytes, bytearray)):
        return bytes(inner)
    return bytes(value)


def _flag_set(flags: Any, name: str, mask: int) -> bool:
    value = getattr(flags, name, None)
    if value is not None:
        return bool(value)
    try:
        return bool(int(flags) & mask)
    except (TypeError, ValueError):
        return False


class _MethodBodyReader(CilMethodBodyReaderBase):
    """Feeds dncil the raw bytes of one method body."""

    def __init__(self, pe: dnfile.dnPE, offset: int) -> None:
        self.pe = pe
        self.offset = offset

    def read(self, n: int) -> bytes:
        data = self.pe.__data__[self.offset : self.offset + n]
        self.offset += n
        return data

    def tell(self) -> int:
        return self.offset

    def seek(self, offset: int) -> int:
        self.offset = offset
        return self.offset


class DotnetModule:
    """
    ModuleReader over the main module of a .NET PE image.

    All metadata is read eagerly on construction; the image is not touched
    afterwards. Only newobj and stfld instructions are kept.
    """

    def __init__(self, pe: dnfile.dnPE, name: str) -> None:
        self._pe = pe
        self._name = name
        self._tables = pe.net.mdtables

        self._module_name = self._read_module_name() or name
        self._corlib = self._find_corlib()

        self._typeref_cache: Dict[int, Optional[TypeRef]] = {}
        self._typespec_cache: Dict[int, Optional[TypeRef]] = {}
        self._typespec_pending: set[int] = set()

        self._enclosing: Dict[int, int] = {}
        for row in self._rows("NestedClass"):
            if row.NestedClass is None or row.EnclosingClass is None:
                continue
            self._enclosing[row.NestedClass.row_index] = row.EnclosingClass.row_index

        typedef_rows = self._rows("TypeDef")
        self._typedef_refs: Dict[int, TypeRef] = {}
        self._method_owner: Dict[int, int] = {}
        self._field_owner: Dict[int, int] = {}
        for rid, row in enumerate(typedef_rows, start=1):
            self._typedef_refs[rid] = TypeRef(self._typedef_name(rid), self._module_name)
            for index in row.MethodList or []:
                self._method_owner[index.row_index] = rid
            for index in row.FieldList or []:
                self._field_owner[index.row_index] = rid

        bases: Dict[int, Optional[TypeRef]] = {
            rid: self._coded_type(row.Extends) for rid, row in enumerate(typedef_rows, start=1)
        }
        for rid, base in bases.items():
            if self._is_value_type(self._typedef_refs[rid], base):
                self._typedef_refs[rid] = replace(self._typedef_refs[rid], is_value_type=True)
        self._typespec_cache.clear()

        interfaces: Dict[int, List[TypeRef]] = {}
        for row in self._rows("InterfaceImpl"):
            if row.Class is None:
                logger.debug("InterfaceImpl row without an implementing type")
                continue
            iface = self._coded_type(row.Interface)
            if iface is None:
                logger.debug("Unresolved interface on TypeDef row %d", row.Class.row_index)
                continue
            interfaces.setdefault(row.Class.row_index, []).append(iface)

        self._types: List[TypeDefinition] = []
        for rid, row in enumerate(typedef_rows, start=1):
            self._types.append(
                self._build_type(rid, row, bases[rid], tuple(interfaces.get(rid, ())))
            )
        self._by_ref: Dict[TypeRef, TypeDefinition] = {t.ref: t for t in self._types}

    @classmethod
    def from_bytes(cls, data: bytes, name: str) -> "DotnetModule":
        """
        Load a module from an in-memory image.

        Raises:
            ModuleLoadError: If the image is not a PE file, has no CLR
                metadata, or its metadata cannot be decoded.
        """
        try:
            pe = dnfile.dnPE(data=data)
        except pefile.PEFormatError as e:
            raise ModuleLoadError(f"{name}: not a PE image ({e})") from e
        except MALFORMED_IMAGE_ERRORS as e:
            raise ModuleLoadError(f"{name}: malformed image ({e})") from e
        try:
            if pe.net is None or pe.net.mdtables is None:
                raise ModuleLoadError(f"{name}: no .NET metadata")
            if getattr(pe.net.mdtables, "TypeDef", None) is None:
                raise ModuleLoadError(f"{name}: no TypeDef table")
            return cls(pe, name)
        except (SignatureError, pefile.PEFormatError) + MALFORMED_IMAGE_ERRORS as e:
            raise ModuleLoadError(f"{name}: malformed metadata ({e})") from e
        finally:
            pe.close()

    # --- ModuleReader ---

    @property
    def name(self) -> str:
        return self._name

    @property
    def module_name(self) -> str:
        return self._module_name

    def iter_types(self) -> Iterator[TypeDefinition]:
        return iter(self._types)

    def resolve(self, ref: TypeRef) -> TypeDefinition | None:
        return self._by_ref.get(ref)

    # --- tables ---

    def _rows(self, table_name: str) -> list:
        table = getattr(self._tables, table_name, None)
        if table is None:
            return []
        return list(table.rows)

    def _row(self, table_name: str, rid: int) -> Any:
        table = getattr(self._tables, table_name, None)
        if table is None or not 1 <= rid <= len(table.rows):
            return None
        return table.rows[rid - 1]

    def _read_module_name(self) -> str:
        row = self._row("Module", 1)
        return _text(row.Name) if row is not None else ""

    def _find_corlib(self) -> str:
        """Name of the assembly System.Object is referenced from."""
        for row in self._rows("TypeRef"):
            if _text(row.TypeNamespace) == "System" and _text(row.TypeName) == "Object":
                scope = getattr(row.ResolutionScope, "row", None)
                if isinstance(scope, dnfile.mdtable.AssemblyRefRow):
                    return _text(scope.Name)
        for row in self._rows("TypeDef"):
            if _text(row.TypeNamespace) == "System" and _text(row.TypeName) == "Object":
                return self._module_name
        return DEFAULT_CORLIB

    # --- type references ---

    def _typedef_name(self, rid: int) -> str:
        row = self._row("TypeDef", rid)
        name = _text(row.TypeName)
        outer = self._enclosing.get(rid)
        if outer is not None and outer != rid:
            return f"{self._typedef_name(outer)}/{name}"
        namespace = _text(row.TypeNamespace)
        return f"{namespace}.{name}" if namespace else name

    def _scope_name(self, scope: Any) -> str:
        if isinstance(scope, (dnfile.mdtable.AssemblyRefRow, dnfile.mdtable.ModuleRefRow)):
            return _text(scope.Name)
        return self._module_name

    def _typeref(self, rid: int) -> Optional[TypeRef]:
        if rid in self._typeref_cache:
            return self._typeref_cache[rid]
        self._typeref_cache[rid] = None  # guards cyclic resolution scopes
        row = self._row("TypeRef", rid)
        ref: Optional[TypeRef] = None
        if row is not None:
            name = _text(row.TypeName)
            scope_index = row.ResolutionScope
            scope = getattr(scope_index, "row", None)
            if isinstance(scope, dnfile.mdtable.TypeRefRow):
                outer = self._typeref(scope_index.row_index)
                if outer is not None:
                    ref = TypeRef(f"{outer.full_name}/{name}", outer.module)
            else:
                namespace = _text(row.TypeNamespace)
                full_name = f"{namespace}.{name}" if namespace else name
                ref = TypeRef(full_name, self._scope_name(scope))
        self._typeref_cache[rid] = ref
        return ref

    def _typespec(self, rid: int) -> Optional[TypeRef]:
        if rid in self._typespec_cache:
            return self._typespec_cache[rid]
        if rid in self._typespec_pending:
            return None
        row = self._row("TypeSpec", rid)
        if row is None:
            return None
        self._typespec_pending.add(rid)
        try:
            ref = read_type_spec(_blob(row.Signature), self._resolve_token, self._corlib)
        finally:
            self._typespec_pending.discard(rid)
        self._typespec_cache[rid] = ref
        return ref

    def _resolve_token(self, table_name: str, rid: int) -> Optional[TypeRef]:
        if table_name == "TypeDef":
            return self._typedef_refs.get(rid)
        if table_name == "TypeRef":
            return self._typeref(rid)
        if table_name == "TypeSpec":
            return self._typespec(rid)
        return None

    def _coded_type(self, index: Any) -> Optional[TypeRef]:
        """Resolve a TypeDefOrRef coded index."""
        row = getattr(index, "row", None)
        rid = getattr(index, "row_index", 0)
        if isinstance(row, dnfile.mdtable.TypeDefRow):
            return self._typedef_refs.get(rid)
        if isinstance(row, dnfile.mdtable.TypeRefRow):
            return self._typeref(rid)
        if isinstance(row, dnfile.mdtable.TypeSpecRow):
            return self._typespec(rid)
        return None

    @staticmethod
    def _is_value_type(ref: TypeRef, base: Optional[TypeRef]) -> bool:
        if base is None:
            return False
        if base.full_name == "System.Enum":
            return True
        return base.full_name == "System.ValueType" and ref.full_name != "System.Enum"

    # --- definitions ---

    def _build_type(
        self,
        rid: int,
        row: Any,
        base: Optional[TypeRef],
        interfaces: Tuple[TypeRef, ...],
    ) -> TypeDefinition:
        ref = self._typedef_refs[rid]
        fields = tuple(
            FieldRecord(
                name=_text(index.row.Name),
                field_type=self._field_type(index.row_index),
                declaring_type=ref,
            )
            for index in row.FieldList or []
            if index.row is not None
        )
        methods = tuple(
            self._build_method(ref, index.row)
            for index in row.MethodList or []
            if index.row is not None
        )
        return TypeDefinition(
            ref=ref,
            namespace=_text(row.TypeNamespace),
            is_interface=_flag_set(row.Flags, "tdInterface", TD_INTERFACE),
            is_enum=base is not None and base.full_name == "System.Enum",
            is_value_type=ref.is_value_type,
            base_type=base,
            interfaces=interfaces,
            fields=fields,
            methods=methods,
        )

    def _field_type(self, rid: int) -> Optional[TypeRef]:
        row = self._row("Field", rid)
        if row is None:
            return None
        return read_field_signature(_blob(row.Signature), self._resolve_token, self._corlib)

    def _build_method(self, owner: TypeRef, row: Any) -> MethodRecord:
        name = _text(row.Name)
        parameters = read_method_parameters(_blob(row.Signature), self._resolve_token, self._corlib)
        return MethodRecord(
            name=name,
            declaring_type=owner,
            parameters=tuple(parameters),
            is_constructor=name in CONSTRUCTOR_NAMES,
            instructions=self._read_body(owner, name, row),
        )

    def _read_body(self, owner: TypeRef, name: str, row: Any) -> Optional[Tuple[Instruction, ...]]:
        if not row.Rva:
            return None
        try:
            offset = self._pe.get_offset_from_rva(row.Rva)
        except pefile.PEFormatError as e:
            logger.debug("Body of %s.%s is outside the image: %s", owner.full_name, name, e)
            return None
        if offset is None:
            return None
        try:
            body = CilMethodBody(_MethodBodyReader(self._pe, offset))
        except MethodBodyFormatError as e:
            logger.debug("Unreadable body for %s.%s: %s", owner.full_name, name, e)
            return None

        instructions: List[Instruction] = []
        for insn in body.instructions:
            if insn.opcode == OpCodes.Newobj:
                instructions.append(
                    Instruction(OpKind.CONSTRUCT, self._constructed_type(insn.operand))
                )
            elif insn.opcode == OpCodes.Stfld:
                declaring, field_type = self._stored_field(insn.operand)
                instructions.append(Instruction(OpKind.STORE_FIELD, field_type, declaring))
        return tuple(instructions)

    def _constructed_type(self, token: Any) -> Optional[TypeRef]:
        """Declaring type of the constructor a newobj calls."""
        if isinstance(token, InvalidToken) or not isinstance(token, Token):
            return None
        if token.table == TABLE_METHODDEF:
            owner = self._method_owner.get(token.rid)
            return self._typedef_refs.get(owner) if owner is not None else None
        if token.table == TABLE_MEMBERREF:
            row = self._row("MemberRef", token.rid)
            return self._coded_type(row.Class) if row is not None else None
        return None

    def _stored_field(self, token: Any) -> Tuple[Optional[TypeRef], Optional[TypeRef]]:
        """(declaring type, field type) for an stfld operand."""
        if isinstance(token, InvalidToken) or not isinstance(token, Token):
            return None, None
        if token.table == TABLE_FIELD:
            owner = self._field_owner.get(token.rid)
            declaring = self._typedef_refs.get(owner) if owner is not None else None
            return declaring, self._field_type(token.rid)
        if token.table == TABLE_MEMBERREF:
            row = self._row("MemberRef", token.rid)
            if row is None:
                return None, None
            field_type = read_field_signature(_blob(row.Signature), self._resolve_token, self._corlib)
            return self._coded_type(row.Class), field_type
        return None, None
