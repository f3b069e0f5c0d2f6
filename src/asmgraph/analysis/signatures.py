"""ECMA-335 signature blob decoding (field, method and type-spec signatures)."""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, List, Optional, Tuple

from dnfile.utils import read_compressed_int

from .metadata import TypeRef

# Element types (ECMA-335 II.23.1.16)
ELEMENT_TYPE_VOID = 0x01
ELEMENT_TYPE_STRING = 0x0E
ELEMENT_TYPE_PTR = 0x0F
ELEMENT_TYPE_BYREF = 0x10
ELEMENT_TYPE_VALUETYPE = 0x11
ELEMENT_TYPE_CLASS = 0x12
ELEMENT_TYPE_VAR = 0x13
ELEMENT_TYPE_ARRAY = 0x14
ELEMENT_TYPE_GENERICINST = 0x15
ELEMENT_TYPE_TYPEDBYREF = 0x16
ELEMENT_TYPE_FNPTR = 0x1B
ELEMENT_TYPE_OBJECT = 0x1C
ELEMENT_TYPE_SZARRAY = 0x1D
ELEMENT_TYPE_MVAR = 0x1E
ELEMENT_TYPE_CMOD_REQD = 0x1F
ELEMENT_TYPE_CMOD_OPT = 0x20
ELEMENT_TYPE_SENTINEL = 0x41
ELEMENT_TYPE_PINNED = 0x45

FIELD_SIG = 0x06
SIG_GENERIC = 0x10

_VALUE_PRIMITIVES: dict[int, str] = {
    ELEMENT_TYPE_VOID: "System.Void",
    0x02: "System.Boolean",
    0x03: "System.Char",
    0x04: "System.SByte",
    0x05: "System.Byte",
    0x06: "System.Int16",
    0x07: "System.UInt16",
    0x08: "System.Int32",
    0x09: "System.UInt32",
    0x0A: "System.Int64",
    0x0B: "System.UInt64",
    0x0C: "System.Single",
    0x0D: "System.Double",
    ELEMENT_TYPE_TYPEDBYREF: "System.TypedReference",
    0x18: "System.IntPtr",
    0x19: "System.UIntPtr",
}

_REFERENCE_PRIMITIVES: dict[int, str] = {
    ELEMENT_TYPE_STRING: "System.String",
    ELEMENT_TYPE_OBJECT: "System.Object",
}

# TypeDefOrRefOrSpecEncoded tag -> table name
_TYPE_TOKEN_TABLES = ("TypeDef", "TypeRef", "TypeSpec")

# (table name, rid) -> TypeRef, or None when the row cannot be resolved
TokenResolver = Callable[[str, int], Optional[TypeRef]]


class SignatureError(ValueError):
    """Raised for truncated or malformed signature blobs."""


class SignatureReader:
    """
    Sequential reader over one signature blob.

    Types that are not nominal (arrays, pointers, generic parameters, function
    pointers) decode to None. By-ref types decode to their element type.
    """

    def __init__(self, data: bytes, resolve_token: TokenResolver, corlib: str) -> None:
        self._data = bytes(data)
        self._pos = 0
        self._resolve_token = resolve_token
        self._corlib = corlib

    @property
    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def read_byte(self) -> int:
        if self._pos >= len(self._data):
            raise SignatureError("Unexpected end of signature")
        value = self._data[self._pos]
        self._pos += 1
        return value

    def peek_byte(self) -> int:
        if self._pos >= len(self._data):
            raise SignatureError("Unexpected end of signature")
        return self._data[self._pos]

    def _read_compressed(self) -> Tuple[int, int]:
        """Return (raw value, encoded width in bytes)."""
        decoded = read_compressed_int(self._data[self._pos : self._pos + 4])
        if decoded is None:
            raise SignatureError(f"Invalid compressed integer at offset {self._pos}")
        self._pos += decoded[1]
        return decoded

    def read_compressed_uint(self) -> int:
        return self._read_compressed()[0]

    def read_compressed_int(self) -> int:
        raw, width = self._read_compressed()
        value = raw >> 1
        if raw & 1:
            value -= {1: 0x40, 2: 0x2000, 4: 0x10000000}[width]
        return value

    def read_type_token(self) -> Optional[TypeRef]:
        coded = self.read_compressed_uint()
        tag, rid = coded & 0x3, coded >> 2
        if tag >= len(_TYPE_TOKEN_TABLES):
            raise SignatureError(f"Invalid TypeDefOrRef tag {tag}")
        return self._resolve_token(_TYPE_TOKEN_TABLES[tag], rid)

    def _skip_custom_mods(self) -> None:
        while not self.at_end and self.peek_byte() in (ELEMENT_TYPE_CMOD_REQD, ELEMENT_TYPE_CMOD_OPT):
            self.read_byte()
            self.read_compressed_uint()

    def read_type(self) -> Optional[TypeRef]:
        self._skip_custom_mods()
        et = self.read_byte()
        while et == ELEMENT_TYPE_PINNED:
            self._skip_custom_mods()
            et = self.read_byte()

        if et in _VALUE_PRIMITIVES:
            return TypeRef(_VALUE_PRIMITIVES[et], self._corlib, is_value_type=True)
        if et in _REFERENCE_PRIMITIVES:
            return TypeRef(_REFERENCE_PRIMITIVES[et], self._corlib)
        if et == ELEMENT_TYPE_CLASS:
            ref = self.read_type_token()
            return replace(ref, is_value_type=False) if ref is not None else None
        if et == ELEMENT_TYPE_VALUETYPE:
            ref = self.read_type_token()
            return replace(ref, is_value_type=True) if ref is not None else None
        if et == ELEMENT_TYPE_BYREF:
            return self.read_type()
        if et in (ELEMENT_TYPE_PTR, ELEMENT_TYPE_SZARRAY):
            self.read_type()
            return None
        if et == ELEMENT_TYPE_ARRAY:
            self.read_type()
            self.read_compressed_uint()  # rank
            for _ in range(self.read_compressed_uint()):
                self.read_compressed_uint()
            for _ in range(self.read_compressed_uint()):
                self.read_compressed_int()
            return None
        if et in (ELEMENT_TYPE_VAR, ELEMENT_TYPE_MVAR):
            self.read_compressed_uint()
            return None
        if et == ELEMENT_TYPE_GENERICINST:
            kind = self.read_byte()
            if kind not in (ELEMENT_TYPE_CLASS, ELEMENT_TYPE_VALUETYPE):
                raise SignatureError(f"Invalid GENERICINST kind 0x{kind:02x}")
            ref = self.read_type_token()
            for _ in range(self.read_compressed_uint()):
                self.read_type()
            if ref is None:
                return None
            return replace(
                ref,
                is_generic_instance=True,
                is_value_type=kind == ELEMENT_TYPE_VALUETYPE,
            )
        if et == ELEMENT_TYPE_FNPTR:
            self.read_method_parameters()
            return None
        raise SignatureError(f"Unsupported element type 0x{et:02x}")

    def _read_param(self) -> Optional[TypeRef]:
        self._skip_custom_mods()
        if self.peek_byte() == ELEMENT_TYPE_SENTINEL:
            self.read_byte()
        return self.read_type()

    def read_method_parameters(self) -> List[Optional[TypeRef]]:
        """Read a MethodDefSig / MethodRefSig and return its parameter types."""
        conv = self.read_byte()
        if conv & SIG_GENERIC:
            self.read_compressed_uint()  # generic parameter count
        count = self.read_compressed_uint()
        self._read_param()  # return type
        return [self._read_param() for _ in range(count)]

    def read_field_type(self) -> Optional[TypeRef]:
        """Read a FieldSig and return the field type."""
        lead = self.read_byte()
        if lead & 0x0F != FIELD_SIG:
            raise SignatureError(f"Not a field signature (0x{lead:02x})")
        return self.read_type()


def read_field_signature(blob: bytes, resolve_token: TokenResolver, corlib: str) -> Optional[TypeRef]:
    return SignatureReader(blob, resolve_token, corlib).read_field_type()


def read_method_parameters(
    blob: bytes, resolve_token: TokenResolver, corlib: str
) -> List[Optional[TypeRef]]:
    return SignatureReader(blob, resolve_token, corlib).read_method_parameters()


def read_type_spec(blob: bytes, resolve_token: TokenResolver, corlib: str) -> Optional[TypeRef]:
    return SignatureReader(blob, resolve_token, corlib).read_type()
