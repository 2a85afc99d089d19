"""
encoding.py – EIP-712 type encoding and struct hashing.

How it works
------------
1. A ``TypeSchema`` wraps the ``name → [fields]`` mapping as a directed
   graph.  Before anything is encoded, the part of the graph reachable
   from the root type is walked depth-first; unknown references and
   cycles fail fast instead of recursing forever.
2. ``encode_type`` renders ``Root(t1 n1,t2 n2)`` followed by every
   referenced struct, each once, sorted by name.
3. ``hash_struct`` hashes ``typeHash ‖ enc(field1) ‖ enc(field2) ‖ …``
   with every field occupying exactly one 32-byte slot; dynamic values,
   nested structs and arrays are collapsed to their keccak-256 hash.

Example
-------
    schema = TypeSchema({
        "Person": [{"name": "name", "type": "string"},
                   {"name": "wallet", "type": "address"}],
        "Mail":   [{"name": "from", "type": "Person"},
                   {"name": "to", "type": "Person"},
                   {"name": "contents", "type": "string"}],
    })
    encode_type(schema, "Mail")[0]
    # 'Mail(Person from,Person to,string contents)Person(string name,address wallet)'

References
----------
- EIP-712 spec : https://eips.ethereum.org/EIPS/eip-712
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any, Optional, Union

from eth_utils import is_hex_address, keccak
from pydantic import ValidationError

from .errors import (
    CyclicTypeReference,
    TypeMismatch,
    UnknownTypeReference,
    ValueOutOfRange,
)
from .types import TypedField

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Primitive type grammar
# ---------------------------------------------------------------------------

_INT_RE         = re.compile(r"^(u?)int([1-9]\d{0,2})$")
_FIXED_BYTES_RE = re.compile(r"^bytes([1-9]\d?)$")
_ARRAY_RE       = re.compile(r"^(.+)\[(\d*)\]$")

_ATOMIC_TYPES = frozenset({"address", "bool", "string", "bytes"})

FieldSpec = Union[TypedField, Mapping[str, str]]


def _int_width(type_: str) -> Optional[tuple[bool, int]]:
    """Return (signed, bits) for a valid intN / uintN type, else None."""
    m = _INT_RE.match(type_)
    if not m:
        return None
    bits = int(m.group(2))
    if bits % 8 or not (8 <= bits <= 256):
        return None
    return m.group(1) != "u", bits


def _fixed_bytes_len(type_: str) -> Optional[int]:
    """Return N for a valid bytesN type, else None."""
    m = _FIXED_BYTES_RE.match(type_)
    if not m:
        return None
    n = int(m.group(1))
    return n if 1 <= n <= 32 else None


def is_primitive(type_: str) -> bool:
    return (
        type_ in _ATOMIC_TYPES
        or _int_width(type_) is not None
        or _fixed_bytes_len(type_) is not None
    )


def split_array(type_: str) -> Optional[tuple[str, Optional[int]]]:
    """
    Split the outermost array dimension off a type.

    ``"Person[][3]"`` → ``("Person[]", 3)``; ``"uint8[]"`` → ``("uint8", None)``;
    non-array types return None.
    """
    m = _ARRAY_RE.match(type_)
    if not m:
        return None
    length = m.group(2)
    return m.group(1), int(length) if length else None


def base_type(type_: str) -> str:
    """Strip every array dimension: ``"Person[][3]"`` → ``"Person"``."""
    return type_.split("[", 1)[0]


# ---------------------------------------------------------------------------
# Schema graph
# ---------------------------------------------------------------------------

class TypeSchema:
    """
    Closed set of EIP-712 struct definitions.

    Parameters
    ----------
    types : mapping of struct name → ordered fields, each either a
            ``TypedField`` or a ``{"name": …, "type": …}`` dict
    """

    def __init__(self, types: Mapping[str, list[FieldSpec]]) -> None:
        self._types: dict[str, tuple[TypedField, ...]] = {
            name: tuple(_as_field(name, i, f) for i, f in enumerate(fields))
            for name, fields in types.items()
        }

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._types

    def __repr__(self) -> str:
        return f"TypeSchema({sorted(self._types)!r})"

    def fields(self, type_name: str) -> tuple[TypedField, ...]:
        try:
            return self._types[type_name]
        except KeyError:
            raise UnknownTypeReference(type_name) from None

    def references(self, type_name: str) -> list[str]:
        """Struct types directly referenced by ``type_name``, in field order."""
        refs: list[str] = []
        for f in self.fields(type_name):
            ref = base_type(f.type)
            if is_primitive(ref):
                continue
            if ref not in self._types:
                raise UnknownTypeReference(ref, referenced_by=type_name)
            if ref not in refs:
                refs.append(ref)
        return refs

    def dependencies(self, root: str) -> set[str]:
        """
        Every struct transitively referenced by ``root`` (root excluded).

        Raises UnknownTypeReference / CyclicTypeReference.
        """
        visiting: list[str] = []
        done:     set[str]  = set()

        def visit(name: str) -> None:
            if name in visiting:
                cycle = visiting[visiting.index(name):] + [name]
                raise CyclicTypeReference(cycle)
            if name in done:
                return
            visiting.append(name)
            for ref in self.references(name):
                visit(ref)
            visiting.pop()
            done.add(name)

        visit(root)
        done.discard(root)
        return done


def _as_field(type_name: str, index: int, spec: FieldSpec) -> TypedField:
    if isinstance(spec, TypedField):
        return spec
    try:
        return TypedField(name=spec["name"], type=spec["type"])
    except (KeyError, TypeError, ValidationError):
        raise TypeMismatch(
            type_name,
            f"{type_name}[{index}]",
            f"schema entry must have a non-empty 'name' and 'type', got {spec!r}",
        ) from None


def _as_schema(schema: Union[TypeSchema, Mapping[str, list[FieldSpec]]]) -> TypeSchema:
    return schema if isinstance(schema, TypeSchema) else TypeSchema(schema)


# ---------------------------------------------------------------------------
# TypeEncoder
# ---------------------------------------------------------------------------

def _render_struct(schema: TypeSchema, type_name: str) -> str:
    members = ",".join(f"{f.type} {f.name}" for f in schema.fields(type_name))
    return f"{type_name}({members})"


def encode_type(
    schema: Union[TypeSchema, Mapping[str, list[FieldSpec]]],
    root: str,
) -> tuple[str, bytes]:
    """
    Canonical EIP-712 type string of ``root`` and its keccak-256 type hash.

    The root struct comes first; referenced structs follow, each exactly
    once, sorted lexicographically by name.
    """
    schema = _as_schema(schema)
    deps   = sorted(schema.dependencies(root))
    type_string = "".join(_render_struct(schema, name) for name in [root, *deps])
    logger.debug("encodeType(%s) = %s", root, type_string)
    return type_string, keccak(text=type_string)


def hash_type(
    schema: Union[TypeSchema, Mapping[str, list[FieldSpec]]],
    root: str,
) -> bytes:
    return encode_type(schema, root)[1]


# ---------------------------------------------------------------------------
# StructHasher
# ---------------------------------------------------------------------------

def _coerce_bytes(type_: str, path: str, value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str) and value.startswith(("0x", "0X")):
        try:
            return bytes.fromhex(value[2:])
        except ValueError:
            raise TypeMismatch(type_, path, f"'{value}' is not valid hex") from None
    raise TypeMismatch(type_, path, f"expected bytes or 0x-hex, got {type(value).__name__}")


def _coerce_int(type_: str, path: str, value: Any) -> int:
    # bool is an int subclass; True must not silently encode as 1 here
    if isinstance(value, bool):
        raise TypeMismatch(type_, path, "expected an integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if text.lower().startswith(("0x", "-0x")):
                return int(text, 16)
            return int(text, 10)
        except ValueError:
            pass
    raise TypeMismatch(type_, path, f"expected an integer, got {value!r}")


def _encode_atomic(type_: str, path: str, value: Any) -> bytes:
    width = _int_width(type_)
    if width is not None:
        signed, bits = width
        n = _coerce_int(type_, path, value)
        if signed:
            lo, hi = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
        else:
            lo, hi = 0, (1 << bits) - 1
        if not (lo <= n <= hi):
            raise ValueOutOfRange(type_, path, n)
        return n.to_bytes(32, "big", signed=signed)

    if type_ == "address":
        if isinstance(value, str):
            if not is_hex_address(value):
                raise TypeMismatch(type_, path, f"'{value}' is not a 20-byte hex address")
            raw = bytes.fromhex(value[2:] if value.startswith(("0x", "0X")) else value)
        elif isinstance(value, (bytes, bytearray)):
            raw = bytes(value)
            if len(raw) != 20:
                raise TypeMismatch(type_, path, f"address must be 20 bytes, got {len(raw)}")
        else:
            raise TypeMismatch(type_, path, f"expected an address, got {type(value).__name__}")
        return raw.rjust(32, b"\x00")

    if type_ == "bool":
        if not isinstance(value, bool):
            raise TypeMismatch(type_, path, f"expected bool, got {type(value).__name__}")
        return int(value).to_bytes(32, "big")

    if type_ == "string":
        if not isinstance(value, str):
            raise TypeMismatch(type_, path, f"expected str, got {type(value).__name__}")
        return keccak(text=value)

    if type_ == "bytes":
        return keccak(_coerce_bytes(type_, path, value))

    size = _fixed_bytes_len(type_)
    if size is not None:
        raw = _coerce_bytes(type_, path, value)
        if len(raw) != size:
            raise TypeMismatch(type_, path, f"expected {size} bytes, got {len(raw)}")
        return raw.ljust(32, b"\x00")

    raise UnknownTypeReference(type_)


def encode_field(schema: TypeSchema, type_: str, value: Any, path: str = "") -> bytes:
    """Encode a single value of declared type ``type_`` into one 32-byte slot."""
    if value is None:
        raise TypeMismatch(type_, path, "missing value")

    array = split_array(type_)
    if array is not None:
        element_type, length = array
        if isinstance(value, (str, bytes, bytearray)) or not isinstance(value, (list, tuple)):
            raise TypeMismatch(type_, path, f"expected a list, got {type(value).__name__}")
        if length is not None and len(value) != length:
            raise TypeMismatch(type_, path, f"expected {length} elements, got {len(value)}")
        encoded = b"".join(
            encode_field(schema, element_type, item, f"{path}[{i}]")
            for i, item in enumerate(value)
        )
        return keccak(encoded)

    if type_ in schema:
        return _hash_struct(schema, type_, value, path)

    return _encode_atomic(type_, path, value)


def _encode_data(schema: TypeSchema, type_name: str, value: Any, path: str) -> bytes:
    if not isinstance(value, Mapping):
        raise TypeMismatch(type_name, path, f"expected a mapping, got {type(value).__name__}")
    parts = [hash_type(schema, type_name)]
    for f in schema.fields(type_name):
        field_path = f"{path}.{f.name}" if path else f.name
        if f.name not in value:
            raise TypeMismatch(f.type, field_path, "missing field")
        parts.append(encode_field(schema, f.type, value[f.name], field_path))
    return b"".join(parts)


def _hash_struct(schema: TypeSchema, type_name: str, value: Any, path: str) -> bytes:
    return keccak(_encode_data(schema, type_name, value, path))


def encode_data(
    schema: Union[TypeSchema, Mapping[str, list[FieldSpec]]],
    type_name: str,
    value: Mapping[str, Any],
) -> bytes:
    """``typeHash ‖ enc(field1) ‖ …`` – the struct hash pre-image."""
    schema = _as_schema(schema)
    schema.dependencies(type_name)
    return _encode_data(schema, type_name, value, "")


def hash_struct(
    schema: Union[TypeSchema, Mapping[str, list[FieldSpec]]],
    type_name: str,
    value: Mapping[str, Any],
) -> bytes:
    """
    EIP-712 ``hashStruct``: keccak-256 of ``encode_data``.

    Parameters
    ----------
    schema    : struct definitions (must be closed and acyclic from ``type_name``)
    type_name : struct ``value`` is an instance of
    value     : value tree; extra keys are ignored, missing ones are an error

    Raises
    ------
    UnknownTypeReference, CyclicTypeReference, TypeMismatch, ValueOutOfRange
    """
    struct_hash = keccak(encode_data(schema, type_name, value))
    logger.debug("hashStruct(%s) = 0x%s", type_name, struct_hash.hex())
    return struct_hash
