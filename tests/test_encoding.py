"""
tests/test_encoding.py – Unit tests for EIP-712 type encoding and struct hashing.

These tests run entirely offline.
They verify that:
  1. encode_type() renders the canonical type string (root first, then
     referenced structs once each, sorted by name).
  2. Unknown and cyclic references fail fast.
  3. Every primitive field type encodes into one 32-byte slot.
  4. Structs and arrays collapse to their keccak-256 hash.
  5. Bad value shapes raise TypeMismatch / ValueOutOfRange.
  6. Results match the EIP-712 reference example.
"""

from __future__ import annotations

import pytest
from eth_utils import keccak

from eip712_signer.encoding import (
    TypeSchema,
    encode_data,
    encode_field,
    encode_type,
    hash_struct,
    hash_type,
    split_array,
)
from eip712_signer.errors import (
    CyclicTypeReference,
    TypeMismatch,
    UnknownTypeReference,
    ValueOutOfRange,
)
from eip712_signer.types import TypedField


# ---------------------------------------------------------------------------
# Test fixtures
# ---------------------------------------------------------------------------

# The "Ether Mail" example from the EIP-712 specification
MAIL_TYPES = {
    "Person": [
        {"name": "name",   "type": "string"},
        {"name": "wallet", "type": "address"},
    ],
    "Mail": [
        {"name": "from",     "type": "Person"},
        {"name": "to",       "type": "Person"},
        {"name": "contents", "type": "string"},
    ],
}

MAIL_MESSAGE = {
    "from": {"name": "Cow", "wallet": "0xCD2a3d9F938E13CD947Ec05AbC7FE734Df8DD826"},
    "to":   {"name": "Bob", "wallet": "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"},
    "contents": "Hello, Bob!",
}

MAIL_TYPE_STRING = "Mail(Person from,Person to,string contents)Person(string name,address wallet)"
MAIL_TYPE_HASH   = "a0cedeb2dc280ba39b857546d74f5549c3a1d7bdc2dd96bf881f76108e23dac2"
MAIL_STRUCT_HASH = "c52c0ee5d84264471806290a3f2c4cecfc5490626bf912d01f240d7a274b371e"

EMPTY = TypeSchema({})


def _slot(n: int) -> bytes:
    return n.to_bytes(32, "big")


# ---------------------------------------------------------------------------
# TypeEncoder
# ---------------------------------------------------------------------------

class TestEncodeType:
    def test_mail_type_string(self) -> None:
        type_string, type_hash = encode_type(MAIL_TYPES, "Mail")
        assert type_string == MAIL_TYPE_STRING
        assert type_hash.hex() == MAIL_TYPE_HASH

    def test_hash_type_matches_encode_type(self) -> None:
        assert hash_type(MAIL_TYPES, "Mail") == encode_type(MAIL_TYPES, "Mail")[1]

    def test_leaf_type_has_no_dependencies(self) -> None:
        type_string, _ = encode_type(MAIL_TYPES, "Person")
        assert type_string == "Person(string name,address wallet)"

    def test_deterministic(self) -> None:
        assert encode_type(MAIL_TYPES, "Mail") == encode_type(MAIL_TYPES, "Mail")

    def test_accepts_typed_field_instances(self) -> None:
        schema = TypeSchema({
            name: [TypedField(**f) for f in fields] for name, fields in MAIL_TYPES.items()
        })
        assert encode_type(schema, "Mail")[0] == MAIL_TYPE_STRING

    def test_transitive_dependencies_sorted_and_unique(self) -> None:
        types = {
            "Root":  [{"name": "z", "type": "Zeta"}, {"name": "a", "type": "Alpha[]"},
                      {"name": "z2", "type": "Zeta"}],
            "Zeta":  [{"name": "m", "type": "Mid"}],
            "Alpha": [{"name": "m", "type": "Mid[2]"}],
            "Mid":   [{"name": "x", "type": "uint8"}],
        }
        type_string, _ = encode_type(types, "Root")
        assert type_string == (
            "Root(Zeta z,Alpha[] a,Zeta z2)"
            "Alpha(Mid[2] m)"
            "Mid(uint8 x)"
            "Zeta(Mid m)"
        )

    def test_unrelated_types_do_not_affect_hash(self) -> None:
        a = dict(MAIL_TYPES, Unused=[{"name": "x", "type": "uint256"}])
        b = dict(MAIL_TYPES, Unused=[{"name": "y", "type": "bool"}, {"name": "x", "type": "uint256"}])
        assert hash_type(a, "Mail") == hash_type(b, "Mail")

    def test_unknown_reference(self) -> None:
        types = {"Mail": [{"name": "from", "type": "Person"}]}
        with pytest.raises(UnknownTypeReference) as exc_info:
            encode_type(types, "Mail")
        assert exc_info.value.type_name == "Person"
        assert exc_info.value.referenced_by == "Mail"

    def test_unknown_root(self) -> None:
        with pytest.raises(UnknownTypeReference):
            encode_type(MAIL_TYPES, "Missing")

    @pytest.mark.parametrize("bad_type", ["uint", "uint7", "int512", "bytes0", "bytes33", "uint08", "int008", "bytes01"])
    def test_malformed_primitive_is_unknown(self, bad_type: str) -> None:
        types = {"T": [{"name": "x", "type": bad_type}]}
        with pytest.raises(UnknownTypeReference):
            encode_type(types, "T")

    @pytest.mark.parametrize("entry", [
        {"type": "string"},
        {"name": "contents"},
        {"name": "contents", "type": ""},
        "string contents",
    ])
    def test_malformed_schema_entry(self, entry: object) -> None:
        types = {"Mail": [{"name": "from", "type": "address"}, entry]}
        with pytest.raises(TypeMismatch) as exc_info:
            hash_struct(types, "Mail", {"from": "0x" + "aa" * 20, "contents": "x"})
        assert exc_info.value.type_name == "Mail"
        assert exc_info.value.field == "Mail[1]"

    def test_malformed_schema_entry_in_encode_type(self) -> None:
        with pytest.raises(TypeMismatch, match="'name' and 'type'"):
            encode_type({"Mail": [{"type": "string"}]}, "Mail")

    def test_self_reference_is_cyclic(self) -> None:
        types = {"Node": [{"name": "next", "type": "Node"}]}
        with pytest.raises(CyclicTypeReference) as exc_info:
            encode_type(types, "Node")
        assert exc_info.value.path == ("Node", "Node")

    def test_indirect_cycle_through_array(self) -> None:
        types = {
            "A": [{"name": "b", "type": "B"}],
            "B": [{"name": "c", "type": "C[]"}],
            "C": [{"name": "a", "type": "A"}],
        }
        with pytest.raises(CyclicTypeReference, match="A -> B -> C -> A"):
            encode_type(types, "A")

    def test_cycle_detected_before_hashing(self) -> None:
        types = {"Node": [{"name": "children", "type": "Node[]"}]}
        with pytest.raises(CyclicTypeReference):
            hash_struct(types, "Node", {"children": []})


class TestSplitArray:
    @pytest.mark.parametrize(
        "type_, expected",
        [
            ("uint8[]",     ("uint8", None)),
            ("Person[3]",   ("Person", 3)),
            ("Person[][3]", ("Person[]", 3)),
            ("address",     None),
        ],
    )
    def test_split(self, type_: str, expected: object) -> None:
        assert split_array(type_) == expected


# ---------------------------------------------------------------------------
# Field encoding
# ---------------------------------------------------------------------------

class TestEncodeAtomic:
    def test_uint(self) -> None:
        assert encode_field(EMPTY, "uint256", 1) == _slot(1)

    def test_uint_max(self) -> None:
        assert encode_field(EMPTY, "uint8", 255) == _slot(255)

    def test_uint_overflow(self) -> None:
        with pytest.raises(ValueOutOfRange):
            encode_field(EMPTY, "uint8", 256)

    def test_uint_negative(self) -> None:
        with pytest.raises(ValueOutOfRange):
            encode_field(EMPTY, "uint256", -1)

    def test_uint256_overflow(self) -> None:
        with pytest.raises(ValueOutOfRange):
            encode_field(EMPTY, "uint256", 2 ** 256)

    def test_int_negative_twos_complement(self) -> None:
        assert encode_field(EMPTY, "int8", -1) == b"\xff" * 32

    def test_int_range(self) -> None:
        assert encode_field(EMPTY, "int8", -128) == (-128).to_bytes(32, "big", signed=True)
        with pytest.raises(ValueOutOfRange):
            encode_field(EMPTY, "int8", 128)
        with pytest.raises(ValueOutOfRange):
            encode_field(EMPTY, "int8", -129)

    def test_int_from_decimal_and_hex_strings(self) -> None:
        assert encode_field(EMPTY, "uint256", "31337") == _slot(31337)
        assert encode_field(EMPTY, "uint256", "0x7a69") == _slot(31337)

    def test_int_rejects_bool(self) -> None:
        with pytest.raises(TypeMismatch, match="bool"):
            encode_field(EMPTY, "uint256", True)

    def test_int_rejects_non_numeric(self) -> None:
        with pytest.raises(TypeMismatch):
            encode_field(EMPTY, "uint256", "abc")

    def test_address_left_padded(self) -> None:
        encoded = encode_field(EMPTY, "address", "0x" + "aa" * 20)
        assert encoded == b"\x00" * 12 + b"\xaa" * 20

    def test_address_from_bytes(self) -> None:
        assert encode_field(EMPTY, "address", b"\x01" * 20) == b"\x00" * 12 + b"\x01" * 20

    @pytest.mark.parametrize("value", ["0x1234", "0x" + "zz" * 20, b"\x01" * 19, 42])
    def test_address_wrong_shape(self, value: object) -> None:
        with pytest.raises(TypeMismatch):
            encode_field(EMPTY, "address", value)

    def test_bool(self) -> None:
        assert encode_field(EMPTY, "bool", True) == _slot(1)
        assert encode_field(EMPTY, "bool", False) == _slot(0)

    def test_bool_rejects_int(self) -> None:
        with pytest.raises(TypeMismatch):
            encode_field(EMPTY, "bool", 1)

    def test_string_is_hashed(self) -> None:
        assert encode_field(EMPTY, "string", "hello") == keccak(text="hello")

    def test_string_rejects_bytes(self) -> None:
        with pytest.raises(TypeMismatch):
            encode_field(EMPTY, "string", b"hello")

    def test_dynamic_bytes_is_hashed(self) -> None:
        assert encode_field(EMPTY, "bytes", "0xdeadbeef") == keccak(b"\xde\xad\xbe\xef")
        assert encode_field(EMPTY, "bytes", b"\xde\xad\xbe\xef") == keccak(b"\xde\xad\xbe\xef")

    def test_fixed_bytes_right_padded(self) -> None:
        assert encode_field(EMPTY, "bytes4", "0xdeadbeef") == b"\xde\xad\xbe\xef" + b"\x00" * 28

    def test_bytes32_passthrough(self) -> None:
        assert encode_field(EMPTY, "bytes32", b"\x07" * 32) == b"\x07" * 32

    def test_fixed_bytes_wrong_length(self) -> None:
        with pytest.raises(TypeMismatch, match="expected 32 bytes"):
            encode_field(EMPTY, "bytes32", "0x1234")

    def test_fixed_bytes_bad_hex(self) -> None:
        with pytest.raises(TypeMismatch, match="not valid hex"):
            encode_field(EMPTY, "bytes2", "0xzzzz")

    def test_none_is_mismatch(self) -> None:
        with pytest.raises(TypeMismatch, match="missing"):
            encode_field(EMPTY, "string", None)


class TestEncodeArray:
    def test_dynamic_array(self) -> None:
        expected = keccak(_slot(1) + _slot(2) + _slot(3))
        assert encode_field(EMPTY, "uint256[]", [1, 2, 3]) == expected

    def test_empty_array(self) -> None:
        assert encode_field(EMPTY, "address[]", []) == keccak(b"")

    def test_string_array_hashes_each_element(self) -> None:
        expected = keccak(keccak(text="a") + keccak(text="b"))
        assert encode_field(EMPTY, "string[]", ["a", "b"]) == expected

    def test_fixed_array_length_enforced(self) -> None:
        assert encode_field(EMPTY, "uint8[2]", [1, 2]) == keccak(_slot(1) + _slot(2))
        with pytest.raises(TypeMismatch, match="expected 2 elements"):
            encode_field(EMPTY, "uint8[2]", [1, 2, 3])

    def test_nested_array(self) -> None:
        inner = keccak(_slot(1))
        assert encode_field(EMPTY, "uint8[][]", [[1], [1]]) == keccak(inner + inner)

    def test_array_of_structs(self) -> None:
        schema = TypeSchema(MAIL_TYPES)
        people = [MAIL_MESSAGE["from"], MAIL_MESSAGE["to"]]
        expected = keccak(b"".join(hash_struct(schema, "Person", p) for p in people))
        assert encode_field(schema, "Person[]", people) == expected

    def test_string_is_not_an_array(self) -> None:
        with pytest.raises(TypeMismatch, match="expected a list"):
            encode_field(EMPTY, "uint8[]", "123")

    def test_element_error_path(self) -> None:
        with pytest.raises(ValueOutOfRange) as exc_info:
            encode_field(EMPTY, "uint8[]", [1, 300], "values")
        assert exc_info.value.field == "values[1]"


# ---------------------------------------------------------------------------
# StructHasher
# ---------------------------------------------------------------------------

class TestHashStruct:
    def test_reference_struct_hash(self) -> None:
        assert hash_struct(MAIL_TYPES, "Mail", MAIL_MESSAGE).hex() == MAIL_STRUCT_HASH

    def test_encode_data_layout(self) -> None:
        schema = TypeSchema(MAIL_TYPES)
        data = encode_data(schema, "Mail", MAIL_MESSAGE)
        assert len(data) == 32 * 4
        assert data[:32] == hash_type(schema, "Mail")
        assert data[32:64] == hash_struct(schema, "Person", MAIL_MESSAGE["from"])
        assert data[96:] == keccak(text="Hello, Bob!")

    def test_field_order_is_semantic(self) -> None:
        swapped = {
            "Person": MAIL_TYPES["Person"],
            "Mail": [
                {"name": "to",       "type": "Person"},
                {"name": "from",     "type": "Person"},
                {"name": "contents", "type": "string"},
            ],
        }
        assert hash_struct(swapped, "Mail", MAIL_MESSAGE) != hash_struct(MAIL_TYPES, "Mail", MAIL_MESSAGE)

    def test_extra_keys_ignored(self) -> None:
        message = dict(MAIL_MESSAGE, unused="ignored")
        assert hash_struct(MAIL_TYPES, "Mail", message).hex() == MAIL_STRUCT_HASH

    def test_missing_field(self) -> None:
        message = {k: v for k, v in MAIL_MESSAGE.items() if k != "contents"}
        with pytest.raises(TypeMismatch) as exc_info:
            hash_struct(MAIL_TYPES, "Mail", message)
        assert exc_info.value.field == "contents"

    def test_missing_nested_field_path(self) -> None:
        message = dict(MAIL_MESSAGE, to={"name": "Bob"})
        with pytest.raises(TypeMismatch) as exc_info:
            hash_struct(MAIL_TYPES, "Mail", message)
        assert exc_info.value.field == "to.wallet"

    def test_struct_value_must_be_mapping(self) -> None:
        message = dict(MAIL_MESSAGE, to="0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB")
        with pytest.raises(TypeMismatch, match="mapping"):
            hash_struct(MAIL_TYPES, "Mail", message)

    def test_null_struct_is_mismatch(self) -> None:
        message = dict(MAIL_MESSAGE, to=None)
        with pytest.raises(TypeMismatch):
            hash_struct(MAIL_TYPES, "Mail", message)
