"""
types.py – Pydantic v2 models for EIP-712 typed data and signatures.

Field names follow Python conventions; the EIP-712 JSON names
(``chainId``, ``verifyingContract``, ``primaryType``) are accepted as
aliases and used on serialisation, so a standard ``eth_signTypedData_v4``
payload can be validated as-is:

    payload = TypedMessage.model_validate(json.loads(raw))
    payload.model_dump(by_alias=True, exclude_none=True)

Validation
----------
All models are validated on construction.  Invalid data raises
pydantic.ValidationError with field-level detail rather than silently
passing bad values through to hashing or signing.
"""

from __future__ import annotations

from enum import IntEnum, unique
from typing import Any, Optional

from eth_utils import is_hex_address
from pydantic import BaseModel, Field, field_validator, model_validator

from .errors import InvalidSignature


# ---------------------------------------------------------------------------
# secp256k1 group order (shared by Signature validation and ecdsa.py)
# ---------------------------------------------------------------------------

SECP256K1_N: int = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

_UINT64_MAX = 2 ** 64 - 1


# ---------------------------------------------------------------------------
# Well-known chains  (plain IntEnum – not a Pydantic model)
# ---------------------------------------------------------------------------

@unique
class Chain(IntEnum):
    """EVM chain IDs commonly used in EIP-712 domains."""
    MAINNET = 1
    HOLESKY = 17000
    ANVIL   = 31337
    SEPOLIA = 11155111

    @property
    def chain_id(self) -> int:
        return int(self)

    @property
    def label(self) -> str:
        return self.name.lower()


# ---------------------------------------------------------------------------
# Shared validator helpers
# ---------------------------------------------------------------------------

def _validate_hex_bytes(v: str, length: int, field: str) -> str:
    """Reject strings that are not 0x-prefixed hex of exactly ``length`` bytes."""
    if not v.startswith(("0x", "0X")):
        raise ValueError(f"{field} must be a 0x-prefixed hex string")
    body = v[2:]
    try:
        raw = bytes.fromhex(body)
    except ValueError:
        raise ValueError(f"{field} '{v}' is not valid hex")
    if len(raw) != length:
        raise ValueError(f"{field} must be {length} bytes, got {len(raw)}")
    return v


def _bytes_to_hex(v: Any) -> Any:
    if isinstance(v, (bytes, bytearray)):
        return "0x" + bytes(v).hex()
    return v


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

class TypedField(BaseModel):
    """One ``(name, type)`` member of an EIP-712 struct definition."""
    name: str
    type: str

    @field_validator("name", "type")
    @classmethod
    def validate_non_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("field name and type must be non-empty")
        return v.strip()

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Domain
# ---------------------------------------------------------------------------

# Canonical EIP712Domain member order and types.  Only the members that
# are actually present on a Domain appear in its type string.
DOMAIN_FIELD_TYPES: tuple[tuple[str, str], ...] = (
    ("name",              "string"),
    ("version",           "string"),
    ("chainId",           "uint256"),
    ("verifyingContract", "address"),
    ("salt",              "bytes32"),
)


class Domain(BaseModel):
    """
    EIP-712 domain.  Every member is optional.

    name               : human-readable signing domain (dapp / protocol)
    version            : current major version of the signing domain
    chain_id           : EIP-155 chain ID (uint64)
    verifying_contract : address of the contract that will verify the signature
    salt               : 32-byte disambiguator, 0x-prefixed hex
    """
    name:               Optional[str] = None
    version:            Optional[str] = None
    chain_id:           Optional[int] = Field(default=None, alias="chainId")
    verifying_contract: Optional[str] = Field(default=None, alias="verifyingContract")
    salt:               Optional[str] = None

    model_config = {"populate_by_name": True, "extra": "forbid"}

    @field_validator("chain_id")
    @classmethod
    def validate_chain_id(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not (0 <= v <= _UINT64_MAX):
            raise ValueError(f"chainId must be a uint64, got {v}")
        return v

    @field_validator("verifying_contract", mode="before")
    @classmethod
    def validate_verifying_contract(cls, v: Any) -> Any:
        v = _bytes_to_hex(v)
        if v is not None and not (isinstance(v, str) and is_hex_address(v)):
            raise ValueError(f"verifyingContract '{v}' is not a 20-byte hex address")
        return v

    @field_validator("salt", mode="before")
    @classmethod
    def validate_salt(cls, v: Any) -> Any:
        v = _bytes_to_hex(v)
        if v is None:
            return v
        if not isinstance(v, str):
            raise ValueError("salt must be 32 bytes or a 0x-prefixed hex string")
        return _validate_hex_bytes(v, 32, "salt")

    def fields(self) -> list[TypedField]:
        """Present members in canonical EIP712Domain order."""
        values = self.to_message()
        return [
            TypedField(name=name, type=type_)
            for name, type_ in DOMAIN_FIELD_TYPES
            if name in values
        ]

    def to_message(self) -> dict[str, Any]:
        """The domain as an EIP-712 value tree (absent members dropped)."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Full typed-data payload
# ---------------------------------------------------------------------------

class TypedMessage(BaseModel):
    """
    A complete ``eth_signTypedData_v4`` payload.

    types        : struct definitions; an ``EIP712Domain`` entry is optional
                   and, if given, must list exactly the present domain fields
    primary_type : name of the struct ``message`` is an instance of
    domain       : the signing domain
    message      : value tree matching ``types[primary_type]``
    """
    types:        dict[str, list[TypedField]]
    primary_type: str = Field(alias="primaryType")
    domain:       Domain = Field(default_factory=Domain)
    message:      dict[str, Any]

    model_config = {"populate_by_name": True}

    @field_validator("primary_type")
    @classmethod
    def validate_primary_type(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("primaryType must be non-empty")
        if v == "EIP712Domain":
            raise ValueError("primaryType cannot be EIP712Domain")
        return v

    @model_validator(mode="after")
    def validate_domain_type(self) -> "TypedMessage":
        declared = self.types.get("EIP712Domain")
        if declared is not None and declared != self.domain.fields():
            declared_names = [f.name for f in declared]
            present_names  = [f.name for f in self.domain.fields()]
            raise ValueError(
                f"EIP712Domain type lists {declared_names} "
                f"but the domain provides {present_names}"
            )
        return self

    def message_types(self) -> dict[str, list[TypedField]]:
        """Struct definitions without the EIP712Domain entry."""
        return {k: v for k, v in self.types.items() if k != "EIP712Domain"}


# ---------------------------------------------------------------------------
# Signature
# ---------------------------------------------------------------------------

class Signature(BaseModel):
    """
    A recoverable secp256k1 ECDSA signature.

    r, s : signature scalars, 0 < r, s < n
    v    : recovery identifier, 27/28 (Ethereum convention) or 0/1
    """
    r: int
    s: int
    v: int

    model_config = {"frozen": True}

    @field_validator("r", "s")
    @classmethod
    def validate_scalar(cls, v: int) -> int:
        if not (0 < v < SECP256K1_N):
            raise ValueError("signature scalar out of range (0, n)")
        return v

    @field_validator("v")
    @classmethod
    def validate_v(cls, v: int) -> int:
        if v not in (0, 1, 27, 28):
            raise ValueError(f"v must be one of 0, 1, 27, 28, got {v}")
        return v

    @property
    def recovery_id(self) -> int:
        """Parity of R.y, independent of the v convention."""
        return self.v - 27 if self.v >= 27 else self.v

    @property
    def is_canonical(self) -> bool:
        """True if s lies in the lower half of the curve order."""
        return self.s <= SECP256K1_N // 2

    def to_bytes(self) -> bytes:
        """65-byte r ‖ s ‖ v serialisation."""
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + bytes([self.v])

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Signature":
        if len(raw) != 65:
            raise InvalidSignature(f"signature must be 65 bytes, got {len(raw)}")
        try:
            return cls(
                r=int.from_bytes(raw[:32], "big"),
                s=int.from_bytes(raw[32:64], "big"),
                v=raw[64],
            )
        except ValueError as exc:
            raise InvalidSignature(str(exc)) from exc

    @classmethod
    def from_hex(cls, value: str) -> "Signature":
        try:
            raw = bytes.fromhex(value.removeprefix("0x").removeprefix("0X"))
        except ValueError as exc:
            raise InvalidSignature(f"signature '{value}' is not valid hex") from exc
        return cls.from_bytes(raw)
