"""
errors.py – Exception taxonomy for EIP-712 hashing and signing.

Every failure raised by this package derives from ``EIP712Error``, which
is itself a ``ValueError``: all of them describe malformed input, a
malformed schema or an unusable key, never a transient condition, so
none of them is worth retrying.

    EIP712Error
    ├── UnknownTypeReference   schema names a struct it does not define
    ├── CyclicTypeReference    schema graph contains a cycle
    ├── TypeMismatch           value shape ≠ declared field type
    ├── ValueOutOfRange        integer does not fit its declared width
    ├── InvalidPrivateKey      scalar is 0 or ≥ secp256k1 order
    ├── InvalidSignature       (r, s, v) does not recover a public key
    └── MalformedInput         boundary-layer parsing failure
"""

from __future__ import annotations

from typing import Optional, Sequence


class EIP712Error(ValueError):
    """Base class for every error raised by eip712_signer."""


class UnknownTypeReference(EIP712Error):
    """A field type names a struct absent from the schema set."""

    def __init__(self, type_name: str, referenced_by: Optional[str] = None) -> None:
        self.type_name     = type_name
        self.referenced_by = referenced_by
        where = f" (referenced by {referenced_by!r})" if referenced_by else ""
        super().__init__(f"Unknown type reference {type_name!r}{where}")


class CyclicTypeReference(EIP712Error):
    """The transitive reference graph of a struct contains a cycle."""

    def __init__(self, path: Sequence[str]) -> None:
        self.path = tuple(path)
        super().__init__(f"Cyclic type reference: {' -> '.join(self.path)}")


class TypeMismatch(EIP712Error):
    """A value does not match the shape implied by its declared type."""

    def __init__(self, type_name: str, field: str, reason: str) -> None:
        self.type_name = type_name
        self.field     = field
        self.reason    = reason
        super().__init__(f"Type mismatch for {field!r} ({type_name}): {reason}")


class ValueOutOfRange(EIP712Error):
    """An integer value exceeds the bit width implied by its declared type."""

    def __init__(self, type_name: str, field: str, value: int) -> None:
        self.type_name = type_name
        self.field     = field
        self.value     = value
        super().__init__(f"Value {value} out of range for {field!r} ({type_name})")


class InvalidPrivateKey(EIP712Error):
    """The private scalar is zero or not below the secp256k1 group order."""


class InvalidSignature(EIP712Error):
    """A signature is malformed or does not recover to a curve point."""


class MalformedInput(EIP712Error):
    """Boundary-layer input (JSON, hex, environment) could not be parsed."""
