"""
signing.py – EIP-712 domain separation, digest assembly and typed-data signing.

EIP-712 binds a signature to a specific contract, chain and version so
that the same message cannot be replayed in another context.

How it works
------------
1. Build the EIP-712 domain separator from the domain fields that are
   actually present (name, version, chainId, verifyingContract, salt,
   in that order).  Absent fields are left out of the type string,
   never zero-filled.
2. Hash the message against its primary type (see encoding.py).
3. digest = keccak256(0x19 ‖ 0x01 ‖ domainSeparator ‖ structHash)
4. Sign the digest with a deterministic secp256k1 signature (see
   ecdsa.py) – this produces an r, s, v signature any EIP-712 verifier
   (``ecrecover``) accepts.

Usage
-----
    payload = {
        "types": {"Mail": [{"name": "contents", "type": "string"}]},
        "primaryType": "Mail",
        "domain": {"name": "Test", "version": "1", "chainId": 1},
        "message": {"contents": "hello"},
    }
    sig = sign_typed_data(payload, private_key)
    sig.to_hex()                         # '0x…' (65 bytes)
    recover_signer(payload, sig)         # checksummed signer address

References
----------
- EIP-712 spec : https://eips.ethereum.org/EIPS/eip-712
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional, Union

from eth_account.messages import SignableMessage
from eth_utils import keccak

from .ecdsa import PrivateKeyLike, recover_address, sign_digest
from .encoding import TypeSchema, hash_struct
from .errors import TypeMismatch
from .types import Domain, Signature, TypedMessage

logger = logging.getLogger(__name__)

# Version byte pair that distinguishes EIP-712 digests from other
# EIP-191 signable formats.
EIP712_PREFIX = b"\x19\x01"

TypedMessageLike = Union[TypedMessage, Mapping[str, Any]]
DomainLike       = Union[Domain, Mapping[str, Any]]


# ---------------------------------------------------------------------------
# Domain separator
# ---------------------------------------------------------------------------

def build_domain(
    name: Optional[str] = None,
    version: Optional[str] = None,
    chain_id: Optional[int] = None,
    verifying_contract: Optional[str] = None,
    salt: Optional[Union[str, bytes]] = None,
) -> Domain:
    """
    Construct an EIP-712 domain.  Every member is optional.

    Parameters
    ----------
    name                : Domain name (dapp or protocol name)
    version             : Domain version
    chain_id            : EVM chain ID (tip: use ``Chain.ANVIL.chain_id``)
    verifying_contract  : Address of the contract that verifies signatures
    salt                : 32-byte disambiguator (bytes or 0x-hex)
    """
    return Domain(
        name=name,
        version=version,
        chain_id=chain_id,
        verifying_contract=verifying_contract,
        salt=salt,
    )


def _as_domain(domain: DomainLike) -> Domain:
    return domain if isinstance(domain, Domain) else Domain.model_validate(dict(domain))


def domain_type(domain: DomainLike) -> dict[str, list[dict[str, str]]]:
    """The ``EIP712Domain`` schema entry for exactly the present fields."""
    fields = _as_domain(domain).fields()
    return {"EIP712Domain": [f.model_dump() for f in fields]}


def hash_domain(domain: DomainLike) -> bytes:
    """32-byte EIP-712 domain separator."""
    domain = _as_domain(domain)
    schema = TypeSchema({"EIP712Domain": domain.fields()})
    separator = hash_struct(schema, "EIP712Domain", domain.to_message())
    logger.debug("Domain separator 0x%s for %s", separator.hex(), domain.to_message())
    return separator


# ---------------------------------------------------------------------------
# Digest
# ---------------------------------------------------------------------------

def build_digest(domain_separator: bytes, struct_hash: bytes) -> bytes:
    """keccak256(0x19 ‖ 0x01 ‖ domainSeparator ‖ structHash)."""
    if len(domain_separator) != 32:
        raise TypeMismatch("bytes32", "domain_separator", f"expected 32 bytes, got {len(domain_separator)}")
    if len(struct_hash) != 32:
        raise TypeMismatch("bytes32", "struct_hash", f"expected 32 bytes, got {len(struct_hash)}")
    return keccak(EIP712_PREFIX + bytes(domain_separator) + bytes(struct_hash))


def _as_typed_message(typed_message: TypedMessageLike) -> TypedMessage:
    if isinstance(typed_message, TypedMessage):
        return typed_message
    return TypedMessage.model_validate(dict(typed_message))


def encode_signable(typed_message: TypedMessageLike) -> SignableMessage:
    """
    EIP-191 version 0x01 ``SignableMessage`` for a typed message.

    header = domain separator, body = struct hash.  The result can be
    handed to anything in the eth_account ecosystem
    (``Account.sign_message``, ``Account.recover_message``, wallets).
    """
    payload = _as_typed_message(typed_message)
    schema  = TypeSchema(payload.message_types())

    domain_separator = hash_domain(payload.domain)
    struct_hash      = hash_struct(schema, payload.primary_type, payload.message)
    return SignableMessage(version=EIP712_PREFIX[1:], header=domain_separator, body=struct_hash)


def hash_typed_data(typed_message: TypedMessageLike) -> bytes:
    """
    Full EIP-712 pipeline: domain separator + struct hash → 32-byte digest.

    ``typed_message`` is a ``TypedMessage`` or the equivalent
    ``eth_signTypedData_v4`` dict (``types``, ``primaryType``, ``domain``,
    ``message``).  Shared by sign_typed_data() and recover_signer() so the
    two never drift.
    """
    signable = encode_signable(typed_message)
    digest   = build_digest(signable.header, signable.body)
    logger.debug("EIP-712 digest: 0x%s", digest.hex())
    return digest


# ---------------------------------------------------------------------------
# Public signing API
# ---------------------------------------------------------------------------

def sign_typed_data(typed_message: TypedMessageLike, private_key: PrivateKeyLike) -> Signature:
    """
    EIP-712 sign a typed message.

    Parameters
    ----------
    typed_message : TypedMessage or eth_signTypedData_v4 dict
    private_key   : int scalar, 32 raw bytes, 0x-hex or decimal string

    Returns
    -------
    Canonical (low-s) Signature with v in {27, 28}; ``.to_hex()`` gives
    the 65-byte ``0x…`` wire form.

    Notes
    -----
    - Deterministic: the same payload and key always give the same signature.
    - The key is not retained after the call returns.
    """
    digest = hash_typed_data(typed_message)
    return sign_digest(digest, private_key)


def recover_signer(
    typed_message: TypedMessageLike,
    signature: Union[Signature, bytes, str],
) -> str:
    """
    Recover the Ethereum address that signed ``typed_message``.

    Useful for verification / testing without a verifying contract.

    Returns
    -------
    Checksummed Ethereum address string.
    """
    digest = hash_typed_data(typed_message)
    return recover_address(digest, signature)
