"""
eip712-signer – EIP-712 typed-data hashing and deterministic secp256k1 signing.

Provides:
  - Canonical type encoding / struct hashing   (encoding.py → encode_type, hash_struct)
  - Domain separation + digest assembly        (signing.py  → hash_domain, build_digest)
  - Typed-data signing / signer recovery       (signing.py  → sign_typed_data, recover_signer)
  - RFC 6979 recoverable ECDSA                 (ecdsa.py    → sign_digest, recover_public_key)
  - Typed Pydantic v2 models                   (types.py)
  - Error taxonomy                             (errors.py)
  - JSON-in / signature-out CLI                (cli.py      → eip712-sign)

Quickstart
----------
    from eip712_signer import sign_typed_data, recover_signer

    payload = {
        "types": {"Mail": [{"name": "from",     "type": "address"},
                           {"name": "to",       "type": "address"},
                           {"name": "contents", "type": "string"}]},
        "primaryType": "Mail",
        "domain": {"name": "Test", "version": "1", "chainId": 1,
                   "verifyingContract": "0x0000000000000000000000000000000000000001"},
        "message": {"from": "0x" + "aa" * 20, "to": "0x" + "bb" * 20, "contents": "hello"},
    }
    sig = sign_typed_data(payload, "0x…")
    print(sig.to_hex(), recover_signer(payload, sig))
"""

from .errors import (
    EIP712Error,
    UnknownTypeReference,
    CyclicTypeReference,
    TypeMismatch,
    ValueOutOfRange,
    InvalidPrivateKey,
    InvalidSignature,
    MalformedInput,
)
from .types import Chain, TypedField, Domain, TypedMessage, Signature
from .encoding import TypeSchema, encode_type, hash_type, encode_field, encode_data, hash_struct
from .ecdsa import (
    deterministic_nonce,
    parse_private_key,
    private_key_to_address,
    private_key_to_public_key,
    recover_address,
    recover_public_key,
    sign_digest,
    verify_digest,
)
from .signing import (
    build_domain,
    build_digest,
    encode_signable,
    hash_domain,
    hash_typed_data,
    recover_signer,
    sign_typed_data,
)
from .config import SignerConfig

__all__ = [
    # Errors
    "EIP712Error",
    "UnknownTypeReference",
    "CyclicTypeReference",
    "TypeMismatch",
    "ValueOutOfRange",
    "InvalidPrivateKey",
    "InvalidSignature",
    "MalformedInput",
    # Models
    "Chain",
    "TypedField",
    "Domain",
    "TypedMessage",
    "Signature",
    # Type encoding / struct hashing
    "TypeSchema",
    "encode_type",
    "hash_type",
    "encode_field",
    "encode_data",
    "hash_struct",
    # ECDSA
    "deterministic_nonce",
    "parse_private_key",
    "private_key_to_address",
    "private_key_to_public_key",
    "recover_address",
    "recover_public_key",
    "sign_digest",
    "verify_digest",
    # Domain / digest / typed-data signing
    "build_domain",
    "build_digest",
    "encode_signable",
    "hash_domain",
    "hash_typed_data",
    "recover_signer",
    "sign_typed_data",
    # Config
    "SignerConfig",
]

__version__ = "0.1.0"
