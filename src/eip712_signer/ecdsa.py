"""
ecdsa.py – Deterministic, recoverable secp256k1 ECDSA.

Signing
-------
1. Derive the nonce k from (private key, digest) with RFC 6979
   (HMAC-SHA256).  No system randomness is involved, so identical
   inputs always produce identical signatures.
2. R = k·G, r = R.x mod n, s = k⁻¹(z + r·d) mod n.
3. Normalise s into the lower half of the order (EIP-2); when s is
   negated the parity of R.y flips, and with it the recovery id.
4. v = 27 + recovery id.

Recovery
--------
Q = r⁻¹(s·R − z·G), where R is rebuilt from r and the parity in v.

Curve arithmetic (k·G, recovery) is delegated to ``eth_keys``, which
uses coincurve (libsecp256k1) when it is installed.

References
----------
- RFC 6979      : https://www.rfc-editor.org/rfc/rfc6979
- SEC 1 v2 §4.1 : https://www.secg.org/sec1-v2.pdf
- EIP-2 (low s) : https://eips.ethereum.org/EIPS/eip-2
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Iterator
from typing import Union

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError

from .errors import InvalidPrivateKey, InvalidSignature, MalformedInput, TypeMismatch
from .types import SECP256K1_N, Signature

logger = logging.getLogger(__name__)

_N = SECP256K1_N

PrivateKeyLike = Union[int, bytes, str]


# ---------------------------------------------------------------------------
# Key helpers
# ---------------------------------------------------------------------------

def parse_private_key(value: PrivateKeyLike) -> int:
    """
    Normalise a private key to an integer scalar.

    Accepts an int, 32 raw bytes, a 0x-prefixed hex string or a decimal
    string (the forms a JSON payload or environment variable can carry).

    Raises
    ------
    MalformedInput    : the value cannot be parsed as a number
    InvalidPrivateKey : the scalar is 0 or ≥ the curve order
    """
    if isinstance(value, bool):
        raise MalformedInput("private key must be an integer, bytes or string")
    if isinstance(value, int):
        scalar = value
    elif isinstance(value, (bytes, bytearray)):
        if len(value) != 32:
            raise MalformedInput(f"private key must be 32 bytes, got {len(value)}")
        scalar = int.from_bytes(value, "big")
    elif isinstance(value, str):
        text = value.strip()
        try:
            scalar = int(text, 16) if text.lower().startswith("0x") else int(text, 10)
        except ValueError:
            raise MalformedInput("private key is neither 0x-hex nor decimal") from None
    else:
        raise MalformedInput(
            f"private key must be an integer, bytes or string, got {type(value).__name__}"
        )
    if not (0 < scalar < _N):
        raise InvalidPrivateKey("private key must satisfy 0 < key < secp256k1 order")
    return scalar


def _scalar_to_public_key(scalar: int) -> keys.PublicKey:
    return keys.PrivateKey(scalar.to_bytes(32, "big")).public_key


def private_key_to_public_key(private_key: PrivateKeyLike) -> bytes:
    """64-byte uncompressed public key X ‖ Y (no 0x04 prefix)."""
    return _scalar_to_public_key(parse_private_key(private_key)).to_bytes()


def public_key_to_address(public_key: bytes) -> str:
    """EIP-55 checksummed address of a 64-byte public key."""
    if len(public_key) != 64:
        raise TypeMismatch("bytes64", "public_key", f"expected 64 bytes, got {len(public_key)}")
    return keys.PublicKey(bytes(public_key)).to_checksum_address()


def private_key_to_address(private_key: PrivateKeyLike) -> str:
    return public_key_to_address(private_key_to_public_key(private_key))


# ---------------------------------------------------------------------------
# RFC 6979
# ---------------------------------------------------------------------------

def deterministic_nonce(private_key: int, digest: bytes) -> int:
    """RFC 6979 §3.2 nonce for secp256k1 with HMAC-SHA256."""
    return next(_nonce_candidates(private_key, digest))


def _nonce_candidates(private_key: int, digest: bytes) -> Iterator[int]:
    """
    The RFC 6979 candidate sequence; callers take the next candidate when
    a nonce yields r == 0 or s == 0 (step h.3).

    qlen == hlen == 256, so a single HMAC block yields each candidate and
    bits2int is the plain big-endian conversion.
    """
    x  = private_key.to_bytes(32, "big")
    h1 = (int.from_bytes(digest, "big") % _N).to_bytes(32, "big")

    v = b"\x01" * 32
    k = b"\x00" * 32
    k = hmac.new(k, v + b"\x00" + x + h1, hashlib.sha256).digest()
    v = hmac.new(k, v, hashlib.sha256).digest()
    k = hmac.new(k, v + b"\x01" + x + h1, hashlib.sha256).digest()
    v = hmac.new(k, v, hashlib.sha256).digest()

    while True:
        v = hmac.new(k, v, hashlib.sha256).digest()
        candidate = int.from_bytes(v, "big")
        if 1 <= candidate < _N:
            yield candidate
        k = hmac.new(k, v + b"\x00", hashlib.sha256).digest()
        v = hmac.new(k, v, hashlib.sha256).digest()


# ---------------------------------------------------------------------------
# Sign / recover / verify
# ---------------------------------------------------------------------------

def _check_digest(digest: bytes) -> int:
    if not isinstance(digest, (bytes, bytearray)) or len(digest) != 32:
        raise TypeMismatch("bytes32", "digest", "digest must be exactly 32 bytes")
    return int.from_bytes(digest, "big")


def sign_digest(digest: bytes, private_key: PrivateKeyLike) -> Signature:
    """
    Sign a 32-byte digest and return a canonical (low-s) recoverable signature.

    The nonce is derived per RFC 6979, so repeated calls with the same
    inputs return the same signature.  ``v`` follows the 27/28 convention.
    """
    z = _check_digest(digest)
    d = parse_private_key(private_key)

    for k in _nonce_candidates(d, bytes(digest)):
        big_r = _scalar_to_public_key(k).to_bytes()
        r = int.from_bytes(big_r[:32], "big") % _N
        if not r:
            continue
        s = pow(k, -1, _N) * (z + r * d) % _N
        if s:
            break

    recovery_id = big_r[63] & 1
    if s > _N // 2:
        s = _N - s
        recovery_id ^= 1

    signature = Signature(r=r, s=s, v=27 + recovery_id)
    logger.debug("Signed digest 0x%s (v=%d)", bytes(digest).hex(), signature.v)
    return signature


def recover_public_key(digest: bytes, signature: Union[Signature, bytes, str]) -> bytes:
    """Recover the 64-byte public key that produced ``signature`` over ``digest``."""
    _check_digest(digest)
    if isinstance(signature, (bytes, bytearray)):
        signature = Signature.from_bytes(bytes(signature))
    elif isinstance(signature, str):
        signature = Signature.from_hex(signature)

    try:
        recoverable = keys.Signature(vrs=(signature.recovery_id, signature.r, signature.s))
        public_key  = recoverable.recover_public_key_from_msg_hash(bytes(digest))
    except (BadSignature, ValidationError) as exc:
        raise InvalidSignature(f"signature does not recover to a public key: {exc}") from exc
    return public_key.to_bytes()


def recover_address(digest: bytes, signature: Union[Signature, bytes, str]) -> str:
    return public_key_to_address(recover_public_key(digest, signature))


def verify_digest(digest: bytes, signature: Union[Signature, bytes, str], public_key: bytes) -> bool:
    """True if ``signature`` over ``digest`` recovers to ``public_key``."""
    try:
        return recover_public_key(digest, signature) == bytes(public_key)
    except InvalidSignature:
        return False
