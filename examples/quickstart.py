"""
examples/quickstart.py – End-to-end demo of eip712-signer.

Walks through the full signing pipeline:
  1. Build a domain and compute its separator
  2. Print the canonical type string of the primary type
  3. Hash the message and assemble the EIP-712 digest
  4. Sign the digest with a private key
  5. Recover the signer address from the signature

HOW TO RUN
----------
    export EIP712_PRIVATE_KEY="0x..."          # defaults to Anvil account #0
    export EIP712_CHAIN_ID="31337"
    python examples/quickstart.py

Nothing is sent anywhere: the signature is printed and can be handed to
any verifying contract or relayer.
"""

from __future__ import annotations

import logging
import os

from eip712_signer import (
    SignerConfig,
    TypeSchema,
    build_digest,
    build_domain,
    encode_type,
    hash_domain,
    hash_struct,
    private_key_to_address,
    recover_signer,
    sign_digest,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s – %(message)s",
)
logger = logging.getLogger("quickstart")

# ---------------------------------------------------------------------------
# Config – read from environment variables
# ---------------------------------------------------------------------------

# Anvil account #0 – DO NOT use with real funds
PRIVATE_KEY        = os.environ.get(
    "EIP712_PRIVATE_KEY",
    "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80",
)
VERIFYING_CONTRACT = os.environ.get(
    "EIP712_VERIFYING_CONTRACT",
    "0x0000000000000000000000000000000000000001",
)
CONFIG = SignerConfig.from_env()

TYPES = {
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


def main() -> None:
    signer = private_key_to_address(PRIVATE_KEY)
    logger.info("Signer address: %s", signer)

    # 1. Domain
    domain = build_domain(
        name=CONFIG.domain_name or "Ether Mail",
        version=CONFIG.domain_version or "1",
        chain_id=CONFIG.chain_id,
        verifying_contract=VERIFYING_CONTRACT,
    )
    domain_separator = hash_domain(domain)
    logger.info("Domain separator: 0x%s", domain_separator.hex())

    # 2. Type string
    schema = TypeSchema(TYPES)
    type_string, type_hash = encode_type(schema, "Mail")
    logger.info("encodeType(Mail): %s", type_string)
    logger.info("typeHash(Mail):   0x%s", type_hash.hex())

    # 3. Struct hash + digest
    message = {
        "from": {"name": "Me",  "wallet": signer},
        "to":   {"name": "Bob", "wallet": "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"},
        "contents": "Hello, Bob!",
    }
    struct_hash = hash_struct(schema, "Mail", message)
    digest      = build_digest(domain_separator, struct_hash)
    logger.info("Digest: 0x%s", digest.hex())

    # 4. Sign
    signature = sign_digest(digest, PRIVATE_KEY)
    logger.info("Signature: %s", signature.to_hex())

    # 5. Recover
    payload = {
        "types": TYPES,
        "primaryType": "Mail",
        "domain": domain.to_message(),
        "message": message,
    }
    recovered = recover_signer(payload, signature)
    logger.info("Recovered: %s (match=%s)", recovered, recovered == signer)


if __name__ == "__main__":
    main()
