"""
cli.py – ``eip712-sign``: sign EIP-712 typed data from a JSON payload.

HOW TO RUN
----------
    eip712-sign '{"privateKey": "0x…", "verifyingContract": "0x…",
                  "types": {…}, "primaryType": "Mail", "message": {…}}'

    echo "$PAYLOAD" | eip712-sign -            # read the payload from stdin
    eip712-sign --digest "$PAYLOAD"            # print the digest, no key needed

Payload keys
------------
privateKey        : 0x-hex or decimal string (required unless --digest)
verifyingContract : 20-byte hex address
types             : struct definitions (EIP712Domain entry optional)
primaryType       : struct the message is an instance of
message           : the value tree to sign
prefixedSalt      : optional 32-byte hex domain salt
domain            : optional overrides for name / version / chainId

Domain name, version and chain ID default to the EIP712_* environment
variables (see config.py).  On success the 0x-prefixed 65-byte signature
is written to stdout and the exit code is 0; on failure a message goes
to stderr and the exit code is 1.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, StrictInt, StrictStr, ValidationError

from .config import SignerConfig
from .errors import EIP712Error, MalformedInput
from .signing import hash_typed_data, sign_typed_data
from .types import TypedField, TypedMessage

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s – %(message)s"


# ---------------------------------------------------------------------------
# Request model
# ---------------------------------------------------------------------------

class SignRequest(BaseModel):
    """JSON payload accepted by the CLI."""
    private_key:        Optional[Union[StrictInt, StrictStr]] = Field(default=None, alias="privateKey", repr=False)
    verifying_contract: Optional[str]             = Field(default=None, alias="verifyingContract")
    types:              dict[str, list[TypedField]]
    primary_type:       str                       = Field(alias="primaryType")
    message:            dict[str, Any]
    prefixed_salt:      Optional[str]             = Field(default=None, alias="prefixedSalt")
    domain:             dict[str, Any]            = Field(default_factory=dict)

    model_config = {"populate_by_name": True}

    def to_typed_message(self, config: SignerConfig) -> TypedMessage:
        """Merge config defaults, domain overrides and top-level keys into a TypedMessage."""
        domain: dict[str, Any] = {
            "name":    config.domain_name,
            "version": config.domain_version,
            "chainId": config.chain_id,
        }
        domain.update(self.domain)
        if self.verifying_contract is not None:
            domain["verifyingContract"] = self.verifying_contract
        if self.prefixed_salt is not None:
            domain["salt"] = self.prefixed_salt

        return TypedMessage(
            types=self.types,
            primary_type=self.primary_type,
            domain={k: v for k, v in domain.items() if v is not None},
            message=self.message,
        )


def parse_request(raw: str, config: SignerConfig) -> tuple[SignRequest, TypedMessage]:
    """Parse and validate a JSON payload; every failure becomes MalformedInput."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedInput(f"payload is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedInput("payload must be a JSON object")

    try:
        request = SignRequest.model_validate(data)
        typed   = request.to_typed_message(config)
    except ValidationError as exc:
        raise MalformedInput(f"invalid payload: {exc}") from exc
    return request, typed


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="eip712-sign",
        description="Sign EIP-712 typed data and print the 0x-prefixed signature.",
    )
    parser.add_argument("payload", help="JSON payload, or '-' to read it from stdin")
    parser.add_argument(
        "--digest",
        action="store_true",
        help="print the 32-byte EIP-712 digest instead of signing",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        config = SignerConfig.from_env()
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else config.log_level,
            format=_LOG_FORMAT,
            stream=sys.stderr,
        )

        raw = sys.stdin.read() if args.payload == "-" else args.payload
        request, typed = parse_request(raw, config)

        if args.digest:
            sys.stdout.write("0x" + hash_typed_data(typed).hex())
            return 0

        if request.private_key is None:
            raise MalformedInput("privateKey is required unless --digest is given")

        signature = sign_typed_data(typed, request.private_key)
        del request
        logger.info("Signed %s for verifying contract %s",
                    typed.primary_type, typed.domain.verifying_contract)
        sys.stdout.write(signature.to_hex())
        return 0
    except EIP712Error as exc:
        print(f"Error signing typed data: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
