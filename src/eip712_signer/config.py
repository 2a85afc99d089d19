"""
config.py – Environment-driven defaults for the signing CLI.

HOW TO CONFIGURE
----------------
    export EIP712_DOMAIN_NAME="MyProtocol"   # omitted from the domain if unset
    export EIP712_DOMAIN_VERSION="1"         # omitted from the domain if unset
    export EIP712_CHAIN_ID="31337"           # default: local Anvil chain
    export EIP712_LOG_LEVEL="DEBUG"          # default: WARNING

Values supplied in the JSON payload always win over the environment.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional

from .errors import MalformedInput
from .types import Chain

_ENV_DOMAIN_NAME    = "EIP712_DOMAIN_NAME"
_ENV_DOMAIN_VERSION = "EIP712_DOMAIN_VERSION"
_ENV_CHAIN_ID       = "EIP712_CHAIN_ID"
_ENV_LOG_LEVEL      = "EIP712_LOG_LEVEL"


@dataclass(frozen=True)
class SignerConfig:
    """
    Default domain members and logging level for the CLI.

    domain_name    : EIP712Domain.name, or None to omit it
    domain_version : EIP712Domain.version, or None to omit it
    chain_id       : EIP712Domain.chainId
    log_level      : name of a stdlib logging level
    """

    domain_name:    Optional[str] = None
    domain_version: Optional[str] = None
    chain_id:       int           = Chain.ANVIL.chain_id
    log_level:      str           = "WARNING"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SignerConfig":
        """Read configuration from ``environ`` (default: ``os.environ``)."""
        env = os.environ if environ is None else environ

        raw_chain = env.get(_ENV_CHAIN_ID, str(Chain.ANVIL.chain_id))
        try:
            chain_id = int(raw_chain, 0)
        except ValueError:
            raise MalformedInput(f"{_ENV_CHAIN_ID} '{raw_chain}' is not an integer") from None

        log_level = env.get(_ENV_LOG_LEVEL, "WARNING").upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise MalformedInput(f"{_ENV_LOG_LEVEL} '{log_level}' is not a logging level")

        return cls(
            domain_name=env.get(_ENV_DOMAIN_NAME) or None,
            domain_version=env.get(_ENV_DOMAIN_VERSION) or None,
            chain_id=chain_id,
            log_level=log_level,
        )
