"""
Error taxonomy for SWISC operations.

Every chain, wallet, or configuration operation either returns a value or
raises exactly one of these.  Nothing here is retried; the CLI reports the
message once and exits with ``exit_code``.
"""

from __future__ import annotations

from typing import Any, Optional


class SwiscError(RuntimeError):
    exit_code: int = 1


class ConfigError(SwiscError):
    exit_code = 2


class EncodingError(SwiscError):
    """A transaction field, RLP payload, or ABI call could not be encoded."""

    exit_code = 3


class SigningError(SwiscError):
    """Private key is malformed or does not belong to the sender."""

    exit_code = 4


class NetworkError(SwiscError):
    """Node unreachable, HTTP failure, or malformed JSON-RPC response."""

    exit_code = 5


class BroadcastRejected(SwiscError):
    """The node refused ``eth_sendRawTransaction``.

    The node's message is kept verbatim; no attempt is made to classify it.
    """

    exit_code = 6

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data


class Timeout(SwiscError):
    exit_code = 7
