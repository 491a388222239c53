"""Exception hierarchy shared by the bridge modules."""

from __future__ import annotations

from typing import Optional


class BridgeError(Exception):
    """Base class for every error raised by twinbridge."""


class FormatError(BridgeError, ValueError):
    """Raised for malformed addresses, hex, base58 or call descriptors."""


class RangeError(FormatError):
    """Raised when an integer does not fit its fixed-width wire field."""


class ConfigurationError(BridgeError):
    """Raised when a required on-chain account or contract is missing."""


class RemoteCallError(BridgeError):
    """Raised when an RPC or HTTP call fails."""

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class QuoteUnavailableError(RemoteCallError):
    """Raised when the price API cannot produce a usable quote."""


class InsufficientLiquidityError(BridgeError):
    """Raised when a swap quote stays below the required output after amplification."""

    def __init__(self, message: str, *, required: int, quoted: int) -> None:
        super().__init__(message)
        self.required = required
        self.quoted = quoted


class ConfirmationError(BridgeError):
    """Raised when a broadcast transaction cannot be observed as confirmed.

    The transaction is not necessarily reverted; callers should look up
    ``signature`` on-chain before treating the bridge as failed.
    """

    def __init__(self, message: str, *, signature: Optional[str] = None) -> None:
        super().__init__(message)
        self.signature = signature


__all__ = [
    "BridgeError",
    "ConfigurationError",
    "ConfirmationError",
    "FormatError",
    "InsufficientLiquidityError",
    "QuoteUnavailableError",
    "RangeError",
    "RemoteCallError",
]
