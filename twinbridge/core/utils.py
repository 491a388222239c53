"""Utility helpers shared across twinbridge core modules."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Optional, Union

from web3 import AsyncWeb3

from twinbridge.core.errors import FormatError, RangeError, RemoteCallError

BPS_DENOMINATOR = 10_000


def get_logger(name: str = "twinbridge") -> logging.Logger:
    """Return a configured logger that prints to stdout."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


async def ensure_web3_connected(web3: AsyncWeb3, *, expected_chain_id: Optional[int] = None) -> None:
    """Validate that ``web3`` is connected and optionally matches the expected chain id."""
    if not await web3.is_connected():
        raise RemoteCallError("Failed to connect to the configured Base RPC endpoint")
    if expected_chain_id is not None:
        chain_id = await web3.eth.chain_id
        if chain_id != expected_chain_id:
            raise RemoteCallError(f"RPC chain ID mismatch: expected {expected_chain_id}, got {chain_id}")


def strip_hex_prefix(data: str) -> str:
    return data[2:] if data[:2] in ("0x", "0X") else data


def hex_to_bytes(data: str) -> bytes:
    """Convert a hex string (with or without ``0x``) to bytes."""
    cleaned = strip_hex_prefix(data)
    if len(cleaned) % 2:
        raise FormatError(f"Hex data must have an even number of characters, got {len(cleaned)}")
    try:
        return bytes.fromhex(cleaned)
    except ValueError as exc:
        raise FormatError(f"Hex data contains invalid characters: {data!r}") from exc


def apply_bps(value: int, basis_points: int) -> int:
    """Scale ``value`` by ``(10000 + basis_points) / 10000`` rounding down."""
    if basis_points < 0:
        raise RangeError(f"basis points must be non-negative, got {basis_points}")
    return value * (BPS_DENOMINATOR + basis_points) // BPS_DENOMINATOR


def parse_units(amount: Union[str, int, Decimal], decimals: int) -> int:
    """Convert a decimal amount (e.g. ``"1.5"``) into integer base units."""
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as exc:
        raise FormatError(f"Invalid decimal amount {amount!r}") from exc
    if not value.is_finite():
        raise FormatError(f"Invalid decimal amount {amount!r}")
    if value < 0:
        raise RangeError(f"Amount must be non-negative, got {amount!r}")
    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise FormatError(f"Amount {amount!r} has more than {decimals} decimal places")
    return int(scaled)


def format_units(value: int, decimals: int) -> str:
    """Render integer base units as a plain decimal string."""
    quantized = (Decimal(value).scaleb(-decimals)).quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_DOWN)
    text = format(quantized, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


__all__ = [
    "BPS_DENOMINATOR",
    "apply_bps",
    "ensure_web3_connected",
    "format_units",
    "get_logger",
    "hex_to_bytes",
    "parse_units",
    "strip_hex_prefix",
]
