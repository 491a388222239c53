"""Address codecs for Solana (base58) and Base (hex) identities.

Every helper here is pure: malformed input raises :class:`FormatError`
synchronously and nothing touches the network.
"""

from __future__ import annotations

import re
from typing import Union

import base58
from solders.pubkey import Pubkey
from web3 import Web3

from twinbridge.core.errors import FormatError
from twinbridge.core.utils import strip_hex_prefix

BASE58_ALPHABET = base58.BITCOIN_ALPHABET.decode("ascii")
EVM_ADDRESS_BYTES = 20
PUBLIC_KEY_BYTES = 32
ZERO_ADDRESS = bytes(EVM_ADDRESS_BYTES)

_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")


def decode_base58(text: str) -> bytes:
    """Decode base58 text; each leading ``'1'`` becomes a leading zero byte."""
    if not isinstance(text, str):
        raise FormatError(f"base58 input must be text, got {type(text).__name__}")
    for index, char in enumerate(text):
        if char not in BASE58_ALPHABET:
            raise FormatError(f"Invalid base58 character {char!r} at position {index}")
    return base58.b58decode(text)


def encode_base58(data: bytes) -> str:
    """Encode bytes as base58 text."""
    return base58.b58encode(bytes(data)).decode("ascii")


def to_fixed_width_address(value: Union[str, bytes, bytearray], width: int = EVM_ADDRESS_BYTES) -> bytes:
    """Normalize a hex string or raw bytes into exactly ``width`` bytes."""
    if isinstance(value, (bytes, bytearray)):
        if len(value) != width:
            raise FormatError(f"Expected {width} address bytes, got {len(value)}")
        return bytes(value)
    if not isinstance(value, str):
        raise FormatError(f"Address must be hex text or bytes, got {type(value).__name__}")

    cleaned = strip_hex_prefix(value.strip())
    if len(cleaned) != width * 2:
        raise FormatError(f"Invalid address length: expected {width * 2} hex chars, got {len(cleaned)}")
    if not _HEX_RE.match(cleaned):
        raise FormatError(f"Invalid address format: {value!r} contains non-hex characters")
    return bytes.fromhex(cleaned)


def parse_hex_payload(value: Union[str, bytes, bytearray, None]) -> bytes:
    """Return call payload bytes from ``0x``-prefixed hex, bare hex or raw bytes."""
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    cleaned = strip_hex_prefix(value.strip())
    if len(cleaned) % 2:
        raise FormatError("Hex data must have an even number of characters.")
    if not _HEX_RE.match(cleaned):
        raise FormatError("Hex data contains invalid characters.")
    return bytes.fromhex(cleaned)


def to_checksum_address(value: Union[str, bytes, bytearray]) -> str:
    """Return the EIP-55 form of a 20-byte Base address."""
    raw = to_fixed_width_address(value)
    return Web3.to_checksum_address("0x" + raw.hex())


def public_key_to_bytes32(key: Union[str, Pubkey]) -> bytes:
    """Return the 32 raw bytes behind a Solana public key."""
    if isinstance(key, Pubkey):
        return bytes(key)
    raw = decode_base58(key.strip())
    if len(raw) != PUBLIC_KEY_BYTES:
        raise FormatError(f"Invalid Solana public key length: {len(raw)}, expected {PUBLIC_KEY_BYTES}")
    return raw


def to_pubkey(key: Union[str, bytes, Pubkey]) -> Pubkey:
    """Normalize base58 text or raw bytes into a :class:`Pubkey`."""
    if isinstance(key, Pubkey):
        return key
    if isinstance(key, (bytes, bytearray)):
        if len(key) != PUBLIC_KEY_BYTES:
            raise FormatError(f"Invalid Solana public key length: {len(key)}, expected {PUBLIC_KEY_BYTES}")
        return Pubkey.from_bytes(bytes(key))
    return Pubkey.from_bytes(public_key_to_bytes32(key))


__all__ = [
    "BASE58_ALPHABET",
    "EVM_ADDRESS_BYTES",
    "PUBLIC_KEY_BYTES",
    "ZERO_ADDRESS",
    "decode_base58",
    "encode_base58",
    "parse_hex_payload",
    "public_key_to_bytes32",
    "to_checksum_address",
    "to_fixed_width_address",
    "to_pubkey",
]
