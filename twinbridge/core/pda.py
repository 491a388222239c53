"""Salt generation and program-derived account handles for one bridge attempt."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Callable, Optional, Union

from solders.pubkey import Pubkey

from twinbridge.core.errors import FormatError

SALT_BYTES = 32

BRIDGE_SEED = b"bridge"
SOL_VAULT_SEED = b"sol_vault"
TOKEN_VAULT_SEED = b"token_vault"
OUTGOING_MESSAGE_SEED = b"outgoing_message"
MESSAGE_TO_RELAY_SEED = b"mtr"
RELAYER_CONFIG_SEED = b"config"


def generate_salt() -> bytes:
    """Return 32 bytes from the operating system CSPRNG."""
    return secrets.token_bytes(SALT_BYTES)


def normalize_salt(salt: Union[bytes, str]) -> bytes:
    if isinstance(salt, str):
        cleaned = salt[2:] if salt.startswith("0x") else salt
        if len(cleaned) != SALT_BYTES * 2:
            raise FormatError(f"salt hex must be 32 bytes (64 hex chars). got {len(cleaned)}")
        try:
            return bytes.fromhex(cleaned)
        except ValueError as exc:
            raise FormatError("salt hex contains invalid characters") from exc
    if len(salt) != SALT_BYTES:
        raise FormatError(f"salt must be 32 bytes. got {len(salt)}")
    return bytes(salt)


def _derive(seeds, program_id: Pubkey) -> Pubkey:
    address, _bump = Pubkey.find_program_address(seeds, program_id)
    return address


def derive_bridge_address(bridge_program: Pubkey) -> Pubkey:
    return _derive([BRIDGE_SEED], bridge_program)


def derive_sol_vault(bridge_program: Pubkey) -> Pubkey:
    return _derive([SOL_VAULT_SEED], bridge_program)


def derive_token_vault(bridge_program: Pubkey, mint: Pubkey, remote_token: bytes) -> Pubkey:
    return _derive([TOKEN_VAULT_SEED, bytes(mint), remote_token], bridge_program)


def derive_outgoing_message(salt: bytes, bridge_program: Pubkey) -> Pubkey:
    return _derive([OUTGOING_MESSAGE_SEED, normalize_salt(salt)], bridge_program)


def derive_message_to_relay(salt: bytes, relayer_program: Pubkey) -> Pubkey:
    return _derive([MESSAGE_TO_RELAY_SEED, normalize_salt(salt)], relayer_program)


def derive_relayer_config(relayer_program: Pubkey) -> Pubkey:
    return _derive([RELAYER_CONFIG_SEED], relayer_program)


@dataclass(frozen=True)
class SaltBundle:
    """Per-attempt salt and the two message accounts derived from it."""

    salt: bytes
    outgoing_message: Pubkey
    message_to_relay: Pubkey

    @property
    def salt_hex(self) -> str:
        return "0x" + self.salt.hex()


def create_salt_bundle(
    bridge_program: Pubkey,
    relayer_program: Pubkey,
    *,
    salt: Optional[bytes] = None,
    salt_factory: Callable[[], bytes] = generate_salt,
) -> SaltBundle:
    """Create a fresh salt (unless one is given) and derive its message handles."""
    salt_bytes = normalize_salt(salt if salt is not None else salt_factory())
    return SaltBundle(
        salt=salt_bytes,
        outgoing_message=derive_outgoing_message(salt_bytes, bridge_program),
        message_to_relay=derive_message_to_relay(salt_bytes, relayer_program),
    )


__all__ = [
    "SALT_BYTES",
    "SaltBundle",
    "create_salt_bundle",
    "derive_bridge_address",
    "derive_message_to_relay",
    "derive_outgoing_message",
    "derive_relayer_config",
    "derive_sol_vault",
    "derive_token_vault",
    "generate_salt",
    "normalize_salt",
]
