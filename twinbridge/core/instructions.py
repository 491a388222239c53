"""Wire encoding of the relayer and bridge program instructions.

The receiving programs parse instruction data positionally, so every field is
written in a fixed order with little-endian integers:

* ``pay_for_relay``: discriminator | salt(32) | outgoing_message(32) | gas_limit(u64)
* ``bridge_sol``:    discriminator | salt(32) | to(20) | amount(u64) | call option
* ``bridge_spl``:    discriminator | salt(32) | to(20) | remote_token(20) | amount(u64) | call option

The call option is a single ``0x00`` byte when absent, otherwise
``0x01 | kind(u8) | target(20) | value(u128) | len(u32) | payload``.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional, Union

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID

from twinbridge.core.call import Call, ContractCall, DelegateCall, MAX_UINT128
from twinbridge.core.codec import ZERO_ADDRESS, to_fixed_width_address
from twinbridge.core.errors import FormatError, RangeError
from twinbridge.core.pda import normalize_salt
from twinbridge.core.utils import get_logger

LOGGER = get_logger("twinbridge.instructions")

PAY_FOR_RELAY_DISCRIMINATOR = bytes([41, 191, 218, 201, 250, 164, 156, 55])
BRIDGE_SOL_DISCRIMINATOR = bytes([190, 190, 32, 158, 75, 153, 32, 86])
BRIDGE_SPL_DISCRIMINATOR = bytes([87, 109, 172, 103, 8, 187, 223, 126])

MAX_UINT64 = (1 << 64) - 1
MAX_UINT32 = (1 << 32) - 1

CALL_ABSENT = b"\x00"
CALL_PRESENT = b"\x01"

Address20 = Union[str, bytes]


def _u64(value: int, field_name: str) -> bytes:
    if not 0 <= value <= MAX_UINT64:
        raise RangeError(f"{field_name} must fit in an unsigned 64-bit integer, got {value}")
    return struct.pack("<Q", value)


def _u128(value: int) -> bytes:
    if not 0 <= value <= MAX_UINT128:
        raise RangeError("Call value exceeds 128-bit limit.")
    return value.to_bytes(16, "little")


def _discriminator(value: bytes) -> bytes:
    if len(value) != 8:
        raise FormatError(f"Instruction discriminator must be 8 bytes, got {len(value)}")
    return bytes(value)


def encode_call_option(call: Optional[ContractCall]) -> bytes:
    """Serialize the optional follow-on call."""
    if call is None:
        return CALL_ABSENT

    if isinstance(call, (Call, DelegateCall)):
        target = to_fixed_width_address(call.target)
        if target == ZERO_ADDRESS:
            raise FormatError("callTarget is required for call and delegatecall operations.")
    else:
        target = ZERO_ADDRESS

    payload = bytes(call.data)
    if len(payload) > MAX_UINT32:
        raise RangeError(f"Call payload too large: {len(payload)} bytes")

    return b"".join(
        [
            CALL_PRESENT,
            bytes([int(call.kind)]),
            target,
            _u128(call.value),
            struct.pack("<I", len(payload)),
            payload,
        ]
    )


def encode_pay_for_relay_data(
    salt: bytes,
    outgoing_message: Union[Pubkey, bytes],
    gas_limit: int,
    *,
    discriminator: bytes = PAY_FOR_RELAY_DISCRIMINATOR,
) -> bytes:
    message_bytes = bytes(outgoing_message)
    if len(message_bytes) != 32:
        raise FormatError(f"Outgoing message handle must be 32 bytes, got {len(message_bytes)}")
    return b"".join(
        [
            _discriminator(discriminator),
            normalize_salt(salt),
            message_bytes,
            _u64(gas_limit, "gas_limit"),
        ]
    )


def encode_bridge_sol_data(
    salt: bytes,
    to: Address20,
    amount: int,
    call: Optional[ContractCall] = None,
    *,
    discriminator: bytes = BRIDGE_SOL_DISCRIMINATOR,
) -> bytes:
    return b"".join(
        [
            _discriminator(discriminator),
            normalize_salt(salt),
            to_fixed_width_address(to),
            _u64(amount, "amount"),
            encode_call_option(call),
        ]
    )


def encode_bridge_spl_data(
    salt: bytes,
    to: Address20,
    remote_token: Address20,
    amount: int,
    call: Optional[ContractCall] = None,
    *,
    discriminator: bytes = BRIDGE_SPL_DISCRIMINATOR,
) -> bytes:
    return b"".join(
        [
            _discriminator(discriminator),
            normalize_salt(salt),
            to_fixed_width_address(to),
            to_fixed_width_address(remote_token),
            _u64(amount, "amount"),
            encode_call_option(call),
        ]
    )


@dataclass(frozen=True)
class PayForRelayAccounts:
    payer: Pubkey
    config: Pubkey
    gas_fee_receiver: Pubkey
    message_to_relay: Pubkey
    system_program: Pubkey = SYSTEM_PROGRAM_ID


@dataclass(frozen=True)
class BridgeSolAccounts:
    payer: Pubkey
    source: Pubkey
    gas_fee_receiver: Pubkey
    sol_vault: Pubkey
    bridge: Pubkey
    outgoing_message: Pubkey
    system_program: Pubkey = SYSTEM_PROGRAM_ID


@dataclass(frozen=True)
class BridgeSplAccounts:
    payer: Pubkey
    source: Pubkey
    gas_fee_receiver: Pubkey
    mint: Pubkey
    source_token_account: Pubkey
    bridge: Pubkey
    token_vault: Pubkey
    outgoing_message: Pubkey
    token_program: Pubkey
    system_program: Pubkey = SYSTEM_PROGRAM_ID


def build_pay_for_relay_instruction(
    program_id: Pubkey,
    accounts: PayForRelayAccounts,
    *,
    salt: bytes,
    outgoing_message: Pubkey,
    gas_limit: int,
) -> Instruction:
    """Escrow the relay fee for the message identified by ``salt``."""
    data = encode_pay_for_relay_data(salt, outgoing_message, gas_limit)
    keys = [
        AccountMeta(accounts.payer, is_signer=True, is_writable=True),
        AccountMeta(accounts.config, is_signer=False, is_writable=True),
        AccountMeta(accounts.gas_fee_receiver, is_signer=False, is_writable=True),
        AccountMeta(accounts.message_to_relay, is_signer=False, is_writable=True),
        AccountMeta(accounts.system_program, is_signer=False, is_writable=False),
    ]
    LOGGER.debug("pay_for_relay data length=%s gas_limit=%s", len(data), gas_limit)
    return Instruction(program_id, data, keys)


def build_bridge_sol_instruction(
    program_id: Pubkey,
    accounts: BridgeSolAccounts,
    *,
    salt: bytes,
    to: Address20,
    amount: int,
    call: Optional[ContractCall] = None,
) -> Instruction:
    data = encode_bridge_sol_data(salt, to, amount, call)
    keys = [
        AccountMeta(accounts.payer, is_signer=True, is_writable=True),
        AccountMeta(accounts.source, is_signer=False, is_writable=True),
        AccountMeta(accounts.gas_fee_receiver, is_signer=False, is_writable=True),
        AccountMeta(accounts.sol_vault, is_signer=False, is_writable=True),
        AccountMeta(accounts.bridge, is_signer=False, is_writable=True),
        AccountMeta(accounts.outgoing_message, is_signer=False, is_writable=True),
        AccountMeta(accounts.system_program, is_signer=False, is_writable=False),
    ]
    LOGGER.debug("bridge_sol data length=%s has_call=%s", len(data), call is not None)
    return Instruction(program_id, data, keys)


def build_bridge_spl_instruction(
    program_id: Pubkey,
    accounts: BridgeSplAccounts,
    *,
    salt: bytes,
    to: Address20,
    remote_token: Address20,
    amount: int,
    call: Optional[ContractCall] = None,
) -> Instruction:
    data = encode_bridge_spl_data(salt, to, remote_token, amount, call)
    keys = [
        AccountMeta(accounts.payer, is_signer=True, is_writable=True),
        AccountMeta(accounts.source, is_signer=True, is_writable=True),
        AccountMeta(accounts.gas_fee_receiver, is_signer=False, is_writable=True),
        AccountMeta(accounts.mint, is_signer=False, is_writable=True),
        AccountMeta(accounts.source_token_account, is_signer=False, is_writable=True),
        AccountMeta(accounts.bridge, is_signer=False, is_writable=True),
        AccountMeta(accounts.token_vault, is_signer=False, is_writable=True),
        AccountMeta(accounts.outgoing_message, is_signer=False, is_writable=True),
        AccountMeta(accounts.token_program, is_signer=False, is_writable=False),
        AccountMeta(accounts.system_program, is_signer=False, is_writable=False),
    ]
    LOGGER.debug("bridge_spl data length=%s has_call=%s", len(data), call is not None)
    return Instruction(program_id, data, keys)


__all__ = [
    "BRIDGE_SOL_DISCRIMINATOR",
    "BRIDGE_SPL_DISCRIMINATOR",
    "BridgeSolAccounts",
    "BridgeSplAccounts",
    "MAX_UINT64",
    "PAY_FOR_RELAY_DISCRIMINATOR",
    "PayForRelayAccounts",
    "build_bridge_sol_instruction",
    "build_bridge_spl_instruction",
    "build_pay_for_relay_instruction",
    "encode_bridge_sol_data",
    "encode_bridge_spl_data",
    "encode_call_option",
    "encode_pay_for_relay_data",
]
