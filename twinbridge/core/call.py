"""Typed model of the optional contract call executed on Base after bridging.

Only ``Call`` and ``DelegateCall`` carry a target. The wire layout in
:mod:`twinbridge.core.instructions` still reserves a zero-filled target slot
for the create variants.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar, Optional, Union

from twinbridge.core.codec import ZERO_ADDRESS, parse_hex_payload, to_fixed_width_address
from twinbridge.core.errors import FormatError, RangeError
from twinbridge.core.utils import parse_units

MAX_UINT128 = (1 << 128) - 1
CALL_VALUE_DECIMALS = 18


class CallKind(IntEnum):
    """Wire discriminant of the call variant."""

    CALL = 0
    DELEGATECALL = 1
    CREATE = 2
    CREATE2 = 3


def _check_value(value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise FormatError(f"Call value must be an integer amount of wei, got {value!r}")
    if value < 0 or value > MAX_UINT128:
        raise RangeError("Call value exceeds 128-bit limit.")


def _check_target(target: bytes) -> None:
    if len(target) != 20:
        raise FormatError(f"Call target must be 20 bytes, got {len(target)}")
    if target == ZERO_ADDRESS:
        raise FormatError("callTarget is required for call and delegatecall operations.")


@dataclass(frozen=True)
class Call:
    target: bytes
    value: int = 0
    data: bytes = b""

    kind: ClassVar[CallKind] = CallKind.CALL

    def __post_init__(self) -> None:
        _check_target(self.target)
        _check_value(self.value)


@dataclass(frozen=True)
class DelegateCall:
    target: bytes
    value: int = 0
    data: bytes = b""

    kind: ClassVar[CallKind] = CallKind.DELEGATECALL

    def __post_init__(self) -> None:
        _check_target(self.target)
        _check_value(self.value)


@dataclass(frozen=True)
class Create:
    value: int = 0
    data: bytes = b""

    kind: ClassVar[CallKind] = CallKind.CREATE

    def __post_init__(self) -> None:
        _check_value(self.value)


@dataclass(frozen=True)
class Create2:
    value: int = 0
    data: bytes = b""

    kind: ClassVar[CallKind] = CallKind.CREATE2

    def __post_init__(self) -> None:
        _check_value(self.value)


ContractCall = Union[Call, DelegateCall, Create, Create2]


def parse_call_value(value: Union[str, int, None]) -> int:
    """Parse a decimal ETH amount into wei; blank means zero."""
    if value is None:
        return 0
    if isinstance(value, int) and not isinstance(value, bool):
        _check_value(value)
        return value
    text = str(value).strip()
    if not text:
        return 0
    try:
        parsed = parse_units(text, CALL_VALUE_DECIMALS)
    except RangeError:
        raise
    except FormatError as exc:
        raise FormatError(f'Invalid call value "{value}". Provide a decimal ETH amount.') from exc
    _check_value(parsed)
    return parsed


def parse_contract_call(
    kind: Union[str, CallKind],
    *,
    target: Optional[Union[str, bytes]] = None,
    value: Union[str, int, None] = None,
    data: Union[str, bytes, None] = None,
) -> ContractCall:
    """Build a typed call from loosely-typed caller input.

    ``target`` is ignored for ``create``/``create2``.
    """
    if isinstance(kind, CallKind):
        call_kind = kind
    else:
        try:
            call_kind = CallKind[str(kind).strip().upper()]
        except KeyError as exc:
            raise FormatError(
                f'Unsupported call type "{kind}". Use call | delegatecall | create | create2.'
            ) from exc

    amount = parse_call_value(value)
    payload = parse_hex_payload(data)

    if call_kind in (CallKind.CREATE, CallKind.CREATE2):
        variant = Create if call_kind is CallKind.CREATE else Create2
        return variant(value=amount, data=payload)

    if not target:
        raise FormatError("callTarget is required for call and delegatecall operations.")
    target_bytes = to_fixed_width_address(target)
    variant = Call if call_kind is CallKind.CALL else DelegateCall
    return variant(target=target_bytes, value=amount, data=payload)


__all__ = [
    "CALL_VALUE_DECIMALS",
    "Call",
    "CallKind",
    "ContractCall",
    "Create",
    "Create2",
    "DelegateCall",
    "MAX_UINT128",
    "parse_call_value",
    "parse_contract_call",
]
