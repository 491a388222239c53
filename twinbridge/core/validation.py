"""Preflight checks run before a bridge transaction is composed or sent."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from solana.rpc.async_api import AsyncClient
from solders.pubkey import Pubkey

from twinbridge.core.errors import QuoteUnavailableError, RangeError, RemoteCallError
from twinbridge.core.instructions import MAX_UINT64
from twinbridge.core.quotes import BridgeQuote
from twinbridge.core.utils import format_units, get_logger

LOGGER = get_logger("twinbridge.validation")

LAMPORTS_DECIMALS = 9


@dataclass(frozen=True)
class BalanceCheck:
    """SOL balance against the amount to bridge plus a transaction fee buffer."""

    owner: Pubkey
    balance: int
    required: int
    fee_buffer: int

    @property
    def total_required(self) -> int:
        return self.required + self.fee_buffer

    @property
    def sufficient(self) -> bool:
        return self.balance >= self.total_required

    @property
    def shortfall(self) -> int:
        return max(self.total_required - self.balance, 0)


async def check_sol_balance(
    client: AsyncClient,
    owner: Pubkey,
    required: int,
    *,
    fee_buffer: int = 10_000_000,
) -> BalanceCheck:
    try:
        response = await client.get_balance(owner)
    except Exception as exc:
        raise RemoteCallError(f"getBalance failed for {owner}: {exc}") from exc

    result = BalanceCheck(owner=owner, balance=int(response.value), required=required, fee_buffer=fee_buffer)
    if not result.sufficient:
        LOGGER.warning(
            "Low SOL balance %s SOL, requires at least %s SOL",
            format_units(result.balance, LAMPORTS_DECIMALS),
            format_units(result.total_required, LAMPORTS_DECIMALS),
        )
    return result


def validate_quote_for_submission(
    quote: BridgeQuote,
    *,
    max_age: float,
    now: Optional[float] = None,
) -> BridgeQuote:
    """Return ``quote`` if a paid bridge may be submitted with it."""
    if quote.error:
        raise QuoteUnavailableError(f"Quote failed: {quote.error}")
    if quote.is_estimate_only:
        raise QuoteUnavailableError("Quote is an estimate only; request an executable quote before bridging")
    if quote.is_stale(max_age, now):
        raise QuoteUnavailableError(f"Quote is older than {max_age:g}s; refresh it before bridging")
    if not quote.is_executable:
        raise QuoteUnavailableError("Quote is missing its execution target, payload or amounts")
    return quote


def validate_bridge_amount(amount: int, minimum: int) -> int:
    if amount < minimum:
        raise RangeError(
            f"Bridge amount {format_units(amount, LAMPORTS_DECIMALS)} SOL is below the minimum "
            f"{format_units(minimum, LAMPORTS_DECIMALS)} SOL"
        )
    if amount > MAX_UINT64:
        raise RangeError(f"Bridge amount {amount} does not fit in an unsigned 64-bit integer")
    return amount


__all__ = [
    "BalanceCheck",
    "check_sol_balance",
    "validate_bridge_amount",
    "validate_quote_for_submission",
]
