"""Tests for preflight checks."""

import pytest
from solders.pubkey import Pubkey

from conftest import SWAP_TARGET, rpc_response
from twinbridge.core.errors import QuoteUnavailableError, RangeError, RemoteCallError
from twinbridge.core.quotes import BridgeQuote
from twinbridge.core.validation import check_sol_balance, validate_bridge_amount, validate_quote_for_submission


def _quote(**overrides):
    values = dict(
        required_destination_amount=10,
        resolved_source_amount=1_000,
        minimum_destination_amount_after_slippage=10,
        is_estimate_only=False,
        execution_target=SWAP_TARGET,
        execution_payload=b"\x01",
        created_at=100.0,
    )
    values.update(overrides)
    return BridgeQuote(**values)


class TestBalance:
    """SOL balance with fee buffer."""

    @pytest.mark.asyncio
    async def test_sufficient(self, solana_client):
        solana_client.get_balance.return_value = rpc_response(20_000_000)
        result = await check_sol_balance(solana_client, Pubkey.new_unique(), 10_000_000, fee_buffer=10_000_000)
        assert result.sufficient
        assert result.shortfall == 0

    @pytest.mark.asyncio
    async def test_insufficient(self, solana_client):
        solana_client.get_balance.return_value = rpc_response(15_000_000)
        result = await check_sol_balance(solana_client, Pubkey.new_unique(), 10_000_000, fee_buffer=10_000_000)
        assert not result.sufficient
        assert result.shortfall == 5_000_000

    @pytest.mark.asyncio
    async def test_rpc_failure(self, solana_client):
        solana_client.get_balance.side_effect = ConnectionError("down")
        with pytest.raises(RemoteCallError):
            await check_sol_balance(solana_client, Pubkey.new_unique(), 1)


class TestQuoteValidation:
    """Quotes must be executable and fresh before submission."""

    def test_valid(self):
        quote = _quote()
        assert validate_quote_for_submission(quote, max_age=30, now=110.0) is quote

    @pytest.mark.parametrize(
        "overrides",
        [
            {"error": "boom"},
            {"is_estimate_only": True},
            {"execution_payload": b""},
            {"resolved_source_amount": 0},
        ],
    )
    def test_rejected(self, overrides):
        with pytest.raises(QuoteUnavailableError):
            validate_quote_for_submission(_quote(**overrides), max_age=30, now=110.0)

    def test_stale(self):
        with pytest.raises(QuoteUnavailableError, match="older than 30s"):
            validate_quote_for_submission(_quote(), max_age=30, now=131.0)


class TestBridgeAmount:
    """Minimum and u64 bounds."""

    def test_ok(self):
        assert validate_bridge_amount(1_000_000, 1_000_000) == 1_000_000

    def test_below_minimum(self):
        with pytest.raises(RangeError):
            validate_bridge_amount(999_999, 1_000_000)

    def test_too_large(self):
        with pytest.raises(RangeError):
            validate_bridge_amount(2**64, 1)
