"""Tests for quote resolution and the HTTP price client."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import SWAP_TARGET, TWIN_ADAPTER
from twinbridge.core.errors import FormatError, InsufficientLiquidityError, QuoteUnavailableError, RangeError
from twinbridge.core.quotes import (
    BridgeQuote,
    HttpPriceQuoteClient,
    PriceQuote,
    QuoteResolver,
    SwapBuild,
    apply_slippage,
    percent_to_bps,
)

SEED = 10**18
RATE = 100 * SEED  # 100 destination tokens per SOL
PAYLOAD = bytes.fromhex("deadbeef")


def _api(rate=RATE, outputs=()):
    api = MagicMock()
    api.get_quote = AsyncMock(return_value=PriceQuote(amount_in=10**9, amount_out=rate))
    api.build_swap = AsyncMock(
        side_effect=[
            SwapBuild(amount_in=0, amount_out=out, target=SWAP_TARGET, payload=PAYLOAD) for out in outputs
        ]
    )
    return api


class TestHelpers:
    """Slippage arithmetic."""

    def test_percent_to_bps(self):
        assert percent_to_bps("7") == 700
        assert percent_to_bps(0.5) == 50

    def test_negative_percent_rejected(self):
        with pytest.raises(RangeError):
            percent_to_bps("-1")

    @pytest.mark.parametrize("percent", ["0.001", "7.005"])
    def test_fractional_basis_points_rejected(self, percent):
        with pytest.raises(FormatError):
            percent_to_bps(percent)

    def test_apply_slippage(self):
        assert apply_slippage(1_000_000, 700) == 1_070_000


class TestQuoteResolver:
    """Iterative refinement of the bridged amount."""

    @pytest.mark.asyncio
    async def test_first_swap_quote_is_enough(self, config, fast_retry):
        required = 50 * SEED
        api = _api(outputs=[required])
        resolver = QuoteResolver(api, config, retry_policy=fast_retry, clock=lambda: 1000.0)

        quote = await resolver.resolve(required)

        # ceil(50e18 * 1e9 / 100e18) = 5e8, plus 1%
        api.build_swap.assert_awaited_once_with(505_000_000, from_address=TWIN_ADAPTER, slippage_bps=700)
        assert quote.resolved_source_amount == 505_000_000 * 10_700 // 10_000
        assert quote.minimum_destination_amount_after_slippage == required
        assert quote.is_estimate_only is False
        assert quote.execution_target == SWAP_TARGET
        assert quote.execution_payload == PAYLOAD
        assert quote.created_at == 1000.0
        assert quote.is_executable

    @pytest.mark.asyncio
    async def test_amplifies_once_when_short(self, config, fast_retry):
        required = 50 * SEED
        api = _api(outputs=[40 * SEED, 51 * SEED])
        resolver = QuoteResolver(api, config, retry_policy=fast_retry)

        quote = await resolver.resolve(required)

        # 20% short: inflate by 20 + (1 + 20 // 5) = 25%
        assert api.build_swap.await_count == 2
        assert api.build_swap.await_args_list[1].args[0] == 631_250_000
        assert quote.resolved_source_amount == 675_437_500

    @pytest.mark.asyncio
    async def test_insufficient_after_amplification(self, config, fast_retry):
        required = 50 * SEED
        api = _api(outputs=[40 * SEED, 45 * SEED])
        resolver = QuoteResolver(api, config, retry_policy=fast_retry)

        with pytest.raises(InsufficientLiquidityError) as excinfo:
            await resolver.resolve(required)
        assert excinfo.value.required == required
        assert excinfo.value.quoted == 45 * SEED
        assert api.build_swap.await_count == 2

    @pytest.mark.asyncio
    async def test_minimum_amount_clamp(self, config, fast_retry):
        api = _api(outputs=[SEED])
        resolver = QuoteResolver(api, config, retry_policy=fast_retry)

        quote = await resolver.resolve(1)

        assert api.build_swap.await_args.args[0] == config.defaults.min_quote_lamports
        assert quote.resolved_source_amount == 107_000

    @pytest.mark.asyncio
    async def test_zero_rate_is_unavailable(self, config, fast_retry):
        resolver = QuoteResolver(_api(rate=0), config, retry_policy=fast_retry)
        with pytest.raises(QuoteUnavailableError):
            await resolver.resolve(SEED)

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self, config, fast_retry):
        api = _api(outputs=[SEED])
        api.get_quote.side_effect = [
            QuoteUnavailableError("HTTP 429", status=429),
            PriceQuote(amount_in=10**9, amount_out=RATE),
        ]
        resolver = QuoteResolver(api, config, retry_policy=fast_retry)

        quote = await resolver.resolve(SEED)

        assert quote.ok
        assert api.get_quote.await_count == 2
        fast_retry.sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_unexpected_errors_become_quote_unavailable(self, config, fast_retry):
        api = _api()
        api.get_quote.side_effect = ConnectionError("reset")
        resolver = QuoteResolver(api, config, retry_policy=fast_retry)

        with pytest.raises(QuoteUnavailableError):
            await resolver.resolve(SEED)
        assert api.get_quote.await_count == 1

    @pytest.mark.asyncio
    async def test_quote_reports_errors(self, config, fast_retry):
        resolver = QuoteResolver(_api(rate=0), config, retry_policy=fast_retry)

        quote = await resolver.quote(SEED)

        assert quote.error
        assert quote.resolved_source_amount == 0
        assert not quote.is_executable

    @pytest.mark.asyncio
    async def test_estimate_only(self, config, fast_retry):
        api = _api()
        resolver = QuoteResolver(api, config, retry_policy=fast_retry)

        quote = await resolver.estimate(50 * SEED)

        assert quote.is_estimate_only
        assert quote.execution_payload == b""
        assert quote.resolved_source_amount == 540_350_000
        api.build_swap.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_requires_twin_adapter(self, config_without_adapter, fast_retry):
        resolver = QuoteResolver(_api(outputs=[SEED]), config_without_adapter, retry_policy=fast_retry)
        quote = await resolver.quote(SEED)
        assert "Twin adapter" in quote.error

    @pytest.mark.asyncio
    async def test_slippage_above_maximum(self, config, fast_retry):
        resolver = QuoteResolver(_api(outputs=[SEED]), config, retry_policy=fast_retry)
        with pytest.raises(RangeError):
            await resolver.resolve(SEED, slippage_bps=5_000)

    @pytest.mark.asyncio
    async def test_non_positive_requirement(self, config, fast_retry):
        resolver = QuoteResolver(_api(), config, retry_policy=fast_retry)
        with pytest.raises(RangeError):
            await resolver.resolve(0)


class TestBridgeQuote:
    """Staleness."""

    def test_stale_after_max_age(self):
        quote = BridgeQuote(1, 1, 1, created_at=100.0)
        assert not quote.is_stale(30, now=129.0)
        assert quote.is_stale(30, now=131.0)


def _response(status, payload):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload
    response.text = str(payload)
    return response


class TestHttpPriceQuoteClient:
    """requests-backed price API adapter."""

    @pytest.mark.asyncio
    async def test_default_uses_module_level_get(self, config):
        client = HttpPriceQuoteClient(config)

        with patch("twinbridge.core.quotes.requests.get", return_value=_response(200, {"toAmount": "7"})) as get:
            quote = await client.get_quote(10**9)

        assert quote.amount_out == 7
        assert get.call_args.args[0] == config.api_urls.price_quote

    @pytest.mark.asyncio
    async def test_get_quote(self, config):
        session = MagicMock()
        session.get.return_value = _response(200, {"toAmount": "123"})
        client = HttpPriceQuoteClient(config, session=session)

        quote = await client.get_quote(10**9)

        assert quote.amount_out == 123
        _, kwargs = session.get.call_args
        assert kwargs["params"]["amount"] == "1"
        assert kwargs["params"]["from"] == config.tokens.source.address
        assert kwargs["timeout"] == config.defaults.api_timeout

    @pytest.mark.asyncio
    async def test_http_429_carries_status(self, config):
        session = MagicMock()
        session.get.return_value = _response(429, {"error": "slow down"})
        client = HttpPriceQuoteClient(config, session=session)

        with pytest.raises(QuoteUnavailableError) as excinfo:
            await client.get_quote(10**9)
        assert excinfo.value.status == 429

    @pytest.mark.asyncio
    async def test_error_body(self, config):
        session = MagicMock()
        session.get.return_value = _response(200, {"error": "no route"})
        client = HttpPriceQuoteClient(config, session=session)

        with pytest.raises(QuoteUnavailableError, match="no route"):
            await client.get_quote(10**9)

    @pytest.mark.asyncio
    async def test_build_swap(self, config):
        session = MagicMock()
        session.get.return_value = _response(
            200,
            {"transaction": {"to": SWAP_TARGET, "data": "0xdeadbeef"}, "quote": {"toAmount": "999"}},
        )
        client = HttpPriceQuoteClient(config, session=session)

        swap = await client.build_swap(5 * 10**8, from_address=TWIN_ADAPTER, slippage_bps=700)

        assert swap.amount_out == 999
        assert swap.target == SWAP_TARGET
        assert swap.payload == PAYLOAD
        _, kwargs = session.get.call_args
        assert kwargs["params"]["maxSlippage"] == "7"
        assert kwargs["params"]["amount"] == "0.5"

    @pytest.mark.asyncio
    async def test_build_swap_without_transaction(self, config):
        session = MagicMock()
        session.get.return_value = _response(200, {"quote": {"toAmount": "1"}})
        client = HttpPriceQuoteClient(config, session=session)

        with pytest.raises(QuoteUnavailableError):
            await client.build_swap(1, from_address=TWIN_ADAPTER, slippage_bps=0)
