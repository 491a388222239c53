"""Quote how much wrapped SOL to bridge so the adapter swap yields a required amount."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Union

import requests

from twinbridge.config import BridgeConfig
from twinbridge.core.codec import parse_hex_payload, to_checksum_address
from twinbridge.core.errors import (
    BridgeError,
    FormatError,
    InsufficientLiquidityError,
    QuoteUnavailableError,
    RangeError,
)
from twinbridge.core.retry import RetryPolicy
from twinbridge.core.utils import apply_bps, format_units, get_logger

LOGGER = get_logger("twinbridge.quotes")

ROUTE_DESCRIPTION = "Aggregator swap via twin adapter"
ESTIMATE_ROUTE_DESCRIPTION = "Reference rate estimate"


def percent_to_bps(percent: Union[str, int, float, Decimal]) -> int:
    """Convert a slippage percentage (``"7"`` or ``0.5``) to basis points."""
    try:
        value = Decimal(str(percent).strip())
    except InvalidOperation as exc:
        raise FormatError(f"Invalid slippage percent {percent!r}") from exc
    if not value.is_finite() or value < 0:
        raise RangeError(f"Slippage percent must be a non-negative number, got {percent!r}")
    bps = value * 100
    if bps != bps.to_integral_value():
        raise FormatError(f"Slippage percent {percent!r} is finer than one basis point")
    return int(bps)


def apply_slippage(amount: int, slippage_bps: int) -> int:
    return apply_bps(amount, slippage_bps)


@dataclass(frozen=True)
class PriceQuote:
    """Indicative swap output for ``amount_in`` base units of the source token."""

    amount_in: int
    amount_out: int


@dataclass(frozen=True)
class SwapBuild:
    """Executable swap returned by the price API."""

    amount_in: int
    amount_out: int
    target: str
    payload: bytes


@dataclass(frozen=True)
class BridgeQuote:
    """Outcome of a quote request.

    ``is_estimate_only`` stays ``True`` until an executable swap covering the
    required amount has been obtained. ``error`` is set when the quote failed and
    all amounts are then zero.
    """

    required_destination_amount: int
    resolved_source_amount: int
    minimum_destination_amount_after_slippage: int
    is_estimate_only: bool = True
    route_description: str = ""
    execution_target: str = ""
    execution_payload: bytes = b""
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_executable(self) -> bool:
        return (
            self.ok
            and not self.is_estimate_only
            and bool(self.execution_target)
            and bool(self.execution_payload)
            and self.resolved_source_amount > 0
            and self.minimum_destination_amount_after_slippage > 0
        )

    def age(self, now: Optional[float] = None) -> float:
        return (time.time() if now is None else now) - self.created_at

    def is_stale(self, max_age: float, now: Optional[float] = None) -> bool:
        return self.age(now) > max_age

    @classmethod
    def failed(cls, required: int, message: str) -> "BridgeQuote":
        return cls(
            required_destination_amount=required,
            resolved_source_amount=0,
            minimum_destination_amount_after_slippage=0,
            error=message,
        )


class PriceQuoteAPI(Protocol):
    """External swap pricing service."""

    async def get_quote(self, amount_in: int) -> PriceQuote:
        ...

    async def build_swap(self, amount_in: int, *, from_address: str, slippage_bps: int) -> SwapBuild:
        ...


class HttpPriceQuoteClient:
    """Price API adapter using ``requests`` in a worker thread.

    ``GET price_quote?from&to&amount`` answers ``{"toAmount": ...}`` and
    ``GET swap_build?...&fromAddress&maxSlippage`` answers
    ``{"transaction": {"to", "data"}, "quote": {"toAmount"}}``. Either may
    answer ``{"error": ...}`` instead.

    Without an injected ``session`` each request goes through module-level
    ``requests.get``, so concurrent worker threads share no connection state.
    An injected session must only be used by one attempt at a time.
    """

    def __init__(self, config: BridgeConfig, *, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self.session = session

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.api_urls.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_urls.api_key}"
        return headers

    def _base_params(self, amount_in: int) -> Dict[str, str]:
        tokens = self.config.tokens
        return {
            "from": tokens.source.address,
            "to": tokens.destination.address,
            "amount": format_units(amount_in, tokens.source.decimals),
        }

    def _get_json(self, url: str, params: Mapping[str, Any]) -> Dict[str, Any]:
        try:
            response = (self.session or requests).get(
                url,
                params=params,
                headers=self._headers(),
                timeout=self.config.defaults.api_timeout,
            )
        except requests.RequestException as exc:
            raise QuoteUnavailableError(f"Price API request to {url} failed: {exc}") from exc

        if response.status_code >= 400:
            raise QuoteUnavailableError(
                f"Price API {url} returned HTTP {response.status_code}: {response.text[:200]}",
                status=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise QuoteUnavailableError(f"Price API {url} returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise QuoteUnavailableError(f"Price API {url} returned unexpected payload")
        if payload.get("error"):
            raise QuoteUnavailableError(f"Price API error: {payload.get('message') or payload['error']}")
        return payload

    @staticmethod
    def _to_amount(payload: Mapping[str, Any], context: str) -> int:
        raw = payload.get("toAmount")
        if raw in (None, ""):
            raise QuoteUnavailableError(f"Invalid {context} response: missing toAmount")
        try:
            return int(raw)
        except (TypeError, ValueError) as exc:
            raise QuoteUnavailableError(f"Invalid {context} response: toAmount={raw!r}") from exc

    async def get_quote(self, amount_in: int) -> PriceQuote:
        payload = await asyncio.to_thread(
            self._get_json, self.config.api_urls.price_quote, self._base_params(amount_in)
        )
        return PriceQuote(amount_in=amount_in, amount_out=self._to_amount(payload, "quote"))

    async def build_swap(self, amount_in: int, *, from_address: str, slippage_bps: int) -> SwapBuild:
        params = self._base_params(amount_in)
        params["fromAddress"] = to_checksum_address(from_address)
        params["maxSlippage"] = format_units(slippage_bps, 2)
        payload = await asyncio.to_thread(self._get_json, self.config.api_urls.swap_build, params)

        transaction = payload.get("transaction") or {}
        if not transaction.get("to") or not transaction.get("data"):
            raise QuoteUnavailableError("Invalid transaction response from price API")
        try:
            target = to_checksum_address(transaction["to"])
            data = parse_hex_payload(transaction["data"])
        except FormatError as exc:
            raise QuoteUnavailableError(f"Price API returned malformed transaction: {exc}") from exc

        return SwapBuild(
            amount_in=amount_in,
            amount_out=self._to_amount(payload.get("quote") or {}, "swap"),
            target=target,
            payload=data,
        )


class QuoteResolver:
    """Turn a required destination amount into a source amount and swap payload."""

    def __init__(
        self,
        api: PriceQuoteAPI,
        config: BridgeConfig,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.api = api
        self.config = config
        self.retry_policy = retry_policy or config.retry.to_policy()
        self.clock = clock

    @property
    def unit(self) -> int:
        return 10 ** self.config.tokens.source.decimals

    async def _remote(self, label: str, operation):
        try:
            return await self.retry_policy.run(operation, label=label)
        except BridgeError:
            raise
        except Exception as exc:
            raise QuoteUnavailableError(f"{label} failed: {exc}") from exc

    def _slippage(self, slippage_bps: Optional[int]) -> int:
        defaults = self.config.defaults
        bps = defaults.slippage_bps if slippage_bps is None else slippage_bps
        if not 0 <= bps <= defaults.max_slippage_bps:
            raise RangeError(f"slippage must be between 0 and {defaults.max_slippage_bps} bps, got {bps}")
        return bps

    async def reference_rate(self) -> int:
        """Destination base units received for one whole source token."""
        quote = await self._remote("price quote", lambda: self.api.get_quote(self.unit))
        if quote.amount_out <= 0:
            raise QuoteUnavailableError("Failed to fetch price: reference rate is not positive")
        return quote.amount_out

    def initial_estimate(self, required: int, rate: int) -> int:
        """``ceil(required / rate)`` source units plus 1%, clamped to the dust minimum."""
        estimated = -(-required * self.unit // rate)
        return max(estimated * 101 // 100, self.config.defaults.min_quote_lamports)

    @staticmethod
    def amplify(amount: int, required: int, quoted: int) -> int:
        """Inflate ``amount`` by the shortfall ratio plus a fifth of it."""
        deficit_ratio = (required - quoted) * 100 // required
        extra = 1 + deficit_ratio // 5
        return amount * (100 + deficit_ratio + extra) // 100

    def _check_required(self, required: int) -> None:
        if isinstance(required, bool) or not isinstance(required, int) or required <= 0:
            raise RangeError(f"Required destination amount must be a positive integer, got {required!r}")

    async def resolve(
        self,
        required: int,
        *,
        from_address: Optional[str] = None,
        slippage_bps: Optional[int] = None,
    ) -> BridgeQuote:
        """Return an executable quote or raise.

        ``from_address`` defaults to the twin adapter, which performs the swap on Base.
        """
        self._check_required(required)
        bps = self._slippage(slippage_bps)
        sender = from_address or self.config.require_twin_adapter()

        rate = await self.reference_rate()
        amount = self.initial_estimate(required, rate)
        LOGGER.info(
            "Quoting %s %s: rate=%s estimate=%s",
            format_units(required, self.config.tokens.destination.decimals),
            self.config.tokens.destination.symbol,
            rate,
            amount,
        )

        attempts = self.config.defaults.amplification_attempts
        for attempt in range(attempts + 1):
            swap = await self._remote(
                "swap build",
                lambda: self.api.build_swap(amount, from_address=sender, slippage_bps=bps),
            )
            if swap.amount_out >= required:
                break
            if attempt >= attempts:
                raise InsufficientLiquidityError(
                    f"Insufficient liquidity: {amount} source units quote {swap.amount_out}, need {required}",
                    required=required,
                    quoted=swap.amount_out,
                )
            amount = self.amplify(amount, required, swap.amount_out)
            LOGGER.warning("Swap quote short by %s, retrying with %s", required - swap.amount_out, amount)

        return BridgeQuote(
            required_destination_amount=required,
            resolved_source_amount=apply_slippage(amount, bps),
            minimum_destination_amount_after_slippage=required,
            is_estimate_only=False,
            route_description=ROUTE_DESCRIPTION,
            execution_target=swap.target,
            execution_payload=swap.payload,
            created_at=self.clock(),
        )

    async def quote(self, required: int, **kwargs: Any) -> BridgeQuote:
        """Like :meth:`resolve` but reports failures on the returned quote."""
        try:
            return await self.resolve(required, **kwargs)
        except BridgeError as exc:
            LOGGER.warning("Quote for %s failed: %s", required, exc)
            return replace(BridgeQuote.failed(required, str(exc)), created_at=self.clock())

    async def estimate(self, required: int, *, slippage_bps: Optional[int] = None) -> BridgeQuote:
        """Price-only quote for display; never executable."""
        self._check_required(required)
        bps = self._slippage(slippage_bps)
        rate = await self.reference_rate()
        return BridgeQuote(
            required_destination_amount=required,
            resolved_source_amount=apply_slippage(self.initial_estimate(required, rate), bps),
            minimum_destination_amount_after_slippage=required,
            is_estimate_only=True,
            route_description=ESTIMATE_ROUTE_DESCRIPTION,
            created_at=self.clock(),
        )


__all__ = [
    "BridgeQuote",
    "HttpPriceQuoteClient",
    "PriceQuote",
    "PriceQuoteAPI",
    "QuoteResolver",
    "SwapBuild",
    "apply_slippage",
    "percent_to_bps",
]
