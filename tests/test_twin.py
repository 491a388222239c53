"""Tests for twin address resolution."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from web3 import Web3

from conftest import TWIN_ADAPTER, TWIN_ADDRESS
from twinbridge.core.codec import public_key_to_bytes32
from twinbridge.core.errors import ConfigurationError, RemoteCallError
from twinbridge.core.twin import DestinationResolver, Web3ChainReader

SOURCE_KEY = "g1et5VenhfJHJwsdJsDbxWZuotD5H4iELNG61kS4fb9"


def _reader(*, twin=TWIN_ADDRESS.lower(), code=b"", allowance=0):
    reader = MagicMock()

    async def read_contract(address, abi, function_name, args=()):
        if function_name == "getPredictedTwinAddress":
            return twin
        if function_name == "allowance":
            return allowance
        raise AssertionError(function_name)

    reader.read_contract = AsyncMock(side_effect=read_contract)
    reader.get_bytecode = AsyncMock(return_value=code)
    return reader


class TestDestinationResolver:
    """Prediction, deployment and setup checks."""

    @pytest.mark.asyncio
    async def test_resolve_calls_bridge_contract(self, config, fast_retry):
        reader = _reader()
        resolver = DestinationResolver(reader, config, retry_policy=fast_retry)

        twin = await resolver.resolve(SOURCE_KEY)

        assert twin == Web3.to_checksum_address(TWIN_ADDRESS)
        address, _abi, function_name, args = reader.read_contract.await_args.args
        assert address == config.contracts.bridge
        assert function_name == "getPredictedTwinAddress"
        assert args == [public_key_to_bytes32(SOURCE_KEY)]

    @pytest.mark.asyncio
    async def test_resolve_is_deterministic(self, config, fast_retry):
        resolver = DestinationResolver(_reader(), config, retry_policy=fast_retry)
        assert await resolver.resolve(SOURCE_KEY) == await resolver.resolve(SOURCE_KEY)

    @pytest.mark.asyncio
    async def test_network_failure(self, config, fast_retry):
        reader = _reader()
        reader.read_contract.side_effect = ConnectionError("connection refused")
        resolver = DestinationResolver(reader, config, retry_policy=fast_retry)

        with pytest.raises(RemoteCallError):
            await resolver.resolve(SOURCE_KEY)
        assert reader.read_contract.await_count == 1

    @pytest.mark.asyncio
    async def test_rate_limited_read_is_retried(self, config, fast_retry):
        reader = _reader()
        reader.read_contract.side_effect = [RuntimeError("429 Too Many Requests"), TWIN_ADDRESS]
        resolver = DestinationResolver(reader, config, retry_policy=fast_retry)

        assert await resolver.resolve(SOURCE_KEY) == Web3.to_checksum_address(TWIN_ADDRESS)
        assert reader.read_contract.await_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code, expected", [(b"", False), (b"\x60\x80", True)])
    async def test_is_deployed(self, config, fast_retry, code, expected):
        resolver = DestinationResolver(_reader(code=code), config, retry_policy=fast_retry)
        assert await resolver.is_deployed(TWIN_ADDRESS) is expected

    @pytest.mark.asyncio
    async def test_is_setup_uses_allowance(self, config, fast_retry):
        high = DestinationResolver(_reader(allowance=2**256 - 1), config, retry_policy=fast_retry)
        low = DestinationResolver(_reader(allowance=10**18), config, retry_policy=fast_retry)

        assert await high.is_setup(TWIN_ADDRESS) is True
        assert await low.is_setup(TWIN_ADDRESS) is False

        address, _abi, _fn, args = high.reader.read_contract.await_args.args
        assert address == config.contracts.wrapped_sol
        assert args == [TWIN_ADDRESS, TWIN_ADAPTER]

    @pytest.mark.asyncio
    async def test_is_setup_requires_adapter(self, config_without_adapter, fast_retry):
        resolver = DestinationResolver(_reader(), config_without_adapter, retry_policy=fast_retry)
        with pytest.raises(ConfigurationError):
            await resolver.is_setup(TWIN_ADDRESS)

    @pytest.mark.asyncio
    async def test_describe(self, config, fast_retry):
        resolver = DestinationResolver(_reader(code=b"\x01"), config, retry_policy=fast_retry)

        info = await resolver.describe(SOURCE_KEY)

        assert info.source_public_key == SOURCE_KEY
        assert info.twin_address == Web3.to_checksum_address(TWIN_ADDRESS)
        assert info.is_deployed is True


class TestWeb3ChainReader:
    """Batch reads."""

    @pytest.mark.asyncio
    async def test_read_many_preserves_order(self):
        reader = Web3ChainReader(MagicMock())
        reader.read_contract = AsyncMock(side_effect=lambda address, abi, fn, args: f"{fn}:{args[0]}")

        results = await reader.read_many([(TWIN_ADDRESS, [], "a", [1]), (TWIN_ADDRESS, [], "b", [2])])

        assert results == ["a:1", "b:2"]
