"""Shared fixtures for twinbridge tests."""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from solders.hash import Hash
from solders.keypair import Keypair

from twinbridge.config import load_config
from twinbridge.core.retry import RetryPolicy

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

TWIN_ADAPTER = "0x1111111111111111111111111111111111111111"
TWIN_ADDRESS = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"
SWAP_TARGET = "0x2222222222222222222222222222222222222222"


def rpc_response(value):
    """Mimic the ``.value`` wrapper returned by solana-py RPC calls."""
    return SimpleNamespace(value=value)


@pytest.fixture
def config():
    return load_config(CONFIG_PATH, env={"SOLANA_TWIN_ADAPTER": TWIN_ADAPTER})


@pytest.fixture
def config_without_adapter():
    return load_config(CONFIG_PATH, env={})


@pytest.fixture
def fast_retry():
    """Retry policy that records delays instead of sleeping."""
    return RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=4.0, sleep=AsyncMock())


@pytest.fixture
def payer():
    return Keypair()


@pytest.fixture
def solana_client():
    """AsyncClient stand-in where every account exists."""
    client = MagicMock()
    client.get_account_info = AsyncMock(return_value=rpc_response(object()))
    client.get_latest_blockhash = AsyncMock(return_value=rpc_response(SimpleNamespace(blockhash=Hash.default())))
    client.get_balance = AsyncMock(return_value=rpc_response(10**10))
    client.send_raw_transaction = AsyncMock()
    client.confirm_transaction = AsyncMock()
    return client
