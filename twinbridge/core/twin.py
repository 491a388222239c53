"""Destination (twin) address resolution on Base."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

from solders.pubkey import Pubkey
from web3 import AsyncHTTPProvider, AsyncWeb3

from twinbridge.config import BridgeConfig
from twinbridge.contracts import BRIDGE_ABI_FILE, ERC20_ABI_FILE, load_contract_abi
from twinbridge.core.codec import encode_base58, public_key_to_bytes32, to_checksum_address
from twinbridge.core.errors import BridgeError, RemoteCallError
from twinbridge.core.retry import RetryPolicy
from twinbridge.core.utils import get_logger

LOGGER = get_logger("twinbridge.twin")

ContractRead = Tuple[str, List[Dict[str, Any]], str, Sequence[Any]]


class ChainReadClient(Protocol):
    """Read-only view of the Base chain."""

    async def read_contract(
        self, address: str, abi: List[Dict[str, Any]], function_name: str, args: Sequence[Any] = ()
    ) -> Any:
        ...

    async def get_bytecode(self, address: str) -> bytes:
        ...

    async def read_many(self, calls: Sequence[ContractRead]) -> List[Any]:
        ...


class Web3ChainReader:
    """:class:`ChainReadClient` backed by ``AsyncWeb3``."""

    def __init__(self, web3: AsyncWeb3) -> None:
        self.web3 = web3

    @classmethod
    def from_rpc_url(cls, rpc_url: str) -> "Web3ChainReader":
        return cls(AsyncWeb3(AsyncHTTPProvider(rpc_url)))

    async def read_contract(
        self, address: str, abi: List[Dict[str, Any]], function_name: str, args: Sequence[Any] = ()
    ) -> Any:
        contract = self.web3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=abi)
        return await contract.functions[function_name](*args).call()

    async def get_bytecode(self, address: str) -> bytes:
        code = await self.web3.eth.get_code(AsyncWeb3.to_checksum_address(address))
        return bytes(code or b"")

    async def read_many(self, calls: Sequence[ContractRead]) -> List[Any]:
        return list(await asyncio.gather(*(self.read_contract(*call) for call in calls)))


@dataclass(frozen=True)
class TwinAddressInfo:
    """Source key, its twin on Base and whether the twin contract is deployed."""

    source_public_key: str
    twin_address: str
    is_deployed: bool


class DestinationResolver:
    """Predict and inspect the twin account controlled by a Solana key.

    The twin address is a pure function of the source key, computed by the Base
    bridge contract, so it is recomputed on demand and never cached.
    """

    def __init__(
        self,
        reader: ChainReadClient,
        config: BridgeConfig,
        *,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self.reader = reader
        self.config = config
        self.retry_policy = retry_policy or config.retry.to_policy()

    async def _call(self, label: str, operation):
        try:
            return await self.retry_policy.run(operation, label=label)
        except BridgeError:
            raise
        except Exception as exc:
            raise RemoteCallError(f"{label} failed: {exc}", status=getattr(exc, "status", None)) from exc

    async def resolve(self, source_public_key: Union[str, Pubkey]) -> str:
        """Return the checksum twin address for ``source_public_key``."""
        sender = public_key_to_bytes32(source_public_key)
        abi = load_contract_abi(BRIDGE_ABI_FILE)
        result = await self._call(
            "getPredictedTwinAddress",
            lambda: self.reader.read_contract(
                self.config.contracts.bridge, abi, "getPredictedTwinAddress", [sender]
            ),
        )
        twin = to_checksum_address(result)
        LOGGER.info("Resolved twin %s for %s", twin, encode_base58(sender))
        return twin

    async def is_deployed(self, address: str) -> bool:
        code = await self._call("getCode", lambda: self.reader.get_bytecode(address))
        return len(code) > 0

    async def is_setup(self, twin_address: str, adapter: Optional[str] = None) -> bool:
        """True when the twin already approved the adapter to pull its wrapped SOL."""
        spender = adapter or self.config.require_twin_adapter()
        abi = load_contract_abi(ERC20_ABI_FILE)
        allowance = await self._call(
            "allowance",
            lambda: self.reader.read_contract(
                self.config.contracts.wrapped_sol, abi, "allowance", [twin_address, spender]
            ),
        )
        return int(allowance) > self.config.defaults.setup_allowance_threshold

    async def describe(self, source_public_key: Union[str, Pubkey]) -> TwinAddressInfo:
        twin = await self.resolve(source_public_key)
        deployed = await self.is_deployed(twin)
        return TwinAddressInfo(
            source_public_key=encode_base58(public_key_to_bytes32(source_public_key)),
            twin_address=twin,
            is_deployed=deployed,
        )


__all__ = [
    "ChainReadClient",
    "DestinationResolver",
    "TwinAddressInfo",
    "Web3ChainReader",
]
