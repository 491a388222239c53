"""Bridge parameters for twin adapter actions.

Every action bridges SOL to the caller's twin and attaches one contract call
that the twin executes on Base. Paid actions spend the bridged wrapped SOL
through the adapter's on-chain swap and need an executable quote; free actions
only bridge the minimum amount to cover execution.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Optional, Sequence, Union

from solders.pubkey import Pubkey
from web3 import Web3

from twinbridge.config import BridgeConfig
from twinbridge.contracts import ERC20_ABI_FILE, TWIN_ADAPTER_ABI_FILE, load_contract_abi
from twinbridge.core.call import Call, ContractCall
from twinbridge.core.codec import encode_base58, public_key_to_bytes32, to_fixed_width_address
from twinbridge.core.quotes import BridgeQuote
from twinbridge.core.twin import DestinationResolver
from twinbridge.core.utils import format_units, get_logger, hex_to_bytes
from twinbridge.core.validation import validate_quote_for_submission

LOGGER = get_logger("twinbridge.actions")

MAX_UINT256 = (1 << 256) - 1
GAME_SEED_RANGE = 1_000_000


class ActionType(str, Enum):
    SETUP = "setup"
    MINT = "mint"
    SHOP_ITEM = "shopItem"
    GARDEN_ITEM = "gardenItem"
    BOX_GAME = "boxGame"
    SPIN_GAME = "spinGame"
    ATTACK = "attack"
    CLAIM_REWARDS = "claimRewards"
    SET_NAME = "setName"
    TRANSFER = "transfer"


PAID_ACTIONS = frozenset({ActionType.MINT, ActionType.SHOP_ITEM, ActionType.GARDEN_ITEM, ActionType.SET_NAME})

ACTION_DESCRIPTIONS = {
    ActionType.SETUP: "Setup Bridge Access",
    ActionType.MINT: "Mint Plant",
    ActionType.SHOP_ITEM: "Buy Shop Item",
    ActionType.GARDEN_ITEM: "Buy Garden Item",
    ActionType.BOX_GAME: "Play Box Game",
    ActionType.SPIN_GAME: "Play Spin Game",
    ActionType.ATTACK: "Attack Plant",
    ActionType.CLAIM_REWARDS: "Claim Rewards",
    ActionType.SET_NAME: "Set Plant Name",
    ActionType.TRANSFER: "Bridge SOL",
}


def requires_setup(action_type: Union[ActionType, str]) -> bool:
    """Paid actions need the twin to have approved wrapped SOL to the adapter."""
    return ActionType(action_type) in PAID_ACTIONS


def requires_quote(action_type: Union[ActionType, str]) -> bool:
    return ActionType(action_type) in PAID_ACTIONS


def describe_action(action_type: Union[ActionType, str]) -> str:
    try:
        return ACTION_DESCRIPTIONS[ActionType(action_type)]
    except ValueError:
        return "Unknown Action"


@dataclass(frozen=True)
class BridgeAction:
    """Everything needed to compose the bridge transaction for one action."""

    action_type: ActionType
    source_public_key: str
    twin_address: str
    sol_amount: int
    call: Optional[ContractCall]
    gas_limit: int
    description: str
    quote: Optional[BridgeQuote] = None


@lru_cache(maxsize=None)
def _encoder(abi_file: str):
    return Web3().eth.contract(abi=load_contract_abi(abi_file))


def encode_function_call(abi_file: str, function_name: str, args: Sequence[Any]) -> bytes:
    """ABI-encode ``function_name(*args)`` for a contract shipped in :mod:`twinbridge.contracts`."""
    return hex_to_bytes(_encoder(abi_file).encode_abi(function_name, args=list(args)))


class ActionBuilder:
    """Build :class:`BridgeAction` records for a Solana wallet."""

    def __init__(
        self,
        config: BridgeConfig,
        resolver: DestinationResolver,
        *,
        seed_factory: Callable[[], int] = lambda: secrets.randbelow(GAME_SEED_RANGE),
    ) -> None:
        self.config = config
        self.resolver = resolver
        self.seed_factory = seed_factory

    @property
    def bridge_fee(self) -> int:
        return self.config.defaults.bridge_fee_lamports

    def _free_amount(self) -> int:
        return self.config.defaults.min_bridge_lamports + self.bridge_fee

    def _checked_quote(self, quote: BridgeQuote) -> BridgeQuote:
        return validate_quote_for_submission(quote, max_age=self.config.defaults.quote_max_age)

    async def _build(
        self,
        action_type: ActionType,
        source_public_key: Union[str, Pubkey],
        *,
        target: str,
        abi_file: str,
        function_name: str,
        args: Sequence[Any],
        sol_amount: int,
        gas_limit: int,
        description: str,
        quote: Optional[BridgeQuote] = None,
    ) -> BridgeAction:
        adapter_call = Call(
            target=to_fixed_width_address(target),
            data=encode_function_call(abi_file, function_name, args),
        )
        source = encode_base58(public_key_to_bytes32(source_public_key))
        twin = await self.resolver.resolve(source)
        LOGGER.info(
            "Prepared %s action for twin %s: bridging %s SOL with gas limit %s",
            action_type.value,
            twin,
            format_units(sol_amount, 9),
            gas_limit,
        )
        return BridgeAction(
            action_type=action_type,
            source_public_key=source,
            twin_address=twin,
            sol_amount=sol_amount,
            call=adapter_call,
            gas_limit=gas_limit,
            description=description,
            quote=quote,
        )

    async def setup(self, source_public_key: Union[str, Pubkey]) -> BridgeAction:
        """Approve the adapter to spend the twin's wrapped SOL; needed once per twin."""
        adapter = self.config.require_twin_adapter()
        return await self._build(
            ActionType.SETUP,
            source_public_key,
            target=self.config.contracts.wrapped_sol,
            abi_file=ERC20_ABI_FILE,
            function_name="approve",
            args=[Web3.to_checksum_address(adapter), MAX_UINT256],
            sol_amount=self._free_amount(),
            gas_limit=self.config.defaults.default_gas_limit,
            description="Setup Solana bridge access (one-time)",
        )

    async def _paid(
        self,
        action_type: ActionType,
        source_public_key: Union[str, Pubkey],
        function_name: str,
        args: Sequence[Any],
        quote: BridgeQuote,
        description: str,
    ) -> BridgeAction:
        adapter = self.config.require_twin_adapter()
        checked = self._checked_quote(quote)
        return await self._build(
            action_type,
            source_public_key,
            target=adapter,
            abi_file=TWIN_ADAPTER_ABI_FILE,
            function_name=function_name,
            args=[
                *args,
                checked.resolved_source_amount,
                checked.minimum_destination_amount_after_slippage,
            ],
            sol_amount=checked.resolved_source_amount + self.bridge_fee,
            gas_limit=self.config.defaults.complex_gas_limit,
            description=description,
            quote=checked,
        )

    async def _free(
        self,
        action_type: ActionType,
        source_public_key: Union[str, Pubkey],
        function_name: str,
        args: Sequence[Any],
        description: str,
        gas_limit: Optional[int] = None,
    ) -> BridgeAction:
        adapter = self.config.require_twin_adapter()
        return await self._build(
            action_type,
            source_public_key,
            target=adapter,
            abi_file=TWIN_ADAPTER_ABI_FILE,
            function_name=function_name,
            args=args,
            sol_amount=self._free_amount(),
            gas_limit=gas_limit or self.config.defaults.medium_gas_limit,
            description=description,
        )

    async def mint(self, source_public_key: Union[str, Pubkey], strain: int, quote: BridgeQuote) -> BridgeAction:
        return await self._paid(
            ActionType.MINT, source_public_key, "mintWithWsol", [strain], quote, f"Mint plant (Strain {strain})"
        )

    async def shop_item(
        self, source_public_key: Union[str, Pubkey], plant_id: int, item_id: int, quote: BridgeQuote
    ) -> BridgeAction:
        return await self._paid(
            ActionType.SHOP_ITEM,
            source_public_key,
            "buyShopItemWithWsol",
            [plant_id, item_id],
            quote,
            f"Buy shop item #{item_id} for plant #{plant_id}",
        )

    async def garden_item(
        self, source_public_key: Union[str, Pubkey], plant_id: int, item_id: int, quote: BridgeQuote
    ) -> BridgeAction:
        return await self._paid(
            ActionType.GARDEN_ITEM,
            source_public_key,
            "buyGardenItemWithWsol",
            [plant_id, item_id],
            quote,
            f"Buy garden item #{item_id} for plant #{plant_id}",
        )

    async def set_name(
        self,
        source_public_key: Union[str, Pubkey],
        plant_id: int,
        name: str,
        quote: Optional[BridgeQuote] = None,
    ) -> BridgeAction:
        """Rename a plant; without a quote the rename is treated as free."""
        description = f'Rename plant #{plant_id} to "{name}"'
        if quote is not None:
            return await self._paid(
                ActionType.SET_NAME, source_public_key, "setPlantNameWithWsol", [plant_id, name], quote, description
            )
        return await self._free(
            ActionType.SET_NAME,
            source_public_key,
            "setPlantNameWithWsol",
            [plant_id, name, 0, 0],
            description,
            gas_limit=self.config.defaults.default_gas_limit,
        )

    async def box_game(self, source_public_key: Union[str, Pubkey], plant_id: int) -> BridgeAction:
        return await self._free(
            ActionType.BOX_GAME,
            source_public_key,
            "playBoxGame",
            [plant_id, self.seed_factory()],
            f"Play Box Game with plant #{plant_id}",
        )

    async def spin_game(self, source_public_key: Union[str, Pubkey], plant_id: int) -> BridgeAction:
        return await self._free(
            ActionType.SPIN_GAME,
            source_public_key,
            "playSpinGame",
            [plant_id, self.seed_factory()],
            f"Play Spin Game with plant #{plant_id}",
        )

    async def attack(self, source_public_key: Union[str, Pubkey], from_plant_id: int, to_plant_id: int) -> BridgeAction:
        return await self._free(
            ActionType.ATTACK,
            source_public_key,
            "attackPlant",
            [from_plant_id, to_plant_id],
            f"Attack plant #{to_plant_id} with plant #{from_plant_id}",
        )

    async def claim_rewards(self, source_public_key: Union[str, Pubkey], plant_id: int) -> BridgeAction:
        return await self._free(
            ActionType.CLAIM_REWARDS,
            source_public_key,
            "claimRewards",
            [plant_id],
            f"Claim rewards for plant #{plant_id}",
            gas_limit=self.config.defaults.default_gas_limit,
        )


__all__ = [
    "ACTION_DESCRIPTIONS",
    "ActionBuilder",
    "ActionType",
    "BridgeAction",
    "MAX_UINT256",
    "PAID_ACTIONS",
    "describe_action",
    "encode_function_call",
    "requires_quote",
    "requires_setup",
]
