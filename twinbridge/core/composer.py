"""Compose the ordered Solana instructions for one bridge attempt."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from solana.rpc.async_api import AsyncClient
from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from spl.token.constants import TOKEN_PROGRAM_ID

from twinbridge.config import BridgeConfig
from twinbridge.core.call import ContractCall
from twinbridge.core.codec import to_checksum_address, to_fixed_width_address
from twinbridge.core.errors import BridgeError, ConfigurationError, FormatError, RemoteCallError
from twinbridge.core.instructions import (
    BridgeSolAccounts,
    BridgeSplAccounts,
    PayForRelayAccounts,
    build_bridge_sol_instruction,
    build_bridge_spl_instruction,
    build_pay_for_relay_instruction,
)
from twinbridge.core.pda import (
    SaltBundle,
    create_salt_bundle,
    derive_bridge_address,
    derive_relayer_config,
    derive_sol_vault,
    derive_token_vault,
    generate_salt,
)
from twinbridge.core.retry import RetryPolicy
from twinbridge.core.utils import get_logger

LOGGER = get_logger("twinbridge.composer")

NATIVE_SOL_REMOTE = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"


@dataclass(frozen=True)
class BridgeAsset:
    """Asset leaving Solana; ``remote_address`` is its token on Base."""

    symbol: str
    kind: str
    decimals: int
    remote_address: str = NATIVE_SOL_REMOTE
    mint: Optional[Pubkey] = None
    token_program: Pubkey = TOKEN_PROGRAM_ID

    @property
    def is_native(self) -> bool:
        return self.kind == "sol"


SOL = BridgeAsset(symbol="SOL", kind="sol", decimals=9)


@dataclass(frozen=True)
class BridgeTransactionPlan:
    """Unsigned bridge transaction, consumed once by the submission layer."""

    instructions: Tuple[Instruction, ...]
    fee_payer: Pubkey
    recent_blockhash: Hash
    salt_bundle: SaltBundle
    destination: str
    amount: int
    relayed: bool
    asset: BridgeAsset = SOL
    call: Optional[ContractCall] = None

    def to_message(self) -> Message:
        return Message.new_with_blockhash(list(self.instructions), self.fee_payer, self.recent_blockhash)


class TransactionComposer:
    """Build ``[PayForRelay, Bridge]``, or ``[Bridge]`` when the relayer is unavailable.

    Each call to :meth:`compose` draws a fresh salt, so plans never share
    message accounts. The composer itself keeps no per-attempt state.
    """

    def __init__(
        self,
        client: AsyncClient,
        config: BridgeConfig,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        salt_factory: Callable[[], bytes] = generate_salt,
    ) -> None:
        self.client = client
        self.config = config
        self.retry_policy = retry_policy or config.retry.to_policy()
        self.salt_factory = salt_factory

    async def _rpc(self, label: str, operation):
        try:
            return await self.retry_policy.run(operation, label=label)
        except BridgeError:
            raise
        except Exception as exc:
            raise RemoteCallError(f"{label} failed: {exc}") from exc

    async def _account_exists(self, address: Pubkey, label: str) -> bool:
        response = await self._rpc(label, lambda: self.client.get_account_info(address))
        return response.value is not None

    async def _relayer_available(self, config_account: Pubkey) -> bool:
        try:
            return await self._account_exists(config_account, "getAccountInfo(relayer config)")
        except RemoteCallError as exc:
            LOGGER.warning("Relayer config lookup failed, bridging without relay payment: %s", exc)
            return False

    async def _latest_blockhash(self) -> Hash:
        response = await self._rpc("getLatestBlockhash", self.client.get_latest_blockhash)
        return response.value.blockhash

    def _bridge_instruction(
        self,
        *,
        payer: Pubkey,
        source: Pubkey,
        bridge: Pubkey,
        bundle: SaltBundle,
        to: bytes,
        amount: int,
        asset: BridgeAsset,
        call: Optional[ContractCall],
        source_token_account: Optional[Pubkey],
    ) -> Instruction:
        programs = self.config.programs
        if asset.is_native:
            accounts = BridgeSolAccounts(
                payer=payer,
                source=source,
                gas_fee_receiver=programs.gas_fee_receiver,
                sol_vault=derive_sol_vault(programs.bridge_program),
                bridge=bridge,
                outgoing_message=bundle.outgoing_message,
            )
            return build_bridge_sol_instruction(
                programs.bridge_program, accounts, salt=bundle.salt, to=to, amount=amount, call=call
            )

        if asset.mint is None or source_token_account is None:
            raise FormatError(f"SPL bridging of {asset.symbol} requires a mint and a source token account")
        remote_token = to_fixed_width_address(asset.remote_address)
        accounts = BridgeSplAccounts(
            payer=payer,
            source=source,
            gas_fee_receiver=programs.gas_fee_receiver,
            mint=asset.mint,
            source_token_account=source_token_account,
            bridge=bridge,
            token_vault=derive_token_vault(programs.bridge_program, asset.mint, remote_token),
            outgoing_message=bundle.outgoing_message,
            token_program=asset.token_program,
        )
        return build_bridge_spl_instruction(
            programs.bridge_program,
            accounts,
            salt=bundle.salt,
            to=to,
            remote_token=remote_token,
            amount=amount,
            call=call,
        )

    async def compose(
        self,
        payer: Pubkey,
        to: Union[str, bytes],
        amount: int,
        *,
        asset: BridgeAsset = SOL,
        call: Optional[ContractCall] = None,
        gas_limit: Optional[int] = None,
        source: Optional[Pubkey] = None,
        source_token_account: Optional[Pubkey] = None,
        salt: Optional[bytes] = None,
    ) -> BridgeTransactionPlan:
        """Compose an unsigned plan bridging ``amount`` base units to ``to`` on Base.

        Raises :class:`ConfigurationError` when the bridge account is missing and
        :class:`FormatError` for malformed inputs. A missing or unreachable
        relayer config only downgrades the plan to bridge-only.
        """
        programs = self.config.programs
        destination = to_fixed_width_address(to)
        bundle = create_salt_bundle(
            programs.bridge_program, programs.relayer_program, salt=salt, salt_factory=self.salt_factory
        )

        bridge = derive_bridge_address(programs.bridge_program)
        if not await self._account_exists(bridge, "getAccountInfo(bridge)"):
            raise ConfigurationError(f"Bridge account {bridge} not found on Solana; check bridge_program")

        recent_blockhash = await self._latest_blockhash()

        bridge_ix = self._bridge_instruction(
            payer=payer,
            source=source or payer,
            bridge=bridge,
            bundle=bundle,
            to=destination,
            amount=amount,
            asset=asset,
            call=call,
            source_token_account=source_token_account,
        )

        relayer_config = derive_relayer_config(programs.relayer_program)
        relayed = await self._relayer_available(relayer_config)
        if relayed:
            relay_ix = build_pay_for_relay_instruction(
                programs.relayer_program,
                PayForRelayAccounts(
                    payer=payer,
                    config=relayer_config,
                    gas_fee_receiver=programs.gas_fee_receiver,
                    message_to_relay=bundle.message_to_relay,
                ),
                salt=bundle.salt,
                outgoing_message=bundle.outgoing_message,
                gas_limit=gas_limit if gas_limit is not None else self.config.defaults.default_gas_limit,
            )
            instructions: Tuple[Instruction, ...] = (relay_ix, bridge_ix)
        else:
            LOGGER.warning("Relayer config %s unavailable, composing bridge-only transaction", relayer_config)
            instructions = (bridge_ix,)

        LOGGER.info(
            "Composed bridge of %s %s to %s (salt=%s relayed=%s)",
            amount,
            asset.symbol,
            to_checksum_address(destination),
            bundle.salt_hex,
            relayed,
        )
        return BridgeTransactionPlan(
            instructions=instructions,
            fee_payer=payer,
            recent_blockhash=recent_blockhash,
            salt_bundle=bundle,
            destination=to_checksum_address(destination),
            amount=amount,
            relayed=relayed,
            asset=asset,
            call=call,
        )


__all__ = ["BridgeAsset", "BridgeTransactionPlan", "SOL", "TransactionComposer"]
