"""End-to-end bridge execution: compose, sign, submit and confirm."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from solana.rpc.async_api import AsyncClient

from twinbridge.config import BridgeConfig
from twinbridge.core.actions import BridgeAction
from twinbridge.core.composer import BridgeTransactionPlan, TransactionComposer
from twinbridge.core.errors import BridgeError, ConfirmationError
from twinbridge.core.submission import SignedBridgeTransaction, SubmissionManager, TransactionSigner
from twinbridge.core.utils import format_units, get_logger
from twinbridge.core.validation import (
    BalanceCheck,
    check_sol_balance,
    validate_bridge_amount,
    validate_quote_for_submission,
)

LOGGER = get_logger("twinbridge.executor")


@dataclass(frozen=True)
class BridgeExecuteResult:
    """Outcome of :meth:`BridgeExecutor.execute`.

    ``signature`` is kept whenever the transaction was broadcast, including
    when confirmation could not be observed.
    """

    success: bool
    signature: Optional[str] = None
    relayed: bool = False
    error: Optional[str] = None
    explorer_url: Optional[str] = None


class BridgeExecutor:
    """High-level orchestrator for bridging one action from Solana."""

    def __init__(
        self,
        *,
        config: BridgeConfig,
        client: AsyncClient,
        signer: TransactionSigner,
        composer: Optional[TransactionComposer] = None,
        submission: Optional[SubmissionManager] = None,
    ) -> None:
        self.config = config
        self.client = client
        self.signer = signer
        retry_policy = config.retry.to_policy()
        self.composer = composer or TransactionComposer(client, config, retry_policy=retry_policy)
        self.submission = submission or SubmissionManager(client, signer, retry_policy=retry_policy)

    async def check_balance(self, action: BridgeAction) -> BalanceCheck:
        return await check_sol_balance(
            self.client,
            self.signer.pubkey,
            action.sol_amount,
            fee_buffer=self.config.defaults.fee_buffer_lamports,
        )

    async def prepare_plan(self, action: BridgeAction) -> BridgeTransactionPlan:
        validate_bridge_amount(action.sol_amount, self.config.defaults.min_bridge_lamports)
        if action.quote is not None:
            validate_quote_for_submission(action.quote, max_age=self.config.defaults.quote_max_age)
        plan = await self.composer.compose(
            self.signer.pubkey,
            action.twin_address,
            action.sol_amount,
            call=action.call,
            gas_limit=action.gas_limit,
        )
        self._log_plan(action, plan)
        return plan

    async def execute_dry_run(self, action: BridgeAction) -> SignedBridgeTransaction:
        """Compose and sign without broadcasting."""
        plan = await self.prepare_plan(action)
        balance = await self.check_balance(action)
        if not balance.sufficient:
            LOGGER.warning("Sending would fail: short by %s SOL", format_units(balance.shortfall, 9))
        return await self.submission.sign(plan)

    async def execute(self, action: BridgeAction) -> BridgeExecuteResult:
        try:
            balance = await self.check_balance(action)
            if not balance.sufficient:
                return BridgeExecuteResult(
                    success=False,
                    error=(
                        f"Insufficient SOL balance: have {format_units(balance.balance, 9)}, "
                        f"need {format_units(balance.total_required, 9)}"
                    ),
                )
            plan = await self.prepare_plan(action)
            signed = await self.submission.sign(plan)
        except BridgeError as exc:
            LOGGER.error("Bridge preparation failed: %s", exc)
            return BridgeExecuteResult(success=False, error=str(exc))

        LOGGER.info("Broadcasting bridge transaction")
        try:
            signature = await self.submission.submit(signed)
        except BridgeError as exc:
            LOGGER.error("Broadcast failed: %s", exc)
            return BridgeExecuteResult(success=False, relayed=plan.relayed, error=str(exc))

        signature_text = str(signature)
        explorer_url = self.config.solana.explorer_tx_url(signature_text)
        try:
            await self.submission.confirm(signature)
        except ConfirmationError as exc:
            LOGGER.error("Confirmation failed for %s: %s", signature_text, exc)
            return BridgeExecuteResult(
                success=False,
                signature=exc.signature or signature_text,
                relayed=plan.relayed,
                error=str(exc),
                explorer_url=explorer_url,
            )

        if not plan.relayed:
            LOGGER.warning("Bridge %s confirmed without relay payment; it must be relayed manually", signature_text)
        return BridgeExecuteResult(
            success=True,
            signature=signature_text,
            relayed=plan.relayed,
            explorer_url=explorer_url,
        )

    @staticmethod
    def _log_plan(action: BridgeAction, plan: BridgeTransactionPlan) -> None:
        LOGGER.info("Action: %s", action.description)
        LOGGER.info(
            "Bridge %s SOL to twin %s (gas limit %s, relayed=%s)",
            format_units(plan.amount, 9),
            plan.destination,
            action.gas_limit,
            plan.relayed,
        )
        LOGGER.info("Salt %s, outgoing message %s", plan.salt_bundle.salt_hex, plan.salt_bundle.outgoing_message)
        if action.quote is not None:
            LOGGER.info(
                "Quote: %s source units for at least %s destination units",
                action.quote.resolved_source_amount,
                action.quote.minimum_destination_amount_after_slippage,
            )


__all__ = ["BridgeExecuteResult", "BridgeExecutor"]
