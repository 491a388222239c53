"""Sign, broadcast and confirm composed bridge transactions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from twinbridge.core.composer import BridgeTransactionPlan
from twinbridge.core.errors import BridgeError, ConfirmationError, RemoteCallError
from twinbridge.core.retry import RetryPolicy
from twinbridge.core.utils import get_logger

LOGGER = get_logger("twinbridge.submission")

ALREADY_PROCESSED = "already been processed"


class TransactionSigner(Protocol):
    """Signing capability; key material stays behind this interface."""

    @property
    def pubkey(self) -> Pubkey:
        ...

    async def sign(self, message: Message, recent_blockhash: Hash) -> Transaction:
        ...


class KeypairSigner:
    """Sign with local ``solders`` keypairs (operator tooling and tests)."""

    def __init__(self, keypair: Keypair, *extra_signers: Keypair) -> None:
        self.keypair = keypair
        self.extra_signers: Sequence[Keypair] = extra_signers

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()

    async def sign(self, message: Message, recent_blockhash: Hash) -> Transaction:
        return Transaction([self.keypair, *self.extra_signers], message, recent_blockhash)


@dataclass(frozen=True)
class SignedBridgeTransaction:
    transaction: Transaction
    plan: BridgeTransactionPlan

    @property
    def signature(self) -> Signature:
        return self.transaction.signatures[0]

    def serialize(self) -> bytes:
        return bytes(self.transaction)


class SubmissionManager:
    """Broadcast signed plans and wait for ``confirmed`` commitment.

    Resubmitting a transaction the cluster has already processed is not an
    error: the signature carried by the signed transaction is returned instead.
    """

    def __init__(
        self,
        client: AsyncClient,
        signer: TransactionSigner,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        skip_preflight: bool = False,
    ) -> None:
        self.client = client
        self.signer = signer
        self.retry_policy = retry_policy or RetryPolicy()
        self.skip_preflight = skip_preflight

    async def sign(self, plan: BridgeTransactionPlan) -> SignedBridgeTransaction:
        if plan.fee_payer != self.signer.pubkey:
            LOGGER.warning("Plan fee payer %s differs from signer %s", plan.fee_payer, self.signer.pubkey)
        transaction = await self.signer.sign(plan.to_message(), plan.recent_blockhash)
        return SignedBridgeTransaction(transaction=transaction, plan=plan)

    async def submit(self, signed: SignedBridgeTransaction) -> Signature:
        opts = TxOpts(skip_preflight=self.skip_preflight, preflight_commitment=Confirmed)
        raw = signed.serialize()
        try:
            response = await self.retry_policy.run(
                lambda: self.client.send_raw_transaction(raw, opts=opts),
                label="sendTransaction",
            )
        except Exception as exc:
            known = signed.signature
            if ALREADY_PROCESSED in str(exc).lower() and known != Signature.default():
                LOGGER.warning("Transaction %s already processed, reusing its signature", known)
                return known
            if isinstance(exc, BridgeError):
                raise
            raise RemoteCallError(f"sendTransaction failed: {exc}") from exc

        signature = response.value
        LOGGER.info("Submitted bridge transaction %s", signature)
        return signature

    async def confirm(self, signature: Signature) -> Signature:
        try:
            response = await self.client.confirm_transaction(signature, commitment=Confirmed)
        except Exception as exc:
            raise ConfirmationError(
                f"Could not confirm {signature}: {exc}", signature=str(signature)
            ) from exc

        statuses = response.value or []
        status = statuses[0] if statuses else None
        if status is None:
            raise ConfirmationError(f"No status reported for {signature}", signature=str(signature))
        if status.err is not None:
            raise ConfirmationError(
                f"Transaction {signature} failed on-chain: {status.err}", signature=str(signature)
            )
        LOGGER.info("Confirmed bridge transaction %s", signature)
        return signature

    async def submit_and_confirm(self, signed: SignedBridgeTransaction) -> Signature:
        signature = await self.submit(signed)
        return await self.confirm(signature)


__all__ = [
    "KeypairSigner",
    "SignedBridgeTransaction",
    "SubmissionManager",
    "TransactionSigner",
]
