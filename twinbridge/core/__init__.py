"""Core domain logic for bridging from Solana to Base."""

from .actions import ActionBuilder, ActionType, BridgeAction, describe_action, requires_quote, requires_setup
from .composer import BridgeAsset, BridgeTransactionPlan, TransactionComposer
from .executor import BridgeExecuteResult, BridgeExecutor
from .quotes import BridgeQuote, HttpPriceQuoteClient, QuoteResolver
from .submission import KeypairSigner, SignedBridgeTransaction, SubmissionManager
from .twin import DestinationResolver, Web3ChainReader
from .validation import check_sol_balance, validate_bridge_amount, validate_quote_for_submission

__all__ = [
    "ActionBuilder",
    "ActionType",
    "BridgeAction",
    "BridgeAsset",
    "BridgeExecuteResult",
    "BridgeExecutor",
    "BridgeQuote",
    "BridgeTransactionPlan",
    "DestinationResolver",
    "HttpPriceQuoteClient",
    "KeypairSigner",
    "QuoteResolver",
    "SignedBridgeTransaction",
    "SubmissionManager",
    "TransactionComposer",
    "Web3ChainReader",
    "check_sol_balance",
    "describe_action",
    "requires_quote",
    "requires_setup",
    "validate_bridge_amount",
    "validate_quote_for_submission",
]
