"""CLI entrypoint for inspecting twins, quoting and bridging from Solana to Base."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair

from twinbridge.config import BridgeConfig, load_config
from twinbridge.core.actions import ActionBuilder, ActionType, BridgeAction, requires_setup
from twinbridge.core.call import parse_contract_call
from twinbridge.core.codec import to_fixed_width_address
from twinbridge.core.executor import BridgeExecutor
from twinbridge.core.quotes import HttpPriceQuoteClient, QuoteResolver, percent_to_bps
from twinbridge.core.submission import KeypairSigner
from twinbridge.core.twin import DestinationResolver, Web3ChainReader
from twinbridge.core.utils import ensure_web3_connected, format_units, get_logger, parse_units

LOGGER = get_logger("twinbridge.cli")

load_dotenv()

CLI_ACTIONS = {
    "setup": ActionType.SETUP,
    "mint": ActionType.MINT,
    "shop-item": ActionType.SHOP_ITEM,
    "garden-item": ActionType.GARDEN_ITEM,
    "box-game": ActionType.BOX_GAME,
    "spin-game": ActionType.SPIN_GAME,
    "attack": ActionType.ATTACK,
    "claim-rewards": ActionType.CLAIM_REWARDS,
    "set-name": ActionType.SET_NAME,
}


def _load_keypair() -> Keypair:
    secret = (os.getenv("SOLANA_PRIVATE_KEY") or "").strip()
    if not secret:
        raise SystemExit("❌ Error: SOLANA_PRIVATE_KEY environment variable not set")
    return Keypair.from_base58_string(secret)


def _resolver(config: BridgeConfig) -> DestinationResolver:
    return DestinationResolver(Web3ChainReader.from_rpc_url(config.base.ensure_rpc_url()), config)


def _quote_resolver(config: BridgeConfig) -> QuoteResolver:
    return QuoteResolver(HttpPriceQuoteClient(config), config)


async def _run_twin(config: BridgeConfig, args: argparse.Namespace) -> None:
    reader = Web3ChainReader.from_rpc_url(config.base.ensure_rpc_url())
    await ensure_web3_connected(reader.web3, expected_chain_id=config.base.chain_id)
    resolver = DestinationResolver(reader, config)
    info = await resolver.describe(args.public_key)
    print(f"Solana key:  {info.source_public_key}")
    print(f"Twin:        {info.twin_address}")
    print(f"Deployed:    {info.is_deployed}")
    print(f"Explorer:    {config.base.explorer_address_url(info.twin_address)}")
    if config.contracts.twin_adapter:
        print(f"Setup done:  {await resolver.is_setup(info.twin_address)}")


async def _run_quote(config: BridgeConfig, args: argparse.Namespace) -> None:
    destination = config.tokens.destination
    required = parse_units(args.amount, destination.decimals)
    slippage = percent_to_bps(args.slippage) if args.slippage is not None else None
    resolver = _quote_resolver(config)
    if args.estimate:
        quote = await resolver.estimate(required, slippage_bps=slippage)
    else:
        quote = await resolver.quote(required, slippage_bps=slippage)
    if quote.error:
        print(f"❌ Quote failed: {quote.error}")
        sys.exit(1)
    print(f"Required:    {format_units(required, destination.decimals)} {destination.symbol}")
    print(f"Bridge:      {format_units(quote.resolved_source_amount, config.tokens.source.decimals)} SOL")
    print(f"Route:       {quote.route_description}")
    print(f"Estimate:    {quote.is_estimate_only}")
    if quote.execution_target:
        print(f"Swap target: {quote.execution_target}")


async def _build_action(config: BridgeConfig, args: argparse.Namespace, public_key: str) -> BridgeAction:
    builder = ActionBuilder(config, _resolver(config))
    action_type = CLI_ACTIONS[args.action]

    quote = None
    if args.seed_amount is not None:
        required = parse_units(args.seed_amount, config.tokens.destination.decimals)
        quote = await _quote_resolver(config).resolve(required)

    if requires_setup(action_type) and not args.skip_setup_check:
        twin = await builder.resolver.resolve(public_key)
        if not await builder.resolver.is_setup(twin):
            LOGGER.warning("Twin %s has not approved the adapter yet; run the setup action first", twin)

    if action_type is ActionType.SETUP:
        return await builder.setup(public_key)
    if action_type is ActionType.SET_NAME:
        return await builder.set_name(public_key, args.plant_id, args.name, quote)
    if action_type in (ActionType.MINT, ActionType.SHOP_ITEM, ActionType.GARDEN_ITEM):
        if quote is None:
            raise SystemExit("❌ Error: --seed-amount is required for paid actions")
        if action_type is ActionType.MINT:
            return await builder.mint(public_key, args.strain, quote)
        if action_type is ActionType.SHOP_ITEM:
            return await builder.shop_item(public_key, args.plant_id, args.item_id, quote)
        return await builder.garden_item(public_key, args.plant_id, args.item_id, quote)
    if action_type is ActionType.BOX_GAME:
        return await builder.box_game(public_key, args.plant_id)
    if action_type is ActionType.SPIN_GAME:
        return await builder.spin_game(public_key, args.plant_id)
    if action_type is ActionType.ATTACK:
        return await builder.attack(public_key, args.plant_id, args.target_plant_id)
    return await builder.claim_rewards(public_key, args.plant_id)


def _transfer_action(config: BridgeConfig, args: argparse.Namespace, public_key: str) -> BridgeAction:
    call = None
    if args.call_type:
        call = parse_contract_call(
            args.call_type, target=args.call_target, value=args.call_value, data=args.call_data
        )
    amount = parse_units(args.amount, 9)
    to = to_fixed_width_address(args.to)
    return BridgeAction(
        action_type=ActionType.TRANSFER,
        source_public_key=public_key,
        twin_address="0x" + to.hex(),
        sol_amount=amount,
        call=call,
        gas_limit=args.gas_limit or config.defaults.default_gas_limit,
        description=f"Bridge {args.amount} SOL to {args.to}",
    )


async def _run_bridge(config: BridgeConfig, args: argparse.Namespace) -> None:
    keypair = _load_keypair()
    public_key = str(keypair.pubkey())
    async with AsyncClient(config.solana.rpc_url) as client:
        executor = BridgeExecutor(config=config, client=client, signer=KeypairSigner(keypair))
        if args.command == "transfer":
            action = _transfer_action(config, args, public_key)
        else:
            action = await _build_action(config, args, public_key)

        if args.dry_run:
            signed = await executor.execute_dry_run(action)
            print(f"Dry run OK: {len(signed.plan.instructions)} instruction(s), relayed={signed.plan.relayed}")
            print(f"Signature (not sent): {signed.signature}")
            return

        result = await executor.execute(action)
        if not result.success:
            if result.signature:
                print(f"⚠️  Transaction {result.signature} not confirmed: {result.error}")
                print(f"Check {result.explorer_url}")
            else:
                print(f"❌ Error: {result.error}")
            sys.exit(1)
        print(f"✅ Bridged: {result.explorer_url}")
        if not result.relayed:
            print("⚠️  Relay payment was not included; the message must be relayed manually.")


def _add_mode(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--dry-run", action="store_true", help="Compose and sign without sending")
    group.add_argument("--send", action="store_true", help="Send the transaction to Solana mainnet")


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bridge SOL to a twin account on Base")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.json")
    sub = parser.add_subparsers(dest="command", required=True)

    twin = sub.add_parser("twin", help="Show the twin address for a Solana public key")
    twin.add_argument("public_key")

    quote = sub.add_parser("quote", help="Quote the SOL needed for an amount of the destination token")
    quote.add_argument("amount", help="Destination token amount, e.g. 250.5")
    quote.add_argument("--slippage", help="Slippage percent (default from config)")
    quote.add_argument("--estimate", action="store_true", help="Use the reference rate only")

    action = sub.add_parser("action", help="Bridge SOL and run a twin adapter action")
    action.add_argument("action", choices=sorted(CLI_ACTIONS))
    action.add_argument("--plant-id", type=int, default=0)
    action.add_argument("--target-plant-id", type=int, default=0)
    action.add_argument("--item-id", type=int, default=0)
    action.add_argument("--strain", type=int, default=0)
    action.add_argument("--name", default="")
    action.add_argument("--seed-amount", help="Destination token amount the action costs")
    action.add_argument("--skip-setup-check", action="store_true")
    _add_mode(action)

    transfer = sub.add_parser("transfer", help="Bridge SOL to any Base address with an optional call")
    transfer.add_argument("amount", help="SOL amount, e.g. 0.01")
    transfer.add_argument("--to", required=True, help="Destination address on Base")
    transfer.add_argument("--call-type", choices=["call", "delegatecall", "create", "create2"])
    transfer.add_argument("--call-target")
    transfer.add_argument("--call-value", help="ETH value in decimal")
    transfer.add_argument("--call-data", help="Hex payload")
    transfer.add_argument("--gas-limit", type=int)
    _add_mode(transfer)

    return parser.parse_args(argv)


async def _dispatch(config: BridgeConfig, args: argparse.Namespace) -> None:
    if args.command == "twin":
        await _run_twin(config, args)
    elif args.command == "quote":
        await _run_quote(config, args)
    else:
        await _run_bridge(config, args)


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    try:
        config = load_config(args.config)
        asyncio.run(_dispatch(config, args))
    except SystemExit:
        raise
    except Exception as exc:
        print(f"\n❌ Error: {exc}")
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover - CLI entry
    main()
