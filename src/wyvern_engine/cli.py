"""Command-line interface for hashing, listing, cancelling and fee estimation."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from dotenv import load_dotenv

from .client import WyvernClient
from .config import RPC_URL_ENV, EngineConfig, load_engine_config, resolve_private_key
from .constants import NULL_ADDRESS
from .errors import OrderValidationError, WyvernError
from .hashing import get_order_hash
from .orders import Asset, HashedOrder
from .schemas import SchemaName
from .serialization import order_from_api, order_from_dict, order_to_dict

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build, sign and settle exchange orders.")
    parser.add_argument(
        "--config",
        required=False,
        help="Path to a YAML/JSON config file with network, addresses and retry settings.",
    )
    parser.add_argument(
        "--network",
        default=os.getenv("WYVERN_NETWORK"),
        help="Network preset (mainnet or rinkeby; default: config file, then mainnet).",
    )
    parser.add_argument(
        "--rpc-url",
        default=os.getenv(RPC_URL_ENV),
        help=f"JSON-RPC endpoint (default: {RPC_URL_ENV} env var, then config file).",
    )
    parser.add_argument(
        "--private-key",
        help="Hex private key of the trading account (default: config file, then WYVERN_PRIVATE_KEY).",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("WYVERN_LOG_LEVEL") or "INFO",
        help="Logging level (default: INFO).",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    hash_cmd = commands.add_parser("hash", help="Print the hash of an order JSON file.")
    hash_cmd.add_argument("order", help="Path to the order JSON file.")
    hash_cmd.add_argument(
        "--api",
        action="store_true",
        help="Read the marketplace API's order shape instead of the engine's own.",
    )

    sell_cmd = commands.add_parser("sell", help="List an asset and print the signed sell order.")
    sell_cmd.add_argument("--contract", required=True, help="Token contract address.")
    sell_cmd.add_argument("--token-id", required=True, help="Token id.")
    sell_cmd.add_argument("--quantity", default="1", help="Units to sell (default: 1).")
    sell_cmd.add_argument(
        "--schema",
        default=SchemaName.ERC721.value,
        choices=[schema.value for schema in SchemaName],
        help="Token standard of the asset (default: ERC721).",
    )
    sell_cmd.add_argument("--price", required=True, help="Start price in ETH.")
    sell_cmd.add_argument("--end-price", help="End price in ETH for a declining (dutch) auction.")
    sell_cmd.add_argument(
        "--expiration",
        type=int,
        default=0,
        help="Expiration unix timestamp (default: 0, never expires).",
    )
    sell_cmd.add_argument(
        "--english",
        action="store_true",
        help="Run an English auction that waits for the highest bid.",
    )
    sell_cmd.add_argument("--reserve-price", help="English auction reserve price in ETH.")
    sell_cmd.add_argument("--payment-token", help="Payment token address (default: native ETH).")
    sell_cmd.add_argument("--output", help="Write the order JSON here instead of stdout.")

    cancel_cmd = commands.add_parser("cancel", help="Cancel an order JSON file on-chain.")
    cancel_cmd.add_argument("order", help="Path to the order JSON file.")
    cancel_cmd.add_argument("--api", action="store_true", help="Order file uses the API shape.")

    fees_cmd = commands.add_parser("fees", help="Print the gas breakdown for an order.")
    fees_cmd.add_argument("order", help="Path to the order JSON file.")
    fees_cmd.add_argument("--counter-order", help="Counter-order JSON, required for buy orders.")
    fees_cmd.add_argument("--api", action="store_true", help="Order files use the API shape.")

    return parser.parse_args(argv)


def _load_env_files() -> None:
    preferred = os.getenv("WYVERN_ENV_FILE")
    candidates = [preferred] if preferred else []
    candidates.append(".env")
    for candidate in candidates:
        path = Path(candidate).expanduser()
        if path.exists():
            load_dotenv(path, override=False)


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _read_order(path: str, api_shape: bool = False):
    payload = json.loads(Path(path).read_text())
    if api_shape:
        return order_from_api(payload)
    return order_from_dict(payload)


def _read_hashed_order(path: str, api_shape: bool = False) -> HashedOrder:
    order = _read_order(path, api_shape)
    if not isinstance(order, HashedOrder):
        raise OrderValidationError(f"Order in {path} has no hash; run the 'hash' command first.")
    return order


def _emit(payload: Dict[str, Any], output: Optional[str] = None) -> None:
    text = json.dumps(payload, indent=2)
    if output:
        Path(output).write_text(text + "\n")
        logger.info("Wrote %s", output)
    else:
        print(text)


def _load_config(args: argparse.Namespace) -> EngineConfig:
    overrides = {"rpc_url": args.rpc_url} if args.rpc_url else None
    return load_engine_config(args.config, network=args.network, overrides=overrides)


def _hash_command(args: argparse.Namespace) -> None:
    order = _read_order(args.order, args.api)
    order_hash = get_order_hash(order)
    payload = order_to_dict(order)
    if isinstance(order, HashedOrder) and order.hash != order_hash:
        logger.warning("Stored hash 0x%s differs from computed hash", order.hash.hex())
    payload["hash"] = "0x" + order_hash.hex()
    _emit(payload)


async def _client_command(args: argparse.Namespace, config: EngineConfig) -> None:
    client = WyvernClient.from_config(config, resolve_private_key(args.private_key, config))
    if args.command == "sell":
        asset = Asset(
            contract_address=args.contract,
            token_id=args.token_id,
            quantity=args.quantity,
            schema_name=args.schema,
        )
        order = await client.create_sell_order(
            asset,
            args.price,
            args.end_price,
            wait_for_highest_bid=args.english,
            expiration_time=args.expiration,
            english_auction_reserve_price=args.reserve_price,
            payment_token=args.payment_token or NULL_ADDRESS,
        )
        _emit(order_to_dict(order), args.output)
    elif args.command == "cancel":
        order = _read_hashed_order(args.order, args.api)
        cancelled = await client.cancel_listing(order)
        _emit({"hash": "0x" + order.hash.hex(), "cancelled": cancelled})
    elif args.command == "fees":
        order = _read_hashed_order(args.order, args.api)
        counter = _read_hashed_order(args.counter_order, args.api) if args.counter_order else None
        breakdown = await client.calculate_gas_fees(order, counter)
        _emit(
            {
                "proxy_fees": breakdown.proxy_fees,
                "approval_fees": breakdown.approval_fees,
                "gas_fees": breakdown.gas_fees,
                "total_fees": breakdown.total_fees,
            }
        )


def run_cli(argv: Optional[Iterable[str]] = None) -> None:
    _load_env_files()
    args = _parse_args(argv)
    _configure_logging(args.log_level)

    try:
        if args.command == "hash":
            _hash_command(args)
            return
        config = _load_config(args)
        asyncio.run(_client_command(args, config))
    except WyvernError as exc:
        logger.error("%s failed: %s", args.command, exc)
        raise SystemExit(f"error: {exc}") from exc


__all__ = ["run_cli"]


if __name__ == "__main__":  # pragma: no cover
    run_cli()
