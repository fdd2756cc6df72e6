#!/usr/bin/env python3
"""
Marketplace CLI - Main entry point.

Usage:
    confidential-marketplace init                       # Write marketplace.yaml
    confidential-marketplace mode [show|mock|fhe]       # Show or select execution mode
    confidential-marketplace health                     # Probe the decryption gateway
    confidential-marketplace fee <price>                # Provider/platform split
    confidential-marketplace datasets                   # List active datasets
    confidential-marketplace upload <name> <data> <eth> # Upload a dataset
    confidential-marketplace query <id> <type> [-p N]   # Run a query and wait
    confidential-marketplace serve                      # Run the HTTP API
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .. import __version__
from ..config import DEFAULT_CONFIG_PATH, MarketplaceConfig, load_config
from ..core.errors import MarketplaceError, describe_error
from ..core.settlement import split_price
from ..core.types import QueryStatus
from ..core.utils import format_address, format_ether, parse_data_points, parse_ether
from ..runtime.session import Session


def create_session(config: MarketplaceConfig) -> Session:
    """Build the session used by commands."""
    return Session.from_config(config)


def _load(args: argparse.Namespace) -> Optional[MarketplaceConfig]:
    config = load_config(args.config)
    if not config:
        print(f"Error: {args.config or DEFAULT_CONFIG_PATH} not found. Run 'confidential-marketplace init' first.")
    return config


def _print_mode(session: Session) -> None:
    fallback = " (auto fallback)" if session.selector.is_auto_fallback else ""
    print(f"Mode:      {session.mode.value}{fallback}")
    print(f"Preferred: {session.selector.preferred_mode.value}")
    print(f"Network:   {session.settings.network.name} ({session.settings.network.chain_id})")


def cmd_init(args: argparse.Namespace) -> int:
    """Write a default configuration file."""
    config_path = Path(args.config or DEFAULT_CONFIG_PATH)

    if config_path.exists() and not args.force:
        print(f"Error: {config_path} already exists. Use --force to overwrite.")
        return 1

    config = MarketplaceConfig(network=args.network)
    if args.network not in config.networks:
        print(f"Error: unknown network '{args.network}'")
        return 1
    config.contracts.mock = args.mock_address or ""
    config.contracts.fhe = args.fhe_address or ""
    config.save(config_path)
    print(f"Created {config_path}")
    print("Next steps:")
    print("  set contracts.mock / contracts.fhe to the deployed addresses")
    print("  confidential-marketplace mode show")
    return 0


def cmd_mode(args: argparse.Namespace) -> int:
    """Show or change the execution mode."""
    config = _load(args)
    if not config:
        return 1

    async def run() -> None:
        async with create_session(config) as session:
            if args.mode != "show":
                await session.set_mode(args.mode)
            _print_mode(session)

    asyncio.run(run())
    return 0


def cmd_health(args: argparse.Namespace) -> int:
    """Probe the decryption gateway."""
    config = _load(args)
    if not config:
        return 1

    async def run() -> bool:
        async with create_session(config) as session:
            healthy = await session.check_gateway()
            print(f"Gateway {session.gateway.gateway_url or '-'}: {'ok' if healthy else 'unavailable'}")
            _print_mode(session)
            return healthy

    return 0 if asyncio.run(run()) else 1


def cmd_fee(args: argparse.Namespace) -> int:
    """Show the provider/platform split of a price."""
    config = load_config(args.config)
    percent = config.limits.platform_fee_percent if config else 5
    price = int(args.price) if args.wei else parse_ether(args.price)
    settlement = split_price(price, percent)
    print(f"Price:    {format_ether(settlement.price, 6)} ETH ({settlement.price} wei)")
    print(f"Provider: {format_ether(settlement.provider_share, 6)} ETH ({settlement.provider_share} wei)")
    print(f"Platform: {format_ether(settlement.platform_share, 6)} ETH ({settlement.platform_share} wei, {percent}%)")
    return 0


def cmd_datasets(args: argparse.Namespace) -> int:
    """List active datasets."""
    config = _load(args)
    if not config:
        return 1

    async def run() -> None:
        async with create_session(config) as session:
            context = await session.resolve()
            ids = await context.client.list_active_dataset_ids()
            if not ids:
                print("No active datasets")
            for dataset_id in ids:
                dataset = await context.client.get_dataset(dataset_id)
                print(
                    f"#{dataset.id} {dataset.name} by {format_address(dataset.owner)}: "
                    f"{dataset.size} points, {format_ether(dataset.price_per_query)} ETH/query, "
                    f"{dataset.total_queries} queries"
                )

    asyncio.run(run())
    return 0


def cmd_upload(args: argparse.Namespace) -> int:
    """Upload a dataset."""
    config = _load(args)
    if not config:
        return 1

    async def run() -> None:
        values = parse_data_points(args.data)
        async with create_session(config) as session:
            manager = await session.lifecycle()
            result = await manager.upload_dataset(args.name, args.description, values, parse_ether(args.price))
            print(f"Dataset uploaded in {result.mode.value} mode: id={result.dataset_id}")
            print(f"Transaction: {result.tx.tx_hash}")
            explorer_url = session.settings.network.explorer_tx_url(result.tx.tx_hash)
            if explorer_url:
                print(f"Explorer:    {explorer_url}")

    asyncio.run(run())
    return 0


def cmd_query(args: argparse.Namespace) -> int:
    """Run a query and wait for its result."""
    config = _load(args)
    if not config:
        return 1

    def show_progress(attempt: int, max_attempts: int, status: Optional[QueryStatus]) -> None:
        print(f"  poll {attempt}/{max_attempts}: {status.name if status is not None else 'no response'}")

    async def run() -> None:
        async with create_session(config) as session:
            manager = await session.lifecycle()
            outcome = await manager.run_query(
                args.dataset_id, args.query_type, args.parameter, on_progress=show_progress
            )
            print(f"{outcome.query.query_type.display_name}: {outcome.result}")
            print(f"Query #{outcome.query.id} completed after {outcome.attempts} poll(s)")
            print(
                f"Paid {format_ether(outcome.settlement.price)} ETH "
                f"(provider {format_ether(outcome.settlement.provider_share)}, "
                f"platform {format_ether(outcome.settlement.platform_share)})"
            )

    asyncio.run(run())
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from ..app import create_marketplace_app

    config = _load(args)
    if not config:
        return 1

    app = create_marketplace_app(create_session(config))
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="confidential-marketplace",
        description="Confidential data marketplace client",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", "-c", help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init
    init_parser = subparsers.add_parser("init", help="Write a default config file")
    init_parser.add_argument("--network", "-n", default="hardhat", help="Network key")
    init_parser.add_argument("--mock-address", help="Mock contract address")
    init_parser.add_argument("--fhe-address", help="FHE contract address")
    init_parser.add_argument("--force", "-f", action="store_true", help="Overwrite existing config")

    # mode
    mode_parser = subparsers.add_parser("mode", help="Show or select the execution mode")
    mode_parser.add_argument("mode", nargs="?", default="show", choices=["show", "mock", "fhe"])

    # health
    subparsers.add_parser("health", help="Probe the decryption gateway")

    # fee
    fee_parser = subparsers.add_parser("fee", help="Show the provider/platform split of a price")
    fee_parser.add_argument("price", help="Price in ETH")
    fee_parser.add_argument("--wei", action="store_true", help="Price is given in wei")

    # datasets
    subparsers.add_parser("datasets", help="List active datasets")

    # upload
    upload_parser = subparsers.add_parser("upload", help="Upload a dataset")
    upload_parser.add_argument("name", help="Dataset name")
    upload_parser.add_argument("data", help="Comma-separated data points")
    upload_parser.add_argument("price", help="Price per query in ETH")
    upload_parser.add_argument("--description", "-d", default="", help="Dataset description")

    # query
    query_parser = subparsers.add_parser("query", help="Run a query and wait for the result")
    query_parser.add_argument("dataset_id", type=int, help="Dataset id")
    query_parser.add_argument("query_type", help="mean, variance, count_above or count_below")
    query_parser.add_argument("--parameter", "-p", type=int, help="Threshold for count queries")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port")

    return parser


def app(args: Optional[List[str]] = None) -> int:
    """Main CLI application."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "init": cmd_init,
        "mode": cmd_mode,
        "health": cmd_health,
        "fee": cmd_fee,
        "datasets": cmd_datasets,
        "upload": cmd_upload,
        "query": cmd_query,
        "serve": cmd_serve,
    }

    handler = commands.get(parsed.command)
    if not handler:
        parser.print_help()
        return 1

    try:
        return handler(parsed)
    except MarketplaceError as e:
        print(f"Error: {describe_error(e)} ({e})")
        return 1
    except ValueError as e:
        print(f"Error: {e}")
        return 1


def main() -> None:
    """Entry point for CLI."""
    sys.exit(app())


if __name__ == "__main__":
    main()
