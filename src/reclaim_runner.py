import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

import uvloop

asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())

from solders.pubkey import Pubkey

from config_loader import (
    ReclaimSettings,
    build_settings,
    load_reclaim_config,
    print_config_summary,
)
from core.client import SolanaClient
from core.priority_fee.manager import PriorityFeeManager
from core.wallet import KeypairSigner
from interfaces.core import PrintProgress, PrintStatus, ScanResult
from payouts.tracker import PayoutFetchError, PayoutTracker
from reclaim.builder import CloseTransactionBuilder
from reclaim.printer import RentPrinter
from scanner.cache import ScanCache
from scanner.wallet_scanner import WalletScanner
from utils.format import format_sol, is_valid_pubkey, shorten_address
from utils.logger import set_log_level, setup_file_logging

DEFAULT_CONFIG_PATH = "configs/reclaim.yaml"


def setup_logging(name: str):
    """Set up logging to file for one run."""
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = log_dir / f"{name}_{timestamp}.log"

    setup_file_logging(str(log_filename))


def build_scanner(client: SolanaClient, settings: ReclaimSettings) -> WalletScanner:
    return WalletScanner(
        client,
        max_accounts=settings.max_accounts_to_process,
        cache=ScanCache(ttl=settings.scan_cache_ttl),
    )


def build_printer(client: SolanaClient, settings: ReclaimSettings) -> RentPrinter:
    priority_fee_manager = PriorityFeeManager(
        client,
        enable_dynamic_fee=settings.enable_dynamic_priority_fee,
        enable_fixed_fee=settings.enable_fixed_priority_fee,
        fixed_fee=settings.fixed_priority_fee,
        extra_fee=settings.extra_priority_fee,
        hard_cap=settings.hard_cap_priority_fee,
    )
    builder = CloseTransactionBuilder(
        client,
        priority_fee_manager=priority_fee_manager,
        max_accounts_per_tx=settings.max_accounts_per_tx,
        compute_unit_limit=settings.compute_unit_limit,
        fee_recipient=settings.fee_recipient,
        fee_percentage=settings.fee_percentage,
    )
    return RentPrinter(
        client,
        builder,
        progress_callback=print_progress,
        network=settings.network,
        skip_preflight=settings.skip_preflight,
        send_retries=settings.send_retries,
    )


def print_progress(progress: PrintProgress) -> None:
    if progress.status is PrintStatus.IDLE or not progress.message:
        return
    print(f"[{progress.percentage:3d}%] {progress.message}")


def print_scan_summary(result: ScanResult) -> None:
    print(f"Token accounts scanned: {result.total_accounts}")
    print(f"Closeable: {result.total_closeable_count}", end="")
    if result.is_truncated:
        print(f" (working set capped at {len(result.closeable_accounts)})", end="")
    print()
    print(f"Frozen: {result.frozen_count}")
    print(f"Skipped (non-empty): {result.skipped_count}")
    print(f"Reclaimable in working set: {format_sol(result.total_reclaimable_lamports)} SOL")
    print(f"Estimated total reclaimable: {format_sol(result.estimated_total_lamports)} SOL")
    for account in result.closeable_accounts:
        marker = " [pump]" if account.is_pump_token else ""
        print(
            f"  {shorten_address(account.address)}  mint {shorten_address(account.mint)}"
            f"  {format_sol(account.rent_lamports, 6)} SOL{marker}"
        )


async def run_scan(settings: ReclaimSettings, wallet: str) -> int:
    if not is_valid_pubkey(wallet):
        logging.error(f"Invalid wallet address: {wallet}")
        return 1

    client = SolanaClient(settings.rpc_endpoint)
    try:
        scanner = build_scanner(client, settings)
        result = await scanner.scan(Pubkey.from_string(wallet), force=True)
        print_scan_summary(result)
        return 0
    finally:
        await client.close()


async def run_reclaim(
    settings: ReclaimSettings, limit: int | None, destination: str | None
) -> int:
    private_key = os.getenv("SOLANA_PRIVATE_KEY")
    if not private_key:
        logging.error("SOLANA_PRIVATE_KEY is not set")
        return 1

    signer = KeypairSigner(private_key)
    client = SolanaClient(settings.rpc_endpoint)
    try:
        scanner = build_scanner(client, settings)
        printer = build_printer(client, settings)

        scan = await scanner.scan(signer.pubkey, force=True)
        print_scan_summary(scan)

        selected = list(scan.closeable_accounts)
        if limit is not None:
            selected = selected[:limit]
        if not selected:
            print("Nothing to reclaim.")
            return 0

        result = await printer.print_accounts(
            selected,
            signer.pubkey,
            signer,
            custom_destination=destination or settings.custom_destination,
        )
        if result.accounts_closed > 0:
            scanner.cache.invalidate(signer.pubkey)

        print(f"Accounts closed: {result.accounts_closed}")
        print(f"Reclaimed: {format_sol(result.lamports_reclaimed)} SOL")
        print(f"Fee: {format_sol(result.fee_paid)} SOL")
        print(f"Kept: {format_sol(result.user_kept)} SOL")
        for signature in result.signatures:
            print(f"  {printer.get_explorer_link(signature)}")
        if result.error:
            print(f"Error: {result.error}")
        return 0 if result.success else 1
    finally:
        await client.close()


async def run_payouts(settings: ReclaimSettings) -> int:
    if not settings.payout_fee_wallet:
        logging.error("No fee wallet configured (payouts.fee_wallet or fees.fee_recipient)")
        return 1

    client = SolanaClient(settings.rpc_endpoint)
    try:
        tracker = PayoutTracker(
            client,
            settings.payout_fee_wallet,
            fee_percentage=settings.fee_percentage,
            ttl=settings.payout_cache_ttl,
            signature_limit=settings.payout_signature_limit,
        )
        try:
            snapshot = await tracker.get()
        except PayoutFetchError as e:
            logging.error(f"Failed to fetch payouts: {e}")
            return 1

        for payout in snapshot.payouts:
            print(
                f"{shorten_address(payout.wallet)}  ~{payout.accounts_closed} accounts"
                f"  {format_sol(payout.reward_lamports)} SOL  {payout.signature}"
            )
        print(f"Total reclaimed: {format_sol(snapshot.total_reclaimed_lamports)} SOL")
        return 0
    finally:
        await client.close()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reclaim rent from empty token accounts.")
    parser.add_argument(
        "--config", default=DEFAULT_CONFIG_PATH, help="Path to the YAML configuration"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser("scan", help="Scan a wallet for closeable accounts")
    scan_parser.add_argument("wallet", help="Wallet address to scan")

    reclaim_parser = subparsers.add_parser(
        "reclaim", help="Close empty accounts of the SOLANA_PRIVATE_KEY wallet"
    )
    reclaim_parser.add_argument(
        "--limit", type=int, help="Close at most this many accounts (largest rent first)"
    )
    reclaim_parser.add_argument("--destination", help="Send reclaimed rent to this address")

    subparsers.add_parser("payouts", help="Show recent payouts of the fee wallet")

    return parser.parse_args(argv)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = parse_args()

    try:
        settings = build_settings(load_reclaim_config(args.config))
    except (OSError, ValueError) as e:
        logging.error(f"Configuration error: {e}")
        sys.exit(1)

    if args.verbose:
        set_log_level(logging.DEBUG)
    setup_logging(settings.name)
    print_config_summary(settings)

    if args.command == "scan":
        exit_code = asyncio.run(run_scan(settings, args.wallet))
    elif args.command == "reclaim":
        exit_code = asyncio.run(run_reclaim(settings, args.limit, args.destination))
    else:
        exit_code = asyncio.run(run_payouts(settings))

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
