"""
Wallet scanner: finds a wallet's token accounts and picks the ones that can
be closed.

The indexing API answers in one call for both token programs. When it is
unavailable or returns nothing, the scanner asks standard RPC once per token
program, concurrently.
"""

import asyncio
from collections.abc import Sequence

from solders.pubkey import Pubkey

from config import MAX_ACCOUNTS_TO_PROCESS, TOKEN_ACCOUNT_RENT_LAMPORTS
from core.client import SolanaClient
from interfaces.core import AccountClass, CloseableAccount, ProgramVariant, ScanResult
from scanner.cache import ScanCache
from scanner.classifier import classify_record
from scanner.records import IndexedTokenAccount, ParsedTokenAccount, SourceRecord
from utils.format import format_sol, shorten_address
from utils.logger import get_logger

logger = get_logger(__name__)


class WalletScanner:
    """Scans wallets for empty token accounts."""

    def __init__(
        self,
        client: SolanaClient,
        max_accounts: int = MAX_ACCOUNTS_TO_PROCESS,
        cache: ScanCache | None = None,
        default_rent_lamports: int = TOKEN_ACCOUNT_RENT_LAMPORTS,
    ):
        """
        Args:
            client: Solana RPC client
            max_accounts: Closeable accounts kept in the working set
            cache: Optional scan cache shared by callers of this scanner
            default_rent_lamports: Rent assumed when the indexing API omits lamports
        """
        self.client = client
        self.max_accounts = max_accounts
        self.cache = cache
        self.default_rent_lamports = default_rent_lamports
        self._inflight: dict[str, asyncio.Task] = {}

    async def scan(self, owner: Pubkey, force: bool = False) -> ScanResult:
        """Scan ``owner`` and return its closeable accounts.

        Concurrent scans of one wallet share a single fetch. While that fetch
        runs, non-forced callers get the previous cached result if there is
        one. Source failures are logged and degrade to an empty result; this
        method does not raise for network problems.
        """
        if self.cache is not None and not force:
            cached = self.cache.get(owner)
            if cached is not None:
                logger.info(f"Using cached scan for {shorten_address(owner)}")
                return cached

        key = str(owner)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._scan_and_store(owner))
            self._inflight[key] = task
        elif self.cache is not None and not force:
            previous = self.cache.peek(owner)
            if previous is not None:
                logger.info(f"Rescan of {shorten_address(owner)} in progress, using previous result")
                return previous

        return await asyncio.shield(task)

    async def _scan_and_store(self, owner: Pubkey) -> ScanResult:
        try:
            logger.info(f"Scanning wallet {shorten_address(owner)}...")
            records = await self.fetch_records(owner)
            result = self.summarize(records)

            if self.cache is not None:
                self.cache.put(owner, result)
            return result
        finally:
            self._inflight.pop(str(owner), None)

    async def fetch_records(self, owner: Pubkey) -> list[SourceRecord]:
        indexed = await self.fetch_indexed(owner)
        if indexed:
            logger.info(f"Using indexing API: {len(indexed)} token accounts")
            return list(indexed)

        logger.info("Indexing API unavailable or empty, using standard RPC")
        return list(await self.fetch_parsed(owner))

    async def fetch_indexed(self, owner: Pubkey) -> list[IndexedTokenAccount] | None:
        """Query the indexing API for every token account of ``owner``.

        Returns:
            The accounts, or None if the API failed or answered with an error.
        """
        body = {
            "jsonrpc": "2.0",
            "id": "das-tokens",
            "method": "getTokenAccounts",
            "params": {"owner": str(owner)},
        }
        response = await self.client.post_rpc(body)
        if not isinstance(response, dict):
            return None
        if response.get("error"):
            logger.info(f"Indexing API returned an error: {response['error']}")
            return None

        result = response.get("result")
        if not isinstance(result, dict):
            return None
        accounts = result.get("token_accounts")
        if not isinstance(accounts, list):
            return None

        return [
            IndexedTokenAccount.from_json(entry)
            for entry in accounts
            if isinstance(entry, dict)
        ]

    async def fetch_parsed(self, owner: Pubkey) -> list[ParsedTokenAccount]:
        """Query both token programs concurrently; a failed program counts as empty."""
        legacy, token_2022 = await asyncio.gather(
            self._fetch_variant(owner, ProgramVariant.LEGACY),
            self._fetch_variant(owner, ProgramVariant.TOKEN_2022),
        )
        return legacy + token_2022

    async def _fetch_variant(
        self, owner: Pubkey, variant: ProgramVariant
    ) -> list[ParsedTokenAccount]:
        try:
            accounts = await self.client.get_parsed_token_accounts(owner, variant.program_id)
        except Exception as e:
            logger.warning(f"Token account lookup failed for {variant.value}: {e!s}")
            return []
        return [ParsedTokenAccount.from_json(entry, variant) for entry in accounts]

    def summarize(self, records: Sequence[SourceRecord]) -> ScanResult:
        """Classify records, sort by rent and cap the working set."""
        closeable: list[CloseableAccount] = []
        skipped = 0
        frozen = 0

        for record in records:
            classification = classify_record(record, self.default_rent_lamports)
            if classification.kind is AccountClass.FROZEN:
                frozen += 1
            elif classification.kind is AccountClass.SKIPPED:
                skipped += 1
            else:
                closeable.append(classification.account)

        closeable.sort(key=lambda account: account.rent_lamports, reverse=True)

        # Totals cover the whole closeable set, before the cap
        total_closeable = len(closeable)
        estimated_total = sum(account.rent_lamports for account in closeable)
        working_set = tuple(closeable[: self.max_accounts])

        result = ScanResult(
            total_accounts=len(records),
            closeable_accounts=working_set,
            skipped_count=skipped,
            frozen_count=frozen,
            is_truncated=total_closeable > self.max_accounts,
            total_closeable_count=total_closeable,
            estimated_total_lamports=estimated_total,
        )
        self._log_summary(result)
        return result

    def _log_summary(self, result: ScanResult) -> None:
        shown = f" (showing {len(result.closeable_accounts)})" if result.is_truncated else ""
        logger.info(
            f"Scan complete: {result.total_accounts} token accounts, "
            f"{result.total_closeable_count} closeable{shown}, "
            f"{result.frozen_count} frozen, {result.skipped_count} skipped"
        )
        logger.info(f"Total reclaimable: {format_sol(result.estimated_total_lamports)} SOL")
        if result.is_truncated:
            logger.warning(f"Results truncated to {self.max_accounts} accounts")
