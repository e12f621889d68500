"""
Recent payouts seen by the fee-collection wallet.

Each fee transfer is a fixed fraction of a close transaction's rent, so the
fee wallet's balance increase tells us roughly how much the user kept and
how many accounts were closed.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from config import (
    FEE_PERCENTAGE,
    PAYOUT_CACHE_TTL,
    PAYOUT_SIGNATURE_LIMIT,
    TOKEN_ACCOUNT_RENT_LAMPORTS,
)
from core.client import SolanaClient
from utils.format import format_sol
from utils.logger import get_logger

logger = get_logger(__name__)


class PayoutFetchError(Exception):
    """Raised when the payout history cannot be fetched."""


@dataclass(frozen=True)
class PayoutEntry:
    wallet: str
    accounts_closed: int
    reward_lamports: int
    signature: str
    timestamp: int  # unix seconds, 0 if unknown


@dataclass(frozen=True)
class PayoutSnapshot:
    payouts: tuple[PayoutEntry, ...] = ()
    total_reclaimed_lamports: int = 0
    last_updated: float = 0.0


def estimate_user_reward(fee_lamports: int, fee_percentage: float = FEE_PERCENTAGE) -> int:
    """Lamports the user kept, given the fee that was paid on the same rent."""
    if fee_percentage <= 0 or fee_percentage >= 1:
        return 0
    pct = Decimal(str(fee_percentage))
    return int(Decimal(fee_lamports) * (1 - pct) / pct)


def estimate_accounts_closed(
    reward_lamports: int,
    fee_percentage: float = FEE_PERCENTAGE,
    rent_per_account: int = TOKEN_ACCOUNT_RENT_LAMPORTS,
) -> int:
    """Approximate number of closed accounts behind a user reward (at least 1)."""
    if fee_percentage >= 1 or rent_per_account <= 0:
        # The whole rent went to the fee wallet; the reward says nothing
        return 1
    gross = reward_lamports / (1 - fee_percentage)
    return max(1, round(gross / rent_per_account))


def _account_addresses(account_keys: list[Any]) -> list[str]:
    addresses = []
    for key in account_keys:
        if isinstance(key, dict):
            addresses.append(str(key.get("pubkey", "")))
        else:
            addresses.append(str(key))
    return addresses


def parse_payout(
    transaction: dict[str, Any] | None,
    signature_info: dict[str, Any],
    fee_wallet: str,
    fee_percentage: float = FEE_PERCENTAGE,
) -> PayoutEntry | None:
    """Build a PayoutEntry from a jsonParsed getTransaction result.

    Returns None for failed transactions and for transactions that did not
    increase the fee wallet's balance.
    """
    if not transaction or not transaction.get("meta") or transaction["meta"].get("err"):
        return None

    meta = transaction["meta"]
    addresses = _account_addresses(transaction["transaction"]["message"]["accountKeys"])
    if fee_wallet not in addresses:
        return None

    index = addresses.index(fee_wallet)
    fee_received = meta["postBalances"][index] - meta["preBalances"][index]
    if fee_received <= 0:
        return None

    reward = estimate_user_reward(fee_received, fee_percentage)
    return PayoutEntry(
        wallet=addresses[0],
        accounts_closed=estimate_accounts_closed(reward, fee_percentage),
        reward_lamports=reward,
        signature=signature_info["signature"],
        timestamp=signature_info.get("blockTime") or 0,
    )


class PayoutTracker:
    """TTL cache over the fee wallet's recent payouts.

    Concurrent callers of get() share one in-flight refresh; snapshot()
    returns whatever is cached without waiting.
    """

    def __init__(
        self,
        client: SolanaClient,
        fee_wallet: str,
        fee_percentage: float = FEE_PERCENTAGE,
        ttl: float = PAYOUT_CACHE_TTL,
        signature_limit: int = PAYOUT_SIGNATURE_LIMIT,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.fee_wallet = fee_wallet
        self.fee_percentage = fee_percentage
        self.ttl = ttl
        self.signature_limit = signature_limit
        self._clock = clock
        self._snapshot = PayoutSnapshot()
        self._refresh_task: asyncio.Task | None = None

    def snapshot(self) -> PayoutSnapshot:
        return self._snapshot

    def is_stale(self) -> bool:
        if self._snapshot.last_updated == 0:
            return True
        return self._clock() - self._snapshot.last_updated > self.ttl

    async def get(self) -> PayoutSnapshot:
        """Return cached payouts, refreshing first if they are stale."""
        if not self.is_stale():
            return self._snapshot

        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self.refresh())
            self._refresh_task.add_done_callback(self._clear_refresh_task)

        await asyncio.shield(self._refresh_task)
        return self._snapshot

    def _clear_refresh_task(self, _task: asyncio.Task) -> None:
        self._refresh_task = None

    async def refresh(self) -> None:
        payouts = await self.fetch_payouts()
        total = sum(payout.reward_lamports for payout in payouts)
        self._snapshot = PayoutSnapshot(
            payouts=tuple(payouts),
            total_reclaimed_lamports=total,
            last_updated=self._clock(),
        )
        logger.info(
            f"Payout cache updated: {len(payouts)} payouts, {format_sol(total)} SOL reclaimed"
        )

    async def fetch_payouts(self) -> list[PayoutEntry]:
        """Fetch and parse the fee wallet's most recent transactions.

        Raises:
            PayoutFetchError: If either RPC round trip fails.
        """
        sig_response = await self.client.post_rpc(
            {
                "jsonrpc": "2.0",
                "id": "sigs",
                "method": "getSignaturesForAddress",
                "params": [self.fee_wallet, {"limit": self.signature_limit}],
            }
        )
        if not isinstance(sig_response, dict) or sig_response.get("error"):
            raise PayoutFetchError(f"getSignaturesForAddress failed: {sig_response!r}")

        signatures = sig_response.get("result") or []
        if not signatures:
            return []

        batch = [
            {
                "jsonrpc": "2.0",
                "id": f"tx-{index}",
                "method": "getTransaction",
                "params": [
                    info["signature"],
                    {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0},
                ],
            }
            for index, info in enumerate(signatures)
        ]
        tx_response = await self.client.post_rpc(batch)
        if not isinstance(tx_response, list):
            raise PayoutFetchError("Batched getTransaction request failed")

        results_by_id = {
            item.get("id"): item.get("result") for item in tx_response if isinstance(item, dict)
        }

        payouts = []
        for index, info in enumerate(signatures):
            try:
                payout = parse_payout(
                    results_by_id.get(f"tx-{index}"), info, self.fee_wallet, self.fee_percentage
                )
            except (KeyError, IndexError, TypeError) as e:
                logger.debug(f"Skipping malformed transaction {info.get('signature')}: {e!s}")
                continue
            if payout is not None:
                payouts.append(payout)

        return payouts
