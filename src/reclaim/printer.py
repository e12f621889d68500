"""
Print orchestration: build, sign, submit and reconcile close transactions.

A print attempt moves through the states in reclaim.state. Transactions are
sent one at a time and each is confirmed before the next is sent. A failed
batch does not stop the remaining ones, except when the very first
transaction fails before anything has confirmed, which points at a problem
every batch would hit (an unfunded fee payer, for example).
"""

from collections.abc import Sequence

from solders.pubkey import Pubkey
from solders.transaction import Transaction

from config import DEFAULT_NETWORK
from core.client import SolanaClient
from interfaces.core import (
    CANCELLED,
    CloseableAccount,
    PrintProgress,
    PrintResult,
    PrintStatus,
    TransactionSigner,
)
from reclaim.builder import CloseTransactionBuilder, calculate_fee
from reclaim.errors import describe_onchain_error, describe_transaction_error
from reclaim.state import InvalidTransitionError, ProgressCallback, ProgressTracker
from reclaim.stats import SessionStats
from utils.format import format_sol, get_explorer_url, shorten_address
from utils.logger import get_logger

logger = get_logger(__name__)


class SigningUnavailableError(Exception):
    """Raised when a signer offers neither signing strategy."""


class RentPrinter:
    """Runs print attempts and keeps session statistics."""

    def __init__(
        self,
        client: SolanaClient,
        builder: CloseTransactionBuilder,
        stats: SessionStats | None = None,
        progress_callback: ProgressCallback | None = None,
        network: str = DEFAULT_NETWORK,
        skip_preflight: bool = False,
        send_retries: int = 1,
    ):
        """
        Args:
            client: Solana RPC client used to send and confirm transactions
            builder: Builder producing the batched close transactions
            stats: Session statistics to update; a fresh instance if omitted
            progress_callback: Called (or awaited) on every progress change
            network: Cluster name used for explorer links
            skip_preflight: Whether to skip preflight simulation on send
            send_retries: Send attempts per transaction
        """
        self.client = client
        self.builder = builder
        self.stats = stats if stats is not None else SessionStats()
        self.network = network
        self.skip_preflight = skip_preflight
        self.send_retries = send_retries
        self.tracker = ProgressTracker(progress_callback)
        self.last_result: PrintResult | None = None

    @property
    def progress(self) -> PrintProgress:
        return self.tracker.progress

    @property
    def is_printing(self) -> bool:
        status = self.tracker.status
        return status is not PrintStatus.IDLE and not status.is_terminal

    @property
    def fee_enabled(self) -> bool:
        return self.builder.fee_enabled

    @property
    def fee_percentage(self) -> float:
        return self.builder.fee_percentage

    def get_explorer_link(self, signature: str) -> str:
        return get_explorer_url(signature, "tx", self.network)

    async def reset(self) -> None:
        """Return to idle and forget the last result. Session stats are kept.

        Ignored while a print is in flight.
        """
        if self.is_printing:
            logger.warning(f"Reset ignored while printing ({self.tracker.status.value})")
            return
        await self.tracker.reset()
        self.last_result = None

    async def print_accounts(
        self,
        accounts: Sequence[CloseableAccount],
        owner: Pubkey | None,
        signer: TransactionSigner | None,
        custom_destination: str | Pubkey | None = None,
    ) -> PrintResult:
        """Close ``accounts`` and return the consolidated result.

        Failures are reported through the result. A declined signature yields
        a result whose error is CANCELLED and leaves the printer idle.
        """
        if self.is_printing:
            return PrintResult.failure("A print is already in progress", self.tracker.status)

        await self.tracker.transition(
            PrintStatus.PREPARING,
            message="Preparing transactions...",
            current_tx=0,
            total_tx=0,
            percentage=5,
        )

        precondition_error = self._check_preconditions(accounts, owner, signer)
        if precondition_error:
            return await self._fail(precondition_error)

        try:
            return await self._run(list(accounts), owner, signer, custom_destination)
        except InvalidTransitionError:
            raise
        except Exception as e:
            logger.exception(f"Print operation failed: {e!s}")
            return await self._fail(str(e) or "Unknown error occurred")

    @staticmethod
    def _check_preconditions(
        accounts: Sequence[CloseableAccount],
        owner: Pubkey | None,
        signer: TransactionSigner | None,
    ) -> str | None:
        if owner is None:
            return "Wallet not connected"
        if signer is None or not (signer.supports_sign_all or signer.supports_sign_one):
            return "Wallet does not support transaction signing"
        if not accounts:
            return "No accounts to close"
        return None

    async def _run(
        self,
        accounts: list[CloseableAccount],
        owner: Pubkey,
        signer: TransactionSigner,
        custom_destination: str | Pubkey | None,
    ) -> PrintResult:
        destination = self._parse_destination(custom_destination)
        batches = await self.builder.build(accounts, owner, destination)
        total_tx = len(batches)

        await self.tracker.transition(
            PrintStatus.AWAITING_SIGNATURE,
            message=f"Please sign {total_tx} transaction{'s' if total_tx > 1 else ''} in your wallet...",
            total_tx=total_tx,
            percentage=15,
        )

        try:
            signed = await self._sign(signer, [batch.transaction for batch in batches])
        except Exception as e:
            logger.info(f"Signing cancelled or failed: {e!s}")
            await self.tracker.reset()
            return PrintResult(success=False, status=PrintStatus.IDLE, error=CANCELLED)

        confirmed_signatures: list[str] = []
        failed = 0
        last_error: str | None = None

        for index, transaction in enumerate(signed):
            number = index + 1
            await self.tracker.transition(
                PrintStatus.SUBMITTING,
                message=f"Submitting transaction {number} of {total_tx}...",
                current_tx=number,
                percentage=25 + (index * 50) // total_tx,
            )

            signature, error_message = await self._submit_and_confirm(
                number, total_tx, transaction
            )
            if error_message is None:
                confirmed_signatures.append(signature)
                continue

            failed += 1
            last_error = error_message
            if index == 0 and not confirmed_signatures:
                # Nothing landed and the first batch failed; the rest would fail the same way
                return await self._fail(error_message)

        return await self._reconcile(accounts, confirmed_signatures, failed, last_error, total_tx)

    async def _submit_and_confirm(
        self, number: int, total_tx: int, transaction: Transaction
    ) -> tuple[str | None, str | None]:
        """Send and confirm one transaction.

        Returns:
            The signature (if sent) and a user-facing error (None on success)
        """
        signature = None
        try:
            signature = await self.client.send_raw_transaction(
                bytes(transaction),
                skip_preflight=self.skip_preflight,
                max_retries=self.send_retries,
            )
            await self.tracker.transition(
                PrintStatus.CONFIRMING,
                message=f"Confirming transaction {number}...",
                percentage=25 + ((2 * number - 1) * 25) // total_tx,
            )
            onchain_error = await self.client.confirm_transaction(signature)
        except InvalidTransitionError:
            raise
        except Exception as e:
            info = describe_transaction_error(e)
            logger.error(f"Transaction {number} of {total_tx} failed: {info.raw}")
            for line in info.logs:
                logger.error(f"  {line}")
            return signature, info.message

        if onchain_error is not None:
            info = describe_onchain_error(number, onchain_error)
            logger.error(f"Transaction {number} failed on-chain: {info.raw}")
            return signature, info.message

        logger.info(f"Transaction {number} of {total_tx} confirmed: {signature}")
        return signature, None

    async def _reconcile(
        self,
        accounts: list[CloseableAccount],
        confirmed_signatures: list[str],
        failed: int,
        last_error: str | None,
        total_tx: int,
    ) -> PrintResult:
        if not confirmed_signatures:
            return await self._fail(last_error or "All transactions failed")

        # Estimated from confirmed batch count, not from per-account tracking
        accounts_closed = min(
            self.builder.max_accounts_per_tx * len(confirmed_signatures), len(accounts)
        )
        total_lamports = sum(account.rent_lamports for account in accounts)
        lamports_reclaimed = total_lamports * accounts_closed // len(accounts)
        fee_paid = (
            calculate_fee(lamports_reclaimed, self.builder.fee_percentage)
            if self.builder.fee_enabled
            else 0
        )
        user_kept = lamports_reclaimed - fee_paid

        partial = failed > 0
        status = PrintStatus.PARTIAL_SUCCESS if partial else PrintStatus.SUCCESS
        result = PrintResult(
            success=not partial,
            status=status,
            accounts_closed=accounts_closed,
            lamports_reclaimed=lamports_reclaimed,
            fee_paid=fee_paid,
            user_kept=user_kept,
            signatures=confirmed_signatures,
            error=f"{failed} transaction(s) failed" if partial else None,
            failed_transactions=failed,
        )

        self.stats.record(user_kept, accounts_closed)
        self.last_result = result

        if partial:
            message = f"Partial success: {accounts_closed} accounts closed, {failed} failed"
            logger.warning(f"{message}. Last error: {last_error}")
        else:
            message = f"Success! Printed {format_sol(user_kept)} SOL"
            logger.info(message)

        await self.tracker.transition(
            status, message=message, current_tx=total_tx, percentage=100
        )
        return result

    async def _fail(self, error: str) -> PrintResult:
        result = PrintResult.failure(error)
        self.last_result = result
        await self.tracker.transition(PrintStatus.ERROR, message=f"Error: {error}", percentage=0)
        return result

    @staticmethod
    async def _sign(
        signer: TransactionSigner, transactions: list[Transaction]
    ) -> list[Transaction]:
        if signer.supports_sign_all:
            signed = list(await signer.sign_all_transactions(transactions))
        elif signer.supports_sign_one:
            signed = [await signer.sign_transaction(tx) for tx in transactions]
        else:
            raise SigningUnavailableError("No signing method available")

        if len(signed) != len(transactions):
            raise ValueError(
                f"Signer returned {len(signed)} transactions, expected {len(transactions)}"
            )
        return signed

    @staticmethod
    def _parse_destination(destination: str | Pubkey | None) -> Pubkey | None:
        if destination is None or isinstance(destination, Pubkey):
            return destination
        if not destination.strip():
            return None
        try:
            pubkey = Pubkey.from_string(destination.strip())
        except ValueError:
            logger.warning(f"Invalid custom destination {destination!r}, refunding to owner")
            return None
        logger.info(f"Using custom destination: {shorten_address(pubkey)}")
        return pubkey
