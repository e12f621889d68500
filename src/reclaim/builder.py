"""
Builds batched close-account transactions.

Every transaction is self-contained: compute budget instructions, one close
instruction per account in the batch and, when a fee recipient is set, a fee
transfer sized to that batch alone. A batch can land on chain without any of
the others.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction
from spl.token.instructions import CloseAccountParams, close_account

from config import COMPUTE_UNIT_LIMIT, COMPUTE_UNIT_PRICE, MAX_ACCOUNTS_PER_TX
from core.client import SolanaClient
from core.priority_fee.manager import PriorityFeeManager
from interfaces.core import CloseableAccount
from utils.logger import get_logger

logger = get_logger(__name__)


class BlockhashUnavailableError(Exception):
    """Raised when no recent blockhash could be fetched for a build."""


@dataclass(frozen=True)
class CloseBatch:
    """One unsigned close transaction and what went into it."""
    transaction: Transaction
    accounts: tuple[CloseableAccount, ...]
    instructions: tuple[Instruction, ...]
    fee_lamports: int
    last_valid_block_height: int

    @property
    def rent_lamports(self) -> int:
        return sum(account.rent_lamports for account in self.accounts)


def calculate_fee(lamports: int, fee_percentage: float) -> int:
    """Service fee on ``lamports``, rounded down.

    The percentage goes through its decimal string so 0.1 means exactly 10%.
    """
    if lamports <= 0 or fee_percentage <= 0:
        return 0
    return math.floor(Decimal(lamports) * Decimal(str(fee_percentage)))


def chunk_accounts(
    accounts: Sequence[CloseableAccount], size: int
) -> list[tuple[CloseableAccount, ...]]:
    if size < 1:
        raise ValueError("Batch size must be at least 1")
    return [tuple(accounts[i : i + size]) for i in range(0, len(accounts), size)]


class CloseTransactionBuilder:
    """Turns selected closeable accounts into independently valid transactions."""

    def __init__(
        self,
        client: SolanaClient,
        priority_fee_manager: PriorityFeeManager | None = None,
        max_accounts_per_tx: int = MAX_ACCOUNTS_PER_TX,
        compute_unit_limit: int = COMPUTE_UNIT_LIMIT,
        fee_recipient: Pubkey | None = None,
        fee_percentage: float = 0.0,
    ):
        """
        Args:
            client: Solana RPC client used for the blockhash
            priority_fee_manager: Source of the compute-unit price; defaults to a fixed price
            max_accounts_per_tx: Close instructions per transaction
            compute_unit_limit: Compute-unit ceiling attached to each transaction
            fee_recipient: Address receiving the service fee; None disables the fee
            fee_percentage: Fraction of each batch's rent paid as fee
        """
        self.client = client
        self.priority_fee_manager = priority_fee_manager
        self.max_accounts_per_tx = max_accounts_per_tx
        self.compute_unit_limit = compute_unit_limit
        self.fee_recipient = fee_recipient
        self.fee_percentage = fee_percentage

    @property
    def fee_enabled(self) -> bool:
        return self.fee_recipient is not None and self.fee_percentage > 0

    async def build(
        self,
        accounts: Sequence[CloseableAccount],
        owner: Pubkey,
        custom_destination: Pubkey | None = None,
    ) -> list[CloseBatch]:
        """Build one transaction per batch of ``accounts``.

        All transactions share one blockhash and therefore expire together.

        Raises:
            BlockhashUnavailableError: If the blockhash cannot be fetched.
        """
        if not accounts:
            return []

        try:
            blockhash, last_valid_block_height = await self.client.get_latest_blockhash()
        except Exception as e:
            raise BlockhashUnavailableError(f"Failed to fetch a recent blockhash: {e!s}") from e

        compute_unit_price = await self._resolve_compute_unit_price(accounts)
        rent_destination = custom_destination or owner

        batches = []
        for batch_accounts in chunk_accounts(accounts, self.max_accounts_per_tx):
            instructions, fee_lamports = self._batch_instructions(
                batch_accounts, owner, rent_destination, compute_unit_price
            )
            message = Message.new_with_blockhash(instructions, owner, blockhash)
            batches.append(
                CloseBatch(
                    transaction=Transaction.new_unsigned(message),
                    accounts=batch_accounts,
                    instructions=tuple(instructions),
                    fee_lamports=fee_lamports,
                    last_valid_block_height=last_valid_block_height,
                )
            )

        logger.info(
            f"Built {len(batches)} transaction(s) for {len(accounts)} account(s), "
            f"compute unit price {compute_unit_price}"
        )
        return batches

    def _batch_instructions(
        self,
        batch_accounts: Sequence[CloseableAccount],
        owner: Pubkey,
        rent_destination: Pubkey,
        compute_unit_price: int,
    ) -> tuple[list[Instruction], int]:
        instructions = [
            set_compute_unit_limit(self.compute_unit_limit),
            set_compute_unit_price(compute_unit_price),
        ]

        for account in batch_accounts:
            instructions.append(
                close_account(
                    CloseAccountParams(
                        account=account.address,
                        dest=rent_destination,
                        owner=owner,
                        program_id=account.program_id,
                    )
                )
            )

        fee_lamports = 0
        if self.fee_enabled:
            batch_rent = sum(account.rent_lamports for account in batch_accounts)
            fee_lamports = calculate_fee(batch_rent, self.fee_percentage)
            if fee_lamports > 0:
                instructions.append(
                    transfer(
                        TransferParams(
                            from_pubkey=owner,
                            to_pubkey=self.fee_recipient,
                            lamports=fee_lamports,
                        )
                    )
                )

        return instructions, fee_lamports

    async def _resolve_compute_unit_price(
        self, accounts: Sequence[CloseableAccount]
    ) -> int:
        if self.priority_fee_manager is None:
            return COMPUTE_UNIT_PRICE
        return await self.priority_fee_manager.calculate_priority_fee(
            [account.address for account in accounts]
        )
