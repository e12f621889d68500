"""
Core types shared by the scanner, the transaction builder and the printer.

Everything here is plain data plus one abstract signer interface. Amounts are
integer lamports; SOL values are derived properties for display only.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from solders.pubkey import Pubkey
from solders.transaction import Transaction

from core.pubkeys import LAMPORTS_PER_SOL, TOKEN_2022_PROGRAM, TOKEN_PROGRAM

# Error marker for a print attempt the user declined to sign
CANCELLED = "cancelled"


class ProgramVariant(Enum):
    """Token program implementation that owns an account."""
    LEGACY = "spl-token"
    TOKEN_2022 = "spl-token-2022"

    @property
    def program_id(self) -> Pubkey:
        if self is ProgramVariant.TOKEN_2022:
            return TOKEN_2022_PROGRAM
        return TOKEN_PROGRAM

    @classmethod
    def from_program_id(cls, program_id: str | Pubkey | None) -> "ProgramVariant":
        """Map a program id (or an indexer label such as "token_2022") to a variant.

        Unknown or missing ids are treated as the legacy program.
        """
        if program_id is None:
            return cls.LEGACY
        value = str(program_id)
        if value == str(TOKEN_2022_PROGRAM) or "2022" in value:
            return cls.TOKEN_2022
        return cls.LEGACY


class AccountClass(Enum):
    """Outcome of classifying one token account."""
    CLOSEABLE = "closeable"
    SKIPPED = "skipped"
    FROZEN = "frozen"


@dataclass(frozen=True)
class CloseableAccount:
    """An empty token account whose rent can be reclaimed by closing it."""
    address: Pubkey
    mint: Pubkey
    rent_lamports: int
    program_variant: ProgramVariant = ProgramVariant.LEGACY
    is_pump_token: bool = False

    @property
    def program_id(self) -> Pubkey:
        return self.program_variant.program_id

    @property
    def rent_sol(self) -> float:
        return self.rent_lamports / LAMPORTS_PER_SOL


@dataclass(frozen=True)
class ScanResult:
    """Result of scanning one wallet.

    ``closeable_accounts`` is sorted by rent, largest first, and capped. The
    ``total_closeable_count`` and ``estimated_total_lamports`` fields describe
    the full closeable set before the cap was applied.
    """
    total_accounts: int
    closeable_accounts: tuple[CloseableAccount, ...]
    skipped_count: int
    frozen_count: int
    is_truncated: bool
    total_closeable_count: int
    estimated_total_lamports: int

    @property
    def total_reclaimable_lamports(self) -> int:
        """Rent held by the accounts in the working set only."""
        return sum(account.rent_lamports for account in self.closeable_accounts)

    @property
    def total_reclaimable_sol(self) -> float:
        return self.total_reclaimable_lamports / LAMPORTS_PER_SOL

    @property
    def estimated_total_sol(self) -> float:
        return self.estimated_total_lamports / LAMPORTS_PER_SOL

    @classmethod
    def empty(cls) -> "ScanResult":
        return cls(
            total_accounts=0,
            closeable_accounts=(),
            skipped_count=0,
            frozen_count=0,
            is_truncated=False,
            total_closeable_count=0,
            estimated_total_lamports=0,
        )


class PrintStatus(Enum):
    """States of a single print (reclaim) attempt."""
    IDLE = "idle"
    PREPARING = "preparing"
    AWAITING_SIGNATURE = "awaiting_signature"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (PrintStatus.SUCCESS, PrintStatus.PARTIAL_SUCCESS, PrintStatus.ERROR)


@dataclass
class PrintProgress:
    """Progress of the current print attempt, as shown to the user."""
    status: PrintStatus = PrintStatus.IDLE
    message: str = ""
    current_tx: int = 0
    total_tx: int = 0
    percentage: int = 0


@dataclass
class PrintResult:
    """Consolidated outcome of a print attempt.

    ``lamports_reclaimed == fee_paid + user_kept`` always holds.
    """
    success: bool
    status: PrintStatus
    accounts_closed: int = 0
    lamports_reclaimed: int = 0
    fee_paid: int = 0
    user_kept: int = 0
    signatures: list[str] = field(default_factory=list)
    error: str | None = None
    failed_transactions: int = 0

    @property
    def cancelled(self) -> bool:
        return self.error == CANCELLED

    @property
    def sol_reclaimed(self) -> float:
        return self.lamports_reclaimed / LAMPORTS_PER_SOL

    @property
    def sol_kept(self) -> float:
        return self.user_kept / LAMPORTS_PER_SOL

    @classmethod
    def failure(cls, error: str, status: PrintStatus = PrintStatus.ERROR) -> "PrintResult":
        return cls(success=False, status=status, error=error)


class TransactionSigner(ABC):
    """A user-controlled signer, such as a browser wallet or a local keypair.

    Implementations advertise which signing strategies they support. Raising
    from either signing method means the user declined to sign.
    """

    supports_sign_all: bool = False
    supports_sign_one: bool = False

    @property
    @abstractmethod
    def pubkey(self) -> Pubkey:
        """Public key of the wallet that owns the accounts and pays fees."""
        pass

    async def sign_all_transactions(
        self, transactions: list[Transaction]
    ) -> list[Transaction]:
        """Sign every transaction behind a single approval."""
        raise NotImplementedError

    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        """Sign one transaction."""
        raise NotImplementedError
