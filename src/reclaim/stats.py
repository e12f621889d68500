"""
Session statistics accumulated across print attempts.
"""

from dataclasses import dataclass

from core.pubkeys import LAMPORTS_PER_SOL


@dataclass
class SessionStats:
    """Counters for the running session; they only grow until reset()."""
    total_reclaimed: int = 0  # lamports kept by the user
    total_accounts_closed: int = 0
    operation_count: int = 0

    @property
    def total_reclaimed_sol(self) -> float:
        return self.total_reclaimed / LAMPORTS_PER_SOL

    def record(self, user_kept: int, accounts_closed: int) -> None:
        """Add one attempt that closed at least one account."""
        if accounts_closed <= 0:
            return
        self.total_reclaimed += user_kept
        self.total_accounts_closed += accounts_closed
        self.operation_count += 1

    def reset(self) -> None:
        self.total_reclaimed = 0
        self.total_accounts_closed = 0
        self.operation_count = 0
