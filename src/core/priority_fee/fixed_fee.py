from solders.pubkey import Pubkey

from . import PriorityFeePlugin


class FixedPriorityFee(PriorityFeePlugin):
    """Always returns the configured compute-unit price."""

    def __init__(self, fixed_fee: int):
        """
        Args:
            fixed_fee: Compute-unit price in microlamports.
        """
        self.fixed_fee = fixed_fee

    async def get_priority_fee(self, accounts: list[Pubkey] | None = None) -> int | None:
        if self.fixed_fee < 0:
            return None
        return self.fixed_fee
