from abc import ABC, abstractmethod

from solders.pubkey import Pubkey


class PriorityFeePlugin(ABC):
    """Source of a compute-unit price for close transactions."""

    @abstractmethod
    async def get_priority_fee(self, accounts: list[Pubkey] | None = None) -> int | None:
        """
        Resolve a compute-unit price.

        Args:
            accounts: Writable accounts of the transaction, if the source can use them.

        Returns:
            Price in microlamports per compute unit, or None if this source has no opinion.
        """
        pass
