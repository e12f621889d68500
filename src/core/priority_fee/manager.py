from solders.pubkey import Pubkey

from config import COMPUTE_UNIT_PRICE
from core.client import SolanaClient
from core.priority_fee.dynamic_fee import DynamicPriorityFee
from core.priority_fee.fixed_fee import FixedPriorityFee
from utils.logger import get_logger

logger = get_logger(__name__)


class PriorityFeeManager:
    """Resolves the compute-unit price attached to close transactions."""

    def __init__(
        self,
        client: SolanaClient,
        enable_dynamic_fee: bool = False,
        enable_fixed_fee: bool = True,
        fixed_fee: int = COMPUTE_UNIT_PRICE,
        extra_fee: float = 0.0,
        hard_cap: int = 500_000,
    ):
        """
        Args:
            client: Solana RPC client for dynamic fee calculation.
            enable_dynamic_fee: Whether to query recent prioritization fees.
            enable_fixed_fee: Whether to use the fixed price.
            fixed_fee: Fixed compute-unit price in microlamports.
            extra_fee: Percentage increase applied to the base price.
            hard_cap: Maximum compute-unit price in microlamports.
        """
        self.enable_dynamic_fee = enable_dynamic_fee
        self.enable_fixed_fee = enable_fixed_fee
        self.fixed_fee = fixed_fee
        self.extra_fee = extra_fee
        self.hard_cap = hard_cap

        self.dynamic_fee_plugin = DynamicPriorityFee(client)
        self.fixed_fee_plugin = FixedPriorityFee(fixed_fee)

    async def calculate_priority_fee(self, accounts: list[Pubkey] | None = None) -> int:
        """
        Calculate the compute-unit price for a transaction touching ``accounts``.

        Close transactions always carry a price instruction, so this falls back
        to the default price when no source produces one.
        """
        base_fee = await self._get_base_fee(accounts)
        if base_fee is None:
            base_fee = COMPUTE_UNIT_PRICE

        final_fee = int(base_fee * (1 + self.extra_fee))

        if final_fee > self.hard_cap:
            logger.warning(
                f"Calculated priority fee {final_fee} exceeds hard cap {self.hard_cap}. Applying hard cap."
            )
            final_fee = self.hard_cap

        return final_fee

    async def _get_base_fee(self, accounts: list[Pubkey] | None) -> int | None:
        # Dynamic wins when it answers
        if self.enable_dynamic_fee:
            dynamic_fee = await self.dynamic_fee_plugin.get_priority_fee(accounts)
            if dynamic_fee is not None:
                return dynamic_fee
            logger.info("Dynamic priority fee unavailable, falling back")

        if self.enable_fixed_fee:
            return await self.fixed_fee_plugin.get_priority_fee(accounts)

        return None
