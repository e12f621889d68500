import statistics

from solders.pubkey import Pubkey

from core.client import SolanaClient
from core.priority_fee import PriorityFeePlugin
from utils.logger import get_logger

logger = get_logger(__name__)

# getRecentPrioritizationFees accepts at most this many account keys
MAX_FEE_ACCOUNTS = 128


class DynamicPriorityFee(PriorityFeePlugin):
    """Compute-unit price derived from getRecentPrioritizationFees."""

    def __init__(self, client: SolanaClient):
        """
        Args:
            client: Solana RPC client for network requests.
        """
        self.client = client

    async def get_priority_fee(self, accounts: list[Pubkey] | None = None) -> int | None:
        """
        Take the 70th percentile of recent prioritization fees paid for the
        given accounts.

        Returns:
            Price in microlamports, or None if the request fails or returns nothing.
        """
        params = []
        if accounts:
            params = [[str(account) for account in accounts[:MAX_FEE_ACCOUNTS]]]
        body = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getRecentPrioritizationFees",
            "params": params,
        }

        response = await self.client.post_rpc(body)
        if not response or "result" not in response:
            logger.warning("Failed to fetch recent prioritization fees: invalid response")
            return None

        try:
            fees = [int(entry["prioritizationFee"]) for entry in response["result"]]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Malformed prioritization fee response: {e!s}")
            return None

        if not fees:
            logger.warning("No prioritization fees found in the response")
            return None
        if len(fees) == 1:
            return fees[0]

        # 70th percentile: pays more than most recent transactions without chasing outliers
        return int(statistics.quantiles(fees, n=10)[-3])
