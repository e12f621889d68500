"""
Solana client abstraction for the scanning and reclaim pipeline.
"""

import asyncio
import json
from typing import Any

import aiohttp
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TokenAccountOpts, TxOpts
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature

from utils.logger import get_logger

logger = get_logger(__name__)


class SolanaClient:
    """Abstraction for Solana RPC client operations."""

    def __init__(self, rpc_endpoint: str, request_timeout: float = 10.0):
        """Initialize Solana client with RPC endpoint.

        Args:
            rpc_endpoint: URL of the Solana RPC endpoint
            request_timeout: Timeout in seconds for raw JSON-RPC requests
        """
        self.rpc_endpoint = rpc_endpoint
        self.request_timeout = request_timeout
        self._client: AsyncClient | None = None

    async def get_client(self) -> AsyncClient:
        """Get or create the AsyncClient instance.

        Returns:
            AsyncClient instance
        """
        if self._client is None:
            self._client = AsyncClient(self.rpc_endpoint, commitment=Confirmed)
        return self._client

    async def close(self):
        """Close the client connection."""
        if self._client:
            await self._client.close()
            self._client = None

    async def get_latest_blockhash(self) -> tuple[Hash, int]:
        """Get the latest blockhash.

        Returns:
            Recent blockhash and the last block height at which it is valid
        """
        client = await self.get_client()
        response = await client.get_latest_blockhash(commitment=Confirmed)
        return response.value.blockhash, response.value.last_valid_block_height

    async def get_parsed_token_accounts(
        self, owner: Pubkey, program_id: Pubkey
    ) -> list[dict[str, Any]]:
        """List the owner's token accounts for one token program.

        Args:
            owner: Wallet that owns the token accounts
            program_id: Token program to query

        Returns:
            One dict per account with "pubkey", "lamports" and "parsed" keys
        """
        client = await self.get_client()
        response = await client.get_token_accounts_by_owner_json_parsed(
            owner, TokenAccountOpts(program_id=program_id), commitment=Confirmed
        )
        return [
            {
                "pubkey": str(keyed.pubkey),
                "lamports": keyed.account.lamports,
                "parsed": keyed.account.data.parsed,
            }
            for keyed in response.value
        ]

    async def send_raw_transaction(
        self,
        raw_transaction: bytes,
        skip_preflight: bool = False,
        max_retries: int = 1,
    ) -> str:
        """Send a signed, serialized transaction.

        Args:
            raw_transaction: Serialized signed transaction
            skip_preflight: Whether to skip preflight simulation
            max_retries: Maximum number of send attempts

        Returns:
            Transaction signature
        """
        client = await self.get_client()
        tx_opts = TxOpts(skip_preflight=skip_preflight, preflight_commitment=Confirmed)

        for attempt in range(max_retries):
            try:
                response = await client.send_raw_transaction(raw_transaction, tx_opts)
                return str(response.value)

            except Exception as e:
                if attempt == max_retries - 1:
                    raise

                wait_time = 2**attempt
                logger.warning(
                    f"Send attempt {attempt + 1} failed: {e!s}, retrying in {wait_time}s"
                )
                await asyncio.sleep(wait_time)

        raise RuntimeError("max_retries must be at least 1")

    async def confirm_transaction(self, signature: str) -> Any | None:
        """Wait for a transaction to reach confirmed commitment.

        Args:
            signature: Transaction signature

        Returns:
            The on-chain execution error, or None if the transaction succeeded
        """
        client = await self.get_client()
        response = await client.confirm_transaction(
            Signature.from_string(signature), commitment=Confirmed, sleep_seconds=1
        )
        statuses = response.value
        if statuses and statuses[0] is not None:
            return statuses[0].err
        return None

    async def post_rpc(
        self, body: dict[str, Any] | list[dict[str, Any]]
    ) -> Any | None:
        """
        Send a raw JSON-RPC request (or a batch of them) to the node.

        Args:
            body: JSON-RPC request body, or a list of bodies for a batch request.

        Returns:
            Parsed JSON response, or None if the request fails.
        """
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.rpc_endpoint,
                    json=body,
                    timeout=aiohttp.ClientTimeout(self.request_timeout),
                ) as response:
                    response.raise_for_status()
                    return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"RPC request failed: {e!s}")
            return None
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to decode RPC response: {e!s}")
            return None
