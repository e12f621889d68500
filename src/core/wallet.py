"""
Local keypair signer for command-line use.
"""

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from interfaces.core import TransactionSigner


class KeypairSigner(TransactionSigner):
    """Signs close transactions with a keypair the user supplies locally."""

    supports_sign_all = True
    supports_sign_one = True

    def __init__(self, private_key: str):
        """Initialize signer from private key.

        Args:
            private_key: Base58 encoded private key
        """
        self._keypair = self._load_keypair(private_key)

    @classmethod
    def from_keypair(cls, keypair: Keypair) -> "KeypairSigner":
        signer = cls.__new__(cls)
        signer._keypair = keypair
        return signer

    @property
    def pubkey(self) -> Pubkey:
        """Get the public key of the wallet."""
        return self._keypair.pubkey()

    async def sign_all_transactions(
        self, transactions: list[Transaction]
    ) -> list[Transaction]:
        return [await self.sign_transaction(tx) for tx in transactions]

    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        transaction.sign([self._keypair], transaction.message.recent_blockhash)
        return transaction

    @staticmethod
    def _load_keypair(private_key: str) -> Keypair:
        """Load keypair from private key.

        Args:
            private_key: Base58 encoded private key

        Returns:
            Solana keypair
        """
        private_key_bytes = base58.b58decode(private_key)
        return Keypair.from_bytes(private_key_bytes)
