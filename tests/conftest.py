import asyncio
from collections.abc import Callable

import pytest
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from config import TOKEN_ACCOUNT_RENT_LAMPORTS
from interfaces.core import CloseableAccount, ProgramVariant, TransactionSigner


class FakeSolanaClient:
    """In-memory stand-in for SolanaClient.

    ``send_outcomes`` is consumed one entry per send: an Exception is raised,
    a string is returned as the signature, None yields "sig-<n>".
    """

    def __init__(self):
        self.blockhash = Hash.new_unique()
        self.last_valid_block_height = 1_000
        self.blockhash_error: Exception | None = None
        self.blockhash_calls = 0

        self.rpc_responses: list = []
        self.rpc_handler: Callable | None = None
        self.rpc_gate: asyncio.Event | None = None
        self.rpc_calls: list = []

        self.parsed_accounts: dict[str, list[dict]] = {}
        self.parsed_errors: dict[str, Exception] = {}
        self.parsed_calls: list[str] = []

        self.send_outcomes: list = []
        self.sent: list[bytes] = []
        self.confirm_errors: dict[str, object] = {}
        self.confirmed: list[str] = []

    async def get_latest_blockhash(self):
        self.blockhash_calls += 1
        if self.blockhash_error is not None:
            raise self.blockhash_error
        return self.blockhash, self.last_valid_block_height

    async def post_rpc(self, body):
        self.rpc_calls.append(body)
        if self.rpc_gate is not None:
            await self.rpc_gate.wait()
        if self.rpc_handler is not None:
            return self.rpc_handler(body)
        if not self.rpc_responses:
            return None
        response = self.rpc_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def get_parsed_token_accounts(self, owner, program_id):
        key = str(program_id)
        self.parsed_calls.append(key)
        if key in self.parsed_errors:
            raise self.parsed_errors[key]
        return self.parsed_accounts.get(key, [])

    async def send_raw_transaction(self, raw, skip_preflight=False, max_retries=1):
        self.sent.append(raw)
        outcome = self.send_outcomes.pop(0) if self.send_outcomes else None
        if isinstance(outcome, Exception):
            raise outcome
        return outcome or f"sig-{len(self.sent)}"

    async def confirm_transaction(self, signature):
        self.confirmed.append(signature)
        return self.confirm_errors.get(signature)

    async def close(self):
        pass


class FakeSigner(TransactionSigner):
    """Wallet double that returns transactions unchanged, or declines."""

    def __init__(
        self,
        pubkey: Pubkey,
        sign_all: bool = True,
        sign_one: bool = True,
        reject: bool = False,
        drop_last: bool = False,
    ):
        self._pubkey = pubkey
        self.supports_sign_all = sign_all
        self.supports_sign_one = sign_one
        self.reject = reject
        self.drop_last = drop_last
        self.sign_all_calls = 0
        self.sign_one_calls = 0

    @property
    def pubkey(self) -> Pubkey:
        return self._pubkey

    async def sign_all_transactions(self, transactions: list[Transaction]) -> list[Transaction]:
        self.sign_all_calls += 1
        if self.reject:
            raise RuntimeError("User rejected the request")
        if self.drop_last:
            return transactions[:-1]
        return transactions

    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        self.sign_one_calls += 1
        if self.reject:
            raise RuntimeError("User rejected the request")
        return transaction


def make_account(
    rent_lamports: int = TOKEN_ACCOUNT_RENT_LAMPORTS,
    variant: ProgramVariant = ProgramVariant.LEGACY,
) -> CloseableAccount:
    return CloseableAccount(
        address=Pubkey.new_unique(),
        mint=Pubkey.new_unique(),
        rent_lamports=rent_lamports,
        program_variant=variant,
    )


def make_accounts(count: int, rent_lamports: int = TOKEN_ACCOUNT_RENT_LAMPORTS) -> list[CloseableAccount]:
    return [make_account(rent_lamports) for _ in range(count)]


def parsed_account(
    amount: str = "0",
    ui_amount: float | None = 0.0,
    state: str = "initialized",
    lamports: int = TOKEN_ACCOUNT_RENT_LAMPORTS,
    decimals: int = 6,
    mint: str | None = None,
) -> dict:
    """A getTokenAccountsByOwner jsonParsed entry as SolanaClient returns it."""
    return {
        "pubkey": str(Pubkey.new_unique()),
        "lamports": lamports,
        "parsed": {
            "info": {
                "mint": mint or str(Pubkey.new_unique()),
                "owner": str(Pubkey.new_unique()),
                "state": state,
                "tokenAmount": {
                    "amount": amount,
                    "decimals": decimals,
                    "uiAmount": ui_amount,
                    "uiAmountString": str(ui_amount or 0),
                },
            }
        },
    }


def indexed_account(
    amount=0,
    frozen: bool = False,
    program_id: str | None = None,
    lamports: int | None = None,
    mint: str | None = None,
) -> dict:
    """A getTokenAccounts entry from the indexing API."""
    entry = {
        "address": str(Pubkey.new_unique()),
        "mint": mint or str(Pubkey.new_unique()),
        "amount": amount,
        "decimals": 6,
        "frozen": frozen,
    }
    if program_id is not None:
        entry["program_id"] = program_id
    if lamports is not None:
        entry["lamports"] = lamports
    return entry


@pytest.fixture
def client() -> FakeSolanaClient:
    return FakeSolanaClient()


@pytest.fixture
def owner() -> Pubkey:
    return Pubkey.new_unique()
