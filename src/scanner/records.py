"""
Token account records as returned by the two scan sources, and the adapters
that turn either shape into one canonical record.

The indexing API returns flat objects:
    {"address", "mint", "amount", "decimals", "frozen", "program_id", "lamports"?}

Standard RPC returns jsonParsed accounts, one call per token program:
    {"pubkey", "lamports", "parsed": {"info": {"mint", "state", "tokenAmount": {...}}}}
"""

from dataclasses import dataclass
from typing import Any

from solders.pubkey import Pubkey

from config import TOKEN_ACCOUNT_RENT_LAMPORTS
from interfaces.core import ProgramVariant


@dataclass(frozen=True)
class IndexedTokenAccount:
    """One entry of an indexing API getTokenAccounts response."""
    address: str
    mint: str
    amount: Any
    decimals: int
    frozen: bool
    program_id: str | None = None
    lamports: int | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "IndexedTokenAccount":
        return cls(
            address=data.get("address", ""),
            mint=data.get("mint", ""),
            amount=data.get("amount", 0),
            decimals=data.get("decimals") or 0,
            frozen=bool(data.get("frozen", False)),
            program_id=data.get("program_id"),
            lamports=data.get("lamports"),
        )


@dataclass(frozen=True)
class ParsedTokenAccount:
    """One jsonParsed account from getTokenAccountsByOwner."""
    pubkey: str
    lamports: int
    parsed: dict[str, Any]
    program_variant: ProgramVariant

    @classmethod
    def from_json(cls, data: dict[str, Any], program_variant: ProgramVariant) -> "ParsedTokenAccount":
        return cls(
            pubkey=data.get("pubkey", ""),
            lamports=data.get("lamports", 0),
            parsed=data.get("parsed") or {},
            program_variant=program_variant,
        )


SourceRecord = IndexedTokenAccount | ParsedTokenAccount


@dataclass(frozen=True)
class RawTokenAccount:
    """Canonical token account state fed to the classifier.

    ``ui_amount`` is None when the source only reports the raw amount.
    """
    address: Pubkey
    mint: Pubkey
    raw_amount: int
    ui_amount: float | None
    decimals: int
    frozen: bool
    lamports: int
    program_variant: ProgramVariant


def from_indexed(
    record: IndexedTokenAccount, default_lamports: int = TOKEN_ACCOUNT_RENT_LAMPORTS
) -> RawTokenAccount:
    """Adapt an indexing API record; missing lamports default to the token account rent."""
    lamports = record.lamports if record.lamports is not None else default_lamports
    return RawTokenAccount(
        address=Pubkey.from_string(record.address),
        mint=Pubkey.from_string(record.mint),
        raw_amount=int(record.amount or 0),
        ui_amount=None,
        decimals=int(record.decimals),
        frozen=record.frozen,
        lamports=int(lamports),
        program_variant=ProgramVariant.from_program_id(record.program_id),
    )


def from_parsed(record: ParsedTokenAccount) -> RawTokenAccount:
    """Adapt a jsonParsed RPC account."""
    info = record.parsed["info"]
    token_amount = info["tokenAmount"]

    ui_amount = token_amount.get("uiAmount")
    if ui_amount is None and token_amount.get("uiAmountString") is not None:
        ui_amount = float(token_amount["uiAmountString"])

    return RawTokenAccount(
        address=Pubkey.from_string(record.pubkey),
        mint=Pubkey.from_string(info["mint"]),
        raw_amount=int(token_amount.get("amount") or 0),
        ui_amount=float(ui_amount) if ui_amount is not None else None,
        decimals=int(token_amount.get("decimals") or 0),
        frozen=info.get("state") == "frozen",
        lamports=int(record.lamports),
        program_variant=record.program_variant,
    )


def normalize(
    record: SourceRecord, default_lamports: int = TOKEN_ACCOUNT_RENT_LAMPORTS
) -> RawTokenAccount:
    """Convert a record from either source into a RawTokenAccount."""
    if isinstance(record, IndexedTokenAccount):
        return from_indexed(record, default_lamports)
    if isinstance(record, ParsedTokenAccount):
        return from_parsed(record)
    raise TypeError(f"Unsupported token account record: {type(record).__name__}")
