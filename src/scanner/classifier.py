"""
Decides whether a token account can be closed.
"""

from dataclasses import dataclass

from config import TOKEN_ACCOUNT_RENT_LAMPORTS
from interfaces.core import AccountClass, CloseableAccount
from scanner.records import RawTokenAccount, SourceRecord, normalize
from utils.logger import get_logger

logger = get_logger(__name__)

PUMP_SUFFIX = "pump"


@dataclass(frozen=True)
class Classification:
    kind: AccountClass
    account: CloseableAccount | None = None


def is_empty(raw: RawTokenAccount) -> bool:
    """True only when every reported balance representation is zero.

    A raw amount of zero with a non-zero UI amount (or the reverse) is not
    trusted as empty.
    """
    if raw.raw_amount != 0:
        return False
    return raw.ui_amount is None or raw.ui_amount == 0


def is_pump_token(mint: str) -> bool:
    return mint.lower().endswith(PUMP_SUFFIX)


def classify(raw: RawTokenAccount) -> Classification:
    """Classify one normalized account: frozen, then empty, else skipped."""
    if raw.frozen:
        return Classification(AccountClass.FROZEN)

    if not is_empty(raw):
        return Classification(AccountClass.SKIPPED)

    return Classification(
        AccountClass.CLOSEABLE,
        CloseableAccount(
            address=raw.address,
            mint=raw.mint,
            rent_lamports=raw.lamports,
            program_variant=raw.program_variant,
            is_pump_token=is_pump_token(str(raw.mint)),
        ),
    )


def classify_record(
    record: SourceRecord, default_lamports: int = TOKEN_ACCOUNT_RENT_LAMPORTS
) -> Classification:
    """Normalize and classify a source record; unreadable records are skipped."""
    try:
        raw = normalize(record, default_lamports)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.debug(f"Skipping unreadable token account record: {e!s}")
        return Classification(AccountClass.SKIPPED)
    return classify(raw)
