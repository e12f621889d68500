"""
Turns provider and on-chain errors into short user-facing messages while
keeping the raw detail for the logs.
"""

from dataclasses import dataclass, field
from typing import Any

ALREADY_CLOSED_MESSAGE = "Account may have already been closed or has insufficient rent"
INSUFFICIENT_FUNDS_MESSAGE = "Insufficient funds to complete transaction"


@dataclass(frozen=True)
class TransactionErrorInfo:
    message: str  # shown to the user
    raw: str  # logged
    logs: list[str] = field(default_factory=list)


def extract_logs(exc: BaseException) -> list[str]:
    """Program log lines carried by a send/simulation error, if any.

    solana-py wraps preflight failures as RPCException(detail) where
    detail.data.logs holds the simulation logs.
    """
    logs = getattr(exc, "logs", None)
    if logs is None and exc.args:
        data = getattr(exc.args[0], "data", None)
        logs = getattr(data, "logs", None)
    return [str(line) for line in logs or []]


def _raw_message(exc: BaseException) -> str:
    if exc.args:
        detail_message = getattr(exc.args[0], "message", None)
        if isinstance(detail_message, str) and detail_message:
            return detail_message
    return str(exc) or type(exc).__name__


def simplify_message(message: str, raw: str = "") -> str:
    """Map known simulation failures to clearer text."""
    text = f"{raw} {message}"
    if "simulation failed" not in text.lower():
        return message
    if "Attempt to debit" in text:
        return ALREADY_CLOSED_MESSAGE
    if "insufficient funds" in text.lower():
        return INSUFFICIENT_FUNDS_MESSAGE
    return message


def describe_transaction_error(exc: BaseException) -> TransactionErrorInfo:
    """Describe a failed send or confirmation call."""
    raw = _raw_message(exc)
    logs = extract_logs(exc)

    message = raw
    log_errors = [line for line in logs if "error" in line.lower() or "failed" in line.lower()]
    if log_errors:
        message = "; ".join(log_errors)

    return TransactionErrorInfo(message=simplify_message(message, raw), raw=raw, logs=logs)


def describe_onchain_error(index: int, err: Any) -> TransactionErrorInfo:
    """Describe a transaction that confirmed with an execution error."""
    return TransactionErrorInfo(
        message=f"Transaction {index} failed on-chain",
        raw=str(err),
    )
