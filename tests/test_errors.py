from types import SimpleNamespace

from reclaim.errors import (
    ALREADY_CLOSED_MESSAGE,
    INSUFFICIENT_FUNDS_MESSAGE,
    describe_onchain_error,
    describe_transaction_error,
    extract_logs,
    simplify_message,
)


class LoggedError(Exception):
    def __init__(self, message, logs):
        super().__init__(message)
        self.logs = logs


def rpc_style_error(message, logs):
    """Shape of solana-py's RPCException(SendTransactionPreflightFailureMessage)."""
    detail = SimpleNamespace(message=message, data=SimpleNamespace(logs=logs))
    return Exception(detail)


def test_plain_error_message_is_kept():
    info = describe_transaction_error(RuntimeError("node is behind"))

    assert info.message == "node is behind"
    assert info.raw == "node is behind"
    assert info.logs == []


def test_empty_error_falls_back_to_type_name():
    assert describe_transaction_error(TimeoutError()).message == "TimeoutError"


def test_error_log_lines_become_the_message():
    logs = [
        "Program TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA invoke [1]",
        "Program log: Error: Non-native account can only be closed if its balance is zero",
        "Program TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA failed: custom program error: 0xb",
    ]
    info = describe_transaction_error(LoggedError("send failed", logs))

    assert info.message == "; ".join(logs[1:])
    assert info.logs == logs


def test_rpc_exception_detail_is_unwrapped():
    exc = rpc_style_error(
        "Transaction simulation failed: Attempt to debit an account but found no record of a prior credit.",
        ["Program 11111111111111111111111111111111 invoke [1]"],
    )

    info = describe_transaction_error(exc)

    assert info.message == ALREADY_CLOSED_MESSAGE
    assert info.raw.startswith("Transaction simulation failed")
    assert extract_logs(exc) == ["Program 11111111111111111111111111111111 invoke [1]"]


def test_simplify_insufficient_funds():
    assert (
        simplify_message("Transaction simulation failed: Insufficient funds for fee")
        == INSUFFICIENT_FUNDS_MESSAGE
    )


def test_simplify_leaves_other_failures_alone():
    assert simplify_message("Blockhash not found") == "Blockhash not found"
    assert simplify_message("insufficient funds") == "insufficient funds"


def test_onchain_error_message():
    info = describe_onchain_error(3, {"InstructionError": [0, "InvalidAccountData"]})

    assert info.message == "Transaction 3 failed on-chain"
    assert "InvalidAccountData" in info.raw
