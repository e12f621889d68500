import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from conftest import FakeSigner, make_accounts
from core.wallet import KeypairSigner
from interfaces.core import CANCELLED, PrintStatus
from reclaim.builder import CloseTransactionBuilder
from reclaim.printer import RentPrinter
from reclaim.stats import SessionStats

RENT = 2_039_280


@pytest.fixture
def updates():
    return []


@pytest.fixture
def make_printer(client, updates):
    def factory(fee_percentage=0.1, fee_recipient=True, stats=None):
        builder = CloseTransactionBuilder(
            client,
            fee_recipient=Pubkey.new_unique() if fee_recipient else None,
            fee_percentage=fee_percentage,
        )
        return RentPrinter(client, builder, stats=stats, progress_callback=updates.append)

    return factory


@pytest.fixture
def signer(owner):
    return FakeSigner(owner)


def statuses(updates):
    return [update.status for update in updates]


async def test_full_success(client, make_printer, owner, signer, updates):
    printer = make_printer()
    accounts = make_accounts(25)

    result = await printer.print_accounts(accounts, owner, signer)

    assert result.success is True
    assert result.status is PrintStatus.SUCCESS
    assert result.accounts_closed == 25
    assert result.lamports_reclaimed == 25 * RENT
    assert result.fee_paid == 5_098_200
    assert result.user_kept == 25 * RENT - 5_098_200
    assert result.signatures == ["sig-1", "sig-2", "sig-3"]
    assert result.failed_transactions == 0
    assert printer.progress.status is PrintStatus.SUCCESS
    assert printer.progress.percentage == 100
    assert printer.last_result is result

    assert statuses(updates)[:2] == [PrintStatus.PREPARING, PrintStatus.AWAITING_SIGNATURE]
    assert statuses(updates)[-1] is PrintStatus.SUCCESS
    messages = [update.message for update in updates]
    assert "Please sign 3 transactions in your wallet..." in messages
    assert "Submitting transaction 2 of 3..." in messages

    assert printer.stats.total_reclaimed == result.user_kept
    assert printer.stats.total_accounts_closed == 25
    assert printer.stats.operation_count == 1


async def test_reset_during_print_is_ignored(client, make_printer, owner, signer):
    printer = make_printer()
    await printer.print_accounts(make_accounts(1), owner, signer)
    previous = printer.last_result
    printer.tracker.progress.status = PrintStatus.CONFIRMING

    await printer.reset()

    assert printer.progress.status is PrintStatus.CONFIRMING
    assert printer.last_result is previous


async def test_failing_progress_callback_does_not_break_print(client, owner, signer):
    def callback(progress):
        raise RuntimeError("display gone")

    printer = RentPrinter(client, CloseTransactionBuilder(client), progress_callback=callback)

    failed = await printer.print_accounts([], owner, signer)
    assert failed.status is PrintStatus.ERROR
    assert failed.error == "No accounts to close"

    result = await printer.print_accounts(make_accounts(1), owner, signer)
    assert result.status is PrintStatus.SUCCESS
    assert printer.progress.status is PrintStatus.SUCCESS


async def test_sequential_submission_confirms_before_next_send(client, make_printer, owner, signer, updates):
    await make_printer().print_accounts(make_accounts(25), owner, signer)

    sequence = [u.status for u in updates if u.status in (PrintStatus.SUBMITTING, PrintStatus.CONFIRMING)]
    assert sequence == [PrintStatus.SUBMITTING, PrintStatus.CONFIRMING] * 3
    assert client.confirmed == ["sig-1", "sig-2", "sig-3"]


async def test_partial_success_reconciles_confirmed_batches(client, make_printer, owner, signer):
    client.send_outcomes = [None, None, RuntimeError("blockhash expired")]
    printer = make_printer()

    result = await printer.print_accounts(make_accounts(25), owner, signer)

    assert result.success is False
    assert result.status is PrintStatus.PARTIAL_SUCCESS
    assert result.accounts_closed == 20
    assert result.lamports_reclaimed == 40_785_600
    assert result.fee_paid == 4_078_560
    assert result.user_kept == 36_707_040
    assert result.failed_transactions == 1
    assert result.error == "1 transaction(s) failed"
    assert len(result.signatures) == 2
    assert printer.progress.message == "Partial success: 20 accounts closed, 1 failed"
    assert printer.stats.operation_count == 1
    assert printer.stats.total_accounts_closed == 20


async def test_first_failure_aborts_remaining_batches(client, make_printer, owner, signer):
    client.send_outcomes = [RuntimeError("Transaction simulation failed: insufficient funds for fee")]
    printer = make_printer()

    result = await printer.print_accounts(make_accounts(25), owner, signer)

    assert result.status is PrintStatus.ERROR
    assert result.success is False
    assert result.accounts_closed == 0
    assert result.error == "Insufficient funds to complete transaction"
    assert len(client.sent) == 1
    assert printer.progress.status is PrintStatus.ERROR
    assert printer.stats.operation_count == 0


async def test_single_batch_failure_is_an_error(client, make_printer, owner, signer):
    client.send_outcomes = [RuntimeError("node is behind")]

    result = await make_printer().print_accounts(make_accounts(3), owner, signer)

    assert result.status is PrintStatus.ERROR
    assert result.error == "node is behind"


async def test_onchain_error_in_later_batch_is_partial(client, make_printer, owner, signer):
    client.confirm_errors = {"sig-2": {"InstructionError": [2, {"Custom": 11}]}}

    result = await make_printer().print_accounts(make_accounts(25), owner, signer)

    assert result.status is PrintStatus.PARTIAL_SUCCESS
    assert result.signatures == ["sig-1", "sig-3"]
    assert result.accounts_closed == 20


async def test_onchain_error_in_first_batch_aborts(client, make_printer, owner, signer):
    client.confirm_errors = {"sig-1": {"InstructionError": [2, {"Custom": 11}]}}

    result = await make_printer().print_accounts(make_accounts(25), owner, signer)

    assert result.status is PrintStatus.ERROR
    assert result.error == "Transaction 1 failed on-chain"
    assert len(client.sent) == 1


async def test_declined_signature_returns_to_idle(client, make_printer, owner, updates):
    printer = make_printer()
    stats_before = (printer.stats.total_reclaimed, printer.stats.operation_count)

    result = await printer.print_accounts(make_accounts(5), owner, FakeSigner(owner, reject=True))

    assert result.error == CANCELLED
    assert result.cancelled is True
    assert result.status is PrintStatus.IDLE
    assert printer.progress.status is PrintStatus.IDLE
    assert printer.is_printing is False
    assert printer.last_result is None
    assert client.sent == []
    assert (printer.stats.total_reclaimed, printer.stats.operation_count) == stats_before
    assert PrintStatus.ERROR not in statuses(updates)


async def test_signer_returning_wrong_count_is_treated_as_cancel(client, make_printer, owner):
    result = await make_printer().print_accounts(
        make_accounts(15), owner, FakeSigner(owner, drop_last=True)
    )

    assert result.cancelled is True
    assert client.sent == []


async def test_sign_one_fallback(client, make_printer, owner):
    signer = FakeSigner(owner, sign_all=False, sign_one=True)

    result = await make_printer().print_accounts(make_accounts(25), owner, signer)

    assert result.success is True
    assert signer.sign_all_calls == 0
    assert signer.sign_one_calls == 3


@pytest.mark.parametrize(
    "accounts,has_owner,signer_kind,expected",
    [
        (3, False, "ok", "Wallet not connected"),
        (3, True, None, "Wallet does not support transaction signing"),
        (3, True, "none", "Wallet does not support transaction signing"),
        (0, True, "ok", "No accounts to close"),
    ],
)
async def test_preconditions(client, make_printer, owner, accounts, has_owner, signer_kind, expected):
    signer = None
    if signer_kind == "ok":
        signer = FakeSigner(owner)
    elif signer_kind == "none":
        signer = FakeSigner(owner, sign_all=False, sign_one=False)
    printer = make_printer()

    result = await printer.print_accounts(make_accounts(accounts), owner if has_owner else None, signer)

    assert result.status is PrintStatus.ERROR
    assert result.error == expected
    assert client.blockhash_calls == 0
    assert printer.progress.message == f"Error: {expected}"


async def test_blockhash_failure_is_an_error(client, make_printer, owner, signer):
    client.blockhash_error = ConnectionError("rpc down")

    result = await make_printer().print_accounts(make_accounts(3), owner, signer)

    assert result.status is PrintStatus.ERROR
    assert "blockhash" in result.error


async def test_fee_disabled_user_keeps_everything(client, make_printer, owner, signer):
    for printer in (make_printer(fee_percentage=0), make_printer(fee_recipient=False)):
        result = await printer.print_accounts(make_accounts(7), owner, signer)

        assert result.fee_paid == 0
        assert result.user_kept == result.lamports_reclaimed == 7 * RENT


async def test_result_amounts_always_balance(client, make_printer, owner, signer):
    client.send_outcomes = [None, RuntimeError("dropped"), None]
    result = await make_printer(fee_percentage=0.07).print_accounts(make_accounts(23), owner, signer)

    assert result.lamports_reclaimed == result.fee_paid + result.user_kept


async def test_stats_accumulate_across_prints(client, make_printer, owner, signer):
    stats = SessionStats()
    printer = make_printer(fee_percentage=0, stats=stats)

    await printer.print_accounts(make_accounts(2), owner, signer)
    await printer.print_accounts(make_accounts(3), owner, signer)

    assert stats.operation_count == 2
    assert stats.total_accounts_closed == 5
    assert stats.total_reclaimed == 5 * RENT


async def test_new_print_after_error(client, make_printer, owner, signer):
    printer = make_printer()
    await printer.print_accounts([], owner, signer)
    assert printer.progress.status is PrintStatus.ERROR

    result = await printer.print_accounts(make_accounts(1), owner, signer)

    assert result.status is PrintStatus.SUCCESS


async def test_reset_clears_result_but_keeps_stats(client, make_printer, owner, signer):
    printer = make_printer()
    await printer.print_accounts(make_accounts(1), owner, signer)

    await printer.reset()

    assert printer.progress.status is PrintStatus.IDLE
    assert printer.last_result is None
    assert printer.stats.operation_count == 1


async def test_custom_destination_string_is_parsed(client, make_printer, owner, signer):
    destination = Pubkey.new_unique()
    printer = make_printer()

    result = await printer.print_accounts(make_accounts(1), owner, signer, str(destination))

    assert result.success is True
    sent = Transaction.from_bytes(client.sent[0])
    assert destination in sent.message.account_keys


async def test_keypair_signer_produces_verifiable_transactions(client, make_printer):
    keypair = Keypair()
    signer = KeypairSigner.from_keypair(keypair)

    result = await make_printer().print_accounts(make_accounts(12), signer.pubkey, signer)

    assert result.success is True
    for raw in client.sent:
        transaction = Transaction.from_bytes(raw)
        transaction.verify()
        assert transaction.signatures[0] != Signature.default()


async def test_async_progress_callback_is_awaited(client, owner, signer):
    seen = []

    async def callback(progress):
        seen.append(progress.status)

    printer = RentPrinter(client, CloseTransactionBuilder(client), progress_callback=callback)
    await printer.print_accounts(make_accounts(1), owner, signer)

    assert seen[-1] is PrintStatus.SUCCESS


async def test_concurrent_print_is_rejected(client, make_printer, owner, signer):
    printer = make_printer()
    printer.tracker.progress.status = PrintStatus.SUBMITTING

    result = await printer.print_accounts(make_accounts(1), owner, signer)

    assert result.error == "A print is already in progress"
    assert client.blockhash_calls == 0
    assert printer.progress.status is PrintStatus.SUBMITTING


def test_explorer_link_uses_network(client):
    builder = CloseTransactionBuilder(client)
    assert RentPrinter(client, builder).get_explorer_link("abc") == "https://explorer.solana.com/tx/abc"
    assert (
        RentPrinter(client, builder, network="devnet").get_explorer_link("abc")
        == "https://explorer.solana.com/tx/abc?cluster=devnet"
    )
