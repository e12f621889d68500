from config_loader import ReclaimSettings
from reclaim_runner import DEFAULT_CONFIG_PATH, parse_args, run_payouts, run_reclaim, run_scan

SETTINGS = ReclaimSettings(name="test", rpc_endpoint="https://rpc.example.com")


def test_parse_reclaim_args():
    args = parse_args(["--verbose", "reclaim", "--limit", "5"])

    assert args.command == "reclaim"
    assert args.limit == 5
    assert args.destination is None
    assert args.verbose is True
    assert args.config == DEFAULT_CONFIG_PATH


def test_parse_scan_args():
    args = parse_args(["--config", "other.yaml", "scan", "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"])

    assert args.command == "scan"
    assert args.wallet == "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
    assert args.config == "other.yaml"


async def test_scan_rejects_invalid_wallet():
    assert await run_scan(SETTINGS, "not-a-wallet") == 1


async def test_reclaim_requires_private_key(monkeypatch):
    monkeypatch.delenv("SOLANA_PRIVATE_KEY", raising=False)
    assert await run_reclaim(SETTINGS, None, None) == 1


async def test_payouts_require_fee_wallet():
    assert await run_payouts(SETTINGS) == 1
