"""
Loading and validation of the reclaimer's YAML configuration.
"""

import os
from dataclasses import dataclass
from typing import Any

import yaml
from dotenv import load_dotenv
from solders.pubkey import Pubkey

import config as defaults
from utils.logger import get_logger

logger = get_logger(__name__)

REQUIRED_FIELDS = [
    "name",
    "rpc_endpoint",
]

CONFIG_VALIDATION_RULES = [
    ("scan.max_accounts_to_process", int, 1, float("inf"), "scan.max_accounts_to_process must be a positive integer"),
    ("scan.cache_ttl", (int, float), 0, float("inf"), "scan.cache_ttl must be a non-negative number"),
    ("transactions.max_accounts_per_tx", int, 1, 20, "transactions.max_accounts_per_tx must be between 1 and 20"),
    ("transactions.compute_unit_limit", int, 1, 1_400_000, "transactions.compute_unit_limit must be between 1 and 1,400,000"),
    ("transactions.send_retries", int, 1, 10, "transactions.send_retries must be between 1 and 10"),
    ("fees.fee_percentage", (int, float), 0, 1, "fees.fee_percentage must be between 0 and 1"),
    ("priority_fees.fixed_amount", int, 0, float("inf"), "priority_fees.fixed_amount must be a non-negative integer"),
    ("priority_fees.extra_percentage", (int, float), 0, 1, "priority_fees.extra_percentage must be between 0 and 1"),
    ("priority_fees.hard_cap", int, 0, float("inf"), "priority_fees.hard_cap must be a non-negative integer"),
    ("payouts.cache_ttl", (int, float), 0, float("inf"), "payouts.cache_ttl must be a non-negative number"),
    ("payouts.signature_limit", int, 1, 1000, "payouts.signature_limit must be between 1 and 1000"),
]

# Valid values for enum-like fields
VALID_VALUES = {
    "network": ["mainnet-beta", "devnet", "testnet"],
}


@dataclass(frozen=True)
class ReclaimSettings:
    """Validated settings consumed by the scanner, builder and printer."""
    name: str
    rpc_endpoint: str
    network: str = defaults.DEFAULT_NETWORK
    max_accounts_to_process: int = defaults.MAX_ACCOUNTS_TO_PROCESS
    scan_cache_ttl: float = defaults.SCAN_CACHE_TTL
    max_accounts_per_tx: int = defaults.MAX_ACCOUNTS_PER_TX
    compute_unit_limit: int = defaults.COMPUTE_UNIT_LIMIT
    send_retries: int = 1
    skip_preflight: bool = False
    fee_percentage: float = defaults.FEE_PERCENTAGE
    fee_recipient: Pubkey | None = None
    custom_destination: Pubkey | None = None
    enable_dynamic_priority_fee: bool = False
    enable_fixed_priority_fee: bool = True
    fixed_priority_fee: int = defaults.COMPUTE_UNIT_PRICE
    extra_priority_fee: float = 0.0
    hard_cap_priority_fee: int = 500_000
    payout_fee_wallet: str = ""
    payout_cache_ttl: float = defaults.PAYOUT_CACHE_TTL
    payout_signature_limit: int = defaults.PAYOUT_SIGNATURE_LIMIT

    @property
    def fee_enabled(self) -> bool:
        return self.fee_recipient is not None and self.fee_percentage > 0


def load_reclaim_config(path: str) -> dict:
    """Load and validate a reclaimer configuration from a YAML file."""
    with open(path) as f:
        config = yaml.safe_load(f) or {}

    env_file = config.get("env_file")
    if env_file:
        env_path = os.path.join(os.path.dirname(path), env_file)
        if os.path.exists(env_path):
            load_dotenv(env_path, override=True)
        else:
            load_dotenv(env_file, override=True)

    resolve_env_vars(config)
    validate_config(config)
    return config


def resolve_env_vars(config: dict) -> None:
    """Recursively replace "${VAR}" values with environment variables."""
    def resolve_env(value):
        if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
            env_var = value[2:-1]
            env_value = os.getenv(env_var)
            if env_value is None:
                raise ValueError(f"Environment variable '{env_var}' not found")
            return env_value
        return value

    def resolve_all(d):
        for k, v in d.items():
            if isinstance(v, dict):
                resolve_all(v)
            else:
                d[k] = resolve_env(v)

    resolve_all(config)


def get_nested_value(config: dict, path: str) -> Any:
    """Get a nested value from the configuration using dot notation."""
    value = config
    for key in path.split("."):
        if not isinstance(value, dict) or key not in value:
            raise ValueError(f"Missing required config key: {path}")
        value = value[key]
    return value


def validate_config(config: dict) -> None:
    """Validate required keys, value ranges and option combinations."""
    for field in REQUIRED_FIELDS:
        get_nested_value(config, field)

    rpc_endpoint = config["rpc_endpoint"]
    if not isinstance(rpc_endpoint, str) or not rpc_endpoint.startswith(("http://", "https://")):
        raise ValueError("rpc_endpoint must start with http:// or https://")

    for path, expected_type, min_val, max_val, error_msg in CONFIG_VALIDATION_RULES:
        try:
            value = get_nested_value(config, path)
        except ValueError:
            # Optional keys fall back to defaults
            continue

        if isinstance(value, bool) or not isinstance(value, expected_type):
            raise ValueError(f"Type error: {error_msg}")
        if not (min_val <= value <= max_val):
            raise ValueError(f"Range error: {error_msg}")

    for path, valid_values in VALID_VALUES.items():
        try:
            value = get_nested_value(config, path)
        except ValueError:
            continue
        if value not in valid_values:
            raise ValueError(f"{path} must be one of {valid_values}")

    fees = config.get("priority_fees", {})
    if fees.get("enable_dynamic") and fees.get("enable_fixed"):
        raise ValueError("Cannot enable both dynamic and fixed priority fees simultaneously")


def _parse_optional_pubkey(value: Any, label: str) -> Pubkey | None:
    if value is None or not str(value).strip():
        return None
    try:
        return Pubkey.from_string(str(value).strip())
    except ValueError:
        logger.warning(f"Invalid {label} address {value!r}, ignoring it")
        return None


def build_settings(config: dict) -> ReclaimSettings:
    """Convert a validated configuration dict into ReclaimSettings."""
    scan = config.get("scan", {})
    transactions = config.get("transactions", {})
    fees = config.get("fees", {})
    priority_fees = config.get("priority_fees", {})
    payouts = config.get("payouts", {})

    fee_recipient = _parse_optional_pubkey(fees.get("fee_recipient", defaults.FEE_RECIPIENT), "fee recipient")

    return ReclaimSettings(
        name=config["name"],
        rpc_endpoint=config["rpc_endpoint"],
        network=config.get("network", defaults.DEFAULT_NETWORK),
        max_accounts_to_process=scan.get("max_accounts_to_process", defaults.MAX_ACCOUNTS_TO_PROCESS),
        scan_cache_ttl=scan.get("cache_ttl", defaults.SCAN_CACHE_TTL),
        max_accounts_per_tx=transactions.get("max_accounts_per_tx", defaults.MAX_ACCOUNTS_PER_TX),
        compute_unit_limit=transactions.get("compute_unit_limit", defaults.COMPUTE_UNIT_LIMIT),
        send_retries=transactions.get("send_retries", 1),
        skip_preflight=bool(transactions.get("skip_preflight", False)),
        fee_percentage=float(fees.get("fee_percentage", defaults.FEE_PERCENTAGE)),
        fee_recipient=fee_recipient,
        custom_destination=_parse_optional_pubkey(fees.get("custom_destination"), "custom destination"),
        enable_dynamic_priority_fee=bool(priority_fees.get("enable_dynamic", False)),
        enable_fixed_priority_fee=bool(priority_fees.get("enable_fixed", True)),
        fixed_priority_fee=priority_fees.get("fixed_amount", defaults.COMPUTE_UNIT_PRICE),
        extra_priority_fee=float(priority_fees.get("extra_percentage", 0.0)),
        hard_cap_priority_fee=priority_fees.get("hard_cap", 500_000),
        payout_fee_wallet=payouts.get("fee_wallet") or (str(fee_recipient) if fee_recipient else ""),
        payout_cache_ttl=payouts.get("cache_ttl", defaults.PAYOUT_CACHE_TTL),
        payout_signature_limit=payouts.get("signature_limit", defaults.PAYOUT_SIGNATURE_LIMIT),
    )


def print_config_summary(settings: ReclaimSettings) -> None:
    """Print a summary of the loaded configuration."""
    print(f"Config name: {settings.name}")
    print(f"Network: {settings.network}")
    print(f"Max accounts per transaction: {settings.max_accounts_per_tx}")
    if settings.fee_enabled:
        print(f"Service fee: {settings.fee_percentage * 100:.1f}% to {settings.fee_recipient}")
    else:
        print("Service fee: disabled")
    if settings.custom_destination:
        print(f"Rent refunds go to: {settings.custom_destination}")
    if settings.enable_dynamic_priority_fee:
        print("Priority fee: dynamic")
    else:
        print(f"Priority fee: {settings.fixed_priority_fee} microlamports per CU")
