"""
Default settings for the rent reclaimer.

Every value here can be overridden from the YAML configuration loaded by
config_loader. The defaults are conservative enough to run against a public
RPC endpoint.
"""

# Network configuration
# "mainnet-beta", "devnet" or "testnet"; only used for explorer links
DEFAULT_NETWORK: str = "mainnet-beta"


# Scanning
# Closeable accounts kept in the working set after sorting by rent, largest first
MAX_ACCOUNTS_TO_PROCESS: int = 100
# Rent-exempt minimum of a 165 byte token account, used when the indexing API omits lamports
TOKEN_ACCOUNT_RENT_LAMPORTS: int = 2_039_280
SCAN_CACHE_TTL: int | float = 30  # Seconds a scan result is reused for the same wallet


# Transaction building
# Close instructions per transaction; stays well under the compute ceiling
MAX_ACCOUNTS_PER_TX: int = 10
COMPUTE_UNIT_LIMIT: int = 100_000  # Enough for a full batch of close instructions plus the fee transfer
COMPUTE_UNIT_PRICE: int = 50_000  # Microlamports per compute unit


# Service fee
# Fraction of reclaimed rent moved to the fee recipient (0.1 = 10%)
FEE_PERCENTAGE: float = 0.10
FEE_RECIPIENT: str = ""  # Empty string disables fee collection


# Payout history
PAYOUT_CACHE_TTL: int | float = 120  # Seconds
PAYOUT_SIGNATURE_LIMIT: int = 20


def validate_defaults() -> None:
    """Sanity-check the defaults above."""
    checks = [
        # (value, type, min_value, max_value, error_message)
        (MAX_ACCOUNTS_TO_PROCESS, int, 1, float("inf"), "MAX_ACCOUNTS_TO_PROCESS must be positive"),
        (MAX_ACCOUNTS_PER_TX, int, 1, 20, "MAX_ACCOUNTS_PER_TX must be between 1 and 20"),
        (COMPUTE_UNIT_LIMIT, int, 1, 1_400_000, "COMPUTE_UNIT_LIMIT must be between 1 and 1,400,000"),
        (COMPUTE_UNIT_PRICE, int, 0, float("inf"), "COMPUTE_UNIT_PRICE must be a non-negative integer"),
        (FEE_PERCENTAGE, float, 0, 1, "FEE_PERCENTAGE must be between 0 and 1"),
        (SCAN_CACHE_TTL, (int, float), 0, float("inf"), "SCAN_CACHE_TTL must be non-negative"),
        (PAYOUT_CACHE_TTL, (int, float), 0, float("inf"), "PAYOUT_CACHE_TTL must be non-negative"),
    ]

    for value, expected_type, min_val, max_val, error_msg in checks:
        if not isinstance(value, expected_type):
            raise ValueError(f"Type error: {error_msg}")
        if not (min_val <= value <= max_val):
            raise ValueError(f"Range error: {error_msg}")


# Validate defaults on import
validate_defaults()
