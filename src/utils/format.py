"""
Display helpers for addresses, amounts and explorer links.
"""

from solders.pubkey import Pubkey

from core.pubkeys import LAMPORTS_PER_SOL


def lamports_to_sol(lamports: int) -> float:
    return lamports / LAMPORTS_PER_SOL


def format_sol(lamports: int, decimals: int = 4) -> str:
    """Format lamports as SOL, e.g. 2039280 -> "0.0020"."""
    return f"{lamports_to_sol(lamports):.{decimals}f}"


def shorten_address(address: str | Pubkey, chars: int = 4) -> str:
    """Shorten an address for display: "7xKX...sAsU"."""
    value = str(address)
    if len(value) <= chars * 2:
        return value
    return f"{value[:chars]}...{value[-chars:]}"


def is_valid_pubkey(address: str) -> bool:
    try:
        Pubkey.from_string(address)
        return True
    except ValueError:
        return False


def get_explorer_url(signature: str, kind: str = "tx", network: str = "mainnet-beta") -> str:
    """Build a Solana Explorer link for a transaction or an address."""
    cluster = "" if network == "mainnet-beta" else f"?cluster={network}"
    return f"https://explorer.solana.com/{kind}/{signature}{cluster}"
