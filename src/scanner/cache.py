"""
Per-wallet cache of scan results.
"""

import time
from collections.abc import Callable

from solders.pubkey import Pubkey

from config import SCAN_CACHE_TTL
from interfaces.core import ScanResult


class ScanCache:
    """Keeps the latest ScanResult per wallet for ``ttl`` seconds.

    Entries are replaced whole, so a reader never sees a half-written result;
    while a rescan is running readers get the previous entry through peek().
    """

    def __init__(
        self,
        ttl: float = SCAN_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, ScanResult]] = {}

    def get(self, owner: Pubkey) -> ScanResult | None:
        """Return a fresh result for ``owner``, or None if absent or expired."""
        entry = self._entries.get(str(owner))
        if entry is None:
            return None
        stored_at, result = entry
        if self._clock() - stored_at > self.ttl:
            return None
        return result

    def peek(self, owner: Pubkey) -> ScanResult | None:
        """Return the last stored result regardless of age."""
        entry = self._entries.get(str(owner))
        return entry[1] if entry else None

    def put(self, owner: Pubkey, result: ScanResult) -> None:
        self._entries[str(owner)] = (self._clock(), result)

    def invalidate(self, owner: Pubkey | None = None) -> None:
        """Drop one wallet's entry, or everything when ``owner`` is None."""
        if owner is None:
            self._entries.clear()
        else:
            self._entries.pop(str(owner), None)
