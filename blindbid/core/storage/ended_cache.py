"""
Ended-auction cache.

Terminal auctions are immutable on-chain, so their snapshots can be
served locally instead of re-reading five or more contract fields per
address over a rate-limited endpoint. Entries expire after a fixed
freshness window (age-based, not size-based) and are refetched.

Only auctions whose phase is ENDED are admitted. A non-terminal
snapshot still changes and caching it would serve stale state.
"""

import time
from typing import Callable, List, Optional

from pydantic import ValidationError

from blindbid.core.auction.models import Auction, CacheEntry
from blindbid.core.auction.phase import AuctionPhase
from blindbid.core.errors import CacheAdmissionError
from blindbid.core.storage.kv import KeyValueStore
from blindbid.crypto import normalize_address
from blindbid.utils.logger import get_logger

logger = get_logger("storage.cache")


CACHE_PREFIX = "endedAuctionCache:"
DEFAULT_FRESHNESS_SECONDS = 7 * 24 * 60 * 60.0
DEFAULT_MAX_ITEMS = 200


class EndedAuctionCache:
    """
    Cache of terminal auction snapshots keyed by auction address.

    Attributes:
        store: Backing key-value store
        freshness_seconds: Maximum age of a usable entry
        max_items: Soft cap enforced by :meth:`sweep`
    """

    def __init__(
        self,
        store: KeyValueStore,
        freshness_seconds: float = DEFAULT_FRESHNESS_SECONDS,
        max_items: int = DEFAULT_MAX_ITEMS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.freshness_seconds = freshness_seconds
        self.max_items = max_items
        self._clock = clock

    @staticmethod
    def _key(address: str) -> str:
        return f"{CACHE_PREFIX}{normalize_address(address)}"

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, address: str) -> Optional[CacheEntry]:
        """Cached entry for ``address`` regardless of age, or None."""
        key = self._key(address)
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Dropping unreadable cache entry {key}: {e.error_count()} error(s)")
            self.store.delete(key)
            return None

    def is_fresh(self, cached_at: Optional[float], now: Optional[float] = None) -> bool:
        """Whether an entry cached at ``cached_at`` is still within the window."""
        if not cached_at:
            return False
        if now is None:
            now = self._clock()
        return now - cached_at < self.freshness_seconds

    def get_fresh(self, address: str) -> Optional[CacheEntry]:
        """Cached entry only if it is still fresh."""
        entry = self.get(address)
        if entry is None or not self.is_fresh(entry.cached_at):
            return None
        return entry

    def entries(self) -> List[CacheEntry]:
        """All fresh entries, most recently cached first."""
        now = self._clock()
        result = []
        for key in self.store.keys(CACHE_PREFIX):
            entry = self.get(key[len(CACHE_PREFIX):])
            if entry is not None and self.is_fresh(entry.cached_at, now):
                result.append(entry)
        result.sort(key=lambda e: e.cached_at, reverse=True)
        return result

    # =========================================================================
    # Writes
    # =========================================================================

    def put(self, auction: Auction, now: Optional[float] = None) -> CacheEntry:
        """
        Cache a terminal auction snapshot.

        Raises:
            CacheAdmissionError: if the auction is not ENDED at ``now``
        """
        if now is None:
            now = self._clock()

        phase = auction.phase_at(int(now))
        if phase != AuctionPhase.ENDED:
            raise CacheAdmissionError(
                f"Refusing to cache auction {auction.address} in phase {phase}"
            )

        entry = CacheEntry(auction=auction, cached_at=now)
        self.store.put(self._key(auction.address), entry.model_dump_json())
        logger.debug(f"Cached ended auction {auction.address}")

        self.sweep(now)
        return entry

    def sweep(self, now: Optional[float] = None) -> int:
        """
        Drop stale entries and trim to the newest ``max_items``.

        Returns:
            Number of entries removed
        """
        if now is None:
            now = self._clock()

        live = []
        removed = 0
        for key in self.store.keys(CACHE_PREFIX):
            entry = self.get(key[len(CACHE_PREFIX):])
            if entry is None:
                removed += 1
                continue
            if not self.is_fresh(entry.cached_at, now):
                self.store.delete(key)
                removed += 1
                continue
            live.append((entry.cached_at, key))

        if len(live) > self.max_items:
            live.sort(reverse=True)
            for _, key in live[self.max_items:]:
                self.store.delete(key)
                removed += 1
            logger.info(f"Cache trimmed to newest {self.max_items} entries")

        return removed

    def invalidate(self, address: str) -> None:
        self.store.delete(self._key(address))

    def clear_all(self) -> int:
        """
        Remove every cached auction, forcing a full refetch.

        Returns:
            Number of entries removed
        """
        keys = list(self.store.keys(CACHE_PREFIX))
        for key in keys:
            self.store.delete(key)
        logger.info(f"Cleared {len(keys)} cached auction(s)")
        return len(keys)
