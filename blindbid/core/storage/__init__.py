"""
Persistent Storage Module.

Provides key-value backed persistence for:
- The user's bid ledger and reveal markers
- Snapshots of ended auctions
"""

from blindbid.core.storage.kv import KeyValueStore, MemoryStore
from blindbid.core.storage.sqlite_store import SQLiteStore
from blindbid.core.storage.bid_ledger import BidLedger
from blindbid.core.storage.ended_cache import EndedAuctionCache

__all__ = ["KeyValueStore", "MemoryStore", "SQLiteStore", "BidLedger", "EndedAuctionCache"]
