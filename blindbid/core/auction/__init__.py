"""
BlindBid Auction Module.

This module provides the pure parts of the blind auction protocol:
- Blinded-bid commitments
- Phase derivation
- Auction and bid records
"""

from blindbid.core.auction.commitment import (
    DUMMY_SECRET,
    PACKED_BID_SIZE,
    check_bid_value,
    commitment_matches,
    create_commitment,
    hash_secret,
    pack_bid,
)

from blindbid.core.auction.phase import (
    AuctionPhase,
    derive_phase,
    format_duration,
    time_left,
)

from blindbid.core.auction.models import (
    Auction,
    AuctionMetadata,
    Bid,
    CacheEntry,
    SlotIndex,
    commitment_hex,
)

__all__ = [
    # Commitments
    "DUMMY_SECRET",
    "PACKED_BID_SIZE",
    "check_bid_value",
    "commitment_matches",
    "create_commitment",
    "hash_secret",
    "pack_bid",
    # Phases
    "AuctionPhase",
    "derive_phase",
    "format_duration",
    "time_left",
    # Records
    "Auction",
    "AuctionMetadata",
    "Bid",
    "CacheEntry",
    "SlotIndex",
    "commitment_hex",
]
