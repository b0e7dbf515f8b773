"""
Auction phase derivation.

Phase is never stored. It is a pure function of wall-clock time, the
three auction timestamps and the contract's ``ended`` flag, and must be
recomputed on every read: cached timestamps go stale, "now" does not.

Decision order (first match wins):

1. ``ended`` flag set            -> ENDED
2. now >= reveal_end             -> ENDED (settlement may not be mined yet)
3. now >= bidding_end            -> REVEALING
4. now <  bidding_start          -> PENDING
5. otherwise                     -> BIDDING
"""

from enum import Enum
from typing import Optional


class AuctionPhase(str, Enum):
    """Stage of a blind auction."""
    PENDING = "pending"
    BIDDING = "bidding"
    REVEALING = "revealing"
    ENDED = "ended"

    def __str__(self) -> str:
        return self.value


def derive_phase(
    now: int,
    bidding_start: int,
    bidding_end: int,
    reveal_end: int,
    ended: bool = False,
) -> AuctionPhase:
    """
    Derive the auction phase at ``now``.

    Boundaries: ``now == bidding_start`` is BIDDING, ``now == bidding_end``
    is REVEALING and ``now == reveal_end`` is ENDED.

    Args:
        now: Current unix time in seconds
        bidding_start: Unix time bidding opens
        bidding_end: Unix time bidding closes
        reveal_end: Unix time the reveal window closes
        ended: Contract-reported settlement flag

    Returns:
        The current AuctionPhase
    """
    if ended:
        return AuctionPhase.ENDED
    if now >= reveal_end:
        return AuctionPhase.ENDED
    if now >= bidding_end:
        return AuctionPhase.REVEALING
    if now < bidding_start:
        return AuctionPhase.PENDING
    return AuctionPhase.BIDDING


def time_left(
    now: int,
    bidding_start: int,
    bidding_end: int,
    reveal_end: int,
    ended: bool = False,
) -> Optional[int]:
    """
    Seconds until the current phase ends.

    Returns None once the auction has ended.
    """
    phase = derive_phase(now, bidding_start, bidding_end, reveal_end, ended)
    if phase == AuctionPhase.PENDING:
        return bidding_start - now
    if phase == AuctionPhase.BIDDING:
        return bidding_end - now
    if phase == AuctionPhase.REVEALING:
        return reveal_end - now
    return None


def format_duration(seconds: int) -> str:
    """Render a duration as ``"{h}h {m}m {s}s"``."""
    seconds = max(0, int(seconds))
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours}h {minutes}m {secs}s"
