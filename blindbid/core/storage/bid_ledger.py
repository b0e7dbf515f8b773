"""
Bid Ledger - the acting user's own bids and their reveal status.

Storage layout (per user address, lower-cased):

    bids:{user}                 JSON list of Bid records, insertion order
    revealed:{user}:{auction}   JSON list of ledger indices already revealed
    withdrawn:{user}:{auction}  "true" once the refund was withdrawn

Ordering invariant:
------------------
Bids are only ever appended. A bid's position in ``bids:{user}`` is its
ledger index, which is what callers select by when revealing. Each bid
also carries the contract slot it was committed into. Reordering or
pruning the list would point reveals at the wrong commitment, so this
class never does either; the only in-place change is the reveal marker.
"""

import json
from typing import List, Optional, Sequence, Set, Tuple

from blindbid.core.auction.models import Bid
from blindbid.core.errors import DuplicateBidSlot, MismatchedAuction, UnknownBid
from blindbid.core.storage.kv import KeyValueStore
from blindbid.crypto import normalize_address
from blindbid.utils.logger import get_logger

logger = get_logger("storage.ledger")


def bids_key(user: str) -> str:
    return f"bids:{normalize_address(user)}"


def revealed_key(user: str, auction: str) -> str:
    return f"revealed:{normalize_address(user)}:{normalize_address(auction)}"


def withdrawn_key(user: str, auction: str) -> str:
    return f"withdrawn:{normalize_address(user)}:{normalize_address(auction)}"


class BidLedger:
    """
    Persistent record of a user's committed bids.

    Bids are recorded only after the commit transaction is confirmed and
    marked revealed only after the reveal transaction is confirmed.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    # =========================================================================
    # Raw Access
    # =========================================================================

    def _load_bids(self, user: str) -> List[Bid]:
        raw = self.store.get(bids_key(user))
        if not raw:
            return []
        return [Bid.model_validate(item) for item in json.loads(raw)]

    def _save_bids(self, user: str, bids: List[Bid]) -> None:
        # revealed lives in its own key; the bids list stores committed state only
        payload = [b.model_dump(mode="json", exclude={"revealed"}) for b in bids]
        self.store.put(bids_key(user), json.dumps(payload))

    def revealed_indices(self, user: str, auction: str) -> Set[int]:
        """Ledger indices already revealed for (user, auction)."""
        raw = self.store.get(revealed_key(user, auction))
        return set(json.loads(raw)) if raw else set()

    # =========================================================================
    # Recording
    # =========================================================================

    def record(self, user: str, bid: Bid) -> int:
        """
        Append a confirmed bid.

        Args:
            user: Bidder address
            bid: The committed bid

        Returns:
            The bid's ledger index

        Raises:
            DuplicateBidSlot: if (user, auction, slot) is already recorded
        """
        bids = self._load_bids(user)
        auction = normalize_address(bid.auction_address)
        for existing in bids:
            if normalize_address(existing.auction_address) == auction and existing.slot == bid.slot:
                raise DuplicateBidSlot(
                    f"Slot {bid.slot.value} of auction {bid.auction_address} already recorded"
                )

        bids.append(bid.model_copy(update={"revealed": False}))
        self._save_bids(user, bids)

        index = len(bids) - 1
        logger.info(
            f"Recorded bid #{index} for {user[:10]}... on {bid.auction_address[:10]}... "
            f"(slot {bid.slot.value})"
        )
        return index

    def mark_revealed(self, user: str, auction: str, indices: Sequence[int]) -> None:
        """
        Mark ledger indices as revealed. Call only after confirmation.

        Raises:
            UnknownBid: index outside the ledger
            MismatchedAuction: index belongs to another auction
        """
        bids = self._load_bids(user)
        target = normalize_address(auction)
        for index in indices:
            if index < 0 or index >= len(bids):
                raise UnknownBid(f"No bid #{index} in ledger of {user}")
            if normalize_address(bids[index].auction_address) != target:
                raise MismatchedAuction(index, auction, bids[index].auction_address)

        revealed = self.revealed_indices(user, auction) | set(indices)
        self.store.put(revealed_key(user, auction), json.dumps(sorted(revealed)))
        logger.info(f"Marked bids {sorted(indices)} revealed on {auction[:10]}...")

    def mark_withdrawn(self, user: str, auction: str) -> None:
        self.store.put(withdrawn_key(user, auction), "true")

    def has_withdrawn(self, user: str, auction: str) -> bool:
        return self.store.get(withdrawn_key(user, auction)) == "true"

    # =========================================================================
    # Queries
    # =========================================================================

    def list_all(self, user: str) -> List[Bid]:
        """Every bid of ``user`` in insertion order, reveal status filled in."""
        bids = self._load_bids(user)
        revealed_cache = {}
        result = []
        for index, bid in enumerate(bids):
            auction = normalize_address(bid.auction_address)
            if auction not in revealed_cache:
                revealed_cache[auction] = self.revealed_indices(user, auction)
            result.append(bid.model_copy(update={"revealed": index in revealed_cache[auction]}))
        return result

    def indexed_for(self, user: str, auction: str) -> List[Tuple[int, Bid]]:
        """(ledger index, bid) pairs for one auction, in insertion order."""
        target = normalize_address(auction)
        return [
            (index, bid)
            for index, bid in enumerate(self.list_all(user))
            if normalize_address(bid.auction_address) == target
        ]

    def list_for(self, user: str, auction: str) -> List[Bid]:
        """Bids of ``user`` in ``auction``, in insertion (commit) order."""
        return [bid for _, bid in self.indexed_for(user, auction)]

    def get(self, user: str, index: int) -> Bid:
        bids = self.list_all(user)
        if index < 0 or index >= len(bids):
            raise UnknownBid(f"No bid #{index} in ledger of {user}")
        return bids[index]

    def has_participated(self, user: str, auction: str) -> bool:
        return bool(self.indexed_for(user, auction))

    def auctions_for(self, user: str) -> List[str]:
        """Distinct auctions the user bid in, ordered by first bid."""
        seen = []
        for bid in self._load_bids(user):
            auction = normalize_address(bid.auction_address)
            if auction not in seen:
                seen.append(auction)
        return seen

    def next_slot(self, user: str, auction: str) -> int:
        """Fallback slot for a new bid: one past the highest recorded."""
        slots = [bid.slot.value for bid in self.list_for(user, auction)]
        return max(slots) + 1 if slots else 0

    def pending_return(
        self,
        user: str,
        auction: str,
        highest_bidder: Optional[str] = None,
    ) -> int:
        """
        Deposit the user can expect to withdraw, in wei.

        Non-zero only once the user has revealed something, is not the
        highest bidder, and has not withdrawn yet. Sums the deposits of
        revealed bids.
        """
        if self.has_withdrawn(user, auction):
            return 0
        if highest_bidder and normalize_address(highest_bidder) == normalize_address(user):
            return 0
        revealed = [bid for bid in self.list_for(user, auction) if bid.revealed]
        return sum(bid.deposit for bid in revealed)

    # =========================================================================
    # Maintenance
    # =========================================================================

    def clear(self, user: str) -> None:
        """Explicit user-requested wipe of all of ``user``'s records."""
        for auction in self.auctions_for(user):
            self.store.delete(revealed_key(user, auction))
            self.store.delete(withdrawn_key(user, auction))
        self.store.delete(bids_key(user))
        logger.warning(f"Cleared bid ledger of {user}")
