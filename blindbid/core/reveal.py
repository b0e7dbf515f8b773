"""
Reveal Coordinator - assemble and submit reveals for a user's bids.

The contract's ``reveal(values, fakes, secrets)`` walks the caller's
bid array slot by slot, so the three arrays must be as long as that
array and each opened bid must sit at the slot it was committed into.
Slots the user is not revealing now get a placeholder triple that can
never match a commitment; the contract skips them and they stay
revealable later.

Ledger rule:
-----------
Bids are marked revealed only after the reveal transaction is
confirmed. Marking early would hide a still-unrevealed bid, whose
deposit is forfeited if the reveal window closes, from the user.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from blindbid.core.auction.commitment import DUMMY_SECRET, hash_secret
from blindbid.core.auction.models import Bid
from blindbid.core.chain.signer import (
    DEFAULT_CONFIRMATION_TIMEOUT,
    AuctionSigner,
    TxReceipt,
    submit_and_confirm,
)
from blindbid.core.errors import (
    AlreadyRevealed,
    InputError,
    MismatchedAuction,
    UnknownBid,
)
from blindbid.core.storage.bid_ledger import BidLedger
from blindbid.crypto import bytes_to_hex, normalize_address
from blindbid.utils.logger import get_logger

logger = get_logger("reveal")


PLACEHOLDER_VALUE = 0
PLACEHOLDER_FAKE = True


@dataclass
class RevealPayload:
    """Arguments for one ``reveal`` call plus the ledger indices it opens."""
    auction: str
    values: List[int] = field(default_factory=list)
    fakes: List[bool] = field(default_factory=list)
    secret_digests: List[bytes] = field(default_factory=list)
    indices: List[int] = field(default_factory=list)

    def as_args(self) -> Tuple[List[int], List[bool], List[bytes]]:
        return self.values, self.fakes, self.secret_digests

    def __len__(self) -> int:
        return len(self.values)


class RevealCoordinator:
    """
    Builds reveal payloads from the bid ledger and submits them.

    Attributes:
        ledger: The user's bid ledger
        signer: External signer used by :meth:`reveal`
        confirmation_timeout: Seconds to wait for the reveal receipt
    """

    def __init__(
        self,
        ledger: BidLedger,
        signer: Optional[AuctionSigner] = None,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
    ):
        self.ledger = ledger
        self.signer = signer
        self.confirmation_timeout = confirmation_timeout

    def unrevealed(self, user: str, auction: str) -> List[Tuple[int, Bid]]:
        """(ledger index, bid) pairs still waiting to be revealed."""
        return [(i, bid) for i, bid in self.ledger.indexed_for(user, auction) if not bid.revealed]

    def prepare_reveal(
        self,
        user: str,
        auction: str,
        selected_indices: Sequence[int],
        slot_count: Optional[int] = None,
    ) -> RevealPayload:
        """
        Build reveal arguments for the selected ledger indices.

        Args:
            user: Bidder address
            auction: Auction the reveal is sent to
            selected_indices: Ledger indices (see ``BidLedger.list_all``)
            slot_count: The user's on-chain bid count. Defaults to one
                past the highest slot the ledger knows for this auction.

        Returns:
            RevealPayload with arrays laid out by contract slot

        Raises:
            UnknownBid: index outside the ledger or slot beyond slot_count
            MismatchedAuction: a selected bid belongs to another auction
            AlreadyRevealed: a selected bid was already revealed
        """
        indices = list(dict.fromkeys(selected_indices))
        if not indices:
            raise InputError("No bids selected for reveal")

        all_bids = self.ledger.list_all(user)
        target = normalize_address(auction)

        for index in indices:
            if index < 0 or index >= len(all_bids):
                raise UnknownBid(f"No bid #{index} in ledger of {user}")
            bid = all_bids[index]
            if normalize_address(bid.auction_address) != target:
                raise MismatchedAuction(index, auction, bid.auction_address)
            if bid.revealed:
                raise AlreadyRevealed(index)

        if slot_count is None:
            known_slots = [
                b.slot.value for b in all_bids
                if normalize_address(b.auction_address) == target
            ]
            slot_count = max(known_slots) + 1

        placeholder = hash_secret(DUMMY_SECRET)
        payload = RevealPayload(
            auction=auction,
            values=[PLACEHOLDER_VALUE] * slot_count,
            fakes=[PLACEHOLDER_FAKE] * slot_count,
            secret_digests=[placeholder] * slot_count,
        )

        for index in indices:
            bid = all_bids[index]
            slot = bid.slot.value
            if slot >= slot_count:
                raise UnknownBid(
                    f"Bid #{index} is in slot {slot} but the contract holds {slot_count} bid(s)"
                )
            payload.values[slot] = bid.value
            payload.fakes[slot] = bid.fake
            payload.secret_digests[slot] = hash_secret(bid.secret)
            payload.indices.append(index)

        logger.debug(
            f"Reveal payload for {auction[:10]}...: {len(indices)} of {slot_count} slot(s), "
            f"digests {[bytes_to_hex(d)[:10] for d in payload.secret_digests]}"
        )
        return payload

    async def submit(self, user: str, payload: RevealPayload) -> TxReceipt:
        """
        Send a prepared payload and mark it revealed once confirmed.

        Raises:
            WriteRejected / WriteReverted / WriteTimedOut: ledger untouched
        """
        if self.signer is None:
            raise RuntimeError("RevealCoordinator has no signer")

        receipt = await submit_and_confirm(
            self.signer,
            payload.auction,
            "reveal",
            payload.as_args(),
            timeout=self.confirmation_timeout,
        )
        self.ledger.mark_revealed(user, payload.auction, payload.indices)
        logger.info(f"Revealed bids {payload.indices} on {payload.auction}")
        return receipt

    async def reveal(
        self,
        user: str,
        auction: str,
        selected_indices: Sequence[int],
        slot_count: Optional[int] = None,
    ) -> TxReceipt:
        """Prepare, submit and confirm a reveal in one step."""
        payload = self.prepare_reveal(user, auction, selected_indices, slot_count)
        return await self.submit(user, payload)
