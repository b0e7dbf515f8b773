"""
Bidding Service - the confirmation-gated write workflow.

Ties commitments, the signer and the ledger together:

    place_bid   : validate -> check BIDDING -> commit -> send bid() -> confirm -> record
    reveal      : validate -> check REVEALING -> send reveal() -> confirm -> mark revealed
    withdraw    : send withdraw() -> confirm -> mark withdrawn
    end_auction : check reveal window closed -> send auctionEnd() -> confirm

Local state changes only after a confirmed receipt. Reverts and
timeouts propagate as ``WriteError`` with the ledger untouched.
"""

import time
from typing import Callable, List, Optional, Sequence

from blindbid.core.auction.commitment import create_commitment
from blindbid.core.auction.models import Auction, Bid, SlotIndex, commitment_hex
from blindbid.core.auction.phase import AuctionPhase
from blindbid.core.chain.reader import AuctionReader
from blindbid.core.chain.signer import (
    DEFAULT_CONFIRMATION_TIMEOUT,
    AuctionSigner,
    TxReceipt,
    submit_and_confirm,
)
from blindbid.core.errors import (
    DuplicateBidSlot,
    InputError,
    InvalidAddress,
    InvalidBidValue,
    WrongPhase,
)
from blindbid.core.reveal import RevealCoordinator
from blindbid.core.storage.bid_ledger import BidLedger
from blindbid.core.storage.ended_cache import EndedAuctionCache
from blindbid.utils.logger import get_logger
from blindbid.utils.validation import (
    validate_address,
    validate_bid_amounts,
    validate_indices,
    validate_secret,
)

logger = get_logger("bidding")


class BiddingService:
    """
    Submits bids, reveals, withdrawals and settlements for one signer.

    Attributes:
        reader: Read adapter for phase checks and slot counts
        ledger: The signer's bid ledger
        signer: External transaction signer
        cache: Optional ended-auction cache to invalidate after settlement
    """

    def __init__(
        self,
        reader: AuctionReader,
        ledger: BidLedger,
        signer: AuctionSigner,
        cache: Optional[EndedAuctionCache] = None,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        self.reader = reader
        self.ledger = ledger
        self.signer = signer
        self.cache = cache
        self.confirmation_timeout = confirmation_timeout
        self.coordinator = RevealCoordinator(ledger, signer, confirmation_timeout)
        self._clock = clock

    @property
    def user(self) -> str:
        return self.signer.account

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _check_address(address: str) -> None:
        valid, err = validate_address(address, "auction")
        if not valid:
            raise InvalidAddress(err)

    async def _chain_now(self) -> int:
        """Latest block time, falling back to the local clock."""
        try:
            return await self.reader.latest_timestamp()
        except Exception as e:
            logger.debug(f"Block timestamp unavailable, using local clock: {e}")
            return int(self._clock())

    async def _require_phase(self, auction_address: str, expected: AuctionPhase, operation: str) -> Auction:
        auction = await self.reader.fetch_auction(auction_address, include_result=False)
        phase = auction.phase_at(await self._chain_now())
        if phase != expected:
            raise WrongPhase(operation, phase.value, expected.value)
        return auction

    async def _slot_count(self, auction_address: str) -> Optional[int]:
        try:
            return await self.reader.bid_count(auction_address, self.user)
        except Exception as e:
            logger.warning(f"getBidCount failed for {auction_address}: {e}")
            return None

    # =========================================================================
    # Bidding
    # =========================================================================

    async def place_bid(
        self,
        auction_address: str,
        value: int,
        secret: str,
        deposit: int,
        fake: bool = False,
        min_price: int = 0,
    ) -> Bid:
        """
        Commit a blinded bid and record it once confirmed.

        Args:
            auction_address: Auction contract
            value: Bid amount in wei
            secret: User secret; keep it, it is needed to reveal
            deposit: Ether sent with the bid, in wei
            fake: Decoy bid that will not count when revealed
            min_price: Auction minimum price in wei, if known

        Returns:
            The recorded Bid

        Raises:
            InvalidBidValue / InvalidAddress / InputError: bad input
            WrongPhase: auction not in BIDDING
            WriteRejected / WriteReverted / WriteTimedOut: nothing recorded
        """
        self._check_address(auction_address)
        valid, err = validate_bid_amounts(value, deposit, min_price)
        if not valid:
            raise InvalidBidValue(err)
        valid, err = validate_secret(secret)
        if not valid:
            raise InputError(err)

        commitment = create_commitment(value, fake, secret)

        await self._require_phase(auction_address, AuctionPhase.BIDDING, "bid")

        slot = await self._slot_count(auction_address)
        if slot is None:
            slot = self.ledger.next_slot(self.user, auction_address)

        receipt = await submit_and_confirm(
            self.signer,
            auction_address,
            "bid",
            (commitment,),
            value=deposit,
            timeout=self.confirmation_timeout,
        )

        bid = Bid(
            auction_address=auction_address,
            value=value,
            fake=fake,
            secret=secret,
            commitment=commitment_hex(commitment),
            deposit=deposit,
            slot=SlotIndex(value=slot),
            submitted_at=self._clock(),
            tx_hash=receipt.tx_hash,
        )
        try:
            self.ledger.record(self.user, bid)
        except DuplicateBidSlot as e:
            # confirmed on chain; the ledger holds the only copy of the secret
            free = self.ledger.next_slot(self.user, auction_address)
            logger.warning(f"{e}; recording confirmed bid {receipt.tx_hash} at slot {free}")
            bid = bid.model_copy(update={"slot": SlotIndex(value=free)})
            self.ledger.record(self.user, bid)
        return bid

    # =========================================================================
    # Reveal
    # =========================================================================

    async def reveal(self, auction_address: str, selected_indices: Sequence[int]) -> TxReceipt:
        """
        Reveal selected ledger bids during the reveal window.

        Raises:
            UnknownBid / MismatchedAuction / AlreadyRevealed: bad selection
            WrongPhase: auction not in REVEALING
            WriteRejected / WriteReverted / WriteTimedOut: ledger untouched
        """
        self._check_address(auction_address)
        valid, err = validate_indices(list(selected_indices))
        if not valid:
            raise InputError(err)

        # Validate the selection before touching the network
        self.coordinator.prepare_reveal(self.user, auction_address, selected_indices)

        await self._require_phase(auction_address, AuctionPhase.REVEALING, "reveal")

        slot_count = await self._slot_count(auction_address)
        payload = self.coordinator.prepare_reveal(
            self.user, auction_address, selected_indices, slot_count
        )
        return await self.coordinator.submit(self.user, payload)

    def revealable(self, auction_address: str) -> List[int]:
        """Ledger indices of this user's unrevealed bids in an auction."""
        return [i for i, _ in self.coordinator.unrevealed(self.user, auction_address)]

    # =========================================================================
    # Settlement
    # =========================================================================

    async def withdraw(self, auction_address: str) -> TxReceipt:
        """Withdraw pending returns and remember that it was done."""
        self._check_address(auction_address)
        receipt = await submit_and_confirm(
            self.signer, auction_address, "withdraw", timeout=self.confirmation_timeout
        )
        self.ledger.mark_withdrawn(self.user, auction_address)
        logger.info(f"Withdrew pending returns from {auction_address}")
        return receipt

    async def end_auction(self, auction_address: str) -> TxReceipt:
        """
        Settle an auction whose reveal window has closed.

        Raises:
            WrongPhase: reveal window still open, or already settled
        """
        self._check_address(auction_address)
        auction = await self._require_phase(auction_address, AuctionPhase.ENDED, "end auction")
        if auction.ended:
            raise WrongPhase("end auction", "settled", "unsettled")

        receipt = await submit_and_confirm(
            self.signer, auction_address, "auctionEnd", timeout=self.confirmation_timeout
        )
        if self.cache is not None:
            # Cached snapshot predates the settlement flag
            self.cache.invalidate(auction_address)
        logger.info(f"Auction {auction_address} settled")
        return receipt
