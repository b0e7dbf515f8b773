"""
Auction data model.

Persisted records (``Bid``, ``CacheEntry``) are pydantic models so they
round-trip through the key-value store as JSON. Integer fields hold wei
and unix seconds and may exceed 2**53, so they are kept as Python ints
end to end and never pass through floats.
"""

import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from blindbid.core.auction.phase import AuctionPhase, derive_phase, time_left
from blindbid.crypto import bytes_to_hex, hex_to_bytes


DEFAULT_AUCTION_NAME = "Untitled auction"
DEFAULT_AUCTION_DESCRIPTION = "No description"


class SlotIndex(BaseModel):
    """
    Position of a bid in the contract's per-bidder bid array.

    Assigned by the contract at commit time (``getBidCount`` before the
    ``bid`` call). Reveal arrays are laid out by this value, so it is
    carried explicitly instead of being inferred from list positions.
    """
    model_config = ConfigDict(frozen=True)

    value: int = Field(ge=0)

    def __int__(self) -> int:
        return self.value

    def __index__(self) -> int:
        return self.value


class AuctionMetadata(BaseModel):
    """Display metadata attached to an auction. Opaque to this core."""
    name: str = DEFAULT_AUCTION_NAME
    description: str = DEFAULT_AUCTION_DESCRIPTION
    image_ref: str = ""
    min_price: str = "0"


class Auction(BaseModel):
    """
    On-chain state of one auction contract.

    ``phase`` is not a field; call :meth:`phase_at`.
    """
    address: str
    beneficiary: str
    bidding_start: int
    bidding_end: int
    reveal_end: int
    ended: bool = False
    metadata: AuctionMetadata = Field(default_factory=AuctionMetadata)
    highest_bid: Optional[int] = None
    highest_bidder: Optional[str] = None

    @model_validator(mode="after")
    def _check_timeline(self) -> "Auction":
        if not (self.bidding_start <= self.bidding_end <= self.reveal_end):
            raise ValueError(
                f"Auction {self.address} timeline out of order: "
                f"{self.bidding_start} / {self.bidding_end} / {self.reveal_end}"
            )
        return self

    def phase_at(self, now: Optional[int] = None) -> AuctionPhase:
        """Phase at ``now`` (default: current wall clock)."""
        if now is None:
            now = int(time.time())
        return derive_phase(now, self.bidding_start, self.bidding_end, self.reveal_end, self.ended)

    def is_terminal(self, now: Optional[int] = None) -> bool:
        return self.phase_at(now) == AuctionPhase.ENDED

    def time_left(self, now: Optional[int] = None) -> Optional[int]:
        """Seconds until the current phase ends, None once ended."""
        if now is None:
            now = int(time.time())
        return time_left(now, self.bidding_start, self.bidding_end, self.reveal_end, self.ended)


class Bid(BaseModel):
    """
    A bid committed by the acting user.

    Never derivable from chain data: the whole point of blinding is that
    only this record can open the commitment.
    """
    auction_address: str
    value: int = Field(ge=0)
    fake: bool = False
    secret: str
    commitment: str  # 0x-prefixed hex
    deposit: int = Field(ge=0)
    slot: SlotIndex
    submitted_at: float = Field(default_factory=time.time)
    tx_hash: Optional[str] = None
    revealed: bool = False

    @field_validator("commitment")
    @classmethod
    def _check_commitment(cls, v: str) -> str:
        if len(hex_to_bytes(v)) != 32:
            raise ValueError("commitment must be 32 bytes")
        return v.lower()

    @property
    def commitment_bytes(self) -> bytes:
        return hex_to_bytes(self.commitment)


class CacheEntry(BaseModel):
    """A terminal auction snapshot plus the time it was cached."""
    auction: Auction
    cached_at: float

    def age(self, now: Optional[float] = None) -> float:
        if now is None:
            now = time.time()
        return now - self.cached_at


def commitment_hex(commitment: bytes) -> str:
    return bytes_to_hex(commitment)
