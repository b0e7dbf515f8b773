"""
Auction Reader - single-auction read adapter with bounded retry.

Wraps the external read interface (a ``ContractReader``) and turns the
handful of view calls an auction needs into one ``Auction`` record.

Retry policy:
------------
Attempt 1 runs immediately. Before attempt k (k >= 2) the reader waits
``backoff_base * 2^(k-1)`` seconds, i.e. 2s, 4s, 8s, 16s at the default
base. Rate-limit errors and every other error share this policy; the
rate-limit classification only feeds logs and ``ReadOutcome``. After
the last attempt the failure is returned, never raised, so callers
batching many addresses can continue.
"""

import asyncio
import json
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from blindbid.core.auction.models import (
    DEFAULT_AUCTION_DESCRIPTION,
    DEFAULT_AUCTION_NAME,
    Auction,
    AuctionMetadata,
)
from blindbid.core.auction.phase import AuctionPhase, derive_phase
from blindbid.core.chain.abi import AUCTION_FACTORY_ABI, AUCTION_NFT_ABI, BLIND_AUCTION_ABI
from blindbid.core.errors import TransientReadError, is_rate_limit_error
from blindbid.utils.logger import get_logger

logger = get_logger("chain.reader")


DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BACKOFF_BASE = 1.0
DEFAULT_IPFS_GATEWAY = "https://ipfs.io/ipfs/"
ZERO_ADDRESS = "0x" + "0" * 40
WEI_PER_ETHER = Decimal(10) ** 18

Sleep = Callable[[float], Awaitable[None]]


class ContractReader(Protocol):
    """Read-only blockchain interface consumed by this core."""

    async def read_contract(
        self,
        address: str,
        abi: List[Dict[str, Any]],
        function_name: str,
        args: Sequence[Any] = (),
    ) -> Any:
        ...

    async def get_events(
        self,
        address: str,
        abi: List[Dict[str, Any]],
        event_name: str,
        argument_filters: Optional[Dict[str, Any]] = None,
        from_block: int = 0,
    ) -> List[Dict[str, Any]]:
        """Decoded logs, each a dict with at least an ``args`` mapping."""
        ...

    async def latest_timestamp(self) -> int:
        ...


@dataclass
class ReadOutcome:
    """Result of one address fetch including its retry history."""
    address: str
    auction: Optional[Auction] = None
    attempts: int = 0
    error: Optional[TransientReadError] = None

    @property
    def ok(self) -> bool:
        return self.auction is not None

    @property
    def retried(self) -> bool:
        return self.attempts > 1


class AuctionReader:
    """
    Reads auction state from chain, one address at a time.

    Attributes:
        client: The external read interface
        factory_address: Auction factory used for discovery and event metadata
        max_attempts: Retry cap per fetch
        backoff_base: Seconds multiplied by 2^attempt between attempts
    """

    def __init__(
        self,
        client: ContractReader,
        factory_address: Optional[str] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        ipfs_gateway: str = DEFAULT_IPFS_GATEWAY,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client = client
        self.factory_address = factory_address
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.ipfs_gateway = ipfs_gateway
        self._sleep = sleep
        self._clock = clock

    def backoff_delay(self, attempt: int) -> float:
        """Wait before ``attempt`` (1-based). Attempt 1 never waits."""
        if attempt <= 1:
            return 0.0
        return self.backoff_base * (2 ** (attempt - 1))

    # =========================================================================
    # Single Read
    # =========================================================================

    async def _read(self, address: str, function_name: str, args: Sequence[Any] = ()) -> Any:
        return await self.client.read_contract(address, BLIND_AUCTION_ABI, function_name, args)

    async def read_auction(self, address: str, include_result: Optional[bool] = None) -> Auction:
        """
        One attempt at reading an auction. Raises on any RPC failure.

        Args:
            address: Auction contract address
            include_result: Also read highestBid / highestBidder. None reads
                them only when the auction is already ended, so terminal
                snapshots are complete before they are cached.
        """
        beneficiary, bidding_start, bidding_end, reveal_end, ended = await asyncio.gather(
            self._read(address, "beneficiary"),
            self._read(address, "biddingStart"),
            self._read(address, "biddingEnd"),
            self._read(address, "revealEnd"),
            self._read(address, "ended"),
        )

        if include_result is None:
            phase = derive_phase(
                int(self._clock()), int(bidding_start), int(bidding_end), int(reveal_end), bool(ended)
            )
            include_result = phase == AuctionPhase.ENDED

        highest_bid = highest_bidder = None
        if include_result:
            highest_bid, highest_bidder = await asyncio.gather(
                self._read(address, "highestBid"),
                self._read(address, "highestBidder"),
            )
            highest_bid = int(highest_bid)

        metadata = await self.read_metadata(address)

        return Auction(
            address=address,
            beneficiary=beneficiary,
            bidding_start=int(bidding_start),
            bidding_end=int(bidding_end),
            reveal_end=int(reveal_end),
            ended=bool(ended),
            metadata=metadata,
            highest_bid=highest_bid,
            highest_bidder=highest_bidder,
        )

    async def fetch(
        self,
        address: str,
        include_result: Optional[bool] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> ReadOutcome:
        """
        Read an auction with bounded exponential-backoff retry.

        Never raises for RPC failures; check ``ReadOutcome.ok``.

        Args:
            address: Auction contract address
            include_result: See :meth:`read_auction`
            should_stop: Checked before each retry sleep; True abandons the fetch
        """
        outcome = ReadOutcome(address=address)
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                if should_stop is not None and should_stop():
                    logger.info(f"Fetch of {address} abandoned after {outcome.attempts} attempt(s)")
                    break
                delay = self.backoff_delay(attempt)
                logger.warning(
                    f"Retrying auction {address} in {delay:g}s "
                    f"({attempt}/{self.max_attempts})"
                )
                await self._sleep(delay)

            outcome.attempts = attempt
            try:
                outcome.auction = await self.read_auction(address, include_result)
                return outcome
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                kind = "rate limited" if is_rate_limit_error(e) else "read failed"
                logger.debug(f"Auction {address} {kind} on attempt {attempt}: {e}")

        outcome.error = TransientReadError(address, outcome.attempts, last_error)
        logger.error(str(outcome.error))
        return outcome

    async def fetch_auction(self, address: str, include_result: Optional[bool] = None) -> Auction:
        """Like :meth:`fetch` but raises ``TransientReadError`` on failure."""
        outcome = await self.fetch(address, include_result)
        if outcome.auction is None:
            raise outcome.error
        return outcome.auction

    # =========================================================================
    # Metadata
    # =========================================================================

    def _image_url(self, image_ref: str) -> str:
        if not image_ref:
            return ""
        if image_ref.startswith("http"):
            return image_ref
        return f"{self.ipfs_gateway}{image_ref}"

    async def read_metadata(self, address: str) -> AuctionMetadata:
        """
        Best-effort display metadata.

        NFT auctions read the token's on-chain metadata; otherwise the
        factory's ``AuctionCreated`` log carries a JSON string. Any
        failure falls back to defaults rather than failing the fetch.
        """
        metadata = AuctionMetadata()

        try:
            if await self._read(address, "isNFTAuction"):
                token_id, nft_contract = await asyncio.gather(
                    self._read(address, "nftTokenId"),
                    self._read(address, "nftContract"),
                )
                if nft_contract and nft_contract != ZERO_ADDRESS and int(token_id) > 0:
                    name, description, image_hash, min_price_wei, *_ = await self.client.read_contract(
                        nft_contract, AUCTION_NFT_ABI, "nftMetadata", (int(token_id),)
                    )
                    min_price = Decimal(int(min_price_wei or 0)) / WEI_PER_ETHER
                    metadata = AuctionMetadata(
                        name=name or f"NFT #{int(token_id)}",
                        description=description or DEFAULT_AUCTION_DESCRIPTION,
                        image_ref=self._image_url(image_hash),
                        min_price=format(min_price.normalize(), "f"),
                    )
        except Exception as e:
            logger.debug(f"NFT metadata unavailable for {address}: {e}")

        if metadata.name == DEFAULT_AUCTION_NAME and self.factory_address:
            try:
                metadata = await self._metadata_from_event(address) or metadata
            except Exception as e:
                logger.warning(f"Creation event metadata unavailable for {address}: {e}")

        return metadata

    async def _metadata_from_event(self, address: str) -> Optional[AuctionMetadata]:
        logs = await self.client.get_events(
            self.factory_address,
            AUCTION_FACTORY_ABI,
            "AuctionCreated",
            {"auctionAddress": address},
            0,
        )
        if not logs:
            return None

        raw = logs[0].get("args", {}).get("metadata")
        if not raw:
            return None
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Unparseable metadata string in AuctionCreated for {address}")
            return None

        return AuctionMetadata(
            name=parsed.get("name") or DEFAULT_AUCTION_NAME,
            description=parsed.get("description") or DEFAULT_AUCTION_DESCRIPTION,
            image_ref=self._image_url(parsed.get("image") or parsed.get("imageHash") or ""),
            min_price=str(parsed.get("minPrice") or "0"),
        )

    # =========================================================================
    # Other Reads
    # =========================================================================

    async def bid_count(self, auction: str, bidder: str) -> int:
        """Number of bids ``bidder`` has committed in ``auction``."""
        return int(await self._read(auction, "getBidCount", (bidder,)))

    async def list_auctions(self, factory: Optional[str] = None) -> List[str]:
        """All auction addresses known to the factory."""
        factory = factory or self.factory_address
        if not factory:
            raise ValueError("No factory address configured")
        count = int(await self.client.read_contract(factory, AUCTION_FACTORY_ABI, "getAuctionCount"))
        if count == 0:
            return []
        addresses = await self.client.read_contract(
            factory, AUCTION_FACTORY_ABI, "getAuctions", (0, count)
        )
        return list(addresses)

    async def latest_timestamp(self) -> int:
        return int(await self.client.latest_timestamp())
