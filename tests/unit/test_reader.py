"""
Unit tests for the single-auction reader and its retry policy.
"""

import json

import pytest

from blindbid.core.chain import AuctionReader
from blindbid.core.errors import TransientReadError

from conftest import FakeChain, address


FACTORY = address(0xFAC)


def _reader(chain, sleeps, **kwargs):
    kwargs.setdefault("clock", lambda: chain.now)
    return AuctionReader(chain, sleep=sleeps, **kwargs)


# =============================================================================
# Retry
# =============================================================================


class TestRetry:
    """Tests for bounded exponential backoff."""

    def test_backoff_schedule(self, chain, sleeps):
        reader = _reader(chain, sleeps)
        assert [reader.backoff_delay(k) for k in range(1, 6)] == [0.0, 2.0, 4.0, 8.0, 16.0]

    @pytest.mark.asyncio
    async def test_exhausts_attempts(self, chain, sleeps):
        addr = chain.add_auction(address(1))
        chain.fail(addr, times=100)
        reader = _reader(chain, sleeps, max_attempts=4)

        outcome = await reader.fetch(addr)

        assert not outcome.ok
        assert outcome.attempts == 4
        assert sleeps.delays == [2.0, 4.0, 8.0]
        assert isinstance(outcome.error, TransientReadError)
        assert outcome.error.rate_limited
        assert chain.attempts[addr] == 4

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, chain, sleeps):
        addr = chain.add_auction(address(1))
        chain.fail(addr, times=2, message="connection reset")
        reader = _reader(chain, sleeps)

        outcome = await reader.fetch(addr)

        assert outcome.ok
        assert outcome.retried
        assert outcome.attempts == 3
        assert sleeps.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_first_success_does_not_sleep(self, chain, sleeps):
        addr = chain.add_auction(address(1))
        outcome = await _reader(chain, sleeps).fetch(addr)
        assert outcome.ok and not outcome.retried
        assert sleeps.delays == []

    @pytest.mark.asyncio
    async def test_should_stop_abandons_before_retry_sleep(self, chain, sleeps):
        addr = chain.add_auction(address(1))
        chain.fail(addr, times=100)

        outcome = await _reader(chain, sleeps).fetch(addr, should_stop=lambda: True)

        assert not outcome.ok
        assert outcome.attempts == 1
        assert sleeps.delays == []

    @pytest.mark.asyncio
    async def test_fetch_auction_raises(self, chain, sleeps):
        addr = chain.add_auction(address(1))
        chain.fail(addr, times=100)
        with pytest.raises(TransientReadError):
            await _reader(chain, sleeps, max_attempts=2).fetch_auction(addr)

    def test_max_attempts_must_be_positive(self, chain, sleeps):
        with pytest.raises(ValueError):
            _reader(chain, sleeps, max_attempts=0)


# =============================================================================
# Auction Fields
# =============================================================================


class TestReadAuction:
    """Tests for assembling Auction records."""

    @pytest.mark.asyncio
    async def test_live_auction_skips_result(self, sleeps):
        chain = FakeChain(now=150)
        addr = chain.add_auction(address(1), highest_bid=9, highest_bidder=address(2))

        auction = await _reader(chain, sleeps).fetch_auction(addr)

        assert auction.bidding_start == 100
        assert auction.reveal_end == 300
        assert auction.highest_bid is None
        assert auction.highest_bidder is None

    @pytest.mark.asyncio
    async def test_ended_auction_includes_result(self, chain, sleeps):
        addr = chain.add_auction(address(1), highest_bid=9, highest_bidder=address(2))

        auction = await _reader(chain, sleeps).fetch_auction(addr)

        assert auction.highest_bid == 9
        assert auction.highest_bidder == address(2)

    @pytest.mark.asyncio
    async def test_include_result_override(self, chain, sleeps):
        addr = chain.add_auction(address(1), highest_bid=9, highest_bidder=address(2))
        auction = await _reader(chain, sleeps).fetch_auction(addr, include_result=False)
        assert auction.highest_bid is None

    @pytest.mark.asyncio
    async def test_big_timestamps_stay_exact(self, sleeps):
        big = 2**60 + 1
        chain = FakeChain(now=0)
        addr = chain.add_auction(address(1), start=big, bidding_end=big + 1, reveal_end=big + 2)

        auction = await _reader(chain, sleeps).fetch_auction(addr)

        assert auction.reveal_end == big + 2

    @pytest.mark.asyncio
    async def test_bid_count_and_timestamp(self, chain, sleeps):
        addr = chain.add_auction(address(1))
        chain.bid_counts[(addr, address(7))] = 3
        reader = _reader(chain, sleeps)

        assert await reader.bid_count(addr, address(7)) == 3
        assert await reader.latest_timestamp() == chain.now


# =============================================================================
# Metadata and Discovery
# =============================================================================


class TestMetadata:
    """Tests for best-effort metadata resolution."""

    @pytest.mark.asyncio
    async def test_defaults_without_sources(self, chain, sleeps):
        addr = chain.add_auction(address(1))
        auction = await _reader(chain, sleeps, factory_address=FACTORY).fetch_auction(addr)
        assert auction.metadata.name == "Untitled auction"
        assert auction.metadata.description == "No description"

    @pytest.mark.asyncio
    async def test_event_metadata(self, chain, sleeps):
        addr = chain.add_auction(address(1))
        chain.events[addr] = json.dumps(
            {"name": "Lamp", "description": "Brass", "imageHash": "QmHash", "minPrice": "0.5"}
        )

        auction = await _reader(chain, sleeps, factory_address=FACTORY).fetch_auction(addr)

        assert auction.metadata.name == "Lamp"
        assert auction.metadata.image_ref == "https://ipfs.io/ipfs/QmHash"
        assert auction.metadata.min_price == "0.5"

    @pytest.mark.asyncio
    async def test_unparseable_event_metadata(self, chain, sleeps):
        addr = chain.add_auction(address(1))
        chain.events[addr] = "{broken"

        auction = await _reader(chain, sleeps, factory_address=FACTORY).fetch_auction(addr)

        assert auction.metadata.name == "Untitled auction"

    @pytest.mark.asyncio
    async def test_nft_metadata(self, chain, sleeps):
        addr = chain.add_auction(address(1))
        nft_contract = address(0x4F7)
        chain.nft[addr] = (7, nft_contract)
        chain.nft_metadata[7] = (
            "Token", "An NFT", "https://img/7.png", 2 * 10**18, 0, 0, address(3), False,
        )

        auction = await _reader(chain, sleeps, factory_address=FACTORY).fetch_auction(addr)

        assert auction.metadata.name == "Token"
        assert auction.metadata.image_ref == "https://img/7.png"
        assert auction.metadata.min_price == "2"

    @pytest.mark.asyncio
    async def test_metadata_failure_does_not_fail_fetch(self, chain, sleeps):
        addr = chain.add_auction(address(1))
        chain.broken.add("isNFTAuction")

        outcome = await _reader(chain, sleeps).fetch(addr)

        assert outcome.ok
        assert outcome.attempts == 1

    @pytest.mark.asyncio
    async def test_list_auctions(self, chain, sleeps):
        chain.factory_auctions = [address(1), address(2)]
        reader = _reader(chain, sleeps, factory_address=FACTORY)
        assert await reader.list_auctions() == [address(1), address(2)]

    @pytest.mark.asyncio
    async def test_list_auctions_needs_factory(self, chain, sleeps):
        with pytest.raises(ValueError):
            await _reader(chain, sleeps).list_auctions()
