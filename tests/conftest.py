"""
Shared fakes for BlindBid tests.

FakeChain stands in for the JSON-RPC read interface, FakeSigner for the
wallet, SleepRecorder for asyncio.sleep so backoff and batch delays can
be asserted without waiting.
"""

import asyncio
from collections import defaultdict

import pytest

from blindbid.core.chain.signer import TxReceipt
from blindbid.core.storage import BidLedger, MemoryStore


ZERO_ADDRESS = "0x" + "0" * 40
USER = "0x" + "ab" * 20


def address(n: int) -> str:
    return "0x" + f"{n:040x}"


class FakeChain:
    """In-memory auction contracts behind the ContractReader interface."""

    def __init__(self, now: int = 1_000):
        self.now = now
        self.auctions = {}
        self.failures = {}
        self.broken = set()
        self.attempts = defaultdict(int)
        self.bid_counts = defaultdict(int)
        self.nft = {}
        self.nft_metadata = {}
        self.events = {}
        self.factory_auctions = []

    def add_auction(
        self,
        addr: str,
        start: int = 100,
        bidding_end: int = 200,
        reveal_end: int = 300,
        ended: bool = False,
        highest_bid: int = 0,
        highest_bidder: str = ZERO_ADDRESS,
    ) -> str:
        self.auctions[addr.lower()] = {
            "beneficiary": "0x" + "be" * 20,
            "biddingStart": start,
            "biddingEnd": bidding_end,
            "revealEnd": reveal_end,
            "ended": ended,
            "highestBid": highest_bid,
            "highestBidder": highest_bidder,
        }
        return addr

    def fail(self, addr: str, times: int, message: str = "429 Client Error: Too Many Requests"):
        """Make the next ``times`` reads of ``addr`` raise."""
        self.failures[addr.lower()] = [times, message]

    async def read_contract(self, addr, abi, function_name, args=()):
        key = addr.lower()
        if function_name in self.broken:
            raise ConnectionError(f"{function_name} unavailable")

        if function_name == "getAuctionCount":
            return len(self.factory_auctions)
        if function_name == "getAuctions":
            offset, limit = args
            return self.factory_auctions[offset:offset + limit]
        if function_name == "nftMetadata":
            return self.nft_metadata[args[0]]
        if function_name == "getBidCount":
            return self.bid_counts[(key, args[0].lower())]

        if key not in self.auctions:
            raise ValueError(f"execution reverted: no auction at {addr}")

        if function_name == "beneficiary":
            self.attempts[key] += 1
            pending = self.failures.get(key)
            if pending and pending[0] > 0:
                pending[0] -= 1
                raise ConnectionError(pending[1])

        if function_name == "isNFTAuction":
            return key in self.nft
        if function_name == "nftTokenId":
            return self.nft[key][0]
        if function_name == "nftContract":
            return self.nft[key][1]
        return self.auctions[key][function_name]

    async def get_events(self, addr, abi, event_name, argument_filters=None, from_block=0):
        target = (argument_filters or {}).get("auctionAddress", "").lower()
        if target not in self.events:
            return []
        return [{"args": {"auctionAddress": target, "metadata": self.events[target]}}]

    async def latest_timestamp(self) -> int:
        return self.now


class FakeSigner:
    """
    Wallet stand-in.

    mode: "ok" confirms, "revert" mines a failed receipt, "hang" never
    confirms, "reject" refuses to sign.
    """

    def __init__(self, chain: FakeChain = None, account: str = USER):
        self._account = account
        self.chain = chain
        self.mode = "ok"
        self.revert_reason = None
        self.sent = []

    @property
    def account(self) -> str:
        return self._account

    async def send(self, addr, function_name, args=(), value=0):
        if self.mode == "reject":
            raise RuntimeError("MetaMask Tx Signature: User denied transaction signature.")
        self.sent.append({"to": addr, "function": function_name, "args": args, "value": value})
        if self.mode == "ok" and self.chain is not None and function_name == "bid":
            self.chain.bid_counts[(addr.lower(), self._account.lower())] += 1
        return "0x" + f"{len(self.sent):064x}"

    async def get_receipt(self, tx_hash):
        if self.mode == "hang":
            await asyncio.Event().wait()
        if self.mode == "revert":
            return TxReceipt(tx_hash, 0, 7, self.revert_reason)
        return TxReceipt(tx_hash, 1, 7)


class SleepRecorder:
    """Records requested delays and returns immediately."""

    def __init__(self, on_sleep=None):
        self.delays = []
        self.on_sleep = on_sleep

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.on_sleep is not None:
            self.on_sleep(delay)


class BrokenStore(MemoryStore):
    """Store whose writes always fail, as a full or read-only disk would."""

    def put(self, key: str, value: str) -> None:
        raise OSError("disk full")


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def signer(chain):
    return FakeSigner(chain)


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def ledger(store):
    return BidLedger(store)


def make_bid(auction: str, value: int = 100, slot: int = 0, secret: str = "secret",
             fake: bool = False, deposit: int = None):
    from blindbid.core.auction import Bid, SlotIndex, commitment_hex, create_commitment

    return Bid(
        auction_address=auction,
        value=value,
        fake=fake,
        secret=secret,
        commitment=commitment_hex(create_commitment(value, fake, secret)),
        deposit=value if deposit is None else deposit,
        slot=SlotIndex(value=slot),
        submitted_at=1_000.0,
    )


def make_auction(addr: str, start: int = 100, bidding_end: int = 200, reveal_end: int = 300,
                 ended: bool = False, **kwargs):
    from blindbid.core.auction import Auction

    return Auction(
        address=addr,
        beneficiary="0x" + "be" * 20,
        bidding_start=start,
        bidding_end=bidding_end,
        reveal_end=reveal_end,
        ended=ended,
        **kwargs,
    )
