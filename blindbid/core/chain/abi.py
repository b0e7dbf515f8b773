"""
Minimal ABI fragments for the contracts this client talks to.

Only the functions and events actually called are listed.
"""


def _view(name, outputs, inputs=()):
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t} for t in outputs],
    }


def _write(name, inputs=(), payable=False):
    return {
        "type": "function",
        "name": name,
        "stateMutability": "payable" if payable else "nonpayable",
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [],
    }


BLIND_AUCTION_ABI = [
    _view("beneficiary", ["address"]),
    _view("biddingStart", ["uint256"]),
    _view("biddingEnd", ["uint256"]),
    _view("revealEnd", ["uint256"]),
    _view("ended", ["bool"]),
    _view("highestBid", ["uint256"]),
    _view("highestBidder", ["address"]),
    _view("getBidCount", ["uint256"], inputs=[("bidder", "address")]),
    _view("isNFTAuction", ["bool"]),
    _view("nftTokenId", ["uint256"]),
    _view("nftContract", ["address"]),
    _write("bid", inputs=[("blindedBid", "bytes32")], payable=True),
    _write("reveal", inputs=[("values", "uint256[]"), ("fakes", "bool[]"), ("secrets", "bytes32[]")]),
    _write("auctionEnd"),
    _write("withdraw"),
]

AUCTION_FACTORY_ABI = [
    _view("getAuctionCount", ["uint256"]),
    _view("getAuctions", ["address[]"], inputs=[("offset", "uint256"), ("limit", "uint256")]),
    {
        "type": "event",
        "name": "AuctionCreated",
        "anonymous": False,
        "inputs": [
            {"name": "auctionAddress", "type": "address", "indexed": True},
            {"name": "beneficiary", "type": "address", "indexed": True},
            {"name": "biddingTime", "type": "uint256", "indexed": False},
            {"name": "revealTime", "type": "uint256", "indexed": False},
            {"name": "metadata", "type": "string", "indexed": False},
        ],
    },
]

AUCTION_NFT_ABI = [
    {
        "type": "function",
        "name": "nftMetadata",
        "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [
            {"name": "name", "type": "string"},
            {"name": "description", "type": "string"},
            {"name": "imageHash", "type": "string"},
            {"name": "minPrice", "type": "uint256"},
            {"name": "creator", "type": "address"},
            {"name": "isAuctioned", "type": "bool"},
            {"name": "auctionContract", "type": "address"},
            {"name": "createdAt", "type": "uint256"},
        ],
    },
]
