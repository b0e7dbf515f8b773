"""
Chain access: read adapter with retry, ABI fragments and the write path.

The web3 adapters live in ``blindbid.core.chain.web3_client`` and are
imported explicitly so the core can run against in-process fakes.
"""

from blindbid.core.chain.abi import AUCTION_FACTORY_ABI, AUCTION_NFT_ABI, BLIND_AUCTION_ABI
from blindbid.core.chain.reader import AuctionReader, ContractReader, ReadOutcome
from blindbid.core.chain.signer import (
    AuctionSigner,
    TxReceipt,
    submit_and_confirm,
    wait_for_receipt,
)

__all__ = [
    "AUCTION_FACTORY_ABI",
    "AUCTION_NFT_ABI",
    "BLIND_AUCTION_ABI",
    "AuctionReader",
    "ContractReader",
    "ReadOutcome",
    "AuctionSigner",
    "TxReceipt",
    "submit_and_confirm",
    "wait_for_receipt",
]
