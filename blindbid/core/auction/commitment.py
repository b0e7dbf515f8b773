"""
Blinded-bid commitments.

A bid is hidden during the bidding phase behind

    C = keccak256(uint256(value) || bool(fake) || keccak256(secret))

where ``||`` is Solidity ``abi.encodePacked`` concatenation: a 32-byte
big-endian value, a single flag byte and a 32-byte secret digest. The
contract recomputes exactly this at reveal time, so any deviation in
width, byte order or padding yields a commitment that can never be
revealed.

The raw secret never leaves the client. Only its digest is ever sent,
and only during the reveal.
"""

from typing import Union

from blindbid.core.errors import InvalidBidValue
from blindbid.crypto import (
    BYTES32_SIZE,
    UINT256_MAX,
    bytes_to_hex,
    encode_bool,
    encode_uint256,
    keccak256,
)
from blindbid.utils.logger import get_logger

logger = get_logger("commitment")


Secret = Union[str, bytes]

# Packed preimage length: uint256 + bool + bytes32
PACKED_BID_SIZE = 32 + 1 + BYTES32_SIZE

# Placeholder secret for padding reveal arrays; never matches a real bid
DUMMY_SECRET = "dummy"


def _secret_bytes(secret: Secret) -> bytes:
    if isinstance(secret, str):
        return secret.encode("utf-8")
    if isinstance(secret, (bytes, bytearray)):
        return bytes(secret)
    raise TypeError(f"secret must be str or bytes, got {type(secret).__name__}")


def check_bid_value(value: int) -> int:
    """
    Ensure a bid value fits a Solidity uint256.

    Raises:
        InvalidBidValue: for non-integers, negatives and overflow
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidBidValue(f"Bid value must be an integer amount in wei, got {value!r}")
    if value < 0:
        raise InvalidBidValue(f"Bid value cannot be negative: {value}")
    if value > UINT256_MAX:
        raise InvalidBidValue("Bid value exceeds uint256 range")
    return value


def hash_secret(secret: Secret) -> bytes:
    """
    Digest a user secret into the bytes32 the contract expects.

    Strings are UTF-8 encoded first.
    """
    return keccak256(_secret_bytes(secret))


def pack_bid(value: int, fake: bool, secret_digest: bytes) -> bytes:
    """
    Packed encoding of a bid triple.

    Args:
        value: Bid amount in wei
        fake: Whether the bid is a decoy
        secret_digest: 32-byte keccak of the secret

    Returns:
        65-byte preimage of the commitment
    """
    check_bid_value(value)
    if len(secret_digest) != BYTES32_SIZE:
        raise ValueError(f"secret digest must be 32 bytes, got {len(secret_digest)}")
    return encode_uint256(value) + encode_bool(bool(fake)) + secret_digest


def create_commitment(value: int, fake: bool, secret: Secret) -> bytes:
    """
    Create a blinded-bid commitment.

    Args:
        value: Bid amount in wei
        fake: Whether the bid is a decoy
        secret: User-chosen secret (hashed once before packing)

    Returns:
        32-byte commitment digest

    Raises:
        InvalidBidValue: if value is not a valid uint256
    """
    commitment = keccak256(pack_bid(value, fake, hash_secret(secret)))
    logger.debug(f"Commitment {bytes_to_hex(commitment)[:18]}... created")
    return commitment


def commitment_matches(commitment: bytes, value: int, fake: bool, secret: Secret) -> bool:
    """Whether a stored commitment opens to the given triple."""
    try:
        return create_commitment(value, fake, secret) == commitment
    except InvalidBidValue:
        return False


__all__ = [
    "PACKED_BID_SIZE",
    "DUMMY_SECRET",
    "check_bid_value",
    "hash_secret",
    "pack_bid",
    "create_commitment",
    "commitment_matches",
]
