"""
Cryptographic and encoding helpers for BlindBid.

This module provides:
- Keccak-256 (the EVM hash, via pycryptodome)
- Fixed-width big-endian integer encoding (Solidity uint256)
- Hex and address helpers

Design Notes:
-------------
The auction contract verifies reveals with
``keccak256(abi.encodePacked(uint256 value, bool fake, bytes32 secret))``.
Packed encoding does not pad the bool, so the preimage is always
32 + 1 + 32 = 65 bytes. Everything here is byte-exact with that layout.
"""

from Crypto.Hash import keccak


# =============================================================================
# Constants
# =============================================================================

UINT256_MAX = 2**256 - 1
UINT256_BYTES = 32
BYTES32_SIZE = 32
ADDRESS_HEX_LENGTH = 42  # 0x + 40 hex chars


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Note this is the original Keccak padding, not NIST SHA3-256.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Encoding
# =============================================================================


def encode_uint256(value: int) -> bytes:
    """Encode an integer as a 32-byte big-endian word."""
    return value.to_bytes(UINT256_BYTES, byteorder="big")


def encode_bool(flag: bool) -> bytes:
    """Packed encoding of a bool: a single byte, 0x01 or 0x00."""
    return b"\x01" if flag else b"\x00"


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x") or hex_str.startswith("0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


# =============================================================================
# Addresses
# =============================================================================


def is_valid_address(address: str) -> bool:
    """Check if string is a valid address format."""
    if not isinstance(address, str) or not address.startswith("0x"):
        return False
    if len(address) != ADDRESS_HEX_LENGTH:
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False


def normalize_address(address: str) -> str:
    """
    Canonical form used for storage keys.

    Lower-cased so that checksummed and plain spellings of the same
    address land on the same ledger and cache records.
    """
    return address.lower()
