"""
Unit tests for blinded-bid commitments and encoding helpers.
"""

import pytest
from Crypto.Hash import keccak

from blindbid.core.auction import (
    DUMMY_SECRET,
    PACKED_BID_SIZE,
    check_bid_value,
    commitment_matches,
    create_commitment,
    hash_secret,
    pack_bid,
)
from blindbid.core.errors import InvalidBidValue
from blindbid.crypto import (
    UINT256_MAX,
    bytes_to_hex,
    encode_bool,
    encode_uint256,
    hex_to_bytes,
    is_valid_address,
    keccak256,
    normalize_address,
)


def _keccak(data: bytes) -> bytes:
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Encoding Helpers
# =============================================================================


class TestEncoding:
    """Tests for the byte-level helpers."""

    def test_keccak_empty_vector(self):
        """Keccak-256 of empty input is the well-known EVM constant."""
        assert keccak256(b"").hex() == (
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )

    def test_uint256_is_big_endian_32_bytes(self):
        encoded = encode_uint256(1)
        assert len(encoded) == 32
        assert encoded == b"\x00" * 31 + b"\x01"
        assert encode_uint256(UINT256_MAX) == b"\xff" * 32

    def test_bool_is_single_byte(self):
        assert encode_bool(True) == b"\x01"
        assert encode_bool(False) == b"\x00"

    def test_hex_helpers(self):
        data = bytes(range(4))
        assert bytes_to_hex(data) == "0x00010203"
        assert hex_to_bytes("0x00010203") == data
        assert hex_to_bytes("00010203") == data

    def test_addresses(self):
        addr = "0x" + "Ab" * 20
        assert is_valid_address(addr)
        assert not is_valid_address("0x1234")
        assert not is_valid_address("ab" * 21)
        assert normalize_address(addr) == "0x" + "ab" * 20


# =============================================================================
# Commitments
# =============================================================================


class TestCommitment:
    """Tests for create_commitment and friends."""

    def test_matches_packed_keccak_layout(self):
        """C = keccak(uint256 || bool || keccak(secret))."""
        value = 10**18
        preimage = value.to_bytes(32, "big") + b"\x01" + _keccak(b"hunter2")

        assert create_commitment(value, True, "hunter2") == _keccak(preimage)

    def test_packed_preimage_length(self):
        packed = pack_bid(5, False, hash_secret("s"))
        assert len(packed) == PACKED_BID_SIZE == 65

    def test_deterministic(self):
        assert create_commitment(42, False, "abc") == create_commitment(42, False, "abc")

    def test_every_field_changes_the_digest(self):
        base = create_commitment(42, False, "abc")
        assert create_commitment(43, False, "abc") != base
        assert create_commitment(42, True, "abc") != base
        assert create_commitment(42, False, "abd") != base

    def test_str_and_bytes_secret_agree(self):
        assert create_commitment(1, False, "ü") == create_commitment(1, False, "ü".encode("utf-8"))

    def test_zero_and_max_values_accepted(self):
        assert len(create_commitment(0, False, "s")) == 32
        assert len(create_commitment(UINT256_MAX, False, "s")) == 32

    @pytest.mark.parametrize("value", [-1, UINT256_MAX + 1, 1.5, "10", True])
    def test_invalid_values_rejected(self, value):
        with pytest.raises(InvalidBidValue):
            create_commitment(value, False, "s")

    def test_invalid_value_is_value_error(self):
        with pytest.raises(ValueError):
            check_bid_value(-5)

    def test_bad_digest_length(self):
        with pytest.raises(ValueError):
            pack_bid(1, False, b"short")

    def test_commitment_matches(self):
        c = create_commitment(7, True, "x")
        assert commitment_matches(c, 7, True, "x")
        assert not commitment_matches(c, 7, False, "x")
        assert not commitment_matches(c, -1, True, "x")

    def test_dummy_secret_digest(self):
        assert hash_secret(DUMMY_SECRET) == _keccak(b"dummy")
