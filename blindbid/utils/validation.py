"""
Input Validation - checks applied before any network call.

Every validator returns ``(is_valid, error_message)`` so callers can
decide which exception to raise.
"""

import re
from typing import Any, Optional, Sequence, Tuple

from blindbid.crypto import UINT256_MAX

# =============================================================================
# Constants
# =============================================================================

ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"
MAX_SECRET_LENGTH = 1024
MAX_REVEAL_BATCH = 256


# =============================================================================
# Validation Functions
# =============================================================================


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a 0x-prefixed 20-byte hex address."""
    if not isinstance(address, str):
        return False, f"{name} must be str, got {type(address).__name__}"
    if not re.match(ADDRESS_PATTERN, address):
        return False, f"{name} is not a valid address: {address!r}"
    return True, ""


def validate_uint256(value: Any, name: str) -> Tuple[bool, str]:
    """
    Validate an integer that must fit a Solidity uint256.

    bool is rejected even though it subclasses int.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < 0:
        return False, f"{name} must be >= 0, got {value}"

    if value > UINT256_MAX:
        return False, f"{name} exceeds uint256 range"

    return True, ""


def validate_bid_amounts(value: Any, deposit: Any, min_price: int = 0) -> Tuple[bool, str]:
    """
    Validate a bid value and its deposit (both in wei).

    Rules:
    - both are uint256
    - deposit is positive and covers the bid value
    - value and deposit reach the auction's minimum price
    """
    for amount, name in ((value, "value"), (deposit, "deposit")):
        valid, err = validate_uint256(amount, name)
        if not valid:
            return False, err

    if deposit == 0:
        return False, "deposit must be positive"

    if deposit < value:
        return False, f"deposit {deposit} does not cover bid value {value}"

    if value < min_price:
        return False, f"value {value} is below the minimum price {min_price}"

    if deposit < min_price:
        return False, f"deposit {deposit} is below the minimum price {min_price}"

    return True, ""


def validate_secret(secret: Any) -> Tuple[bool, str]:
    """Validate a user secret. Stored secrets are text so they can be shown back."""
    if not isinstance(secret, str):
        return False, f"secret must be str, got {type(secret).__name__}"

    if not secret.strip():
        return False, "secret cannot be empty"

    if len(secret) > MAX_SECRET_LENGTH:
        return False, f"secret exceeds max length {MAX_SECRET_LENGTH}"

    return True, ""


def validate_indices(indices: Any, max_length: int = MAX_REVEAL_BATCH) -> Tuple[bool, str]:
    """Validate a list of ledger indices."""
    if not isinstance(indices, (list, tuple)):
        return False, f"indices must be list/tuple, got {type(indices).__name__}"

    if len(indices) > max_length:
        return False, f"indices exceeds max length {max_length}, got {len(indices)}"

    for i in indices:
        if isinstance(i, bool) or not isinstance(i, int) or i < 0:
            return False, f"invalid index {i!r}"

    return True, ""
