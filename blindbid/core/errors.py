"""
Error taxonomy for BlindBid.

Three families, each with its own propagation rule:

1. Read errors (``TransientReadError``): retried with backoff, then
   absorbed into aggregate failure counts. Never fatal to a batch.
2. Input errors (``InputError`` subclasses): raised before any network
   call and abort only the requested operation.
3. Write errors (``WriteError`` subclasses): surfaced to the caller;
   local state is never mutated when one is raised.
"""

from typing import Optional


RATE_LIMIT_MARKERS = (
    "status code 429",
    "429 Client Error",
    "Too Many Requests",
    "HTTP request failed",
    "exceeds the rate limit",
    "server error",
)


class BlindBidError(Exception):
    """Base class for all BlindBid errors."""


# =============================================================================
# Read Path
# =============================================================================


class TransientReadError(BlindBidError):
    """A single-address read that failed after exhausting its retries."""

    def __init__(self, address: str, attempts: int, cause: Optional[BaseException] = None):
        self.address = address
        self.attempts = attempts
        self.cause = cause
        self.rate_limited = cause is not None and is_rate_limit_error(cause)
        super().__init__(
            f"Failed to read auction {address} after {attempts} attempt(s): {cause}"
        )


# =============================================================================
# Caller Input
# =============================================================================


class InputError(BlindBidError, ValueError):
    """Caller-supplied input rejected before any network call."""


class InvalidBidValue(InputError):
    """Bid value is not representable as a uint256."""


class InvalidAddress(InputError):
    """Malformed account or contract address."""


class MismatchedAuction(InputError):
    """A selected bid belongs to a different auction."""

    def __init__(self, index: int, expected: str, actual: str):
        self.index = index
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Bid #{index} belongs to auction {actual}, not {expected}"
        )


class AlreadyRevealed(InputError):
    """A selected bid has already been revealed on-chain."""

    def __init__(self, index: int):
        self.index = index
        super().__init__(f"Bid #{index} has already been revealed")


class UnknownBid(InputError):
    """Selected index does not exist in the ledger or the contract."""


class DuplicateBidSlot(InputError):
    """A bid for this (user, auction, slot) is already recorded."""


class WrongPhase(InputError):
    """Operation attempted while the auction is in a phase that forbids it."""

    def __init__(self, operation: str, phase: str, expected: str):
        self.operation = operation
        self.phase = phase
        self.expected = expected
        super().__init__(f"Cannot {operation} while auction is {phase} (needs {expected})")


# =============================================================================
# Cache
# =============================================================================


class CacheAdmissionError(BlindBidError, ValueError):
    """Attempt to cache an auction that is not terminal."""


# =============================================================================
# Write Path
# =============================================================================


class WriteError(BlindBidError):
    """Base class for transaction failures."""


class WriteRejected(WriteError):
    """The signer refused or failed to broadcast; nothing reached the chain."""


class WriteReverted(WriteError):
    """Transaction was mined but reverted."""

    def __init__(self, tx_hash: str, reason: Optional[str] = None):
        self.tx_hash = tx_hash
        self.reason = reason
        super().__init__(f"Transaction {tx_hash} reverted" + (f": {reason}" if reason else ""))


class WriteTimedOut(WriteError):
    """
    No receipt observed within the confirmation bound.

    The outcome is indeterminate: the transaction may still be mined.
    Check a block explorer before retrying.
    """

    def __init__(self, tx_hash: str, timeout: float):
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(
            f"No confirmation for {tx_hash} within {timeout:g}s; "
            "outcome unknown, check a block explorer"
        )


# =============================================================================
# Classification
# =============================================================================


def is_rate_limit_error(exc: BaseException) -> bool:
    """Whether an RPC error looks like rate limiting. Diagnostic only."""
    message = str(exc)
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def describe_write_error(exc: BaseException, action: str = "Transaction") -> str:
    """
    Turn a signer/RPC exception into a short user-facing message.

    Args:
        exc: The raised exception
        action: What was attempted (e.g. "Bid", "Reveal")

    Returns:
        Human readable message
    """
    message = str(exc)
    lowered = message.lower()
    code = getattr(exc, "code", None)

    if "user rejected" in lowered or "user denied" in lowered or code in (4001, "ACTION_REJECTED"):
        return "User cancelled the transaction"
    if "insufficient funds" in lowered:
        return "Insufficient funds to complete the transaction"
    if isinstance(exc, WriteTimedOut) or "timeout" in lowered or "network" in lowered:
        return "Network timed out; check the explorer before retrying"
    if isinstance(exc, WriteReverted) and exc.reason:
        return f"{action} failed: {exc.reason}"
    if "revert" in lowered:
        return f"{action} failed: contract execution reverted"
    if "gas" in lowered:
        return "Gas estimation failed or gas too low"

    if len(message) > 50:
        message = message[:50] + "..."
    return f"{action} failed: {message}" if message else f"{action} failed"
