"""
Write path: external signer interface and confirmation handling.

This core never holds keys. It assembles call arguments, hands them to
an ``AuctionSigner`` and waits, with a bound, for a receipt. Callers
mutate local state only when :func:`wait_for_receipt` returns; a revert
or a timeout raises and leaves everything untouched.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

from blindbid.core.errors import (
    WriteError,
    WriteRejected,
    WriteReverted,
    WriteTimedOut,
    describe_write_error,
)
from blindbid.utils.logger import get_logger

logger = get_logger("chain.signer")


DEFAULT_CONFIRMATION_TIMEOUT = 120.0


@dataclass(frozen=True)
class TxReceipt:
    """Mined transaction outcome."""
    tx_hash: str
    status: int  # 1 = success, 0 = reverted
    block_number: Optional[int] = None
    revert_reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class AuctionSigner(Protocol):
    """Wallet/transaction signer supplied by the caller."""

    @property
    def account(self) -> str:
        """Address transactions are sent from."""
        ...

    async def send(
        self,
        address: str,
        function_name: str,
        args: Sequence[Any] = (),
        value: int = 0,
    ) -> str:
        """Broadcast a contract call and return its transaction hash."""
        ...

    async def get_receipt(self, tx_hash: str) -> TxReceipt:
        """Wait until ``tx_hash`` is mined and return its receipt."""
        ...


async def wait_for_receipt(
    signer: AuctionSigner,
    tx_hash: str,
    timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
) -> TxReceipt:
    """
    Wait for a successful receipt.

    Args:
        signer: Signer that broadcast the transaction
        tx_hash: Transaction hash
        timeout: Seconds before giving up

    Returns:
        The successful receipt

    Raises:
        WriteTimedOut: no receipt within ``timeout`` (outcome unknown)
        WriteReverted: receipt status was failure
    """
    try:
        receipt = await asyncio.wait_for(signer.get_receipt(tx_hash), timeout)
    except asyncio.TimeoutError:
        logger.warning(f"No receipt for {tx_hash} after {timeout:g}s")
        raise WriteTimedOut(tx_hash, timeout) from None

    if not receipt.succeeded:
        logger.error(f"Transaction {tx_hash} reverted: {receipt.revert_reason or 'no reason'}")
        raise WriteReverted(tx_hash, receipt.revert_reason)

    logger.info(f"Transaction {tx_hash} confirmed in block {receipt.block_number}")
    return receipt


async def submit_and_confirm(
    signer: AuctionSigner,
    address: str,
    function_name: str,
    args: Sequence[Any] = (),
    value: int = 0,
    timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
) -> TxReceipt:
    """
    Broadcast a call and wait for its successful receipt.

    Raises:
        WriteRejected: the signer failed before broadcasting
        WriteReverted: mined with failure status
        WriteTimedOut: not confirmed within ``timeout``
    """
    try:
        tx_hash = await signer.send(address, function_name, args, value)
    except WriteError:
        raise
    except Exception as e:
        raise WriteRejected(describe_write_error(e, function_name)) from e

    logger.info(f"{function_name} submitted to {address}: {tx_hash}")
    return await wait_for_receipt(signer, tx_hash, timeout)
