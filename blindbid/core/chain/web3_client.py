"""
web3.py adapters for the read and write interfaces.

``Web3ContractReader`` serves the read side over a JSON-RPC endpoint.
``Web3AuctionSigner`` signs locally with an ``eth_account`` key and is
meant for scripts and tests against a dev chain; wallets in other
settings implement ``AuctionSigner`` themselves.
"""

from typing import Any, Dict, List, Optional, Sequence

from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3

from blindbid.core.chain.abi import BLIND_AUCTION_ABI
from blindbid.core.chain.signer import TxReceipt
from blindbid.utils.logger import get_logger

logger = get_logger("chain.web3")


class Web3ContractReader:
    """Read-only access to contracts through an async web3 provider."""

    def __init__(self, rpc_url: str, request_timeout: float = 30.0):
        self.rpc_url = rpc_url
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))

    def _contract(self, address: str, abi: List[Dict[str, Any]]):
        return self.w3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=abi)

    async def read_contract(
        self,
        address: str,
        abi: List[Dict[str, Any]],
        function_name: str,
        args: Sequence[Any] = (),
    ) -> Any:
        contract = self._contract(address, abi)
        args = [AsyncWeb3.to_checksum_address(a) if _looks_like_address(a) else a for a in args]
        return await contract.functions[function_name](*args).call()

    async def get_events(
        self,
        address: str,
        abi: List[Dict[str, Any]],
        event_name: str,
        argument_filters: Optional[Dict[str, Any]] = None,
        from_block: int = 0,
    ) -> List[Dict[str, Any]]:
        contract = self._contract(address, abi)
        filters = {
            k: AsyncWeb3.to_checksum_address(v) if _looks_like_address(v) else v
            for k, v in (argument_filters or {}).items()
        }
        logs = await contract.events[event_name].get_logs(
            argument_filters=filters or None,
            from_block=from_block,
        )
        return [
            {
                "args": dict(log["args"]),
                "block_number": log["blockNumber"],
                "tx_hash": log["transactionHash"].to_0x_hex(),
            }
            for log in logs
        ]

    async def latest_timestamp(self) -> int:
        block = await self.w3.eth.get_block("latest")
        return int(block["timestamp"])


class Web3AuctionSigner:
    """Signs auction calls with a local private key."""

    def __init__(self, reader: Web3ContractReader, private_key: str, receipt_timeout: float = 600.0):
        self.w3 = reader.w3
        self.receipt_timeout = receipt_timeout
        self._account = Account.from_key(private_key)

    @property
    def account(self) -> str:
        return self._account.address

    async def send(
        self,
        address: str,
        function_name: str,
        args: Sequence[Any] = (),
        value: int = 0,
    ) -> str:
        contract = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(address), abi=BLIND_AUCTION_ABI
        )
        nonce = await self.w3.eth.get_transaction_count(self._account.address)
        tx = await contract.functions[function_name](*args).build_transaction({
            "from": self._account.address,
            "value": value,
            "nonce": nonce,
            "chainId": await self.w3.eth.chain_id,
        })
        signed = self._account.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.info(f"Sent {function_name} to {address} as {tx_hash.to_0x_hex()}")
        return tx_hash.to_0x_hex()

    async def get_receipt(self, tx_hash: str) -> TxReceipt:
        # wait_for_receipt applies the tighter confirmation bound
        receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        return TxReceipt(
            tx_hash=tx_hash,
            status=int(receipt["status"]),
            block_number=int(receipt["blockNumber"]),
        )


def _looks_like_address(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("0x") and len(value) == 42
