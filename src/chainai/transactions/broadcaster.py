"""Broadcast signed transactions and track their receipts.

A missing receipt is always reported as pending: a hash the node has
never seen and a transaction still in the mempool look the same here.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from chainai.chains import ChainDescriptor
from chainai.config import get_settings
from chainai.errors import ExecutionFailedError, RequestTimeoutError
from chainai.rpc import RpcClient, from_quantity
from chainai.utils.validation import require_hex, require_tx_hash

logger = logging.getLogger(__name__)


class TxStatus(str, Enum):
    """On-chain status of a transaction."""
    PENDING = "pending"
    SUCCESS = "success"
    REVERTED = "reverted"


@dataclass
class TransactionStatus:
    """Receipt summary for a transaction hash."""
    transaction_hash: str
    status: TxStatus
    network: str
    explorer_url: str
    block_number: Optional[int] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    gas_used: Optional[int] = None
    effective_gas_price: Optional[int] = None

    @classmethod
    def from_receipt(
        cls, tx_hash: str, receipt: Optional[dict], chain: ChainDescriptor
    ) -> "TransactionStatus":
        if receipt is None:
            return cls(
                transaction_hash=tx_hash,
                status=TxStatus.PENDING,
                network=chain.display_name,
                explorer_url=chain.explorer_tx_url(tx_hash),
            )

        succeeded = from_quantity(receipt.get("status", "0x0")) == 1
        return cls(
            transaction_hash=tx_hash,
            status=TxStatus.SUCCESS if succeeded else TxStatus.REVERTED,
            network=chain.display_name,
            explorer_url=chain.explorer_tx_url(tx_hash),
            block_number=from_quantity(receipt.get("blockNumber")),
            from_address=receipt.get("from"),
            to_address=receipt.get("to"),
            gas_used=from_quantity(receipt.get("gasUsed")),
            effective_gas_price=from_quantity(receipt.get("effectiveGasPrice")),
        )

    def to_dict(self) -> dict:
        """JSON-friendly form (big integers as strings)."""
        return {
            "transactionHash": self.transaction_hash,
            "status": self.status.value,
            "network": self.network,
            "blockNumber": _str_or_none(self.block_number),
            "from": self.from_address,
            "to": self.to_address,
            "gasUsed": _str_or_none(self.gas_used),
            "effectiveGasPrice": _str_or_none(self.effective_gas_price),
            "explorerUrl": self.explorer_url,
        }


def _str_or_none(value: Optional[int]) -> Optional[str]:
    return None if value is None else str(value)


@dataclass
class BroadcastResult:
    """Hash of a submitted transaction."""
    transaction_hash: str
    network: str
    explorer_url: str


class Broadcaster:
    """Submits raw transactions to one chain and reads their receipts."""

    def __init__(self, rpc: RpcClient, chain: ChainDescriptor):
        self.rpc = rpc
        self.chain = chain

    async def broadcast(self, serialized_tx: str) -> BroadcastResult:
        """Submit a hex-encoded signed transaction.

        Never retried: after an ambiguous failure the transaction may
        already be in the mempool.

        Raises:
            InvalidInputError: If the payload is not 0x-hex
            ExecutionFailedError: If the node rejects it (nonce too low,
                insufficient funds, underpriced, ...)
        """
        require_hex(serialized_tx, "Serialized transaction")

        tx_hash = await self.rpc.send_raw_transaction(serialized_tx)
        if not tx_hash:
            raise ExecutionFailedError("Node accepted the transaction but returned no hash")

        logger.info(f"Broadcast {tx_hash} on {self.chain.display_name}")
        return BroadcastResult(
            transaction_hash=tx_hash,
            network=self.chain.display_name,
            explorer_url=self.chain.explorer_tx_url(tx_hash),
        )

    async def get_status(self, tx_hash: str) -> TransactionStatus:
        """Current receipt status; no receipt means pending."""
        tx_hash = require_tx_hash(tx_hash)
        receipt = await self.rpc.get_transaction_receipt(tx_hash)
        return TransactionStatus.from_receipt(tx_hash, receipt, self.chain)

    async def wait_for_receipt(
        self,
        tx_hash: str,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ) -> TransactionStatus:
        """Poll until the transaction is mined.

        Args:
            tx_hash: Transaction hash to wait for
            timeout: Maximum seconds to wait (settings default)
            poll_interval: Seconds between polls (settings default)

        Returns:
            Final TransactionStatus (success or reverted)

        Raises:
            RequestTimeoutError: If not mined within timeout
        """
        settings = get_settings()
        timeout = settings.receipt_timeout if timeout is None else timeout
        poll_interval = settings.receipt_poll_interval if poll_interval is None else poll_interval

        deadline = time.monotonic() + timeout
        while True:
            status = await self.get_status(tx_hash)
            if status.status != TxStatus.PENDING:
                logger.info(f"Transaction {tx_hash} mined: {status.status.value}")
                return status

            if time.monotonic() >= deadline:
                raise RequestTimeoutError(
                    f"Transaction {tx_hash} not mined after {timeout}s"
                )
            await asyncio.sleep(poll_interval)
