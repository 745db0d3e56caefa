"""Minimal async JSON-RPC client for EVM nodes.

Uses httpx directly; every call is a single request/response round trip.
Quantities cross the wire as 0x-hex and are returned as Python ints.
"""

import itertools
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

import httpx

from chainai.errors import ExecutionFailedError, RequestTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class FeeEstimate:
    """EIP-1559 fee parameters in wei."""
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    base_fee_per_gas: Optional[int] = None


def to_quantity(value: int) -> str:
    """Encode an int as a JSON-RPC quantity."""
    return hex(value)


def from_quantity(value: Optional[str]) -> Optional[int]:
    """Decode a JSON-RPC quantity (None passes through)."""
    if value is None:
        return None
    return int(value, 16)


class RpcClient:
    """JSON-RPC client bound to one node URL."""

    _ids = itertools.count(1)

    def __init__(
        self,
        rpc_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            rpc_url: Node HTTP endpoint
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._transport = transport

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        """Send one JSON-RPC request and return its ``result``.

        Raises:
            RequestTimeoutError: If the node does not answer in time
            ExecutionFailedError: On transport failure, HTTP error status or
                a JSON-RPC error object
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or [],
            "id": next(self._ids),
        }
        logger.debug(f"RPC {method} -> {self.rpc_url}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.rpc_url, json=payload)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"RPC {method} timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ExecutionFailedError(f"RPC {method} failed: {e}", cause=str(e)) from e

        if response.status_code != 200:
            raise ExecutionFailedError(
                f"RPC {method} failed: HTTP {response.status_code}",
                cause=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ExecutionFailedError(f"RPC {method} returned invalid JSON") from e

        if not isinstance(data, dict):
            raise ExecutionFailedError(f"RPC {method} returned an unexpected payload")

        if data.get("error"):
            error = data["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise ExecutionFailedError(f"RPC {method} rejected: {message}", cause=message)

        return data.get("result")

    # ======================
    # Account / chain state
    # ======================

    async def chain_id(self) -> int:
        return from_quantity(await self.request("eth_chainId"))

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        """Nonce for the next transaction from ``address``."""
        return from_quantity(await self.request("eth_getTransactionCount", [address, block]))

    async def get_block(self, block: str = "latest") -> dict:
        block_data = await self.request("eth_getBlockByNumber", [block, False])
        if block_data is None:
            raise ExecutionFailedError(f"Block {block} not found")
        return block_data

    async def gas_price(self) -> int:
        return from_quantity(await self.request("eth_gasPrice"))

    async def max_priority_fee_per_gas(self) -> int:
        return from_quantity(await self.request("eth_maxPriorityFeePerGas"))

    async def estimate_fees(self, base_fee_multiplier: float = 1.2) -> FeeEstimate:
        """Estimate EIP-1559 fees from the latest block.

        maxFeePerGas = baseFee * multiplier + maxPriorityFeePerGas. When the
        node lacks eth_maxPriorityFeePerGas the tip is gasPrice - baseFee.
        """
        block = await self.get_block("latest")
        base_fee = from_quantity(block.get("baseFeePerGas"))
        if base_fee is None:
            raise ExecutionFailedError("Chain does not support EIP-1559 fees (no baseFeePerGas)")

        try:
            priority_fee = await self.max_priority_fee_per_gas()
        except ExecutionFailedError as e:
            logger.warning(f"eth_maxPriorityFeePerGas unavailable, deriving tip from gas price: {e}")
            priority_fee = max(await self.gas_price() - base_fee, 0)

        scaled_base = int(Decimal(base_fee) * Decimal(str(base_fee_multiplier)))
        return FeeEstimate(
            max_fee_per_gas=scaled_base + priority_fee,
            max_priority_fee_per_gas=priority_fee,
            base_fee_per_gas=base_fee,
        )

    async def estimate_gas(self, call: dict) -> int:
        """Simulate a call and return the gas it would use.

        Args:
            call: {"from", "to", "value", "data"} with ints for value
        """
        params = {k: v for k, v in call.items() if v is not None}
        if "value" in params:
            params["value"] = to_quantity(params["value"])
        return from_quantity(await self.request("eth_estimateGas", [params]))

    async def call(self, to: str, data: str, block: str = "latest") -> bytes:
        """Read-only contract call; returns raw return data."""
        result = await self.request("eth_call", [{"to": to, "data": data}, block])
        return bytes.fromhex((result or "0x")[2:])

    # ======================
    # Transactions
    # ======================

    async def send_raw_transaction(self, raw_tx_hex: str) -> str:
        """Submit a signed transaction and return its hash."""
        if not raw_tx_hex.startswith("0x"):
            raw_tx_hex = f"0x{raw_tx_hex}"
        return await self.request("eth_sendRawTransaction", [raw_tx_hex])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict]:
        """Receipt for a mined transaction, or None while unmined/unknown."""
        return await self.request("eth_getTransactionReceipt", [tx_hash])
