"""Swap orchestration against an off-chain order-matching service.

One SwapOrchestrator drives one swap attempt through:

    CREATED -> QUOTED
    CREATED -> [APPROVAL_PENDING -> APPROVED] -> SUBMITTED
                                                 -> LOCK_PENDING -> COMPLETED  (native source)
                                                 -> COMPLETED                  (token source)

Any failure moves the attempt to FAILED and the error propagates. Steps
run strictly in sequence; only the two token-decimals reads of a quote
run concurrently.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from chainai.chains import ChainDescriptor, is_native_token
from chainai.errors import ChainAIError, ExecutionFailedError, NativeSwapFailedError
from chainai.routing.base import (
    OrderService,
    OrderStatusInfo,
    PreparedOrder,
    QuoteRequest,
    SwapQuote,
)
from chainai.rpc import RpcClient
from chainai.signing.base import SignerBackend
from chainai.tokens import MAX_UINT256, encode_approve, get_token_metadata, read_allowance
from chainai.transactions.broadcaster import Broadcaster, TxStatus
from chainai.transactions.builder import TransactionBuilder
from chainai.utils.units import format_units, parse_amount, parse_units
from chainai.utils.validation import require_address, require_tx_hash

logger = logging.getLogger(__name__)


class SwapState(str, Enum):
    """Where a swap attempt currently is."""
    CREATED = "created"
    QUOTED = "quoted"
    APPROVAL_PENDING = "approval_pending"
    APPROVED = "approved"
    SUBMITTED = "submitted"
    LOCK_PENDING = "lock_pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class SwapQuoteResult:
    """Quote expressed in destination-token units.

    ``amount`` echoes the human-readable source amount; ``raw_amount`` is
    the same value in source-token base units.
    """
    from_address: str
    from_token: str
    to_token: str
    amount: str
    raw_amount: int
    estimated_return: str
    estimated_return_min: str
    estimated_return_avg: str
    network: str
    quote_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "from": self.from_address,
            "fromToken": self.from_token,
            "toToken": self.to_token,
            "amount": self.amount,
            "rawAmount": str(self.raw_amount),
            "estimatedReturn": self.estimated_return,
            "estimatedReturnMin": self.estimated_return_min,
            "estimatedReturnAvg": self.estimated_return_avg,
            "network": self.network,
            "quoteId": self.quote_id,
        }


@dataclass
class SwapOrderResult:
    """Outcome of a submitted swap, with the quote the order was placed at."""
    quote: SwapQuoteResult
    order_hash: str
    approval_tx_hash: Optional[str] = None
    lock_tx_hash: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            **self.quote.to_dict(),
            "orderHash": self.order_hash,
            "approvalTxHash": self.approval_tx_hash,
            "lockTxHash": self.lock_tx_hash,
        }



class SwapOrchestrator:
    """Drives a single swap attempt.

    Holds the RPC client, signer and order-service client explicitly; a
    new orchestrator is created for every operation.
    """

    def __init__(
        self,
        rpc: RpcClient,
        signer: SignerBackend,
        order_service: OrderService,
        chain: ChainDescriptor,
        builder: Optional[TransactionBuilder] = None,
        broadcaster: Optional[Broadcaster] = None,
    ):
        self.rpc = rpc
        self.signer = signer
        self.order_service = order_service
        self.chain = chain
        self.builder = builder or TransactionBuilder(rpc, chain)
        self.broadcaster = broadcaster or Broadcaster(rpc, chain)
        self.state = SwapState.CREATED

    def _transition(self, state: SwapState) -> None:
        logger.debug(f"Swap on {self.chain.display_name}: {self.state.value} -> {state.value}")
        self.state = state

    async def _decimals(self, token: str) -> int:
        metadata = await get_token_metadata(self.rpc, token, self.chain)
        return metadata.decimals

    async def _prepare_request(
        self, from_token: str, to_token: str, amount: str
    ) -> tuple[QuoteRequest, int]:
        """Validate inputs and scale the amount; returns (request, to_decimals)."""
        from_token = require_address(from_token, "From token")
        to_token = require_address(to_token, "To token")
        parse_amount(amount)

        from_decimals, to_decimals = await asyncio.gather(
            self._decimals(from_token),
            self._decimals(to_token),
        )
        request = QuoteRequest(
            from_token=from_token,
            to_token=to_token,
            amount=parse_units(amount, from_decimals),
            wallet_address=self.signer.address,
        )
        return request, to_decimals

    async def _send_call(self, to: str, data: bytes, value: int = 0) -> str:
        """Build, sign and broadcast a call. Returns the transaction hash."""
        tx = await self.builder.prepare_call(self.signer.address, to, data=data, value=value)
        signed = self.signer.sign_transaction(tx)
        result = await self.broadcaster.broadcast(signed.raw_hex)
        return result.transaction_hash

    def _quote_result(
        self, request: QuoteRequest, amount: str, quote: SwapQuote, to_decimals: int
    ) -> SwapQuoteResult:
        return SwapQuoteResult(
            from_address=request.wallet_address,
            from_token=request.from_token,
            to_token=request.to_token,
            amount=str(amount).strip(),
            raw_amount=request.amount,
            estimated_return=format_units(quote.start_amount, to_decimals),
            estimated_return_min=format_units(quote.end_amount, to_decimals),
            estimated_return_avg=format_units(quote.avg_amount, to_decimals),
            network=self.chain.display_name,
            quote_id=quote.quote_id,
        )

    # ======================
    # Quote
    # ======================

    async def get_quote(self, from_token: str, to_token: str, amount: str) -> SwapQuoteResult:
        """Quote a swap of a human-readable ``amount`` of ``from_token``.

        Raises:
            InvalidInputError: Malformed token address or amount
            ExecutionFailedError: The order service rejected the quote
        """
        try:
            request, to_decimals = await self._prepare_request(from_token, to_token, amount)
            quote = await self.order_service.get_quote(request)
        except ChainAIError:
            self._transition(SwapState.FAILED)
            raise

        self._transition(SwapState.QUOTED)
        return self._quote_result(request, amount, quote, to_decimals)

    # ======================
    # Approval
    # ======================

    async def is_approval_required(self, token: str, amount: int) -> bool:
        """True when the spender's allowance on ``token`` is below ``amount``.

        Native-source swaps never need an approval.
        """
        if is_native_token(token):
            return False
        allowance = await read_allowance(
            self.rpc, token, self.signer.address, self.order_service.approval_spender
        )
        logger.debug(f"Allowance of {token} for {self.order_service.approval_spender}: {allowance}")
        return allowance < amount

    async def set_approval(self, token: str) -> str:
        """Approve the order-protocol spender for an unlimited amount.

        Blocks until the approval is mined.

        Returns:
            Approval transaction hash

        Raises:
            ExecutionFailedError: If the approval reverted
            RequestTimeoutError: If it was not mined in time
        """
        self._transition(SwapState.APPROVAL_PENDING)
        spender = self.order_service.approval_spender
        logger.info(f"Approving {spender} to spend {token} (unlimited)")

        tx_hash = await self._send_call(token, encode_approve(spender, MAX_UINT256))
        status = await self.broadcaster.wait_for_receipt(tx_hash)
        if status.status != TxStatus.SUCCESS:
            raise ExecutionFailedError(
                f"Approval transaction {tx_hash} reverted", cause=status.explorer_url
            )

        self._transition(SwapState.APPROVED)
        return tx_hash

    # ======================
    # Submission
    # ======================

    async def _submit_native(self, order: PreparedOrder) -> tuple[str, str]:
        """Register a native-source order and lock its funds on-chain."""
        maker = self.signer.address
        order_hash = await self.order_service.submit_native_order(order, maker)
        self._transition(SwapState.SUBMITTED)
        self._transition(SwapState.LOCK_PENDING)

        call = self.order_service.native_order_call(order, maker)
        tx_hash = None
        try:
            tx_hash = await self._send_call(call.to, call.data, value=call.value)
            status = await self.broadcaster.wait_for_receipt(tx_hash)
        except ChainAIError as e:
            raise NativeSwapFailedError(
                f"Native Transaction Failed: {e}", order_hash=order_hash, tx_hash=tx_hash
            ) from e

        if status.status != TxStatus.SUCCESS:
            raise NativeSwapFailedError(
                f"Native Transaction Failed: lock transaction {tx_hash} reverted",
                order_hash=order_hash,
                tx_hash=tx_hash,
            )
        return order_hash, tx_hash

    async def submit(self, from_token: str, to_token: str, amount: str) -> SwapOrderResult:
        """Approve if needed, then place the swap order.

        Raises:
            InvalidInputError: Malformed token address or amount
            ExecutionFailedError: Approval reverted or the service rejected
                the order
            NativeSwapFailedError: Native lock transaction failed after the
                service issued an order hash
        """
        try:
            request, to_decimals = await self._prepare_request(from_token, to_token, amount)

            approval_tx_hash = None
            if await self.is_approval_required(request.from_token, request.amount):
                approval_tx_hash = await self.set_approval(request.from_token)

            # Quote again: prices may have moved while the approval was mined
            order = await self.order_service.create_order(request)
            quote = order.quote or await self.order_service.get_quote(request)
            self._transition(SwapState.QUOTED)

            lock_tx_hash = None
            if order.is_native:
                order_hash, lock_tx_hash = await self._submit_native(order)
            else:
                order_hash = await self.order_service.submit_order(order, self.signer)
                self._transition(SwapState.SUBMITTED)
        except ChainAIError:
            self._transition(SwapState.FAILED)
            raise

        self._transition(SwapState.COMPLETED)
        logger.info(f"Swap order {order_hash} placed on {self.chain.display_name}")
        return SwapOrderResult(
            quote=self._quote_result(request, amount, quote, to_decimals),
            order_hash=order_hash,
            approval_tx_hash=approval_tx_hash,
            lock_tx_hash=lock_tx_hash,
        )

    # ======================
    # Status
    # ======================

    async def get_order_status(self, order_hash: str) -> OrderStatusInfo:
        """Look up a placed order by hash."""
        order_hash = require_tx_hash(order_hash, "Order hash")
        return await self.order_service.get_order_status(order_hash)
