"""Tests for the swap orchestrator."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_abi import decode as abi_decode

from chainai.errors import (
    ErrorKind,
    ExecutionFailedError,
    InvalidInputError,
    NativeSwapFailedError,
    RequestTimeoutError,
)
from chainai.routing.base import (
    ContractCall,
    OrderFill,
    OrderService,
    OrderStatus,
    OrderStatusInfo,
    PreparedOrder,
    QuoteRequest,
    SwapQuote,
)
from chainai.rpc import FeeEstimate, RpcClient
from chainai.swap.orchestrator import SwapOrchestrator, SwapState
from chainai.tokens import ALLOWANCE_SELECTOR, APPROVE_SELECTOR, DECIMALS_SELECTOR, MAX_UINT256
from chainai.transactions.broadcaster import BroadcastResult, Broadcaster, TransactionStatus, TxStatus
from chainai.transactions.builder import TransactionBuilder
from chainai.transactions.codec import deserialize

from conftest import GWEI, NATIVE, TEST_ADDRESS, USDC, WETH

SPENDER = "0x111111125421cA6dc452d289314280a0f8842A65"
FACTORY = "0xa562172dd87480687debca1cd7ab6a309919e9a8"
ORDER_HASH = "0x" + "cd" * 32
APPROVAL_HASH = "0x" + "a1" * 32
LOCK_HASH = "0x" + "b2" * 32
# Quote attached to the prepared order: 0.05 .. 0.04 of an 18-decimal token
FRESH_QUOTE = SwapQuote(start_amount=5 * 10**16, end_amount=4 * 10**16, quote_id="q-2")

DECIMALS = {USDC.lower(): 6, WETH.lower(): 18}


def make_rpc(allowance: int = 0) -> MagicMock:
    rpc = MagicMock(spec=RpcClient)
    rpc.get_transaction_count = AsyncMock(return_value=3)
    rpc.estimate_fees = AsyncMock(
        return_value=FeeEstimate(max_fee_per_gas=30 * GWEI, max_priority_fee_per_gas=GWEI)
    )
    rpc.estimate_gas = AsyncMock(return_value=60000)

    async def call(to, data):
        selector = bytes.fromhex(data[2:10])
        if selector == DECIMALS_SELECTOR:
            return DECIMALS[to.lower()].to_bytes(32, "big")
        if selector == ALLOWANCE_SELECTOR:
            return allowance.to_bytes(32, "big")
        raise AssertionError(f"unexpected call {data}")

    rpc.call = AsyncMock(side_effect=call)
    return rpc


def make_order_service(events: list, is_native: bool = False, order_quote=FRESH_QUOTE) -> MagicMock:
    service = MagicMock(spec=OrderService)
    service.approval_spender = SPENDER
    service.get_quote = AsyncMock(
        return_value=SwapQuote(start_amount=1500000000, end_amount=1400000000, quote_id="q-1")
    )

    async def create_order(request):
        events.append("create_order")
        return PreparedOrder(
            order={"maker": TEST_ADDRESS},
            extension="0x",
            quote_id="q-2",
            order_hash=ORDER_HASH,
            typed_data={},
            is_native=is_native,
            quote=order_quote,
        )

    async def submit_order(order, signer):
        events.append("submit_order")
        return ORDER_HASH

    async def submit_native_order(order, maker):
        events.append("submit_native_order")
        return ORDER_HASH

    service.create_order = AsyncMock(side_effect=create_order)
    service.submit_order = AsyncMock(side_effect=submit_order)
    service.submit_native_order = AsyncMock(side_effect=submit_native_order)
    service.native_order_call = MagicMock(
        return_value=ContractCall(to=FACTORY, data=b"\x01\x02", value=10**18)
    )
    return service


def make_broadcaster(events: list, chain, tx_hashes=(APPROVAL_HASH,), status=TxStatus.SUCCESS) -> MagicMock:
    broadcaster = MagicMock(spec=Broadcaster)
    hashes = iter(tx_hashes)
    broadcaster.raw = []

    async def broadcast(serialized_tx):
        events.append("broadcast")
        broadcaster.raw.append(serialized_tx)
        tx_hash = next(hashes)
        return BroadcastResult(
            transaction_hash=tx_hash, network=chain.display_name,
            explorer_url=chain.explorer_tx_url(tx_hash),
        )

    async def wait_for_receipt(tx_hash, timeout=None, poll_interval=None):
        events.append("receipt")
        return TransactionStatus(
            transaction_hash=tx_hash, status=status, network=chain.display_name,
            explorer_url=chain.explorer_tx_url(tx_hash),
        )

    broadcaster.broadcast = AsyncMock(side_effect=broadcast)
    broadcaster.wait_for_receipt = AsyncMock(side_effect=wait_for_receipt)
    return broadcaster


def make_orchestrator(signer, chain, rpc, service, broadcaster) -> SwapOrchestrator:
    return SwapOrchestrator(
        rpc=rpc,
        signer=signer,
        order_service=service,
        chain=chain,
        builder=TransactionBuilder(rpc, chain),
        broadcaster=broadcaster,
    )


class TestQuote:
    """Tests for SwapOrchestrator.get_quote."""

    @pytest.mark.asyncio
    async def test_formats_destination_units(self, signer, eth_chain):
        events = []
        rpc = make_rpc()
        service = make_order_service(events)
        orchestrator = make_orchestrator(signer, eth_chain, rpc, service, make_broadcaster(events, eth_chain))

        result = await orchestrator.get_quote(WETH, USDC, "1")

        assert result.estimated_return == "1500"
        assert result.estimated_return_min == "1400"
        assert result.estimated_return_avg == "1450"
        assert result.amount == "1"
        assert result.raw_amount == 10**18
        assert result.from_address == TEST_ADDRESS
        assert result.to_dict()["from"] == TEST_ADDRESS
        assert result.to_dict()["quoteId"] == "q-1"
        assert orchestrator.state == SwapState.QUOTED

        service.get_quote.assert_awaited_once_with(
            QuoteRequest(from_token=WETH, to_token=USDC, amount=10**18, wallet_address=TEST_ADDRESS)
        )
        # Both decimals() reads happened
        assert rpc.call.await_count == 2

    @pytest.mark.asyncio
    async def test_native_source_decimals(self, signer, eth_chain):
        """Native decimals come from the chain, not from a contract."""
        events = []
        rpc = make_rpc()
        orchestrator = make_orchestrator(
            signer, eth_chain, rpc, make_order_service(events), make_broadcaster(events, eth_chain)
        )

        result = await orchestrator.get_quote(NATIVE, USDC, "0.5")

        assert result.amount == "0.5"
        assert result.raw_amount == 5 * 10**17
        assert rpc.call.await_count == 1

    @pytest.mark.asyncio
    async def test_service_error_propagates(self, signer, eth_chain):
        events = []
        service = make_order_service(events)
        service.get_quote = AsyncMock(side_effect=ExecutionFailedError("insufficient liquidity"))
        orchestrator = make_orchestrator(
            signer, eth_chain, make_rpc(), service, make_broadcaster(events, eth_chain)
        )

        with pytest.raises(ExecutionFailedError, match="insufficient liquidity"):
            await orchestrator.get_quote(WETH, USDC, "1")

        assert orchestrator.state == SwapState.FAILED

    @pytest.mark.asyncio
    async def test_bad_amount(self, signer, eth_chain):
        events = []
        rpc = make_rpc()
        orchestrator = make_orchestrator(
            signer, eth_chain, rpc, make_order_service(events), make_broadcaster(events, eth_chain)
        )

        with pytest.raises(InvalidInputError):
            await orchestrator.get_quote(WETH, USDC, "zero")

        rpc.call.assert_not_awaited()


class TestApproval:
    """Tests for the approval flow."""

    @pytest.mark.asyncio
    async def test_required_when_allowance_low(self, signer, eth_chain):
        events = []
        orchestrator = make_orchestrator(
            signer, eth_chain, make_rpc(allowance=10), make_order_service(events),
            make_broadcaster(events, eth_chain),
        )

        assert await orchestrator.is_approval_required(USDC, 11) is True
        assert await orchestrator.is_approval_required(USDC, 10) is False

    @pytest.mark.asyncio
    async def test_native_never_requires_approval(self, signer, eth_chain):
        events = []
        rpc = make_rpc()
        orchestrator = make_orchestrator(
            signer, eth_chain, rpc, make_order_service(events), make_broadcaster(events, eth_chain)
        )

        assert await orchestrator.is_approval_required(NATIVE, 10**18) is False
        rpc.call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_submit_with_approval(self, signer, eth_chain):
        """Low allowance: exactly one approval broadcast, mined before the order."""
        events = []
        service = make_order_service(events)
        broadcaster = make_broadcaster(events, eth_chain)
        orchestrator = make_orchestrator(signer, eth_chain, make_rpc(allowance=0), service, broadcaster)

        result = await orchestrator.submit(USDC, WETH, "100")

        assert result.order_hash == ORDER_HASH
        assert result.approval_tx_hash == APPROVAL_HASH
        assert result.lock_tx_hash is None
        assert events == ["broadcast", "receipt", "create_order", "submit_order"]
        assert orchestrator.state == SwapState.COMPLETED

        # Unlimited approval to the protocol spender
        approval = deserialize(broadcaster.raw[0]).transaction
        assert approval.to == USDC
        assert approval.data[:4] == APPROVE_SELECTOR
        spender, amount = abi_decode(["address", "uint256"], approval.data[4:])
        assert spender.lower() == SPENDER.lower()
        assert amount == MAX_UINT256

        request = service.create_order.await_args.args[0]
        assert request.amount == 100000000

    @pytest.mark.asyncio
    async def test_submit_result_reports_fresh_quote(self, signer, eth_chain):
        """The order result carries the quote the order was built from."""
        events = []
        service = make_order_service(events)
        orchestrator = make_orchestrator(
            signer, eth_chain, make_rpc(allowance=MAX_UINT256), service,
            make_broadcaster(events, eth_chain),
        )

        result = (await orchestrator.submit(USDC, WETH, "100")).to_dict()

        assert result == {
            "from": TEST_ADDRESS,
            "fromToken": USDC,
            "toToken": WETH,
            "amount": "100",
            "rawAmount": "100000000",
            "estimatedReturn": "0.05",
            "estimatedReturnMin": "0.04",
            "estimatedReturnAvg": "0.045",
            "network": "Ethereum",
            "quoteId": "q-2",
            "orderHash": ORDER_HASH,
            "approvalTxHash": None,
            "lockTxHash": None,
        }
        service.get_quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_submit_requotes_when_order_has_no_quote(self, signer, eth_chain):
        events = []
        service = make_order_service(events, order_quote=None)
        orchestrator = make_orchestrator(
            signer, eth_chain, make_rpc(allowance=MAX_UINT256), service,
            make_broadcaster(events, eth_chain),
        )

        result = await orchestrator.submit(USDC, WETH, "100")

        service.get_quote.assert_awaited_once()
        assert result.quote.quote_id == "q-1"
        assert result.quote.estimated_return == "0.0000000015"

    @pytest.mark.asyncio
    async def test_submit_without_approval(self, signer, eth_chain):
        """Sufficient allowance: no broadcasts and a null approval hash."""
        events = []
        broadcaster = make_broadcaster(events, eth_chain)
        orchestrator = make_orchestrator(
            signer, eth_chain, make_rpc(allowance=MAX_UINT256), make_order_service(events), broadcaster
        )

        result = await orchestrator.submit(USDC, WETH, "100")

        assert result.approval_tx_hash is None
        assert result.to_dict()["approvalTxHash"] is None
        broadcaster.broadcast.assert_not_awaited()
        assert events == ["create_order", "submit_order"]

    @pytest.mark.asyncio
    async def test_approval_revert_is_fatal(self, signer, eth_chain):
        events = []
        service = make_order_service(events)
        orchestrator = make_orchestrator(
            signer, eth_chain, make_rpc(allowance=0), service,
            make_broadcaster(events, eth_chain, status=TxStatus.REVERTED),
        )

        with pytest.raises(ExecutionFailedError, match="reverted"):
            await orchestrator.submit(USDC, WETH, "100")

        service.create_order.assert_not_awaited()
        assert orchestrator.state == SwapState.FAILED


class TestNativeSubmit:
    """Tests for the native-source submission path."""

    @pytest.mark.asyncio
    async def test_lock_confirmed(self, signer, eth_chain):
        events = []
        service = make_order_service(events, is_native=True)
        broadcaster = make_broadcaster(events, eth_chain, tx_hashes=(LOCK_HASH,))
        orchestrator = make_orchestrator(signer, eth_chain, make_rpc(), service, broadcaster)

        result = await orchestrator.submit(NATIVE, USDC, "1")

        assert result.order_hash == ORDER_HASH
        assert result.lock_tx_hash == LOCK_HASH
        assert result.approval_tx_hash is None
        assert events == ["create_order", "submit_native_order", "broadcast", "receipt"]
        service.submit_order.assert_not_awaited()
        service.native_order_call.assert_called_once()

        lock = deserialize(broadcaster.raw[0]).transaction
        assert lock.to.lower() == FACTORY
        assert lock.value == 10**18
        assert lock.data == b"\x01\x02"

    @pytest.mark.asyncio
    async def test_lock_reverted(self, signer, eth_chain):
        """A reverted lock fails the swap even though an order hash exists."""
        events = []
        orchestrator = make_orchestrator(
            signer, eth_chain, make_rpc(), make_order_service(events, is_native=True),
            make_broadcaster(events, eth_chain, tx_hashes=(LOCK_HASH,), status=TxStatus.REVERTED),
        )

        with pytest.raises(NativeSwapFailedError) as exc_info:
            await orchestrator.submit(NATIVE, USDC, "1")

        assert exc_info.value.kind == ErrorKind.NATIVE_SWAP_FAILED
        assert exc_info.value.order_hash == ORDER_HASH
        assert exc_info.value.tx_hash == LOCK_HASH
        assert "Native Transaction Failed" in str(exc_info.value)
        assert orchestrator.state == SwapState.FAILED

    @pytest.mark.asyncio
    async def test_lock_timeout(self, signer, eth_chain):
        """An unconfirmed lock is reported with the order hash for reconciliation."""
        events = []
        broadcaster = make_broadcaster(events, eth_chain, tx_hashes=(LOCK_HASH,))
        broadcaster.wait_for_receipt = AsyncMock(side_effect=RequestTimeoutError("not mined"))
        orchestrator = make_orchestrator(
            signer, eth_chain, make_rpc(), make_order_service(events, is_native=True), broadcaster
        )

        with pytest.raises(NativeSwapFailedError) as exc_info:
            await orchestrator.submit(NATIVE, USDC, "1")

        assert exc_info.value.order_hash == ORDER_HASH
        assert exc_info.value.tx_hash == LOCK_HASH


class TestOrderStatus:
    """Tests for status passthrough."""

    @pytest.mark.asyncio
    async def test_status(self, signer, eth_chain):
        events = []
        service = make_order_service(events)
        service.get_order_status = AsyncMock(
            return_value=OrderStatusInfo(
                order_hash=ORDER_HASH, status=OrderStatus.FILLED, raw_status="fulfilled",
                created_at=1704067200, duration=180,
                fills=(OrderFill(tx_hash=LOCK_HASH, filled_auction_taker_amount=1450000000),),
                final_to_amount=1450000000,
            )
        )
        orchestrator = make_orchestrator(
            signer, eth_chain, make_rpc(), service, make_broadcaster(events, eth_chain)
        )

        info = await orchestrator.get_order_status(ORDER_HASH.upper().replace("0X", "0x"))

        assert info.to_dict()["status"] == "filled"
        service.get_order_status.assert_awaited_once_with(ORDER_HASH)

    @pytest.mark.asyncio
    async def test_bad_hash(self, signer, eth_chain):
        events = []
        orchestrator = make_orchestrator(
            signer, eth_chain, make_rpc(), make_order_service(events), make_broadcaster(events, eth_chain)
        )

        with pytest.raises(InvalidInputError):
            await orchestrator.get_order_status("0x1234")
