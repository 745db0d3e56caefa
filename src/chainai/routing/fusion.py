"""1inch Fusion order service.

Quotes come from the Fusion quoter, orders are built and hashed locally
(see fusion_order) and submitted to the relayer, status is read back from
the orders API.
API docs: https://portal.1inch.dev/documentation/apis/fusion/introduction
"""

import logging
from datetime import datetime
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from chainai.chains import ChainDescriptor, is_native_token
from chainai.config import get_settings
from chainai.errors import ExecutionFailedError, RequestTimeoutError
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
from chainai.routing.fusion_models import OrderStatusResponse, QuoteResponse
from chainai.routing.fusion_order import (
    FusionOrder,
    build_fusion_order,
    encode_native_create,
    hash_order,
    native_signature,
    order_typed_data,
)
from chainai.signing.base import SignerBackend

logger = logging.getLogger(__name__)

QUOTER_VERSION = "v2.0"
RELAYER_VERSION = "v2.0"
ORDERS_VERSION = "v2.0"

# Service status vocabulary -> OrderStatus
STATUS_MAP = {
    "pending": OrderStatus.PENDING,
    "partially-filled": OrderStatus.PENDING,
    "filled": OrderStatus.FILLED,
    "fulfilled": OrderStatus.FILLED,
    "expired": OrderStatus.EXPIRED,
    "cancelled": OrderStatus.CANCELLED,
    "false-predicate": OrderStatus.CANCELLED,
    "not-enough-balance-or-allowance": OrderStatus.CANCELLED,
    "wrong-permit": OrderStatus.CANCELLED,
    "invalid-signature": OrderStatus.CANCELLED,
}


def map_order_status(raw_status: str) -> OrderStatus:
    """Map a service status string onto OrderStatus.

    Unknown values are treated as pending; the raw string is kept on the
    result so callers can still see it.
    """
    status = STATUS_MAP.get(raw_status.lower())
    if status is None:
        logger.warning(f"Unknown order status '{raw_status}', treating as pending")
        return OrderStatus.PENDING
    return status


def parse_timestamp(value: Optional[str]) -> int:
    """ISO-8601 timestamp to unix seconds (0 when absent)."""
    if not value:
        return 0
    try:
        return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())
    except ValueError as e:
        raise ExecutionFailedError(f"Order service returned a bad timestamp: {value}") from e


class FusionOrderService(OrderService):
    """1inch Fusion client bound to one chain."""

    def __init__(
        self,
        chain: ChainDescriptor,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        source: Optional[str] = None,
        approval_spender: Optional[str] = None,
        native_order_factory: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Fusion client.

        Args:
            chain: Chain the orders live on
            api_key: 1inch API key (sent as a bearer token when set)
            base_url: Fusion API root
            source: Source tag reported with quotes and orders
            approval_spender: Router that pulls ERC-20 funds (also the
                EIP-712 verifying contract)
            native_order_factory: Contract that locks native funds
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)

        Unset arguments fall back to application settings.
        """
        settings = get_settings()
        self.chain = chain
        self.api_key = api_key if api_key is not None else settings.oneinch_api_key
        self.base_url = (base_url or settings.fusion_api_url).rstrip("/")
        self.source = source or settings.order_source
        self._approval_spender = approval_spender or settings.approval_spender
        self.native_order_factory = native_order_factory or settings.native_order_factory
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return f"1inch Fusion ({self.chain.display_name})"

    @property
    def approval_spender(self) -> str:
        return self._approval_spender

    def _get_headers(self) -> dict:
        """Get API headers with authorization."""
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        """Send one API request and return the decoded JSON body (or None).

        Raises:
            RequestTimeoutError: If the service does not answer in time
            ExecutionFailedError: On transport failure or non-2xx status,
                carrying the service's ``description`` when present
        """
        url = f"{self.base_url}/{path}"
        logger.debug(f"Fusion {method} {url}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method, url, headers=self._get_headers(), params=params, json=json
                )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"Fusion API timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ExecutionFailedError(f"Fusion API request failed: {e}", cause=str(e)) from e

        if not response.is_success:
            description = self._error_description(response)
            logger.warning(f"Fusion API error: {response.status_code} - {response.text}")
            if description:
                raise ExecutionFailedError(description, cause=response.text)
            raise ExecutionFailedError(
                f"Fusion API error: HTTP {response.status_code}", cause=response.text
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ExecutionFailedError("Fusion API returned invalid JSON") from e

    @staticmethod
    def _error_description(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and body.get("description"):
            return str(body["description"])
        return None

    # ======================
    # Quotes
    # ======================

    async def _fetch_quote(self, request: QuoteRequest, enable_estimate: bool) -> QuoteResponse:
        data = await self._request(
            "GET",
            f"quoter/{QUOTER_VERSION}/{self.chain.chain_id}/quote/receive",
            params={
                "fromTokenAddress": request.from_token,
                "toTokenAddress": request.to_token,
                "amount": str(request.amount),
                "walletAddress": request.wallet_address,
                "enableEstimate": "true" if enable_estimate else "false",
                "isPermit2": "false",
                "source": self.source,
            },
        )
        try:
            return QuoteResponse.model_validate(data)
        except ValidationError as e:
            raise ExecutionFailedError("Fusion quote response is malformed", cause=str(e)) from e

    async def get_quote(self, request: QuoteRequest) -> SwapQuote:
        quote = await self._fetch_quote(request, enable_estimate=False)
        preset = quote.preset
        logger.info(
            f"Fusion quote {request.from_token} -> {request.to_token}: "
            f"{preset.auction_start_amount}..{preset.auction_end_amount}"
        )
        return SwapQuote(
            start_amount=preset.auction_start_amount,
            end_amount=preset.auction_end_amount,
            quote_id=quote.quote_id,
        )

    # ======================
    # Orders
    # ======================

    async def create_order(self, request: QuoteRequest) -> PreparedOrder:
        quote = await self._fetch_quote(request, enable_estimate=True)
        if not quote.quote_id:
            raise ExecutionFailedError("Fusion quote has no quote id; cannot place an order")

        is_native = is_native_token(request.from_token)
        maker_asset = self.chain.wrapped_native if is_native else request.from_token

        try:
            built = build_fusion_order(
                quote,
                maker=request.wallet_address,
                maker_asset=maker_asset,
                taker_asset=request.to_token,
                making_amount=request.amount,
            )
        except ValueError as e:
            raise ExecutionFailedError(f"Cannot build order from quote: {e}") from e

        verifying_contract = self._approval_spender
        prepared = PreparedOrder(
            order=built.order.to_wire(),
            extension=built.extension_hex,
            quote_id=quote.quote_id,
            order_hash=hash_order(built.order, self.chain.chain_id, verifying_contract),
            typed_data=order_typed_data(built.order, self.chain.chain_id, verifying_contract),
            is_native=is_native,
            payload=built,
            quote=SwapQuote(
                start_amount=quote.preset.auction_start_amount,
                end_amount=quote.preset.auction_end_amount,
                quote_id=quote.quote_id,
            ),
        )
        logger.info(f"Prepared Fusion order {prepared.order_hash} (native={is_native})")
        return prepared

    async def _submit(self, order: PreparedOrder, signature: str) -> str:
        await self._request(
            "POST",
            f"relayer/{RELAYER_VERSION}/{self.chain.chain_id}/order/submit",
            json={
                "order": order.order,
                "signature": signature,
                "extension": order.extension,
                "quoteId": order.quote_id,
            },
        )
        return order.order_hash

    async def submit_order(self, order: PreparedOrder, signer: SignerBackend) -> str:
        if order.is_native:
            raise ExecutionFailedError("Native-source orders must use submit_native_order")
        signature = signer.sign_typed_data(order.typed_data)
        submitted_hash = await self._submit(order, signature.to_hex())
        logger.info(f"Submitted Fusion order {submitted_hash}")
        return submitted_hash

    async def submit_native_order(self, order: PreparedOrder, maker: str) -> str:
        built = self._native_payload(order, maker)
        submitted_hash = await self._submit(order, native_signature(built.order, maker))
        logger.info(f"Registered native Fusion order {submitted_hash} for {maker}")
        return submitted_hash

    def _native_payload(self, order: PreparedOrder, maker: str) -> FusionOrder:
        built: FusionOrder = order.payload
        if not isinstance(built, FusionOrder):
            raise ExecutionFailedError("Prepared order was not built by this service")
        if built.order.maker.lower() != maker.lower():
            raise ExecutionFailedError(f"Order maker {built.order.maker} does not match {maker}")
        return built

    def native_order_call(self, order: PreparedOrder, maker: str) -> ContractCall:
        built = self._native_payload(order, maker)
        return encode_native_create(built.order, self.native_order_factory)

    # ======================
    # Status
    # ======================

    async def get_order_status(self, order_hash: str) -> OrderStatusInfo:
        data = await self._request(
            "GET",
            f"orders/{ORDERS_VERSION}/{self.chain.chain_id}/order/status/{order_hash}",
        )
        try:
            response = OrderStatusResponse.model_validate(data)
        except ValidationError as e:
            raise ExecutionFailedError("Fusion status response is malformed", cause=str(e)) from e

        status = map_order_status(response.status)
        fills: tuple[OrderFill, ...] = ()
        final_to_amount = None

        if status in (OrderStatus.FILLED, OrderStatus.EXPIRED):
            fills = tuple(
                OrderFill(
                    tx_hash=fill.tx_hash,
                    filled_maker_amount=fill.filled_maker_amount,
                    filled_auction_taker_amount=fill.filled_auction_taker_amount,
                )
                for fill in response.fills
            )
        if status == OrderStatus.FILLED and fills:
            final_to_amount = fills[0].filled_auction_taker_amount

        return OrderStatusInfo(
            order_hash=response.order_hash or order_hash,
            status=status,
            raw_status=response.status,
            created_at=parse_timestamp(response.created_at),
            duration=response.auction_duration,
            fills=fills,
            cancel_tx=response.cancel_tx,
            final_to_amount=final_to_amount,
        )
