"""Abstract interface for the off-chain order-matching service."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from chainai.signing.base import SignerBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuoteRequest:
    """What to swap, in source-token base units."""
    from_token: str
    to_token: str
    amount: int
    wallet_address: str


@dataclass(frozen=True)
class SwapQuote:
    """Auction price range in destination-token base units."""

    start_amount: int
    end_amount: int
    quote_id: Optional[str] = None

    @property
    def avg_amount(self) -> int:
        """Midpoint of the auction range (integer division)."""
        return (self.start_amount + self.end_amount) // 2


@dataclass(frozen=True)
class ContractCall:
    """An on-chain call the caller must sign and send."""
    to: str
    data: bytes
    value: int = 0


@dataclass(frozen=True)
class PreparedOrder:
    """Order built by the service client, ready to sign and submit.

    Attributes:
        order: Wire form of the order struct
        extension: Hex-encoded order extension
        quote_id: Quote the order was built from
        order_hash: EIP-712 hash identifying the order
        typed_data: Full EIP-712 message the maker signs
        is_native: Source asset is the chain's native currency
        payload: Implementation-specific data (e.g. the built order object)
        quote: Auction range of the quote the order was built from
    """
    order: dict[str, str]
    extension: str
    quote_id: Optional[str]
    order_hash: str
    typed_data: dict[str, Any]
    is_native: bool = False
    payload: Any = None
    quote: Optional[SwapQuote] = None


def _str_or_none(value: Optional[int]) -> Optional[str]:
    return None if value is None else str(value)


class OrderStatus(str, Enum):
    """Order lifecycle after submission."""
    PENDING = "pending"
    FILLED = "filled"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class OrderFill:
    """One settlement transaction of an order."""
    tx_hash: str
    filled_maker_amount: Optional[int] = None
    filled_auction_taker_amount: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "txHash": self.tx_hash,
            "filledMakerAmount": _str_or_none(self.filled_maker_amount),
            "filledAuctionTakerAmount": _str_or_none(self.filled_auction_taker_amount),
        }


@dataclass(frozen=True)
class OrderStatusInfo:
    """Status of a submitted order.

    Filled orders carry their fills and the final destination amount;
    pending and cancelled orders carry neither.
    """
    order_hash: str
    status: OrderStatus
    raw_status: str
    created_at: int
    duration: int
    fills: tuple[OrderFill, ...] = field(default_factory=tuple)
    cancel_tx: Optional[str] = None
    final_to_amount: Optional[int] = None

    def to_dict(self) -> dict:
        """JSON-friendly form (big integers as strings)."""
        return {
            "orderHash": self.order_hash,
            "status": self.status.value,
            "rawStatus": self.raw_status,
            "createdAt": self.created_at,
            "duration": self.duration,
            "fills": [fill.to_dict() for fill in self.fills],
            "cancelTx": self.cancel_tx,
            "finalToAmount": _str_or_none(self.final_to_amount),
        }


class OrderService(ABC):
    """Off-chain order-matching service bound to one chain."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Service name identifier."""
        pass

    @property
    @abstractmethod
    def approval_spender(self) -> str:
        """Address that must hold an ERC-20 allowance for token-source orders."""
        pass

    @abstractmethod
    async def get_quote(self, request: QuoteRequest) -> SwapQuote:
        """Get the recommended auction preset for a swap.

        Raises:
            ExecutionFailedError: With the service's own description when it
                provides one
        """
        pass

    @abstractmethod
    async def create_order(self, request: QuoteRequest) -> PreparedOrder:
        """Build an order from a fresh quote."""
        pass

    @abstractmethod
    async def submit_order(self, order: PreparedOrder, signer: SignerBackend) -> str:
        """Sign and submit a token-source order. Returns the order hash."""
        pass

    @abstractmethod
    async def submit_native_order(self, order: PreparedOrder, maker: str) -> str:
        """Register a native-source order. Returns the order hash.

        No funds move; the caller must still send native_order_call().
        """
        pass

    @abstractmethod
    def native_order_call(self, order: PreparedOrder, maker: str) -> ContractCall:
        """On-chain call that locks the native funds of a native-source order."""
        pass

    @abstractmethod
    async def get_order_status(self, order_hash: str) -> OrderStatusInfo:
        """Look up an order by hash."""
        pass
