"""Order-matching service integrations."""

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
from chainai.routing.fusion import FusionOrderService

__all__ = [
    "ContractCall",
    "FusionOrderService",
    "OrderFill",
    "OrderService",
    "OrderStatus",
    "OrderStatusInfo",
    "PreparedOrder",
    "QuoteRequest",
    "SwapQuote",
]
