"""Swap orchestration."""

from chainai.swap.orchestrator import (
    SwapOrchestrator,
    SwapOrderResult,
    SwapQuoteResult,
    SwapState,
)

__all__ = [
    "SwapOrchestrator",
    "SwapOrderResult",
    "SwapQuoteResult",
    "SwapState",
]
