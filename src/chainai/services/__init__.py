"""Caller-facing operations.

Each operation builds its own ChainContext and returns a JSON-friendly dict.
"""

from chainai.services.context import ChainContext, build_context
from chainai.services.signatures import (
    sign_digest,
    sign_message,
    sign_transaction,
    sign_typed_data,
    who_am_i,
)
from chainai.services.swaps import get_swap_quote, submit_swap_order, swap_order_status
from chainai.services.transfers import broadcast, send, tx_status

__all__ = [
    "ChainContext",
    "build_context",
    "broadcast",
    "get_swap_quote",
    "send",
    "sign_digest",
    "sign_message",
    "sign_transaction",
    "sign_typed_data",
    "submit_swap_order",
    "swap_order_status",
    "tx_status",
    "who_am_i",
]
