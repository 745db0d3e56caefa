"""Utility modules for chainai."""

from chainai.utils.units import format_units, parse_amount, parse_units
from chainai.utils.validation import (
    require_address,
    require_hex,
    require_tx_hash,
)

__all__ = [
    "format_units",
    "parse_amount",
    "parse_units",
    "require_address",
    "require_hex",
    "require_tx_hash",
]
