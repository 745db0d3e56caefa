"""Input validation helpers for addresses, hex strings and hashes."""

import re
from typing import Optional

from web3 import Web3

from chainai.errors import InvalidInputError

_HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")


def is_hex(value: Optional[str], strict: bool = True) -> bool:
    """Check for a 0x-prefixed hex string.

    With strict=True the payload must have an even number of digits.
    """
    if not isinstance(value, str) or not _HEX_RE.match(value):
        return False
    return not strict or len(value) % 2 == 0


def require_hex(value: Optional[str], field: str = "value") -> bytes:
    """Decode a 0x-prefixed hex string or raise InvalidInputError."""
    if not is_hex(value):
        raise InvalidInputError(f"{field} must be a valid 0x-prefixed hex string")
    return bytes.fromhex(value[2:])


def require_address(value: Optional[str], field: str = "address") -> str:
    """Validate an EVM address and return its checksummed form.

    Lowercase, uppercase and correctly checksummed addresses are accepted;
    a mixed-case address with a bad checksum is rejected.
    """
    if not isinstance(value, str) or not value.startswith("0x") or not Web3.is_address(value):
        raise InvalidInputError(f"{field} must be a valid 0x-prefixed address")
    return Web3.to_checksum_address(value)


def require_tx_hash(value: Optional[str], field: str = "Transaction hash") -> str:
    """Validate a 32-byte transaction hash."""
    if not is_hex(value):
        raise InvalidInputError(f"{field} must be a valid 0x-prefixed hex string")
    if len(value) != 66:
        raise InvalidInputError(
            f"{field} must be exactly 32 bytes (66 characters including 0x prefix)"
        )
    return value.lower()
