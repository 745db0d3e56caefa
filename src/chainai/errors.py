"""Error kinds surfaced to callers.

Every failure raised by this package is a ChainAIError carrying one of the
ErrorKind values. Callers map kinds to exit codes or retry policy:

- INVALID_INPUT: caller error, never retried
- EXECUTION_FAILED: node/service rejected the operation
- TIMEOUT: no response in time, safe to retry read-only steps
- NATIVE_SWAP_FAILED: native lock tx reverted after an order hash was issued
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Kind of failure."""
    INVALID_INPUT = "INVALID_INPUT"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    TIMEOUT = "TIMEOUT"
    NATIVE_SWAP_FAILED = "NATIVE_SWAP_FAILED"


class ChainAIError(Exception):
    """Base exception for all chainai failures."""

    kind: ErrorKind = ErrorKind.EXECUTION_FAILED

    def __str__(self) -> str:
        return f"{self.kind.value}: {super().__str__()}"


class InvalidInputError(ChainAIError):
    """Malformed address, amount, hash, key or JSON shape."""

    kind = ErrorKind.INVALID_INPUT


class InvalidKeyError(InvalidInputError):
    """Private key is not 0x-prefixed 32-byte hex."""
    pass


class InvalidDigestError(InvalidInputError):
    """Digest to sign is not exactly 32 bytes."""
    pass


class InvalidAmountError(InvalidInputError):
    """Amount is not a positive decimal."""
    pass


class UnsupportedNetworkError(InvalidInputError):
    """Network name or chain ID is not in the registry."""
    pass


class MalformedTransactionError(InvalidInputError):
    """Serialized transaction is truncated or inconsistent with its type."""
    pass


class ExecutionFailedError(ChainAIError):
    """Node, RPC or order service rejected the operation."""

    kind = ErrorKind.EXECUTION_FAILED

    def __init__(self, message: str, cause: Optional[str] = None):
        super().__init__(message)
        self.cause = cause


class RequestTimeoutError(ChainAIError, TimeoutError):
    """No response within the allowed time."""

    kind = ErrorKind.TIMEOUT


class NativeSwapFailedError(ChainAIError):
    """On-chain lock transaction of a native-asset swap failed.

    The order service already issued ``order_hash``, so an order may exist
    without locked funds. Needs manual reconciliation.
    """

    kind = ErrorKind.NATIVE_SWAP_FAILED

    def __init__(self, message: str, order_hash: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.order_hash = order_hash
        self.tx_hash = tx_hash
