"""Base interfaces for signing.

Signing flow:
1. Build unsigned transaction (or message / typed data)
2. Hash the signing payload
3. Signer returns signature components (never the private key)
4. Apply signature to the payload
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from chainai.transactions.models import SignedTransaction, UnsignedTransaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Signature:
    """secp256k1 signature.

    Attributes:
        r: R component
        s: S component
        y_parity: Recovery id (0 or 1)
    """
    r: int
    s: int
    y_parity: int

    @property
    def v(self) -> int:
        """Ethereum ``v`` for message signatures (27 or 28)."""
        return self.y_parity + 27

    def to_bytes(self) -> bytes:
        """65-byte r || s || v encoding."""
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + bytes([self.v])

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()


class SignerBackend(ABC):
    """Abstract base class for signers.

    Implementations should NEVER expose raw private keys.
    All signing operations return signatures only.
    """

    @property
    @abstractmethod
    def address(self) -> str:
        """Checksummed address of the signing key."""
        pass

    @abstractmethod
    def sign_digest(self, digest: bytes) -> Signature:
        """Sign a 32-byte digest with no prefix or envelope."""
        pass

    @abstractmethod
    def sign_message(self, message: str, raw: bool = False) -> Signature:
        """Sign an EIP-191 personal message."""
        pass

    @abstractmethod
    def sign_typed_data(self, typed_data: dict[str, Any]) -> Signature:
        """Sign EIP-712 structured data."""
        pass

    @abstractmethod
    def sign_transaction(self, tx: UnsignedTransaction) -> SignedTransaction:
        """Sign a transaction and return its canonical signed form."""
        pass

    def __repr__(self) -> str:
        # Never include key material
        return f"{self.__class__.__name__}(address={self.address})"
