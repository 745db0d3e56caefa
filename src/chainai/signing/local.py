"""Local signing backend.

Wraps a raw private key supplied at call time. The key lives only for the
lifetime of the signer object; it is never persisted and never logged.
"""

import logging
import re
from typing import Any

from eth_account.messages import encode_defunct, encode_typed_data
from eth_keys import keys
from eth_keys.constants import SECPK1_N
from eth_keys.exceptions import ValidationError
from eth_utils import keccak

from chainai.errors import InvalidDigestError, InvalidInputError, InvalidKeyError
from chainai.signing.base import Signature, SignerBackend
from chainai.transactions.codec import attach_signature, signing_hash
from chainai.transactions.models import SignedTransaction, UnsignedTransaction
from chainai.utils.validation import is_hex

logger = logging.getLogger(__name__)

_PRIVATE_KEY_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


class LocalSigner(SignerBackend):
    """Signer backed by an in-memory secp256k1 private key."""

    def __init__(self, private_key: keys.PrivateKey):
        self._key = private_key
        self._address = private_key.public_key.to_checksum_address()

    @classmethod
    def from_private_key(cls, private_key: str) -> "LocalSigner":
        """Create a signer from a 0x-prefixed 32-byte hex key.

        Raises:
            InvalidKeyError: If the key is missing, unprefixed, of the wrong
                length, or outside the curve order
        """
        if not isinstance(private_key, str) or not private_key.startswith("0x"):
            raise InvalidKeyError("Private key must be a hex string starting with 0x")
        if not _PRIVATE_KEY_RE.match(private_key):
            raise InvalidKeyError("Private key must be 32 bytes (64 hex characters)")

        key_bytes = bytes.fromhex(private_key[2:])
        if not 0 < int.from_bytes(key_bytes, "big") < SECPK1_N:
            raise InvalidKeyError("Private key is outside the secp256k1 range")

        try:
            key = keys.PrivateKey(key_bytes)
        except ValidationError as e:
            raise InvalidKeyError(f"Invalid private key: {e}") from None

        return cls(key)

    @property
    def address(self) -> str:
        return self._address

    def sign_digest(self, digest: bytes) -> Signature:
        """Sign a raw 32-byte hash.

        Signatures over bare digests can authorize anything, including
        transactions. Prefer sign_message where possible.
        """
        if not isinstance(digest, (bytes, bytearray)) or len(digest) != 32:
            raise InvalidDigestError("Hash must be exactly 32 bytes (64 hex characters)")

        sig = self._key.sign_msg_hash(bytes(digest))
        return Signature(r=sig.r, s=sig.s, y_parity=sig.v)

    def sign_message(self, message: str, raw: bool = False) -> Signature:
        """Sign a personal message (EIP-191 version 0x45).

        Args:
            message: Text, or 0x-hex when raw=True
            raw: Treat message as hex-encoded bytes
        """
        if raw:
            if not is_hex(message):
                raise InvalidInputError("Raw message must be a valid 0x-prefixed hex string")
            signable = encode_defunct(hexstr=message)
        else:
            if not isinstance(message, str) or not message:
                raise InvalidInputError("Message is required")
            signable = encode_defunct(text=message)

        return self._sign_signable(signable)

    def sign_typed_data(self, typed_data: dict[str, Any]) -> Signature:
        """Sign EIP-712 typed data given as a full message.

        The mapping holds ``types`` (including EIP712Domain), ``domain``,
        ``primaryType`` and ``message``.
        """
        if not isinstance(typed_data, dict):
            raise InvalidInputError("Typed data must be an object")
        for name in ("types", "domain", "primaryType", "message"):
            if name not in typed_data:
                raise InvalidInputError(f"Typed data is missing '{name}'")

        try:
            signable = encode_typed_data(full_message=typed_data)
        except (TypeError, ValueError, KeyError) as e:
            raise InvalidInputError(f"Invalid typed data: {e}") from e

        return self._sign_signable(signable)

    def _sign_signable(self, signable) -> Signature:
        digest = keccak(b"\x19" + signable.version + signable.header + signable.body)
        return self.sign_digest(digest)

    def sign_transaction(self, tx: UnsignedTransaction) -> SignedTransaction:
        """Sign a transaction. The input is immutable and left untouched."""
        sig = self.sign_digest(signing_hash(tx))
        signed = attach_signature(tx, sig.y_parity, sig.r, sig.s)
        logger.debug(f"Signed type-{tx.type:d} transaction {signed.hash} for {self.address}")
        return signed

