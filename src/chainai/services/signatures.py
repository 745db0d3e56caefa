"""Offline signing operations.

None of these touch the network. Results carry the signer address and the
signature (or serialized transaction), never key material.
"""

import logging
from typing import Any

from chainai.errors import InvalidInputError
from chainai.signing.local import LocalSigner
from chainai.transactions.models import transaction_from_dict
from chainai.utils.validation import require_hex

logger = logging.getLogger(__name__)


def who_am_i(private_key: str) -> dict:
    """Address controlled by a private key."""
    signer = LocalSigner.from_private_key(private_key)
    return {"address": signer.address}


def sign_digest(private_key: str, digest: str) -> dict:
    """Sign a raw 32-byte hash with no prefix or envelope.

    A bare-digest signature can authorize anything the key controls,
    transactions included. Use sign_message unless the hash is known.
    """
    signer = LocalSigner.from_private_key(private_key)
    if not isinstance(digest, str) or not digest.startswith("0x"):
        raise InvalidInputError("Hash must be a valid 0x-prefixed hex string")
    signature = signer.sign_digest(require_hex(digest, "Hash"))
    return {"address": signer.address, "hash": digest, "signature": signature.to_hex()}


def sign_message(private_key: str, message: str, raw: bool = False) -> dict:
    """Sign an EIP-191 personal message (text, or 0x-hex when raw)."""
    signer = LocalSigner.from_private_key(private_key)
    signature = signer.sign_message(message, raw=raw)
    return {"address": signer.address, "signature": signature.to_hex()}


def sign_typed_data(private_key: str, typed_data: dict[str, Any]) -> dict:
    """Sign EIP-712 typed data."""
    signer = LocalSigner.from_private_key(private_key)
    signature = signer.sign_typed_data(typed_data)
    return {"address": signer.address, "signature": signature.to_hex()}


def sign_transaction(private_key: str, transaction: Any) -> dict:
    """Sign a JSON-shaped transaction of any supported variant.

    The result is ready to broadcast; callers should check to, value,
    data and chainId before signing.
    """
    signer = LocalSigner.from_private_key(private_key)
    tx = transaction_from_dict(transaction)
    signed = signer.sign_transaction(tx)
    logger.info(f"Signed transaction {signed.hash} from {signer.address}")
    return {
        "address": signer.address,
        "serializedTransaction": signed.raw_hex,
    }
