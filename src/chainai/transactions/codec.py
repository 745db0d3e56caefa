"""Canonical byte encoding of EVM transactions.

Legacy transactions are a flat RLP list; EIP-155 replay protection folds
the chain ID into ``v``. Typed transactions (EIP-2718) are a single type
byte followed by the RLP list of their fields:

    0x01 || rlp([chainId, nonce, gasPrice, gas, to, value, data, accessList, yParity, r, s])
    0x02 || rlp([chainId, nonce, maxPriorityFeePerGas, maxFeePerGas, gas, to,
                 value, data, accessList, yParity, r, s])

Signing payloads are the same encodings without the signature fields
(legacy EIP-155 appends ``chainId, 0, 0`` instead).
"""

import logging
from typing import Union

import rlp
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import keccak, to_checksum_address
from rlp.exceptions import DecodingError, DeserializationError
from rlp.sedes import big_endian_int

from chainai.errors import InvalidInputError, MalformedTransactionError
from chainai.transactions.models import (
    AccessListItem,
    AccessListTransaction,
    LegacyTransaction,
    PriorityFeeTransaction,
    SignedTransaction,
    TransactionType,
    UnsignedTransaction,
)

logger = logging.getLogger(__name__)

_LEGACY_FIELD_COUNT = 9
_TYPED_FIELD_COUNT = {
    TransactionType.ACCESS_LIST: 11,
    TransactionType.PRIORITY_FEE: 12,
}


# ======================
# Field encoding
# ======================

def _to_bytes(address) -> bytes:
    return b"" if address is None else bytes.fromhex(address[2:])


def _access_list_fields(items) -> list:
    return [
        [bytes.fromhex(item.address[2:]), [bytes.fromhex(k[2:]) for k in item.storage_keys]]
        for item in items
    ]


def _unsigned_fields(tx: UnsignedTransaction) -> list:
    """RLP field list of a transaction without signature."""
    if isinstance(tx, LegacyTransaction):
        return [tx.nonce, tx.gas_price, tx.gas, _to_bytes(tx.to), tx.value, tx.data]

    if isinstance(tx, AccessListTransaction):
        return [
            tx.chain_id, tx.nonce, tx.gas_price, tx.gas, _to_bytes(tx.to),
            tx.value, tx.data, _access_list_fields(tx.access_list),
        ]

    if isinstance(tx, PriorityFeeTransaction):
        return [
            tx.chain_id, tx.nonce, tx.max_priority_fee_per_gas, tx.max_fee_per_gas,
            tx.gas, _to_bytes(tx.to), tx.value, tx.data,
            _access_list_fields(tx.access_list),
        ]

    raise TypeError(f"Not a transaction: {type(tx).__name__}")


def _envelope(tx_type: TransactionType, fields: list) -> bytes:
    payload = rlp.encode(fields)
    if tx_type == TransactionType.LEGACY:
        return payload
    return bytes([tx_type]) + payload


def signing_payload(tx: UnsignedTransaction) -> bytes:
    """Bytes whose keccak hash is signed."""
    fields = _unsigned_fields(tx)
    if isinstance(tx, LegacyTransaction) and tx.chain_id:
        fields += [tx.chain_id, 0, 0]
    return _envelope(tx.type, fields)


def signing_hash(tx: UnsignedTransaction) -> bytes:
    """32-byte digest to sign for a transaction."""
    return keccak(signing_payload(tx))


def legacy_v(chain_id: int, y_parity: int) -> int:
    """EIP-155 ``v`` (or 27/28 when chain_id is 0)."""
    if chain_id:
        return y_parity + 35 + 2 * chain_id
    return y_parity + 27


# ======================
# Serialize
# ======================

def serialize(tx: Union[UnsignedTransaction, SignedTransaction]) -> bytes:
    """Canonical encoding of an unsigned or signed transaction.

    Unsigned transactions encode to their signing payload.
    """
    if not isinstance(tx, SignedTransaction):
        return signing_payload(tx)

    fields = _unsigned_fields(tx.transaction) + [tx.v, tx.r, tx.s]
    return _envelope(tx.type, fields)


def attach_signature(tx: UnsignedTransaction, y_parity: int, r: int, s: int) -> SignedTransaction:
    """Combine a transaction with a signature into a SignedTransaction."""
    if y_parity not in (0, 1):
        raise ValueError(f"y_parity must be 0 or 1, got {y_parity}")

    v = legacy_v(tx.chain_id, y_parity) if tx.type == TransactionType.LEGACY else y_parity
    fields = _unsigned_fields(tx) + [v, r, s]
    return SignedTransaction(
        transaction=tx,
        v=v,
        r=r,
        s=s,
        raw=_envelope(tx.type, fields),
    )


# ======================
# Deserialize
# ======================

def _int(value, name: str) -> int:
    if not isinstance(value, bytes):
        raise MalformedTransactionError(f"Field {name} must be a byte string")
    try:
        return big_endian_int.deserialize(value)
    except DeserializationError as e:
        raise MalformedTransactionError(f"Invalid integer in field {name}: {e}") from e


def _address(value, name: str = "to"):
    if not isinstance(value, bytes):
        raise MalformedTransactionError(f"Field {name} must be a byte string")
    if value == b"":
        return None
    if len(value) != 20:
        raise MalformedTransactionError(f"Field {name} must be 20 bytes, got {len(value)}")
    return to_checksum_address(value)


def _bytes(value, name: str) -> bytes:
    if not isinstance(value, bytes):
        raise MalformedTransactionError(f"Field {name} must be a byte string")
    return value


def _access_list(value) -> tuple[AccessListItem, ...]:
    if not isinstance(value, list):
        raise MalformedTransactionError("accessList must be a list")
    items = []
    for entry in value:
        if not isinstance(entry, list) or len(entry) != 2 or not isinstance(entry[1], list):
            raise MalformedTransactionError("accessList entry must be [address, [keys]]")
        address = _address(entry[0], "accessList address")
        if address is None:
            raise MalformedTransactionError("accessList address cannot be empty")
        storage_keys = []
        for key in entry[1]:
            if not isinstance(key, bytes) or len(key) != 32:
                raise MalformedTransactionError("accessList storage key must be 32 bytes")
            storage_keys.append("0x" + key.hex())
        items.append(AccessListItem(address=address, storage_keys=tuple(storage_keys)))
    return tuple(items)


def _decode_list(payload: bytes, expected: int, label: str) -> list:
    try:
        fields = rlp.decode(payload, strict=True)
    except DecodingError as e:
        raise MalformedTransactionError(f"Invalid RLP in {label} transaction: {e}") from e
    if not isinstance(fields, list):
        raise MalformedTransactionError(f"{label} transaction must be an RLP list")
    if len(fields) != expected:
        raise MalformedTransactionError(
            f"{label} transaction must have {expected} fields, got {len(fields)}"
        )
    return fields


def _build_variant(cls, **fields) -> UnsignedTransaction:
    """Construct a decoded variant; field-level invariants fail as malformed input."""
    try:
        return cls(**fields)
    except InvalidInputError as e:
        raise MalformedTransactionError(f"Inconsistent {cls.__name__}: {e.args[0]}") from e


def _decode_legacy(raw: bytes) -> SignedTransaction:
    fields = _decode_list(raw, _LEGACY_FIELD_COUNT, "legacy")
    nonce, gas_price, gas, to, value, data, v, r, s = fields

    v_int = _int(v, "v")
    if v_int in (27, 28):
        chain_id = 0
    elif v_int >= 37:
        chain_id = (v_int - 35) // 2
    else:
        raise MalformedTransactionError(f"Invalid legacy v value {v_int}")

    tx = _build_variant(
        LegacyTransaction,
        nonce=_int(nonce, "nonce"),
        gas_price=_int(gas_price, "gasPrice"),
        gas=_int(gas, "gas"),
        to=_address(to),
        value=_int(value, "value"),
        data=_bytes(data, "data"),
        chain_id=chain_id,
    )
    return SignedTransaction(transaction=tx, v=v_int, r=_int(r, "r"), s=_int(s, "s"), raw=raw)


def _decode_typed(raw: bytes) -> SignedTransaction:
    try:
        tx_type = TransactionType(raw[0])
    except ValueError:
        raise MalformedTransactionError(f"Unsupported transaction type 0x{raw[0]:02x}") from None
    if tx_type == TransactionType.LEGACY:
        raise MalformedTransactionError("Type byte 0x00 is not a valid typed transaction")

    fields = _decode_list(raw[1:], _TYPED_FIELD_COUNT[tx_type], f"type-{tx_type:d}")

    if tx_type == TransactionType.ACCESS_LIST:
        chain_id, nonce, gas_price, gas, to, value, data, access_list, y, r, s = fields
        tx = _build_variant(
            AccessListTransaction,
            chain_id=_int(chain_id, "chainId"),
            nonce=_int(nonce, "nonce"),
            gas_price=_int(gas_price, "gasPrice"),
            gas=_int(gas, "gas"),
            to=_address(to),
            value=_int(value, "value"),
            data=_bytes(data, "data"),
            access_list=_access_list(access_list),
        )
    else:
        chain_id, nonce, priority, max_fee, gas, to, value, data, access_list, y, r, s = fields
        tx = _build_variant(
            PriorityFeeTransaction,
            chain_id=_int(chain_id, "chainId"),
            nonce=_int(nonce, "nonce"),
            max_priority_fee_per_gas=_int(priority, "maxPriorityFeePerGas"),
            max_fee_per_gas=_int(max_fee, "maxFeePerGas"),
            gas=_int(gas, "gas"),
            to=_address(to),
            value=_int(value, "value"),
            data=_bytes(data, "data"),
            access_list=_access_list(access_list),
        )

    y_parity = _int(y, "yParity")
    if y_parity not in (0, 1):
        raise MalformedTransactionError(f"yParity must be 0 or 1, got {y_parity}")
    return SignedTransaction(transaction=tx, v=y_parity, r=_int(r, "r"), s=_int(s, "s"), raw=raw)


def deserialize(raw: Union[bytes, str]) -> SignedTransaction:
    """Parse a serialized signed transaction.

    Args:
        raw: Encoded bytes or 0x-prefixed hex

    Raises:
        MalformedTransactionError: On truncated or type-inconsistent input
    """
    if isinstance(raw, str):
        text = raw[2:] if raw.startswith("0x") else raw
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise MalformedTransactionError("Serialized transaction is not valid hex") from None

    if not raw:
        raise MalformedTransactionError("Serialized transaction is empty")

    # RLP lists start at 0xc0; anything lower is an EIP-2718 type byte
    if raw[0] >= 0xC0:
        return _decode_legacy(raw)
    if raw[0] > 0x7F:
        raise MalformedTransactionError(f"Invalid leading byte 0x{raw[0]:02x}")
    return _decode_typed(raw)


def recover_signer(signed: SignedTransaction) -> str:
    """Recover the checksummed sender address from a signed transaction."""
    try:
        signature = keys.Signature(vrs=(signed.y_parity, signed.r, signed.s))
        public_key = signature.recover_public_key_from_msg_hash(signing_hash(signed.transaction))
    except (BadSignature, ValidationError) as e:
        raise MalformedTransactionError(f"Cannot recover signer: {e}") from e
    return public_key.to_checksum_address()
