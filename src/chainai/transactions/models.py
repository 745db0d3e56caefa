"""Transaction data model.

Unsigned transactions are a tagged union of three independent, immutable
variants sharing a few common fields:

    LegacyTransaction       gasPrice                       (no type byte)
    AccessListTransaction   gasPrice + accessList          (type 0x01)
    PriorityFeeTransaction  maxFeePerGas + maxPriority...  (type 0x02)

The discriminant is the ``type`` class attribute. Variants do not inherit
from each other; each one is serialized from its own fixed field set.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, ClassVar, Optional, Union

from eth_utils import keccak

from chainai.errors import InvalidInputError
from chainai.utils.validation import is_hex, require_address


class TransactionType(IntEnum):
    """EIP-2718 transaction type."""
    LEGACY = 0
    ACCESS_LIST = 1
    PRIORITY_FEE = 2


@dataclass(frozen=True)
class AccessListItem:
    """One EIP-2930 access list entry."""

    address: str
    storage_keys: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "address", require_address(self.address, "accessList address"))
        keys = tuple(k.lower() for k in self.storage_keys)
        for key in keys:
            if not is_hex(key) or len(key) != 66:
                raise InvalidInputError("accessList storage keys must be 32-byte hex strings")
        object.__setattr__(self, "storage_keys", keys)

    def to_dict(self) -> dict:
        return {"address": self.address, "storageKeys": list(self.storage_keys)}


def _check_common(tx: Any) -> None:
    """Validate and normalize the fields every variant shares."""
    for name in ("nonce", "gas", "value", "chain_id"):
        value = getattr(tx, name)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise InvalidInputError(f"Transaction {name} must be an integer >= 0")

    if tx.to is not None:
        object.__setattr__(tx, "to", require_address(tx.to, 'Transaction "to" field'))

    if not isinstance(tx.data, (bytes, bytearray)):
        raise InvalidInputError("Transaction data must be bytes")
    object.__setattr__(tx, "data", bytes(tx.data))


def _check_fee(tx: Any, *names: str) -> None:
    for name in names:
        value = getattr(tx, name)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise InvalidInputError(f"Transaction {name} must be an integer >= 0")


@dataclass(frozen=True)
class LegacyTransaction:
    """Pre-EIP-2718 transaction. chain_id=0 means no replay protection."""

    type: ClassVar[TransactionType] = TransactionType.LEGACY

    nonce: int
    gas: int
    gas_price: int
    chain_id: int = 0
    to: Optional[str] = None  # None = contract creation
    value: int = 0
    data: bytes = b""

    def __post_init__(self):
        _check_common(self)
        _check_fee(self, "gas_price")


@dataclass(frozen=True)
class AccessListTransaction:
    """EIP-2930 transaction."""

    type: ClassVar[TransactionType] = TransactionType.ACCESS_LIST

    nonce: int
    gas: int
    gas_price: int
    chain_id: int
    to: Optional[str] = None
    value: int = 0
    data: bytes = b""
    access_list: tuple[AccessListItem, ...] = ()

    def __post_init__(self):
        _check_common(self)
        _check_fee(self, "gas_price")
        object.__setattr__(self, "access_list", tuple(self.access_list))


@dataclass(frozen=True)
class PriorityFeeTransaction:
    """EIP-1559 transaction."""

    type: ClassVar[TransactionType] = TransactionType.PRIORITY_FEE

    nonce: int
    gas: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    chain_id: int
    to: Optional[str] = None
    value: int = 0
    data: bytes = b""
    access_list: tuple[AccessListItem, ...] = ()

    def __post_init__(self):
        _check_common(self)
        _check_fee(self, "max_fee_per_gas", "max_priority_fee_per_gas")
        if self.max_priority_fee_per_gas > self.max_fee_per_gas:
            raise InvalidInputError("maxPriorityFeePerGas cannot exceed maxFeePerGas")
        object.__setattr__(self, "access_list", tuple(self.access_list))


UnsignedTransaction = Union[LegacyTransaction, AccessListTransaction, PriorityFeeTransaction]


@dataclass(frozen=True)
class SignedTransaction:
    """Unsigned payload plus signature and its canonical encoding.

    ``v`` is the EIP-155 ``v`` for legacy transactions and the y-parity
    (0 or 1) for typed transactions.
    """

    transaction: UnsignedTransaction
    v: int
    r: int
    s: int
    raw: bytes = field(repr=False)

    @property
    def type(self) -> TransactionType:
        return self.transaction.type

    @property
    def y_parity(self) -> int:
        """Recovery id (0 or 1) regardless of variant."""
        if self.transaction.type != TransactionType.LEGACY:
            return self.v
        if self.v in (27, 28):
            return self.v - 27
        return (self.v - 35) % 2

    @property
    def raw_hex(self) -> str:
        return "0x" + self.raw.hex()

    @property
    def hash(self) -> str:
        """Transaction hash (keccak of the serialized form)."""
        return "0x" + keccak(self.raw).hex()


# ======================
# Mapping (JSON) parsing
# ======================

_TYPE_NAMES = {
    "legacy": TransactionType.LEGACY,
    "eip2930": TransactionType.ACCESS_LIST,
    "eip1559": TransactionType.PRIORITY_FEE,
}


def _to_int(value: Any, name: str, default: Optional[int] = None) -> int:
    """Accept ints, decimal strings and 0x-hex quantities."""
    if value is None:
        if default is None:
            raise InvalidInputError(f"Transaction {name} is required")
        return default
    if isinstance(value, bool):
        raise InvalidInputError(f"Transaction {name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if text.lower().startswith("0x"):
                return int(text, 16)
            return int(text)
        except ValueError:
            pass
    raise InvalidInputError(f"Transaction {name} must be an integer, got {value!r}")


def _parse_type(value: Any) -> TransactionType:
    if isinstance(value, str) and value.lower() in _TYPE_NAMES:
        return _TYPE_NAMES[value.lower()]
    try:
        return TransactionType(_to_int(value, "type"))
    except ValueError:
        raise InvalidInputError(f"Unsupported transaction type {value!r}") from None


def _parse_access_list(value: Any) -> tuple[AccessListItem, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise InvalidInputError("accessList must be a list")
    items = []
    for entry in value:
        if not isinstance(entry, Mapping):
            raise InvalidInputError("accessList entries must be objects")
        items.append(
            AccessListItem(
                address=entry.get("address"),
                storage_keys=tuple(entry.get("storageKeys") or ()),
            )
        )
    return tuple(items)


def transaction_from_dict(data: Any) -> UnsignedTransaction:
    """Build an unsigned transaction from a JSON-shaped mapping.

    The variant is taken from ``type`` when present, otherwise inferred
    from the fee fields: ``maxFeePerGas`` selects EIP-1559, ``gasPrice``
    with ``accessList`` selects EIP-2930, ``gasPrice`` alone is legacy.

    Raises:
        InvalidInputError: On a missing/ill-typed field or mixed fee models
    """
    if not isinstance(data, Mapping):
        raise InvalidInputError("Transaction must be a valid transaction object")

    has_legacy_fee = data.get("gasPrice") is not None
    has_1559_fee = (
        data.get("maxFeePerGas") is not None
        or data.get("maxPriorityFeePerGas") is not None
    )

    if data.get("type") is not None:
        tx_type = _parse_type(data["type"])
    elif has_1559_fee:
        tx_type = TransactionType.PRIORITY_FEE
    elif has_legacy_fee and data.get("accessList") is not None:
        tx_type = TransactionType.ACCESS_LIST
    elif has_legacy_fee:
        tx_type = TransactionType.LEGACY
    else:
        raise InvalidInputError("Transaction needs gasPrice or maxFeePerGas")

    if has_legacy_fee and has_1559_fee:
        raise InvalidInputError("Transaction cannot mix gasPrice with maxFeePerGas")

    raw_data = data.get("data") or data.get("input") or "0x"
    if not is_hex(raw_data):
        raise InvalidInputError("Transaction data must be a 0x-prefixed hex string")

    to = data.get("to")
    if to is not None and not is_hex(to):
        raise InvalidInputError('Transaction "to" field must be a valid 0x-prefixed hex address')

    common = dict(
        nonce=_to_int(data.get("nonce"), "nonce", default=0),
        gas=_to_int(data.get("gas", data.get("gasLimit")), "gas"),
        to=to,
        value=_to_int(data.get("value"), "value", default=0),
        data=bytes.fromhex(raw_data[2:]),
    )

    if tx_type == TransactionType.LEGACY:
        return LegacyTransaction(
            gas_price=_to_int(data.get("gasPrice"), "gasPrice"),
            chain_id=_to_int(data.get("chainId"), "chainId", default=0),
            **common,
        )

    chain_id = _to_int(data.get("chainId"), "chainId")
    access_list = _parse_access_list(data.get("accessList"))

    if tx_type == TransactionType.ACCESS_LIST:
        return AccessListTransaction(
            gas_price=_to_int(data.get("gasPrice"), "gasPrice"),
            chain_id=chain_id,
            access_list=access_list,
            **common,
        )

    return PriorityFeeTransaction(
        max_fee_per_gas=_to_int(data.get("maxFeePerGas"), "maxFeePerGas"),
        max_priority_fee_per_gas=_to_int(
            data.get("maxPriorityFeePerGas"), "maxPriorityFeePerGas"
        ),
        chain_id=chain_id,
        access_list=access_list,
        **common,
    )


def transaction_to_dict(tx: UnsignedTransaction) -> dict:
    """Render a transaction as a JSON-friendly mapping (integers as strings)."""
    result: dict[str, Any] = {
        "type": tx.type.name.lower(),
        "chainId": tx.chain_id,
        "nonce": tx.nonce,
        "to": tx.to,
        "value": str(tx.value),
        "data": "0x" + tx.data.hex(),
        "gas": str(tx.gas),
    }
    if isinstance(tx, PriorityFeeTransaction):
        result["maxFeePerGas"] = str(tx.max_fee_per_gas)
        result["maxPriorityFeePerGas"] = str(tx.max_priority_fee_per_gas)
    else:
        result["gasPrice"] = str(tx.gas_price)
    if not isinstance(tx, LegacyTransaction):
        result["accessList"] = [item.to_dict() for item in tx.access_list]
    return result
