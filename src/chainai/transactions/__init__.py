"""Transaction model and codec."""

from chainai.transactions.codec import deserialize, recover_signer, serialize
from chainai.transactions.models import (
    AccessListItem,
    AccessListTransaction,
    LegacyTransaction,
    PriorityFeeTransaction,
    SignedTransaction,
    TransactionType,
    UnsignedTransaction,
    transaction_from_dict,
)

__all__ = [
    "AccessListItem",
    "AccessListTransaction",
    "LegacyTransaction",
    "PriorityFeeTransaction",
    "SignedTransaction",
    "TransactionType",
    "UnsignedTransaction",
    "deserialize",
    "recover_signer",
    "serialize",
    "transaction_from_dict",
]
