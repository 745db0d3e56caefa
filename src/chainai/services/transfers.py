"""Transfer, broadcast and transaction status operations."""

import logging

from chainai.services.context import build_context
from chainai.transactions.broadcaster import Broadcaster
from chainai.transactions.builder import TransactionBuilder
from chainai.utils.validation import require_hex

logger = logging.getLogger(__name__)


async def send(
    private_key: str,
    to: str,
    token: str,
    amount: str,
    network: str = "mainnet",
) -> dict:
    """Build and sign a native or ERC-20 transfer (not broadcast).

    Args:
        private_key: Sender key
        to: Recipient address
        token: Token contract, or the native sentinel address
        amount: Human-readable amount, e.g. "1.5"
        network: Chain ID or alias

    Returns:
        Dict with from, to, token, amount, network and serializedTransaction
    """
    context = build_context(network, private_key=private_key)
    signer = context.require_signer()

    builder = TransactionBuilder(context.rpc, context.chain)
    tx = await builder.build_transfer(signer, to, token, amount)
    signed = signer.sign_transaction(tx)

    return {
        "from": signer.address,
        "to": to,
        "token": token,
        "amount": amount,
        "network": context.chain.display_name,
        "serializedTransaction": signed.raw_hex,
    }


async def broadcast(serialized_transaction: str, network: str = "mainnet") -> dict:
    """Submit a signed transaction. Never retried."""
    require_hex(serialized_transaction, "Serialized transaction")
    context = build_context(network)
    result = await Broadcaster(context.rpc, context.chain).broadcast(serialized_transaction)
    return {
        "transactionHash": result.transaction_hash,
        "network": result.network,
        "explorerUrl": result.explorer_url,
    }


async def tx_status(tx_hash: str, network: str = "mainnet") -> dict:
    """Receipt status of a transaction; unknown hashes report pending."""
    context = build_context(network)
    status = await Broadcaster(context.rpc, context.chain).get_status(tx_hash)
    return status.to_dict()
