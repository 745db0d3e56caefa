"""Swap operations: quote, submit and order status."""

import logging

from chainai.services.context import build_context
from chainai.swap.orchestrator import SwapOrchestrator

logger = logging.getLogger(__name__)


def _orchestrator(private_key: str, network: str) -> SwapOrchestrator:
    context = build_context(network, private_key=private_key, with_order_service=True)
    return SwapOrchestrator(
        rpc=context.rpc,
        signer=context.require_signer(),
        order_service=context.require_order_service(),
        chain=context.chain,
    )


async def get_swap_quote(
    private_key: str,
    from_token: str,
    to_token: str,
    amount: str,
    network: str = "mainnet",
) -> dict:
    """Quote a swap of a human-readable amount."""
    orchestrator = _orchestrator(private_key, network)
    result = await orchestrator.get_quote(from_token, to_token, amount)
    return result.to_dict()


async def submit_swap_order(
    private_key: str,
    from_token: str,
    to_token: str,
    amount: str,
    network: str = "mainnet",
) -> dict:
    """Approve if needed and place a swap order.

    Broadcasts up to two transactions (approval, native lock); neither is
    retried on failure.
    """
    orchestrator = _orchestrator(private_key, network)
    result = await orchestrator.submit(from_token, to_token, amount)
    return result.to_dict()


async def swap_order_status(order_hash: str, network: str = "mainnet") -> dict:
    """Status of a placed order."""
    context = build_context(network, with_order_service=True)
    info = await context.require_order_service().get_order_status(order_hash)
    return {"network": context.chain.display_name, **info.to_dict()}
