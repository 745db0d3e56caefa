"""Per-operation wiring of RPC client, signer and order service."""

import logging
from dataclasses import dataclass
from typing import Optional

from chainai.chains import ChainDescriptor, resolve_network
from chainai.config import get_settings
from chainai.routing.base import OrderService
from chainai.routing.fusion import FusionOrderService
from chainai.rpc import RpcClient
from chainai.signing.base import SignerBackend
from chainai.signing.local import LocalSigner

logger = logging.getLogger(__name__)


@dataclass
class ChainContext:
    """Everything one operation needs to talk to a chain.

    Built fresh for every call; nothing is shared between operations.
    """
    chain: ChainDescriptor
    rpc: RpcClient
    signer: Optional[SignerBackend] = None
    order_service: Optional[OrderService] = None

    def require_signer(self) -> SignerBackend:
        if self.signer is None:
            raise RuntimeError("Operation needs a signer but none was configured")
        return self.signer

    def require_order_service(self) -> OrderService:
        if self.order_service is None:
            raise RuntimeError("Operation needs an order service but none was configured")
        return self.order_service


def build_context(
    network: str = "mainnet",
    private_key: Optional[str] = None,
    with_order_service: bool = False,
) -> ChainContext:
    """Resolve a network and construct its clients.

    Args:
        network: Chain ID or alias
        private_key: Optional 0x-prefixed key for operations that sign
        with_order_service: Also build the swap order-service client

    Raises:
        UnsupportedNetworkError: Unknown network
        InvalidKeyError: Malformed private key
    """
    settings = get_settings()
    signer = LocalSigner.from_private_key(private_key) if private_key is not None else None
    chain = resolve_network(network)

    context = ChainContext(
        chain=chain,
        rpc=RpcClient(chain.rpc_endpoint, timeout=settings.request_timeout),
        signer=signer,
    )
    if with_order_service:
        context.order_service = FusionOrderService(chain)
        logger.debug(f"Order service: {context.order_service.name}")

    logger.debug(f"Built context for {chain} with settings {settings.get_safe_dict()}")
    return context
