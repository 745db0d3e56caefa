"""Supported EVM networks.

Two chains are registered:
- Ethereum mainnet (chain ID 1)
- BNB Smart Chain (chain ID 56)

Networks are looked up by decimal chain ID or by a case-insensitive alias.
"""

import logging
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Optional

from chainai.config import get_settings
from chainai.errors import UnsupportedNetworkError

logger = logging.getLogger(__name__)

# Sentinel address standing in for a chain's native asset
NATIVE_TOKEN_ADDRESS = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"


@dataclass(frozen=True)
class ChainDescriptor:
    """Static parameters for one EVM chain."""

    chain_id: int
    display_name: str
    native_symbol: str
    native_decimals: int
    rpc_endpoint: str
    explorer_base_url: str
    balances_service_key: str
    wrapped_native: str  # Maker asset for native-source swap orders
    aliases: tuple[str, ...] = ()

    def explorer_tx_url(self, tx_hash: str) -> str:
        """Block explorer link for a transaction."""
        return f"{self.explorer_base_url}/tx/{tx_hash}"

    def __str__(self) -> str:
        return f"{self.display_name} ({self.chain_id})"


# ======================
# Chain Configurations
# ======================

CHAINS: dict[int, ChainDescriptor] = {
    # Ethereum mainnet
    1: ChainDescriptor(
        chain_id=1,
        display_name="Ethereum",
        native_symbol="ETH",
        native_decimals=18,
        rpc_endpoint="https://nodes.mewapi.io/rpc/eth",
        explorer_base_url="https://etherscan.io",
        balances_service_key="eth",
        wrapped_native="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",  # WETH
        aliases=("mainnet", "ethereum", "eth", "homestead"),
    ),

    # BNB Smart Chain
    56: ChainDescriptor(
        chain_id=56,
        display_name="BNB Smart Chain",
        native_symbol="BNB",
        native_decimals=18,
        rpc_endpoint="https://nodes.mewapi.io/rpc/bsc",
        explorer_base_url="https://bscscan.com",
        balances_service_key="bsc",
        wrapped_native="0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c",  # WBNB
        aliases=("bsc", "bnb", "binance", "bnb smart chain"),
    ),
}


class NetworkRegistry:
    """Immutable lookup table of supported chains."""

    def __init__(self, chains: dict[int, ChainDescriptor]):
        self._chains = dict(chains)
        self._aliases: dict[str, int] = {}

        for chain_id, chain in self._chains.items():
            for alias in (*chain.aliases, chain.display_name):
                key = alias.lower()
                if key in self._aliases and self._aliases[key] != chain_id:
                    raise ValueError(f"Alias '{alias}' registered for two chains")
                self._aliases[key] = chain_id

    @property
    def chains(self) -> list[ChainDescriptor]:
        """All registered chains, ordered by chain ID."""
        return [self._chains[cid] for cid in sorted(self._chains)]

    def get(self, chain_id: int) -> Optional[ChainDescriptor]:
        """Get chain by numeric ID."""
        return self._chains.get(chain_id)

    def resolve(self, name: str) -> ChainDescriptor:
        """Resolve a chain ID string or alias to a descriptor.

        Args:
            name: Decimal chain ID ("56") or alias ("mainnet", "BSC")

        Returns:
            Matching ChainDescriptor

        Raises:
            UnsupportedNetworkError: If nothing matches
        """
        key = (name or "").strip().lower()

        if key.isdigit():
            chain = self._chains.get(int(key))
            if chain:
                return chain
        elif key in self._aliases:
            return self._chains[self._aliases[key]]

        supported = ", ".join(
            f"{c.chain_id} ({'/'.join(c.aliases)})" for c in self.chains
        )
        raise UnsupportedNetworkError(
            f"Unsupported network '{name}'. Supported networks: {supported}"
        )


@lru_cache
def get_registry() -> NetworkRegistry:
    """Build the registry once, applying RPC overrides from settings."""
    settings = get_settings()
    chains = {}

    for chain_id, chain in CHAINS.items():
        override = settings.get_rpc_url(chain_id)
        if override:
            logger.debug(f"Using RPC override for chain {chain_id}")
            chain = replace(chain, rpc_endpoint=override)
        chains[chain_id] = chain

    return NetworkRegistry(chains)


def resolve_network(name: str) -> ChainDescriptor:
    """Resolve a network name or chain ID using the process registry."""
    return get_registry().resolve(name)


def is_native_token(token_address: str) -> bool:
    """Check if an address is the native-asset sentinel."""
    return token_address.lower() == NATIVE_TOKEN_ADDRESS
