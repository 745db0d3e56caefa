"""Application configuration using pydantic-settings.

Values come from the environment (or a local .env file). Nothing here is
secret except the optional order-service API key; private keys are never
part of the settings and are supplied per call.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Chain RPC Endpoints
    # ======================
    eth_rpc_url: Optional[str] = Field(
        default=None, description="Ethereum RPC URL (overrides the registry default)"
    )
    bsc_rpc_url: Optional[str] = Field(
        default=None, description="BNB Smart Chain RPC URL (overrides the registry default)"
    )

    # ======================
    # Order Service (1inch Fusion)
    # ======================
    fusion_api_url: str = Field(
        default="https://fusion.1inch.io", description="Fusion API base URL"
    )
    oneinch_api_key: str = Field(default="", description="1inch API key (optional)")
    order_source: str = Field(default="chainai", description="Source tag sent with quotes")
    approval_spender: str = Field(
        default="0x111111125421cA6dc452d289314280a0f8842A65",
        description="ERC-20 spender used by the order protocol (aggregation router v6)",
    )
    native_order_factory: str = Field(
        default="0xa562172dd87480687debca1cd7ab6a309919e9a8",
        description="Native-order factory contract that locks native funds",
    )

    # ======================
    # Timeouts / Polling
    # ======================
    request_timeout: float = Field(default=30.0, description="HTTP/RPC request timeout (s)")
    receipt_timeout: float = Field(default=120.0, description="Max wait for a receipt (s)")
    receipt_poll_interval: float = Field(default=2.0, description="Receipt poll interval (s)")

    # ======================
    # Fees
    # ======================
    base_fee_multiplier: float = Field(
        default=1.2, description="Multiplier applied to the latest base fee"
    )

    def get_rpc_url(self, chain_id: int) -> Optional[str]:
        """Get RPC URL override for a chain, if any."""
        rpc_map = {
            1: self.eth_rpc_url,
            56: self.bsc_rpc_url,
        }
        return rpc_map.get(chain_id)

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "chains": {
                "1": {"rpc": self.eth_rpc_url or "(default)"},
                "56": {"rpc": self.bsc_rpc_url or "(default)"},
            },
            "fusion": {
                "url": self.fusion_api_url,
                "api_key": "***" if self.oneinch_api_key else "(not set)",
                "source": self.order_source,
                "approval_spender": self.approval_spender,
                "native_order_factory": self.native_order_factory,
            },
            "timeouts": {
                "request": self.request_timeout,
                "receipt": self.receipt_timeout,
                "poll_interval": self.receipt_poll_interval,
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
