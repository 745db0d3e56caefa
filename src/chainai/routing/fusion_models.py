"""Fusion API response contracts.

Amounts arrive as decimal strings and are coerced to int by pydantic.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AuctionPoint(_ApiModel):
    """Rate-bump checkpoint of the Dutch auction curve."""

    delay: int = Field(..., ge=0, description="Seconds since previous point")
    coefficient: int = Field(..., ge=0, description="Rate bump at this point")


class GasCostInfo(_ApiModel):
    """Gas cost hints baked into the auction."""

    gas_bump_estimate: int = Field(default=0, alias="gasBumpEstimate")
    gas_price_estimate: int = Field(default=0, alias="gasPriceEstimate")


class Preset(_ApiModel):
    """One auction preset (fast / medium / slow / custom)."""

    auction_duration: int = Field(..., alias="auctionDuration")
    start_auction_in: int = Field(default=0, alias="startAuctionIn")
    initial_rate_bump: int = Field(default=0, alias="initialRateBump")
    auction_start_amount: int = Field(..., alias="auctionStartAmount")
    auction_end_amount: int = Field(..., alias="auctionEndAmount")
    points: list[AuctionPoint] = Field(default_factory=list)
    gas_cost: GasCostInfo = Field(default_factory=GasCostInfo, alias="gasCost")
    allow_partial_fills: bool = Field(default=True, alias="allowPartialFills")
    allow_multiple_fills: bool = Field(default=True, alias="allowMultipleFills")


class QuoteResponse(_ApiModel):
    """Response of quoter /quote/receive."""

    quote_id: Optional[str] = Field(default=None, alias="quoteId")
    from_token_amount: Optional[int] = Field(default=None, alias="fromTokenAmount")
    to_token_amount: Optional[int] = Field(default=None, alias="toTokenAmount")
    presets: dict[str, Preset] = Field(..., min_length=1)
    recommended_preset: str = Field(default="fast", alias="recommended_preset")
    settlement_address: Optional[str] = Field(default=None, alias="settlementAddress")
    whitelist: list[str] = Field(default_factory=list)

    @property
    def preset(self) -> Preset:
        """The recommended preset (falls back to the first one)."""
        if self.recommended_preset in self.presets:
            return self.presets[self.recommended_preset]
        return next(iter(self.presets.values()))


class FillResponse(_ApiModel):
    tx_hash: str = Field(..., alias="txHash")
    filled_maker_amount: Optional[int] = Field(default=None, alias="filledMakerAmount")
    filled_auction_taker_amount: Optional[int] = Field(
        default=None, alias="filledAuctionTakerAmount"
    )


class OrderStatusResponse(_ApiModel):
    """Response of orders /order/status/{hash}."""

    order_hash: Optional[str] = Field(default=None, alias="orderHash")
    status: str
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    auction_duration: int = Field(default=0, alias="auctionDuration")
    fills: list[FillResponse] = Field(default_factory=list)
    cancel_tx: Optional[str] = Field(default=None, alias="cancelTx")
