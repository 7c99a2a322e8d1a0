# ==========================
# Token Model
# ==========================
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict

DEFAULT_DECIMALS = 9

class PriceSource(str, Enum):
    """Upstream price providers, in aggregation priority order"""
    DEXSCREENER = 'dexscreener'
    JUPITER = 'jupiter'
    BIRDEYE = 'birdeye'

class PriceSnapshot(BaseModel):
    """
    Normalized price data produced by a single provider adapter
    A snapshot with price == 0 carries no usable price
    """
    model_config = ConfigDict(populate_by_name=True)

    price: float = Field(0.0, ge=0, description="USD price, 0 when unusable")
    change24h: float = Field(0.0, description="Signed 24h change in percent")
    volume24h: float = Field(0.0, ge=0, description="24h volume in USD")
    symbol: Optional[str] = Field(None, description="Token symbol")
    name: Optional[str] = Field(None, description="Token name")
    supply: Optional[float] = Field(None, description="Supply derived from FDV or market cap")
    source: PriceSource = Field(..., description="Provider that produced the snapshot")

    @property
    def has_price(self) -> bool:
        return self.price > 0

class PriceResponse(BaseModel):
    """Aggregated price for a token address (GET /price)"""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    price: float = 0.0
    change24h: float = 0.0
    volume24h: float = 0.0
    token_symbol: Optional[str] = Field(None, alias="tokenSymbol")
    token_name: Optional[str] = Field(None, alias="tokenName")
    source: Optional[PriceSource] = None
    supply: Optional[float] = Field(None, description="Only set when the winning provider exposes it")
    cached: Optional[bool] = Field(None, description="Served from cache after an upstream failure")
    warning: Optional[str] = None
    upstream_failed: bool = Field(
        False,
        exclude=True,
        description="Every attempted provider failed at transport level"
    )

    @classmethod
    def no_data(
        cls,
        token_symbol: Optional[str] = None,
        token_name: Optional[str] = None,
        upstream_failed: bool = False
    ) -> "PriceResponse":
        """Sentinel result when no provider yields a usable price"""
        return cls(
            success=False,
            token_symbol=token_symbol,
            token_name=token_name,
            upstream_failed=upstream_failed
        )

class ChartResponse(BaseModel):
    """Best-pair snapshot for chart display (GET /chart)"""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    price: float
    price_change_24h: float = Field(0.0, alias="priceChange24h")
    volume24h: float = 0.0
    pair_address: Optional[str] = Field(None, alias="pairAddress")
    pair_data: Dict[str, Any] = Field(default_factory=dict, alias="pairData")
    cached: Optional[bool] = None
    warning: Optional[str] = None

class TokenState(BaseModel):
    """
    Accumulated client-side view of a tracked token
    Mutated by every accepted stream update
    """
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    address: str
    supply: float = 0.0
    decimals: int = DEFAULT_DECIMALS
    price: float = 0.0
    market_cap: float = Field(0.0, alias="marketCap")
    change24h: float = 0.0
    volume24h: float = 0.0
    name: Optional[str] = None
    symbol: Optional[str] = None
    logo_uri: Optional[str] = Field(None, alias="logoURI")
    last_updated: datetime = Field(default_factory=datetime.now, alias="lastUpdated")

    def recompute_market_cap(self) -> "TokenState":
        """marketCap = price * supply, or 0 if either is 0"""
        if self.price > 0 and self.supply > 0:
            self.market_cap = self.price * self.supply
        else:
            self.market_cap = 0.0
        return self
