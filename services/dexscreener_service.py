# ==========================
# DexScreener Service
# ==========================
import httpx
import logging
from typing import Any, Dict, List, Optional
from config.settings import settings
from models.token_model import PriceSource, PriceSnapshot
from services.exceptions import NoDataFoundError, RateLimitedError, UpstreamError
from services.provider_service import ProviderService

logger = logging.getLogger(__name__)

class DexScreenerService(ProviderService):
    """
    DexScreener pairs API (free, no API key)
    Picks the pair with the highest USD liquidity for an address
    """

    source = PriceSource.DEXSCREENER

    def __init__(
        self,
        timeout: Optional[float] = None,
        chart_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__('https://api.dexscreener.com', timeout=timeout, transport=transport)
        self.chart_timeout = chart_timeout if chart_timeout is not None else settings.chart_timeout

    @staticmethod
    def select_best_pair(pairs: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Highest liquidity.usd wins; ties keep the first pair encountered"""
        candidates = [pair for pair in pairs if isinstance(pair, dict)]
        if not candidates:
            return None

        def liquidity(pair: Dict[str, Any]) -> float:
            return ProviderService._to_float((pair.get('liquidity') or {}).get('usd'))

        # sorted() is stable, so equal liquidity preserves upstream order
        return sorted(candidates, key=liquidity, reverse=True)[0]

    @classmethod
    def derive_supply(cls, pair: Dict[str, Any], price: float) -> Optional[float]:
        """Supply from fully diluted valuation, else market cap"""
        if price <= 0:
            return None
        fdv = cls._to_float(pair.get('fdv'))
        if fdv > 0:
            return fdv / price
        market_cap = cls._to_float(pair.get('marketCap'))
        if market_cap > 0:
            return market_cap / price
        return None

    def normalize_pair(self, pair: Dict[str, Any]) -> PriceSnapshot:
        price = max(self._to_float(pair.get('priceUsd')), 0.0)
        base_token = pair.get('baseToken') or {}

        return PriceSnapshot(
            price=price,
            change24h=self._to_float((pair.get('priceChange') or {}).get('h24')),
            volume24h=max(self._to_float((pair.get('volume') or {}).get('h24')), 0.0),
            symbol=self._to_text(base_token.get('symbol')),
            name=self._to_text(base_token.get('name')),
            supply=self.derive_supply(pair, price),
            source=self.source
        )

    async def _fetch(self, address: str) -> Optional[PriceSnapshot]:
        data = await self._get_json(f"/latest/dex/tokens/{address}")
        if data is None:
            return None

        pairs = data.get('pairs') or []
        best_pair = self.select_best_pair(pairs)
        if best_pair is None:
            logger.info(f"[DEXSCREENER] No pairs for {address}")
            return PriceSnapshot(source=self.source)

        return self.normalize_pair(best_pair)

    async def fetch_pairs(self, address: str) -> List[Dict[str, Any]]:
        """
        Raw pairs for chart display

        Unlike fetch(), failures are raised so the caller can apply its
        stale-cache policy:
            RateLimitedError on 429, UpstreamError on other failures,
            NoDataFoundError when the provider lists zero pairs
        """
        try:
            client = await self._get_client()
            response = await client.get(
                f"{self.base_url}/latest/dex/tokens/{address}",
                headers=self.headers,
                timeout=self.chart_timeout
            )
        except httpx.TimeoutException as e:
            raise UpstreamError("DexScreener request timeout", status_code=504) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"DexScreener request failed: {type(e).__name__}") from e

        if response.status_code == 429:
            raise RateLimitedError("Too many requests. Please wait a moment.")

        if not response.is_success:
            raise UpstreamError(
                f"DexScreener API error: {response.status_code}",
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError("DexScreener returned malformed JSON") from e

        pairs = data.get('pairs') if isinstance(data, dict) else None
        if not pairs:
            raise NoDataFoundError("No pairs found")

        return [pair for pair in pairs if isinstance(pair, dict)]

# Singleton instance
dexscreener_service = DexScreenerService()
