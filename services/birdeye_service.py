# ==========================
# Birdeye Service
# ==========================
import httpx
import logging
from typing import Any, Dict, Optional, Tuple
from config.settings import settings
from models.token_model import PriceSource, PriceSnapshot
from services.provider_service import ProviderService

logger = logging.getLogger(__name__)

class BirdeyeService(ProviderService):
    """
    Birdeye public API (requires BIRDEYE_API_KEY)
    Price comes from /defi/price; 24h change and volume from
    /defi/token_overview, fetched best-effort
    """

    source = PriceSource.BIRDEYE

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        overview_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__('https://public-api.birdeye.so', timeout=timeout, transport=transport)
        self.api_key = api_key if api_key is not None else settings.birdeye_api_key
        self.overview_timeout = overview_timeout if overview_timeout is not None else settings.overview_timeout

    @property
    def is_enabled(self) -> bool:
        return bool(self.api_key)

    def _auth_headers(self) -> Dict[str, str]:
        return {'X-API-KEY': self.api_key}

    def _extract_price(self, data: Dict[str, Any]) -> float:
        payload = data.get('data') or {}
        if data.get('success') and payload.get('value') is not None:
            return self._to_float(payload.get('value'))
        if payload.get('price') is not None:
            return self._to_float(payload.get('price'))
        return 0.0

    async def _fetch_overview(self, address: str) -> Tuple[float, float]:
        """(change24h, volume24h); zeros when the overview is unavailable"""
        try:
            data = await self._get_json(
                '/defi/token_overview',
                params={'address': address},
                headers=self._auth_headers(),
                timeout=self.overview_timeout
            )
            if not data or not data.get('success') or not isinstance(data.get('data'), dict):
                return 0.0, 0.0

            overview = data['data']
            change = overview.get('priceChange24hPercent', overview.get('priceChange24h'))
            volume = overview.get('v24hUSD', overview.get('volume24h'))
            return self._to_float(change), max(self._to_float(volume), 0.0)

        except Exception as e:
            logger.warning(f"[BIRDEYE] Overview unavailable for {address}: {e}")
            return 0.0, 0.0

    async def _fetch(self, address: str) -> Optional[PriceSnapshot]:
        if not self.is_enabled:
            return None

        data = await self._get_json(
            '/defi/price',
            params={'address': address},
            headers=self._auth_headers()
        )
        if data is None:
            return None

        price = max(self._extract_price(data), 0.0)
        if price <= 0:
            return PriceSnapshot(source=self.source)

        change24h, volume24h = await self._fetch_overview(address)

        return PriceSnapshot(
            price=price,
            change24h=change24h,
            volume24h=volume24h,
            source=self.source
        )

# Singleton instance
birdeye_service = BirdeyeService()
