import httpx
import logging
from typing import Optional
from models.token_model import PriceSource, PriceSnapshot
from services.provider_service import ProviderService

logger = logging.getLogger(__name__)

class JupiterService(ProviderService):
    """
    Jupiter Price API v2, full endpoint with 24h data
    Single entry per id, no pair selection needed
    """

    source = PriceSource.JUPITER

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__('https://api.jup.ag', timeout=timeout, transport=transport)

    async def _fetch(self, address: str) -> Optional[PriceSnapshot]:
        data = await self._get_json('/price/v2/full', params={'ids': address})
        if data is None:
            return None

        price_data = (data.get('data') or {}).get(address)
        if not isinstance(price_data, dict):
            logger.info(f"[JUPITER] No price entry for {address}")
            return PriceSnapshot(source=self.source)

        return PriceSnapshot(
            price=max(self._to_float(price_data.get('price')), 0.0),
            change24h=self._to_float(price_data.get('priceChange24h')),
            volume24h=max(self._to_float(price_data.get('volume24h')), 0.0),
            symbol=self._to_text(price_data.get('symbol')),
            name=self._to_text(price_data.get('name')),
            source=self.source
        )

# Singleton instance
jupiter_service = JupiterService()
