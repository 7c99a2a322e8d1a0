# ==========================
# Price Service
# ==========================
import logging
from typing import Optional
from config.settings import settings
from models.token_model import PriceResponse
from services.aggregator_service import PriceAggregator
from services.cache_service import TTLCache
from services.exceptions import UpstreamError

logger = logging.getLogger(__name__)

class PriceService:
    """
    Read-through cache in front of the aggregator
    Shared by GET /price and every stream session
    """

    def __init__(
        self,
        aggregator: Optional[PriceAggregator] = None,
        cache: Optional[TTLCache] = None
    ):
        self.aggregator = aggregator or PriceAggregator()
        self.cache = cache if cache is not None else TTLCache(
            ttl_seconds=settings.cache_ttl_seconds,
            max_entries=settings.cache_max_entries
        )

    def _stale(self, address: str, warning: str) -> Optional[PriceResponse]:
        stale = self.cache.get_stale(address)
        if stale is None:
            return None
        logger.warning(f"[PRICE] {warning} for {address}")
        return stale.model_copy(update={'cached': True, 'warning': warning})

    async def get_price(self, address: str) -> PriceResponse:
        cached = self.cache.get(address)
        if cached is not None:
            return cached

        try:
            result = await self.aggregator.resolve(address)
        except Exception as e:
            logger.error(f"[PRICE] Aggregation failed for {address}: {e}")
            stale = self._stale(address, 'Error fetching fresh data, returning cached data')
            if stale is not None:
                return stale
            raise UpstreamError(f"Failed to fetch price data: {e}") from e

        if result.success:
            self.cache.put(address, result)
            return result

        # Every provider failed at transport level: prefer last good value
        if result.upstream_failed:
            stale = self._stale(address, 'Price providers unavailable, returning cached data')
            if stale is not None:
                return stale

        return result

    async def close(self):
        await self.aggregator.close()

# Singleton instance
price_service = PriceService()
