# ==========================
# Chart Service
# ==========================
import logging
from typing import Optional
from config.settings import settings
from models.token_model import ChartResponse
from services.cache_service import TTLCache
from services.dexscreener_service import DexScreenerService
from services.exceptions import InvalidPriceError, RateLimitedError, UpstreamError

logger = logging.getLogger(__name__)

class ChartService:
    """
    Best-pair snapshot for chart display
    Cached 5s; stale data is served on 429 or upstream failure
    """

    def __init__(
        self,
        dexscreener: Optional[DexScreenerService] = None,
        cache: Optional[TTLCache] = None
    ):
        if dexscreener is None:
            from services.dexscreener_service import dexscreener_service
            dexscreener = dexscreener_service
        self.dexscreener = dexscreener
        self.cache = cache if cache is not None else TTLCache(
            ttl_seconds=settings.cache_ttl_seconds,
            max_entries=settings.cache_max_entries
        )

    def _stale(self, address: str, warning: str) -> Optional[ChartResponse]:
        stale = self.cache.get_stale(address)
        if stale is None:
            return None
        logger.warning(f"[CHART] {warning} for {address}")
        return stale.model_copy(update={'cached': True, 'warning': warning})

    async def get_chart_data(self, address: str) -> ChartResponse:
        """
        Raises:
            RateLimitedError: 429 with no cached data
            NoDataFoundError: provider lists zero pairs
            InvalidPriceError: best pair price is exactly 0
            UpstreamError: any other failure with no cached data
        """
        cached = self.cache.get(address)
        if cached is not None:
            return cached

        try:
            pairs = await self.dexscreener.fetch_pairs(address)
        except RateLimitedError:
            stale = self._stale(address, 'Rate limited, returning cached data')
            if stale is not None:
                return stale
            raise
        except UpstreamError as e:
            # Non-2xx answers pass their status through when nothing is cached
            stale = self._stale(address, 'Error fetching fresh data, returning cached data')
            if stale is not None:
                return stale
            logger.error(f"[CHART] {e.message} for {address}")
            raise

        best_pair = self.dexscreener.select_best_pair(pairs)
        snapshot = self.dexscreener.normalize_pair(best_pair)

        if snapshot.price == 0:
            raise InvalidPriceError("Invalid price data")

        result = ChartResponse(
            success=True,
            price=snapshot.price,
            price_change_24h=snapshot.change24h,
            volume24h=snapshot.volume24h,
            pair_address=best_pair.get('pairAddress'),
            pair_data=best_pair
        )

        self.cache.put(address, result)
        return result

# Singleton instance
chart_service = ChartService()
