# ==========================
# Price Aggregator Service
# ==========================
import logging
from typing import List, Optional
from models.token_model import PriceResponse
from services.provider_service import ProviderService

logger = logging.getLogger(__name__)

class PriceAggregator:
    """
    Tries provider adapters strictly in priority order and returns on the
    first usable price

    symbol/name discovered by an earlier adapter (even one without a price)
    are carried forward when the winning adapter lacks them. When nothing
    yields a price the result is a no-data sentinel, not an error.
    """

    def __init__(self, providers: Optional[List[ProviderService]] = None):
        if providers is None:
            from services.dexscreener_service import dexscreener_service
            from services.jupiter_service import jupiter_service
            from services.birdeye_service import birdeye_service
            providers = [dexscreener_service, jupiter_service, birdeye_service]
        self.providers = providers

    async def resolve(self, address: str) -> PriceResponse:
        symbol: Optional[str] = None
        name: Optional[str] = None
        attempted = 0
        failures = 0

        for provider in self.providers:
            if not provider.is_enabled:
                continue

            attempted += 1
            snapshot = await provider.fetch(address)

            if snapshot is None:
                failures += 1
                continue

            if snapshot.has_price:
                logger.debug(f"[AGGREGATOR] {address} resolved by {snapshot.source.value} at {snapshot.price}")
                return PriceResponse(
                    success=True,
                    source=snapshot.source,
                    price=snapshot.price,
                    change24h=snapshot.change24h,
                    volume24h=snapshot.volume24h,
                    token_symbol=snapshot.symbol or symbol,
                    token_name=snapshot.name or name,
                    supply=snapshot.supply
                )

            # First symbol/name seen is kept for backfilling later winners
            symbol = symbol or snapshot.symbol
            name = name or snapshot.name

        upstream_failed = attempted > 0 and failures == attempted
        logger.info(
            f"[AGGREGATOR] No price for {address} "
            f"({attempted} providers attempted, {failures} failed)"
        )
        return PriceResponse.no_data(
            token_symbol=symbol,
            token_name=name,
            upstream_failed=upstream_failed
        )

    async def close(self):
        for provider in self.providers:
            await provider.close_client()
