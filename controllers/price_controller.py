# ==========================
# Price Controller
# ==========================
from fastapi import APIRouter, HTTPException, Query
from typing import Optional
import logging
from models.token_model import ChartResponse, PriceResponse
from services.exceptions import ServiceError

logger = logging.getLogger(__name__)

class PriceController:
    """
    REST API Controller for aggregated prices and chart snapshots
    """

    def __init__(self, price_service=None, chart_service=None):
        if price_service is None:
            from services.price_service import price_service as default_price_service
            price_service = default_price_service
        if chart_service is None:
            from services.chart_service import chart_service as default_chart_service
            chart_service = default_chart_service

        self.router = APIRouter(tags=["price"])
        self.price_service = price_service
        self.chart_service = chart_service
        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes"""
        self.router.add_api_route(
            "/price",
            self.get_price,
            methods=["GET"],
            response_model=PriceResponse,
            response_model_by_alias=True,
            response_model_exclude_none=True
        )
        self.router.add_api_route(
            "/chart",
            self.get_chart,
            methods=["GET"],
            response_model=ChartResponse,
            response_model_by_alias=True,
            response_model_exclude_none=True
        )

    async def get_price(
        self,
        address: Optional[str] = Query(None, description="Token contract address")
    ) -> PriceResponse:
        """
        Aggregated price from DexScreener, Jupiter and Birdeye

        "No data" is a 200 with success=false, never an error status
        """
        if not address:
            raise HTTPException(status_code=400, detail="Token address is required")

        try:
            return await self.price_service.get_price(address)

        except ServiceError as e:
            logger.error(f"Error in get_price: {e.message}")
            return PriceResponse.no_data()
        except Exception as e:
            logger.error(f"Error in get_price: {e}")
            return PriceResponse.no_data()

    async def get_chart(
        self,
        address: Optional[str] = Query(None, description="Token contract address")
    ) -> ChartResponse:
        """
        Best liquidity pair snapshot for charting

        Errors:
            400 missing address or zero price, 404 no pairs,
            429 rate limited with nothing cached
        """
        if not address:
            raise HTTPException(status_code=400, detail="Token address is required")

        try:
            return await self.chart_service.get_chart_data(address)

        except ServiceError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)
        except Exception as e:
            logger.error(f"Error in get_chart: {e}")
            raise HTTPException(status_code=500, detail=str(e) or "Failed to fetch chart data")

# Create controller instance
price_controller = PriceController()
