# ==========================
# Price Provider Base Service
# ==========================
import httpx
import logging
import math
from typing import Any, Dict, Optional
from config.settings import settings
from models.token_model import PriceSource, PriceSnapshot

logger = logging.getLogger(__name__)

class ProviderService:
    """
    Base class for price provider adapters

    Contract: fetch(address) returns a PriceSnapshot or None. Network
    failures, timeouts, non-2xx answers and malformed JSON all map to None;
    nothing raises past fetch(). A snapshot with price == 0 means the
    provider answered but had no usable price.
    """

    source: PriceSource

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url
        self.timeout = timeout if timeout is not None else settings.provider_timeout
        self.headers = {'Accept': 'application/json'}

        # Shared HTTP client with connection pooling
        self._client: Optional[httpx.AsyncClient] = None
        self._transport = transport

    @property
    def is_enabled(self) -> bool:
        """Disabled providers are skipped entirely, not attempted"""
        return True

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create shared HTTP client with connection pooling"""
        if self._client is None or self._client.is_closed:
            limits = httpx.Limits(
                max_connections=50,
                max_keepalive_connections=10
            )
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=limits,
                transport=self._transport
            )
        return self._client

    async def close_client(self):
        """Close the HTTP client"""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def _get_json(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None
    ) -> Optional[Any]:
        """GET endpoint and decode JSON, None on any failure"""
        tag = self.source.value.upper()
        try:
            client = await self._get_client()
            response = await client.get(
                f"{self.base_url}{endpoint}",
                params=params,
                headers={**self.headers, **(headers or {})},
                timeout=timeout if timeout is not None else self.timeout
            )

            if not response.is_success:
                logger.warning(f"[{tag}] HTTP {response.status_code} for {endpoint}")
                return None

            return response.json()

        except httpx.TimeoutException:
            logger.warning(f"[{tag}] Request timeout for {endpoint}")
            return None
        except httpx.HTTPError as e:
            logger.warning(f"[{tag}] Request failed for {endpoint}: {type(e).__name__} - {str(e)[:100]}")
            return None
        except ValueError as e:
            logger.warning(f"[{tag}] Malformed JSON from {endpoint}: {str(e)[:100]}")
            return None

    async def fetch(self, address: str) -> Optional[PriceSnapshot]:
        """Fetch and normalize price data for a token address"""
        try:
            return await self._fetch(address)
        except Exception as e:
            logger.error(f"[{self.source.value.upper()}] Unexpected response shape for {address}: {type(e).__name__} - {e}")
            return None

    async def _fetch(self, address: str) -> Optional[PriceSnapshot]:
        raise NotImplementedError

    @staticmethod
    def _to_float(value: Any) -> float:
        """Lenient numeric parse: anything unusable becomes 0.0"""
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(number) or math.isinf(number):
            return 0.0
        return number

    @staticmethod
    def _to_text(value: Any) -> Optional[str]:
        if isinstance(value, str) and value:
            return value
        return None
