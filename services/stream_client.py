# ==========================
# Token Stream Client
# ==========================
import asyncio
import httpx
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional
from models.stream_model import StreamEventType
from models.token_model import DEFAULT_DECIMALS, TokenState
from services.exceptions import StreamReconnectError

logger = logging.getLogger(__name__)

class ReconnectPolicy:
    """
    Bounded exponential backoff
    Attempt n (1-based) waits min(base_delay * 2^(n-1), max_delay)
    """

    def __init__(self, base_delay: float = 1.0, max_delay: float = 30.0, max_attempts: int = 10):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_attempts = max_attempts

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    def exhausted(self, attempt: int) -> bool:
        return attempt > self.max_attempts

class TokenStateReducer:
    """
    Folds stream updates into the last known TokenState

    Updates arriving within debounce_window seconds of the last accepted
    one are dropped, never replayed. marketCap is recomputed locally when
    price and supply are both positive after the merge.
    """

    def __init__(
        self,
        address: str,
        debounce_window: float = 0.5,
        clock: Callable[[], float] = time.monotonic
    ):
        self.address = address
        self.debounce_window = debounce_window
        self._clock = clock
        self.state: Optional[TokenState] = None
        self.last_update_at: Optional[float] = None
        self.accepted_count = 0

    def reset(self, address: str):
        """Forget state and debounce timing when the tracked address changes"""
        self.address = address
        self.state = None
        self.last_update_at = None
        self.accepted_count = 0

    def seed(self, state: TokenState):
        """Full replace, e.g. from the initial fetch"""
        self.state = state

    def apply(self, update: Dict[str, Any]) -> Optional[TokenState]:
        """Merge an update; returns the new state or None when dropped"""
        now = self._clock()
        if self.last_update_at is not None and now - self.last_update_at < self.debounce_window:
            return None
        self.last_update_at = now

        if self.state is None:
            # A partial update cannot bootstrap state without a supply
            if 'supply' not in update:
                return None
            merged = TokenState.model_validate({'address': self.address, **update})
        else:
            current = self.state.model_dump(by_alias=True)
            merged = TokenState.model_validate({**current, **update, 'address': self.address})

        if merged.price > 0 and merged.supply > 0:
            merged.market_cap = merged.price * merged.supply

        self.state = merged
        self.accepted_count += 1
        return merged

async def fetch_token_state(
    client: httpx.AsyncClient,
    base_url: str,
    address: str
) -> Optional[TokenState]:
    """
    Complete TokenState from GET /price plus supply from GET /chart
    None when no provider has a price for the address
    """
    try:
        response = await client.get(f"{base_url}/price", params={'address': address})
        if not response.is_success:
            return None
        price_data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"[TOKEN CLIENT] Error fetching price for {address}: {e}")
        return None

    price = float(price_data.get('price') or 0)
    if not price_data.get('success') or price <= 0:
        return None

    supply = float(price_data.get('supply') or 0)
    if supply <= 0:
        # Supply is optional, chart data is best-effort
        try:
            chart_response = await client.get(f"{base_url}/chart", params={'address': address})
            if chart_response.is_success:
                pair = chart_response.json().get('pairData') or {}
                fdv = float(pair.get('fdv') or 0)
                market_cap = float(pair.get('marketCap') or 0)
                if fdv > 0:
                    supply = fdv / price
                elif market_cap > 0:
                    supply = market_cap / price
        except (httpx.HTTPError, ValueError, TypeError) as e:
            logger.warning(f"[TOKEN CLIENT] Supply unavailable for {address}: {e}")

    state = TokenState(
        address=address,
        supply=supply,
        decimals=DEFAULT_DECIMALS,
        price=price,
        change24h=float(price_data.get('change24h') or 0),
        volume24h=float(price_data.get('volume24h') or 0),
        name=price_data.get('tokenName'),
        symbol=price_data.get('tokenSymbol'),
    )
    return state.recompute_market_cap()

class TokenStreamClient:
    """
    Reconnecting consumer of GET /stream

    Reconnects are sequential with exponential backoff; a successful
    connection resets the attempt counter. Once close() is called no
    further reconnects happen and no callbacks are delivered, even if an
    in-flight read resolves afterwards.
    """

    def __init__(
        self,
        base_url: str,
        address: str,
        on_update: Callable[[Dict[str, Any]], None],
        on_error: Optional[Callable[[Exception], None]] = None,
        on_connected: Optional[Callable[[], None]] = None,
        policy: Optional[ReconnectPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.base_url = base_url.rstrip('/')
        self.address = address
        self.on_update = on_update
        self.on_error = on_error
        self.on_connected = on_connected
        self.policy = policy or ReconnectPolicy()
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep

        self.closed = False
        self.attempts = 0
        self.is_connected = False

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            # Reads block until the next event; keepalives arrive every 30s
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None))
        return self._client

    async def run(self):
        """Consume until closed or the reconnect budget is exhausted"""
        try:
            while not self.closed:
                try:
                    await self._consume()
                    if not self.closed:
                        logger.info(f"[STREAM CLIENT] Stream ended for {self.address}")
                except httpx.HTTPError as e:
                    logger.warning(f"[STREAM CLIENT] Transport error for {self.address}: {type(e).__name__} - {e}")

                self.is_connected = False
                if self.closed:
                    break

                self.attempts += 1
                if self.policy.exhausted(self.attempts):
                    logger.error(f"[STREAM CLIENT] Max reconnect attempts reached for {self.address}")
                    self._deliver_error(StreamReconnectError('Max reconnect attempts reached'))
                    break

                delay = self.policy.delay_for(self.attempts)
                logger.info(
                    f"[STREAM CLIENT] Reconnecting in {delay}s "
                    f"(attempt {self.attempts}/{self.policy.max_attempts})..."
                )
                await self._sleep(delay)
        finally:
            self.is_connected = False
            if self._owns_client and self._client is not None:
                await self._client.aclose()

    async def _consume(self):
        client = await self._get_client()
        async with client.stream(
            'GET',
            f"{self.base_url}/stream",
            params={'token': self.address},
            headers={'Accept': 'text/event-stream'}
        ) as response:
            response.raise_for_status()
            self.is_connected = True
            self.attempts = 0

            async for line in response.aiter_lines():
                if self.closed:
                    return
                if line.startswith('data:'):
                    self._dispatch(line[len('data:'):].strip())

    def _dispatch(self, payload: str):
        try:
            event = json.loads(payload)
        except ValueError:
            logger.debug(f"[STREAM CLIENT] Ignoring unparsable frame: {payload[:100]}")
            return

        if self.closed or not isinstance(event, dict):
            return

        event_type = event.get('type')
        try:
            if event_type == StreamEventType.CONNECTED.value:
                if self.on_connected:
                    self.on_connected()
            elif event_type == StreamEventType.UPDATE.value:
                if event.get('data'):
                    self.on_update(event['data'])
            elif event_type == StreamEventType.ERROR.value:
                self._deliver_error(RuntimeError(event.get('message') or 'Server error'))
        except Exception as e:
            # A bad frame or a failing callback must not end the consumer
            logger.error(f"[STREAM CLIENT] Handler failed for {event_type} event: {type(e).__name__} - {e}")

    def _deliver_error(self, error: Exception):
        if self.closed or self.on_error is None:
            return
        self.on_error(error)

    def close(self):
        self.closed = True
