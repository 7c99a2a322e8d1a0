# ==========================
# Stream Session Service
# ==========================
import asyncio
import itertools
import logging
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional
from config.settings import settings
from models.stream_model import StreamEvent, StreamEventType
from models.token_model import DEFAULT_DECIMALS
from services.exceptions import NoDataFoundError

logger = logging.getLogger(__name__)

class SessionState(str, Enum):
    CONNECTING = 'connecting'
    ACTIVE = 'active'
    CLOSED = 'closed'

class StreamSession:
    """
    Per-connection polling loop feeding one SSE response

    connecting -> active -> closed. While active, a poll task queries the
    price service every poll_interval and emits an update when price,
    supply or decimals differ from the last sent snapshot. A separate
    keepalive task emits regardless of data. close() is idempotent and
    cancels both tasks synchronously.
    """

    def __init__(
        self,
        session_id: int,
        address: str,
        price_service,
        poll_interval: Optional[float] = None,
        keepalive_interval: Optional[float] = None
    ):
        self.session_id = session_id
        self.address = address
        self.price_service = price_service
        self.poll_interval = poll_interval if poll_interval is not None else settings.stream_poll_interval
        self.keepalive_interval = (
            keepalive_interval if keepalive_interval is not None else settings.stream_keepalive_interval
        )

        self.state = SessionState.CONNECTING
        self.last_sent: Optional[Dict[str, Any]] = None
        # Sticky: only replaced when a provider supplies it
        self.supply = 0.0
        self.decimals = DEFAULT_DECIMALS

        self._queue: "asyncio.Queue[Optional[StreamEvent]]" = asyncio.Queue()
        self._poll_task: Optional[asyncio.Task] = None
        self._keepalive_task: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self.state == SessionState.CLOSED

    def _send(self, event: StreamEvent):
        if self.closed:
            return
        self._queue.put_nowait(event)

    def start(self):
        """Emit connected and launch the poll and keepalive loops"""
        if self.state != SessionState.CONNECTING:
            return

        self._send(StreamEvent(
            type=StreamEventType.CONNECTED,
            token=self.address,
            message='Connected to token stream'
        ))
        self.state = SessionState.ACTIVE
        self._poll_task = asyncio.create_task(self._poll_loop())
        self._keepalive_task = asyncio.create_task(self._keepalive_loop())
        logger.info(f"[STREAM] Session {self.session_id} active for {self.address}")

    async def _poll_loop(self):
        while not self.closed:
            await self.poll_once()
            await asyncio.sleep(self.poll_interval)

    async def _keepalive_loop(self):
        while not self.closed:
            await asyncio.sleep(self.keepalive_interval)
            self._send(StreamEvent(type=StreamEventType.KEEPALIVE, token=self.address))

    async def poll_once(self):
        """Single poll; errors become error events and never end the session"""
        if self.closed:
            return

        try:
            result = await self.price_service.get_price(self.address)
            if not result.success or result.price <= 0:
                raise NoDataFoundError('No price data available from any source')

            if result.supply and result.supply > 0:
                self.supply = result.supply

            current = {
                'price': result.price,
                'supply': self.supply,
                'decimals': self.decimals,
            }

            if self.last_sent is not None and current == self.last_sent:
                return

            self.last_sent = current
            market_cap = result.price * self.supply if result.price > 0 and self.supply > 0 else 0.0

            data = {
                'supply': self.supply,
                'decimals': self.decimals,
                'price': result.price,
                'marketCap': market_cap,
                'change24h': result.change24h,
                'volume24h': result.volume24h,
                'lastUpdated': datetime.now().isoformat(),
            }
            if result.token_symbol:
                data['symbol'] = result.token_symbol
            if result.token_name:
                data['name'] = result.token_name

            self._send(StreamEvent(type=StreamEventType.UPDATE, token=self.address, data=data))

        except asyncio.CancelledError:
            raise
        except Exception as e:
            message = getattr(e, 'message', None) or str(e) or 'Unknown error'
            logger.warning(f"[STREAM] Session {self.session_id} poll error for {self.address}: {message}")
            self._send(StreamEvent(type=StreamEventType.ERROR, token=self.address, message=message))

    def close(self):
        """Terminal transition; safe to call any number of times"""
        if self.closed:
            return

        self.state = SessionState.CLOSED
        for task in (self._poll_task, self._keepalive_task):
            if task is not None and not task.done():
                task.cancel()
        self._poll_task = None
        self._keepalive_task = None

        # Wake up a consumer blocked on the queue
        self._queue.put_nowait(None)
        logger.info(f"[STREAM] Session {self.session_id} closed for {self.address}")

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Events in emission order until the session closes"""
        while True:
            event = await self._queue.get()
            if event is None or self.closed:
                return
            yield event

    async def frames(self) -> AsyncIterator[str]:
        async for event in self.events():
            yield event.to_frame()

class StreamManager:
    """
    Registry of open stream sessions
    Sessions never share mutable state; the price cache is the only
    common path between sessions tracking the same address
    """

    def __init__(
        self,
        price_service=None,
        poll_interval: Optional[float] = None,
        keepalive_interval: Optional[float] = None
    ):
        if price_service is None:
            from services.price_service import price_service as default_price_service
            price_service = default_price_service
        self.price_service = price_service
        self.poll_interval = poll_interval
        self.keepalive_interval = keepalive_interval
        self._sessions: Dict[int, StreamSession] = {}
        self._ids = itertools.count(1)

    def open_session(self, address: str) -> StreamSession:
        session = StreamSession(
            session_id=next(self._ids),
            address=address,
            price_service=self.price_service,
            poll_interval=self.poll_interval,
            keepalive_interval=self.keepalive_interval
        )
        self._sessions[session.session_id] = session
        session.start()
        logger.info(f"[STREAM] Open sessions: {len(self._sessions)}")
        return session

    def close_session(self, session: StreamSession):
        session.close()
        self._sessions.pop(session.session_id, None)

    def close_all(self):
        for session in list(self._sessions.values()):
            self.close_session(session)
        logger.info("[STREAM] All sessions closed")

    @property
    def session_count(self) -> int:
        return len(self._sessions)

# Singleton instance
stream_manager = StreamManager()
