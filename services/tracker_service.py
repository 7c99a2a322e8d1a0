# ==========================
# Token Tracker
# ==========================
import asyncio
import httpx
import logging
from typing import Any, Callable, Dict, Optional
from models.message_model import Emotion
from models.token_model import TokenState
from services.companion_service import CompanionMessenger, CompanionService
from services.stream_client import (
    ReconnectPolicy,
    TokenStateReducer,
    TokenStreamClient,
    fetch_token_state,
)

logger = logging.getLogger(__name__)

class TokenTracker:
    """
    One tracked token view: initial fetch, a single reconnecting stream
    consumer, the update reducer and the companion
    """

    def __init__(
        self,
        base_url: str,
        address: str,
        debounce_window: float = 0.5,
        policy: Optional[ReconnectPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
        companion: Optional[CompanionService] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_state: Optional[Callable[[TokenState, Emotion], None]] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.address = address
        self.policy = policy
        self.on_error = on_error
        self.on_state = on_state
        self._client = client or httpx.AsyncClient(timeout=10)
        self._owns_client = client is None

        self.reducer = TokenStateReducer(address, debounce_window=debounce_window)
        self.companion = companion or CompanionService(CompanionMessenger(self._client, self.base_url))
        self.connection_status = 'disconnected'
        self.error: Optional[Exception] = None

        self._stream: Optional[TokenStreamClient] = None
        self._stream_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> Optional[TokenState]:
        return self.reducer.state

    @property
    def emotion(self) -> Emotion:
        return self.companion.emotion

    async def start(self):
        state = await fetch_token_state(self._client, self.base_url, self.address)
        if state is not None:
            self.reducer.seed(state)
            self._notify(state, self.companion.observe(None, state))
        else:
            logger.info(f"[TRACKER] No initial data for {self.address}")

        self.connection_status = 'connecting'
        self._stream = TokenStreamClient(
            self.base_url,
            self.address,
            on_update=self._handle_update,
            on_error=self._handle_error,
            on_connected=self._handle_connected,
            policy=self.policy,
            client=None if self._owns_client else self._client
        )
        self._stream_task = asyncio.create_task(self._stream.run())

    def _handle_connected(self):
        self.connection_status = 'connected'

    def _handle_error(self, error: Exception):
        self.error = error
        logger.warning(f"[TRACKER] {self.address}: {error}")
        if self.on_error:
            self.on_error(error)

    def _handle_update(self, update: Dict[str, Any]):
        previous = self.reducer.state
        state = self.reducer.apply(update)
        if state is None:
            return
        self._notify(state, self.companion.observe(previous, state))

    def _notify(self, state: TokenState, emotion: Emotion):
        if self.on_state:
            self.on_state(state, emotion)

    async def _stop_stream(self):
        if self._stream is not None:
            self._stream.close()
        if self._stream_task is not None:
            self._stream_task.cancel()
            try:
                await self._stream_task
            except asyncio.CancelledError:
                pass
        self._stream = None
        self._stream_task = None
        self.connection_status = 'disconnected'

    async def change_address(self, address: str):
        """Drop everything tied to the previous address and start over"""
        await self._stop_stream()
        self.address = address
        self.reducer.reset(address)
        self.companion.reset()
        self.error = None
        await self.start()

    async def wait(self):
        """Block until the stream client gives up or is closed"""
        if self._stream_task is not None:
            await self._stream_task

    async def close(self):
        await self._stop_stream()
        self.companion.scheduler.reset()
        if self._owns_client:
            await self._client.aclose()
