"""
Emotion classification and companion message scheduling
Emotions are always derived from price movement, never stored upstream
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Set
from models.message_model import Emotion
from models.token_model import TokenState

logger = logging.getLogger(__name__)

# Short-window move thresholds (ratio, not percent)
SHORT_MOVE_STRONG = 0.01
SHORT_MOVE_MILD = 0.003

# Minimum move before an update may schedule a message
TRIGGER_PRICE_DELTA = 0.0005
TRIGGER_CHANGE_DELTA = 0.05

def classify_change(change24h: float) -> Emotion:
    """24h percent change -> emotion; lower bounds are exclusive"""
    if change24h > 20:
        return Emotion.EXCITED
    if change24h > 5:
        return Emotion.HAPPY
    if change24h > -5:
        return Emotion.NEUTRAL
    if change24h > -15:
        return Emotion.WORRIED
    if change24h > -30:
        return Emotion.SAD
    return Emotion.ANGRY

def classify_short_move(delta_ratio: float) -> Optional[Emotion]:
    """Instantaneous price move; None means no override"""
    if delta_ratio >= SHORT_MOVE_STRONG:
        return Emotion.EXCITED
    if delta_ratio >= SHORT_MOVE_MILD:
        return Emotion.HAPPY
    if delta_ratio <= -SHORT_MOVE_STRONG:
        return Emotion.ANGRY
    if delta_ratio <= -SHORT_MOVE_MILD:
        return Emotion.SAD
    return None

def price_delta_ratio(previous: Optional[TokenState], current: TokenState) -> float:
    if previous is None or previous.price <= 0 or current.price <= 0:
        return 0.0
    return (current.price - previous.price) / previous.price

def derive_emotion(previous: Optional[TokenState], current: TokenState) -> Emotion:
    """Short-term moves take precedence over the rolling 24h figure"""
    short = classify_short_move(price_delta_ratio(previous, current))
    if short is not None:
        return short
    return classify_change(current.change24h)

def should_trigger_message(previous: Optional[TokenState], current: TokenState) -> bool:
    """Ignore ticks too small to be worth a chat line"""
    if previous is None:
        return True
    if previous.price <= 0 or current.price <= 0:
        return True
    price_delta = abs((current.price - previous.price) / previous.price)
    change_delta = abs((current.change24h or 0) - (previous.change24h or 0))
    return price_delta >= TRIGGER_PRICE_DELTA or change_delta >= TRIGGER_CHANGE_DELTA

class MessageScheduler:
    """
    Debounce-with-coalescing for companion messages

    A new emotion different from the last announced one is announced
    immediately if min_interval has passed and no timer is pending.
    Otherwise it becomes the pending emotion and a single timer is armed
    for the rest of the interval; when it fires the then-pending emotion is
    announced unless it equals the last announced one.
    """

    def __init__(
        self,
        announce: Callable[[Emotion], Awaitable[None]],
        min_interval: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self._announce = announce
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep

        self.last_announced: Optional[Emotion] = None
        self.last_announced_at: Optional[float] = None
        self.pending: Optional[Emotion] = None
        self._timer: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _mark_announced(self, emotion: Emotion):
        self.last_announced = emotion
        self.last_announced_at = self._clock()

    async def _run_announce(self, emotion: Emotion):
        try:
            await self._announce(emotion)
        except Exception as e:
            logger.error(f"[COMPANION] Announcement failed for {emotion.value}: {e}")

    def schedule(self, emotion: Emotion):
        self.pending = emotion
        if emotion == self.last_announced:
            # A running timer sees pending == last_announced and stays quiet
            return

        if self.last_announced_at is None:
            elapsed = float('inf')
        else:
            elapsed = self._clock() - self.last_announced_at

        if elapsed >= self.min_interval and self._timer is None:
            self._mark_announced(emotion)
            self._spawn(self._run_announce(emotion))
            return

        # A running timer will pick up the latest pending emotion
        if self._timer is not None:
            return

        delay = max(0.0, self.min_interval - elapsed)
        self._timer = self._spawn(self._fire_after(delay))

    async def _fire_after(self, delay: float):
        await self._sleep(delay)
        self._timer = None

        pending = self.pending
        if pending is None or pending == self.last_announced:
            return

        self._mark_announced(pending)
        await self._run_announce(pending)

    def reset(self):
        """Cancel pending work and forget announcement history"""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.pending = None
        self.last_announced = None
        self.last_announced_at = None

    async def flush(self):
        """Wait for every spawned announcement and timer to finish"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
