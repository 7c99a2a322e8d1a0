# ==========================
# Companion Service
# ==========================
import httpx
import logging
import random
from collections import deque
from typing import Callable, Deque, Dict, List, Optional
from models.message_model import ChartPoint, CompanionMessage, Emotion
from models.token_model import TokenState
from services.emotion_service import (
    MessageScheduler,
    classify_change,
    derive_emotion,
    should_trigger_message,
)

logger = logging.getLogger(__name__)

FALLBACK_LINES: Dict[Emotion, List[str]] = {
    Emotion.EXCITED: [
        "Anon!!! We're literally going to the moon!",
        "WAGMI! I knew this token was special!",
        "This is the pump of a lifetime, I'm so happy!",
        "You're a genius for holding! Let's gooo!",
    ],
    Emotion.HAPPY: [
        "Nice pump, anon! Things are looking good!",
        "We're in profit! So proud of you for holding!",
        "Green candles make me happy~ Keep it up!",
        "This is comfy, anon. Really comfy.",
    ],
    Emotion.NEUTRAL: [
        "Crabbing again... patience is key, anon.",
        "Not much happening right now. Want to chat?",
        "Sideways action. Could be accumulation... or not.",
        "The market is thinking. So am I.",
    ],
    Emotion.WORRIED: [
        "A-anon... the chart doesn't look too good...",
        "I'm getting a little nervous here...",
        "Maybe we should have taken some profits?",
        "The dip is dipping... are you okay?",
    ],
    Emotion.SAD: [
        "Anon... we're down bad. Hold me.",
        "I believed in this token... *sniff*",
        "This hurts. But I'm still here with you.",
        "Down bad, but we're down bad together...",
    ],
    Emotion.ANGRY: [
        "WHO DUMPED?! Show yourself, paper hands!",
        "This is manipulation, anon! I just know it!",
        "I can't believe this... ruggers everywhere!",
        "The devs better have an explanation for this!",
    ],
}

class CompanionMessenger:
    """
    Asks POST /generate-message for a chat line
    Any failure, including 402 insufficient credits, falls back to a
    canned line so the companion never stalls
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        chooser: Callable[[List[str]], str] = random.choice
    ):
        self.client = client
        self.base_url = base_url.rstrip('/')
        self._choose = chooser

    def fallback(self, emotion: Emotion) -> str:
        return self._choose(FALLBACK_LINES[emotion])

    async def generate(self, emotion: Emotion, state: Optional[TokenState]) -> CompanionMessage:
        body = {
            'emotion': emotion.value,
            'change24h': state.change24h if state else 0,
            'price': state.price if state else 0,
            'tokenSymbol': (state.symbol if state else None) or 'TOKEN',
        }

        try:
            response = await self.client.post(f"{self.base_url}/generate-message", json=body)
            if response.is_success:
                message = response.json().get('message')
                if message:
                    return CompanionMessage(text=message, emotion=emotion)
            elif response.status_code != 402:
                logger.warning(f"[COMPANION] Message API error {response.status_code}, using fallback")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"[COMPANION] Message API unreachable, using fallback: {e}")

        return CompanionMessage(text=self.fallback(emotion), emotion=emotion, generated=False)

class CompanionService:
    """
    Companion view model for one tracked token: current emotion, recent
    chat lines and a rolling buffer of observed chart points
    """

    def __init__(
        self,
        messenger: CompanionMessenger,
        scheduler: Optional[MessageScheduler] = None,
        max_messages: int = 10,
        max_chart_points: int = 50
    ):
        self.messenger = messenger
        self.scheduler = scheduler or MessageScheduler(self._announce)
        self.emotion = Emotion.NEUTRAL
        self.state: Optional[TokenState] = None
        self.messages: Deque[CompanionMessage] = deque(maxlen=max_messages)
        self.chart_points: Deque[ChartPoint] = deque(maxlen=max_chart_points)
        self.listeners: List[Callable[[CompanionMessage], None]] = []

    async def _announce(self, emotion: Emotion):
        message = await self.messenger.generate(emotion, self.state)
        self.messages.append(message)
        for listener in self.listeners:
            listener(message)

    def observe(self, previous: Optional[TokenState], current: TokenState) -> Emotion:
        """React to a state transition; returns the resulting emotion"""
        self.state = current

        if previous is None:
            self.emotion = classify_change(current.change24h)
            self.scheduler.schedule(self.emotion)
        else:
            self.emotion = derive_emotion(previous, current)
            if should_trigger_message(previous, current):
                self.scheduler.schedule(self.emotion)

        if current.price > 0:
            self.chart_points.append(ChartPoint(price=current.price, market_cap=current.market_cap))

        return self.emotion

    def reset(self):
        self.scheduler.reset()
        self.emotion = Emotion.NEUTRAL
        self.state = None
        self.messages.clear()
        self.chart_points.clear()
