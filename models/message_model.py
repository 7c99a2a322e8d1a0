# ==========================
# Companion Message Models
# ==========================
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

class Emotion(str, Enum):
    """Companion mood, always derived from price movement"""
    EXCITED = 'excited'
    HAPPY = 'happy'
    NEUTRAL = 'neutral'
    WORRIED = 'worried'
    SAD = 'sad'
    ANGRY = 'angry'

class GenerateMessageRequest(BaseModel):
    """Body of POST /generate-message"""
    model_config = ConfigDict(populate_by_name=True)

    emotion: Emotion = Emotion.NEUTRAL
    change24h: float = 0.0
    price: float = 0.0
    token_symbol: Optional[str] = Field(None, alias="tokenSymbol")

class GenerateMessageResponse(BaseModel):
    message: str

class CompanionMessage(BaseModel):
    """Chat line shown next to the avatar"""
    text: str
    emotion: Emotion
    timestamp: datetime = Field(default_factory=datetime.now)
    generated: bool = Field(True, description="False when a canned fallback line was used")

class ChartPoint(BaseModel):
    """Observed price point in the rolling client-side chart buffer"""
    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime = Field(default_factory=datetime.now)
    price: float
    market_cap: float = Field(0.0, alias="marketCap")
