from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict

class StreamEventType(str, Enum):
    CONNECTED = 'connected'
    UPDATE = 'update'
    ERROR = 'error'
    KEEPALIVE = 'keepalive'

class StreamEvent(BaseModel):
    """
    Single server-sent event pushed over GET /stream
    Serialized as one `data: <json>` frame
    """
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    type: StreamEventType
    token: str = Field(..., description="Tracked token address")
    data: Optional[Dict[str, Any]] = Field(None, description="Full token data on update events")
    message: Optional[str] = None

    def to_frame(self) -> str:
        return f"data: {self.model_dump_json(exclude_none=True)}\n\n"
