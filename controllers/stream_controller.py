# ==========================
# Stream Controller
# ==========================
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from typing import Optional
import logging

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    'Cache-Control': 'no-cache, no-store, must-revalidate',
    'Connection': 'keep-alive',
    'X-Accel-Buffering': 'no',
}

class StreamController:
    """
    Server-sent events endpoint for real-time token updates
    One polling session per open connection
    """

    def __init__(self, stream_manager=None):
        if stream_manager is None:
            from services.stream_service import stream_manager as default_stream_manager
            stream_manager = default_stream_manager

        self.router = APIRouter(tags=["stream"])
        self.stream_manager = stream_manager
        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes"""
        self.router.add_api_route(
            "/stream",
            self.stream_token,
            methods=["GET"]
        )

    async def stream_token(
        self,
        request: Request,
        token: Optional[str] = Query(None, description="Token contract address")
    ):
        """
        Stream connected/update/error/keepalive events as `data: <json>` frames
        The connection stays open until the client aborts
        """
        if not token:
            raise HTTPException(status_code=400, detail="Token address is required")

        async def event_stream():
            # Opened on first iteration so an unsent response leaves no timers behind
            session = self.stream_manager.open_session(token)
            try:
                async for frame in session.frames():
                    if await request.is_disconnected():
                        break
                    yield frame
            finally:
                # Runs on client abort too, cancelling both session timers
                self.stream_manager.close_session(session)

        return StreamingResponse(
            event_stream(),
            media_type="text/event-stream",
            headers=SSE_HEADERS
        )

# Create controller instance
stream_controller = StreamController()
