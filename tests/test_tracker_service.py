import json

import httpx
import pytest

from models.message_model import Emotion
from services.exceptions import StreamReconnectError
from services.stream_client import ReconnectPolicy
from services.tracker_service import TokenTracker


def make_handler(stream_events):
    body = "".join(f"data: {json.dumps(event)}\n\n" for event in stream_events).encode()
    calls = {"stream": 0}

    def handler(request):
        path = request.url.path
        if path == "/price":
            return httpx.Response(200, json={
                "success": True,
                "price": 1.0,
                "change24h": 12.5,
                "tokenSymbol": "WAIF",
            })
        if path == "/chart":
            return httpx.Response(200, json={"success": True, "price": 1.0, "pairData": {"fdv": 1000}})
        if path == "/generate-message":
            return httpx.Response(402, json={"error": "insufficient_credits"})
        if path == "/stream":
            calls["stream"] += 1
            if calls["stream"] == 1:
                return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(404)

    return handler, calls


@pytest.mark.asyncio
async def test_tracker_seeds_streams_and_reacts():
    handler, calls = make_handler([
        {"type": "connected", "token": "addr"},
        {"type": "update", "token": "addr", "data": {"price": 2.0, "marketCap": 1}},
    ])
    states, errors = [], []

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        tracker = TokenTracker(
            "http://test",
            "addr",
            policy=ReconnectPolicy(max_attempts=0),
            client=client,
            on_error=errors.append,
            on_state=lambda state, emotion: states.append((state.price, emotion))
        )
        await tracker.start()
        await tracker.wait()

        assert tracker.state.supply == 1000
        assert tracker.state.market_cap == 2000
        assert states == [(1.0, Emotion.HAPPY), (2.0, Emotion.EXCITED)]
        assert isinstance(errors[-1], StreamReconnectError)
        assert calls["stream"] == 1

        await tracker.close()
        await tracker.companion.scheduler.flush()

    # 402 from the message endpoint falls back to a canned line
    assert tracker.companion.messages[0].generated is False
    assert tracker.companion.messages[0].emotion == Emotion.HAPPY


@pytest.mark.asyncio
async def test_change_address_resets_state():
    handler, _ = make_handler([{"type": "connected", "token": "addr"}])

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        tracker = TokenTracker("http://test", "addr", policy=ReconnectPolicy(max_attempts=0), client=client)
        await tracker.start()
        await tracker.wait()

        await tracker.change_address("other")
        assert tracker.address == "other"
        assert tracker.reducer.address == "other"
        assert tracker.state.address == "other"

        await tracker.close()
        await tracker.companion.scheduler.flush()
        assert tracker.connection_status == "disconnected"
