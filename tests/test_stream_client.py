import json

import httpx
import pytest

from models.token_model import TokenState
from services.exceptions import StreamReconnectError
from services.stream_client import (
    ReconnectPolicy,
    TokenStateReducer,
    TokenStreamClient,
    fetch_token_state,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_backoff_doubles_from_one_second_and_caps():
    policy = ReconnectPolicy()
    delays = [policy.delay_for(attempt) for attempt in range(1, 11)]

    assert delays[:6] == [1, 2, 4, 8, 16, 30]
    assert all(delay == 30 for delay in delays[5:])
    assert not policy.exhausted(10)
    assert policy.exhausted(11)


def test_reducer_drops_updates_inside_debounce_window():
    clock = FakeClock()
    reducer = TokenStateReducer("addr", debounce_window=0.5, clock=clock)
    reducer.seed(TokenState(address="addr", supply=1000, price=1.0))

    first = reducer.apply({"price": 2.0})
    clock.now = 0.1
    second = reducer.apply({"price": 3.0})

    assert first is not None
    assert second is None
    assert reducer.state.price == 2.0
    assert reducer.accepted_count == 1

    clock.now = 0.6
    assert reducer.apply({"price": 4.0}).price == 4.0


def test_reducer_merges_and_recomputes_market_cap():
    reducer = TokenStateReducer("addr", clock=FakeClock())
    reducer.seed(TokenState(address="addr", supply=1000, price=1.0, symbol="WAIF", market_cap=1000))

    merged = reducer.apply({"price": 2.5, "marketCap": 1, "change24h": 7.5})

    assert merged.market_cap == 2500
    assert merged.change24h == 7.5
    assert merged.symbol == "WAIF"
    assert merged.address == "addr"


def test_reducer_bootstraps_only_with_supply():
    clock = FakeClock()
    reducer = TokenStateReducer("addr", debounce_window=0.5, clock=clock)

    assert reducer.apply({"price": 1.0}) is None
    clock.now = 1.0
    state = reducer.apply({"price": 2.0, "supply": 10, "decimals": 9})
    assert state.address == "addr"
    assert state.market_cap == 20


def test_reducer_reset_clears_debounce():
    clock = FakeClock()
    reducer = TokenStateReducer("addr", clock=clock)
    reducer.apply({"price": 1.0, "supply": 1})
    reducer.reset("other")

    state = reducer.apply({"price": 5.0, "supply": 1})
    assert state is not None
    assert state.address == "other"


def sse_body(*events):
    return "".join(f"data: {json.dumps(event)}\n\n" for event in events).encode()


@pytest.mark.asyncio
async def test_client_dispatches_events_and_gives_up_after_budget():
    body = sse_body(
        {"type": "connected", "token": "addr"},
        {"type": "update", "token": "addr", "data": {"price": 1.0}},
        {"type": "keepalive", "token": "addr"},
        {"type": "error", "token": "addr", "message": "No price data available from any source"},
    )
    connections = []

    def handler(request):
        connections.append(request)
        if len(connections) == 1:
            return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})
        raise httpx.ConnectError("refused", request=request)

    updates, errors, connected, delays = [], [], [], []

    async def fake_sleep(delay):
        delays.append(delay)

    client = TokenStreamClient(
        "http://test",
        "addr",
        on_update=updates.append,
        on_error=errors.append,
        on_connected=lambda: connected.append(True),
        policy=ReconnectPolicy(max_attempts=3),
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=fake_sleep
    )
    await client.run()

    assert connections[0].url.params["token"] == "addr"
    assert connected == [True]
    assert updates == [{"price": 1.0}]
    assert str(errors[0]) == "No price data available from any source"
    assert isinstance(errors[-1], StreamReconnectError)
    # one reconnect after the stream ended, then two failed connects
    assert delays == [1, 2, 4]
    assert len(connections) == 4


@pytest.mark.asyncio
async def test_failing_update_handler_does_not_stop_consumer():
    body = sse_body(
        {"type": "update", "token": "addr", "data": {"price": "not-a-number", "supply": 1}},
        {"type": "update", "token": "addr", "data": {"price": 2.0, "supply": 1}},
    )

    def handler(request):
        return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

    reducer = TokenStateReducer("addr", debounce_window=0, clock=FakeClock())
    states = []

    def on_update(data):
        states.append(reducer.apply(data))

    client = TokenStreamClient(
        "http://test",
        "addr",
        on_update=on_update,
        policy=ReconnectPolicy(max_attempts=0),
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    await client.run()

    # the invalid price raised inside the reducer; the next frame still arrived
    assert [state.price for state in states] == [2.0]


@pytest.mark.asyncio
async def test_closed_client_stops_reconnecting_and_delivering():
    errors = []

    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = TokenStreamClient(
        "http://test",
        "addr",
        on_update=lambda data: None,
        on_error=errors.append,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    async def close_on_sleep(delay):
        client.close()

    client._sleep = close_on_sleep
    await client.run()

    assert client.attempts == 1
    assert errors == []


@pytest.mark.asyncio
async def test_fetch_token_state_derives_supply_from_chart():
    def handler(request):
        if request.url.path == "/price":
            return httpx.Response(200, json={
                "success": True,
                "price": 0.5,
                "change24h": 12.5,
                "volume24h": 100,
                "tokenSymbol": "WAIF",
                "source": "jupiter",
            })
        return httpx.Response(200, json={"success": True, "price": 0.5, "pairData": {"fdv": 500}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        state = await fetch_token_state(client, "http://test", "addr")

    assert state.supply == 1000
    assert state.market_cap == 500
    assert state.symbol == "WAIF"
    assert state.change24h == 12.5


@pytest.mark.asyncio
async def test_fetch_token_state_none_without_price():
    def handler(request):
        return httpx.Response(200, json={"success": False, "price": 0})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await fetch_token_state(client, "http://test", "addr") is None
