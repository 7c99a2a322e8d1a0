import json

import httpx
import pytest

from models.message_model import Emotion, GenerateMessageRequest
from models.token_model import TokenState
from services.companion_service import FALLBACK_LINES, CompanionMessenger, CompanionService
from services.emotion_service import MessageScheduler
from services.exceptions import InsufficientCreditsError, MessageGenerationError
from services.message_service import MessageService


def completion(text):
    return {"choices": [{"message": {"content": text}}]}


def make_message_service(handler, api_key="key"):
    return MessageService(
        api_key=api_key,
        model="test-model",
        referer="http://localhost:3000",
        transport=httpx.MockTransport(handler)
    )


def test_user_prompt_format():
    request = GenerateMessageRequest(emotion="happy", change24h=12.5, price=0.0001234, tokenSymbol="WAIF")
    prompt = MessageService.build_user_prompt(request)

    assert prompt == (
        "Token: WAIF, Price: $0.000123, Change: +12.50%, "
        "Mood: happy, price up 5-20%. React briefly."
    )


@pytest.mark.asyncio
async def test_generate_success_sends_short_completion_request():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=completion("  Green candles, anon!  "))

    service = make_message_service(handler)
    message = await service.generate(GenerateMessageRequest(emotion="excited", change24h=25, price=1))
    await service.close_client()

    assert message == "Green candles, anon!"
    payload = json.loads(seen[0].content)
    assert payload["model"] == "test-model"
    assert payload["max_tokens"] == 30
    assert payload["temperature"] == 0.8
    assert seen[0].headers["Authorization"] == "Bearer key"
    assert seen[0].headers["HTTP-Referer"] == "http://localhost:3000"


@pytest.mark.asyncio
async def test_generate_without_key_fails_fast():
    def handler(request):
        raise AssertionError("must not call upstream")

    service = make_message_service(handler, api_key="")
    with pytest.raises(MessageGenerationError) as excinfo:
        await service.generate(GenerateMessageRequest(emotion="sad"))
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_generate_402_is_insufficient_credits():
    service = make_message_service(lambda request: httpx.Response(402, json={"error": "no credits"}))

    with pytest.raises(InsufficientCreditsError) as excinfo:
        await service.generate(GenerateMessageRequest(emotion="sad"))
    assert excinfo.value.status_code == 402


@pytest.mark.asyncio
@pytest.mark.parametrize("upstream, expected", [(400, 502), (401, 502), (503, 503)])
async def test_generate_other_failures_are_5xx(upstream, expected):
    service = make_message_service(lambda request: httpx.Response(upstream, json={"error": "x"}))

    with pytest.raises(MessageGenerationError) as excinfo:
        await service.generate(GenerateMessageRequest(emotion="sad"))
    assert excinfo.value.status_code == expected
    assert excinfo.value.details == {"error": "x"}


@pytest.mark.asyncio
async def test_generate_empty_completion():
    service = make_message_service(lambda request: httpx.Response(200, json=completion("   ")))

    with pytest.raises(MessageGenerationError, match="No message generated"):
        await service.generate(GenerateMessageRequest(emotion="neutral"))


def make_messenger(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CompanionMessenger(client, "http://test/", chooser=lambda lines: lines[0])


@pytest.mark.asyncio
async def test_messenger_uses_generated_message():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"message": "Hi anon"})

    messenger = make_messenger(handler)
    state = TokenState(address="addr", price=2.0, change24h=7.0, symbol="WAIF")
    message = await messenger.generate(Emotion.HAPPY, state)

    assert message.text == "Hi anon"
    assert message.generated is True
    assert bodies[0] == {"emotion": "happy", "change24h": 7.0, "price": 2.0, "tokenSymbol": "WAIF"}


@pytest.mark.asyncio
async def test_messenger_falls_back_on_402():
    messenger = make_messenger(lambda request: httpx.Response(402, json={"error": "insufficient_credits"}))
    message = await messenger.generate(Emotion.SAD, None)

    assert message.generated is False
    assert message.text == FALLBACK_LINES[Emotion.SAD][0]


@pytest.mark.asyncio
async def test_messenger_falls_back_on_network_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    message = await make_messenger(handler).generate(Emotion.ANGRY, None)

    assert message.generated is False
    assert message.text in FALLBACK_LINES[Emotion.ANGRY]


def test_every_emotion_has_fallback_lines():
    for emotion in Emotion:
        assert FALLBACK_LINES[emotion]


class RecordingScheduler(MessageScheduler):
    def __init__(self):
        super().__init__(announce=None)
        self.scheduled = []

    def schedule(self, emotion):
        self.scheduled.append(emotion)


def make_companion(max_chart_points=50):
    scheduler = RecordingScheduler()
    messenger = CompanionMessenger(httpx.AsyncClient(), "http://test")
    return CompanionService(messenger, scheduler=scheduler, max_chart_points=max_chart_points), scheduler


def token(price, change24h=0.0, supply=100):
    return TokenState(address="addr", price=price, supply=supply, change24h=change24h)


def test_observe_initial_state_uses_24h_change():
    companion, scheduler = make_companion()

    emotion = companion.observe(None, token(1.0, change24h=-35))

    assert emotion == Emotion.ANGRY
    assert scheduler.scheduled == [Emotion.ANGRY]
    assert companion.chart_points[-1].price == 1.0


def test_observe_skips_negligible_ticks():
    companion, scheduler = make_companion()
    first = token(1.0, change24h=1.0)
    companion.observe(None, first)

    companion.observe(first, token(1.0001, change24h=1.01))
    assert scheduler.scheduled == [Emotion.NEUTRAL]

    companion.observe(first, token(1.02, change24h=1.0))
    assert scheduler.scheduled == [Emotion.NEUTRAL, Emotion.EXCITED]
    assert companion.emotion == Emotion.EXCITED


def test_chart_buffer_is_bounded_and_skips_zero_price():
    companion, _ = make_companion(max_chart_points=3)
    previous = None
    for price in [0, 1, 2, 3, 4]:
        current = token(price)
        companion.observe(previous, current)
        previous = current

    assert [point.price for point in companion.chart_points] == [2, 3, 4]


@pytest.mark.asyncio
async def test_announce_records_message_and_notifies_listeners():
    def handler(request):
        return httpx.Response(200, json={"message": "Hold tight"})

    messenger = make_messenger(handler)
    companion = CompanionService(messenger)
    heard = []
    companion.listeners.append(heard.append)

    companion.observe(None, token(1.0, change24h=12.5))
    await companion.scheduler.flush()

    assert [message.text for message in companion.messages] == ["Hold tight"]
    assert heard[0].emotion == Emotion.HAPPY

    companion.reset()
    assert not companion.messages
    assert not companion.chart_points
    assert companion.emotion == Emotion.NEUTRAL
