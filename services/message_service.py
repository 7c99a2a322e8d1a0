# ==========================
# Message Generation Service
# ==========================
import httpx
import logging
from typing import Any, Dict, Optional
from config.settings import settings
from models.message_model import Emotion, GenerateMessageRequest
from services.exceptions import InsufficientCreditsError, MessageGenerationError

logger = logging.getLogger(__name__)

EMOTION_CONTEXT = {
    Emotion.EXCITED: "very excited, price up 20%+",
    Emotion.HAPPY: "happy, price up 5-20%",
    Emotion.NEUTRAL: "neutral, price stable",
    Emotion.WORRIED: "worried, price down 5-15%",
    Emotion.SAD: "sad, price down 15-30%",
    Emotion.ANGRY: "angry, price down 30%+",
}

SYSTEM_PROMPT = (
    "You are an anime companion tracking crypto tokens with the user. "
    "Reply in 1 sentence, max 20 words. Be cute and emotional."
)

class MessageService:
    """
    Companion chat lines via an OpenAI-compatible completions API
    Prompts are kept short to save tokens
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: str = 'https://openrouter.ai/api/v1',
        referer: Optional[str] = None,
        timeout: float = 15,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key if api_key is not None else settings.openrouter_api_key
        self.model = model or settings.openrouter_model
        self.base_url = base_url
        self.referer = referer or settings.public_base_url
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close_client(self):
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    @staticmethod
    def build_user_prompt(request: GenerateMessageRequest) -> str:
        context = EMOTION_CONTEXT.get(request.emotion, EMOTION_CONTEXT[Emotion.NEUTRAL])
        change_text = f"{request.change24h:+.2f}%"
        price_text = f"${request.price:.6f}" if request.price > 0 else "unknown"
        symbol = request.token_symbol or "token"
        return f"Token: {symbol}, Price: {price_text}, Change: {change_text}, Mood: {context}. React briefly."

    def _build_payload(self, request: GenerateMessageRequest) -> Dict[str, Any]:
        return {
            'model': self.model,
            'messages': [
                {'role': 'system', 'content': SYSTEM_PROMPT},
                {'role': 'user', 'content': self.build_user_prompt(request)},
            ],
            'max_tokens': 30,
            'temperature': 0.8,
        }

    async def generate(self, request: GenerateMessageRequest) -> str:
        """
        Raises:
            InsufficientCreditsError: provider answered 402
            MessageGenerationError: missing key, other upstream failure or empty completion
        """
        if not self.api_key:
            raise MessageGenerationError('API key not configured')

        try:
            client = await self._get_client()
            response = await client.post(
                f"{self.base_url}/chat/completions",
                json=self._build_payload(request),
                headers={
                    'Authorization': f"Bearer {self.api_key}",
                    'Content-Type': 'application/json',
                    'HTTP-Referer': self.referer,
                    'X-Title': 'Token Companion',
                }
            )
        except httpx.HTTPError as e:
            logger.error(f"[MESSAGE] Completion request failed: {type(e).__name__} - {e}")
            raise MessageGenerationError('Failed to generate message') from e

        if response.status_code == 402:
            # Expected when credits run out; callers fall back to canned lines
            raise InsufficientCreditsError('insufficient_credits')

        if not response.is_success:
            try:
                details = response.json()
            except ValueError:
                details = {'error': {'message': response.text}}
            logger.error(f"[MESSAGE] Provider error {response.status_code}: {details}")
            raise MessageGenerationError(
                'Failed to generate message',
                status_code=response.status_code if response.status_code >= 500 else 502,
                details=details
            )

        try:
            data = response.json()
            message = data['choices'][0]['message']['content'].strip()
        except (ValueError, KeyError, IndexError, TypeError, AttributeError):
            message = ''

        if not message:
            raise MessageGenerationError('No message generated')

        return message

# Singleton instance
message_service = MessageService()
