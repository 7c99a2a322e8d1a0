# ==========================
# Application Settings
# ==========================
from dotenv import load_dotenv
from typing import Optional
import os
import logging

logger = logging.getLogger(__name__)

load_dotenv()

class Settings:
    """
    Environment driven settings
    Read once at import time; services take explicit overrides for tests
    """

    def __init__(self):
        # Providers
        self.birdeye_api_key: Optional[str] = os.getenv('BIRDEYE_API_KEY') or None
        self.provider_timeout = float(os.getenv('PROVIDER_TIMEOUT', 5))
        self.chart_timeout = float(os.getenv('CHART_TIMEOUT', 10))
        self.overview_timeout = float(os.getenv('OVERVIEW_TIMEOUT', 3))

        # Cache
        self.cache_ttl_seconds = float(os.getenv('CACHE_TTL_SECONDS', 5))
        self.cache_max_entries = int(os.getenv('CACHE_MAX_ENTRIES', 100))

        # Streaming
        self.stream_poll_interval = float(os.getenv('STREAM_POLL_INTERVAL', 5))
        self.stream_keepalive_interval = float(os.getenv('STREAM_KEEPALIVE_INTERVAL', 30))

        # Message generation
        self.openrouter_api_key: Optional[str] = (
            os.getenv('OPENROUTER_API_KEY') or os.getenv('OPENROUTER_API') or None
        )
        self.openrouter_model = os.getenv('OPENROUTER_MODEL', 'openai/gpt-4o-mini')
        self.public_base_url = os.getenv('PUBLIC_BASE_URL', 'http://localhost:3000')

        # Server
        self.host = os.getenv('HOST', '0.0.0.0')
        self.port = int(os.getenv('PORT', 8000))

    def describe(self) -> dict:
        """Non-secret view of the active configuration"""
        return {
            'birdeye_enabled': self.birdeye_api_key is not None,
            'message_generation_enabled': self.openrouter_api_key is not None,
            'cache_ttl_seconds': self.cache_ttl_seconds,
            'cache_max_entries': self.cache_max_entries,
            'stream_poll_interval': self.stream_poll_interval,
            'stream_keepalive_interval': self.stream_keepalive_interval,
        }

# Singleton instance
settings = Settings()
