# ==========================
# Main Application - Token Companion Server
# ==========================
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
from config.settings import settings
from controllers.price_controller import price_controller
from controllers.stream_controller import stream_controller
from controllers.message_controller import message_controller
from services.price_service import price_service
from services.message_service import message_service
from services.stream_service import stream_manager

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle manager
    """
    # Startup
    logger.info("="*70)
    logger.info(" TOKEN COMPANION - PRICE & STREAM SERVER")
    logger.info("="*70)
    logger.info(f"Birdeye provider: {'enabled' if settings.birdeye_api_key else 'disabled (no API key)'}")
    logger.info(f"Message generation: {'enabled' if settings.openrouter_api_key else 'disabled (fallback lines only)'}")
    logger.info(f"Cache: TTL {settings.cache_ttl_seconds}s, max {settings.cache_max_entries} entries")
    logger.info(f"Stream: poll every {settings.stream_poll_interval}s, keepalive every {settings.stream_keepalive_interval}s")
    logger.info("="*70)
    logger.info(f" Server running on http://{settings.host}:{settings.port}")
    logger.info(f" SSE stream available at http://{settings.host}:{settings.port}/stream?token=<address>")
    logger.info("="*70)

    yield

    # Shutdown
    logger.info("Shutting down application...")
    stream_manager.close_all()
    await price_service.close()
    await message_service.close_client()
    logger.info("Application shut down successfully")

# Create FastAPI application
app = FastAPI(
    title="Token Companion API",
    description="Multi-source token price aggregation with real-time SSE updates and companion messages",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register controllers
app.include_router(price_controller.router)
app.include_router(stream_controller.router)
app.include_router(message_controller.router)

# Health check endpoint
@app.get("/health")
async def health_check():
    """
    Health check endpoint
    """
    return {
        "status": "healthy",
        "service": "Token Companion API",
        "version": "1.0.0",
        "open_streams": stream_manager.session_count,
        "price_cache": price_service.cache.stats(),
        "config": settings.describe()
    }

# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint
    """
    return {
        "message": "Token Companion API",
        "version": "1.0.0",
        "documentation": "/docs",
        "health": "/health",
        "endpoints": {
            "price": "/price?address=<address>",
            "chart": "/chart?address=<address>",
            "stream": "/stream?token=<address>",
            "generate_message": "/generate-message"
        }
    }

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level="info"
    )
