from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
import logging
from models.message_model import GenerateMessageRequest, GenerateMessageResponse
from services.exceptions import InsufficientCreditsError, MessageGenerationError

logger = logging.getLogger(__name__)

class MessageController:
    """
    REST API Controller for companion chat lines
    """

    def __init__(self, message_service=None):
        if message_service is None:
            from services.message_service import message_service as default_message_service
            message_service = default_message_service

        self.router = APIRouter(tags=["companion"])
        self.service = message_service
        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes"""
        self.router.add_api_route(
            "/generate-message",
            self.generate_message,
            methods=["POST"],
            response_model=GenerateMessageResponse
        )

    async def generate_message(self, request: GenerateMessageRequest):
        """
        Generate a one-sentence companion reaction

        402 means the text provider is out of credits; callers fall back
        to canned lines locally
        """
        try:
            message = await self.service.generate(request)
            return GenerateMessageResponse(message=message)

        except InsufficientCreditsError:
            return JSONResponse(status_code=402, content={"error": "insufficient_credits"})
        except MessageGenerationError as e:
            content = {"error": e.message}
            if e.details is not None:
                content["details"] = e.details
            return JSONResponse(status_code=e.status_code, content=content)
        except Exception as e:
            logger.error(f"Error in generate_message: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

# Create controller instance
message_controller = MessageController()
