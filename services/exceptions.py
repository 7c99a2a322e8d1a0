"""
Error taxonomy shared by services and controllers
Controllers translate these into HTTP status codes
"""
from typing import Any, Optional

class ServiceError(Exception):
    """Base error carrying the HTTP status a controller should answer with"""
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

class UpstreamError(ServiceError):
    """Network failure, timeout, non-2xx or malformed response from a provider"""
    status_code = 502

class RateLimitedError(UpstreamError):
    """Provider answered 429"""
    status_code = 429

class NoDataFoundError(ServiceError):
    """Provider reachable but has nothing for the address"""
    status_code = 404

class InvalidPriceError(ServiceError):
    """Resolved price is exactly zero"""
    status_code = 400

class MessageGenerationError(ServiceError):
    """Text generation failed for a reason other than quota"""
    status_code = 500

class InsufficientCreditsError(MessageGenerationError):
    """Text generation quota exhausted, callers fall back locally"""
    status_code = 402

class StreamReconnectError(Exception):
    """Stream client exhausted its reconnect budget"""
