from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from .responses import error_response

class CustomHTTPException(HTTPException):
    def __init__(
        self,
        status_code: int,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status_code,
            detail=error_response(message, status_code, details)
        )

    @property
    def message(self) -> str:
        return self.detail.get("message", "")


class DatabaseError(CustomHTTPException):
    def __init__(self, message: str):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, message)


class ValidationError(CustomHTTPException):
    """Malformed input that passed the transport layer (formats, payloads, uploads)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, details)


class NotFound(CustomHTTPException):
    def __init__(self, resource: str = "Resource", details: Optional[Dict[str, Any]] = None):
        super().__init__(status.HTTP_404_NOT_FOUND, f"{resource} not found", details)


class ConflictError(CustomHTTPException):
    """Unique constraint violation (email, card id, encoded path, user id)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(status.HTTP_409_CONFLICT, message, details)


class DecodeError(ValueError):
    """Token is not a valid encoded identifier. Never leaves the card controller."""
