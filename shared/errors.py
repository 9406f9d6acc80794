"""
Shared error handling for the JWK Set resolution service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class JWKSetError(Exception):
    """Base exception for JWK Set storage and resolution."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class KeyNotFoundError(JWKSetError):
    """No consulted source holds the requested key ID."""

    def __init__(self, key_id: str, message: Optional[str] = None):
        self.key_id = key_id
        super().__init__(
            "KEY_NOT_FOUND",
            message or f"key not found {key_id!r}",
            {"kid": key_id}
        )


class StorageError(JWKSetError):
    """A source failed for a reason other than a missing key."""

    def __init__(self, message: str = "Storage error", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORAGE_ERROR", message, details)


class ClientConstructionError(JWKSetError):
    """The JWK Set client could not be created from its options."""

    def __init__(self, message: str = "failed to create new JWK Set client", details: Optional[Dict[str, Any]] = None):
        super().__init__("CLIENT_CONSTRUCTION_ERROR", message, details)


class RateLimitWaitError(JWKSetError):
    """Waiting for refresh permission timed out."""

    def __init__(self, message: str = "Rate limit wait failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("RATE_LIMIT_ERROR", message, details)


class KeyValidationError(JWKSetError):
    """A JWK is malformed or its key material is unusable."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)
