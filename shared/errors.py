"""
Shared error handling for the token service.

Only caller contract violations are raised. Outcomes of verifying untrusted
tokens are returned as data (see token_service.app.tokens.outcome).
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class TokenServiceException(ValueError):
    """Base exception for token service usage errors."""

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


class InvalidKeyError(TokenServiceException):
    """Key material is missing, empty or of an unusable type."""

    def __init__(self, message: str = "Invalid key material", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_KEY", message, details)


class UnsupportedKeySizeError(TokenServiceException):
    """RSA modulus length outside the supported matrix."""

    def __init__(self, key_size: Any, details: Optional[Dict[str, Any]] = None):
        details = {"key_size": key_size, **(details or {})}
        super().__init__(
            "UNSUPPORTED_KEY_SIZE",
            f"RSA key size {key_size} is not supported; use 2048, 3072 or 4096 bits",
            details
        )


class CannotSignWithPublicKeyError(TokenServiceException):
    """Signing was requested with a verify-only identity."""

    def __init__(self, message: str = "Cannot sign tokens with a public-only key", details: Optional[Dict[str, Any]] = None):
        super().__init__("CANNOT_SIGN_WITH_PUBLIC_KEY", message, details)


class TimestampNotUtcError(TokenServiceException):
    """A timestamp was not tagged as UTC."""

    def __init__(self, field: str, details: Optional[Dict[str, Any]] = None):
        details = {"field": field, **(details or {})}
        super().__init__("TIMESTAMP_NOT_UTC", f"The {field} timestamp must be timezone-aware UTC", details)


class InvalidClaimError(TokenServiceException):
    """A custom claim cannot be embedded in a token."""

    def __init__(self, message: str = "Invalid claim", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_CLAIM", message, details)


class InvalidTimeWindowError(TokenServiceException):
    """The requested validity window is empty."""

    def __init__(self, message: str = "Token expiry must be after its not-before time", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_TIME_WINDOW", message, details)


class EmptyInputError(TokenServiceException):
    """Nothing was supplied to verify."""

    def __init__(self, message: str = "Token is empty; nothing to verify", details: Optional[Dict[str, Any]] = None):
        super().__init__("EMPTY_INPUT", message, details)


class MalformedPolicyError(TokenServiceException):
    """A per-call policy override is unusable."""

    def __init__(self, message: str = "Policy override carries no verification key", details: Optional[Dict[str, Any]] = None):
        super().__init__("MALFORMED_POLICY", message, details)
