"""
Custom exception classes for the application.

Every domain failure derives from ``AppException``; ``main.create_app`` maps
``status_code`` and ``code`` onto a structured JSON error body.
"""

from typing import Any


class AppException(Exception):
    """Base exception for application errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "APP_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application exception.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class ValidationError(AppException):
    """Raised when business validation fails (distinct from pydantic ValidationError)."""

    status_code = 422

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "VALIDATION_ERROR", details)


class NotFoundError(AppException):
    """Raised when a required record does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "NOT_FOUND", details)


class NotVerifiedError(AppException):
    """Raised when the principal has no verified phone number."""

    status_code = 400

    def __init__(
        self,
        message: str = "User phone number not registered or verified.",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "PHONE_NOT_VERIFIED", details)


class InvalidCodeError(AppException):
    """Raised when the carrier does not approve a verification code."""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid verification code.",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "INVALID_CODE", details)


class ConfigurationError(AppException):
    """Raised when carrier credentials or service identifiers are missing."""

    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "CONFIGURATION_ERROR", details)


class CarrierError(AppException):
    """Raised when the telephony carrier rejects or fails a request."""

    status_code = 502

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        provider_response: dict[str, Any] | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if error_code is not None:
            details["carrier_error_code"] = error_code
        super().__init__(message, "CARRIER_ERROR", details)
        self.error_code = error_code
        self.provider_response = provider_response or {}

    def with_context(self, context: str) -> "CarrierError":
        """Return a copy whose message is prefixed with user-facing context."""
        return CarrierError(
            message=f"{context}: {self.message}",
            error_code=self.error_code,
            provider_response=self.provider_response,
        )


class AuthenticationError(AppException):
    """Raised when authentication fails."""

    status_code = 401

    def __init__(
        self,
        message: str = "Authentication failed",
        code: str = "AUTH_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class TokenExpiredError(AuthenticationError):
    """Raised when a token has expired."""

    def __init__(
        self,
        message: str = "Token has expired",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "TOKEN_EXPIRED", details)


class InvalidTokenError(AuthenticationError):
    """Raised when a token is invalid."""

    def __init__(
        self,
        message: str = "Invalid token",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "INVALID_TOKEN", details)
