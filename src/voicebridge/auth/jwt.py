"""JWT handling for principal bearer tokens."""

from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

import jwt

from voicebridge.config import Settings, get_settings
from voicebridge.shared.exceptions import InvalidTokenError, TokenExpiredError
from voicebridge.shared.logging import get_logger

logger = get_logger(__name__)


class JWTServiceProtocol(Protocol):
    """Protocol for token validation."""

    def validate_access_token(self, token: str) -> dict[str, Any]: ...


class JWTService:
    """Creates and validates principal access tokens.

    Sessions are owned by the upstream identity provider; this service only
    needs to read the principal id back out of a signed token. ``create_access_token``
    exists for operators and tests.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def create_access_token(
        self,
        user_id: int,
        email: str = "",
        additional_claims: dict[str, Any] | None = None,
    ) -> str:
        """Create a new access token."""
        now = datetime.now(timezone.utc)
        expires = now + timedelta(minutes=self._settings.jwt_access_token_expire_minutes)

        payload: dict[str, Any] = {
            "sub": str(user_id),
            "user_id": user_id,
            "email": email,
            "type": "access",
            "iat": now,
            "exp": expires,
        }
        if additional_claims:
            payload.update(additional_claims)

        return jwt.encode(
            payload,
            self._settings.jwt_secret_key,
            algorithm=self._settings.jwt_algorithm,
        )

    def validate_access_token(self, token: str) -> dict[str, Any]:
        """Decode a token and ensure it is an access token."""
        try:
            payload = jwt.decode(
                token,
                self._settings.jwt_secret_key,
                algorithms=[self._settings.jwt_algorithm],
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError() from e
        except jwt.InvalidTokenError as e:
            logger.warning("Invalid token", extra={"error": str(e)})
            raise InvalidTokenError(details={"error": str(e)}) from e

        if payload.get("type") != "access":
            raise InvalidTokenError(
                message="Invalid token type",
                details={"expected": "access", "got": payload.get("type")},
            )

        return payload
