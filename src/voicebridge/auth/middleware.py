"""
Authentication dependency for principal-facing routes.

This module exposes:
- CurrentUser
- get_current_user
- CurrentUserDep (FastAPI dependency alias)
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from voicebridge.auth.jwt import JWTService
from voicebridge.config import Settings, get_settings
from voicebridge.shared.exceptions import AuthenticationError, InvalidTokenError
from voicebridge.shared.logging import get_logger

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    """Authenticated principal."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Principal ID")
    email: str = Field(default="", description="Principal email")


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    """Extract and validate the current principal from the bearer token."""
    if credentials is None:
        logger.warning(
            "Missing authentication credentials",
            extra={
                "endpoint": str(request.url.path),
                "method": request.method,
                "client_ip": request.client.host if request.client else "unknown",
            },
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "code": "MISSING_CREDENTIALS",
                "message": "Authentication credentials required",
            },
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = JWTService(settings).validate_access_token(credentials.credentials)

        user_id = payload.get("user_id")
        if user_id is None:
            raise InvalidTokenError(
                message="Token missing user_id",
                details={"payload_keys": list(payload.keys())},
            )
        try:
            user_id = int(user_id)
        except (TypeError, ValueError) as e:
            raise InvalidTokenError(message="Token user_id is not an integer") from e

        return CurrentUser(id=user_id, email=payload.get("email", "") or "")

    except AuthenticationError as e:
        logger.info(
            "Rejected bearer token",
            extra={
                "endpoint": str(request.url.path),
                "method": request.method,
                "error_code": e.code,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": e.code, "message": e.message},
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]
