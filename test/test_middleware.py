"""
Tests for authentication and correlation-id middleware.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import status
from httpx import AsyncClient

from voicebridge.config import Settings


class TestAuthMiddleware:
    """Tests for the bearer-token principal dependency."""

    @pytest.mark.asyncio
    async def test_protected_endpoint_with_valid_token(
        self,
        client: AsyncClient,
        auth_headers,
    ) -> None:
        response = await client.get("/api/user/phone", headers=auth_headers(11))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["phone_number"] is None

    @pytest.mark.asyncio
    async def test_protected_endpoint_with_expired_token(self, client: AsyncClient) -> None:
        settings = Settings()
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": "1", "user_id": 1, "type": "access", "iat": past, "exp": past + timedelta(minutes=1)},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )

        response = await client.get("/api/user/phone", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"]["code"] == "TOKEN_EXPIRED"

    @pytest.mark.asyncio
    async def test_token_without_user_id(self, client: AsyncClient) -> None:
        settings = Settings()
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "x", "type": "access", "iat": now, "exp": now + timedelta(minutes=5)},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )

        response = await client.get("/api/user/phone", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"]["code"] == "INVALID_TOKEN"


class TestCorrelationIdMiddleware:
    @pytest.mark.asyncio
    async def test_request_id_header_is_reused(self, client: AsyncClient) -> None:
        response = await client.get("/health", headers={"X-Request-ID": "req-9"})

        assert response.headers["X-Correlation-ID"] == "req-9"

    @pytest.mark.asyncio
    async def test_generated_when_absent(self, client: AsyncClient) -> None:
        response = await client.get("/health")

        assert len(response.headers["X-Correlation-ID"]) == 36
