"""
Pytest configuration and fixtures.

Database tests run against in-memory SQLite (aiosqlite) sharing a single
connection; the carrier is always the MockTelephonyAdapter.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import voicebridge.calls.models  # noqa: F401
import voicebridge.phones.models  # noqa: F401
from voicebridge.auth.jwt import JWTService
from voicebridge.config import Settings
from voicebridge.main import create_app
from voicebridge.phones.models import PhoneNumber
from voicebridge.shared.database import Base, get_db_session
from voicebridge.telephony.config import ProviderType, TelephonyConfig
from voicebridge.telephony.factory import get_telephony_config, get_telephony_provider
from voicebridge.telephony.mock_adapter import MockTelephonyAdapter

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
def telephony_config() -> TelephonyConfig:
    return TelephonyConfig(
        _env_file=None,
        provider_type=ProviderType.MOCK,
        twilio_account_sid="AC_TEST_ACCOUNT_SID",
        twilio_auth_token="test_auth_token_12345",
        twilio_from_number="+14155550000",
        twilio_verify_service_sid="VA_TEST_SERVICE_SID",
        twilio_api_key_sid="SK_TEST_KEY_SID",
        twilio_api_key_secret="test_api_key_secret",
        twilio_twiml_app_sid="AP_TEST_APP_SID",
        use_shared_number=False,
        webhook_base_url="https://example.com",
        validate_webhook_signatures=False,
    )


@pytest.fixture
def mock_provider() -> MockTelephonyAdapter:
    return MockTelephonyAdapter()


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_phone(db_session: AsyncSession) -> Callable:
    """Insert a PhoneNumber row, verified unless told otherwise."""

    async def _make(user_id: int, number: str, verified: bool = True) -> PhoneNumber:
        phone = PhoneNumber(
            user_id=user_id,
            number=number,
            verified_at=datetime.now(timezone.utc) if verified else None,
        )
        db_session.add(phone)
        await db_session.commit()
        await db_session.refresh(phone)
        return phone

    return _make


@pytest.fixture
def auth_headers() -> Callable[[int], dict[str, str]]:
    service = JWTService(Settings())

    def _headers(user_id: int) -> dict[str, str]:
        token = service.create_access_token(user_id=user_id, email=f"user{user_id}@example.com")
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    mock_provider: MockTelephonyAdapter,
    telephony_config: TelephonyConfig,
) -> AsyncGenerator[AsyncClient, None]:
    app = create_app()

    async def _override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = _override_get_db_session
    app.dependency_overrides[get_telephony_provider] = lambda: mock_provider
    app.dependency_overrides[get_telephony_config] = lambda: telephony_config

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
