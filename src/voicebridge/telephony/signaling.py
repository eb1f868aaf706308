"""
Signaling access tokens for the Twilio Voice client SDK.

Tokens are minted with the Twilio helper library's ``AccessToken``: an HS256
JWT signed with an API key secret, granting a softphone identity incoming and
outgoing voice.
"""

from __future__ import annotations

import time
from typing import Iterable

import jwt
from sqlalchemy.ext.asyncio import AsyncSession
from twilio.jwt.access_token import AccessToken, AccessTokenGrant
from twilio.jwt.access_token.grants import VoiceGrant

from voicebridge.phones.repository import PhoneNumberRepository
from voicebridge.shared.exceptions import AppException, ConfigurationError, NotVerifiedError
from voicebridge.shared.logging import get_logger
from voicebridge.telephony.config import TelephonyConfig

logger = get_logger(__name__)


def identity_for(user_id: int) -> str:
    """Softphone identity registered for a principal."""
    return f"user_{user_id}"


class AccessTokenBuilder:
    """Builds signed access tokens; ``clock`` fixes ``nbf`` and ``exp``."""

    def __init__(self, clock=time.time) -> None:
        self._clock = clock

    def issue(
        self,
        account_sid: str,
        key_sid: str,
        key_secret: str,
        ttl_seconds: int,
        identity: str,
        grants: Iterable[AccessTokenGrant],
    ) -> str:
        now = int(self._clock())
        token = AccessToken(
            account_sid,
            key_sid,
            key_secret,
            identity=identity,
            nbf=now,
            ttl=ttl_seconds,
            valid_until=now + ttl_seconds,
        )
        for grant in grants:
            token.add_grant(grant)
        return token.to_jwt()


class SignalingTokenService:
    """Issues client SDK tokens to principals with a verified number."""

    def __init__(
        self,
        session: AsyncSession,
        config: TelephonyConfig,
        builder: AccessTokenBuilder | None = None,
    ) -> None:
        self._phones = PhoneNumberRepository(session)
        self._config = config
        self._builder = builder or AccessTokenBuilder()

    async def issue_token(self, user_id: int) -> dict[str, str]:
        phone = await self._phones.get_by_user(user_id)
        if phone is None or not phone.is_verified:
            raise NotVerifiedError()

        cfg = self._config
        if not cfg.signaling_configured:
            logger.error(
                "Voice token requested but signaling credentials are missing",
                extra={
                    "user_id": user_id,
                    "account_sid_set": bool(cfg.twilio_account_sid),
                    "api_key_sid_set": bool(cfg.twilio_api_key_sid),
                    "api_key_secret_set": bool(cfg.twilio_api_key_secret),
                    "twiml_app_sid_set": bool(cfg.twilio_twiml_app_sid),
                },
            )
            raise ConfigurationError("Twilio Voice SDK credentials not configured.")

        identity = identity_for(user_id)
        grant = VoiceGrant(
            outgoing_application_sid=cfg.twilio_twiml_app_sid,
            incoming_allow=True,
        )
        try:
            token = self._builder.issue(
                account_sid=cfg.twilio_account_sid,
                key_sid=cfg.twilio_api_key_sid,
                key_secret=cfg.twilio_api_key_secret,
                ttl_seconds=cfg.token_ttl_seconds,
                identity=identity,
                grants=[grant],
            )
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            logger.exception("Failed to sign voice access token", extra={"user_id": user_id})
            raise AppException("Could not generate voice token.", "TOKEN_GENERATION_FAILED") from e

        logger.info("Voice access token issued", extra={"user_id": user_id, "identity": identity})
        return {"token": token, "identity": identity}
