"""
Phone number verification flow.

A principal registers one number, receives an SMS code through the carrier and
confirms it. Registration always resets verification; confirmation stamps
``verified_at`` only when the carrier approves the code.
"""

import re
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from voicebridge.phones.repository import PhoneNumberRepository
from voicebridge.shared.exceptions import (
    CarrierError,
    ConfigurationError,
    InvalidCodeError,
    NotFoundError,
    ValidationError,
)
from voicebridge.shared.logging import get_logger
from voicebridge.telephony.config import TelephonyConfig
from voicebridge.telephony.interface import TelephonyProvider

logger = get_logger(__name__)

# E.164 phone number pattern
E164_PATTERN = re.compile(r"^\+[1-9]\d{6,14}$")
CODE_PATTERN = re.compile(r"^\d{6}$")


def normalize_phone_number(phone: str) -> str | None:
    """Normalize phone number to E.164 format.

    Args:
        phone: Raw phone number string.

    Returns:
        Normalized phone number or None if invalid.
    """
    if not phone:
        return None

    cleaned = re.sub(r"[\s\-\.\(\)]", "", phone.strip())

    if E164_PATTERN.match(cleaned):
        return cleaned

    if cleaned.startswith("00"):
        cleaned = "+" + cleaned[2:]
        if E164_PATTERN.match(cleaned):
            return cleaned

    return None


class VerificationService:
    """Service for phone number registration and verification."""

    def __init__(
        self,
        session: AsyncSession,
        provider: TelephonyProvider,
        config: TelephonyConfig,
    ) -> None:
        """Initialize service.

        Args:
            session: Async database session.
            provider: Carrier capability.
            config: Telephony configuration.
        """
        self._session = session
        self._phones = PhoneNumberRepository(session)
        self._provider = provider
        self._config = config

    async def request_verification(self, user_id: int, number: str) -> dict[str, str]:
        """Send a one-time code and register ``number`` as unverified.

        Raises:
            ConfigurationError: Verify service is not configured.
            ValidationError: ``number`` is not a valid E.164 number.
            CarrierError: The carrier refused to send the code.
        """
        if not self._config.twilio_verify_service_sid:
            logger.error(
                "Verification requested but Twilio Verify service is not configured",
                extra={"user_id": user_id},
            )
            raise ConfigurationError("Twilio Verify service not configured.")

        normalized = normalize_phone_number(number)
        if normalized is None:
            raise ValidationError(
                "Phone number must be in E.164 format (e.g. +14155550100).",
                details={"field": "phone_number"},
            )

        try:
            verification = await self._provider.send_verification(normalized, "sms")
        except CarrierError as e:
            logger.warning(
                "Carrier refused to send verification code",
                extra={"user_id": user_id, "carrier_error_code": e.error_code},
            )
            raise e.with_context("Could not send verification code") from e

        await self._phones.replace_for_user(user_id, normalized)
        await self._session.commit()

        logger.info(
            "Verification code sent",
            extra={"user_id": user_id, "verification_sid": verification.sid},
        )
        return {"verification_sid": verification.sid, "phone_number": normalized}

    async def confirm_verification(self, user_id: int, code: str) -> dict[str, bool]:
        """Check ``code`` with the carrier and mark the number verified.

        Raises:
            ValidationError: ``code`` is not exactly six digits.
            NotFoundError: No number registered for the principal.
            InvalidCodeError: The carrier did not approve the code.
            CarrierError: The carrier check failed.
        """
        if not CODE_PATTERN.match(code or ""):
            raise ValidationError("Verification code must be exactly 6 digits.", details={"field": "code"})

        phone = await self._phones.get_by_user(user_id)
        if phone is None:
            raise NotFoundError("Phone number not found for this user.")

        try:
            check = await self._provider.check_verification(phone.number, code)
        except CarrierError as e:
            logger.warning(
                "Carrier verification check failed",
                extra={"user_id": user_id, "carrier_error_code": e.error_code},
            )
            raise e.with_context("Verification failed") from e

        if not check.approved:
            logger.info(
                "Verification code rejected",
                extra={"user_id": user_id, "status": check.status},
            )
            raise InvalidCodeError()

        await self._phones.mark_verified(phone)
        await self._session.commit()
        logger.info("Phone number verified", extra={"user_id": user_id, "phone_id": phone.id})
        return {"verified": True}

    async def get_phone_status(self, user_id: int) -> dict[str, Any]:
        phone = await self._phones.get_by_user(user_id)
        if phone is None:
            return {"id": None, "phone_number": None, "is_verified": False, "verified_at": None}
        return {
            "id": phone.id,
            "phone_number": phone.number,
            "is_verified": phone.is_verified,
            "verified_at": phone.verified_at,
        }

    async def delete_phone_number(self, user_id: int) -> bool:
        deleted = await self._phones.delete_for_user(user_id)
        await self._session.commit()
        if deleted:
            logger.info("Phone number deleted", extra={"user_id": user_id})
        return deleted
