"""
Outbound call initiation, cancellation and history.

The call record is committed as ``initiated`` before the carrier is contacted,
so a failed carrier request still leaves a ``failed`` record behind.
"""

from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from voicebridge.calls.models import STATUS_COMPLETED, STATUS_FAILED, CallRecord
from voicebridge.calls.repository import CallRecordRepository
from voicebridge.phones.models import PhoneNumber
from voicebridge.phones.repository import PhoneNumberRepository
from voicebridge.shared.exceptions import (
    CarrierError,
    ConfigurationError,
    NotFoundError,
    NotVerifiedError,
    ValidationError,
)
from voicebridge.shared.logging import get_logger
from voicebridge.telephony.config import STATUS_CALLBACK_PATH, TWIML_PATH, TelephonyConfig
from voicebridge.telephony.interface import CallCreateRequest, TelephonyProvider

logger = get_logger(__name__)


def resolve_caller_id(config: TelephonyConfig, phone: PhoneNumber) -> str:
    """Pick the caller ID presented to the callee.

    Raises:
        ConfigurationError: Shared-number mode without a shared number.
    """
    if config.use_shared_number:
        if not config.twilio_from_number:
            raise ConfigurationError("Shared caller ID enabled but no Twilio number configured.")
        return config.twilio_from_number
    return phone.number


class CallService:
    """Service for principal-initiated voice calls."""

    def __init__(
        self,
        session: AsyncSession,
        provider: TelephonyProvider,
        config: TelephonyConfig,
    ) -> None:
        self._session = session
        self._calls = CallRecordRepository(session)
        self._phones = PhoneNumberRepository(session)
        self._provider = provider
        self._config = config

    async def place_call(self, user_id: int, destination_number: str) -> dict[str, object]:
        """Ask the carrier to dial ``destination_number`` for the principal.

        Returns:
            ``{"call_sid": ..., "log_id": ...}``

        Raises:
            NotVerifiedError: The principal has no verified number.
            ValidationError: Empty destination.
            CarrierError: The carrier refused to create the call.
        """
        phone = await self._phones.get_by_user(user_id)
        if phone is None or not phone.is_verified:
            logger.info("Call refused: no verified number", extra={"user_id": user_id})
            raise NotVerifiedError()

        destination = (destination_number or "").strip()
        if not destination:
            raise ValidationError("Destination number is required.", details={"field": "destination_number"})

        caller_id = resolve_caller_id(self._config, phone)

        record = await self._calls.create(
            user_id=user_id,
            destination_number=destination,
            phone_number_id=phone.id,
        )
        await self._session.commit()

        request = CallCreateRequest(
            to=destination,
            from_number=caller_id,
            control_url=self._config.get_webhook_url(TWIML_PATH),
            status_callback_url=self._config.get_webhook_url(STATUS_CALLBACK_PATH),
        )

        try:
            response = await self._provider.create_call(request)
        except CarrierError as e:
            record.status = STATUS_FAILED
            record.error_message = e.message
            await self._session.commit()
            logger.warning(
                "Carrier refused to create call",
                extra={
                    "user_id": user_id,
                    "log_id": record.id,
                    "carrier_error_code": e.error_code,
                },
            )
            raise e.with_context("Could not initiate call") from e

        await self._calls.assign_carrier_call_id(record, response.provider_call_id, response.status)
        await self._session.commit()

        logger.info(
            "Call initiated",
            extra={
                "user_id": user_id,
                "log_id": record.id,
                "call_sid": response.provider_call_id,
                "status": response.status,
            },
        )
        return {"call_sid": response.provider_call_id, "log_id": record.id}

    async def cancel_call(self, user_id: int, call_sid: str) -> None:
        """Hang up one of the principal's calls.

        Raises:
            NotFoundError: No such call for the principal.
            CarrierError: The carrier refused the update.
        """
        record = await self._calls.get_by_carrier_call_id(call_sid)
        if record is None or record.user_id != user_id:
            raise NotFoundError("Call not found.")

        if record.is_terminal:
            logger.info(
                "Cancel skipped: call already finished",
                extra={"user_id": user_id, "call_sid": call_sid, "status": record.status},
            )
            return

        try:
            await self._provider.update_call(call_sid, STATUS_COMPLETED)
        except CarrierError as e:
            logger.warning(
                "Carrier refused to end call",
                extra={"user_id": user_id, "call_sid": call_sid, "carrier_error_code": e.error_code},
            )
            raise e.with_context("Could not end call") from e

        logger.info("Call end requested", extra={"user_id": user_id, "call_sid": call_sid})

    async def list_call_history(self, user_id: int) -> Sequence[CallRecord]:
        return await self._calls.list_for_user(user_id)
