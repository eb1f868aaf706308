"""
Call-control responder.

Answers the carrier's synchronous voice webhooks with TwiML: ring a principal's
softphone for an incoming call, bridge a softphone's outgoing call to the
PSTN, or dial a number for a REST-created call.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from voicebridge.calls.models import DIRECTION_OUTBOUND_CLIENT, CallRecord
from voicebridge.calls.repository import CallRecordRepository
from voicebridge.calls.service import resolve_caller_id
from voicebridge.phones.repository import PhoneNumberRepository
from voicebridge.phones.service import normalize_phone_number
from voicebridge.shared.logging import get_logger
from voicebridge.telephony import twiml
from voicebridge.telephony.config import STATUS_CALLBACK_PATH, TelephonyConfig
from voicebridge.telephony.signaling import identity_for

logger = get_logger(__name__)

_USER_PREFIX = "user_"

# <Number> accepts a narrower event set than the Calls API.
DIAL_STATUS_EVENTS: tuple[str, ...] = ("initiated", "ringing", "answered", "completed")


@dataclass(frozen=True)
class ParsedIdentity:
    user_id: int


@dataclass(frozen=True)
class IdentityParseFailure:
    reason: str


def parse_signaling_identity(
    raw: str | None,
    prefix: str = "client",
) -> ParsedIdentity | IdentityParseFailure:
    """Resolve ``<prefix>:user_<id>`` to a principal id."""
    if not raw:
        return IdentityParseFailure("missing identity")

    scheme, sep, identity = raw.strip().partition(":")
    if not sep or scheme != prefix:
        return IdentityParseFailure(f"expected '{prefix}:' prefix")
    if not identity.startswith(_USER_PREFIX):
        return IdentityParseFailure(f"expected '{_USER_PREFIX}<id>' identity")

    digits = identity[len(_USER_PREFIX):]
    if not (digits.isascii() and digits.isdigit()):
        return IdentityParseFailure("principal id is not numeric")
    return ParsedIdentity(user_id=int(digits))


class CallControlResponder:
    """Builds call-control TwiML from the stored phone and call records."""

    def __init__(self, session: AsyncSession, config: TelephonyConfig) -> None:
        self._session = session
        self._config = config
        self._phones = PhoneNumberRepository(session)
        self._calls = CallRecordRepository(session)

    def _say(self, message: str) -> str:
        return twiml.say(message, language=self._config.say_language)

    def failure_instruction(self) -> str:
        return self._say(self._config.message_configuration_error)

    async def incoming_call_instruction(self, to_number: str | None) -> str:
        """Ring the softphone of the principal who owns ``to_number``."""
        number = normalize_phone_number(to_number or "") or (to_number or "").strip()
        phone = await self._phones.get_verified_by_number(number) if number else None
        if phone is None:
            logger.info("Incoming call to unregistered number", extra={"to": number})
            return self._say(self._config.message_invalid_number)

        identity = identity_for(phone.user_id)
        logger.info(
            "Routing incoming call to softphone",
            extra={"user_id": phone.user_id, "identity": identity},
        )
        return twiml.dial_client(
            identity,
            timeout=self._config.dial_timeout_seconds,
            fallback_message=self._config.message_user_unavailable,
            language=self._config.say_language,
        )

    async def outgoing_call_instruction(
        self,
        from_identity: str | None,
        to_number: str | None,
        call_sid: str | None,
    ) -> str:
        """Bridge a softphone call to ``to_number`` and record it under ``call_sid``."""
        parsed = parse_signaling_identity(from_identity, self._config.client_identity_prefix)
        if isinstance(parsed, IdentityParseFailure):
            logger.warning(
                "Outgoing call from unrecognized identity",
                extra={"from": from_identity, "reason": parsed.reason},
            )
            return self._say(self._config.message_user_not_found)

        phone = await self._phones.get_by_user(parsed.user_id)
        if phone is None or not phone.is_verified:
            logger.warning(
                "Outgoing call from principal without verified number",
                extra={"user_id": parsed.user_id},
            )
            return self._say(self._config.message_user_not_found)

        destination = (to_number or "").strip()
        if not destination:
            logger.warning("Outgoing call without destination", extra={"user_id": parsed.user_id})
            return self.failure_instruction()

        caller_id = resolve_caller_id(self._config, phone)

        await self._record_softphone_call(parsed.user_id, phone.id, destination, call_sid)

        return twiml.dial_number(
            destination,
            caller_id=caller_id,
            status_callback=self._config.get_webhook_url(STATUS_CALLBACK_PATH),
            status_callback_events=DIAL_STATUS_EVENTS,
            status_callback_method="POST",
        )

    async def _record_softphone_call(
        self,
        user_id: int,
        phone_id: int,
        destination: str,
        call_sid: str | None,
    ) -> CallRecord:
        """Create the CallRecord for ``call_sid`` unless a carrier retry already did."""
        record = await self._calls.get_by_carrier_call_id(call_sid) if call_sid else None
        if record is not None:
            logger.info(
                "Softphone call already recorded",
                extra={"user_id": user_id, "log_id": record.id, "call_sid": call_sid},
            )
            return record

        try:
            record = await self._calls.create(
                user_id=user_id,
                destination_number=destination,
                phone_number_id=phone_id,
                twilio_call_sid=call_sid,
                direction=DIRECTION_OUTBOUND_CLIENT,
            )
            await self._session.commit()
        except IntegrityError:
            # Concurrent retry inserted the same call sid first.
            await self._session.rollback()
            existing = await self._calls.get_by_carrier_call_id(call_sid) if call_sid else None
            if existing is None:
                raise
            logger.info(
                "Softphone call recorded by concurrent request",
                extra={"user_id": user_id, "log_id": existing.id, "call_sid": call_sid},
            )
            return existing

        logger.info(
            "Softphone call recorded",
            extra={"user_id": user_id, "log_id": record.id, "call_sid": call_sid},
        )
        return record

    def generic_instruction(self, to_number: str | None) -> str:
        destination = (to_number or "").strip()
        if not destination:
            return self.failure_instruction()
        return twiml.dial(destination)
