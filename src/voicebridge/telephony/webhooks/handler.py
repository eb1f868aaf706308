"""
Callback reconciler for carrier status webhooks.

Applies each status callback to its CallRecord as an overwrite. Callbacks may
arrive duplicated or out of order; applying the same event twice leaves the
record unchanged, and the last event to arrive wins.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from email.utils import parsedate_to_datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from voicebridge.calls.models import (
    MAX_DURATION_SECONDS,
    PRICE_PRECISION,
    PRICE_SCALE,
    CallRecord,
)
from voicebridge.calls.repository import CallRecordRepository
from voicebridge.shared.logging import get_logger
from voicebridge.telephony.webhooks.events import CallStatusEvent

logger = get_logger(__name__)


def parse_carrier_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 or RFC 2822 timestamp; None if it does not parse."""
    if not value:
        return None

    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            return None

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_duration(value: str | None) -> int | None:
    """Seconds as a non-negative int that fits the column; None otherwise."""
    if value is None:
        return None
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        return None
    return seconds if 0 <= seconds <= MAX_DURATION_SECONDS else None


_PRICE_LIMIT = Decimal(10) ** (PRICE_PRECISION - PRICE_SCALE)
_PRICE_QUANTUM = Decimal(1).scaleb(-PRICE_SCALE)


def parse_price(value: str | None) -> Decimal | None:
    """Price rounded to the column scale; None if malformed or out of range."""
    if value is None:
        return None
    try:
        price = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not price.is_finite() or abs(price) >= _PRICE_LIMIT:
        return None
    price = price.quantize(_PRICE_QUANTUM)
    return price if abs(price) < _PRICE_LIMIT else None


def status_event_changes(event: CallStatusEvent) -> dict[str, Any]:
    """Compute the field overwrite a status event implies.

    Status is always written. Every other field is written only when the
    carrier sent a value that parses; malformed values are skipped one field
    at a time.
    """
    changes: dict[str, Any] = {"status": event.call_status}

    start_time = parse_carrier_timestamp(event.start_time)
    if start_time is not None:
        changes["start_time"] = start_time

    end_time = parse_carrier_timestamp(event.end_time)
    if end_time is not None:
        changes["end_time"] = end_time

    duration = parse_duration(event.call_duration)
    if duration is not None:
        changes["duration"] = duration

    price = parse_price(event.price)
    if price is not None:
        changes["price"] = price

    if event.error_message:
        changes["error_message"] = event.error_message

    return changes


class CallbackReconciler:
    """Reconciles CallRecords with carrier status callbacks."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._calls = CallRecordRepository(session)

    async def _find_record(self, event: CallStatusEvent) -> CallRecord | None:
        record = await self._calls.get_by_carrier_call_id(event.call_sid)
        if record is not None or not event.parent_call_sid:
            return record

        record = await self._calls.get_by_carrier_call_id(event.parent_call_sid)
        if record is not None:
            logger.info(
                "Status callback matched through parent call",
                extra={
                    "call_sid": event.call_sid,
                    "parent_call_sid": event.parent_call_sid,
                    "log_id": record.id,
                },
            )
        return record

    async def apply_status_event(self, event: CallStatusEvent) -> bool:
        """Apply ``event`` to its CallRecord.

        Returns:
            True if a record was updated, False if the event was dropped.
        """
        try:
            record = await self._find_record(event)
            if record is None:
                logger.warning(
                    "Status callback for unknown call",
                    extra={
                        "call_sid": event.call_sid,
                        "parent_call_sid": event.parent_call_sid,
                        "call_status": event.call_status,
                    },
                )
                return False

            changes = status_event_changes(event)
            await self._calls.apply_changes(record, changes)
            await self._session.commit()

            logger.info(
                "Call status updated",
                extra={
                    "log_id": record.id,
                    "call_sid": event.call_sid,
                    "call_status": event.call_status,
                    "carrier_timestamp": event.timestamp,
                },
            )
            return True
        except Exception:
            logger.exception(
                "Failed to apply status callback",
                extra={"call_sid": event.call_sid, "call_status": event.call_status},
            )
            await self._session.rollback()
            return False
