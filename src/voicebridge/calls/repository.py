"""
Repository for call record database operations.
"""

from typing import Any, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from voicebridge.calls.models import DIRECTION_OUTBOUND_API, STATUS_INITIATED, CallRecord


class CallRecordRepositoryProtocol(Protocol):
    """Protocol for call record repository operations."""

    async def create(
        self,
        user_id: int,
        destination_number: str,
        phone_number_id: int | None = None,
        twilio_call_sid: str | None = None,
        direction: str = DIRECTION_OUTBOUND_API,
        status: str = STATUS_INITIATED,
    ) -> CallRecord:
        """Create a new call record."""
        ...

    async def get_by_id(self, record_id: int) -> CallRecord | None:
        """Get call record by ID."""
        ...

    async def get_by_carrier_call_id(self, call_sid: str) -> CallRecord | None:
        """Get call record by carrier call identifier."""
        ...

    async def list_for_user(self, user_id: int) -> Sequence[CallRecord]:
        """List a principal's call records, newest first."""
        ...


class CarrierIdConflictError(ValueError):
    """Raised when a record's carrier call identifier would be overwritten."""


class CallRecordRepository:
    """Repository for call record database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def create(
        self,
        user_id: int,
        destination_number: str,
        phone_number_id: int | None = None,
        twilio_call_sid: str | None = None,
        direction: str = DIRECTION_OUTBOUND_API,
        status: str = STATUS_INITIATED,
    ) -> CallRecord:
        """Create a new call record.

        Args:
            user_id: Owning principal ID.
            destination_number: Dialed number.
            phone_number_id: Caller's PhoneNumber ID, if any.
            twilio_call_sid: Carrier call identifier when already known.
            direction: Call direction label.
            status: Initial status.

        Returns:
            Created CallRecord instance.
        """
        record = CallRecord(
            user_id=user_id,
            phone_number_id=phone_number_id,
            destination_number=destination_number,
            twilio_call_sid=twilio_call_sid,
            direction=direction,
            status=status,
        )
        self._session.add(record)
        await self._session.flush()
        await self._session.refresh(record)
        return record

    async def get_by_id(self, record_id: int) -> CallRecord | None:
        stmt = select(CallRecord).where(CallRecord.id == record_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_carrier_call_id(self, call_sid: str) -> CallRecord | None:
        stmt = select(CallRecord).where(CallRecord.twilio_call_sid == call_sid)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def assign_carrier_call_id(
        self,
        record: CallRecord,
        call_sid: str,
        status: str | None = None,
    ) -> CallRecord:
        """Set the carrier call identifier once.

        Raises:
            CarrierIdConflictError: The record already holds a different id.
        """
        if record.twilio_call_sid is not None and record.twilio_call_sid != call_sid:
            raise CarrierIdConflictError(
                f"CallRecord {record.id} already bound to {record.twilio_call_sid}"
            )
        record.twilio_call_sid = call_sid
        if status:
            record.status = status
        await self._session.flush()
        return record

    async def apply_changes(self, record: CallRecord, changes: dict[str, Any]) -> CallRecord:
        """Overwrite lifecycle fields; the carrier call identifier is never touched."""
        for name, value in changes.items():
            if name == "twilio_call_sid":
                continue
            setattr(record, name, value)
        await self._session.flush()
        return record

    async def list_for_user(self, user_id: int) -> Sequence[CallRecord]:
        stmt = (
            select(CallRecord)
            .where(CallRecord.user_id == user_id)
            .order_by(CallRecord.created_at.desc(), CallRecord.id.desc())
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()
