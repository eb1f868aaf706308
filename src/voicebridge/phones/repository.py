"""
Repository for phone number database operations.
"""

from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from voicebridge.calls.models import CallRecord
from voicebridge.phones.models import PhoneNumber


class PhoneNumberRepositoryProtocol(Protocol):
    """Protocol for phone number repository operations."""

    async def get_by_user(self, user_id: int) -> PhoneNumber | None:
        """Get the principal's phone number record."""
        ...

    async def replace_for_user(self, user_id: int, number: str) -> PhoneNumber:
        """Create or overwrite the principal's record as unverified."""
        ...

    async def mark_verified(self, phone: PhoneNumber) -> PhoneNumber:
        """Stamp the record as verified."""
        ...

    async def delete_for_user(self, user_id: int) -> bool:
        """Remove the principal's record."""
        ...

    async def get_verified_by_number(self, number: str) -> PhoneNumber | None:
        """Find the verified record holding ``number``."""
        ...


class PhoneNumberRepository:
    """Repository for phone number database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def get_by_user(self, user_id: int) -> PhoneNumber | None:
        stmt = select(PhoneNumber).where(PhoneNumber.user_id == user_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def replace_for_user(self, user_id: int, number: str) -> PhoneNumber:
        """Create or overwrite the principal's record.

        The existing row is reused so a principal never holds two records; the
        new number always starts unverified.

        Args:
            user_id: Principal ID.
            number: E.164 phone number.

        Returns:
            The stored PhoneNumber.
        """
        phone = await self.get_by_user(user_id)
        if phone is None:
            phone = PhoneNumber(user_id=user_id, number=number, verified_at=None)
            self._session.add(phone)
        else:
            phone.number = number
            phone.verified_at = None
        await self._session.flush()
        await self._session.refresh(phone)
        return phone

    async def mark_verified(self, phone: PhoneNumber) -> PhoneNumber:
        phone.verified_at = datetime.now(timezone.utc)
        await self._session.flush()
        await self._session.refresh(phone)
        return phone

    async def delete_for_user(self, user_id: int) -> bool:
        """Delete the principal's record, detaching its call history.

        Returns:
            True if a record was removed, False if there was none.
        """
        phone = await self.get_by_user(user_id)
        if phone is None:
            return False

        await self._session.execute(
            update(CallRecord)
            .where(CallRecord.phone_number_id == phone.id)
            .values(phone_number_id=None)
        )
        await self._session.delete(phone)
        await self._session.flush()
        return True

    async def get_verified_by_number(self, number: str) -> PhoneNumber | None:
        stmt = (
            select(PhoneNumber)
            .where(PhoneNumber.number == number)
            .where(PhoneNumber.verified_at.is_not(None))
            .order_by(PhoneNumber.verified_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()
