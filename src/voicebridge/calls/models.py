"""
SQLAlchemy model for call records.

Status is an open string owned by the carrier; ``TERMINAL_STATUSES`` is only
used for display and to short-circuit cancellation.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from voicebridge.shared.database import Base

STATUS_INITIATED = "initiated"
STATUS_FAILED = "failed"
STATUS_COMPLETED = "completed"

TERMINAL_STATUSES: frozenset[str] = frozenset(
    {"completed", "failed", "busy", "no-answer", "canceled"}
)

DIRECTION_OUTBOUND_API = "outbound-api"
DIRECTION_OUTBOUND_CLIENT = "outbound-client"

# Column bounds for carrier-reported figures.
MAX_DURATION_SECONDS = 2**31 - 1
PRICE_PRECISION = 8
PRICE_SCALE = 5


def is_terminal(status: str | None) -> bool:
    return (status or "").lower() in TERMINAL_STATUSES


class CallRecord(Base):
    """One call attempt, reconciled from carrier status callbacks."""

    __tablename__ = "call_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
    )
    phone_number_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("phone_numbers.id", ondelete="SET NULL"),
        nullable=True,
    )
    destination_number: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    twilio_call_sid: Mapped[str | None] = mapped_column(
        String(64),
        unique=True,
        nullable=True,
        index=True,
    )
    direction: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=DIRECTION_OUTBOUND_API,
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=STATUS_INITIATED,
    )
    start_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    end_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    duration: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    price: Mapped[Decimal | None] = mapped_column(
        Numeric(PRICE_PRECISION, PRICE_SCALE),
        nullable=True,
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def __repr__(self) -> str:
        return f"<CallRecord(id={self.id}, sid={self.twilio_call_sid}, status={self.status})>"
