"""
Booking — owned by the booking workflow; settlement only reads the amount
and drives status (pending -> confirmed -> cancelled).
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Numeric, String, Text

from settlement.db.base import Base
from settlement.models.enums import BookingStatus


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    pnr = Column(String(10), unique=True, nullable=True)
    user_id = Column(String, nullable=True, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    confirmation_date = Column(DateTime(timezone=True), nullable=True)
    cancellation_date = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == BookingStatus.PENDING.value
