"""
PaymentTransaction — one row per charge or refund attempt, failed ones included.
transaction_number is the human-readable business id (TXN... / REF-TXN...).
"""
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Index, Numeric, String, Text

from settlement.db.base import Base
from settlement.models.enums import PaymentStatus, PaymentType


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"
    __table_args__ = (
        Index("ix_payment_transactions_booking_status", "booking_id", "status"),
        Index("ix_payment_transactions_user_created", "user_id", "created_at"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    transaction_number = Column(String(50), unique=True, nullable=False)
    booking_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=True)
    payment_method_id = Column(String, nullable=True)
    original_transaction_id = Column(String, nullable=True, index=True)  # refunds only
    type = Column(String(30), nullable=False, default=PaymentType.BOOKING_PAYMENT.value)
    status = Column(String(30), nullable=False, default=PaymentStatus.PENDING.value)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    refunded_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    payment_gateway = Column(String(100), nullable=True)
    gateway_transaction_id = Column(String(255), nullable=True)
    gateway_response = Column(JSON, nullable=True)
    failure_reason = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    refunded_at = Column(DateTime(timezone=True), nullable=True)
    refund_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    payment_method_type = Column(String(50), nullable=True)
    card_last_four = Column(String(4), nullable=True)
    card_brand = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def remaining_amount(self) -> Decimal:
        return Decimal(self.amount) - Decimal(self.refunded_amount or 0)
