"""
Receipt — at most one per payment transaction (payment_transaction_id is UNIQUE).
Figures are copied from the invoice, never recomputed.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, Numeric, String, Text

from settlement.db.base import Base


class Receipt(Base):
    __tablename__ = "receipts"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    receipt_number = Column(String(50), unique=True, nullable=False)
    booking_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=True)
    payment_transaction_id = Column(String, unique=True, nullable=False)
    invoice_id = Column(String, nullable=True)
    receipt_date = Column(DateTime(timezone=True), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    payment_method = Column(String(100), nullable=True)  # "Visa ending in 4242", "UPI", ...
    payment_reference = Column(String(255), nullable=True)

    subtotal = Column(Numeric(12, 2), nullable=True)
    taxes = Column(Numeric(12, 2), nullable=True)
    fees = Column(Numeric(12, 2), nullable=True)
    discount = Column(Numeric(12, 2), nullable=True)
    tax_breakdown = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)

    is_emailed = Column(Boolean, nullable=False, default=False)
    emailed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
