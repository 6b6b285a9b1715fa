"""
Invoice — at most one per booking (booking_id is UNIQUE).
Written once after a successful charge and never updated by settlement.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Index, Numeric, String, Text

from settlement.db.base import Base
from settlement.models.enums import InvoiceStatus


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        Index("ix_invoices_user_invoice_date", "user_id", "invoice_date"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    invoice_number = Column(String(50), unique=True, nullable=False)
    booking_id = Column(String, unique=True, nullable=False)
    user_id = Column(String, nullable=True)
    status = Column(String(20), nullable=False, default=InvoiceStatus.DRAFT.value)
    invoice_date = Column(DateTime(timezone=True), nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=True)
    paid_date = Column(DateTime(timezone=True), nullable=True)

    # Amount breakdown
    subtotal = Column(Numeric(12, 2), nullable=False)
    taxes = Column(Numeric(12, 2), nullable=False, default=0)
    fees = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    # Billing snapshot captured at charge time
    billing_name = Column(String(200), nullable=True)
    billing_email = Column(String(255), nullable=True)
    billing_phone = Column(String(50), nullable=True)
    billing_address = Column(Text, nullable=True)
    billing_city = Column(String(100), nullable=True)
    billing_state = Column(String(50), nullable=True)
    billing_postal_code = Column(String(20), nullable=True)
    billing_country = Column(String(100), nullable=True)

    tax_breakdown = Column(JSON, nullable=False, default=list)  # [{name, rate, amount}]
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
