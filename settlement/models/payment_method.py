from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, String

from settlement.db.base import Base


class PaymentMethod(Base):
    """Saved payment method. Card data is masked: brand + last four only."""

    __tablename__ = "payment_methods"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    method_type = Column(String(50), nullable=False)  # credit_card, digital_wallet, upi, ...
    card_brand = Column(String(50), nullable=True)
    card_last_four = Column(String(4), nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
