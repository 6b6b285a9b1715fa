"""
Settlement request schemas.
Shape validation only; business rules (state, amounts vs booking) live in the services.
"""
from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

from settlement.models.enums import PaymentMethodType, PaymentStatus, PaymentType


def _currency_code(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip().upper()
    if len(v) != 3 or not v.isalpha():
        raise ValueError("currency must be a 3-letter code")
    return v


class CardDetails(BaseModel):
    """Raw card data. Only brand and last four ever reach the database."""
    card_number: str = Field(..., max_length=100)
    card_holder_name: str = Field(..., max_length=50)
    expiry_month: str = Field(..., max_length=10)  # MM
    expiry_year: str = Field(..., max_length=10)  # YYYY
    cvv: str = Field(..., max_length=10)

    model_config = {"frozen": True}


class BillingInfo(BaseModel):
    """Billing snapshot copied onto the invoice."""
    name: str | None = Field(None, max_length=200)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    address: str | None = None
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=50)
    postal_code: str | None = Field(None, max_length=20)
    country: str | None = Field(None, max_length=100)

    model_config = {"frozen": True}

    def as_invoice_fields(self) -> dict[str, Any]:
        return {f"billing_{key}": value for key, value in self.model_dump().items()}


class ProcessPaymentRequest(BaseModel):
    """Charge a pending booking."""
    booking_id: str
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: str | None = None
    user_id: str | None = None
    payment_method_id: str | None = None  # saved payment method
    payment_method_type: PaymentMethodType | None = None
    card_details: CardDetails | None = None
    wallet_provider: str | None = Field(None, max_length=100)  # PayPal, Apple Pay, Google Pay
    wallet_token: str | None = Field(None, max_length=100)
    account_number: str | None = Field(None, max_length=100)
    bank_name: str | None = Field(None, max_length=50)
    upi_id: str | None = Field(None, max_length=100)
    billing: BillingInfo | None = None
    payment_gateway: str | None = Field(None, max_length=100)
    notes: str | None = None

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str | None) -> str | None:
        return _currency_code(v)


class RefundRequest(BaseModel):
    """Refund (part of) a completed charge. amount=None refunds whatever remains."""
    payment_transaction_id: str
    amount: Decimal | None = Field(None, gt=0, max_digits=12, decimal_places=2)
    reason: str | None = Field(None, max_length=500)
    notes: str | None = None


class TransactionSearch(BaseModel):
    """Ledger search filters and pagination."""
    booking_id: str | None = None
    user_id: str | None = None
    status: PaymentStatus | None = None
    type: PaymentType | None = None
    payment_gateway: str | None = None
    transaction_number: str | None = None  # substring match
    date_from: date | None = None
    date_to: date | None = None
    page: int = Field(default=1, ge=1, description="Page number")
    limit: int = Field(default=10, ge=1, le=100, description="Items per page")
