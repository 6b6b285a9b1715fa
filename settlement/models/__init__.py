"""ORM records. Importing this package registers every table on Base.metadata."""
from settlement.models.audit_log import AuditLog
from settlement.models.booking import Booking
from settlement.models.enums import (
    BookingStatus,
    InvoiceStatus,
    PaymentMethodType,
    PaymentStatus,
    PaymentType,
)
from settlement.models.invoice import Invoice
from settlement.models.payment_method import PaymentMethod
from settlement.models.payment_transaction import PaymentTransaction
from settlement.models.receipt import Receipt
from settlement.models.user import User

__all__ = [
    "AuditLog",
    "Booking",
    "BookingStatus",
    "Invoice",
    "InvoiceStatus",
    "PaymentMethod",
    "PaymentMethodType",
    "PaymentStatus",
    "PaymentTransaction",
    "PaymentType",
    "Receipt",
    "User",
]
