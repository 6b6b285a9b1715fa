"""
InvoiceGenerator — one PAID invoice per booking, written right after a successful charge.

Breakdown: subtotal = booking total, Service Tax 10%, Processing Fee 5%,
no discount. Idempotent on booking_id; the UNIQUE constraint on
invoices.booking_id settles concurrent callers.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from settlement.core.config import settings
from settlement.models.booking import Booking
from settlement.models.enums import InvoiceStatus
from settlement.models.invoice import Invoice
from settlement.models.payment_transaction import PaymentTransaction
from settlement.schemas.payments import BillingInfo
from settlement.services.identifiers.service import IdentifierGenerator, IdentifierKind
from settlement.services.payments.errors import NotFoundError
from settlement.utils.metrics import documents_generated_total
from settlement.utils.money import ZERO, percent_of, quantize, to_json_number

logger = logging.getLogger(__name__)

SERVICE_TAX_RATE = Decimal("0.10")
PROCESSING_FEE_RATE = Decimal("0.05")


def compute_breakdown(subtotal: Decimal) -> dict:
    """Invoice figures for a booking total. Rounded half-up once per line."""
    subtotal = quantize(subtotal)
    taxes = percent_of(subtotal, SERVICE_TAX_RATE)
    fees = percent_of(subtotal, PROCESSING_FEE_RATE)
    discount = ZERO
    return {
        "subtotal": subtotal,
        "taxes": taxes,
        "fees": fees,
        "discount": discount,
        "total_amount": subtotal + taxes + fees - discount,
        "tax_breakdown": [
            {"name": "Service Tax", "rate": 10, "amount": to_json_number(taxes)},
            {"name": "Processing Fee", "rate": 5, "amount": to_json_number(fees)},
        ],
    }


class InvoiceGenerator:
    def __init__(self, db: Session, identifiers: IdentifierGenerator | None = None):
        self.db = db
        self.identifiers = identifiers or IdentifierGenerator(db)

    def generate(
        self,
        booking: Booking,
        transaction: PaymentTransaction,
        billing: BillingInfo | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """Return the booking's invoice, creating it on first call."""
        existing = self.find_by_booking(booking.id)
        if existing:
            return existing

        figures = compute_breakdown(booking.total_amount)
        billing_fields = (billing or BillingInfo()).as_invoice_fields()
        now = datetime.now(timezone.utc)

        def build(number: str) -> Invoice:
            return Invoice(
                invoice_number=number,
                booking_id=booking.id,
                user_id=booking.user_id or transaction.user_id,
                status=InvoiceStatus.PAID.value,
                invoice_date=now,
                paid_date=transaction.processed_at or now,
                currency=booking.currency or settings.default_currency,
                notes=notes,
                **figures,
                **billing_fields,
            )

        try:
            invoice = self.identifiers.insert_unique(
                IdentifierKind.INVOICE, Invoice, "invoice_number", build
            )
        except IntegrityError:
            # Another writer invoiced this booking first
            existing = self.find_by_booking(booking.id)
            if existing is None:
                raise
            logger.info("invoice_already_exists", extra={"booking_id": booking.id})
            return existing

        documents_generated_total.labels(document="invoice").inc()
        logger.info(
            "invoice_generated",
            extra={
                "booking_id": booking.id,
                "invoice_number": invoice.invoice_number,
                "amount": invoice.total_amount,
            },
        )
        return invoice

    def find_by_booking(self, booking_id: str) -> Invoice | None:
        return self.db.query(Invoice).filter(Invoice.booking_id == booking_id).one_or_none()

    def find_by_id(self, invoice_id: str) -> Invoice | None:
        return self.db.query(Invoice).filter(Invoice.id == invoice_id).one_or_none()

    def find_by_number(self, invoice_number: str) -> Invoice | None:
        return self.db.query(Invoice).filter(Invoice.invoice_number == invoice_number).one_or_none()

    def get(self, id_or_number: str) -> Invoice:
        invoice = self.find_by_id(id_or_number) or self.find_by_number(id_or_number)
        if invoice is None:
            raise NotFoundError(f"Invoice {id_or_number} not found", detail={"invoice": id_or_number})
        return invoice

    def list_for_booking(self, booking_id: str) -> list[Invoice]:
        return (
            self.db.query(Invoice)
            .filter(Invoice.booking_id == booking_id)
            .order_by(Invoice.invoice_date.desc())
            .all()
        )
