"""
ReceiptGenerator — one receipt per completed charge.
Receipts attest to the invoice's figures; nothing is recomputed here.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from settlement.models.booking import Booking
from settlement.models.enums import PaymentMethodType
from settlement.models.invoice import Invoice
from settlement.models.payment_transaction import PaymentTransaction
from settlement.models.receipt import Receipt
from settlement.services.identifiers.service import IdentifierGenerator, IdentifierKind
from settlement.services.payments.errors import NotFoundError
from settlement.utils.metrics import documents_generated_total

logger = logging.getLogger(__name__)

PAYMENT_METHOD_LABELS = {
    PaymentMethodType.CREDIT_CARD.value: "Credit Card",
    PaymentMethodType.DEBIT_CARD.value: "Debit Card",
    PaymentMethodType.DIGITAL_WALLET.value: "Digital Wallet",
    PaymentMethodType.BANK_TRANSFER.value: "Bank Transfer",
    PaymentMethodType.UPI.value: "UPI",
    PaymentMethodType.NET_BANKING.value: "Net Banking",
}


def payment_method_display(transaction: PaymentTransaction) -> str:
    """'Visa ending in 4242' for cards, a label per method type otherwise."""
    if transaction.card_brand and transaction.card_last_four:
        return f"{transaction.card_brand} ending in {transaction.card_last_four}"
    return PAYMENT_METHOD_LABELS.get(transaction.payment_method_type or "", "Payment")


class ReceiptGenerator:
    def __init__(self, db: Session, identifiers: IdentifierGenerator | None = None):
        self.db = db
        self.identifiers = identifiers or IdentifierGenerator(db)

    def generate(self, booking: Booking, transaction: PaymentTransaction, invoice: Invoice) -> Receipt:
        existing = self.find_by_transaction(transaction.id)
        if existing:
            return existing

        now = datetime.now(timezone.utc)

        def build(number: str) -> Receipt:
            return Receipt(
                receipt_number=number,
                booking_id=booking.id,
                user_id=booking.user_id or transaction.user_id,
                payment_transaction_id=transaction.id,
                invoice_id=invoice.id,
                receipt_date=now,
                amount=transaction.amount,
                currency=transaction.currency,
                payment_method=payment_method_display(transaction),
                payment_reference=transaction.gateway_transaction_id or transaction.transaction_number,
                subtotal=invoice.subtotal,
                taxes=invoice.taxes,
                fees=invoice.fees,
                discount=invoice.discount,
                tax_breakdown=invoice.tax_breakdown,
                notes=transaction.notes,
            )

        try:
            receipt = self.identifiers.insert_unique(
                IdentifierKind.RECEIPT, Receipt, "receipt_number", build
            )
        except IntegrityError:
            existing = self.find_by_transaction(transaction.id)
            if existing is None:
                raise
            logger.info("receipt_already_exists", extra={"transaction_id": transaction.id})
            return existing

        documents_generated_total.labels(document="receipt").inc()
        logger.info(
            "receipt_generated",
            extra={
                "booking_id": booking.id,
                "transaction_id": transaction.id,
                "receipt_number": receipt.receipt_number,
            },
        )
        return receipt

    def mark_emailed(self, receipt: Receipt) -> Receipt:
        if receipt.is_emailed:
            return receipt
        receipt.is_emailed = True
        receipt.emailed_at = datetime.now(timezone.utc)
        self.db.flush()
        return receipt

    def find_by_transaction(self, transaction_id: str) -> Receipt | None:
        return (
            self.db.query(Receipt)
            .filter(Receipt.payment_transaction_id == transaction_id)
            .one_or_none()
        )

    def find_by_id(self, receipt_id: str) -> Receipt | None:
        return self.db.query(Receipt).filter(Receipt.id == receipt_id).one_or_none()

    def find_by_number(self, receipt_number: str) -> Receipt | None:
        return self.db.query(Receipt).filter(Receipt.receipt_number == receipt_number).one_or_none()

    def get(self, id_or_number: str) -> Receipt:
        receipt = self.find_by_id(id_or_number) or self.find_by_number(id_or_number)
        if receipt is None:
            raise NotFoundError(f"Receipt {id_or_number} not found", detail={"receipt": id_or_number})
        return receipt

    def list_for_booking(self, booking_id: str) -> list[Receipt]:
        return (
            self.db.query(Receipt)
            .filter(Receipt.booking_id == booking_id)
            .order_by(Receipt.receipt_date.desc())
            .all()
        )
