"""
SettlementService — charge and refund flows for airline bookings.

Responsibilities:
- Charge a pending booking, confirm it, issue invoice and receipt
- Refund (part of) a completed charge, cancel the booking once fully refunded
- Read paths over the ledger, invoices and receipts

Never commits: every write of one request lands in the caller's unit of work
(session_scope), so a COMPLETED transaction is never visible next to a
still-PENDING booking.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import event, update
from sqlalchemy.orm import Session

from settlement.core.config import settings
from settlement.models.booking import Booking
from settlement.models.enums import BookingStatus, PaymentStatus
from settlement.models.invoice import Invoice
from settlement.models.payment_method import PaymentMethod
from settlement.models.payment_transaction import PaymentTransaction
from settlement.models.receipt import Receipt
from settlement.models.user import User
from settlement.schemas.payments import ProcessPaymentRequest, RefundRequest, TransactionSearch
from settlement.services.audit.service import AuditService
from settlement.services.gateway.base import ChargeRequest, GatewayError, GatewayOutcome, PaymentGateway
from settlement.services.gateway.cards import card_brand, card_last_four
from settlement.services.gateway.factory import GatewayFactory
from settlement.services.identifiers.service import IdentifierGenerator, IdentifierKind
from settlement.services.invoices.service import InvoiceGenerator
from settlement.services.ledger.service import TransactionLedger, TransactionPage
from settlement.services.payments.errors import ConflictError, NotFoundError, ValidationError
from settlement.services.receipts.service import ReceiptGenerator
from settlement.utils.metrics import (
    gateway_request_duration_seconds,
    payments_processed_total,
    refunds_processed_total,
)
from settlement.utils.money import quantize

logger = logging.getLogger(__name__)

PENDING_EMAILS_KEY = "settlement_pending_receipt_emails"
DEFAULT_CANCELLATION_REASON = "Refund processed"


@dataclass
class PaymentResult:
    transaction: PaymentTransaction
    booking: Booking
    invoice: Invoice | None = None
    receipt: Receipt | None = None

    @property
    def success(self) -> bool:
        return self.transaction.status == PaymentStatus.COMPLETED.value


@dataclass
class RefundResult:
    transaction: PaymentTransaction  # the original charge, post-update
    refund_transaction: PaymentTransaction
    booking: Booking | None = None

    @property
    def success(self) -> bool:
        return self.refund_transaction.status == PaymentStatus.COMPLETED.value


class SettlementService:
    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway | None = None,
        identifiers: IdentifierGenerator | None = None,
    ):
        self.db = db
        self.gateway = gateway or GatewayFactory.create_from_settings(settings)
        self.identifiers = identifiers or IdentifierGenerator(db)
        self.ledger = TransactionLedger(db, self.identifiers)
        self.invoices = InvoiceGenerator(db, self.identifiers)
        self.receipts = ReceiptGenerator(db, self.identifiers)
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # Charge
    # ------------------------------------------------------------------

    def process_payment(self, request: ProcessPaymentRequest) -> PaymentResult:
        booking = self._lock_booking(request.booking_id)

        if not booking.is_pending:
            raise ValidationError(
                f"Cannot process payment for booking with status: {booking.status}",
                detail={"booking_id": booking.id, "status": booking.status},
            )

        amount = quantize(request.amount)
        if amount != quantize(booking.total_amount):
            raise ValidationError(
                f"Payment amount ({amount}) does not match booking amount ({quantize(booking.total_amount)})",
                detail={"booking_id": booking.id, "amount": str(amount)},
            )

        currency = request.currency or booking.currency or settings.default_currency
        if booking.currency and currency != booking.currency:
            raise ValidationError(
                f"Payment currency ({currency}) does not match booking currency ({booking.currency})",
                detail={"booking_id": booking.id, "currency": currency},
            )

        if request.user_id and self.db.get(User, request.user_id) is None:
            raise NotFoundError("User not found", detail={"user_id": request.user_id})

        payment_method = None
        if request.payment_method_id:
            payment_method = self.db.get(PaymentMethod, request.payment_method_id)
            if payment_method is None:
                raise NotFoundError(
                    "Payment method not found",
                    detail={"payment_method_id": request.payment_method_id},
                )

        method_type, brand, last_four = self._card_metadata(request, payment_method)
        transaction_number = self.ledger.allocate_number(IdentifierKind.TRANSACTION)
        charge = self._charge_request(request, amount, currency, transaction_number, method_type)
        outcome = self._call_gateway("charge", self.gateway.charge, charge)

        transaction = self.ledger.record_charge(
            booking,
            outcome,
            transaction_number=transaction_number,
            amount=amount,
            currency=currency,
            gateway_name=request.payment_gateway or self.gateway.name,
            user_id=request.user_id or booking.user_id,
            payment_method_id=request.payment_method_id,
            payment_method_type=method_type,
            card_brand=brand,
            card_last_four=last_four,
            notes=request.notes,
        )
        payments_processed_total.labels(status=transaction.status).inc()

        if not outcome.success:
            self.audit.log(
                "system", transaction.user_id, "payment_failed", "payment_transaction", transaction.id,
                {"booking_id": booking.id, "reason": outcome.message},
            )
            logger.warning(
                "payment_failed",
                extra={
                    "booking_id": booking.id,
                    "transaction_number": transaction.transaction_number,
                    "error": outcome.message,
                },
            )
            return PaymentResult(transaction=transaction, booking=booking)

        self._confirm_booking(booking)
        invoice = self.invoices.generate(booking, transaction, request.billing, request.notes)
        receipt = self.receipts.generate(booking, transaction, invoice)

        self.audit.log(
            "system", transaction.user_id, "payment_completed", "payment_transaction", transaction.id,
            {
                "booking_id": booking.id,
                "amount": str(amount),
                "currency": currency,
                "invoice_number": invoice.invoice_number,
                "receipt_number": receipt.receipt_number,
            },
        )
        if settings.receipt_email_enabled:
            self._queue_receipt_email(receipt)

        logger.info(
            "payment_completed",
            extra={
                "booking_id": booking.id,
                "transaction_number": transaction.transaction_number,
                "invoice_number": invoice.invoice_number,
                "receipt_number": receipt.receipt_number,
                "amount": amount,
            },
        )
        return PaymentResult(transaction=transaction, booking=booking, invoice=invoice, receipt=receipt)

    # ------------------------------------------------------------------
    # Refund
    # ------------------------------------------------------------------

    def process_refund(self, request: RefundRequest) -> RefundResult:
        original = self.ledger.lock(request.payment_transaction_id)
        if original is None:
            raise NotFoundError(
                "Payment transaction not found",
                detail={"transaction_id": request.payment_transaction_id},
            )

        amount = self.ledger.validate_refund(original, request.amount)
        refund_number = self.ledger.allocate_number(IdentifierKind.REFUND)
        outcome = self._call_gateway("refund", self.gateway.refund, original, amount, refund_number)

        refund = self.ledger.record_refund(
            original,
            amount,
            outcome,
            transaction_number=refund_number,
            reason=request.reason,
            notes=request.notes,
        )
        refunds_processed_total.labels(status=refund.status, type=refund.type).inc()

        if not outcome.success:
            self.audit.log(
                "system", original.user_id, "refund_failed", "payment_transaction", refund.id,
                {"original_transaction_id": original.id, "reason": outcome.message},
            )
            logger.warning(
                "refund_failed",
                extra={
                    "original_transaction_id": original.id,
                    "transaction_number": refund.transaction_number,
                    "error": outcome.message,
                },
            )
            return RefundResult(transaction=original, refund_transaction=refund)

        original = self.ledger.apply_refund(original, amount)
        booking = None
        if original.status == PaymentStatus.REFUNDED.value:
            booking = self._cancel_booking(original.booking_id, request.reason)

        self.audit.log(
            "system", original.user_id, "refund_completed", "payment_transaction", refund.id,
            {
                "original_transaction_id": original.id,
                "amount": str(amount),
                "refunded_amount": str(original.refunded_amount),
                "status": original.status,
            },
        )
        logger.info(
            "refund_completed",
            extra={
                "original_transaction_id": original.id,
                "transaction_number": refund.transaction_number,
                "amount": amount,
                "status": original.status,
            },
        )
        return RefundResult(transaction=original, refund_transaction=refund, booking=booking)

    # ------------------------------------------------------------------
    # Read paths
    # ------------------------------------------------------------------

    def get_transaction(self, id_or_number: str) -> PaymentTransaction:
        return self.ledger.get(id_or_number)

    def search_transactions(self, search: TransactionSearch) -> TransactionPage:
        return self.ledger.search(search)

    def get_invoice(self, id_or_number: str) -> Invoice:
        return self.invoices.get(id_or_number)

    def get_receipt(self, id_or_number: str) -> Receipt:
        return self.receipts.get(id_or_number)

    def list_invoices_for_booking(self, booking_id: str) -> list[Invoice]:
        return self.invoices.list_for_booking(booking_id)

    def list_receipts_for_booking(self, booking_id: str) -> list[Receipt]:
        return self.receipts.list_for_booking(booking_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_booking(self, booking_id: str) -> Booking:
        booking = (
            self.db.query(Booking)
            .filter(Booking.id == booking_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
        if booking is None:
            raise NotFoundError("Booking not found", detail={"booking_id": booking_id})
        return booking

    def _confirm_booking(self, booking: Booking) -> None:
        now = datetime.now(timezone.utc)
        result = self.db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == BookingStatus.PENDING.value)
            .values(status=BookingStatus.CONFIRMED.value, confirmation_date=now, updated_at=now)
        )
        if result.rowcount == 0:
            # Another charge confirmed this booking first; the caller's rollback discards our charge row
            raise ConflictError(
                "Booking was confirmed by a concurrent payment",
                detail={"booking_id": booking.id},
            )
        self.db.flush()
        self.db.refresh(booking)

    def _cancel_booking(self, booking_id: str, reason: str | None) -> Booking | None:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).with_for_update().one_or_none()
        if booking is None:
            logger.warning("refund_booking_missing", extra={"booking_id": booking_id})
            return None
        now = datetime.now(timezone.utc)
        booking.status = BookingStatus.CANCELLED.value
        booking.cancellation_date = now
        booking.cancellation_reason = reason or DEFAULT_CANCELLATION_REASON
        self.db.flush()
        self.audit.log(
            "system", booking.user_id, "booking_cancelled", "booking", booking.id,
            {"reason": booking.cancellation_reason},
        )
        return booking

    @staticmethod
    def _card_metadata(
        request: ProcessPaymentRequest, payment_method: PaymentMethod | None
    ) -> tuple[str | None, str | None, str | None]:
        """(method type, brand, last four). Raw card data is never returned."""
        method_type = request.payment_method_type.value if request.payment_method_type else None
        if request.card_details:
            number = request.card_details.card_number
            return method_type, card_brand(number), card_last_four(number)
        if payment_method is not None:
            return (
                method_type or payment_method.method_type,
                payment_method.card_brand,
                payment_method.card_last_four,
            )
        return method_type, None, None

    @staticmethod
    def _charge_request(
        request: ProcessPaymentRequest,
        amount: Decimal,
        currency: str,
        transaction_number: str,
        method_type: str | None,
    ) -> ChargeRequest:
        card = request.card_details
        return ChargeRequest(
            amount=amount,
            currency=currency,
            transaction_number=transaction_number,
            payment_method_type=method_type,
            payment_method_id=request.payment_method_id,
            card_number=card.card_number if card else None,
            card_holder_name=card.card_holder_name if card else None,
            expiry_month=card.expiry_month if card else None,
            expiry_year=card.expiry_year if card else None,
            cvv=card.cvv if card else None,
            wallet_provider=request.wallet_provider,
            wallet_token=request.wallet_token,
            account_number=request.account_number,
            bank_name=request.bank_name,
            upi_id=request.upi_id,
            billing=request.billing.model_dump(exclude_none=True) if request.billing else {},
        )

    def _call_gateway(self, operation: str, call, *args) -> GatewayOutcome:
        """Gateway errors become FAILED outcomes; a decline is data, not an exception."""
        started = time.monotonic()
        try:
            outcome = call(*args)
        except GatewayError as e:
            logger.warning(
                "gateway_error",
                extra={"gateway": self.gateway.name, "error": str(e)},
            )
            outcome = GatewayOutcome.failed(str(e) or "Gateway error", **e.detail)
        finally:
            elapsed = time.monotonic() - started
            gateway_request_duration_seconds.labels(operation=operation, gateway=self.gateway.name).observe(elapsed)
        return outcome

    def _queue_receipt_email(self, receipt: Receipt) -> None:
        """Deliver after commit so the worker always finds the receipt."""
        self.db.info.setdefault(PENDING_EMAILS_KEY, []).append(receipt.id)


@event.listens_for(Session, "after_commit")
def _dispatch_receipt_emails(session: Session) -> None:
    if session.in_nested_transaction():
        # SAVEPOINT release, the outer transaction is still open
        return
    receipt_ids = session.info.pop(PENDING_EMAILS_KEY, [])
    if not receipt_ids:
        return
    from settlement.workers.tasks.email_receipt import email_receipt

    for receipt_id in receipt_ids:
        email_receipt.delay(receipt_id)
        logger.info("receipt_email_queued", extra={"receipt_id": receipt_id})


@event.listens_for(Session, "after_rollback")
def _drop_receipt_emails(session: Session) -> None:
    session.info.pop(PENDING_EMAILS_KEY, None)
