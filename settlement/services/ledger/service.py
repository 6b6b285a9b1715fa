"""
TransactionLedger — every charge and refund attempt, failed ones included.

Responsibilities:
- Recording charge attempts (COMPLETED or FAILED)
- Recording refund attempts as new REF- transactions
- Refund bookkeeping on the original charge (serialized per transaction)
- Lookups and paginated search, newest first
"""
import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from settlement.models.booking import Booking
from settlement.models.enums import PaymentStatus, PaymentType
from settlement.models.payment_transaction import PaymentTransaction
from settlement.schemas.payments import TransactionSearch
from settlement.services.gateway.base import GatewayOutcome
from settlement.services.identifiers.service import IdentifierGenerator, IdentifierKind
from settlement.services.payments.errors import NotFoundError, ValidationError
from settlement.utils.money import ZERO, quantize

logger = logging.getLogger(__name__)

REFUNDABLE_STATUSES = (PaymentStatus.COMPLETED.value, PaymentStatus.PARTIALLY_REFUNDED.value)


def refund_status(amount: Decimal, refunded_amount: Decimal) -> PaymentStatus:
    """Status of a completed charge as a pure function of how much was refunded."""
    amount = quantize(amount)
    refunded_amount = quantize(refunded_amount)
    if refunded_amount < ZERO or refunded_amount > amount:
        raise ValueError(f"refunded amount {refunded_amount} outside [0, {amount}]")
    if refunded_amount == ZERO:
        return PaymentStatus.COMPLETED
    if refunded_amount == amount:
        return PaymentStatus.REFUNDED
    return PaymentStatus.PARTIALLY_REFUNDED


@dataclass
class TransactionPage:
    items: list[PaymentTransaction]
    total: int
    page: int
    limit: int


class TransactionLedger:
    def __init__(self, db: Session, identifiers: IdentifierGenerator | None = None):
        self.db = db
        self.identifiers = identifiers or IdentifierGenerator(db)

    # ------------------------------------------------------------------
    # Numbers
    # ------------------------------------------------------------------

    def allocate_number(self, kind: IdentifierKind) -> str:
        """Pre-checked number to hand to the gateway; the insert re-verifies it."""
        return self.identifiers.generate(
            kind, self.identifiers.exists_in(PaymentTransaction, "transaction_number")
        )

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_charge(
        self,
        booking: Booking,
        outcome: GatewayOutcome,
        *,
        transaction_number: str,
        amount: Decimal,
        currency: str,
        gateway_name: str,
        user_id: str | None = None,
        payment_method_id: str | None = None,
        payment_method_type: str | None = None,
        card_brand: str | None = None,
        card_last_four: str | None = None,
        notes: str | None = None,
    ) -> PaymentTransaction:
        """Persist one charge attempt. A decline is a FAILED row, never an absence."""
        now = datetime.now(timezone.utc)

        def build(number: str) -> PaymentTransaction:
            return PaymentTransaction(
                transaction_number=number,
                booking_id=booking.id,
                user_id=user_id,
                payment_method_id=payment_method_id,
                type=PaymentType.BOOKING_PAYMENT.value,
                status=(PaymentStatus.COMPLETED if outcome.success else PaymentStatus.FAILED).value,
                amount=quantize(amount),
                currency=currency,
                refunded_amount=ZERO,
                payment_gateway=gateway_name,
                gateway_transaction_id=outcome.provider_reference,
                gateway_response={**outcome.as_response(), "idempotencyKey": transaction_number},
                failure_reason=None if outcome.success else outcome.message,
                processed_at=now if outcome.success else None,
                payment_method_type=payment_method_type,
                card_brand=card_brand,
                card_last_four=card_last_four,
                notes=notes,
            )

        transaction = self.identifiers.insert_unique(
            IdentifierKind.TRANSACTION,
            PaymentTransaction,
            "transaction_number",
            build,
            preferred=transaction_number,
        )
        self._check_number(transaction, transaction_number)
        logger.info(
            "charge_recorded",
            extra={
                "booking_id": booking.id,
                "transaction_number": transaction.transaction_number,
                "status": transaction.status,
                "amount": transaction.amount,
            },
        )
        return transaction

    def record_refund(
        self,
        original: PaymentTransaction,
        amount: Decimal,
        outcome: GatewayOutcome,
        *,
        transaction_number: str,
        reason: str | None = None,
        notes: str | None = None,
    ) -> PaymentTransaction:
        """
        Persist one refund attempt as a new transaction. REFUND when it settles
        the rest of the original, PARTIAL_REFUND otherwise.
        """
        amount = quantize(amount)
        completes = quantize(original.refunded_amount) + amount == quantize(original.amount)
        refund_type = PaymentType.REFUND if completes else PaymentType.PARTIAL_REFUND
        now = datetime.now(timezone.utc)

        def build(number: str) -> PaymentTransaction:
            return PaymentTransaction(
                transaction_number=number,
                booking_id=original.booking_id,
                user_id=original.user_id,
                payment_method_id=original.payment_method_id,
                original_transaction_id=original.id,
                type=refund_type.value,
                status=(PaymentStatus.COMPLETED if outcome.success else PaymentStatus.FAILED).value,
                amount=amount,
                currency=original.currency,
                refunded_amount=ZERO,
                payment_gateway=original.payment_gateway,
                gateway_transaction_id=outcome.provider_reference,
                gateway_response={**outcome.as_response(), "idempotencyKey": transaction_number},
                failure_reason=None if outcome.success else outcome.message,
                processed_at=now if outcome.success else None,
                refund_reason=reason,
                payment_method_type=original.payment_method_type,
                card_brand=original.card_brand,
                card_last_four=original.card_last_four,
                notes=notes,
            )

        refund = self.identifiers.insert_unique(
            IdentifierKind.REFUND,
            PaymentTransaction,
            "transaction_number",
            build,
            preferred=transaction_number,
        )
        self._check_number(refund, transaction_number)
        logger.info(
            "refund_recorded",
            extra={
                "original_transaction_id": original.id,
                "transaction_number": refund.transaction_number,
                "status": refund.status,
                "amount": amount,
            },
        )
        return refund

    def _check_number(self, transaction: PaymentTransaction, sent: str) -> None:
        """The gateway saw `sent`; gateway_response keeps it if the row got another number."""
        if transaction.transaction_number != sent:
            logger.warning(
                "transaction_number_reallocated",
                extra={
                    "transaction_number": transaction.transaction_number,
                    "number": sent,
                    "gateway": transaction.payment_gateway,
                },
            )

    # ------------------------------------------------------------------
    # Refund bookkeeping
    # ------------------------------------------------------------------

    def validate_refund(self, original: PaymentTransaction, amount: Decimal | None = None) -> Decimal:
        """
        Check the original can take this refund and return the amount to refund
        (the remaining balance when amount is None).
        """
        if original.type != PaymentType.BOOKING_PAYMENT.value:
            raise ValidationError(
                f"Cannot refund a {original.type} transaction",
                detail={"transaction_id": original.id, "type": original.type},
            )
        if original.status not in REFUNDABLE_STATUSES:
            raise ValidationError(
                f"Cannot refund transaction with status: {original.status}",
                detail={"transaction_id": original.id, "status": original.status},
            )
        remaining = quantize(original.remaining_amount)
        refund_amount = remaining if amount is None else quantize(amount)
        if refund_amount <= ZERO:
            raise ValidationError(
                "Refund amount must be positive",
                detail={"transaction_id": original.id, "amount": str(refund_amount)},
            )
        if refund_amount > remaining:
            raise ValidationError(
                f"Refund amount ({refund_amount}) exceeds available amount ({remaining})",
                detail={"transaction_id": original.id, "available": str(remaining)},
            )
        return refund_amount

    def apply_refund(self, original: PaymentTransaction, amount: Decimal) -> PaymentTransaction:
        """
        refunded_amount += amount on the row locked FOR UPDATE, then recompute
        status. Re-validates against the locked row so concurrent partial
        refunds cannot overshoot.
        """
        locked = self.lock(original.id)
        if locked is None:
            raise NotFoundError("Payment transaction not found", detail={"transaction_id": original.id})
        amount = self.validate_refund(locked, amount)

        locked.refunded_amount = quantize(locked.refunded_amount) + amount
        locked.status = refund_status(locked.amount, locked.refunded_amount).value
        locked.refunded_at = datetime.now(timezone.utc)
        self.db.flush()

        logger.info(
            "refund_applied",
            extra={
                "transaction_id": locked.id,
                "amount": amount,
                "status": locked.status,
            },
        )
        return locked

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def lock(self, transaction_id: str) -> PaymentTransaction | None:
        """Read a transaction FOR UPDATE, refreshing any stale in-session copy."""
        return (
            self.db.query(PaymentTransaction)
            .filter(PaymentTransaction.id == transaction_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )

    def find_by_id(self, transaction_id: str) -> PaymentTransaction | None:
        return self.db.query(PaymentTransaction).filter(PaymentTransaction.id == transaction_id).one_or_none()

    def find_by_number(self, transaction_number: str) -> PaymentTransaction | None:
        return (
            self.db.query(PaymentTransaction)
            .filter(PaymentTransaction.transaction_number == transaction_number)
            .one_or_none()
        )

    def get(self, id_or_number: str) -> PaymentTransaction:
        transaction = self.find_by_id(id_or_number) or self.find_by_number(id_or_number)
        if transaction is None:
            raise NotFoundError(
                f"Payment transaction {id_or_number} not found",
                detail={"transaction": id_or_number},
            )
        return transaction

    def list_for_booking(self, booking_id: str) -> list[PaymentTransaction]:
        return (
            self.db.query(PaymentTransaction)
            .filter(PaymentTransaction.booking_id == booking_id)
            .order_by(PaymentTransaction.created_at.desc())
            .all()
        )

    def search(self, search: TransactionSearch) -> TransactionPage:
        query = self.db.query(PaymentTransaction)

        if search.booking_id:
            query = query.filter(PaymentTransaction.booking_id == search.booking_id)
        if search.user_id:
            query = query.filter(PaymentTransaction.user_id == search.user_id)
        if search.status:
            query = query.filter(PaymentTransaction.status == search.status.value)
        if search.type:
            query = query.filter(PaymentTransaction.type == search.type.value)
        if search.payment_gateway:
            query = query.filter(PaymentTransaction.payment_gateway == search.payment_gateway)
        if search.transaction_number:
            query = query.filter(PaymentTransaction.transaction_number.contains(search.transaction_number))
        if search.date_from:
            start = datetime.combine(search.date_from, time.min, tzinfo=timezone.utc)
            query = query.filter(PaymentTransaction.created_at >= start)
        if search.date_to:
            # date_to is inclusive: everything before the next midnight
            end = datetime.combine(search.date_to + timedelta(days=1), time.min, tzinfo=timezone.utc)
            query = query.filter(PaymentTransaction.created_at < end)

        total = query.count()
        items = (
            query.order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.transaction_number.desc())
            .offset((search.page - 1) * search.limit)
            .limit(search.limit)
            .all()
        )
        return TransactionPage(items=items, total=total, page=search.page, limit=search.limit)
