"""Tests for InvoiceGenerator — breakdown, idempotency, duplicate-insert resolution."""
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from settlement.models.enums import InvoiceStatus
from settlement.models.invoice import Invoice
from settlement.models.payment_transaction import PaymentTransaction
from settlement.schemas.payments import BillingInfo
from settlement.services.invoices.service import InvoiceGenerator, compute_breakdown
from settlement.services.payments.errors import NotFoundError

PROCESSED_AT = datetime(2025, 6, 1, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def transaction(db, booking):
    txn = PaymentTransaction(
        transaction_number="TXN17487738000001234",
        booking_id=booking.id,
        user_id=booking.user_id,
        amount=Decimal("500.00"),
        currency="USD",
        status="completed",
        processed_at=PROCESSED_AT,
    )
    db.add(txn)
    db.flush()
    return txn


def test_breakdown_for_500():
    figures = compute_breakdown(Decimal("500.00"))
    assert figures["subtotal"] == Decimal("500.00")
    assert figures["taxes"] == Decimal("50.00")
    assert figures["fees"] == Decimal("25.00")
    assert figures["discount"] == Decimal("0.00")
    assert figures["total_amount"] == Decimal("575.00")
    assert figures["tax_breakdown"] == [
        {"name": "Service Tax", "rate": 10, "amount": 50.0},
        {"name": "Processing Fee", "rate": 5, "amount": 25.0},
    ]


def test_breakdown_rounds_each_line_half_up():
    figures = compute_breakdown(Decimal("123.45"))
    assert figures["taxes"] == Decimal("12.35")  # 12.345
    assert figures["fees"] == Decimal("6.17")  # 6.1725
    assert figures["total_amount"] == Decimal("141.97")


def test_generate_paid_invoice(db, booking, transaction):
    billing = BillingInfo(name="Ada Traveler", email="ada@example.com", city="Lisbon", country="PT")
    invoice = InvoiceGenerator(db).generate(booking, transaction, billing, notes="Window seat")

    assert invoice.invoice_number.startswith(f"INV-{datetime.now(timezone.utc).year}-")
    assert invoice.status == InvoiceStatus.PAID.value
    assert invoice.total_amount == Decimal("575.00")
    assert invoice.paid_date == PROCESSED_AT
    assert invoice.user_id == booking.user_id
    assert invoice.billing_name == "Ada Traveler"
    assert invoice.billing_city == "Lisbon"
    assert invoice.billing_phone is None
    assert invoice.notes == "Window seat"


def test_generate_is_idempotent(db, booking, transaction):
    generator = InvoiceGenerator(db)
    first = generator.generate(booking, transaction)
    second = generator.generate(booking, transaction, BillingInfo(name="Someone Else"))

    assert second.id == first.id
    assert second.billing_name is None
    assert db.query(Invoice).filter(Invoice.booking_id == booking.id).count() == 1


def test_concurrent_duplicate_resolves_to_existing(db, booking, transaction):
    """The pre-check misses a concurrent invoice; the UNIQUE booking_id catches it."""
    generator = InvoiceGenerator(db)
    existing = generator.generate(booking, transaction)

    with patch.object(generator, "find_by_booking", side_effect=[None, existing]):
        again = generator.generate(booking, transaction)

    assert again.id == existing.id
    assert db.query(Invoice).count() == 1


def test_lookups(db, booking, transaction):
    generator = InvoiceGenerator(db)
    invoice = generator.generate(booking, transaction)

    assert generator.get(invoice.id).id == invoice.id
    assert generator.get(invoice.invoice_number).id == invoice.id
    assert [i.id for i in generator.list_for_booking(booking.id)] == [invoice.id]
    with pytest.raises(NotFoundError):
        generator.get("INV-1999-000000")
