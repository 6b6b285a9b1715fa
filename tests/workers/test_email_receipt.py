"""Celery task email_receipt, run eagerly against the test database."""
import smtplib
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from settlement.core.config import settings
from settlement.models.receipt import Receipt
from settlement.models.user import User
from settlement.workers.tasks import email_receipt as task_module


@pytest.fixture
def stored_receipt(session_factory):
    db = session_factory()
    try:
        user = User(id="u-mail", email="ada@example.com")
        receipt = Receipt(
            id="r-1",
            receipt_number="RCP-2025-000042",
            booking_id="bk-1",
            user_id=user.id,
            payment_transaction_id="txn-1",
            receipt_date=datetime(2025, 6, 1, tzinfo=timezone.utc),
            amount=Decimal("500.00"),
            currency="USD",
            payment_method="Visa ending in 4242",
            payment_reference="GW-1-1",
            subtotal=Decimal("500.00"),
            tax_breakdown=[
                {"name": "Service Tax", "rate": 10, "amount": 50.0},
                {"name": "Processing Fee", "rate": 5, "amount": 25.0},
            ],
        )
        db.add_all([user, receipt])
        db.commit()
    finally:
        db.close()
    return "r-1"


def _is_emailed(session_factory, receipt_id):
    db = session_factory()
    try:
        return db.get(Receipt, receipt_id).is_emailed
    finally:
        db.close()


def test_marks_receipt_without_smtp(session_factory, stored_receipt):
    with patch.object(task_module, "SessionLocal", session_factory), \
            patch.object(settings, "smtp_host", ""), \
            patch.object(task_module, "send_message") as send:
        result = task_module.email_receipt(stored_receipt)

    assert result == {"ok": True, "receipt_number": "RCP-2025-000042"}
    send.assert_not_called()
    assert _is_emailed(session_factory, stored_receipt) is True


def test_sends_through_smtp(session_factory, stored_receipt):
    with patch.object(task_module, "SessionLocal", session_factory), \
            patch.object(settings, "smtp_host", "smtp.example.test"), \
            patch.object(task_module, "send_message") as send:
        task_module.email_receipt(stored_receipt)

    message = send.call_args.args[0]
    assert message["To"] == "ada@example.com"
    assert message["Subject"] == "Your receipt RCP-2025-000042"
    assert "Service Tax (10%): 50.0" in message.get_content()


def test_already_emailed_is_skipped(session_factory, stored_receipt):
    with patch.object(task_module, "SessionLocal", session_factory), \
            patch.object(settings, "smtp_host", "smtp.example.test"), \
            patch.object(task_module, "send_message") as send:
        task_module.email_receipt(stored_receipt)
        result = task_module.email_receipt(stored_receipt)

    assert result["skipped"] == "already_emailed"
    assert send.call_count == 1


def test_smtp_failure_leaves_receipt_unmarked(session_factory, stored_receipt):
    with patch.object(task_module, "SessionLocal", session_factory), \
            patch.object(settings, "smtp_host", "smtp.example.test"), \
            patch.object(task_module, "send_message", side_effect=smtplib.SMTPServerDisconnected("gone")):
        with pytest.raises(smtplib.SMTPException):
            task_module.email_receipt(stored_receipt)

    assert _is_emailed(session_factory, stored_receipt) is False


def test_unknown_receipt(session_factory):
    with patch.object(task_module, "SessionLocal", session_factory):
        assert task_module.email_receipt("missing") == {"ok": False, "error": "receipt_not_found"}


def test_build_message_without_breakdown():
    receipt = MagicMock()
    receipt.receipt_number = "RCP-2025-000001"
    receipt.receipt_date = datetime(2025, 1, 2, tzinfo=timezone.utc)
    receipt.tax_breakdown = None
    message = task_module.build_message(receipt, "someone@example.com")
    assert "Date: 2025-01-02" in message.get_content()
