"""Request DTO shape validation."""
from decimal import Decimal

import pytest
from pydantic import ValidationError

from settlement.models.enums import PaymentMethodType
from settlement.schemas.payments import BillingInfo, ProcessPaymentRequest, RefundRequest, TransactionSearch


class TestProcessPaymentRequest:
    def test_minimal(self):
        req = ProcessPaymentRequest(booking_id="bk-1", amount="500.00", currency="usd", payment_method_type="upi")
        assert req.amount == Decimal("500.00")
        assert req.currency == "USD"
        assert req.payment_method_type is PaymentMethodType.UPI

    @pytest.mark.parametrize("amount", ["0", "-5.00", "10.001"])
    def test_rejects_bad_amounts(self, amount):
        with pytest.raises(ValidationError):
            ProcessPaymentRequest(booking_id="bk-1", amount=amount)

    def test_rejects_bad_currency(self):
        with pytest.raises(ValidationError):
            ProcessPaymentRequest(booking_id="bk-1", amount="1.00", currency="US")

    def test_rejects_unknown_method_type(self):
        with pytest.raises(ValidationError):
            ProcessPaymentRequest(booking_id="bk-1", amount="1.00", payment_method_type="cheque")


def test_refund_amount_optional_but_positive():
    assert RefundRequest(payment_transaction_id="t1").amount is None
    with pytest.raises(ValidationError):
        RefundRequest(payment_transaction_id="t1", amount="0")


def test_search_limits():
    assert TransactionSearch().limit == 10
    assert TransactionSearch().page == 1
    with pytest.raises(ValidationError):
        TransactionSearch(limit=101)
    with pytest.raises(ValidationError):
        TransactionSearch(page=0)


def test_billing_as_invoice_fields():
    fields = BillingInfo(name="Ada", postal_code="1000-001").as_invoice_fields()
    assert fields["billing_name"] == "Ada"
    assert fields["billing_postal_code"] == "1000-001"
    assert fields["billing_email"] is None
    assert len(fields) == 8
