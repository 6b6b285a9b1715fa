"""HttpPaymentGateway against httpx.MockTransport."""
import json
from decimal import Decimal
from unittest.mock import MagicMock

import httpx
import pybreaker

from settlement.services.gateway.base import ChargeRequest
from settlement.services.gateway.http import HttpPaymentGateway

CONFIG = {"name": "acme_pay", "api_url": "https://pay.example.test/v1/", "api_key": "sk_test", "timeout": 2}


def _gateway(handler, fail_max=5, config=None):
    breaker = pybreaker.CircuitBreaker(fail_max=fail_max, reset_timeout=60)
    return HttpPaymentGateway(config or CONFIG, transport=httpx.MockTransport(handler), breaker=breaker)


def _request():
    return ChargeRequest(
        amount=Decimal("500.00"),
        currency="USD",
        transaction_number="TXN17000000000001234",
        payment_method_type="credit_card",
        card_number="4242424242424242",
        card_holder_name="ADA TRAVELER",
        expiry_month="12",
        expiry_year="2030",
        cvv="123",
        billing={"name": "Ada Traveler"},
    )


def _original():
    txn = MagicMock()
    txn.transaction_number = "TXN17000000000001234"
    txn.gateway_transaction_id = "ch_123"
    txn.currency = "USD"
    txn.amount = Decimal("500.00")
    return txn


class TestCharge:
    def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "ch_123", "status": "succeeded"})

        outcome = _gateway(handler).charge(_request())

        assert outcome.success is True
        assert outcome.provider_reference == "ch_123"
        assert seen["url"] == "https://pay.example.test/v1/charges"
        assert seen["headers"]["Authorization"] == "Bearer sk_test"
        assert seen["headers"]["Idempotency-Key"] == "TXN17000000000001234"
        assert seen["body"]["amount"] == "500.00"
        assert seen["body"]["card"]["number"] == "4242424242424242"
        assert seen["body"]["billing"] == {"name": "Ada Traveler"}
        assert seen["body"]["bank"] is None

    def test_bank_details_in_payload(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "ch_456", "status": "succeeded"})

        request = ChargeRequest(
            amount=Decimal("500.00"),
            currency="EUR",
            transaction_number="TXN17000000000005678",
            payment_method_type="bank_transfer",
            account_number="DE89370400440532013000",
            bank_name="Commerzbank",
        )
        outcome = _gateway(handler).charge(request)

        assert outcome.success is True
        assert seen["body"]["bank"] == {"account_number": "DE89370400440532013000", "bank_name": "Commerzbank"}
        assert seen["body"]["card"] is None

    def test_decline_is_a_failed_outcome(self):
        def handler(request):
            return httpx.Response(402, json={"error": {"message": "Card declined", "code": "card_declined"}})

        outcome = _gateway(handler).charge(_request())

        assert outcome.success is False
        assert outcome.message == "Card declined"
        assert outcome.extra == {"http_status": 402}

    def test_declines_do_not_trip_the_breaker(self):
        def handler(request):
            return httpx.Response(402, json={"message": "Card declined"})

        gw = _gateway(handler, fail_max=1)
        for _ in range(3):
            assert gw.charge(_request()).message == "Card declined"
        assert gw._breaker.current_state == pybreaker.STATE_CLOSED

    def test_unsuccessful_status_in_2xx_body(self):
        def handler(request):
            return httpx.Response(200, json={"id": "ch_9", "status": "failed"})

        outcome = _gateway(handler).charge(_request())
        assert outcome.success is False
        assert outcome.message == "Payment declined by bank"
        assert outcome.extra == {}

    def test_server_error(self):
        def handler(request):
            return httpx.Response(503, json={"message": "maintenance"})

        outcome = _gateway(handler).charge(_request())
        assert outcome.success is False
        assert outcome.message == "Gateway unavailable"

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        outcome = _gateway(handler).charge(_request())
        assert outcome.success is False
        assert outcome.message == "Gateway timeout"
        assert outcome.as_response()["timeout"] is True

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        outcome = _gateway(handler).charge(_request())
        assert outcome.message == "Gateway unavailable"

    def test_open_breaker_short_circuits(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        gw = _gateway(handler, fail_max=2)
        gw.charge(_request())
        gw.charge(_request())
        outcome = gw.charge(_request())

        assert len(calls) == 2
        assert outcome.success is False
        assert outcome.message == "Gateway unavailable"
        assert outcome.extra == {"circuit_open": True}

    def test_not_configured(self):
        def handler(request):
            raise AssertionError("no request expected")

        gw = _gateway(handler, config={"name": "acme_pay", "api_url": "", "api_key": ""})
        assert gw.is_available() is False
        assert gw.charge(_request()).message == "Gateway not configured"


class TestRefund:
    def test_refund_payload(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["key"] = request.headers["Idempotency-Key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "re_1", "success": True})

        outcome = _gateway(handler).refund(_original(), Decimal("200.00"), "REF-TXN17000000000009999")

        assert outcome.success is True
        assert outcome.provider_reference == "re_1"
        assert seen["url"].endswith("/refunds")
        assert seen["key"] == "REF-TXN17000000000009999"
        assert seen["body"] == {
            "charge_id": "ch_123",
            "charge_reference": "TXN17000000000001234",
            "reference": "REF-TXN17000000000009999",
            "amount": "200.00",
            "currency": "USD",
        }

    def test_refund_rejected(self):
        def handler(request):
            return httpx.Response(400, json={})

        outcome = _gateway(handler).refund(_original(), Decimal("200.00"))
        assert outcome.success is False
        assert outcome.message == "Refund processing failed"
