"""
HTTP payment gateway (production adapter).

Every call is time-boxed by the httpx timeout and guarded by a circuit
breaker. Timeouts, transport errors, non-2xx answers and an open breaker
all come back as a FAILED outcome; nothing here hangs or raises to the
coordinator.
"""
import logging
from decimal import Decimal
from typing import Any

import httpx
import pybreaker

from settlement.services.circuit_breaker import get_circuit_breaker
from settlement.services.gateway.base import (
    ChargeRequest,
    GatewayError,
    GatewayOutcome,
    PaymentGateway,
    RefundableTransaction,
)

logger = logging.getLogger(__name__)


class HttpPaymentGateway(PaymentGateway):
    """JSON-over-HTTP processor: POST /charges, POST /refunds."""

    name = "http_gateway"

    def __init__(
        self,
        config: dict,
        *,
        transport: httpx.BaseTransport | None = None,
        breaker: pybreaker.CircuitBreaker | None = None,
    ):
        super().__init__(config)
        self.api_url = (config.get("api_url") or "").rstrip("/")
        self.api_key = config.get("api_key")
        self.timeout = float(config.get("timeout", 10.0))
        self._transport = transport
        self._breaker = breaker or get_circuit_breaker(f"gateway:{self.name}")

    def is_available(self) -> bool:
        """Check if the gateway endpoint and credentials are configured."""
        return bool(self.api_url and self.api_key)

    def charge(self, request: ChargeRequest) -> GatewayOutcome:
        payload = {
            "amount": str(request.amount),
            "currency": request.currency,
            "reference": request.transaction_number,
            "method_type": request.payment_method_type,
            "payment_method_id": request.payment_method_id,
            "card": self._card_payload(request),
            "wallet": (
                {"provider": request.wallet_provider, "token": request.wallet_token}
                if request.wallet_token else None
            ),
            "bank": (
                {"account_number": request.account_number, "bank_name": request.bank_name}
                if request.account_number else None
            ),
            "upi_id": request.upi_id,
            "billing": request.billing or None,
        }
        return self._call("charges", payload, failure_message="Payment declined by bank")

    def refund(
        self,
        transaction: RefundableTransaction,
        amount: Decimal,
        reference: str | None = None,
    ) -> GatewayOutcome:
        payload = {
            "charge_id": transaction.gateway_transaction_id,
            "charge_reference": transaction.transaction_number,
            "reference": reference or transaction.transaction_number,
            "amount": str(amount),
            "currency": transaction.currency,
        }
        return self._call("refunds", payload, failure_message="Refund processing failed")

    def _card_payload(self, request: ChargeRequest) -> dict[str, Any] | None:
        if not request.card_number:
            return None
        return {
            "number": request.card_number,
            "holder": request.card_holder_name,
            "exp_month": request.expiry_month,
            "exp_year": request.expiry_year,
            "cvc": request.cvv,
        }

    def _call(self, path: str, payload: dict[str, Any], *, failure_message: str) -> GatewayOutcome:
        if not self.is_available():
            return GatewayOutcome.failed("Gateway not configured")
        try:
            status_code, body = self._breaker.call(self._post, path, payload)
        except pybreaker.CircuitBreakerError:
            logger.warning("gateway_circuit_open", extra={"gateway": self.name})
            return GatewayOutcome.failed("Gateway unavailable", circuit_open=True)
        except httpx.TimeoutException:
            logger.warning("gateway_timeout", extra={"gateway": self.name})
            return GatewayOutcome.failed("Gateway timeout", timeout=True)
        except httpx.HTTPStatusError as e:
            logger.warning(
                "gateway_server_error",
                extra={"gateway": self.name, "status": e.response.status_code},
            )
            return GatewayOutcome.failed("Gateway unavailable", http_status=e.response.status_code)
        except (httpx.TransportError, GatewayError) as e:
            logger.warning("gateway_transport_error", extra={"gateway": self.name, "error": str(e)})
            return GatewayOutcome.failed("Gateway unavailable")

        if status_code < 400 and (
            body.get("status") in ("succeeded", "success", "completed") or body.get("success") is True
        ):
            return GatewayOutcome(
                success=True,
                provider_reference=body.get("id"),
                message=body.get("message") or "Processed successfully",
            )
        extra = {"http_status": status_code} if status_code >= 400 else {}
        return GatewayOutcome(
            success=False,
            provider_reference=body.get("id"),
            message=body.get("message") or failure_message,
            extra=extra,
        )

    def _post(self, path: str, payload: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        """
        4xx is the processor declining and is returned as data.
        5xx raises so the breaker counts it.
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Idempotency-Key": payload["reference"],
        }
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            response = client.post(f"{self.api_url}/{path}", headers=headers, json=payload)
        if response.status_code >= 500:
            response.raise_for_status()
        return response.status_code, self._json_body(response)

    @staticmethod
    def _json_body(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            if response.status_code >= 400:
                return {}
            raise GatewayError("Gateway returned a non-JSON body") from e
        if not isinstance(body, dict):
            return {}
        error = body.get("error")
        if isinstance(error, dict):
            return {**body, **error}
        return body
