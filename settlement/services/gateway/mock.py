"""
In-process gateways.

MockPaymentGateway simulates latency and random declines so the FAILED
paths get exercised. FixedOutcomeGateway always answers the same way.
"""
import random
import time
from decimal import Decimal
from typing import Callable

from settlement.services.gateway.base import (
    ChargeRequest,
    GatewayOutcome,
    PaymentGateway,
    RefundableTransaction,
)


def _millis() -> int:
    return int(time.time() * 1000)


class MockPaymentGateway(PaymentGateway):
    """Simulated processor: 5% of charges and 2% of refunds fail by default."""

    name = "mock_gateway"

    def __init__(
        self,
        config: dict,
        *,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(config)
        self.latency = float(config.get("latency", 0.5))
        self.charge_failure_rate = float(config.get("charge_failure_rate", 0.05))
        self.refund_failure_rate = float(config.get("refund_failure_rate", 0.02))
        self._rng = rng or random.Random()
        self._sleep = sleep

    def is_available(self) -> bool:
        return True

    def charge(self, request: ChargeRequest) -> GatewayOutcome:
        self._simulate_latency()
        if self._rng.random() < self.charge_failure_rate:
            return GatewayOutcome(success=False, message="Payment declined by bank")
        return GatewayOutcome(
            success=True,
            provider_reference=f"GW-{_millis()}-{self._rng.randrange(10_000)}",
            message="Payment processed successfully",
        )

    def refund(
        self,
        transaction: RefundableTransaction,
        amount: Decimal,
        reference: str | None = None,
    ) -> GatewayOutcome:
        self._simulate_latency()
        if self._rng.random() < self.refund_failure_rate:
            return GatewayOutcome(success=False, message="Refund processing failed")
        return GatewayOutcome(
            success=True,
            provider_reference=f"REF-{_millis()}-{self._rng.randrange(10_000)}",
            message="Refund processed successfully",
        )

    def _simulate_latency(self) -> None:
        if self.latency > 0:
            self._sleep(self.latency)


class FixedOutcomeGateway(PaymentGateway):
    """
    Deterministic gateway for tests and staging.
    mode: "success" | "fail" | "timeout"
    """

    name = "fixed_gateway"
    MODES = ("success", "fail", "timeout")

    def __init__(self, config: dict):
        super().__init__(config)
        mode = (config.get("mode") or "success").lower()
        if mode not in self.MODES:
            raise ValueError(f"Unknown gateway mode: {mode}. Available modes: {', '.join(self.MODES)}")
        self.mode = mode
        self.message = config.get("message")
        self.charges: list[ChargeRequest] = []
        self.refunds: list[tuple[str, Decimal, str | None]] = []
        self._counter = 0

    def is_available(self) -> bool:
        return True

    def charge(self, request: ChargeRequest) -> GatewayOutcome:
        self.charges.append(request)
        return self._outcome("GW", self.message or "Payment declined by bank")

    def refund(
        self,
        transaction: RefundableTransaction,
        amount: Decimal,
        reference: str | None = None,
    ) -> GatewayOutcome:
        self.refunds.append((transaction.transaction_number, amount, reference))
        return self._outcome("REF", self.message or "Refund processing failed")

    def _outcome(self, prefix: str, failure_message: str) -> GatewayOutcome:
        if self.mode == "timeout":
            return GatewayOutcome.failed("Gateway timeout", timeout=True)
        if self.mode == "fail":
            return GatewayOutcome(success=False, message=failure_message)
        self._counter += 1
        return GatewayOutcome(
            success=True,
            provider_reference=f"{prefix}-FIXED-{self._counter:06d}",
            message="Processed successfully",
        )
