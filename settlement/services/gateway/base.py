"""
Base classes and types for payment gateways.
Used by the factory and all gateways (mock, fixed, http).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol


@dataclass
class ChargeRequest:
    """What the gateway needs to charge a customer."""
    amount: Decimal
    currency: str
    transaction_number: str
    payment_method_type: str | None = None
    payment_method_id: str | None = None
    card_number: str | None = None
    card_holder_name: str | None = None
    expiry_month: str | None = None
    expiry_year: str | None = None
    cvv: str | None = None
    wallet_provider: str | None = None
    wallet_token: str | None = None
    account_number: str | None = None
    bank_name: str | None = None
    upi_id: str | None = None
    billing: dict[str, Any] = field(default_factory=dict)


class RefundableTransaction(Protocol):
    transaction_number: str
    gateway_transaction_id: str | None
    currency: str
    amount: Decimal


@dataclass
class GatewayOutcome:
    """Result of a charge or refund. A decline is success=False, not an exception."""
    success: bool
    provider_reference: str | None = None
    message: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def as_response(self) -> dict[str, Any]:
        """Raw response persisted on the transaction for audit."""
        payload: dict[str, Any] = {"success": self.success}
        if self.provider_reference:
            payload["transactionId"] = self.provider_reference
        if self.message:
            payload["message"] = self.message
        if self.extra:
            payload.update(self.extra)
        return payload

    @classmethod
    def failed(cls, message: str, **extra: Any) -> "GatewayOutcome":
        return cls(success=False, message=message, extra=extra)


class GatewayError(Exception):
    """Raised by a gateway that cannot produce an outcome; the caller records it as FAILED."""
    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}


class PaymentGateway(ABC):
    """Base class for payment gateways."""

    name: str = "gateway"

    def __init__(self, config: dict) -> None:
        self.config = config
        self.name = config.get("name") or self.name

    @abstractmethod
    def is_available(self) -> bool:
        """Check if gateway is configured and available."""
        pass

    @abstractmethod
    def charge(self, request: ChargeRequest) -> GatewayOutcome:
        """Charge the customer. Declines come back as GatewayOutcome(success=False)."""
        pass

    @abstractmethod
    def refund(
        self,
        transaction: RefundableTransaction,
        amount: Decimal,
        reference: str | None = None,
    ) -> GatewayOutcome:
        """Refund (part of) a previously completed charge. reference is the refund's own number."""
        pass
