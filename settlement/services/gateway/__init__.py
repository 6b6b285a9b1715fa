"""
Payment gateway adapters with pluggable implementations.
"""
from .base import (
    ChargeRequest,
    GatewayError,
    GatewayOutcome,
    PaymentGateway,
)
from .cards import card_brand, card_last_four, normalize_card_number
from .factory import GatewayFactory
from .http import HttpPaymentGateway
from .mock import FixedOutcomeGateway, MockPaymentGateway

__all__ = [
    "ChargeRequest",
    "GatewayError",
    "GatewayOutcome",
    "PaymentGateway",
    "card_brand",
    "card_last_four",
    "normalize_card_number",
    "GatewayFactory",
    "HttpPaymentGateway",
    "FixedOutcomeGateway",
    "MockPaymentGateway",
]
