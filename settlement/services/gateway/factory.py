"""
Factory for creating payment gateways based on configuration.
"""
import logging

from settlement.services.gateway.base import PaymentGateway
from settlement.services.gateway.http import HttpPaymentGateway
from settlement.services.gateway.mock import FixedOutcomeGateway, MockPaymentGateway

logger = logging.getLogger(__name__)


class GatewayFactory:
    """Factory for creating payment gateways."""

    GATEWAYS: dict[str, type[PaymentGateway]] = {
        "mock": MockPaymentGateway,
        "fixed": FixedOutcomeGateway,
        "http": HttpPaymentGateway,
    }

    @classmethod
    def create(cls, gateway_name: str, config: dict) -> PaymentGateway:
        """
        Create gateway instance by name.

        Raises:
            ValueError: If gateway name is unknown
        """
        gateway_class = cls.GATEWAYS.get(gateway_name.strip().lower())

        if not gateway_class:
            available = ", ".join(cls.GATEWAYS.keys())
            raise ValueError(
                f"Unknown gateway: {gateway_name}. "
                f"Available gateways: {available}"
            )

        logger.info("gateway_created", extra={"gateway": gateway_name})
        gateway = gateway_class(config)

        if not gateway.is_available():
            logger.warning("gateway_not_configured", extra={"gateway": gateway_name})

        return gateway

    @classmethod
    def create_from_settings(cls, settings, gateway_override: str | None = None) -> PaymentGateway:
        """Create gateway from application settings."""
        gateway_name = (gateway_override or "").strip() or settings.gateway_provider

        if gateway_name == "mock":
            config = {
                "name": settings.gateway_name,
                "latency": settings.gateway_mock_latency_seconds,
                "charge_failure_rate": settings.gateway_mock_charge_failure_rate,
                "refund_failure_rate": settings.gateway_mock_refund_failure_rate,
            }
        elif gateway_name == "fixed":
            config = {
                "name": settings.gateway_name,
                "mode": settings.gateway_fixed_mode,
            }
        elif gateway_name == "http":
            config = {
                "name": settings.gateway_name,
                "api_url": settings.gateway_api_url,
                "api_key": settings.gateway_api_key,
                "timeout": settings.gateway_timeout,
            }
        else:
            raise ValueError(f"Gateway {gateway_name} not supported in settings")

        return cls.create(gateway_name, config)
