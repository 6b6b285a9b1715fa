"""
Application configuration.
All settings are loaded from environment variables (or .env).
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Settlement service settings loaded from environment variables.

    Gateway credentials have no defaults - set them in .env when
    gateway_provider=http.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    default_currency: str = "USD"

    # ===========================================
    # DATABASE
    # ===========================================
    database_url: str = "sqlite:///./settlement.db"
    db_pool_size: int = 10
    db_max_overflow: int = 20

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    # Optional: circuit breaker state is kept in memory when unset
    redis_url: str | None = None
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"

    # ===========================================
    # PAYMENT GATEWAY
    # ===========================================
    gateway_provider: str = "mock"  # mock, fixed, http
    gateway_name: str = "mock_gateway"  # stored on every transaction
    gateway_mock_latency_seconds: float = 0.5
    gateway_mock_charge_failure_rate: float = 0.05
    gateway_mock_refund_failure_rate: float = 0.02
    gateway_fixed_mode: str = "success"  # success, fail, timeout
    gateway_api_url: str = ""
    gateway_api_key: str = ""
    gateway_timeout: float = 10.0

    # ===========================================
    # IDENTIFIERS
    # ===========================================
    identifier_max_attempts: int = 10

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # RECEIPT DELIVERY
    # ===========================================
    receipt_email_enabled: bool = False
    smtp_host: str = ""
    smtp_port: int = 25
    smtp_sender: str = "receipts@example.com"

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("default_currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Currency is a 3-letter code, stored upper-case."""
        v = v.strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError("default_currency must be a 3-letter code")
        return v

    @field_validator("gateway_mock_charge_failure_rate", "gateway_mock_refund_failure_rate")
    @classmethod
    def validate_failure_rate(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("failure rate must be between 0 and 1")
        return v

    @field_validator("identifier_max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("identifier_max_attempts must be at least 1")
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
