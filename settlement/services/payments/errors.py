"""
Settlement error taxonomy. status_code is the HTTP-equivalent for callers
that expose these over an API.

Gateway declines are NOT errors: they are recorded as FAILED transactions.
"""


class SettlementError(Exception):
    status_code = 500

    def __init__(self, message: str, detail: dict | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class NotFoundError(SettlementError):
    """Booking, transaction, invoice, receipt, user or payment method is missing."""

    status_code = 404


class ValidationError(SettlementError):
    """Request rejected before any write: wrong state, amount mismatch, over-refund."""

    status_code = 400


class ConflictError(SettlementError):
    """Identifier generation exhausted or a concurrent writer won; retry the whole request."""

    status_code = 409
