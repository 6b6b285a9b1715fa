"""
Prometheus metrics for the settlement core.
Exposition is left to the hosting process (generate_latest / start_http_server).
"""
from prometheus_client import Counter, Gauge, Histogram


# Counters
payments_processed_total = Counter(
    "settlement_payments_processed_total",
    "Charge attempts recorded in the ledger",
    ["status"],  # completed, failed
)

refunds_processed_total = Counter(
    "settlement_refunds_processed_total",
    "Refund attempts recorded in the ledger",
    ["status", "type"],
)

identifier_collisions_total = Counter(
    "settlement_identifier_collisions_total",
    "Business number collisions (pre-check or unique constraint)",
    ["kind"],
)

identifier_exhausted_total = Counter(
    "settlement_identifier_exhausted_total",
    "Business number generation gave up after max attempts",
    ["kind"],
)

documents_generated_total = Counter(
    "settlement_documents_generated_total",
    "Invoices and receipts created (idempotent hits are not counted)",
    ["document"],  # invoice, receipt
)

circuit_breaker_state = Gauge(
    "settlement_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
gateway_request_duration_seconds = Histogram(
    "settlement_gateway_request_duration_seconds",
    "Payment gateway call duration",
    ["operation", "gateway"],
    buckets=[0.1, 0.25, 0.5, 1, 2, 5, 10, 30],
)
