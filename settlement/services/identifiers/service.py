"""
IdentifierGenerator — human-readable business numbers with collision retry.

Formats:
- transaction: TXN<epoch millis><4 digits>
- refund:      REF-TXN<epoch millis><4 digits>
- invoice:     INV-<year>-<6 digits>
- receipt:     RCP-<year>-<6 digits>

The store's UNIQUE constraint is the source of truth. The existence pre-check
only avoids a wasted INSERT; a constraint violation on insert is re-checked
and treated as a collision.
"""
import logging
import random
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from settlement.core.config import settings
from settlement.services.payments.errors import ConflictError
from settlement.utils.metrics import identifier_collisions_total, identifier_exhausted_total

logger = logging.getLogger(__name__)

T = TypeVar("T")


class IdentifierKind(str, Enum):
    TRANSACTION = "transaction"
    REFUND = "refund"
    INVOICE = "invoice"
    RECEIPT = "receipt"


def format_transaction_number(now: datetime, rng: random.Random) -> str:
    millis = int(now.timestamp() * 1000)
    return f"TXN{millis}{rng.randrange(10_000):04d}"


def format_refund_number(now: datetime, rng: random.Random) -> str:
    return f"REF-{format_transaction_number(now, rng)}"


def format_invoice_number(now: datetime, rng: random.Random) -> str:
    return f"INV-{now.year}-{rng.randrange(1_000_000):06d}"


def format_receipt_number(now: datetime, rng: random.Random) -> str:
    return f"RCP-{now.year}-{rng.randrange(1_000_000):06d}"


FORMATTERS: dict[IdentifierKind, Callable[[datetime, random.Random], str]] = {
    IdentifierKind.TRANSACTION: format_transaction_number,
    IdentifierKind.REFUND: format_refund_number,
    IdentifierKind.INVOICE: format_invoice_number,
    IdentifierKind.RECEIPT: format_receipt_number,
}


class IdentifierGenerator:
    def __init__(
        self,
        db: Session,
        *,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
        max_attempts: int | None = None,
    ):
        self.db = db
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._rng = rng or random.SystemRandom()
        self.max_attempts = max_attempts or settings.identifier_max_attempts

    def candidate(self, kind: IdentifierKind) -> str:
        return FORMATTERS[kind](self._clock(), self._rng)

    def generate(self, kind: IdentifierKind, exists: Callable[[str], bool]) -> str:
        """
        Return a number that `exists` does not know about yet.
        Raises ConflictError after max_attempts collisions.
        """
        for attempt in range(1, self.max_attempts + 1):
            number = self.candidate(kind)
            if not exists(number):
                return number
            self._on_collision(kind, number, attempt)
        self._exhausted(kind)

    def insert_unique(
        self,
        kind: IdentifierKind,
        model: type[T],
        column: str,
        build: Callable[[str], T],
        preferred: str | None = None,
    ) -> T:
        """
        Insert build(number) under a SAVEPOINT, regenerating the number on
        collision. `preferred` (a number handed out earlier by generate) is
        tried first. An IntegrityError on some other unique column is
        re-raised for the caller to resolve.
        """
        exists = self.exists_in(model, column)
        for attempt in range(1, self.max_attempts + 1):
            if attempt == 1 and preferred:
                number = preferred
            else:
                number = self.candidate(kind)
            if exists(number):
                self._on_collision(kind, number, attempt)
                continue
            record = build(number)
            try:
                with self.db.begin_nested():
                    self.db.add(record)
            except IntegrityError:
                # Lost the race between pre-check and insert?
                if not exists(number):
                    raise
                self._on_collision(kind, number, attempt)
                continue
            return record
        self._exhausted(kind)

    def exists_in(self, model: type[Any], column: str) -> Callable[[str], bool]:
        attr = getattr(model, column)

        def _exists(number: str) -> bool:
            return self.db.query(model.id).filter(attr == number).first() is not None

        return _exists

    def _on_collision(self, kind: IdentifierKind, number: str, attempt: int) -> None:
        identifier_collisions_total.labels(kind=kind.value).inc()
        logger.warning(
            "identifier_collision",
            extra={"kind": kind.value, "attempt": attempt, "number": number},
        )

    def _exhausted(self, kind: IdentifierKind):
        identifier_exhausted_total.labels(kind=kind.value).inc()
        logger.error("identifier_generation_exhausted", extra={"kind": kind.value, "attempt": self.max_attempts})
        raise ConflictError(
            f"Failed to generate unique {kind.value} number",
            detail={"kind": kind.value, "attempts": self.max_attempts},
        )
