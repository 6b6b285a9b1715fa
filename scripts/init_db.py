#!/usr/bin/env python3
"""
Create the settlement tables (bookings, payment_transactions, invoices, receipts, ...).
Run from the project root: python -m scripts.init_db
"""
import logging

from settlement.core.logging import configure_logging
from settlement.db.base import Base
from settlement.db.session import engine
import settlement.models  # noqa: F401  registers tables on Base.metadata

logger = logging.getLogger("init_db")


def main():
    configure_logging()
    Base.metadata.create_all(bind=engine)
    logger.info("tables_created")
    for name in sorted(Base.metadata.tables):
        print(f"  {name}")


if __name__ == "__main__":
    main()
