"""Shared fixtures: a fresh in-memory SQLite database per test."""
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import settlement.models  # noqa: F401
from settlement.db.base import Base
from settlement.db.session import enable_sqlite_savepoints
from settlement.models.booking import Booking
from settlement.models.enums import BookingStatus
from settlement.models.user import User
from settlement.services.gateway.mock import FixedOutcomeGateway


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def user(db):
    user = User(id=str(uuid4()), email="traveler@example.com", full_name="Ada Traveler")
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def make_booking(db, user):
    def _make(total="500.00", status=BookingStatus.PENDING, currency="USD", user_id=None):
        booking = Booking(
            pnr=uuid4().hex[:6].upper(),
            user_id=user_id or user.id,
            total_amount=Decimal(total),
            currency=currency,
            status=status.value,
        )
        db.add(booking)
        db.flush()
        return booking

    return _make


@pytest.fixture
def booking(make_booking):
    return make_booking()


@pytest.fixture
def gateway():
    return FixedOutcomeGateway({"name": "fixed_gateway", "mode": "success"})
