"""
Test configuration and fixtures.

Provides:
- A fresh in-memory SQLite database per test (StaticPool keeps one connection)
- Three users: a traveler, a sender and an outsider
- Trip/package factories
- A TestClient whose get_db dependency points at the test database
"""
from datetime import timedelta
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from db import get_db
from models import Base, Package, Trip, User, empty_verification, utcnow


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


def _user(db: Session, uid: str, first: str, last: str) -> User:
    u = User(
        external_uid=uid,
        email=f"{uid}@example.com",
        first_name=first,
        last_name=last,
        verification_status=empty_verification(),
    )
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def traveler(db: Session) -> User:
    return _user(db, "uid-abebe", "Abebe", "Kebede")


@pytest.fixture
def sender(db: Session, traveler: User) -> User:
    return _user(db, "uid-sara", "Sara", "Tesfaye")


@pytest.fixture
def outsider(db: Session, sender: User) -> User:
    return _user(db, "uid-omar", "Omar", "Farouk")


# =============================================================================
# Listing Factories
# =============================================================================

@pytest.fixture
def make_trip(db: Session):
    def _make(owner: User, **overrides) -> Trip:
        departs = utcnow() + timedelta(days=5)
        fields = dict(
            user_id=owner.id,
            departure_airport="JFK",
            departure_code="JFK",
            destination_city="Addis Ababa",
            departure_date=departs,
            arrival_date=departs + timedelta(hours=14),
            flight_number="ET509",
            available_weight=20.0,
            price_per_kg=8.0,
            is_active=True,
        )
        fields.update(overrides)
        t = Trip(**fields)
        db.add(t)
        db.commit()
        return t
    return _make


@pytest.fixture
def make_package(db: Session):
    def _make(owner: User, **overrides) -> Package:
        fields = dict(
            user_id=owner.id,
            sender_city="New York",
            receiver_city="Addis Ababa",
            package_type="documents",
            weight=1.5,
            offered_payment=40.0,
            status="pending",
            is_active=True,
        )
        fields.update(overrides)
        p = Package(**fields)
        db.add(p)
        db.commit()
        return p
    return _make


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def client(session_factory) -> Generator[TestClient, None, None]:
    from api import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth(user: User) -> dict:
    """Headers the identity gateway would forward for `user`."""
    return {"X-Auth-Uid": user.external_uid}


@pytest.fixture
def failing_commit(db: Session, monkeypatch):
    """Arm `db` so commits fail after the pending writes have reached the database."""
    def _arm():
        def commit():
            db.flush()
            raise RuntimeError("disk I/O error")
        monkeypatch.setattr(db, "commit", commit)
    return _arm
