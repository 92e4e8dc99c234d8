# models.py (SQLite-friendly)
import enum
from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy import (
    Column, Integer, Text, Boolean, Float, TIMESTAMP, ForeignKey, Index, text
)
from sqlalchemy.sql import func
from sqlalchemy.types import JSON  # JSON works on SQLite (stored as TEXT)
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat those as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timestamp normalised to UTC on the way in and tagged UTC on the way out.

    SQLite's DATETIME drops tzinfo without converting, so an offset like
    +05:00 has to be folded into the value before it is written.
    """

    impl = TIMESTAMP(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if isinstance(value, datetime):
            return as_utc(value)
        return value

    def process_result_value(self, value, dialect):
        if isinstance(value, datetime):
            return as_utc(value)
        return value


class DeliveryStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    IN_ESCROW = "in_escrow"
    RELEASED = "released"
    REFUNDED = "refunded"


class PackageStatus(str, enum.Enum):
    PENDING = "pending"
    MATCHED = "matched"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


VERIFICATION_KINDS = ("id_verified", "phone_verified", "address_verified")


def empty_verification() -> dict:
    return {kind: False for kind in VERIFICATION_KINDS}


class User(Base):
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_uid = Column(Text, unique=True, nullable=False, index=True)  # identity provider uid
    email = Column(Text, unique=True, nullable=False)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False, default="")
    profile_image = Column(Text)
    is_verified = Column(Boolean, nullable=False, default=False)
    verification_status = Column(JSON, nullable=False, default=empty_verification)
    rating = Column(Float, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)
    created_at = Column(UTCDateTime(), default=utcnow, server_default=func.now())

    trips = relationship("Trip", backref="user", lazy="selectin")
    packages = relationship("Package", backref="user", lazy="selectin")


class Trip(Base):
    __tablename__ = "trips"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    departure_airport = Column(Text, nullable=False)
    departure_code = Column(Text, index=True)  # IATA, '' when unknown
    destination_city = Column(Text, nullable=False)
    departure_date = Column(UTCDateTime(), nullable=False)
    arrival_date = Column(UTCDateTime(), nullable=False)
    airline = Column(Text)
    flight_number = Column(Text)
    available_weight = Column(Float, nullable=False)
    price_per_kg = Column(Float, nullable=False)
    notes = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime(), default=utcnow, server_default=func.now())


class Package(Base):
    __tablename__ = "packages"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    sender_city = Column(Text, nullable=False)
    receiver_city = Column(Text, nullable=False)
    package_type = Column(Text, nullable=False)
    weight = Column(Float, nullable=False)
    dimensions = Column(JSON)  # {"length", "width", "height"}
    delivery_deadline = Column(UTCDateTime())
    offered_payment = Column(Float, nullable=False)
    description = Column(Text)
    status = Column(Text, nullable=False, default=PackageStatus.PENDING.value)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime(), default=utcnow, server_default=func.now())


class Delivery(Base):
    __tablename__ = "deliveries"
    __table_args__ = (
        Index("ix_deliveries_package_status", "package_id", "status"),
        # at most one non-cancelled delivery per package
        Index(
            "uq_deliveries_active_package",
            "package_id",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False)
    traveler_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(Text, nullable=False, default=DeliveryStatus.PENDING.value)
    payment_status = Column(Text, nullable=False, default=PaymentStatus.PENDING.value)
    created_at = Column(UTCDateTime(), default=utcnow, server_default=func.now())
    updated_at = Column(UTCDateTime(), default=utcnow, onupdate=utcnow)

    trip = relationship("Trip", lazy="joined")
    package = relationship("Package", lazy="joined")


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = {"sqlite_autoincrement": True}

    # id doubles as the send sequence; it breaks created_at ties
    id = Column(Integer, primary_key=True, autoincrement=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    reviewee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    delivery_id = Column(Integer, ForeignKey("deliveries.id"))
    rating = Column(Integer, nullable=False)
    comment = Column(Text)
    created_at = Column(UTCDateTime(), default=utcnow, server_default=func.now())
