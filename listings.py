# listings.py: trips (capacity offers) and packages (carry requests)

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from airports import is_airport, to_code
from db import commit_or_rollback
from errors import Forbidden, InvalidArgument, NotFound
from models import Package, PackageStatus, Trip, as_utc, utcnow
from users import require_user, trust_profile

logger = logging.getLogger(__name__)

TRIP_EDITABLE = {
    "departure_airport", "destination_city", "departure_date", "arrival_date",
    "airline", "flight_number", "available_weight", "price_per_kg", "notes", "is_active",
}
# status is advanced by deliveries only
PACKAGE_EDITABLE = {
    "sender_city", "receiver_city", "package_type", "weight", "dimensions",
    "delivery_deadline", "offered_payment", "description", "is_active",
}
TRIP_NULLABLE = {"airline", "flight_number", "notes"}
PACKAGE_NULLABLE = {"dimensions", "delivery_deadline", "description"}


# ------------------- serialization -------------------

def trip_to_dict(t: Trip) -> Dict[str, Any]:
    return {
        "id": t.id,
        "user_id": t.user_id,
        "departure_airport": t.departure_airport,
        "departure_code": t.departure_code,
        "destination_city": t.destination_city,
        "departure_date": t.departure_date,
        "arrival_date": t.arrival_date,
        "airline": t.airline,
        "flight_number": t.flight_number,
        "available_weight": t.available_weight,
        "price_per_kg": t.price_per_kg,
        "notes": t.notes,
        "is_active": t.is_active,
        "created_at": t.created_at,
    }


def package_to_dict(p: Package) -> Dict[str, Any]:
    return {
        "id": p.id,
        "user_id": p.user_id,
        "sender_city": p.sender_city,
        "receiver_city": p.receiver_city,
        "package_type": p.package_type,
        "weight": p.weight,
        "dimensions": p.dimensions,
        "delivery_deadline": p.delivery_deadline,
        "offered_payment": p.offered_payment,
        "description": p.description,
        "status": p.status,
        "is_active": p.is_active,
        "created_at": p.created_at,
    }


def with_owner(row: Dict[str, Any], owner) -> Dict[str, Any]:
    row["user"] = trust_profile(owner) if owner is not None else None
    return row


# ------------------- validation -------------------

def _editable(changes: Dict[str, Any], editable, nullable) -> Dict[str, Any]:
    return {
        k: v for k, v in changes.items()
        if k in editable and (v is not None or k in nullable)
    }


def _check_trip_fields(fields: Dict[str, Any]) -> None:
    now = utcnow()
    dep = fields.get("departure_date")
    arr = fields.get("arrival_date")
    if dep is not None and as_utc(dep) < now:
        raise InvalidArgument("departure_date must be today or later")
    if arr is not None and as_utc(arr) < now:
        raise InvalidArgument("arrival_date must be today or later")
    if dep is not None and arr is not None and as_utc(arr) < as_utc(dep):
        raise InvalidArgument("arrival_date must not be before departure_date")
    if "available_weight" in fields and not fields["available_weight"] > 0:
        raise InvalidArgument("available_weight must be positive")
    if "price_per_kg" in fields and fields["price_per_kg"] < 0:
        raise InvalidArgument("price_per_kg must not be negative")
    if "departure_airport" in fields and not is_airport(fields["departure_airport"]):
        raise InvalidArgument("Enter valid airport code or full name")


def _check_package_fields(fields: Dict[str, Any]) -> None:
    if "weight" in fields and not fields["weight"] > 0:
        raise InvalidArgument("weight must be positive")
    if "offered_payment" in fields and fields["offered_payment"] < 0:
        raise InvalidArgument("offered_payment must not be negative")
    dims = fields.get("dimensions")
    if dims is not None:
        for k in ("length", "width", "height"):
            if not (dims.get(k) or 0) > 0:
                raise InvalidArgument("dimensions need positive length, width and height")


# ------------------- trips -------------------

def create_trip(db: Session, user_id: int, **fields) -> Trip:
    require_user(db, user_id)
    _check_trip_fields(fields)
    airport = fields["departure_airport"].strip()
    code = to_code(airport) or (airport.upper() if len(airport) == 3 else "")

    t = Trip(
        user_id=user_id,
        departure_airport=airport,
        departure_code=code,
        destination_city=fields["destination_city"].strip(),
        departure_date=fields["departure_date"],
        arrival_date=fields["arrival_date"],
        airline=fields.get("airline"),
        flight_number=fields.get("flight_number"),
        available_weight=fields["available_weight"],
        price_per_kg=fields["price_per_kg"],
        notes=fields.get("notes"),
        is_active=True,
    )
    db.add(t)
    commit_or_rollback(db)
    db.refresh(t)
    logger.info("trip %s created by user %s (%s)", t.id, user_id, code or airport)
    return t


def get_trip(db: Session, trip_id: int) -> Trip:
    t = db.get(Trip, trip_id)
    if t is None:
        raise NotFound("Trip not found")
    return t


def search_trips(
    db: Session,
    departure: Optional[str] = None,
    destination: Optional[str] = None,
    departure_day: Optional[date] = None,
    min_weight: Optional[float] = None,
    limit: int = 50,
    offset: int = 0,
) -> Dict[str, Any]:
    """Active trips, newest first. `departure` may be a code, city or airport name."""
    qry = db.query(Trip).filter(Trip.is_active.is_(True))

    if departure:
        code = to_code(departure)
        if code:
            qry = qry.filter(Trip.departure_code == code)
        else:
            qry = qry.filter(Trip.departure_airport.ilike(f"%{departure.strip()}%"))
    if destination:
        qry = qry.filter(Trip.destination_city.ilike(f"%{destination.strip()}%"))
    if departure_day:
        start = datetime.combine(departure_day, time.min)
        qry = qry.filter(Trip.departure_date >= start, Trip.departure_date < start + timedelta(days=1))
    if min_weight is not None:
        qry = qry.filter(Trip.available_weight >= min_weight)

    total = qry.count()
    rows = qry.order_by(Trip.created_at.desc(), Trip.id.desc()).offset(offset).limit(limit).all()
    return {
        "count": total,
        "limit": limit,
        "offset": offset,
        "results": [with_owner(trip_to_dict(t), t.user) for t in rows],
    }


def list_trips_for_user(db: Session, user_id: int) -> List[Trip]:
    return db.query(Trip).filter_by(user_id=user_id).order_by(Trip.departure_date.desc()).all()


def update_trip(db: Session, trip_id: int, actor_id: int, changes: Dict[str, Any]) -> Trip:
    t = get_trip(db, trip_id)
    if t.user_id != actor_id:
        raise Forbidden("Not authorized to update this trip")

    changes = _editable(changes, TRIP_EDITABLE, TRIP_NULLABLE)
    _check_trip_fields(changes)
    # an edited date is still ordered against the other, stored one
    dep = changes.get("departure_date", t.departure_date)
    arr = changes.get("arrival_date", t.arrival_date)
    if as_utc(arr) < as_utc(dep):
        raise InvalidArgument("arrival_date must not be before departure_date")

    for k, v in changes.items():
        setattr(t, k, v)
    if "departure_airport" in changes:
        airport = t.departure_airport.strip()
        t.departure_code = to_code(airport) or (airport.upper() if len(airport) == 3 else "")
    commit_or_rollback(db)
    db.refresh(t)
    return t


# ------------------- packages -------------------

def create_package(db: Session, user_id: int, **fields) -> Package:
    require_user(db, user_id)
    _check_package_fields(fields)

    p = Package(
        user_id=user_id,
        sender_city=fields["sender_city"].strip(),
        receiver_city=fields["receiver_city"].strip(),
        package_type=fields["package_type"],
        weight=fields["weight"],
        dimensions=fields.get("dimensions"),
        delivery_deadline=fields.get("delivery_deadline"),
        offered_payment=fields["offered_payment"],
        description=fields.get("description"),
        status=PackageStatus.PENDING.value,
        is_active=True,
    )
    db.add(p)
    commit_or_rollback(db)
    db.refresh(p)
    logger.info("package %s created by user %s", p.id, user_id)
    return p


def get_package(db: Session, package_id: int) -> Package:
    p = db.get(Package, package_id)
    if p is None:
        raise NotFound("Package not found")
    return p


def search_packages(
    db: Session,
    sender_city: Optional[str] = None,
    receiver_city: Optional[str] = None,
    package_type: Optional[str] = None,
    max_weight: Optional[float] = None,
    deadline_before: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
) -> Dict[str, Any]:
    qry = db.query(Package).filter(Package.is_active.is_(True))

    if sender_city:
        qry = qry.filter(Package.sender_city.ilike(f"%{sender_city.strip()}%"))
    if receiver_city:
        qry = qry.filter(Package.receiver_city.ilike(f"%{receiver_city.strip()}%"))
    if package_type:
        qry = qry.filter(Package.package_type == package_type)
    if max_weight is not None:
        qry = qry.filter(Package.weight <= max_weight)
    if deadline_before:
        qry = qry.filter(Package.delivery_deadline <= deadline_before)

    total = qry.count()
    rows = qry.order_by(Package.created_at.desc(), Package.id.desc()).offset(offset).limit(limit).all()
    return {
        "count": total,
        "limit": limit,
        "offset": offset,
        "results": [with_owner(package_to_dict(p), p.user) for p in rows],
    }


def list_packages_for_user(db: Session, user_id: int) -> List[Package]:
    return db.query(Package).filter_by(user_id=user_id).order_by(Package.id.desc()).all()


def update_package(db: Session, package_id: int, actor_id: int, changes: Dict[str, Any]) -> Package:
    p = get_package(db, package_id)
    if p.user_id != actor_id:
        raise Forbidden("Not authorized to update this package")

    changes = _editable(changes, PACKAGE_EDITABLE, PACKAGE_NULLABLE)
    _check_package_fields(changes)
    for k, v in changes.items():
        setattr(p, k, v)
    commit_or_rollback(db)
    db.refresh(p)
    return p
