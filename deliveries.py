# deliveries.py: trip/package pairings and their custody + payment lifecycle
#
# status:          pending -> accepted -> in_transit -> delivered
#                  pending/accepted -> cancelled
# payment_status:  pending -> in_escrow -> released | refunded
#
# Either party moves custody status; only the sender (the payer) moves payment.

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db import commit_or_rollback
from errors import Conflict, Forbidden, InvalidArgument, NotFound
from listings import package_to_dict, trip_to_dict
from models import Delivery, DeliveryStatus, Package, PackageStatus, PaymentStatus, Trip
from users import get_user, trust_profile

logger = logging.getLogger(__name__)

STATUS_TRANSITIONS = {
    DeliveryStatus.PENDING: {DeliveryStatus.ACCEPTED, DeliveryStatus.CANCELLED},
    DeliveryStatus.ACCEPTED: {DeliveryStatus.IN_TRANSIT, DeliveryStatus.CANCELLED},
    DeliveryStatus.IN_TRANSIT: {DeliveryStatus.DELIVERED},
    DeliveryStatus.DELIVERED: set(),
    DeliveryStatus.CANCELLED: set(),
}

PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.IN_ESCROW},
    PaymentStatus.IN_ESCROW: {PaymentStatus.RELEASED, PaymentStatus.REFUNDED},
    PaymentStatus.RELEASED: set(),
    PaymentStatus.REFUNDED: set(),
}


def _parse(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidArgument(f"Unknown {label}: {value!r}") from None


def can_transition(table, current, target) -> bool:
    return target in table.get(current, set())


def delivery_to_dict(d: Delivery) -> Dict[str, Any]:
    return {
        "id": d.id,
        "trip_id": d.trip_id,
        "package_id": d.package_id,
        "traveler_id": d.traveler_id,
        "sender_id": d.sender_id,
        "status": d.status,
        "payment_status": d.payment_status,
        "created_at": d.created_at,
        "updated_at": d.updated_at,
    }


def get_delivery(db: Session, delivery_id: int) -> Delivery:
    d = db.get(Delivery, delivery_id)
    if d is None:
        raise NotFound("Delivery not found")
    return d


def is_party(d: Delivery, user_id: int) -> bool:
    return user_id in (d.sender_id, d.traveler_id)


def _active_delivery(db: Session, package_id: int):
    return (
        db.query(Delivery)
        .filter(Delivery.package_id == package_id)
        .filter(Delivery.status != DeliveryStatus.CANCELLED.value)
        .first()
    )


def create_delivery(
    db: Session,
    trip_id: int,
    package_id: int,
    traveler_id: int,
    sender_id: int,
    actor_id: int,
) -> Delivery:
    trip = db.get(Trip, trip_id)
    pkg = db.get(Package, package_id)
    if trip is None or pkg is None:
        raise NotFound("Package or trip not found")
    if trip.user_id != traveler_id:
        raise InvalidArgument("traveler_id must be the trip owner")
    if pkg.user_id != sender_id:
        raise InvalidArgument("sender_id must be the package owner")
    if actor_id not in (traveler_id, sender_id):
        raise Forbidden("Not authorized to create this delivery")

    if _active_delivery(db, package_id) is not None:
        raise Conflict("Package already has an active delivery")

    d = Delivery(
        trip_id=trip_id,
        package_id=package_id,
        traveler_id=traveler_id,
        sender_id=sender_id,
        status=DeliveryStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
    )
    db.add(d)
    pkg.status = PackageStatus.MATCHED.value
    try:
        commit_or_rollback(db)
    except IntegrityError:
        # a concurrent request paired the package first
        raise Conflict("Package already has an active delivery") from None
    db.refresh(d)
    logger.info("delivery %s created: trip %s / package %s", d.id, trip_id, package_id)
    return d


def update_delivery_status(db: Session, delivery_id: int, new_status: str, actor_id: int) -> Delivery:
    d = get_delivery(db, delivery_id)
    if not is_party(d, actor_id):
        raise Forbidden("Not authorized to update this delivery")

    target = _parse(DeliveryStatus, new_status, "delivery status")
    current = DeliveryStatus(d.status)
    if not can_transition(STATUS_TRANSITIONS, current, target):
        raise InvalidArgument(f"Cannot move delivery from {current.value} to {target.value}")

    d.status = target.value
    if target is DeliveryStatus.DELIVERED:
        pkg = db.get(Package, d.package_id)
        if pkg is not None:
            pkg.status = PackageStatus.DELIVERED.value
    commit_or_rollback(db)
    db.refresh(d)
    logger.info("delivery %s status %s -> %s by user %s", d.id, current.value, target.value, actor_id)
    return d


def update_payment_status(db: Session, delivery_id: int, new_payment_status: str, actor_id: int) -> Delivery:
    d = get_delivery(db, delivery_id)
    if d.sender_id != actor_id:
        raise Forbidden("Not authorized to update payment status")

    target = _parse(PaymentStatus, new_payment_status, "payment status")
    current = PaymentStatus(d.payment_status)
    if not can_transition(PAYMENT_TRANSITIONS, current, target):
        raise InvalidArgument(f"Cannot move payment from {current.value} to {target.value}")

    d.payment_status = target.value
    commit_or_rollback(db)
    db.refresh(d)
    logger.info("delivery %s payment %s -> %s", d.id, current.value, target.value)
    return d


def get_delivery_detail(db: Session, delivery_id: int, viewer_id: Optional[int] = None) -> Dict[str, Any]:
    d = get_delivery(db, delivery_id)
    if viewer_id is not None and not is_party(d, viewer_id):
        raise Forbidden("Not authorized to view this delivery")
    return _enrich(db, d)


def list_deliveries_for_user(db: Session, user_id: int) -> List[Dict[str, Any]]:
    """Deliveries where the user is traveler or sender, newest first."""
    rows = (
        db.query(Delivery)
        .filter(or_(Delivery.traveler_id == user_id, Delivery.sender_id == user_id))
        .order_by(Delivery.created_at.desc(), Delivery.id.desc())
        .all()
    )
    return [_enrich(db, d) for d in rows]


def _enrich(db: Session, d: Delivery) -> Dict[str, Any]:
    out = delivery_to_dict(d)
    out["trip"] = trip_to_dict(d.trip) if d.trip is not None else None
    out["package"] = package_to_dict(d.package) if d.package is not None else None
    sender = get_user(db, d.sender_id)
    traveler = get_user(db, d.traveler_id)
    out["sender"] = trust_profile(sender) if sender else None
    out["traveler"] = trust_profile(traveler) if traveler else None
    return out
