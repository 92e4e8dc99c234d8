"""Tests for trip and package listings."""

from datetime import timedelta, timezone

import pytest

import listings
from airports import is_airport, to_code
from errors import Forbidden, InvalidArgument, NotFound
from models import Package, Trip, utcnow


def _trip_fields(**overrides):
    departs = utcnow() + timedelta(days=3)
    fields = dict(
        departure_airport="Addis Ababa Bole International Airport",
        destination_city="Toronto",
        departure_date=departs,
        arrival_date=departs + timedelta(hours=13),
        available_weight=15.0,
        price_per_kg=10.0,
    )
    fields.update(overrides)
    return fields


def test_airport_aliases():
    assert to_code("JFK") == "JFK"
    assert to_code("John F. Kennedy International Airport") == "JFK"
    assert to_code("addis ababa") == "ADD"
    assert to_code("Atlantis") == ""
    assert is_airport("LHR")
    assert is_airport("Bole International Airport")
    assert not is_airport("my backyard")


def test_create_trip_derives_code(db, traveler):
    t = listings.create_trip(db, traveler.id, **_trip_fields())
    assert t.departure_code == "ADD"
    assert t.is_active is True


@pytest.mark.parametrize("overrides", [
    {"departure_date": utcnow() - timedelta(days=1)},
    {"arrival_date": utcnow() - timedelta(hours=1)},
    {"available_weight": 0},
    {"departure_airport": "somewhere nice"},
])
def test_create_trip_rejects(db, traveler, overrides):
    with pytest.raises(InvalidArgument):
        listings.create_trip(db, traveler.id, **_trip_fields(**overrides))


def test_arrival_before_departure(db, traveler):
    departs = utcnow() + timedelta(days=3)
    with pytest.raises(InvalidArgument):
        listings.create_trip(
            db, traveler.id, **_trip_fields(departure_date=departs, arrival_date=departs - timedelta(hours=2))
        )


def test_search_trips(db, traveler, sender, make_trip):
    make_trip(traveler)
    make_trip(sender, departure_airport="LHR", departure_code="LHR", destination_city="Lagos", available_weight=5)
    make_trip(traveler, is_active=False)

    found = listings.search_trips(db, departure="New York")
    assert found["count"] == 1
    assert found["results"][0]["departure_code"] == "JFK"
    assert found["results"][0]["user"]["first_name"] == "Abebe"

    assert listings.search_trips(db, destination="lagos")["count"] == 1
    assert listings.search_trips(db, min_weight=10)["count"] == 1
    assert listings.search_trips(db)["count"] == 2


def test_update_trip_owner_only(db, traveler, sender, make_trip):
    t = make_trip(traveler)
    with pytest.raises(Forbidden):
        listings.update_trip(db, t.id, sender.id, {"is_active": False})

    t = listings.update_trip(db, t.id, traveler.id, {"is_active": False, "notes": "Only documents"})
    assert t.is_active is False
    assert t.notes == "Only documents"


def test_package_status_not_owner_writable(db, sender, make_package):
    p = make_package(sender)
    p = listings.update_package(db, p.id, sender.id, {"status": "delivered", "weight": 2.0})
    assert p.status == "pending"
    assert p.weight == 2.0


def test_package_create_and_search(db, sender, outsider):
    listings.create_package(
        db, sender.id,
        sender_city="Boston", receiver_city="Accra", package_type="electronics",
        weight=3.0, offered_payment=60.0, dimensions={"length": 30, "width": 20, "height": 10},
    )
    with pytest.raises(InvalidArgument):
        listings.create_package(
            db, outsider.id,
            sender_city="Boston", receiver_city="Accra", package_type="clothing",
            weight=-1, offered_payment=10.0,
        )

    found = listings.search_packages(db, receiver_city="accra")
    assert found["count"] == 1
    assert found["results"][0]["status"] == "pending"
    assert listings.search_packages(db, max_weight=1)["count"] == 0


def test_missing_listing(db):
    with pytest.raises(NotFound):
        listings.get_trip(db, 1)
    with pytest.raises(NotFound):
        listings.get_package(db, 1)


def test_offset_datetimes_stored_as_utc(db, traveler, sender):
    plus5 = timezone(timedelta(hours=5))
    departs = (utcnow() + timedelta(hours=1)).astimezone(plus5)
    t = listings.create_trip(
        db, traveler.id, **_trip_fields(departure_date=departs, arrival_date=departs + timedelta(hours=8))
    )
    db.expire_all()
    stored = db.get(Trip, t.id).departure_date
    assert stored == departs
    assert stored.utcoffset() == timedelta(0)
    assert stored > utcnow()

    later = departs + timedelta(days=1)
    listings.update_trip(db, t.id, traveler.id, {"departure_date": later, "arrival_date": later + timedelta(hours=8)})
    db.expire_all()
    assert db.get(Trip, t.id).departure_date == later

    deadline = (utcnow() + timedelta(days=10)).astimezone(timezone(timedelta(hours=-4)))
    p = listings.create_package(
        db, sender.id,
        sender_city="Boston", receiver_city="Accra", package_type="documents",
        weight=1.0, offered_payment=20.0, delivery_deadline=deadline,
    )
    db.expire_all()
    assert db.get(Package, p.id).delivery_deadline == deadline
