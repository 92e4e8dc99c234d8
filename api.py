# api.py: FastAPI surface of the luggage-space marketplace

import asyncio
import logging
import os
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

# Load DB session + models
from db import get_db
from models import User

import conversations
import deliveries
import listings
import reviews
import users
from errors import DomainError
from notifier import notifier
from schemas import (
    DeliveryIn, DeliveryStatusIn, MessageIn, PackageIn, PackageUpdate,
    PaymentStatusIn, ReviewIn, TripIn, TripUpdate, UserRegister, VerificationIn,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Luggage Link API", version=os.getenv("APP_VERSION", "dev"))

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request, exc: DomainError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ------------------- auth -------------------
# The identity provider sits in front of the API and forwards its verified uid.

def current_user(
    db: Session = Depends(get_db),
    x_auth_uid: Optional[str] = Header(None),
    x_auth_email: Optional[str] = Header(None),
    x_auth_name: Optional[str] = Header(None),
) -> User:
    if not x_auth_uid:
        raise HTTPException(status_code=401, detail="Not authenticated")
    u = users.get_user_by_external_uid(db, x_auth_uid)
    if u is None and x_auth_email:
        # first successful sign-in
        u = users.get_or_create_user(db, x_auth_uid, x_auth_email, x_auth_name or "")
    if u is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return u


# ------------------- service -------------------

@app.get("/health")
def health() -> Dict[str, bool]:
    return {"ok": True}


@app.get("/version")
def version() -> Dict[str, str]:
    return {"version": os.getenv("APP_VERSION", "dev")}


# ------------------- users -------------------

@app.post("/api/users", status_code=201)
def register(body: UserRegister, x_auth_uid: Optional[str] = Header(None), db: Session = Depends(get_db)):
    if not x_auth_uid:
        raise HTTPException(status_code=401, detail="Not authenticated")
    u = users.register_user(db, x_auth_uid, body.email, body.first_name, body.last_name, body.profile_image)
    return users.trust_profile(u)


@app.get("/api/user")
def whoami(me: User = Depends(current_user)):
    out = users.trust_profile(me)
    out["email"] = me.email
    return out


@app.get("/api/users/{user_id}")
def user_profile(user_id: int, db: Session = Depends(get_db)):
    return users.trust_profile(users.require_user(db, user_id))


@app.post("/api/verification")
def verify(body: VerificationIn, me: User = Depends(current_user), db: Session = Depends(get_db)):
    u = users.update_verification(db, me.id, body.verification_type)
    return {"verification_status": u.verification_status, "is_verified": u.is_verified}


# ------------------- trips -------------------

@app.get("/api/trips")
def search_trips(
    departure: Optional[str] = Query(None, description="IATA code, city or airport name, e.g. JFK, Addis Ababa"),
    destination: Optional[str] = Query(None, description="Destination city"),
    departure_date: Optional[date] = Query(None, description="YYYY-MM-DD"),
    min_weight: Optional[float] = Query(None, ge=0, description="Minimum spare capacity in kg"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """Search active trips, newest first."""
    return listings.search_trips(db, departure, destination, departure_date, min_weight, limit, offset)


@app.get("/api/trips/user/{user_id}")
def trips_of_user(user_id: int, db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    return [listings.trip_to_dict(t) for t in listings.list_trips_for_user(db, user_id)]


@app.get("/api/trips/{trip_id}")
def get_trip(trip_id: int, db: Session = Depends(get_db)):
    t = listings.get_trip(db, trip_id)
    return listings.with_owner(listings.trip_to_dict(t), t.user)


@app.post("/api/trips", status_code=201)
def create_trip(body: TripIn, me: User = Depends(current_user), db: Session = Depends(get_db)):
    t = listings.create_trip(db, me.id, **body.model_dump())
    return listings.trip_to_dict(t)


@app.put("/api/trips/{trip_id}")
def update_trip(trip_id: int, body: TripUpdate, me: User = Depends(current_user), db: Session = Depends(get_db)):
    t = listings.update_trip(db, trip_id, me.id, body.model_dump(exclude_unset=True))
    return listings.trip_to_dict(t)


# ------------------- packages -------------------

@app.get("/api/packages")
def search_packages(
    sender_city: Optional[str] = Query(None),
    receiver_city: Optional[str] = Query(None),
    package_type: Optional[str] = Query(None),
    max_weight: Optional[float] = Query(None, ge=0, description="kg"),
    deadline_before: Optional[datetime] = Query(None, description="Deadline on or before (ISO datetime)"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return listings.search_packages(
        db, sender_city, receiver_city, package_type, max_weight, deadline_before, limit, offset
    )


@app.get("/api/packages/user/{user_id}")
def packages_of_user(user_id: int, me: User = Depends(current_user), db: Session = Depends(get_db)):
    users.require_user(db, user_id)
    return [listings.package_to_dict(p) for p in listings.list_packages_for_user(db, user_id)]


@app.get("/api/packages/{package_id}")
def get_package(package_id: int, db: Session = Depends(get_db)):
    p = listings.get_package(db, package_id)
    return listings.with_owner(listings.package_to_dict(p), p.user)


@app.post("/api/packages", status_code=201)
def create_package(body: PackageIn, me: User = Depends(current_user), db: Session = Depends(get_db)):
    p = listings.create_package(db, me.id, **body.model_dump())
    return listings.package_to_dict(p)


@app.put("/api/packages/{package_id}")
def update_package(
    package_id: int, body: PackageUpdate, me: User = Depends(current_user), db: Session = Depends(get_db)
):
    p = listings.update_package(db, package_id, me.id, body.model_dump(exclude_unset=True))
    return listings.package_to_dict(p)


# ------------------- deliveries -------------------

@app.get("/api/deliveries/user")
def my_deliveries(me: User = Depends(current_user), db: Session = Depends(get_db)):
    return deliveries.list_deliveries_for_user(db, me.id)


@app.get("/api/deliveries/{delivery_id}")
def get_delivery(delivery_id: int, me: User = Depends(current_user), db: Session = Depends(get_db)):
    return deliveries.get_delivery_detail(db, delivery_id, viewer_id=me.id)


@app.post("/api/deliveries", status_code=201)
def create_delivery(body: DeliveryIn, me: User = Depends(current_user), db: Session = Depends(get_db)):
    d = deliveries.create_delivery(
        db, body.trip_id, body.package_id, body.traveler_id, body.sender_id, actor_id=me.id
    )
    return deliveries.delivery_to_dict(d)


@app.put("/api/deliveries/{delivery_id}/status")
def update_delivery_status(
    delivery_id: int, body: DeliveryStatusIn, me: User = Depends(current_user), db: Session = Depends(get_db)
):
    d = deliveries.update_delivery_status(db, delivery_id, body.status, actor_id=me.id)
    return deliveries.delivery_to_dict(d)


@app.put("/api/deliveries/{delivery_id}/payment")
def update_payment_status(
    delivery_id: int, body: PaymentStatusIn, me: User = Depends(current_user), db: Session = Depends(get_db)
):
    d = deliveries.update_payment_status(db, delivery_id, body.payment_status, actor_id=me.id)
    return deliveries.delivery_to_dict(d)


# ------------------- messages -------------------

@app.get("/api/messages")
def inbox(me: User = Depends(current_user), db: Session = Depends(get_db)):
    return conversations.list_conversations(db, me.id)


@app.get("/api/messages/{user_id}")
def thread(user_id: int, me: User = Depends(current_user), db: Session = Depends(get_db)):
    return conversations.get_thread(db, me.id, user_id)


@app.post("/api/messages", status_code=201)
def send_message(body: MessageIn, me: User = Depends(current_user), db: Session = Depends(get_db)):
    m = conversations.send_message(db, me.id, body.receiver_id, body.content, notifier=notifier)
    return conversations.message_to_dict(m)


# ------------------- reviews -------------------

@app.get("/api/reviews/user/{user_id}")
def reviews_of_user(user_id: int, db: Session = Depends(get_db)):
    return reviews.list_reviews_for_user(db, user_id)


@app.post("/api/reviews", status_code=201)
def create_review(body: ReviewIn, me: User = Depends(current_user), db: Session = Depends(get_db)):
    r = reviews.create_review(db, me.id, body.reviewee_id, body.rating, body.comment, body.delivery_id)
    return reviews.review_to_dict(r)


# ------------------- real-time -------------------

async def _pump(websocket: WebSocket, q: asyncio.Queue) -> None:
    while True:
        event = await q.get()
        await websocket.send_json(jsonable_encoder(event))


def _stop_pump(pump: asyncio.Task, user_id: int) -> None:
    if pump.done():
        # a failed send ends the pump early
        if not pump.cancelled() and pump.exception() is not None:
            logger.warning("event pump for user %s failed", user_id, exc_info=pump.exception())
        return
    pump.cancel()


@app.websocket("/ws")
async def events(
    websocket: WebSocket,
    uid: Optional[str] = Query(None, description="Identity-provider uid (browsers cannot set headers)"),
    db: Session = Depends(get_db),
):
    """Pushes `new_message` events addressed to, or sent by, the connected user."""
    external_uid = websocket.headers.get("x-auth-uid") or uid
    u = users.get_user_by_external_uid(db, external_uid) if external_uid else None
    if u is None:
        await websocket.close(code=4001, reason="Authentication required")
        return
    user_id = u.id
    db.close()

    await websocket.accept()
    q = notifier.subscribe(user_id)
    pump = asyncio.create_task(_pump(websocket, q))
    try:
        while True:
            # client frames are only keep-alives
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        _stop_pump(pump, user_id)
        notifier.unsubscribe(user_id, q)
        logger.debug("listener for user %s closed", user_id)
