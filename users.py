# users.py: user records, public profiles and verification flags

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from db import commit_or_rollback
from errors import Conflict, InvalidArgument, NotFound
from models import User, VERIFICATION_KINDS, empty_verification

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)


def require_user(db: Session, user_id: int, message: str = "User not found") -> User:
    u = db.get(User, user_id)
    if u is None:
        raise NotFound(message)
    return u


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter_by(email=(email or "").strip().lower()).one_or_none()


def get_user_by_external_uid(db: Session, external_uid: str) -> Optional[User]:
    return db.query(User).filter_by(external_uid=external_uid).one_or_none()


def register_user(
    db: Session,
    external_uid: str,
    email: str,
    first_name: str,
    last_name: str = "",
    profile_image: Optional[str] = None,
) -> User:
    email = (email or "").strip().lower()
    if not external_uid or not email:
        raise InvalidArgument("external_uid and email are required")
    if get_user_by_external_uid(db, external_uid):
        raise Conflict("User already registered")
    if get_user_by_email(db, email):
        raise Conflict("Email already in use")

    u = User(
        external_uid=external_uid,
        email=email,
        first_name=first_name,
        last_name=last_name or "",
        profile_image=profile_image,
        is_verified=False,
        verification_status=empty_verification(),
        rating=0,
        review_count=0,
    )
    db.add(u)
    commit_or_rollback(db)
    db.refresh(u)
    logger.info("registered user id=%s", u.id)
    return u


def get_or_create_user(db: Session, external_uid: str, email: str, display_name: str = "") -> User:
    """Resolve the user behind an authenticated identity, creating the record on first sight."""
    u = get_user_by_external_uid(db, external_uid)
    if u:
        return u
    first, _, last = (display_name or "").strip().partition(" ")
    return register_user(db, external_uid, email, first or "Unknown", last.strip())


def update_verification(db: Session, user_id: int, kind: str) -> User:
    if kind not in VERIFICATION_KINDS:
        raise InvalidArgument("Invalid verification type")
    u = require_user(db, user_id)

    status = dict(empty_verification())
    status.update(u.verification_status or {})
    status[kind] = True
    # reassign so the JSON column is flagged dirty
    u.verification_status = status
    u.is_verified = all(status[k] for k in VERIFICATION_KINDS)
    commit_or_rollback(db)
    db.refresh(u)
    return u


def public_profile(u: User) -> Dict[str, Any]:
    return {
        "id": u.id,
        "first_name": u.first_name,
        "last_name": u.last_name,
        "profile_image": u.profile_image,
    }


def trust_profile(u: User) -> Dict[str, Any]:
    """Public profile plus the trust signals shown next to listings."""
    out = public_profile(u)
    out.update({
        "verification_status": u.verification_status,
        "is_verified": u.is_verified,
        "rating": u.rating,
        "review_count": u.review_count,
        "created_at": u.created_at,
    })
    return out
