# reviews.py: append-only reviews and the reviewee's rating aggregate

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from db import commit_or_rollback
from errors import Forbidden, InvalidArgument, NotFound
from models import Delivery, Review, User
from users import public_profile, require_user

logger = logging.getLogger(__name__)

MIN_RATING, MAX_RATING = 1, 5


def review_to_dict(r: Review) -> Dict[str, Any]:
    return {
        "id": r.id,
        "reviewer_id": r.reviewer_id,
        "reviewee_id": r.reviewee_id,
        "delivery_id": r.delivery_id,
        "rating": r.rating,
        "comment": r.comment,
        "created_at": r.created_at,
    }


def create_review(
    db: Session,
    reviewer_id: int,
    reviewee_id: int,
    rating: int,
    comment: Optional[str] = None,
    delivery_id: Optional[int] = None,
) -> Review:
    if reviewer_id == reviewee_id:
        raise InvalidArgument("You cannot review yourself")
    if not isinstance(rating, int) or isinstance(rating, bool) or not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidArgument(f"rating must be an integer from {MIN_RATING} to {MAX_RATING}")

    if delivery_id is not None:
        d = db.get(Delivery, delivery_id)
        if d is None:
            raise NotFound("Delivery not found")
        parties = (d.sender_id, d.traveler_id)
        if reviewer_id not in parties:
            raise Forbidden("Not authorized to review this delivery")
        if reviewee_id not in parties:
            raise InvalidArgument("Reviewee must be part of the delivery")

    require_user(db, reviewee_id, "User to review not found")

    r = Review(
        reviewer_id=reviewer_id,
        reviewee_id=reviewee_id,
        delivery_id=delivery_id,
        rating=rating,
        comment=comment,
    )
    db.add(r)
    db.flush()
    # one statement over every review of the reviewee, committed with the insert
    db.execute(
        update(User)
        .where(User.id == reviewee_id)
        .values(
            rating=select(func.coalesce(func.avg(Review.rating), 0))
            .where(Review.reviewee_id == reviewee_id)
            .scalar_subquery(),
            review_count=select(func.count(Review.id))
            .where(Review.reviewee_id == reviewee_id)
            .scalar_subquery(),
        )
        .execution_options(synchronize_session=False)
    )
    commit_or_rollback(db)
    db.refresh(r)
    logger.info("review %s: user %s rated %s by %s", r.id, reviewee_id, rating, reviewer_id)
    return r


def list_reviews_for_user(db: Session, user_id: int) -> List[Dict[str, Any]]:
    """Reviews received by `user_id`, newest first, with the reviewer's public profile."""
    rows = (
        db.query(Review, User)
        .outerjoin(User, User.id == Review.reviewer_id)
        .filter(Review.reviewee_id == user_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    results = []
    for r, reviewer in rows:
        row = review_to_dict(r)
        row["reviewer"] = public_profile(reviewer) if reviewer is not None else None
        results.append(row)
    return results
