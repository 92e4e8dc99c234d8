# conversations.py: direct messages (inbox summaries, threads, sending)

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from db import commit_or_rollback
from errors import InvalidArgument
from models import Message, User, as_utc
from notifier import Notifier
from users import public_profile, require_user

logger = logging.getLogger(__name__)


def message_to_dict(m: Message) -> Dict[str, Any]:
    return {
        "id": m.id,
        "sender_id": m.sender_id,
        "receiver_id": m.receiver_id,
        "content": m.content,
        "is_read": m.is_read,
        "created_at": m.created_at,
    }


def _recency(m: Message):
    return (as_utc(m.created_at), m.id)


def list_conversations(db: Session, user_id: int) -> List[Dict[str, Any]]:
    """One summary per counterpart: profile, latest message, unread count. Latest first."""
    rows = (
        db.query(Message)
        .filter(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
        .all()
    )

    groups: Dict[int, Dict[str, Any]] = {}
    for m in rows:
        other_id = m.receiver_id if m.sender_id == user_id else m.sender_id
        g = groups.get(other_id)
        if g is None:
            g = groups[other_id] = {"last": m, "unread": 0}
        elif _recency(m) > _recency(g["last"]):
            g["last"] = m
        if m.receiver_id == user_id and not m.is_read:
            g["unread"] += 1

    if not groups:
        return []

    # counterparts that no longer resolve are left out
    people = {u.id: u for u in db.query(User).filter(User.id.in_(list(groups))).all()}
    ordered = sorted(groups.items(), key=lambda item: _recency(item[1]["last"]), reverse=True)
    out = []
    for other_id, g in ordered:
        u = people.get(other_id)
        if u is None:
            continue
        out.append({
            "user": public_profile(u),
            "last_message": message_to_dict(g["last"]),
            "unread_count": g["unread"],
        })
    return out


def get_thread(db: Session, user_id: int, other_user_id: int) -> Dict[str, Any]:
    """Messages between the two users, oldest first; marks the caller's unread ones read."""
    other = require_user(db, other_user_id)

    messages = (
        db.query(Message)
        .filter(or_(
            and_(Message.sender_id == user_id, Message.receiver_id == other_user_id),
            and_(Message.sender_id == other_user_id, Message.receiver_id == user_id),
        ))
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )

    unread_ids = [m.id for m in messages if m.receiver_id == user_id and not m.is_read]
    if unread_ids:
        db.execute(
            update(Message)
            .where(Message.id.in_(unread_ids))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        # commit expires the loaded rows, so they reload with is_read set
        commit_or_rollback(db)

    profile = public_profile(other)
    profile["email"] = other.email
    return {
        "messages": [message_to_dict(m) for m in messages],
        "user": profile,
    }


def send_message(
    db: Session,
    sender_id: int,
    receiver_id: int,
    content: str,
    notifier: Optional[Notifier] = None,
) -> Message:
    if not (content or "").strip():
        raise InvalidArgument("Message content is required")
    require_user(db, receiver_id, "Receiver not found")

    m = Message(sender_id=sender_id, receiver_id=receiver_id, content=content, is_read=False)
    db.add(m)
    commit_or_rollback(db)
    db.refresh(m)

    if notifier is not None:
        event = {
            "type": "new_message",
            "message": message_to_dict(m),
            "sender_id": m.sender_id,
            "receiver_id": m.receiver_id,
        }
        sent = notifier.publish_from_thread((m.sender_id, m.receiver_id), event)
        logger.debug("message %s pushed to %d listener(s)", m.id, sent)
    return m
