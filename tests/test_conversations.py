"""Tests for inbox aggregation, threads and sending."""

from datetime import timedelta

import pytest

import conversations
from errors import InvalidArgument, NotFound
from models import Message, utcnow
from notifier import Notifier


@pytest.fixture
def post(db):
    base = utcnow() - timedelta(hours=1)

    def _post(sender, receiver, content, minutes, is_read=False):
        sender_id = getattr(sender, "id", sender)
        receiver_id = getattr(receiver, "id", receiver)
        m = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            is_read=is_read,
            created_at=base + timedelta(minutes=minutes),
        )
        db.add(m)
        db.commit()
        return m
    return _post


def test_two_counterparts_two_conversations(db, traveler, sender, outsider, post):
    post(sender, traveler, "Can you take 2kg of coffee?", 1)
    post(traveler, sender, "Yes, drop it at JFK", 2)
    post(sender, traveler, "Great, thanks", 3)
    post(outsider, traveler, "Any space left?", 4)
    post(outsider, traveler, "Hello?", 5, is_read=True)

    convos = conversations.list_conversations(db, traveler.id)

    assert len(convos) == 2
    by_user = {c["user"]["id"]: c for c in convos}
    assert by_user[sender.id]["unread_count"] == 2
    assert by_user[sender.id]["last_message"]["content"] == "Great, thanks"
    assert by_user[outsider.id]["unread_count"] == 1
    assert by_user[outsider.id]["last_message"]["content"] == "Hello?"
    assert set(by_user[sender.id]["user"]) == {"id", "first_name", "last_name", "profile_image"}


def test_conversations_latest_first(db, traveler, sender, outsider, post):
    post(outsider, traveler, "older thread", 1)
    post(sender, traveler, "newer thread", 10)

    convos = conversations.list_conversations(db, traveler.id)
    assert [c["user"]["id"] for c in convos] == [sender.id, outsider.id]


def test_sent_messages_are_never_unread_for_sender(db, traveler, sender, post):
    post(traveler, sender, "one", 1)
    post(traveler, sender, "two", 2)

    (convo,) = conversations.list_conversations(db, traveler.id)
    assert convo["unread_count"] == 0
    (other_side,) = conversations.list_conversations(db, sender.id)
    assert other_side["unread_count"] == 2


def test_equal_timestamps_resolve_to_later_message(db, traveler, sender, post):
    post(sender, traveler, "first", 5)
    post(sender, traveler, "second", 5)

    (convo,) = conversations.list_conversations(db, traveler.id)
    assert convo["last_message"]["content"] == "second"


def test_missing_counterpart_is_dropped(db, traveler, sender, post):
    post(sender, traveler, "hi", 1)
    post(traveler, 9999, "to nobody", 2)

    convos = conversations.list_conversations(db, traveler.id)
    assert [c["user"]["id"] for c in convos] == [sender.id]


def test_no_messages(db, traveler):
    assert conversations.list_conversations(db, traveler.id) == []


def test_thread_is_ordered_and_marks_read(db, traveler, sender, outsider, post):
    post(sender, traveler, "b", 20)
    post(traveler, sender, "a", 10)
    post(sender, traveler, "c", 30)
    post(outsider, traveler, "unrelated", 15)

    thread = conversations.get_thread(db, traveler.id, sender.id)

    msgs = thread["messages"]
    assert [m["content"] for m in msgs] == ["a", "b", "c"]
    stamps = [m["created_at"] for m in msgs]
    assert stamps == sorted(stamps)
    assert thread["user"]["id"] == sender.id

    db.expire_all()
    to_me = db.query(Message).filter_by(receiver_id=traveler.id, sender_id=sender.id).all()
    assert to_me and all(m.is_read for m in to_me)
    # the traveler's own message is still unread for the sender
    from_me = db.query(Message).filter_by(sender_id=traveler.id).one()
    assert from_me.is_read is False
    # other conversations are untouched
    assert db.query(Message).filter_by(sender_id=outsider.id).one().is_read is False


def test_thread_with_unknown_user(db, traveler):
    with pytest.raises(NotFound):
        conversations.get_thread(db, traveler.id, 9999)


def test_send_message_notifies_both_parties_only(db, traveler, sender, outsider):
    hub = Notifier()
    to_receiver = hub.subscribe(sender.id)
    to_sender = hub.subscribe(traveler.id)
    to_outsider = hub.subscribe(outsider.id)

    m = conversations.send_message(db, traveler.id, sender.id, "Landing at 9pm", notifier=hub)

    assert m.id is not None
    assert m.is_read is False
    event = to_receiver.get_nowait()
    assert event["type"] == "new_message"
    assert event["sender_id"] == traveler.id
    assert event["receiver_id"] == sender.id
    assert event["message"]["content"] == "Landing at 9pm"
    assert to_sender.get_nowait()["message"]["id"] == m.id
    assert to_outsider.empty()


def test_send_message_validation(db, traveler):
    with pytest.raises(NotFound):
        conversations.send_message(db, traveler.id, 9999, "hello")
    with pytest.raises(InvalidArgument):
        conversations.send_message(db, traveler.id, traveler.id, "   ")
    assert db.query(Message).count() == 0
