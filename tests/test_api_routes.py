"""
Router functions called directly with fixture users, plus error rendering.
"""

import asyncio
import json
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from conftest import default_terms
from swaphub.api import meeting as meeting_api
from swaphub.api import notification as notification_api
from swaphub.api import review as review_api
from swaphub.api import session as session_api
from swaphub.exceptions import (
    AuthorizationError,
    CancellationWindowError,
    DuplicateReviewError,
    MeetingLimitError,
    NotFoundError,
    database_exception_handler,
    generic_exception_handler,
    swaphub_exception_handler,
)
from swaphub.schemas.common import ResolvedRef, UnresolvedRef, to_ref
from swaphub.schemas.meeting import MeetingCancel, MeetingCreate, MeetingRespond
from swaphub.schemas.review import ReviewCreate
from swaphub.schemas.session import (
    CompletionResponseRequest,
    CounterOfferCreate,
    CounterOfferResolve,
    SessionCreate,
)
from swaphub.services import meeting_service
from swaphub.services.cache_service import meeting_rows_key
from swaphub.utils.security import create_access_token, get_current_user
from swaphub.utils.timeutil import utcnow


def _render(handler, exc):
    request = SimpleNamespace(method="POST", url=SimpleNamespace(path="/sessions/1/accept"))
    response = asyncio.run(handler(request, exc))
    return response.status_code, json.loads(response.body)


# ======================
# SESSIONS
# ======================

def test_session_flow_through_routers(db_session, parties, cache):
    alice, bob = parties["alice"], parties["bob"]

    created = session_api.create_session(
        payload=SessionCreate(counterpart_id=bob.id, **default_terms()),
        current_user=alice,
        db=db_session,
        cache=cache,
    )
    assert created.status == "pending"
    assert created.user1 == ResolvedRef(id=alice.id, display="Alice")
    assert created.skill2 == ResolvedRef(id=parties["spanish"].id, display="Spanish")

    listed = session_api.get_sessions(status_filter=None, current_user=bob, db=db_session, cache=cache)
    assert [s.id for s in listed] == [created.id]

    accepted = session_api.accept_session(created.id, current_user=bob, db=db_session, cache=cache)
    assert accepted.status == "active"

    # The accept invalidated Bob's cached list
    listed = session_api.get_sessions(status_filter="active", current_user=bob, db=db_session, cache=cache)
    assert [s.status for s in listed] == ["active"]

    requested = session_api.request_completion(created.id, current_user=alice, db=db_session, cache=cache)
    assert requested.completion_requested_by == alice.id

    completed = session_api.respond_to_completion(
        created.id,
        CompletionResponseRequest(action="approve"),
        current_user=bob,
        db=db_session,
        cache=cache,
    )
    assert completed.status == "completed"


def test_counter_offer_routes(db_session, pending_session, parties, cache):
    alice, bob = parties["alice"], parties["bob"]
    later = default_terms()["expected_end_date"] + timedelta(days=14)

    offer = session_api.create_counter_offer(
        pending_session.id,
        CounterOfferCreate(message="Two more weeks?", **default_terms(expected_end_date=later)),
        current_user=bob,
        db=db_session,
        cache=cache,
    )
    assert offer.status == "pending"
    assert offer.offered_by.display == "Bob"

    listing = session_api.list_counter_offers(pending_session.id, current_user=alice, db=db_session)
    assert [o.id for o in listing.counter_offers] == [offer.id]

    resolved = session_api.resolve_counter_offer(
        offer.id, CounterOfferResolve(action="accept"), current_user=alice, db=db_session, cache=cache
    )
    assert resolved.status == "accepted"
    assert session_api.get_session(pending_session.id, current_user=alice, db=db_session).expected_end_date == later


def test_session_routes_raise_taxonomy_errors(db_session, pending_session, parties, cache):
    with pytest.raises(AuthorizationError):
        session_api.get_session(pending_session.id, current_user=parties["carol"], db=db_session)
    with pytest.raises(NotFoundError):
        session_api.cancel_session(404, current_user=parties["alice"], db=db_session, cache=cache)


# ======================
# REVIEWS
# ======================

def test_review_routes(db_session, active_session, parties, cache):
    alice, bob = parties["alice"], parties["bob"]
    session_api.request_completion(active_session.id, current_user=bob, db=db_session, cache=cache)
    session_api.respond_to_completion(
        active_session.id, CompletionResponseRequest(action="approve"), current_user=alice, db=db_session, cache=cache
    )

    body = ReviewCreate(
        session_id=active_session.id,
        reviewee_id=bob.id,
        skill_id=parties["spanish"].id,
        rating=5,
        comment="Patient and clear",
        review_type="skill_learning",
    )
    review = review_api.submit_review(body, current_user=alice, db=db_session, cache=cache)
    assert review.reviewee == ResolvedRef(id=bob.id, display="Bob")

    with pytest.raises(DuplicateReviewError):
        review_api.submit_review(body, current_user=alice, db=db_session, cache=cache)

    rating = review_api.get_rating(
        user_id=bob.id, skill_id=None, session_id=None, current_user=alice, db=db_session, cache=cache
    )
    assert rating.average_rating == 5.0
    assert rating.total_reviews == 1
    assert [r.id for r in rating.reviews] == [review.id]

    eligibility = review_api.check_eligibility(active_session.id, current_user=bob, db=db_session)
    assert eligibility.can_review is True

    assert [r.id for r in review_api.get_session_reviews(active_session.id, current_user=bob, db=db_session)] == [
        review.id
    ]


# ======================
# MEETINGS
# ======================

def test_meeting_routes(db_session, parties, cache):
    alice, bob = parties["alice"], parties["bob"]
    when = utcnow() + timedelta(days=2)

    created = meeting_api.create_meeting(
        MeetingCreate(receiver_id=bob.id, description="Intro call", meeting_time=when),
        current_user=alice,
        db=db_session,
        cache=cache,
    )
    assert created.phase == "pending"

    mine = meeting_api.get_my_meetings(with_user=None, current_user=alice, db=db_session, cache=cache)
    assert [m.id for m in mine.pending] == [created.id]

    accepted = meeting_api.respond_to_meeting(
        created.id, MeetingRespond(action="accept"), current_user=bob, db=db_session, cache=cache
    )
    assert accepted.state == "accepted"
    assert accepted.phase == "upcoming"

    mine = meeting_api.get_my_meetings(with_user=None, current_user=alice, db=db_session, cache=cache)
    assert [m.id for m in mine.upcoming] == [created.id]

    result = meeting_api.cancel_meeting(
        created.id, MeetingCancel(reason="Travel"), current_user=alice, db=db_session, cache=cache
    )
    assert result.meeting.state == "cancelled"
    assert result.cancellation.cancelled_by == ResolvedRef(id=alice.id, display="Alice")

    unseen = meeting_api.get_unacknowledged_cancellations(current_user=bob, db=db_session)
    assert [c.id for c in unseen] == [result.cancellation.id]

    ack = meeting_api.acknowledge_cancellation(result.cancellation.id, current_user=bob, db=db_session)
    assert ack.acknowledged is True


def test_cached_meeting_listing_reclassifies_on_every_read(db_session, parties, cache, monkeypatch):
    alice, bob = parties["alice"], parties["bob"]
    start = datetime(2025, 1, 15, 10, 0, 0)
    booked = datetime(2025, 1, 14, 12, 0, 0)
    meeting = meeting_service.create_meeting(
        db_session,
        sender_id=alice.id,
        receiver_id=bob.id,
        description="Chord review",
        meeting_time=start,
        now=booked,
        cache=cache,
    )
    meeting_service.respond_to_meeting(
        db_session, meeting_id=meeting.id, by=bob.id, action="accept", now=booked, cache=cache
    )

    clock = {"now": start - timedelta(minutes=11)}
    monkeypatch.setattr(meeting_api, "utcnow", lambda: clock["now"])

    first = meeting_api.get_my_meetings(with_user=None, current_user=alice, db=db_session, cache=cache)
    assert [m.id for m in first.upcoming] == [meeting.id]
    assert first.upcoming[0].phase == "upcoming"

    clock["now"] = start - timedelta(minutes=5)
    with pytest.raises(CancellationWindowError):
        meeting_service.cancel_meeting(
            db_session, meeting_id=meeting.id, by=alice.id, reason="Clash", now=clock["now"]
        )

    second = meeting_api.get_my_meetings(with_user=None, current_user=alice, db=db_session, cache=cache)
    assert second.upcoming == []
    assert [m.id for m in second.happening] == [meeting.id]
    assert second.happening[0].phase == "happening"

    # Rows still come from the cache and carry no phase of their own
    cached = cache.get(meeting_rows_key(alice.id))
    assert [row.id for row in cached] == [meeting.id]
    assert cached[0].phase is None


def test_maintenance_sweep_requires_admin(db_session, parties, cache):
    with pytest.raises(AuthorizationError):
        meeting_api.complete_elapsed_meetings(current_user=parties["alice"], db=db_session, cache=cache)
    assert meeting_api.complete_elapsed_meetings(
        current_user=parties["admin"], db=db_session, cache=cache
    ).completed == 0


# ======================
# NOTIFICATIONS
# ======================

def test_notification_routes(db_session, pending_session, parties):
    bob = parties["bob"]
    assert notification_api.get_unread_count(current_user=bob, db=db_session).unread == 1

    inbox = notification_api.get_my_notifications(unread_only=True, limit=50, current_user=bob, db=db_session)
    marked = notification_api.mark_notification_read(inbox[0].id, current_user=bob, db=db_session)
    assert marked.is_read is True

    with pytest.raises(NotFoundError):
        notification_api.mark_notification_read(inbox[0].id, current_user=parties["alice"], db=db_session)

    assert notification_api.mark_all_notifications_read(current_user=bob, db=db_session).updated == 0


# ======================
# REFERENCES, AUTH & ERROR RENDERING
# ======================

def test_to_ref_variants(parties):
    assert to_ref(None) is None
    assert to_ref(7) == UnresolvedRef(id=7)
    assert to_ref(parties["alice"]) == ResolvedRef(id=1, display="Alice")
    assert to_ref(parties["guitar"]).display == "Guitar"
    assert to_ref(SimpleNamespace(id=9, name="")) == UnresolvedRef(id=9)


def test_bearer_token_resolves_current_user(db_session, parties):
    token = create_access_token({"sub": "bob@test.edu"})
    assert get_current_user(token=token, db=db_session).id == parties["bob"].id

    with pytest.raises(HTTPException) as excinfo:
        get_current_user(token="not-a-jwt", db=db_session)
    assert excinfo.value.status_code == 401

    unknown = create_access_token({"sub": "ghost@test.edu"})
    with pytest.raises(HTTPException):
        get_current_user(token=unknown, db=db_session)


def test_business_errors_render_kind_and_detail():
    status_code, body = _render(
        swaphub_exception_handler,
        CancellationWindowError("Meeting starts in 8 minutes.", minutes_until_start=8),
    )
    assert status_code == 409
    assert body == {
        "error": "cancellation_window",
        "message": "Meeting starts in 8 minutes.",
        "minutes_until_start": 8,
        "minutes_since_start": None,
    }

    status_code, body = _render(swaphub_exception_handler, MeetingLimitError("Too many", limit=2))
    assert (status_code, body["error"], body["limit"]) == (409, "meeting_limit", 2)

    assert _render(swaphub_exception_handler, AuthorizationError("nope"))[0] == 403
    assert _render(swaphub_exception_handler, NotFoundError("gone"))[0] == 404
    assert _render(swaphub_exception_handler, DuplicateReviewError("again"))[1]["error"] == "duplicate_review"


def test_infrastructure_errors_are_generic():
    status_code, body = _render(
        database_exception_handler, OperationalError("SELECT 1", {}, Exception("db down"))
    )
    assert status_code == 503
    assert body["error"] == "infrastructure_error"

    status_code, body = _render(generic_exception_handler, RuntimeError("boom"))
    assert status_code == 500
    assert "boom" not in body["message"]
