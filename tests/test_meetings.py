"""
Meeting scheduler: capacity, responses, the cancellation guard, phases and
cancellation acknowledgements.
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import minutes
from swaphub.crud import meeting as meeting_crud
from swaphub.exceptions import (
    AuthorizationError,
    CancellationWindowError,
    InvalidStateError,
    MeetingLimitError,
    NotFoundError,
    ValidationError,
)
from swaphub.models.meeting import MeetingCancellation, MeetingPair, MeetingState
from swaphub.services import meeting_service, notification_service
from swaphub.services.cache_service import meeting_rows_key
from swaphub.services.meeting_service import MeetingPhase, MeetingWindow, meeting_phase

T = datetime(2025, 1, 15, 10, 0, 0)
BOOKED_AT = datetime(2025, 1, 14, 12, 0, 0)


def _create(db, sender, receiver, when=T, now=BOOKED_AT, **kwargs):
    return meeting_service.create_meeting(
        db,
        sender_id=sender.id,
        receiver_id=receiver.id,
        description="Walk through chord progressions",
        meeting_time=when,
        now=now,
        **kwargs,
    )


@pytest.fixture
def accepted_meeting(db_session, parties):
    meeting = _create(db_session, parties["alice"], parties["bob"])
    return meeting_service.respond_to_meeting(
        db_session, meeting_id=meeting.id, by=parties["bob"].id, action="accept", now=BOOKED_AT
    )


def _cancel(db, meeting, by, now, reason="Something came up"):
    return meeting_service.cancel_meeting(db, meeting_id=meeting.id, by=by.id, reason=reason, now=now)


# ======================
# CREATE
# ======================

def test_create_meeting_is_pending_and_notifies_receiver(db_session, parties):
    meeting = _create(db_session, parties["alice"], parties["bob"])

    assert meeting.state == MeetingState.PENDING
    assert meeting.version == 1
    events = notification_service.list_user_notifications(db_session, user_id=parties["bob"].id)
    assert [n.event_type for n in events] == ["meeting_requested"]
    assert events[0].meeting_id == meeting.id


def test_create_meeting_validation(db_session, parties):
    alice, bob = parties["alice"], parties["bob"]
    with pytest.raises(ValidationError):
        _create(db_session, alice, alice)
    with pytest.raises(ValidationError):
        _create(db_session, alice, bob, when=BOOKED_AT - minutes(1))
    with pytest.raises(ValidationError):
        meeting_service.create_meeting(
            db_session,
            sender_id=alice.id,
            receiver_id=bob.id,
            description=" ",
            meeting_time=T,
            now=BOOKED_AT,
        )
    with pytest.raises(NotFoundError):
        meeting_service.create_meeting(
            db_session,
            sender_id=alice.id,
            receiver_id=999,
            description="Hello",
            meeting_time=T,
            now=BOOKED_AT,
        )


def test_aware_meeting_time_is_stored_as_utc(db_session, parties):
    aware = datetime(2025, 1, 15, 11, 0, 0, tzinfo=timezone(timedelta(hours=1)))
    meeting = _create(db_session, parties["alice"], parties["bob"], when=aware)
    assert meeting.meeting_time == T


def test_third_active_meeting_with_same_counterpart_is_refused(db_session, parties):
    alice, bob, carol = parties["alice"], parties["bob"], parties["carol"]
    first = _create(db_session, alice, bob, when=T)
    _create(db_session, alice, bob, when=T + timedelta(days=1))

    with pytest.raises(MeetingLimitError) as excinfo:
        _create(db_session, alice, bob, when=T + timedelta(days=2))
    assert excinfo.value.limit == 2

    # The pair limit does not affect other counterparts
    _create(db_session, alice, carol, when=T)

    meeting_service.respond_to_meeting(db_session, meeting_id=first.id, by=bob.id, action="reject", now=BOOKED_AT)
    third = _create(db_session, alice, bob, when=T + timedelta(days=2))
    assert third.state == MeetingState.PENDING


def test_capacity_counts_both_directions(db_session, parties):
    alice, bob = parties["alice"], parties["bob"]
    _create(db_session, alice, bob)
    _create(db_session, bob, alice, when=T + timedelta(hours=2))
    with pytest.raises(MeetingLimitError):
        _create(db_session, alice, bob, when=T + timedelta(days=3))


def test_capacity_frees_up_after_cancellation_and_elapsed_meetings(db_session, parties):
    alice, bob = parties["alice"], parties["bob"]
    first = _create(db_session, alice, bob, when=T)
    second = _create(db_session, alice, bob, when=T + timedelta(days=1))

    _cancel(db_session, first, alice, now=BOOKED_AT)
    third = _create(db_session, alice, bob, when=T + timedelta(days=2))

    for meeting in (second, third):
        meeting_service.respond_to_meeting(
            db_session, meeting_id=meeting.id, by=bob.id, action="accept", now=BOOKED_AT
        )

    # Accepted meetings in the past no longer count
    later = T + timedelta(days=5)
    fourth = _create(db_session, alice, bob, when=later + timedelta(days=1), now=later)
    assert fourth.state == MeetingState.PENDING


def test_custom_limit(db_session, parties):
    _create(db_session, parties["alice"], parties["bob"], max_active=1)
    with pytest.raises(MeetingLimitError):
        _create(db_session, parties["alice"], parties["bob"], when=T + timedelta(days=1), max_active=1)


def test_pair_lock_is_shared_by_both_directions(db_session, parties):
    alice, bob = parties["alice"], parties["bob"]
    _create(db_session, alice, bob)
    _create(db_session, bob, alice, when=T + timedelta(hours=2))

    pairs = db_session.query(MeetingPair).all()
    assert len(pairs) == 1
    assert (pairs[0].user_low_id, pairs[0].user_high_id) == (alice.id, bob.id)
    assert pairs[0].version == 3


def test_interleaved_requests_cannot_both_take_last_slot(db_session, other_db, parties, monkeypatch):
    alice, bob = parties["alice"], parties["bob"]
    _create(db_session, alice, bob)

    real_count = meeting_crud.count_active_meetings_between
    raced, competitor = [], []

    def count_then_let_competitor_in(db, user_a, user_b, now):
        active = real_count(db, user_a, user_b, now)
        if not raced:
            raced.append(True)
            # A second request counts and commits before this one claims the pair
            competitor.append(_create(other_db, bob, alice, when=T + timedelta(hours=2)))
        return active

    monkeypatch.setattr(meeting_crud, "count_active_meetings_between", count_then_let_competitor_in)

    with pytest.raises(MeetingLimitError):
        _create(db_session, alice, bob, when=T + timedelta(days=1))

    assert competitor[0].state == MeetingState.PENDING
    assert real_count(db_session, alice.id, bob.id, BOOKED_AT) == 2


# ======================
# RESPOND
# ======================

def test_only_receiver_responds(db_session, parties):
    meeting = _create(db_session, parties["alice"], parties["bob"])
    with pytest.raises(AuthorizationError):
        meeting_service.respond_to_meeting(
            db_session, meeting_id=meeting.id, by=parties["alice"].id, action="accept", now=BOOKED_AT
        )
    with pytest.raises(AuthorizationError):
        meeting_service.respond_to_meeting(
            db_session, meeting_id=meeting.id, by=parties["carol"].id, action="accept", now=BOOKED_AT
        )


def test_respond_only_while_pending(db_session, accepted_meeting, parties):
    assert accepted_meeting.state == MeetingState.ACCEPTED
    with pytest.raises(InvalidStateError):
        meeting_service.respond_to_meeting(
            db_session, meeting_id=accepted_meeting.id, by=parties["bob"].id, action="reject", now=BOOKED_AT
        )


def test_cannot_accept_meeting_whose_time_has_passed(db_session, parties):
    meeting = _create(db_session, parties["alice"], parties["bob"])
    with pytest.raises(InvalidStateError):
        meeting_service.respond_to_meeting(
            db_session, meeting_id=meeting.id, by=parties["bob"].id, action="accept", now=T + minutes(1)
        )
    rejected = meeting_service.respond_to_meeting(
        db_session, meeting_id=meeting.id, by=parties["bob"].id, action="reject", now=T + minutes(1)
    )
    assert rejected.state == MeetingState.REJECTED


# ======================
# CANCELLATION GUARD
# ======================

@pytest.mark.parametrize(
    "offset",
    [minutes(-10), minutes(-8), timedelta(0), minutes(12), minutes(30)],
    ids=["opens", "eight-before", "start", "during", "closes"],
)
def test_accepted_meeting_cannot_be_cancelled_inside_window(db_session, accepted_meeting, parties, offset):
    with pytest.raises(CancellationWindowError):
        _cancel(db_session, accepted_meeting, parties["alice"], now=T + offset)

    db_session.refresh(accepted_meeting)
    assert accepted_meeting.state == MeetingState.ACCEPTED
    assert db_session.query(MeetingCancellation).count() == 0


@pytest.mark.parametrize(
    "offset",
    [minutes(-10) - timedelta(seconds=1), minutes(30) + timedelta(seconds=1), timedelta(days=-1)],
    ids=["just-before", "just-after", "day-before"],
)
def test_accepted_meeting_can_be_cancelled_outside_window(db_session, accepted_meeting, parties, offset):
    meeting, cancellation = _cancel(db_session, accepted_meeting, parties["bob"], now=T + offset)

    assert meeting.state == MeetingState.CANCELLED
    assert cancellation.cancelled_by == parties["bob"].id
    assert cancellation.reason == "Something came up"
    assert cancellation.acknowledged is False


def test_window_message_counts_minutes_until_start(db_session, accepted_meeting, parties):
    with pytest.raises(CancellationWindowError) as excinfo:
        _cancel(db_session, accepted_meeting, parties["alice"], now=datetime(2025, 1, 15, 9, 52, 0))

    assert "starts in 8 minutes" in excinfo.value.message
    assert excinfo.value.minutes_until_start == 8
    assert excinfo.value.minutes_since_start is None

    meeting, cancellation = _cancel(
        db_session, accepted_meeting, parties["alice"], now=datetime(2025, 1, 15, 9, 49, 59)
    )
    assert meeting.state == MeetingState.CANCELLED
    assert cancellation.id is not None


def test_window_message_counts_minutes_since_start(db_session, accepted_meeting, parties):
    with pytest.raises(CancellationWindowError) as excinfo:
        _cancel(db_session, accepted_meeting, parties["alice"], now=T + minutes(1) + timedelta(seconds=30))

    assert "started 1 minute ago" in excinfo.value.message
    assert excinfo.value.minutes_since_start == 1


def test_guard_uses_aware_now(db_session, accepted_meeting, parties):
    now = datetime(2025, 1, 15, 10, 52, 0, tzinfo=timezone(timedelta(hours=1)))
    with pytest.raises(CancellationWindowError):
        _cancel(db_session, accepted_meeting, parties["alice"], now=now)


def test_pending_meeting_can_always_be_withdrawn(db_session, parties):
    meeting = _create(db_session, parties["alice"], parties["bob"])
    cancelled, _ = _cancel(db_session, meeting, parties["alice"], now=T)
    assert cancelled.state == MeetingState.CANCELLED


def test_cancel_requires_reason_and_party(db_session, accepted_meeting, parties):
    with pytest.raises(ValidationError):
        _cancel(db_session, accepted_meeting, parties["alice"], now=BOOKED_AT, reason="")
    with pytest.raises(AuthorizationError):
        _cancel(db_session, accepted_meeting, parties["carol"], now=BOOKED_AT)


def test_cancel_terminal_meeting(db_session, accepted_meeting, parties):
    _cancel(db_session, accepted_meeting, parties["alice"], now=BOOKED_AT)
    with pytest.raises(InvalidStateError):
        _cancel(db_session, accepted_meeting, parties["bob"], now=BOOKED_AT)


def test_custom_window(db_session, accepted_meeting, parties):
    wide = MeetingWindow(before_minutes=60, after_minutes=0)
    with pytest.raises(CancellationWindowError):
        meeting_service.cancel_meeting(
            db_session,
            meeting_id=accepted_meeting.id,
            by=parties["alice"].id,
            reason="Busy",
            now=T - minutes(45),
            window=wide,
        )


# ======================
# ACKNOWLEDGEMENT
# ======================

def test_counterpart_acknowledges_cancellation_once(db_session, accepted_meeting, parties):
    _, cancellation = _cancel(db_session, accepted_meeting, parties["alice"], now=BOOKED_AT)

    unseen = meeting_service.list_unacknowledged_cancellations(db_session, user_id=parties["bob"].id)
    assert [c.id for c in unseen] == [cancellation.id]
    assert meeting_service.list_unacknowledged_cancellations(db_session, user_id=parties["alice"].id) == []

    first = meeting_service.acknowledge_cancellation(
        db_session, cancellation_id=cancellation.id, by=parties["bob"].id, now=T
    )
    assert first.acknowledged is True
    assert first.acknowledged_at == T

    again = meeting_service.acknowledge_cancellation(
        db_session, cancellation_id=cancellation.id, by=parties["bob"].id, now=T + minutes(5)
    )
    assert again.acknowledged is True
    assert again.acknowledged_at == T
    assert meeting_service.list_unacknowledged_cancellations(db_session, user_id=parties["bob"].id) == []


def test_only_counterpart_acknowledges(db_session, accepted_meeting, parties):
    _, cancellation = _cancel(db_session, accepted_meeting, parties["alice"], now=BOOKED_AT)
    with pytest.raises(AuthorizationError):
        meeting_service.acknowledge_cancellation(
            db_session, cancellation_id=cancellation.id, by=parties["alice"].id
        )
    with pytest.raises(AuthorizationError):
        meeting_service.acknowledge_cancellation(
            db_session, cancellation_id=cancellation.id, by=parties["carol"].id
        )
    with pytest.raises(NotFoundError):
        meeting_service.acknowledge_cancellation(db_session, cancellation_id=404, by=parties["bob"].id)


# ======================
# PHASES & LISTING
# ======================

def test_meeting_phase_boundaries(db_session, accepted_meeting):
    assert meeting_phase(accepted_meeting, T - minutes(10) - timedelta(seconds=1)) is MeetingPhase.UPCOMING
    assert meeting_phase(accepted_meeting, T - minutes(10)) is MeetingPhase.HAPPENING
    assert meeting_phase(accepted_meeting, T + minutes(30)) is MeetingPhase.HAPPENING
    assert meeting_phase(accepted_meeting, T + minutes(30) + timedelta(seconds=1)) is MeetingPhase.PAST


def test_meeting_phase_by_state(db_session, parties):
    pending = _create(db_session, parties["alice"], parties["bob"])
    assert meeting_phase(pending, T) is MeetingPhase.PENDING

    meeting_service.respond_to_meeting(
        db_session, meeting_id=pending.id, by=parties["bob"].id, action="reject", now=BOOKED_AT
    )
    assert meeting_phase(pending, BOOKED_AT) is MeetingPhase.CANCELLED


def test_list_meetings_buckets(db_session, parties):
    alice, bob, carol = parties["alice"], parties["bob"], parties["carol"]
    now = T

    happening = _create(db_session, alice, bob, when=T + minutes(5))
    upcoming = _create(db_session, bob, alice, when=T + timedelta(days=1))
    pending = _create(db_session, carol, alice, when=T + timedelta(days=2))
    withdrawn = _create(db_session, alice, carol, when=T + timedelta(days=3))
    for meeting, receiver in ((happening, bob), (upcoming, alice)):
        meeting_service.respond_to_meeting(
            db_session, meeting_id=meeting.id, by=receiver.id, action="accept", now=BOOKED_AT
        )
    _cancel(db_session, withdrawn, alice, now=BOOKED_AT)

    buckets = meeting_service.list_meetings_for_user(db_session, user_id=alice.id, now=now)

    assert set(buckets) == {"pending", "upcoming", "happening", "past", "cancelled"}
    assert [m.id for m in buckets["happening"]] == [happening.id]
    assert [m.id for m in buckets["upcoming"]] == [upcoming.id]
    assert [m.id for m in buckets["pending"]] == [pending.id]
    assert [m.id for m in buckets["cancelled"]] == [withdrawn.id]
    assert buckets["past"] == []

    later = meeting_service.list_meetings_for_user(db_session, user_id=alice.id, now=T + timedelta(hours=1))
    assert [m.id for m in later["past"]] == [happening.id]

    with_bob = meeting_service.list_meetings_for_user(
        db_session, user_id=alice.id, now=now, other_user_id=bob.id
    )
    assert with_bob["pending"] == [] and with_bob["cancelled"] == []


def test_complete_elapsed_meetings(db_session, accepted_meeting, parties, cache):
    cache.set(meeting_rows_key(parties["alice"].id), "stale")

    assert meeting_service.complete_elapsed_meetings(db_session, now=T + minutes(30), cache=cache) == 0
    assert meeting_service.complete_elapsed_meetings(db_session, now=T + minutes(31), cache=cache) == 1

    db_session.refresh(accepted_meeting)
    assert accepted_meeting.state == MeetingState.COMPLETED
    assert meeting_phase(accepted_meeting, T) is MeetingPhase.PAST
    assert cache.get(meeting_rows_key(parties["alice"].id)) is None

    # Idempotent
    assert meeting_service.complete_elapsed_meetings(db_session, now=T + minutes(31)) == 0
    with pytest.raises(InvalidStateError):
        _cancel(db_session, accepted_meeting, parties["alice"], now=T + timedelta(hours=2))
