# swaphub/services/meeting_service.py
"""
Meeting Scheduler & Cancellation Guard

States:
    pending  --accept/reject (receiver)--> accepted | rejected
    pending  --cancel (either party)-----> cancelled
    accepted --cancel (either party)-----> cancelled   (outside the protected window)
    accepted --window elapsed------------> completed

The protected window ``[meeting_time - before, meeting_time + after]`` is
defined once, in ``meeting_phase``; the cancellation guard, the listing
buckets and the elapsed-meeting sweep all derive from it.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from swaphub.config import settings
from swaphub.crud import meeting as meeting_crud
from swaphub.crud.guarded import guarded_update
from swaphub.exceptions import (
    AuthorizationError,
    CancellationWindowError,
    InvalidStateError,
    MeetingLimitError,
    NotFoundError,
    ValidationError,
)
from swaphub.models.meeting import Meeting, MeetingCancellation, MeetingState
from swaphub.services import notification_service
from swaphub.services.cache_service import CacheService, invalidate_users
from swaphub.services.common import (
    display_name,
    meeting_link,
    require_party,
    require_text,
    require_user,
)
from swaphub.utils.timeutil import resolve_now, to_naive_utc

logger = logging.getLogger(__name__)

MEETING_ACTIONS = ("accept", "reject")
DESCRIPTION_MAX_LENGTH = 500
REASON_MAX_LENGTH = 500
CAPACITY_ATTEMPTS = 3


# ======================
# WINDOWING
# ======================

class MeetingPhase(str, Enum):
    PENDING = "pending"
    UPCOMING = "upcoming"
    HAPPENING = "happening"
    PAST = "past"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class MeetingWindow:
    before_minutes: int = 10
    after_minutes: int = 30

    @classmethod
    def from_settings(cls) -> "MeetingWindow":
        return cls(
            before_minutes=settings.MEETING_LOCK_BEFORE_MINUTES,
            after_minutes=settings.MEETING_LOCK_AFTER_MINUTES,
        )

    def bounds(self, meeting_time: datetime) -> Tuple[datetime, datetime]:
        return (
            meeting_time - timedelta(minutes=self.before_minutes),
            meeting_time + timedelta(minutes=self.after_minutes),
        )


def meeting_phase(meeting, now: datetime, window: Optional[MeetingWindow] = None) -> MeetingPhase:
    """
    Classify a meeting at ``now``. Both window bounds are inclusive.

    ``meeting`` is a Meeting row or any snapshot carrying ``state`` and
    ``meeting_time``, such as a cached MeetingResponse.
    """
    window = window or MeetingWindow.from_settings()
    if meeting.state in (MeetingState.CANCELLED, MeetingState.REJECTED):
        return MeetingPhase.CANCELLED
    if meeting.state == MeetingState.COMPLETED:
        return MeetingPhase.PAST
    if meeting.state == MeetingState.PENDING:
        return MeetingPhase.PENDING

    opens, closes = window.bounds(meeting.meeting_time)
    if now < opens:
        return MeetingPhase.UPCOMING
    if now <= closes:
        return MeetingPhase.HAPPENING
    return MeetingPhase.PAST


def _plural(count: int, unit: str = "minute") -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def check_cancellation_window(meeting: Meeting, now: datetime, window: Optional[MeetingWindow] = None) -> None:
    """Raise CancellationWindowError if an accepted meeting is inside its protected window."""
    window = window or MeetingWindow.from_settings()
    if meeting.state != MeetingState.ACCEPTED:
        return
    if meeting_phase(meeting, now, window) is not MeetingPhase.HAPPENING:
        return

    policy = (
        f"Accepted meetings cannot be cancelled from {_plural(window.before_minutes)} before "
        f"until {_plural(window.after_minutes)} after the start time."
    )
    if now < meeting.meeting_time:
        minutes = math.ceil((meeting.meeting_time - now).total_seconds() / 60)
        raise CancellationWindowError(
            f"Meeting starts in {_plural(minutes)}. {policy}",
            minutes_until_start=minutes,
        )
    minutes = math.floor((now - meeting.meeting_time).total_seconds() / 60)
    lead = "Meeting is starting now." if minutes == 0 else f"Meeting started {_plural(minutes)} ago."
    raise CancellationWindowError(f"{lead} {policy}", minutes_since_start=minutes)


# ======================
# HELPERS
# ======================

def _load_meeting(db: Session, meeting_id: int) -> Meeting:
    meeting = meeting_crud.get_meeting(db, meeting_id)
    if not meeting:
        raise NotFoundError("Meeting not found")
    return meeting


def _lost_race(db: Session) -> InvalidStateError:
    db.rollback()
    return InvalidStateError("Meeting was modified by another request; reload and try again")


def _invalidate(cache: Optional[CacheService], meeting: Meeting) -> None:
    invalidate_users(cache, "meetings", meeting.sender_id, meeting.receiver_id)


# ======================
# CREATE / RESPOND
# ======================

def create_meeting(
    db: Session,
    *,
    sender_id: int,
    receiver_id: int,
    description: str,
    meeting_time: datetime,
    cache: Optional[CacheService] = None,
    now: Optional[datetime] = None,
    max_active: Optional[int] = None,
) -> Meeting:
    """
    Schedule a meeting request from ``sender_id`` to ``receiver_id``.

    Raises MeetingLimitError when the pair already has ``max_active``
    pending or upcoming-accepted meetings between them. The count and the
    insert run under the pair's lock row, so concurrent requests for the same
    pair cannot both take the last slot.
    """
    now = resolve_now(now)
    limit = max_active if max_active is not None else settings.MAX_ACTIVE_MEETINGS_PER_PAIR

    if sender_id == receiver_id:
        raise ValidationError("Cannot schedule a meeting with yourself")
    cleaned = require_text(description, "Description", DESCRIPTION_MAX_LENGTH)
    if meeting_time is None:
        raise ValidationError("Meeting time is required")
    meeting_time = to_naive_utc(meeting_time)
    if meeting_time <= now:
        raise ValidationError("Meeting time must be in the future")
    require_user(db, receiver_id, "Receiver")

    for _ in range(CAPACITY_ATTEMPTS):
        pair = meeting_crud.get_or_create_pair(db, sender_id, receiver_id)
        active = meeting_crud.count_active_meetings_between(db, sender_id, receiver_id, now)
        if active >= limit:
            raise MeetingLimitError(
                f"You already have {active} active meetings with this user (limit is {limit})",
                limit=limit,
            )

        # Claim the pair; a concurrent request that counted first loses here
        if guarded_update(db, pair, values={}):
            break
        db.rollback()
        logger.info("Meeting capacity check for users %s and %s raced; re-counting", sender_id, receiver_id)
    else:
        raise InvalidStateError("Too many simultaneous meeting requests for this pair; try again")

    meeting = Meeting(
        sender_id=sender_id,
        receiver_id=receiver_id,
        description=cleaned,
        meeting_time=meeting_time,
        state=MeetingState.PENDING.value,
        version=1,
    )
    db.add(meeting)
    db.commit()
    db.refresh(meeting)

    logger.info("Meeting %s requested by user %s with user %s", meeting.id, sender_id, receiver_id)
    _invalidate(cache, meeting)

    notification_service.notify(
        db,
        recipient_id=receiver_id,
        actor_id=sender_id,
        event_type="meeting_requested",
        message=f"{display_name(db, sender_id)} invited you to a meeting: {cleaned}",
        deep_link=meeting_link(meeting.id),
        meeting_id=meeting.id,
    )
    return meeting


def respond_to_meeting(
    db: Session,
    *,
    meeting_id: int,
    by: int,
    action: str,
    cache: Optional[CacheService] = None,
    now: Optional[datetime] = None,
) -> Meeting:
    """Receiver accepts or rejects a pending meeting request."""
    if action not in MEETING_ACTIONS:
        raise ValidationError('Action must be either "accept" or "reject"')
    now = resolve_now(now)

    meeting = _load_meeting(db, meeting_id)
    require_party(meeting, by, "meeting")
    if by != meeting.receiver_id:
        raise AuthorizationError("Only the invited user can respond to this meeting")
    if meeting.state != MeetingState.PENDING:
        raise InvalidStateError(f"Meeting is already {meeting.state}")
    if action == "accept" and meeting.meeting_time < now:
        raise InvalidStateError("Meeting time has already passed")

    new_state = MeetingState.ACCEPTED if action == "accept" else MeetingState.REJECTED
    if not guarded_update(
        db,
        meeting,
        state_field="state",
        expected_state=MeetingState.PENDING.value,
        values={"state": new_state.value, "responded_at": now, "updated_at": now},
    ):
        raise _lost_race(db)

    db.commit()
    db.refresh(meeting)

    logger.info("Meeting %s: pending -> %s by user %s", meeting_id, new_state.value, by)
    _invalidate(cache, meeting)

    verb = "accepted" if action == "accept" else "declined"
    notification_service.notify(
        db,
        recipient_id=meeting.sender_id,
        actor_id=by,
        event_type=f"meeting_{'accepted' if action == 'accept' else 'rejected'}",
        message=f"{display_name(db, by)} {verb} your meeting request.",
        deep_link=meeting_link(meeting_id),
        meeting_id=meeting_id,
    )
    return meeting


# ======================
# CANCEL / ACKNOWLEDGE
# ======================

def cancel_meeting(
    db: Session,
    *,
    meeting_id: int,
    by: int,
    reason: str,
    cache: Optional[CacheService] = None,
    now: Optional[datetime] = None,
    window: Optional[MeetingWindow] = None,
) -> Tuple[Meeting, MeetingCancellation]:
    """
    Cancel a pending or accepted meeting and record why.

    Accepted meetings are protected around their start time; see
    ``check_cancellation_window``.
    """
    cleaned_reason = require_text(reason, "Cancellation reason", REASON_MAX_LENGTH)
    now = resolve_now(now)

    meeting = _load_meeting(db, meeting_id)
    require_party(meeting, by, "meeting")
    previous_state = meeting.state
    if previous_state not in (MeetingState.PENDING, MeetingState.ACCEPTED):
        raise InvalidStateError(f"Meeting is already {previous_state}")
    check_cancellation_window(meeting, now, window)

    if not guarded_update(
        db,
        meeting,
        state_field="state",
        expected_state=previous_state,
        values={"state": MeetingState.CANCELLED.value, "updated_at": now},
    ):
        raise _lost_race(db)

    cancellation = meeting_crud.create_cancellation(
        db,
        meeting_id=meeting_id,
        cancelled_by=by,
        reason=cleaned_reason,
        cancelled_at=now,
    )
    db.commit()
    db.refresh(meeting)
    db.refresh(cancellation)

    logger.info("Meeting %s: %s -> cancelled by user %s", meeting_id, previous_state, by)
    _invalidate(cache, meeting)

    notification_service.notify(
        db,
        recipient_id=meeting.counterpart_of(by),
        actor_id=by,
        event_type="meeting_cancelled",
        message=f"{display_name(db, by)} cancelled your meeting. Reason: {cleaned_reason}",
        deep_link=meeting_link(meeting_id),
        meeting_id=meeting_id,
    )
    return meeting, cancellation


def acknowledge_cancellation(
    db: Session,
    *,
    cancellation_id: int,
    by: int,
    now: Optional[datetime] = None,
) -> MeetingCancellation:
    """Mark a cancellation as seen by the other party. Acknowledging twice is a no-op."""
    now = resolve_now(now)

    cancellation = meeting_crud.get_cancellation(db, cancellation_id)
    if not cancellation:
        raise NotFoundError("Cancellation not found")
    require_party(cancellation.meeting, by, "meeting")
    if by == cancellation.cancelled_by:
        raise AuthorizationError("Only the other participant can acknowledge this cancellation")

    if cancellation.acknowledged:
        return cancellation

    cancellation.acknowledged = True
    cancellation.acknowledged_at = now
    db.commit()
    db.refresh(cancellation)
    logger.info("Cancellation %s acknowledged by user %s", cancellation_id, by)
    return cancellation


def list_unacknowledged_cancellations(db: Session, *, user_id: int) -> List[MeetingCancellation]:
    return meeting_crud.list_unacknowledged_cancellations(db, user_id)


# ======================
# LISTING / MAINTENANCE
# ======================

def list_user_meetings(db: Session, *, user_id: int, other_user_id: Optional[int] = None) -> List[Meeting]:
    """Every meeting the user takes part in, oldest first, unclassified."""
    return meeting_crud.list_meetings_for_user(db, user_id, other_user_id)


def bucket_meetings(meetings: Iterable, now: datetime, window: Optional[MeetingWindow] = None) -> Dict[str, list]:
    """
    Group meetings into pending/upcoming/happening/past/cancelled buckets at ``now``.

    Classification is never cached; callers pass the current time on every read.
    """
    window = window or MeetingWindow.from_settings()

    buckets: Dict[str, list] = {phase.value: [] for phase in MeetingPhase}
    for meeting in meetings:
        buckets[meeting_phase(meeting, now, window).value].append(meeting)

    # Most recent first for history buckets
    buckets[MeetingPhase.PAST.value].reverse()
    buckets[MeetingPhase.CANCELLED.value].reverse()
    return buckets


def list_meetings_for_user(
    db: Session,
    *,
    user_id: int,
    now: Optional[datetime] = None,
    other_user_id: Optional[int] = None,
    window: Optional[MeetingWindow] = None,
) -> Dict[str, List[Meeting]]:
    meetings = list_user_meetings(db, user_id=user_id, other_user_id=other_user_id)
    return bucket_meetings(meetings, resolve_now(now), window)


def complete_elapsed_meetings(
    db: Session,
    *,
    now: Optional[datetime] = None,
    cache: Optional[CacheService] = None,
    window: Optional[MeetingWindow] = None,
) -> int:
    """Move accepted meetings whose protected window has fully elapsed to completed."""
    now = resolve_now(now)
    window = window or MeetingWindow.from_settings()
    cutoff = now - timedelta(minutes=window.after_minutes)

    completed: List[Meeting] = []
    for meeting in meeting_crud.list_elapsed_accepted_meetings(db, cutoff):
        if meeting_phase(meeting, now, window) is not MeetingPhase.PAST:
            continue
        # A meeting cancelled concurrently simply stays cancelled
        if guarded_update(
            db,
            meeting,
            state_field="state",
            expected_state=MeetingState.ACCEPTED.value,
            values={"state": MeetingState.COMPLETED.value, "updated_at": now},
        ):
            completed.append(meeting)
    db.commit()

    for meeting in completed:
        _invalidate(cache, meeting)
    if completed:
        logger.info("Marked %d elapsed meetings as completed", len(completed))
    return len(completed)
