# swaphub/crud/meeting.py
"""Meeting and meeting-cancellation queries."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from swaphub.models.meeting import Meeting, MeetingCancellation, MeetingPair, MeetingState


def get_meeting(db: Session, meeting_id: int) -> Optional[Meeting]:
    return db.query(Meeting).filter(Meeting.id == meeting_id).first()


def _between(user_a: int, user_b: int):
    return or_(
        and_(Meeting.sender_id == user_a, Meeting.receiver_id == user_b),
        and_(Meeting.sender_id == user_b, Meeting.receiver_id == user_a),
    )


def get_or_create_pair(db: Session, user_a: int, user_b: int) -> MeetingPair:
    """
    Lock row for an unordered pair. A new row is committed on its own so a
    concurrent creator of the same pair just re-reads it.
    """
    low, high = sorted((user_a, user_b))
    query = db.query(MeetingPair).filter(
        MeetingPair.user_low_id == low,
        MeetingPair.user_high_id == high,
    )
    pair = query.first()
    if pair:
        return pair

    db.add(MeetingPair(user_low_id=low, user_high_id=high, version=1))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
    return query.one()


def count_active_meetings_between(db: Session, user_a: int, user_b: int, now: datetime) -> int:
    """Pending meetings plus accepted meetings still in the future, in either direction."""
    return db.query(Meeting).filter(
        _between(user_a, user_b),
        or_(
            Meeting.state == MeetingState.PENDING.value,
            and_(
                Meeting.state == MeetingState.ACCEPTED.value,
                Meeting.meeting_time > now,
            ),
        ),
    ).count()


def list_meetings_for_user(
    db: Session,
    user_id: int,
    other_user_id: Optional[int] = None,
) -> List[Meeting]:
    if other_user_id is not None:
        query = db.query(Meeting).filter(_between(user_id, other_user_id))
    else:
        query = db.query(Meeting).filter(
            or_(Meeting.sender_id == user_id, Meeting.receiver_id == user_id)
        )
    return query.order_by(Meeting.meeting_time.asc(), Meeting.id.asc()).all()


def list_elapsed_accepted_meetings(db: Session, cutoff: datetime) -> List[Meeting]:
    """Accepted meetings whose start time is before ``cutoff``."""
    return db.query(Meeting).filter(
        Meeting.state == MeetingState.ACCEPTED.value,
        Meeting.meeting_time < cutoff,
    ).all()


def create_cancellation(
    db: Session,
    *,
    meeting_id: int,
    cancelled_by: int,
    reason: str,
    cancelled_at: datetime,
) -> MeetingCancellation:
    cancellation = MeetingCancellation(
        meeting_id=meeting_id,
        cancelled_by=cancelled_by,
        reason=reason,
        cancelled_at=cancelled_at,
        acknowledged=False,
    )
    db.add(cancellation)
    db.flush()
    return cancellation


def get_cancellation(db: Session, cancellation_id: int) -> Optional[MeetingCancellation]:
    return db.query(MeetingCancellation).filter(
        MeetingCancellation.id == cancellation_id
    ).first()


def list_unacknowledged_cancellations(db: Session, user_id: int) -> List[MeetingCancellation]:
    """Cancellations of the user's meetings made by the counterpart and not yet seen."""
    return (
        db.query(MeetingCancellation)
        .join(Meeting, MeetingCancellation.meeting_id == Meeting.id)
        .filter(
            or_(Meeting.sender_id == user_id, Meeting.receiver_id == user_id),
            MeetingCancellation.cancelled_by != user_id,
            MeetingCancellation.acknowledged.is_(False),
        )
        .order_by(MeetingCancellation.cancelled_at.desc())
        .all()
    )
