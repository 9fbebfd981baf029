# swaphub/services/session_service.py
"""
Session Service Layer
Proposal, accept/reject and cancellation of two-party skill exchange sessions.

State machine:
    pending --accept (invited party)--> active
    pending --reject (invited party)--> rejected   (terminal)
    active  --cancel (either party)---> canceled   (terminal)
    active  --completion consensus----> completed  (see completion_service)
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from swaphub.crud import session as session_crud
from swaphub.crud import skill as skill_crud
from swaphub.crud.guarded import guarded_update
from swaphub.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from swaphub.models.session import Session as SessionModel, SessionStatus
from swaphub.services import notification_service
from swaphub.services.cache_service import CacheService, invalidate_users
from swaphub.services.common import (
    display_name,
    require_party,
    require_text,
    require_user,
    session_link,
)
from swaphub.utils.timeutil import resolve_now, to_naive_utc

logger = logging.getLogger(__name__)

SESSION_ACTIONS = ("accept", "reject")
DESCRIPTION_MAX_LENGTH = 2000


# ======================
# HELPERS
# ======================

def load_session(db: Session, session_id: int) -> SessionModel:
    session = session_crud.get_session(db, session_id)
    if not session:
        raise NotFoundError("Session not found")
    return session


def lost_race(db: Session, noun: str = "Session") -> InvalidStateError:
    """Roll back a transition whose guarded write matched no row."""
    db.rollback()
    return InvalidStateError(f"{noun} was modified by another request; reload and try again")


def invalidate_session_views(cache: Optional[CacheService], session: SessionModel) -> None:
    invalidate_users(cache, "sessions", session.user1_id, session.user2_id)


def validate_terms(
    db: Session,
    *,
    user1_id: int,
    user2_id: int,
    skill1_id: int,
    skill2_id: int,
    description1: Optional[str],
    description2: Optional[str],
    start_date: Optional[datetime],
    expected_end_date: Optional[datetime],
) -> Dict[str, Any]:
    """
    Validate a full set of exchange terms and return them normalised.

    Raises ValidationError for bad text or dates, or when a skill is not
    offered by the party it is attributed to.
    """
    cleaned = {
        "description1": require_text(description1, "Description of service 1", DESCRIPTION_MAX_LENGTH),
        "description2": require_text(description2, "Description of service 2", DESCRIPTION_MAX_LENGTH),
    }

    if start_date is None or expected_end_date is None:
        raise ValidationError("Start date and expected end date are required")
    start = to_naive_utc(start_date)
    end = to_naive_utc(expected_end_date)
    if end <= start:
        raise ValidationError("Expected end date must be after the start date")

    if not skill_crud.user_offers_skill(db, user1_id, skill1_id):
        raise ValidationError(f"Skill {skill1_id} is not offered by user {user1_id}")
    if not skill_crud.user_offers_skill(db, user2_id, skill2_id):
        raise ValidationError(f"Skill {skill2_id} is not offered by user {user2_id}")

    cleaned.update(
        skill1_id=skill1_id,
        skill2_id=skill2_id,
        start_date=start,
        expected_end_date=end,
    )
    return cleaned


# ======================
# PROPOSE
# ======================

def propose_session(
    db: Session,
    *,
    proposer_id: int,
    counterpart_id: int,
    skill1_id: int,
    skill2_id: int,
    description1: str,
    description2: str,
    start_date: datetime,
    expected_end_date: datetime,
    cache: Optional[CacheService] = None,
) -> SessionModel:
    """
    Create a new pending session proposed by ``proposer_id``.

    The proposer offers ``skill1_id`` in exchange for the counterpart's
    ``skill2_id``.
    """
    if proposer_id == counterpart_id:
        raise ValidationError("Cannot create a session with yourself")
    require_user(db, counterpart_id, "Counterpart")

    terms = validate_terms(
        db,
        user1_id=proposer_id,
        user2_id=counterpart_id,
        skill1_id=skill1_id,
        skill2_id=skill2_id,
        description1=description1,
        description2=description2,
        start_date=start_date,
        expected_end_date=expected_end_date,
    )

    session = SessionModel(
        user1_id=proposer_id,
        user2_id=counterpart_id,
        status=SessionStatus.PENDING.value,
        is_amended=False,
        version=1,
        **terms,
    )
    db.add(session)
    db.commit()
    db.refresh(session)

    logger.info("Session %s proposed by user %s to user %s", session.id, proposer_id, counterpart_id)
    invalidate_session_views(cache, session)

    notification_service.notify(
        db,
        recipient_id=counterpart_id,
        actor_id=proposer_id,
        event_type="session_proposed",
        message=f"{display_name(db, proposer_id)} proposed a skill exchange with you.",
        deep_link=session_link(session.id),
        session_id=session.id,
    )
    return session


# ======================
# ACCEPT / REJECT
# ======================

def respond_to_session(
    db: Session,
    *,
    session_id: int,
    by: int,
    action: str,
    cache: Optional[CacheService] = None,
    now: Optional[datetime] = None,
) -> SessionModel:
    """Accept or reject a pending proposal; only the invited party may do so."""
    if action not in SESSION_ACTIONS:
        raise ValidationError('Action must be either "accept" or "reject"')
    now = resolve_now(now)

    session = load_session(db, session_id)
    require_party(session, by, "session")
    if session.status != SessionStatus.PENDING:
        raise InvalidStateError(f"Session is already {session.status}")
    if by == session.user1_id:
        raise AuthorizationError("Only the invited party can accept or reject this proposal")

    if action == "accept":
        new_status = SessionStatus.ACTIVE
        values = {"status": new_status.value, "updated_at": now}
    else:
        new_status = SessionStatus.REJECTED
        values = {
            "status": new_status.value,
            "rejected_by": by,
            "rejected_at": now,
            "updated_at": now,
        }

    if not guarded_update(
        db,
        session,
        state_field="status",
        expected_state=SessionStatus.PENDING.value,
        values=values,
    ):
        raise lost_race(db)

    superseded = session_crud.supersede_pending_counter_offers(db, session_id)
    db.commit()
    db.refresh(session)

    logger.info(
        "Session %s: pending -> %s by user %s (%d counter-offers superseded)",
        session_id,
        new_status.value,
        by,
        superseded,
    )
    invalidate_session_views(cache, session)

    verb = "accepted" if action == "accept" else "declined"
    notification_service.notify(
        db,
        recipient_id=session.user1_id,
        actor_id=by,
        event_type=f"session_{'accepted' if action == 'accept' else 'rejected'}",
        message=f"{display_name(db, by)} {verb} your skill exchange proposal.",
        deep_link=session_link(session_id),
        session_id=session_id,
    )
    return session


# ======================
# CANCEL
# ======================

def cancel_session(
    db: Session,
    *,
    session_id: int,
    by: int,
    cache: Optional[CacheService] = None,
    now: Optional[datetime] = None,
) -> SessionModel:
    """Either party may cancel an active session; no counterpart approval needed."""
    now = resolve_now(now)

    session = load_session(db, session_id)
    require_party(session, by, "session")
    if session.status != SessionStatus.ACTIVE:
        raise InvalidStateError(
            f"Only active sessions can be cancelled (session is {session.status})"
        )

    if not guarded_update(
        db,
        session,
        state_field="status",
        expected_state=SessionStatus.ACTIVE.value,
        values={
            "status": SessionStatus.CANCELED.value,
            "canceled_by": by,
            "canceled_at": now,
            "updated_at": now,
        },
    ):
        raise lost_race(db)

    db.commit()
    db.refresh(session)

    logger.info("Session %s: active -> canceled by user %s", session_id, by)
    invalidate_session_views(cache, session)

    notification_service.notify(
        db,
        recipient_id=session.counterpart_of(by),
        actor_id=by,
        event_type="session_canceled",
        message=f"{display_name(db, by)} cancelled your skill exchange session.",
        deep_link=session_link(session_id),
        session_id=session_id,
    )
    return session


# ======================
# READS
# ======================

def get_session_for_party(db: Session, *, session_id: int, viewer_id: int) -> SessionModel:
    session = load_session(db, session_id)
    require_party(session, viewer_id, "session")
    return session


def list_sessions_for_user(
    db: Session,
    *,
    user_id: int,
    status: Optional[str] = None,
) -> List[SessionModel]:
    if status is not None and status not in {s.value for s in SessionStatus}:
        raise ValidationError(f"Unknown session status '{status}'")
    return session_crud.list_sessions_for_user(db, user_id, status)
