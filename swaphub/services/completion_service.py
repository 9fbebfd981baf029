# swaphub/services/completion_service.py
"""
Completion consensus for active sessions.

One party requests completion, the other approves or rejects it. Approval
moves the session to ``completed`` and freezes the completion fields.
Rejection keeps the session active and records the reason; the next request
overwrites the rejection marker. Only the latest round is stored.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from swaphub.crud.guarded import guarded_update
from swaphub.exceptions import (
    AlreadyRequestedError,
    AuthorizationError,
    InvalidStateError,
    ValidationError,
)
from swaphub.models.session import Session as SessionModel, SessionStatus
from swaphub.services import notification_service
from swaphub.services.cache_service import CacheService
from swaphub.services.common import display_name, require_party, require_text, session_link
from swaphub.services.session_service import invalidate_session_views, load_session, lost_race
from swaphub.utils.timeutil import resolve_now

logger = logging.getLogger(__name__)

COMPLETION_ACTIONS = ("approve", "reject")
REJECTION_REASON_MAX_LENGTH = 500


def request_completion(
    db: Session,
    *,
    session_id: int,
    by: int,
    cache: Optional[CacheService] = None,
    now: Optional[datetime] = None,
) -> SessionModel:
    """
    Ask the counterpart to confirm the session is finished.

    Raises:
        InvalidStateError: session is not active, or the counterpart's
            request is waiting for this user's answer
        AlreadyRequestedError: this user's own request is still outstanding
    """
    now = resolve_now(now)

    session = load_session(db, session_id)
    require_party(session, by, "session")
    if session.status != SessionStatus.ACTIVE:
        raise InvalidStateError("Session must be active to request completion")
    if session.completion_outstanding:
        if session.completion_requested_by == by:
            raise AlreadyRequestedError(
                "You already have a pending completion request for this session"
            )
        raise InvalidStateError(
            "Your counterpart has already requested completion; approve or reject it instead"
        )

    if not guarded_update(
        db,
        session,
        state_field="status",
        expected_state=SessionStatus.ACTIVE.value,
        values={
            "completion_requested_by": by,
            "completion_requested_at": now,
            "completion_rejected_by": None,
            "completion_rejected_at": None,
            "completion_rejection_reason": None,
            "updated_at": now,
        },
    ):
        raise lost_race(db)

    db.commit()
    db.refresh(session)

    logger.info("Session %s: completion requested by user %s", session_id, by)
    invalidate_session_views(cache, session)

    notification_service.notify(
        db,
        recipient_id=session.counterpart_of(by),
        actor_id=by,
        event_type="completion_requested",
        message=f"{display_name(db, by)} marked your skill exchange as finished and asks you to confirm.",
        deep_link=session_link(session_id),
        session_id=session_id,
    )
    return session


def respond_to_completion(
    db: Session,
    *,
    session_id: int,
    by: int,
    action: str,
    rejection_reason: Optional[str] = None,
    cache: Optional[CacheService] = None,
    now: Optional[datetime] = None,
) -> SessionModel:
    """
    Approve or reject the counterpart's outstanding completion request.

    The requester can never answer their own request, whatever the session's
    state.
    """
    if action not in COMPLETION_ACTIONS:
        raise ValidationError("Action must be 'approve' or 'reject'")
    reason = None
    if action == "reject":
        reason = require_text(rejection_reason, "Rejection reason", REJECTION_REASON_MAX_LENGTH)
    now = resolve_now(now)

    session = load_session(db, session_id)
    require_party(session, by, "session")
    if session.completion_requested_by == by:
        raise AuthorizationError("You cannot respond to your own completion request")
    if session.status != SessionStatus.ACTIVE:
        raise InvalidStateError(f"Session is {session.status}; completion can no longer change")
    if not session.completion_outstanding:
        raise InvalidStateError("No pending completion request found")

    if action == "approve":
        values = {
            "status": SessionStatus.COMPLETED.value,
            "completion_approved_by": by,
            "completion_approved_at": now,
            "updated_at": now,
        }
    else:
        values = {
            "completion_rejected_by": by,
            "completion_rejected_at": now,
            "completion_rejection_reason": reason,
            "updated_at": now,
        }

    if not guarded_update(
        db,
        session,
        state_field="status",
        expected_state=SessionStatus.ACTIVE.value,
        values=values,
    ):
        raise lost_race(db)

    db.commit()
    db.refresh(session)

    requester_id = session.completion_requested_by
    if action == "approve":
        logger.info("Session %s: active -> completed, approved by user %s", session_id, by)
        event_type = "completion_approved"
        message = f"{display_name(db, by)} confirmed your skill exchange is complete."
    else:
        logger.info("Session %s: completion rejected by user %s", session_id, by)
        event_type = "completion_rejected"
        message = f"{display_name(db, by)} declined your completion request: {reason}"
    invalidate_session_views(cache, session)

    notification_service.notify(
        db,
        recipient_id=requester_id,
        actor_id=by,
        event_type=event_type,
        message=message,
        deep_link=session_link(session_id),
        session_id=session_id,
    )
    return session
