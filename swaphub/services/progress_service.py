# swaphub/services/progress_service.py
"""
Per-party progress on a session.

Each party keeps one progress record per session, created on its first
update. Only the owner writes it and only while the session is active;
both parties can read both records.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from swaphub.crud import progress as progress_crud
from swaphub.crud.guarded import guarded_update
from swaphub.exceptions import InvalidStateError, ValidationError
from swaphub.models.progress import ProgressStatus, SessionProgress
from swaphub.models.session import SessionStatus
from swaphub.services.common import require_party
from swaphub.services.session_service import load_session, lost_race
from swaphub.utils.timeutil import resolve_now, to_naive_utc

logger = logging.getLogger(__name__)

NOTES_MAX_LENGTH = 2000


def _default_progress(session_id: int, user_id: int) -> SessionProgress:
    # Transient placeholder for a party who has not reported yet
    return SessionProgress(
        session_id=session_id,
        user_id=user_id,
        completion_percentage=0,
        status=ProgressStatus.NOT_STARTED.value,
        version=0,
    )


def get_session_progress(db: Session, *, session_id: int, viewer_id: int) -> List[SessionProgress]:
    """One record per party, proposer first."""
    session = load_session(db, session_id)
    require_party(session, viewer_id, "session")

    stored = {p.user_id: p for p in progress_crud.list_session_progress(db, session_id)}
    return [
        stored.get(user_id) or _default_progress(session_id, user_id)
        for user_id in (session.user1_id, session.user2_id)
    ]


def update_progress(
    db: Session,
    *,
    session_id: int,
    by: int,
    completion_percentage: Optional[int] = None,
    status: Optional[str] = None,
    notes: Optional[str] = None,
    due_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> SessionProgress:
    """
    Update the caller's own progress record, creating it if needed.

    ``notes`` set to an empty string clears them; ``None`` leaves every
    field untouched.
    """
    changes = {}
    if completion_percentage is not None:
        if (
            isinstance(completion_percentage, bool)
            or not isinstance(completion_percentage, int)
            or not 0 <= completion_percentage <= 100
        ):
            raise ValidationError("Completion percentage must be between 0 and 100")
        changes["completion_percentage"] = completion_percentage
    if status is not None:
        if status not in {s.value for s in ProgressStatus}:
            raise ValidationError(
                "Status must be one of: " + ", ".join(s.value for s in ProgressStatus)
            )
        changes["status"] = status
    if notes is not None:
        cleaned = notes.strip()
        if len(cleaned) > NOTES_MAX_LENGTH:
            raise ValidationError(f"Notes must be {NOTES_MAX_LENGTH} characters or less")
        changes["notes"] = cleaned or None
    if due_date is not None:
        changes["due_date"] = to_naive_utc(due_date)
    if not changes:
        raise ValidationError("No valid update data provided")
    now = resolve_now(now)

    session = load_session(db, session_id)
    require_party(session, by, "session")
    if session.status != SessionStatus.ACTIVE:
        raise InvalidStateError("Session must be active to update progress")

    progress = progress_crud.get_progress(db, session_id, by)
    if progress is None:
        progress = SessionProgress(session_id=session_id, user_id=by, version=1, **changes)
        db.add(progress)
        try:
            db.commit()
        except IntegrityError:
            # The other request created this party's record first
            db.rollback()
            raise InvalidStateError("Progress was modified by another request; reload and try again")
    else:
        changes["updated_at"] = now
        if not guarded_update(
            db,
            progress,
            state_field="status",
            expected_state=progress.status,
            values=changes,
        ):
            raise lost_race(db, "Progress")
        db.commit()
    db.refresh(progress)

    logger.info(
        "Progress on session %s for user %s: %s%% (%s)",
        session_id,
        by,
        progress.completion_percentage,
        progress.status,
    )
    return progress
