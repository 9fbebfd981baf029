# swaphub/services/work_service.py
"""
Work Submission Service

While a session is active either party may hand work to the other. The
receiver accepts it (optionally rating it and leaving a remark) or rejects
it with a reason. The provider may withdraw work nobody has answered yet.

    pending --accept (receiver)--> accepted
    pending --reject (receiver)--> rejected
    pending --withdraw (provider)--> deleted
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from swaphub.crud import work as work_crud
from swaphub.crud.guarded import guarded_update
from swaphub.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from swaphub.models.session import SessionStatus
from swaphub.models.work import Work, WorkStatus
from swaphub.services import notification_service
from swaphub.services.common import display_name, require_party, require_text, session_link
from swaphub.services.session_service import load_session, lost_race
from swaphub.utils.timeutil import resolve_now

logger = logging.getLogger(__name__)

WORK_ACTIONS = ("accept", "reject")
DESCRIPTION_MAX_LENGTH = 2000
URL_MAX_LENGTH = 500
REMARK_MAX_LENGTH = 500


def _require_active(session, doing: str) -> None:
    if session.status != SessionStatus.ACTIVE:
        raise InvalidStateError(f"Session must be active to {doing}")


def _optional_text(value: Optional[str], field: str, max_length: int) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return require_text(value, field, max_length)


def _load_work(db: Session, work_id: int) -> Work:
    work = work_crud.get_work(db, work_id)
    if not work:
        raise NotFoundError("Work not found")
    return work


def submit_work(
    db: Session,
    *,
    session_id: int,
    by: int,
    description: str,
    work_url: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Work:
    """Hand work to the counterpart of an active session."""
    cleaned = require_text(description, "Work description", DESCRIPTION_MAX_LENGTH)
    url = _optional_text(work_url, "Work URL", URL_MAX_LENGTH)
    now = resolve_now(now)

    session = load_session(db, session_id)
    require_party(session, by, "session")
    _require_active(session, "submit work")

    work = Work(
        session_id=session_id,
        provider_id=by,
        receiver_id=session.counterpart_of(by),
        description=cleaned,
        work_url=url,
        submitted_at=now,
        status=WorkStatus.PENDING.value,
        version=1,
    )
    db.add(work)
    db.commit()
    db.refresh(work)

    logger.info("Work %s submitted on session %s by user %s", work.id, session_id, by)

    notification_service.notify(
        db,
        recipient_id=work.receiver_id,
        actor_id=by,
        event_type="work_submitted",
        message=f"{display_name(db, by)} submitted work for your skill exchange.",
        deep_link=session_link(session_id),
        session_id=session_id,
    )
    return work


def respond_to_work(
    db: Session,
    *,
    work_id: int,
    by: int,
    action: str,
    rejection_reason: Optional[str] = None,
    rating: Optional[int] = None,
    remark: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Work:
    """
    Receiver accepts or rejects pending work.

    Raises:
        ValidationError: unknown action, rating outside 1-5, rating or remark
            on a rejection
        AuthorizationError: caller is not the receiver
        InvalidStateError: work already answered or session no longer active
    """
    if action not in WORK_ACTIONS:
        raise ValidationError('Action must be either "accept" or "reject"')
    if rating is not None and (isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5):
        raise ValidationError("Rating must be an integer between 1 and 5")
    if action == "reject" and (rating is not None or remark):
        raise ValidationError("Rating and remark apply only when accepting work")
    now = resolve_now(now)

    work = _load_work(db, work_id)
    require_party(work, by, "work")
    if by != work.receiver_id:
        raise AuthorizationError("Only the work receiver can accept or reject this work")
    if work.status != WorkStatus.PENDING:
        raise InvalidStateError(f"Work is already {work.status}")
    _require_active(load_session(db, work.session_id), "respond to work")

    if action == "accept":
        values = {
            "status": WorkStatus.ACCEPTED.value,
            "rating": rating,
            "remark": _optional_text(remark, "Remark", REMARK_MAX_LENGTH),
        }
    else:
        values = {
            "status": WorkStatus.REJECTED.value,
            "rejection_reason": _optional_text(rejection_reason, "Rejection reason", REMARK_MAX_LENGTH),
        }
    values.update(responded_at=now, updated_at=now)

    if not guarded_update(
        db,
        work,
        state_field="status",
        expected_state=WorkStatus.PENDING.value,
        values=values,
    ):
        raise lost_race(db, "Work")

    db.commit()
    db.refresh(work)

    logger.info("Work %s: pending -> %s by user %s", work_id, work.status, by)

    verb = "accepted" if action == "accept" else "rejected"
    notification_service.notify(
        db,
        recipient_id=work.provider_id,
        actor_id=by,
        event_type=f"work_{verb}",
        message=f"{display_name(db, by)} {verb} the work you submitted.",
        deep_link=session_link(work.session_id),
        session_id=work.session_id,
    )
    return work


def withdraw_work(db: Session, *, work_id: int, by: int) -> None:
    """Provider deletes work that has not been answered yet."""
    work = _load_work(db, work_id)
    require_party(work, by, "work")
    if by != work.provider_id:
        raise AuthorizationError("Only the work provider can withdraw this work")
    if work.status != WorkStatus.PENDING:
        raise InvalidStateError("Cannot withdraw work that has already been responded to")

    session_id = work.session_id
    if not work_crud.delete_pending_work(db, work):
        raise lost_race(db, "Work")
    db.expunge(work)
    db.commit()
    logger.info("Work %s on session %s withdrawn by user %s", work_id, session_id, by)


def get_work(db: Session, *, work_id: int, viewer_id: int) -> Work:
    work = _load_work(db, work_id)
    require_party(work, viewer_id, "work")
    return work


def list_session_work(
    db: Session,
    *,
    session_id: int,
    viewer_id: int,
    status: Optional[str] = None,
) -> List[Work]:
    session = load_session(db, session_id)
    require_party(session, viewer_id, "session")
    if status is not None and status not in {s.value for s in WorkStatus}:
        raise ValidationError("Status must be 'pending', 'accepted' or 'rejected'")
    return work_crud.list_session_work(db, session_id, status)
