# swaphub/api/meeting.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from swaphub.api.deps import get_cache
from swaphub.database import get_db
from swaphub.exceptions import AuthorizationError
from swaphub.models.user import User
from swaphub.schemas.meeting import (
    CancellationResponse,
    CompleteElapsedResponse,
    MeetingBuckets,
    MeetingCancel,
    MeetingCancelResponse,
    MeetingCreate,
    MeetingRespond,
    MeetingResponse,
)
from swaphub.services import meeting_service
from swaphub.services.cache_service import CacheService, meeting_rows_key
from swaphub.utils.security import get_current_user
from swaphub.utils.timeutil import utcnow

router = APIRouter(prefix="/meetings", tags=["meetings"])


@router.post("/", response_model=MeetingResponse, status_code=status.HTTP_201_CREATED)
def create_meeting(
    payload: MeetingCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    meeting = meeting_service.create_meeting(
        db,
        sender_id=current_user.id,
        receiver_id=payload.receiver_id,
        description=payload.description,
        meeting_time=payload.meeting_time,
        cache=cache,
    )
    return MeetingResponse.from_model(meeting, phase=meeting_service.MeetingPhase.PENDING.value)


@router.get("/my", response_model=MeetingBuckets)
def get_my_meetings(
    with_user: Optional[int] = Query(None, description="Only meetings with this user"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """The current user's meetings grouped by phase at request time."""
    def load_rows():
        meetings = meeting_service.list_user_meetings(
            db, user_id=current_user.id, other_user_id=with_user
        )
        return [MeetingResponse.from_model(m) for m in meetings]

    if with_user is not None:
        rows = load_rows()
    else:
        rows = cache.get_or_load(meeting_rows_key(current_user.id), load_rows)

    buckets = meeting_service.bucket_meetings(rows, utcnow())
    return MeetingBuckets(**{
        phase: [row.model_copy(update={"phase": phase}) for row in phase_rows]
        for phase, phase_rows in buckets.items()
    })


@router.patch("/{meeting_id}/respond", response_model=MeetingResponse)
def respond_to_meeting(
    meeting_id: int,
    payload: MeetingRespond,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    now = utcnow()
    meeting = meeting_service.respond_to_meeting(
        db, meeting_id=meeting_id, by=current_user.id, action=payload.action, cache=cache, now=now
    )
    return MeetingResponse.from_model(meeting, phase=meeting_service.meeting_phase(meeting, now).value)


@router.post("/{meeting_id}/cancel", response_model=MeetingCancelResponse)
def cancel_meeting(
    meeting_id: int,
    payload: MeetingCancel,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    meeting, cancellation = meeting_service.cancel_meeting(
        db, meeting_id=meeting_id, by=current_user.id, reason=payload.reason, cache=cache
    )
    return MeetingCancelResponse(
        meeting=MeetingResponse.from_model(meeting, phase=meeting_service.MeetingPhase.CANCELLED.value),
        cancellation=CancellationResponse.from_model(cancellation),
    )


# ======================
# CANCELLATION NOTICES
# ======================
@router.get("/cancellations/unacknowledged", response_model=List[CancellationResponse])
def get_unacknowledged_cancellations(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    cancellations = meeting_service.list_unacknowledged_cancellations(db, user_id=current_user.id)
    return [CancellationResponse.from_model(c) for c in cancellations]


@router.patch("/cancellations/{cancellation_id}/acknowledge", response_model=CancellationResponse)
def acknowledge_cancellation(
    cancellation_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    cancellation = meeting_service.acknowledge_cancellation(
        db, cancellation_id=cancellation_id, by=current_user.id
    )
    return CancellationResponse.from_model(cancellation)


# ======================
# MAINTENANCE
# ======================
@router.post("/maintenance/complete-elapsed", response_model=CompleteElapsedResponse)
def complete_elapsed_meetings(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Mark accepted meetings whose protected window has passed as completed (admin only)."""
    if current_user.role != "admin":
        raise AuthorizationError("Admin access required")
    completed = meeting_service.complete_elapsed_meetings(db, cache=cache)
    return CompleteElapsedResponse(completed=completed)
