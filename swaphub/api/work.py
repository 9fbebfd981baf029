# swaphub/api/work.py
"""
Work & Progress API

Endpoints:
- POST /works/ - Submit work on an active session
- GET /works/session/{session_id} - Work handed over in a session
- GET /works/{work_id} - A single submission
- PATCH /works/{work_id}/respond - Receiver accepts or rejects
- DELETE /works/{work_id} - Provider withdraws unanswered work
- GET /session-progress/{session_id} - Both parties' progress
- PATCH /session-progress/{session_id} - Update the caller's own progress
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from swaphub.database import get_db
from swaphub.models.user import User
from swaphub.schemas.common import MessageResponse
from swaphub.schemas.work import (
    ProgressResponse,
    ProgressUpdate,
    WorkCreate,
    WorkRespond,
    WorkResponse,
)
from swaphub.services import progress_service, work_service
from swaphub.utils.security import get_current_user

router = APIRouter(prefix="/works", tags=["works"])
progress_router = APIRouter(prefix="/session-progress", tags=["progress"])


# ======================
# WORK
# ======================
@router.post("/", response_model=WorkResponse, status_code=status.HTTP_201_CREATED)
def submit_work(
    payload: WorkCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    work = work_service.submit_work(
        db,
        session_id=payload.session_id,
        by=current_user.id,
        description=payload.description,
        work_url=payload.work_url,
    )
    return WorkResponse.from_model(work)


@router.get("/session/{session_id}", response_model=List[WorkResponse])
def get_session_work(
    session_id: int,
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    works = work_service.list_session_work(
        db, session_id=session_id, viewer_id=current_user.id, status=status_filter
    )
    return [WorkResponse.from_model(w) for w in works]


@router.get("/{work_id}", response_model=WorkResponse)
def get_work(
    work_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return WorkResponse.from_model(work_service.get_work(db, work_id=work_id, viewer_id=current_user.id))


@router.patch("/{work_id}/respond", response_model=WorkResponse)
def respond_to_work(
    work_id: int,
    payload: WorkRespond,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    work = work_service.respond_to_work(
        db,
        work_id=work_id,
        by=current_user.id,
        action=payload.action,
        rejection_reason=payload.rejection_reason,
        rating=payload.rating,
        remark=payload.remark,
    )
    return WorkResponse.from_model(work)


@router.delete("/{work_id}", response_model=MessageResponse)
def withdraw_work(
    work_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    work_service.withdraw_work(db, work_id=work_id, by=current_user.id)
    return MessageResponse(message="Work withdrawn")


# ======================
# PROGRESS
# ======================
@progress_router.get("/{session_id}", response_model=List[ProgressResponse])
def get_session_progress(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    records = progress_service.get_session_progress(db, session_id=session_id, viewer_id=current_user.id)
    return [ProgressResponse.from_model(p) for p in records]


@progress_router.patch("/{session_id}", response_model=ProgressResponse)
def update_progress(
    session_id: int,
    payload: ProgressUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    progress = progress_service.update_progress(
        db,
        session_id=session_id,
        by=current_user.id,
        completion_percentage=payload.completion_percentage,
        status=payload.status,
        notes=payload.notes,
        due_date=payload.due_date,
    )
    return ProgressResponse.from_model(progress)
