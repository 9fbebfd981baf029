# swaphub/schemas/work.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from swaphub.schemas.common import Ref, ref_for


# ======================
# WORK
# ======================

class WorkCreate(BaseModel):
    session_id: int
    description: str
    work_url: Optional[str] = None


class WorkRespond(BaseModel):
    action: str = Field(..., description="accept or reject")
    rejection_reason: Optional[str] = None
    rating: Optional[int] = None
    remark: Optional[str] = None


class WorkResponse(BaseModel):
    id: int
    session_id: int
    provider: Ref
    receiver: Ref
    description: str
    work_url: Optional[str] = None
    submitted_at: datetime
    status: str
    responded_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    rating: Optional[int] = None
    remark: Optional[str] = None

    @classmethod
    def from_model(cls, work) -> "WorkResponse":
        return cls(
            id=work.id,
            session_id=work.session_id,
            provider=ref_for(work.provider, work.provider_id),
            receiver=ref_for(work.receiver, work.receiver_id),
            description=work.description,
            work_url=work.work_url,
            submitted_at=work.submitted_at,
            status=work.status,
            responded_at=work.responded_at,
            rejection_reason=work.rejection_reason,
            rating=work.rating,
            remark=work.remark,
        )


# ======================
# PROGRESS
# ======================

class ProgressUpdate(BaseModel):
    completion_percentage: Optional[int] = None
    status: Optional[str] = None
    notes: Optional[str] = None
    due_date: Optional[datetime] = None


class ProgressResponse(BaseModel):
    session_id: int
    user: Ref
    completion_percentage: int
    status: str
    notes: Optional[str] = None
    due_date: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, progress) -> "ProgressResponse":
        return cls(
            session_id=progress.session_id,
            user=ref_for(progress.user, progress.user_id),
            completion_percentage=progress.completion_percentage,
            status=progress.status,
            notes=progress.notes,
            due_date=progress.due_date,
            updated_at=progress.updated_at,
        )
