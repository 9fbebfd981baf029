# swaphub/schemas/meeting.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from swaphub.schemas.common import Ref, ref_for


class MeetingCreate(BaseModel):
    receiver_id: int
    description: str
    meeting_time: datetime


class MeetingRespond(BaseModel):
    action: str = Field(..., description="accept or reject")


class MeetingCancel(BaseModel):
    reason: str


class MeetingResponse(BaseModel):
    id: int
    sender: Ref
    receiver: Ref
    description: str
    meeting_time: datetime
    state: str
    phase: Optional[str] = None
    responded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, meeting, phase: Optional[str] = None) -> "MeetingResponse":
        return cls(
            id=meeting.id,
            sender=ref_for(meeting.sender, meeting.sender_id),
            receiver=ref_for(meeting.receiver, meeting.receiver_id),
            description=meeting.description,
            meeting_time=meeting.meeting_time,
            state=meeting.state,
            phase=phase,
            responded_at=meeting.responded_at,
            created_at=meeting.created_at,
        )


class MeetingBuckets(BaseModel):
    pending: List[MeetingResponse] = Field(default_factory=list)
    upcoming: List[MeetingResponse] = Field(default_factory=list)
    happening: List[MeetingResponse] = Field(default_factory=list)
    past: List[MeetingResponse] = Field(default_factory=list)
    cancelled: List[MeetingResponse] = Field(default_factory=list)


class CancellationResponse(BaseModel):
    id: int
    meeting_id: int
    cancelled_by: Ref
    reason: str
    cancelled_at: datetime
    acknowledged: bool
    acknowledged_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, cancellation) -> "CancellationResponse":
        return cls(
            id=cancellation.id,
            meeting_id=cancellation.meeting_id,
            cancelled_by=ref_for(cancellation.canceller, cancellation.cancelled_by),
            reason=cancellation.reason,
            cancelled_at=cancellation.cancelled_at,
            acknowledged=bool(cancellation.acknowledged),
            acknowledged_at=cancellation.acknowledged_at,
        )


class MeetingCancelResponse(BaseModel):
    meeting: MeetingResponse
    cancellation: CancellationResponse


class CompleteElapsedResponse(BaseModel):
    completed: int
