# swaphub/schemas/session.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from swaphub.schemas.common import Ref, ref_for

# ======================
# SESSION REQUEST MODELS
# ======================

class SessionTerms(BaseModel):
    skill1_id: int = Field(..., description="Skill offered by the proposer")
    skill2_id: int = Field(..., description="Skill offered by the counterpart")
    description1: str
    description2: str
    start_date: datetime
    expected_end_date: datetime


class SessionCreate(SessionTerms):
    counterpart_id: int


class CounterOfferCreate(SessionTerms):
    message: str


class CounterOfferResolve(BaseModel):
    action: str = Field(..., description="accept or reject")


class CompletionResponseRequest(BaseModel):
    action: str = Field(..., description="approve or reject")
    rejection_reason: Optional[str] = None


# ======================
# SESSION RESPONSE MODELS
# ======================

class SessionResponse(BaseModel):
    id: int
    user1: Ref
    user2: Ref
    skill1: Ref
    skill2: Ref
    description1: str
    description2: str
    start_date: datetime
    expected_end_date: datetime
    status: str
    is_amended: bool = False
    version: int

    rejected_by: Optional[int] = None
    rejected_at: Optional[datetime] = None
    canceled_by: Optional[int] = None
    canceled_at: Optional[datetime] = None

    completion_requested_by: Optional[int] = None
    completion_requested_at: Optional[datetime] = None
    completion_approved_by: Optional[int] = None
    completion_approved_at: Optional[datetime] = None
    completion_rejected_by: Optional[int] = None
    completion_rejected_at: Optional[datetime] = None
    completion_rejection_reason: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_model(cls, session) -> "SessionResponse":
        return cls(
            id=session.id,
            user1=ref_for(session.user1, session.user1_id),
            user2=ref_for(session.user2, session.user2_id),
            skill1=ref_for(session.skill1, session.skill1_id),
            skill2=ref_for(session.skill2, session.skill2_id),
            description1=session.description1,
            description2=session.description2,
            start_date=session.start_date,
            expected_end_date=session.expected_end_date,
            status=session.status,
            is_amended=bool(session.is_amended),
            version=session.version,
            rejected_by=session.rejected_by,
            rejected_at=session.rejected_at,
            canceled_by=session.canceled_by,
            canceled_at=session.canceled_at,
            completion_requested_by=session.completion_requested_by,
            completion_requested_at=session.completion_requested_at,
            completion_approved_by=session.completion_approved_by,
            completion_approved_at=session.completion_approved_at,
            completion_rejected_by=session.completion_rejected_by,
            completion_rejected_at=session.completion_rejected_at,
            completion_rejection_reason=session.completion_rejection_reason,
            created_at=session.created_at,
            updated_at=session.updated_at,
        )


class CounterOfferResponse(BaseModel):
    id: int
    original_session_id: int
    offered_by: Ref
    skill1: Ref
    skill2: Ref
    description1: str
    description2: str
    start_date: datetime
    expected_end_date: datetime
    counter_offer_message: str
    status: str
    responded_by: Optional[int] = None
    responded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, offer) -> "CounterOfferResponse":
        return cls(
            id=offer.id,
            original_session_id=offer.original_session_id,
            offered_by=ref_for(offer.offered_by, offer.counter_offered_by),
            skill1=ref_for(None, offer.skill1_id),
            skill2=ref_for(None, offer.skill2_id),
            description1=offer.description1,
            description2=offer.description2,
            start_date=offer.start_date,
            expected_end_date=offer.expected_end_date,
            counter_offer_message=offer.counter_offer_message,
            status=offer.status,
            responded_by=offer.responded_by,
            responded_at=offer.responded_at,
            created_at=offer.created_at,
        )


class CounterOfferListResponse(BaseModel):
    session_id: int
    counter_offers: List[CounterOfferResponse]
