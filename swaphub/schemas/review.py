# swaphub/schemas/review.py
"""
Review & Rating Pydantic Schemas
Request/response models for the review gate
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from swaphub.schemas.common import Ref, ref_for


# ======================
# REVIEW SCHEMAS
# ======================

class ReviewCreate(BaseModel):
    """Schema for submitting a review; ranges are checked by the review service"""
    session_id: int = Field(..., description="Completed session identifier")
    reviewee_id: int = Field(..., description="The other participant")
    skill_id: int = Field(..., description="Skill the reviewee contributed")
    rating: int = Field(..., description="Rating from 1 to 5 stars")
    comment: str = Field(..., description="Review comment")
    review_type: str = Field(..., description="'skill_teaching' or 'skill_learning'")


class ReviewResponse(BaseModel):
    """Review response for API"""
    id: int
    session_id: int
    reviewer: Ref
    reviewee: Ref
    skill: Ref
    rating: int
    comment: str
    review_type: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_model(cls, review) -> "ReviewResponse":
        return cls(
            id=review.id,
            session_id=review.session_id,
            reviewer=ref_for(review.reviewer, review.reviewer_id),
            reviewee=ref_for(review.reviewee, review.reviewee_id),
            skill=ref_for(review.skill, review.skill_id),
            rating=review.rating,
            comment=review.comment,
            review_type=review.review_type,
            created_at=review.created_at,
        )


# ======================
# RATING SCHEMAS
# ======================

class AggregateRatingResponse(BaseModel):
    """Mean rating over one target plus the matching reviews"""
    user_id: Optional[int] = None
    skill_id: Optional[int] = None
    session_id: Optional[int] = None
    average_rating: float = Field(..., description="Average rating (0 when no reviews)")
    total_reviews: int
    rating_distribution: Dict[int, int] = Field(..., description="Count of each rating (1-5)")
    reviews: List[ReviewResponse]


# ======================
# ELIGIBILITY CHECK SCHEMA
# ======================

class ReviewEligibilityResponse(BaseModel):
    can_review: bool = Field(..., description="Whether the caller can review this session")
    reason: str = Field(..., description="Reason (error message or 'Can review')")
    session_id: int
