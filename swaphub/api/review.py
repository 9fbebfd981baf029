# swaphub/api/review.py
"""
Review & Rating API Router

Endpoints:
- POST /reviews/ - Submit a review for a completed session
- GET /reviews/rating - Aggregate rating for a user, skill or session
- GET /reviews/session/{session_id} - Reviews left on a session
- GET /reviews/eligibility/{session_id} - Check review eligibility
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from swaphub.api.deps import get_cache
from swaphub.database import get_db
from swaphub.models.user import User
from swaphub.schemas.review import (
    AggregateRatingResponse,
    ReviewCreate,
    ReviewEligibilityResponse,
    ReviewResponse,
)
from swaphub.services import review_service
from swaphub.services.cache_service import CacheService, rating_key
from swaphub.utils.security import get_current_user

router = APIRouter(prefix="/reviews", tags=["reviews"])


# ======================
# SUBMIT REVIEW
# ======================
@router.post("/", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
def submit_review(
    review: ReviewCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """
    Submit a review for a completed session.

    Requirements:
    - Session must be completed
    - Caller must be a participant and rate the other participant
    - The rated skill is the one the other participant contributed
    - Only one review per participant per session
    - Rating must be 1-5, comment non-empty
    """
    created = review_service.submit_review(
        db,
        session_id=review.session_id,
        reviewer_id=current_user.id,
        reviewee_id=review.reviewee_id,
        skill_id=review.skill_id,
        rating=review.rating,
        comment=review.comment,
        review_type=review.review_type,
        cache=cache,
    )
    return ReviewResponse.from_model(created)


# ======================
# READS
# ======================
@router.get("/rating", response_model=AggregateRatingResponse)
def get_rating(
    user_id: Optional[int] = Query(None),
    skill_id: Optional[int] = Query(None),
    session_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Mean rating and recent reviews for exactly one of user, skill or session."""
    def load():
        result = review_service.get_aggregate_rating(
            db, user_id=user_id, skill_id=skill_id, session_id=session_id
        )
        result["reviews"] = [ReviewResponse.from_model(r) for r in result["reviews"]]
        return AggregateRatingResponse(**result)

    return cache.get_or_load(rating_key(user_id, skill_id, session_id), load)


@router.get("/session/{session_id}", response_model=List[ReviewResponse])
def get_session_reviews(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    reviews = review_service.get_session_reviews(db, session_id)
    return [ReviewResponse.from_model(r) for r in reviews]


@router.get("/eligibility/{session_id}", response_model=ReviewEligibilityResponse)
def check_eligibility(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Check whether the current user can review a session"""
    result = review_service.check_review_eligibility(
        db, session_id=session_id, reviewer_id=current_user.id
    )
    return ReviewEligibilityResponse(**result)
