# swaphub/services/review_service.py
"""
Review Service Layer
Business logic for post-completion reviews and rating aggregates
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from swaphub.config import settings
from swaphub.crud import review as review_crud
from swaphub.crud import session as session_crud
from swaphub.exceptions import (
    AuthorizationError,
    DuplicateReviewError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from swaphub.models.review import Review, ReviewType
from swaphub.models.session import SessionStatus
from swaphub.services import notification_service
from swaphub.services.cache_service import CacheService
from swaphub.services.common import display_name, require_text, session_link

logger = logging.getLogger(__name__)


# ======================
# VALIDATION
# ======================

def _validate_review_input(
    rating: Any,
    comment: Optional[str],
    review_type: str,
    comment_max_length: int,
) -> str:
    # bool is an int subclass; a checkbox value is not a rating
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError("Rating must be an integer between 1 and 5")
    if not (1 <= rating <= 5):
        raise ValidationError("Rating must be an integer between 1 and 5")
    if review_type not in {t.value for t in ReviewType}:
        raise ValidationError("Review type must be 'skill_teaching' or 'skill_learning'")
    return require_text(comment, "Comment", comment_max_length)


def _eligibility(db: Session, session_id: int, reviewer_id: int) -> Tuple[bool, str]:
    session = session_crud.get_session(db, session_id)
    if not session:
        return False, "Session not found"
    if not session.is_party(reviewer_id):
        return False, "You are not a participant in this session"
    if session.status != SessionStatus.COMPLETED:
        return False, "Can only review completed sessions"
    if review_crud.get_review_by_reviewer(db, session_id, reviewer_id):
        return False, "You have already reviewed this session"
    return True, "Can review"


# ======================
# REVIEW SUBMISSION
# ======================

def submit_review(
    db: Session,
    *,
    session_id: int,
    reviewer_id: int,
    reviewee_id: int,
    skill_id: int,
    rating: int,
    comment: str,
    review_type: str,
    cache: Optional[CacheService] = None,
    comment_max_length: Optional[int] = None,
) -> Review:
    """
    Submit a review for a completed session.

    The reviewer rates the skill they *received*, i.e. the one the reviewee
    contributed to the exchange. Each party may review a session once.

    Raises:
        ValidationError: rating out of range, empty or oversized comment,
            unknown review type, wrong reviewee or skill
        NotFoundError: session does not exist
        InvalidStateError: session is not completed
        AuthorizationError: reviewer is not a party
        DuplicateReviewError: reviewer already reviewed this session
    """
    max_length = comment_max_length or settings.REVIEW_COMMENT_MAX_LENGTH
    cleaned_comment = _validate_review_input(rating, comment, review_type, max_length)

    session = session_crud.get_session(db, session_id)
    if not session:
        raise NotFoundError("Session not found")
    if session.status != SessionStatus.COMPLETED:
        raise InvalidStateError("Can only review completed sessions")
    if not session.is_party(reviewer_id):
        raise AuthorizationError("You are not a participant in this session")
    if reviewee_id != session.counterpart_of(reviewer_id):
        raise ValidationError("You can only review the other participant in this session")
    if skill_id != session.skill_offered_by(reviewee_id):
        raise ValidationError("You can only rate the skill your counterpart contributed")
    if review_crud.get_review_by_reviewer(db, session_id, reviewer_id):
        raise DuplicateReviewError("You have already reviewed this session")

    try:
        review = review_crud.create_review(
            db=db,
            session_id=session_id,
            reviewer_id=reviewer_id,
            reviewee_id=reviewee_id,
            skill_id=skill_id,
            rating=rating,
            comment=cleaned_comment,
            review_type=review_type,
        )
        db.commit()
    except IntegrityError:
        # A concurrent submission won the unique (session, reviewer) slot
        db.rollback()
        raise DuplicateReviewError("You have already reviewed this session")
    db.refresh(review)

    logger.info(
        "Review %s submitted on session %s by user %s (rating=%s)",
        review.id,
        session_id,
        reviewer_id,
        rating,
    )
    if cache is not None:
        cache.invalidate_pattern("reviews:*")

    notification_service.notify(
        db,
        recipient_id=reviewee_id,
        actor_id=reviewer_id,
        event_type="review_received",
        message=f"{display_name(db, reviewer_id)} left you a {rating}-star review.",
        deep_link=session_link(session_id),
        session_id=session_id,
    )
    return review


# ======================
# REVIEW RETRIEVAL
# ======================

def get_aggregate_rating(
    db: Session,
    *,
    user_id: Optional[int] = None,
    skill_id: Optional[int] = None,
    session_id: Optional[int] = None,
    limit: int = 50,
) -> Dict[str, Any]:
    """
    Mean rating and matching reviews for exactly one target.

    Args:
        user_id: Reviews the user received
        skill_id: Reviews of a skill
        session_id: Reviews left on a session
        limit: Maximum raw reviews returned (stats cover all matches)

    Returns:
        Dictionary with average_rating, total_reviews, rating_distribution
        and reviews (most recent first)
    """
    targets = [t for t in (user_id, skill_id, session_id) if t is not None]
    if len(targets) != 1:
        raise ValidationError("Specify exactly one of user_id, skill_id or session_id")

    stats = review_crud.get_rating_stats(db, user_id=user_id, skill_id=skill_id, session_id=session_id)
    reviews = review_crud.get_matching_reviews(
        db, user_id=user_id, skill_id=skill_id, session_id=session_id, limit=limit
    )
    return {
        "user_id": user_id,
        "skill_id": skill_id,
        "session_id": session_id,
        "average_rating": round(stats["average_rating"], 2),
        "total_reviews": stats["total_reviews"],
        "rating_distribution": stats["rating_distribution"],
        "reviews": reviews,
    }


def get_session_reviews(db: Session, session_id: int) -> List[Review]:
    if not session_crud.get_session(db, session_id):
        raise NotFoundError("Session not found")
    return review_crud.get_reviews_by_session(db, session_id)


def check_review_eligibility(db: Session, *, session_id: int, reviewer_id: int) -> Dict[str, Any]:
    """Whether a party can review a session, without raising."""
    can_review, reason = _eligibility(db, session_id, reviewer_id)
    return {
        "can_review": can_review,
        "reason": reason,
        "session_id": session_id,
    }
