# swaphub/crud/review.py
"""
Review CRUD Operations
Core database operations for post-completion reviews
"""

from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from swaphub.models.review import Review


# ======================
# REVIEW CRUD
# ======================

def create_review(
    db: Session,
    session_id: int,
    reviewer_id: int,
    reviewee_id: int,
    skill_id: int,
    rating: int,
    comment: str,
    review_type: str,
) -> Review:
    """
    Insert a review row and flush it.

    Args:
        db: Database session
        session_id: Completed session being reviewed
        reviewer_id: Party writing the review
        reviewee_id: Counterpart being rated
        skill_id: Skill the reviewee contributed
        rating: Rating value (1-5)
        comment: Review text
        review_type: 'skill_teaching' or 'skill_learning'

    Returns:
        Created Review object

    Raises:
        sqlalchemy.exc.IntegrityError: If the reviewer already reviewed this session
    """
    review = Review(
        session_id=session_id,
        reviewer_id=reviewer_id,
        reviewee_id=reviewee_id,
        skill_id=skill_id,
        rating=rating,
        comment=comment,
        review_type=review_type,
    )

    db.add(review)
    db.flush()
    return review


def get_review_by_reviewer(db: Session, session_id: int, reviewer_id: int) -> Optional[Review]:
    """Get the review a party left on a session, if any."""
    return db.query(Review).filter(
        Review.session_id == session_id,
        Review.reviewer_id == reviewer_id,
    ).first()


def get_reviews_by_session(db: Session, session_id: int) -> List[Review]:
    return (
        db.query(Review)
        .filter(Review.session_id == session_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )


def _filtered(db: Session, *, user_id=None, skill_id=None, session_id=None):
    query = db.query(Review)
    if user_id is not None:
        query = query.filter(Review.reviewee_id == user_id)
    if skill_id is not None:
        query = query.filter(Review.skill_id == skill_id)
    if session_id is not None:
        query = query.filter(Review.session_id == session_id)
    return query


def get_matching_reviews(
    db: Session,
    *,
    user_id: Optional[int] = None,
    skill_id: Optional[int] = None,
    session_id: Optional[int] = None,
    limit: int = 50,
) -> List[Review]:
    """
    Reviews matching the given target, most recent first.

    A user target matches reviews the user *received*.
    """
    return (
        _filtered(db, user_id=user_id, skill_id=skill_id, session_id=session_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .limit(limit)
        .all()
    )


def get_rating_stats(
    db: Session,
    *,
    user_id: Optional[int] = None,
    skill_id: Optional[int] = None,
    session_id: Optional[int] = None,
) -> Dict[str, object]:
    """Average, count and per-star distribution computed in the database."""
    query = _filtered(db, user_id=user_id, skill_id=skill_id, session_id=session_id)
    average, total = query.with_entities(
        func.avg(Review.rating),
        func.count(Review.id),
    ).one()

    distribution = {star: 0 for star in range(1, 6)}
    rows = (
        query.with_entities(Review.rating, func.count(Review.id))
        .group_by(Review.rating)
        .all()
    )
    for rating, count in rows:
        distribution[int(rating)] = int(count)

    return {
        "average_rating": float(average) if average is not None else 0.0,
        "total_reviews": int(total or 0),
        "rating_distribution": distribution,
    }
