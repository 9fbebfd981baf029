# swaphub/models/review.py
from enum import Enum

from sqlalchemy import (
    Column, Integer, String, Text, ForeignKey, TIMESTAMP, func,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from swaphub.database import Base


class ReviewType(str, Enum):
    SKILL_TEACHING = "skill_teaching"
    SKILL_LEARNING = "skill_learning"


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reviewee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    skill_id = Column(Integer, ForeignKey("skills.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False)
    review_type = Column(String(20), nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.now())

    # Constraints
    __table_args__ = (
        CheckConstraint('rating >= 1 AND rating <= 5', name='check_rating_range'),
        UniqueConstraint('session_id', 'reviewer_id', name='uq_review_session_reviewer'),
    )

    # Relationships
    session = relationship("Session", back_populates="reviews")
    reviewer = relationship("User", foreign_keys=[reviewer_id])
    reviewee = relationship("User", foreign_keys=[reviewee_id])
    skill = relationship("Skill")
