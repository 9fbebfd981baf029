# swaphub/models/session.py
from enum import Enum

from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, TIMESTAMP, CheckConstraint, func
from sqlalchemy.orm import relationship
from swaphub.database import Base


class SessionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELED = "canceled"
    REJECTED = "rejected"


class Session(Base):
    """
    Two-party skill exchange. user1 proposed it and offers skill1,
    user2 received the proposal and offers skill2.
    """
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    user1_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user2_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Terms
    skill1_id = Column(Integer, ForeignKey("skills.id"), nullable=False)
    skill2_id = Column(Integer, ForeignKey("skills.id"), nullable=False)
    description1 = Column(Text, nullable=False)
    description2 = Column(Text, nullable=False)
    start_date = Column(TIMESTAMP, nullable=False)
    expected_end_date = Column(TIMESTAMP, nullable=False)

    status = Column(String(20), nullable=False, default=SessionStatus.PENDING.value, index=True)
    is_amended = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)

    # pending -> rejected
    rejected_by = Column(Integer, ForeignKey("users.id"))
    rejected_at = Column(TIMESTAMP)

    # active -> canceled
    canceled_by = Column(Integer, ForeignKey("users.id"))
    canceled_at = Column(TIMESTAMP)

    # Completion handshake; only the latest round is kept
    completion_requested_by = Column(Integer, ForeignKey("users.id"))
    completion_requested_at = Column(TIMESTAMP)
    completion_approved_by = Column(Integer, ForeignKey("users.id"))
    completion_approved_at = Column(TIMESTAMP)
    completion_rejected_by = Column(Integer, ForeignKey("users.id"))
    completion_rejected_at = Column(TIMESTAMP)
    completion_rejection_reason = Column(String(500))

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    __table_args__ = (
        CheckConstraint("user1_id <> user2_id", name="check_session_distinct_parties"),
    )

    # Relationships
    user1 = relationship("User", foreign_keys=[user1_id])
    user2 = relationship("User", foreign_keys=[user2_id])
    skill1 = relationship("Skill", foreign_keys=[skill1_id])
    skill2 = relationship("Skill", foreign_keys=[skill2_id])
    counter_offers = relationship("SessionCounterOffer", back_populates="original_session")
    reviews = relationship("Review", back_populates="session")

    @property
    def completion_outstanding(self) -> bool:
        """A completion request exists and has not been answered yet."""
        return (
            self.completion_requested_by is not None
            and self.completion_approved_by is None
            and self.completion_rejected_by is None
        )

    def is_party(self, user_id: int) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def counterpart_of(self, user_id: int) -> int:
        return self.user2_id if user_id == self.user1_id else self.user1_id

    def skill_offered_by(self, user_id: int) -> int:
        return self.skill1_id if user_id == self.user1_id else self.skill2_id
