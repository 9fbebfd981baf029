# swaphub/models/work.py
from enum import Enum

from sqlalchemy import Column, Integer, String, Text, ForeignKey, TIMESTAMP, CheckConstraint, func
from sqlalchemy.orm import relationship
from swaphub.database import Base


class WorkStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Work(Base):
    """Work one party hands over during an active session; the other party accepts or rejects it."""
    __tablename__ = "works"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    description = Column(Text, nullable=False)
    work_url = Column(String(500))
    submitted_at = Column(TIMESTAMP, nullable=False)

    status = Column(String(20), nullable=False, default=WorkStatus.PENDING.value, index=True)
    version = Column(Integer, nullable=False, default=1)
    responded_at = Column(TIMESTAMP)
    rejection_reason = Column(String(500))
    rating = Column(Integer)
    remark = Column(String(500))

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    __table_args__ = (
        CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="check_work_rating_range"),
    )

    session = relationship("Session")
    provider = relationship("User", foreign_keys=[provider_id])
    receiver = relationship("User", foreign_keys=[receiver_id])

    def is_party(self, user_id: int) -> bool:
        return user_id in (self.provider_id, self.receiver_id)
