# swaphub/models/meeting.py
from enum import Enum

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, TIMESTAMP, UniqueConstraint, func
from sqlalchemy.orm import relationship
from swaphub.database import Base


class MeetingState(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Meeting(Base):
    __tablename__ = "meetings"

    id = Column(Integer, primary_key=True, index=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(String(500), nullable=False)
    meeting_time = Column(TIMESTAMP, nullable=False, index=True)
    state = Column(String(20), nullable=False, default=MeetingState.PENDING.value, index=True)
    version = Column(Integer, nullable=False, default=1)
    responded_at = Column(TIMESTAMP)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    sender = relationship("User", foreign_keys=[sender_id])
    receiver = relationship("User", foreign_keys=[receiver_id])
    cancellations = relationship("MeetingCancellation", back_populates="meeting")

    def is_party(self, user_id: int) -> bool:
        return user_id in (self.sender_id, self.receiver_id)

    def counterpart_of(self, user_id: int) -> int:
        return self.receiver_id if user_id == self.sender_id else self.sender_id


class MeetingCancellation(Base):
    __tablename__ = "meeting_cancellations"

    id = Column(Integer, primary_key=True, index=True)
    meeting_id = Column(Integer, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False, index=True)
    cancelled_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reason = Column(String(500), nullable=False)
    cancelled_at = Column(TIMESTAMP, nullable=False)
    acknowledged = Column(Boolean, default=False, nullable=False)
    acknowledged_at = Column(TIMESTAMP)

    meeting = relationship("Meeting", back_populates="cancellations")
    canceller = relationship("User", foreign_keys=[cancelled_by])


class MeetingPair(Base):
    """
    One row per unordered user pair. Scheduling a meeting bumps its version,
    so capacity checks for the same pair are serialised.
    """
    __tablename__ = "meeting_pairs"

    id = Column(Integer, primary_key=True, index=True)
    user_low_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user_high_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_meeting_pair"),
    )
