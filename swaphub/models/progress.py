# swaphub/models/progress.py
from enum import Enum

from sqlalchemy import (
    Column, Integer, String, Text, ForeignKey, TIMESTAMP, func,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from swaphub.database import Base


class ProgressStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class SessionProgress(Base):
    """A party's own view of how far along their side of a session is."""
    __tablename__ = "session_progress"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    completion_percentage = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=ProgressStatus.NOT_STARTED.value)
    notes = Column(Text)
    due_date = Column(TIMESTAMP)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "completion_percentage >= 0 AND completion_percentage <= 100",
            name="check_progress_percentage_range",
        ),
        UniqueConstraint("session_id", "user_id", name="uq_progress_session_user"),
    )

    session = relationship("Session")
    user = relationship("User")
