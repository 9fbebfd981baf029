# swaphub/models/counter_offer.py
from enum import Enum

from sqlalchemy import Column, Integer, String, Text, ForeignKey, TIMESTAMP, func
from sqlalchemy.orm import relationship
from swaphub.database import Base


class CounterOfferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"


# Fields a counter-offer may replace on its origin session
TERM_FIELDS = (
    "skill1_id",
    "skill2_id",
    "description1",
    "description2",
    "start_date",
    "expected_end_date",
)


class SessionCounterOffer(Base):
    __tablename__ = "session_counter_offers"

    id = Column(Integer, primary_key=True, index=True)
    original_session_id = Column(
        Integer,
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    counter_offered_by = Column(Integer, ForeignKey("users.id"), nullable=False)

    # Proposed replacement terms
    skill1_id = Column(Integer, ForeignKey("skills.id"), nullable=False)
    skill2_id = Column(Integer, ForeignKey("skills.id"), nullable=False)
    description1 = Column(Text, nullable=False)
    description2 = Column(Text, nullable=False)
    start_date = Column(TIMESTAMP, nullable=False)
    expected_end_date = Column(TIMESTAMP, nullable=False)
    counter_offer_message = Column(String(1000), nullable=False)

    status = Column(String(20), nullable=False, default=CounterOfferStatus.PENDING.value, index=True)
    version = Column(Integer, nullable=False, default=1)
    responded_by = Column(Integer, ForeignKey("users.id"))
    responded_at = Column(TIMESTAMP)
    created_at = Column(TIMESTAMP, server_default=func.now())

    original_session = relationship("Session", back_populates="counter_offers")
    offered_by = relationship("User", foreign_keys=[counter_offered_by])

    def terms(self) -> dict:
        return {field: getattr(self, field) for field in TERM_FIELDS}
