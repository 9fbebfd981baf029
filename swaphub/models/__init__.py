# swaphub/models/__init__.py
# Import models in dependency order
from .user import User
from .skill import Skill, UserSkill
from .session import Session, SessionStatus
from .counter_offer import SessionCounterOffer, CounterOfferStatus
from .review import Review, ReviewType
from .meeting import Meeting, MeetingCancellation, MeetingPair, MeetingState
from .work import Work, WorkStatus
from .progress import SessionProgress, ProgressStatus
from .notification import Notification

__all__ = [
    "User",
    "Skill",
    "UserSkill",
    "Session",
    "SessionStatus",
    "SessionCounterOffer",
    "CounterOfferStatus",
    "Review",
    "ReviewType",
    "Meeting",
    "MeetingCancellation",
    "MeetingPair",
    "MeetingState",
    "Work",
    "WorkStatus",
    "SessionProgress",
    "ProgressStatus",
    "Notification",
]
