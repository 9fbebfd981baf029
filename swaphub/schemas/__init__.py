# swaphub/schemas/__init__.py

from .common import MessageResponse, ResolvedRef, UnresolvedRef, to_ref

from .session import (
    CompletionResponseRequest,
    CounterOfferCreate,
    CounterOfferListResponse,
    CounterOfferResolve,
    CounterOfferResponse,
    SessionCreate,
    SessionResponse,
)

from .review import (
    AggregateRatingResponse,
    ReviewCreate,
    ReviewEligibilityResponse,
    ReviewResponse,
)

from .meeting import (
    CancellationResponse,
    CompleteElapsedResponse,
    MeetingBuckets,
    MeetingCancel,
    MeetingCancelResponse,
    MeetingCreate,
    MeetingRespond,
    MeetingResponse,
)

from .notification import MarkAllReadResponse, NotificationResponse, UnreadCountResponse

from .work import ProgressResponse, ProgressUpdate, WorkCreate, WorkRespond, WorkResponse

__all__ = [
    "MessageResponse",
    "ResolvedRef",
    "UnresolvedRef",
    "to_ref",
    "CompletionResponseRequest",
    "CounterOfferCreate",
    "CounterOfferListResponse",
    "CounterOfferResolve",
    "CounterOfferResponse",
    "SessionCreate",
    "SessionResponse",
    "AggregateRatingResponse",
    "ReviewCreate",
    "ReviewEligibilityResponse",
    "ReviewResponse",
    "CancellationResponse",
    "CompleteElapsedResponse",
    "MeetingBuckets",
    "MeetingCancel",
    "MeetingCancelResponse",
    "MeetingCreate",
    "MeetingRespond",
    "MeetingResponse",
    "MarkAllReadResponse",
    "NotificationResponse",
    "UnreadCountResponse",
    "ProgressResponse",
    "ProgressUpdate",
    "WorkCreate",
    "WorkRespond",
    "WorkResponse",
]
