# swaphub/api/session.py
"""
Session Management API

Proposal, accept/reject, cancellation, counter-offers and the completion
handshake for two-party skill exchanges. Business errors are raised by the
services and rendered by the handlers registered in ``swaphub.main``.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from swaphub.api.deps import get_cache
from swaphub.database import get_db
from swaphub.models.user import User
from swaphub.schemas.session import (
    CompletionResponseRequest,
    CounterOfferCreate,
    CounterOfferListResponse,
    CounterOfferResolve,
    CounterOfferResponse,
    SessionCreate,
    SessionResponse,
)
from swaphub.services import completion_service, counter_offer_service, session_service
from swaphub.services.cache_service import CacheService, session_list_key
from swaphub.utils.security import get_current_user

router = APIRouter(prefix="/sessions", tags=["sessions"])


# ======================
# SESSION LISTING
# ======================
@router.get("/", response_model=List[SessionResponse])
def get_sessions(
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Get all sessions for current user, optionally filtered by status"""
    def load():
        sessions = session_service.list_sessions_for_user(
            db, user_id=current_user.id, status=status_filter
        )
        return [SessionResponse.from_model(s) for s in sessions]

    return cache.get_or_load(session_list_key(current_user.id, status_filter), load)


@router.get("/{session_id}", response_model=SessionResponse)
def get_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    session = session_service.get_session_for_party(db, session_id=session_id, viewer_id=current_user.id)
    return SessionResponse.from_model(session)


# ======================
# CREATE SESSION REQUEST
# ======================
@router.post("/", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def create_session(
    payload: SessionCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    session = session_service.propose_session(
        db,
        proposer_id=current_user.id,
        counterpart_id=payload.counterpart_id,
        skill1_id=payload.skill1_id,
        skill2_id=payload.skill2_id,
        description1=payload.description1,
        description2=payload.description2,
        start_date=payload.start_date,
        expected_end_date=payload.expected_end_date,
        cache=cache,
    )
    return SessionResponse.from_model(session)


# ======================
# ACCEPT / REJECT / CANCEL
# ======================
@router.patch("/{session_id}/accept", response_model=SessionResponse)
def accept_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    session = session_service.respond_to_session(
        db, session_id=session_id, by=current_user.id, action="accept", cache=cache
    )
    return SessionResponse.from_model(session)


@router.patch("/{session_id}/reject", response_model=SessionResponse)
def reject_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    session = session_service.respond_to_session(
        db, session_id=session_id, by=current_user.id, action="reject", cache=cache
    )
    return SessionResponse.from_model(session)


@router.patch("/{session_id}/cancel", response_model=SessionResponse)
def cancel_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    session = session_service.cancel_session(db, session_id=session_id, by=current_user.id, cache=cache)
    return SessionResponse.from_model(session)


# ======================
# COMPLETION HANDSHAKE
# ======================
@router.post("/{session_id}/completion", response_model=SessionResponse)
def request_completion(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    session = completion_service.request_completion(
        db, session_id=session_id, by=current_user.id, cache=cache
    )
    return SessionResponse.from_model(session)


@router.patch("/{session_id}/completion", response_model=SessionResponse)
def respond_to_completion(
    session_id: int,
    payload: CompletionResponseRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    session = completion_service.respond_to_completion(
        db,
        session_id=session_id,
        by=current_user.id,
        action=payload.action,
        rejection_reason=payload.rejection_reason,
        cache=cache,
    )
    return SessionResponse.from_model(session)


# ======================
# COUNTER-OFFERS
# ======================
@router.post(
    "/{session_id}/counter-offers",
    response_model=CounterOfferResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_counter_offer(
    session_id: int,
    payload: CounterOfferCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    offer = counter_offer_service.create_counter_offer(
        db,
        session_id=session_id,
        by=current_user.id,
        skill1_id=payload.skill1_id,
        skill2_id=payload.skill2_id,
        description1=payload.description1,
        description2=payload.description2,
        start_date=payload.start_date,
        expected_end_date=payload.expected_end_date,
        message=payload.message,
        cache=cache,
    )
    return CounterOfferResponse.from_model(offer)


@router.get("/{session_id}/counter-offers", response_model=CounterOfferListResponse)
def list_counter_offers(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    offers = counter_offer_service.list_counter_offers(db, session_id=session_id, viewer_id=current_user.id)
    return CounterOfferListResponse(
        session_id=session_id,
        counter_offers=[CounterOfferResponse.from_model(o) for o in offers],
    )


@router.patch("/counter-offers/{counter_offer_id}", response_model=CounterOfferResponse)
def resolve_counter_offer(
    counter_offer_id: int,
    payload: CounterOfferResolve,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    offer = counter_offer_service.resolve_counter_offer(
        db,
        counter_offer_id=counter_offer_id,
        by=current_user.id,
        action=payload.action,
        cache=cache,
    )
    return CounterOfferResponse.from_model(offer)
