# swaphub/crud/session.py
"""Session and counter-offer queries."""

from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from swaphub.models.counter_offer import CounterOfferStatus, SessionCounterOffer
from swaphub.models.session import Session as SessionModel


def get_session(db: Session, session_id: int) -> Optional[SessionModel]:
    return db.query(SessionModel).filter(SessionModel.id == session_id).first()


def list_sessions_for_user(
    db: Session,
    user_id: int,
    status: Optional[str] = None,
) -> List[SessionModel]:
    query = db.query(SessionModel).filter(
        or_(SessionModel.user1_id == user_id, SessionModel.user2_id == user_id)
    )
    if status:
        query = query.filter(SessionModel.status == status)
    return query.order_by(SessionModel.start_date.desc(), SessionModel.id.desc()).all()


def get_counter_offer(db: Session, counter_offer_id: int) -> Optional[SessionCounterOffer]:
    return db.query(SessionCounterOffer).filter(
        SessionCounterOffer.id == counter_offer_id
    ).first()


def list_counter_offers(db: Session, session_id: int) -> List[SessionCounterOffer]:
    return (
        db.query(SessionCounterOffer)
        .filter(SessionCounterOffer.original_session_id == session_id)
        .order_by(SessionCounterOffer.id.desc())
        .all()
    )


def supersede_pending_counter_offers(
    db: Session,
    session_id: int,
    *,
    exclude_id: Optional[int] = None,
) -> int:
    """Retire pending counter-offers that can no longer be acted on."""
    query = db.query(SessionCounterOffer).filter(
        SessionCounterOffer.original_session_id == session_id,
        SessionCounterOffer.status == CounterOfferStatus.PENDING.value,
    )
    if exclude_id is not None:
        query = query.filter(SessionCounterOffer.id != exclude_id)
    return query.update(
        {
            "status": CounterOfferStatus.SUPERSEDED.value,
            "version": SessionCounterOffer.version + 1,
        },
        synchronize_session=False,
    )
