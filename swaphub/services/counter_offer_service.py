# swaphub/services/counter_offer_service.py
"""
Counter-offers: alternate terms proposed against a pending session.

Either party may counter while the session is pending. The other party
resolves it: accepting overwrites the session's terms and activates the
session, rejecting leaves the session pending and untouched. Accepting one
counter-offer supersedes every other pending counter-offer on the session.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from swaphub.crud import session as session_crud
from swaphub.crud.guarded import guarded_update
from swaphub.exceptions import (
    AuthorizationError,
    DuplicateOfferError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from swaphub.models.counter_offer import (
    TERM_FIELDS,
    CounterOfferStatus,
    SessionCounterOffer,
)
from swaphub.models.session import SessionStatus
from swaphub.services import notification_service
from swaphub.services.cache_service import CacheService
from swaphub.services.common import display_name, require_party, require_text, session_link
from swaphub.services.session_service import (
    invalidate_session_views,
    load_session,
    lost_race,
    validate_terms,
)
from swaphub.utils.timeutil import resolve_now

logger = logging.getLogger(__name__)

COUNTER_OFFER_ACTIONS = ("accept", "reject")
MESSAGE_MAX_LENGTH = 1000


def create_counter_offer(
    db: Session,
    *,
    session_id: int,
    by: int,
    skill1_id: int,
    skill2_id: int,
    description1: str,
    description2: str,
    start_date: datetime,
    expected_end_date: datetime,
    message: str,
    cache: Optional[CacheService] = None,
    now: Optional[datetime] = None,
) -> SessionCounterOffer:
    """
    Propose replacement terms for a pending session.

    Raises:
        ValidationError: empty message, bad dates or skill ownership
        DuplicateOfferError: terms identical to the session's current terms
        InvalidStateError: session is no longer pending
    """
    cleaned_message = require_text(message, "Counter-offer message", MESSAGE_MAX_LENGTH)
    now = resolve_now(now)

    session = load_session(db, session_id)
    require_party(session, by, "session")
    if session.status != SessionStatus.PENDING:
        raise InvalidStateError(
            "Cannot create a counter-offer for a session that has already been responded to"
        )

    terms = validate_terms(
        db,
        user1_id=session.user1_id,
        user2_id=session.user2_id,
        skill1_id=skill1_id,
        skill2_id=skill2_id,
        description1=description1,
        description2=description2,
        start_date=start_date,
        expected_end_date=expected_end_date,
    )
    if all(terms[field] == getattr(session, field) for field in TERM_FIELDS):
        raise DuplicateOfferError(
            "Counter-offer must change at least one of the skills, descriptions or dates"
        )

    counter_offer = SessionCounterOffer(
        original_session_id=session.id,
        counter_offered_by=by,
        counter_offer_message=cleaned_message,
        status=CounterOfferStatus.PENDING.value,
        version=1,
        **terms,
    )
    if not guarded_update(
        db,
        session,
        state_field="status",
        expected_state=SessionStatus.PENDING.value,
        values={"is_amended": True, "updated_at": now},
    ):
        raise lost_race(db)
    db.add(counter_offer)
    db.commit()
    db.refresh(counter_offer)

    logger.info("Counter-offer %s created on session %s by user %s", counter_offer.id, session.id, by)
    invalidate_session_views(cache, session)

    notification_service.notify(
        db,
        recipient_id=session.counterpart_of(by),
        actor_id=by,
        event_type="counter_offer_created",
        message=f"{display_name(db, by)} sent a counter-offer: {cleaned_message}",
        deep_link=session_link(session.id),
        session_id=session.id,
    )
    return counter_offer


def resolve_counter_offer(
    db: Session,
    *,
    counter_offer_id: int,
    by: int,
    action: str,
    cache: Optional[CacheService] = None,
    now: Optional[datetime] = None,
) -> SessionCounterOffer:
    """Accept or reject a pending counter-offer; only the party who did not make it may respond."""
    if action not in COUNTER_OFFER_ACTIONS:
        raise ValidationError('Action must be either "accept" or "reject"')
    now = resolve_now(now)

    counter_offer = session_crud.get_counter_offer(db, counter_offer_id)
    if not counter_offer:
        raise NotFoundError("Counter-offer not found")
    session = load_session(db, counter_offer.original_session_id)
    require_party(session, by, "session")

    if session.status != SessionStatus.PENDING:
        raise InvalidStateError(f"Session is already {session.status}")
    if counter_offer.status != CounterOfferStatus.PENDING:
        raise InvalidStateError(f"Counter-offer is already {counter_offer.status}")
    if by == counter_offer.counter_offered_by:
        raise AuthorizationError("You cannot respond to your own counter-offer")

    new_status = CounterOfferStatus.ACCEPTED if action == "accept" else CounterOfferStatus.REJECTED
    if not guarded_update(
        db,
        counter_offer,
        state_field="status",
        expected_state=CounterOfferStatus.PENDING.value,
        values={"status": new_status.value, "responded_by": by, "responded_at": now},
    ):
        raise lost_race(db, "Counter-offer")

    if action == "accept":
        values = {field: getattr(counter_offer, field) for field in TERM_FIELDS}
        values.update(status=SessionStatus.ACTIVE.value, is_amended=True, updated_at=now)
        if not guarded_update(
            db,
            session,
            state_field="status",
            expected_state=SessionStatus.PENDING.value,
            values=values,
        ):
            raise lost_race(db)
        session_crud.supersede_pending_counter_offers(
            db, session.id, exclude_id=counter_offer.id
        )

    db.commit()
    db.refresh(counter_offer)

    logger.info(
        "Counter-offer %s: pending -> %s by user %s (session %s)",
        counter_offer_id,
        new_status.value,
        by,
        counter_offer.original_session_id,
    )
    invalidate_session_views(cache, session)

    verb = "accepted" if action == "accept" else "declined"
    notification_service.notify(
        db,
        recipient_id=counter_offer.counter_offered_by,
        actor_id=by,
        event_type=f"counter_offer_{'accepted' if action == 'accept' else 'rejected'}",
        message=f"{display_name(db, by)} {verb} your counter-offer.",
        deep_link=session_link(counter_offer.original_session_id),
        session_id=counter_offer.original_session_id,
    )
    return counter_offer


def list_counter_offers(db: Session, *, session_id: int, viewer_id: int) -> List[SessionCounterOffer]:
    session = load_session(db, session_id)
    require_party(session, viewer_id, "session")
    return session_crud.list_counter_offers(db, session_id)
