from __future__ import annotations

import logging
import threading
from typing import List, Optional

from sqlalchemy.orm import Session

from swaphub import models
from swaphub.models.notification import Notification
from swaphub.utils.email import is_email_enabled, send_email

logger = logging.getLogger(__name__)


EMAIL_SUBJECT_BY_EVENT = {
    "session_proposed": "New skill exchange proposal on SwapHub",
    "session_accepted": "Your skill exchange was accepted on SwapHub",
    "session_rejected": "Skill exchange proposal update on SwapHub",
    "session_canceled": "Skill exchange cancelled on SwapHub",
    "counter_offer_created": "New counter-offer on SwapHub",
    "counter_offer_accepted": "Your counter-offer was accepted on SwapHub",
    "counter_offer_rejected": "Your counter-offer was declined on SwapHub",
    "completion_requested": "Completion requested on SwapHub",
    "completion_approved": "Skill exchange completed on SwapHub",
    "completion_rejected": "Completion request declined on SwapHub",
    "review_received": "You received a new review on SwapHub",
    "work_submitted": "New work submitted on SwapHub",
    "work_accepted": "Your work was accepted on SwapHub",
    "work_rejected": "Your work was rejected on SwapHub",
    "meeting_requested": "New meeting request on SwapHub",
    "meeting_accepted": "Your meeting was accepted on SwapHub",
    "meeting_rejected": "Meeting request declined on SwapHub",
    "meeting_cancelled": "Meeting cancelled on SwapHub",
}


# ======================
# INBOX
# ======================

def list_user_notifications(
    db: Session,
    *,
    user_id: int,
    unread_only: bool = False,
    limit: int = 50,
) -> List[Notification]:
    query = db.query(Notification).filter(Notification.recipient_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def mark_notification_read(
    db: Session,
    *,
    user_id: int,
    notification_id: int,
) -> Optional[Notification]:
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.recipient_id == user_id,
    ).first()
    if not notification:
        return None
    notification.is_read = True
    db.commit()
    return notification


def mark_all_notifications_read(db: Session, *, user_id: int) -> int:
    updated = db.query(Notification).filter(
        Notification.recipient_id == user_id,
        Notification.is_read.is_(False),
    ).update({"is_read": True}, synchronize_session=False)
    db.commit()
    return int(updated)


def get_unread_count(db: Session, *, user_id: int) -> int:
    return db.query(Notification).filter(
        Notification.recipient_id == user_id,
        Notification.is_read.is_(False),
    ).count()


# ======================
# DISPATCH
# ======================

def create_notification(
    db: Session,
    *,
    recipient_id: int,
    actor_id: Optional[int],
    event_type: str,
    message: str,
    deep_link: Optional[str] = None,
    session_id: Optional[int] = None,
    meeting_id: Optional[int] = None,
) -> Notification:
    notification = Notification(
        recipient_id=recipient_id,
        actor_id=actor_id,
        session_id=session_id,
        meeting_id=meeting_id,
        event_type=event_type,
        message=message,
        deep_link=deep_link,
    )
    db.add(notification)
    db.flush()
    return notification


def notify(
    db: Session,
    *,
    recipient_id: int,
    actor_id: Optional[int],
    event_type: str,
    message: str,
    deep_link: Optional[str] = None,
    session_id: Optional[int] = None,
    meeting_id: Optional[int] = None,
) -> Optional[Notification]:
    """
    Fire-and-forget notification for a state change that is already committed.

    Persists the inbox entry in its own transaction and hands e-mail delivery
    to a background thread. Never raises: a failure here is logged and rolled
    back so it cannot undo or fail the primary operation.
    """
    try:
        notification = create_notification(
            db,
            recipient_id=recipient_id,
            actor_id=actor_id,
            event_type=event_type,
            message=message,
            deep_link=deep_link,
            session_id=session_id,
            meeting_id=meeting_id,
        )
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.warning(
            "Notification %s for user %s dropped: %s",
            event_type,
            recipient_id,
            exc,
        )
        return None

    dispatch_email_for_notification(db, notification)
    return notification


def _send_notification_email(to_email: str, subject: str, body_text: str, *, notification_id: Optional[int], recipient_id: Optional[int]) -> None:
    """Send SMTP mail in a background thread so API latency stays low."""
    try:
        sent = send_email(
            to_email=to_email,
            subject=subject,
            body_text=body_text,
        )
    except Exception as exc:
        logger.warning(
            "Notification email failed (recipient_id=%s, notification_id=%s): %s",
            recipient_id,
            notification_id,
            exc,
        )
        return
    if not sent:
        logger.info(
            "Notification email not sent (recipient_id=%s, notification_id=%s)",
            recipient_id,
            notification_id,
        )


def dispatch_email_for_notification(db: Session, notification: Notification) -> bool:
    """
    Best-effort email delivery for a committed notification.
    This function never raises and should not impact request success.
    """
    try:
        if not is_email_enabled():
            return False

        recipient = db.query(models.User).filter(
            models.User.id == notification.recipient_id
        ).first()
        if not recipient or not recipient.email:
            return False

        subject = EMAIL_SUBJECT_BY_EVENT.get(
            notification.event_type,
            "New notification from SwapHub",
        )
        recipient_name = (recipient.name or "there").strip() or "there"
        body_text = (
            f"Hi {recipient_name},\n\n"
            f"{notification.message}\n\n"
            f"Open SwapHub to view details: {notification.deep_link or '/'}"
        )

        worker = threading.Thread(
            target=_send_notification_email,
            args=(
                recipient.email,
                subject,
                body_text,
            ),
            kwargs={
                "notification_id": getattr(notification, "id", None),
                "recipient_id": notification.recipient_id,
            },
            daemon=True,
        )
        worker.start()
        return True
    except Exception as exc:
        logger.warning(
            "Notification email dispatch failed (notification_id=%s): %s",
            getattr(notification, "id", None),
            exc,
        )
        return False
