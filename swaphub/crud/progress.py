# swaphub/crud/progress.py
from typing import List, Optional

from sqlalchemy.orm import Session

from swaphub.models.progress import SessionProgress


def get_progress(db: Session, session_id: int, user_id: int) -> Optional[SessionProgress]:
    return db.query(SessionProgress).filter(
        SessionProgress.session_id == session_id,
        SessionProgress.user_id == user_id,
    ).first()


def list_session_progress(db: Session, session_id: int) -> List[SessionProgress]:
    return db.query(SessionProgress).filter(
        SessionProgress.session_id == session_id
    ).order_by(SessionProgress.user_id.asc()).all()
