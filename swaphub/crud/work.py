# swaphub/crud/work.py
"""Work submission queries."""

from typing import List, Optional

from sqlalchemy.orm import Session

from swaphub.models.work import Work, WorkStatus


def get_work(db: Session, work_id: int) -> Optional[Work]:
    return db.query(Work).filter(Work.id == work_id).first()


def list_session_work(db: Session, session_id: int, status: Optional[str] = None) -> List[Work]:
    """Newest first."""
    query = db.query(Work).filter(Work.session_id == session_id)
    if status:
        query = query.filter(Work.status == status)
    return query.order_by(Work.submitted_at.desc(), Work.id.desc()).all()


def delete_pending_work(db: Session, work: Work) -> bool:
    """Delete ``work`` only if it is still pending at the version that was read."""
    deleted = db.query(Work).filter(
        Work.id == work.id,
        Work.version == work.version,
        Work.status == WorkStatus.PENDING.value,
    ).delete(synchronize_session=False)
    return deleted == 1
