"""Helpers shared by the session, review and meeting services."""

from typing import Optional

from sqlalchemy.orm import Session

from swaphub.exceptions import AuthorizationError, NotFoundError, ValidationError
from swaphub.models.user import User


def display_name(db: Session, user_id: int) -> str:
    user = db.query(User).filter(User.id == user_id).first()
    return user.name if user and user.name else "Someone"


def require_user(db: Session, user_id: int, label: str = "User") -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise NotFoundError(f"{label} not found")
    return user


def require_party(entity, user_id: int, noun: str) -> None:
    if not entity.is_party(user_id):
        raise AuthorizationError(f"You are not a participant in this {noun}")


def require_text(value: Optional[str], field: str, max_length: Optional[int] = None) -> str:
    """Strip ``value`` and reject it when empty or longer than ``max_length``."""
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field} is required")
    if max_length is not None and len(cleaned) > max_length:
        raise ValidationError(f"{field} must be {max_length} characters or less")
    return cleaned


def session_link(session_id: int) -> str:
    return f"/sessions/{session_id}"


def meeting_link(meeting_id: int) -> str:
    return f"/meetings/{meeting_id}"
