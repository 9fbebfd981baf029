# swaphub/crud/skill.py
"""Skill ownership lookups used to validate session terms."""

from sqlalchemy.orm import Session

from swaphub.models.skill import UserSkill

OFFER_SKILL_TYPES = ("offer", "teach")


def user_offers_skill(db: Session, user_id: int, skill_id: int) -> bool:
    """True when ``skill_id`` is listed as an offered skill on the user's profile."""
    return db.query(UserSkill.id).filter(
        UserSkill.user_id == user_id,
        UserSkill.skill_id == skill_id,
        UserSkill.skill_type.in_(OFFER_SKILL_TYPES),
    ).first() is not None
