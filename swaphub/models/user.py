from sqlalchemy import Column, Integer, String, Boolean, TIMESTAMP, func
from sqlalchemy.orm import relationship
from swaphub.database import Base


# ---------------- USER (IDENTITY MIRROR) ----------------
class User(Base):
    """Local mirror of an identity-provider account; the core only reads it."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(20), nullable=False, default="user")
    is_active = Column(Boolean, default=True)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    user_skills = relationship("UserSkill", back_populates="user", cascade="all, delete-orphan")
