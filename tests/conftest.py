"""Pytest bootstrap: environment, in-memory database and party fixtures."""

import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EMAIL_NOTIFICATIONS_ENABLED", "false")

# Ensure project root is on sys.path so `import swaphub` works
PROJECT_ROOT = Path(__file__).resolve().parents[1]
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from swaphub.database import Base
from swaphub.models.skill import Skill, UserSkill
from swaphub.models.user import User
from swaphub.services import session_service
from swaphub.services.cache_service import CacheService

NOW = datetime(2026, 3, 2, 9, 0, 0)


@pytest.fixture
def db_session():
    """Create test database session"""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def other_db(db_session):
    """A second unit of work on the same database, holding its own snapshot."""
    other = sessionmaker(bind=db_session.get_bind())()
    yield other
    other.close()


@pytest.fixture
def cache():
    return CacheService(default_ttl=60)


def _user(db, user_id, name, email, role="user"):
    user = User(id=user_id, name=name, email=email, role=role, is_active=True)
    db.add(user)
    return user


def _offer(db, user, skill):
    db.add(UserSkill(user_id=user.id, skill_id=skill.id, skill_type="offer"))


@pytest.fixture
def parties(db_session):
    """Alice and Bob exchange guitar for spanish; Carol is an outsider."""
    alice = _user(db_session, 1, "Alice", "alice@test.edu")
    bob = _user(db_session, 2, "Bob", "bob@test.edu")
    carol = _user(db_session, 3, "Carol", "carol@test.edu")
    admin = _user(db_session, 4, "Admin", "admin@test.edu", role="admin")

    guitar = Skill(id=1, title="Guitar")
    spanish = Skill(id=2, title="Spanish")
    cooking = Skill(id=3, title="Cooking")
    piano = Skill(id=4, title="Piano")
    db_session.add_all([guitar, spanish, cooking, piano])
    db_session.flush()

    _offer(db_session, alice, guitar)
    _offer(db_session, alice, piano)
    _offer(db_session, bob, spanish)
    _offer(db_session, carol, cooking)
    db_session.commit()

    return {
        "alice": alice,
        "bob": bob,
        "carol": carol,
        "admin": admin,
        "guitar": guitar,
        "spanish": spanish,
        "cooking": cooking,
        "piano": piano,
    }


def default_terms(**overrides):
    terms = {
        "skill1_id": 1,
        "skill2_id": 2,
        "description1": "Beginner guitar chords",
        "description2": "Conversational Spanish",
        "start_date": datetime(2026, 3, 10, 18, 0, 0),
        "expected_end_date": datetime(2026, 4, 10, 18, 0, 0),
    }
    terms.update(overrides)
    return terms


@pytest.fixture
def pending_session(db_session, parties):
    """Alice (proposer) offers guitar to Bob for spanish."""
    return session_service.propose_session(
        db_session,
        proposer_id=parties["alice"].id,
        counterpart_id=parties["bob"].id,
        **default_terms(),
    )


@pytest.fixture
def active_session(db_session, pending_session, parties):
    return session_service.respond_to_session(
        db_session,
        session_id=pending_session.id,
        by=parties["bob"].id,
        action="accept",
        now=NOW,
    )


def minutes(value):
    return timedelta(minutes=value)
