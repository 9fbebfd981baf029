# swaphub/api/__init__.py
# This file makes the api directory a Python package.

from . import meeting
from . import notification
from . import review
from . import session
from . import work

__all__ = [
    "session",
    "review",
    "meeting",
    "notification",
    "work",
]
