"""CRUD package exports with lazy module loading.

Service modules import exactly the query helpers they need; the lazy
loader keeps unrelated model modules out of unit-test collection.
"""

from importlib import import_module

__all__ = ["guarded", "skill", "session", "review", "meeting", "work", "progress"]


def __getattr__(name):
    if name in __all__:
        return import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
