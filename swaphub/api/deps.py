# swaphub/api/deps.py
from fastapi import Request

from swaphub.services.cache_service import CacheService


def get_cache(request: Request) -> CacheService:
    """The application-wide read-through cache created at startup."""
    return request.app.state.cache
