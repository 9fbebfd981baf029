"""
Error taxonomy for the session, review and meeting workflows.

Services raise these; the handlers at the bottom of this module are registered
on the FastAPI app and turn them into JSON responses. Nothing here is fatal:
every business error is recoverable and rendered to the caller.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class SwapHubError(Exception):
    kind = "error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def detail(self) -> Dict[str, Any]:
        return {}

    def to_response(self) -> JSONResponse:
        content = {"error": self.kind, "message": self.message}
        content.update(self.detail())
        return JSONResponse(status_code=self.status_code, content=content)


class ValidationError(SwapHubError):
    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class DuplicateOfferError(ValidationError):
    kind = "duplicate_offer"


class AuthorizationError(SwapHubError):
    kind = "authorization_error"
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(SwapHubError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(SwapHubError):
    kind = "invalid_state"
    status_code = status.HTTP_409_CONFLICT


class AlreadyRequestedError(InvalidStateError):
    kind = "already_requested"


class DuplicateReviewError(InvalidStateError):
    kind = "duplicate_review"


class CancellationWindowError(SwapHubError):
    kind = "cancellation_window"
    status_code = status.HTTP_409_CONFLICT

    def __init__(
        self,
        message: str,
        *,
        minutes_until_start: Optional[int] = None,
        minutes_since_start: Optional[int] = None,
    ):
        super().__init__(message)
        self.minutes_until_start = minutes_until_start
        self.minutes_since_start = minutes_since_start

    def detail(self) -> Dict[str, Any]:
        return {
            "minutes_until_start": self.minutes_until_start,
            "minutes_since_start": self.minutes_since_start,
        }


class MeetingLimitError(SwapHubError):
    kind = "meeting_limit"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, *, limit: int):
        super().__init__(message)
        self.limit = limit

    def detail(self) -> Dict[str, Any]:
        return {"limit": self.limit}


# ======================
# FASTAPI HANDLERS
# ======================

async def swaphub_exception_handler(request: Request, exc: SwapHubError):
    logger.warning("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
    return exc.to_response()


async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "infrastructure_error", "message": "The data store is unavailable"},
    )


async def generic_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error: %r", exc, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error", "message": "An unexpected error occurred"},
    )
