"""
Dependencies for API endpoints.

Shared resources are created by the app lifespan and stored on ``app.state``;
handlers receive them through these functions.
"""

import hmac

import structlog
from fastapi import Request

from ..history.repositories.sql_repo import AsyncSqlRepo
from ..llm.relay import StreamRelay

logger = structlog.get_logger(__name__)

ACCESS_DENIED_MESSAGE = "Access denied: Invalid access credentials"


class AccessDeniedError(Exception):
    """Missing or wrong access header on a protected route."""

    def __init__(self) -> None:
        super().__init__(ACCESS_DENIED_MESSAGE)


def get_repository(request: Request) -> AsyncSqlRepo:
    """Get the repository instance from app state."""
    repo: AsyncSqlRepo = request.app.state.repo
    return repo


def get_relay(request: Request) -> StreamRelay:
    """Get the stream relay from app state."""
    relay: StreamRelay = request.app.state.relay
    return relay


async def require_access(request: Request) -> None:
    """
    Reject the request unless it carries the shared access secret.

    Raises:
        AccessDeniedError: Header missing or value mismatch
    """
    header_name: str = request.app.state.access_header
    secret: str = request.app.state.access_secret

    provided = request.headers.get(header_name)
    if provided is None or not hmac.compare_digest(
        provided.encode("utf-8"), secret.encode("utf-8")
    ):
        logger.warning(
            "Access denied",
            path=request.url.path,
            header_present=provided is not None,
        )
        raise AccessDeniedError()
