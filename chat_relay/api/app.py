"""
FastAPI application factory.

The lifespan opens the repository and the upstream client once per process
and closes them on shutdown; handlers reach them through dependencies.
"""

from collections.abc import AsyncGenerator
from contextlib import AsyncExitStack, asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import Configuration
from ..history.exceptions import PersistenceError
from ..history.repositories.sql_repo import AsyncSqlRepo
from ..llm.client import UpstreamClient
from ..llm.models import UpstreamConfig
from ..llm.relay import StreamRelay
from ..logging_utils import ErrorHandler
from .chat import router as chat_router
from .conversations import router as conversations_router
from .dependencies import ACCESS_DENIED_MESSAGE, AccessDeniedError
from .health import router as health_router
from .users import router as users_router

logger = structlog.get_logger(__name__)


def create_app(
    configuration: Configuration | None = None,
    *,
    repo: AsyncSqlRepo | None = None,
    upstream: UpstreamClient | None = None,
) -> FastAPI:
    """
    Build the application.

    ``repo`` and ``upstream`` replace the configured ones (tests pass a
    temporary database and a mock transport). The app owns whatever it is
    given and closes it on shutdown.

    Raises:
        ValueError: Missing configuration keys or access secret
    """
    configuration = configuration or Configuration()
    server_config = configuration.get_server_config()
    access_config = configuration.get_access_config()
    access_secret = configuration.access_secret

    if repo is None:
        repo_config = configuration.get_repository_config()
        repo = AsyncSqlRepo(
            repo_config["path"],
            clear_on_startup=bool(repo_config["clear_on_startup"]),
        )
    if upstream is None:
        upstream = UpstreamClient(
            UpstreamConfig.from_dict(configuration.get_upstream_config())
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "Starting chat relay",
            model=upstream.model,
            db_path=repo.db_path,
        )
        async with AsyncExitStack() as stack:
            await stack.enter_async_context(repo)
            await stack.enter_async_context(upstream)
            app.state.repo = repo
            app.state.relay = StreamRelay(upstream)
            yield
        logger.info("Chat relay stopped")

    app = FastAPI(title="Chat Relay", version="0.1.0", lifespan=lifespan)
    app.state.access_header = access_config["header"]
    app.state.access_secret = access_secret

    app.add_middleware(
        CORSMiddleware,
        allow_origins=server_config["cors_origins"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AccessDeniedError)
    async def access_denied_handler(
        request: Request, exc: AccessDeniedError
    ) -> JSONResponse:
        return JSONResponse(status_code=403, content={"error": ACCESS_DENIED_MESSAGE})

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(
        request: Request, exc: PersistenceError
    ) -> JSONResponse:
        status_code, payload = ErrorHandler.create_error_payload(
            exc, request.url.path, context={"method": request.method}
        )
        return JSONResponse(status_code=status_code, content=payload)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        status_code, payload = ErrorHandler.create_error_payload(
            exc,
            request.url.path,
            context={"method": request.method},
            custom_message="Invalid request body.",
        )
        payload["details"] = details
        return JSONResponse(status_code=status_code, content=payload)

    app.include_router(health_router)
    app.include_router(chat_router)
    app.include_router(users_router)
    app.include_router(conversations_router)

    return app
