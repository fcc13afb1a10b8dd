"""ASGI application factory for the ballot service.

``create_app`` is what uvicorn loads (``factory=True``); tests call it with an
explicit :class:`Settings` to avoid touching the process environment.
"""

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from ballot_api import __version__
from ballot_api.core.config import Settings, get_settings
from ballot_api.core.database import dispose_engine, init_engine
from ballot_api.core.errors import BallotError
from ballot_api.core.logging import setup_logging


async def ballot_error_handler(request: Request, exc: BallotError) -> JSONResponse:
    """Render a domain error with its status and stable code.

    Retryable errors carry ``Retry-After`` so clients back off briefly.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers={"Retry-After": "1"} if exc.retryable else None,
    )


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    settings: Settings = getattr(app.state, "settings", None) or get_settings()
    setup_logging(settings.log_level, settings.log_dir)
    init_engine(settings.database_url, echo=False, schema=settings.database_schema)

    sweep: asyncio.Task[None] | None = None
    if settings.status_refresh_enabled:
        from ballot_api.services.election_service import status_refresh_loop

        sweep = asyncio.create_task(status_refresh_loop(settings.status_refresh_interval))
    logger.info("Ballot API {} started", __version__)

    try:
        yield
    finally:
        if sweep is not None:
            sweep.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweep
        await dispose_engine()
        logger.info("Ballot API stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the app: metadata, error handlers, middleware, and v1 routes."""
    from ballot_api.api.router import create_router, setup_middleware

    settings = settings or get_settings()
    app = FastAPI(
        title="Ballot API",
        description="Union membership balloting: division-scoped elections with exactly-once voting",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_exception_handler(BallotError, ballot_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ValueError, value_error_handler)  # type: ignore[arg-type]

    setup_middleware(app, settings)
    app.include_router(create_router(settings))
    return app
