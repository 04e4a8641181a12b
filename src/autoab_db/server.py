"""
FastAPI server for the autoantibody reference database.

Mounts the JSON API under ``/api`` and maps the error taxonomy onto HTTP
status codes.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import api_router
from .config import Settings, get_settings, resolve_db_path
from .errors import AutoabError
from .logging_setup import setup_logging
from .storage import DuckDBStorage

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings
    db_path = resolve_db_path(settings.db_path)
    # Create tables once; request-scoped connections skip initialization.
    storage = DuckDBStorage(db_path)
    storage.close()
    logger.info("server_started", db_path=db_path)
    yield
    logger.info("server_stopped")


async def _handle_autoab_error(request: Request, exc: AutoabError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message)
    else:
        logger.warning(
            "request_rejected",
            path=request.url.path,
            status_code=exc.status_code,
            error=exc.message,
        )
    return JSONResponse(exc.to_payload(), status_code=exc.status_code)


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path)
    return JSONResponse({"success": False, "message": "Server error"}, status_code=500)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application. Pass *settings* to override the environment."""
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="autoab-db",
        description="Autoantibody / autoantigen / disease reference database",
        lifespan=_lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AutoabError, _handle_autoab_error)
    app.add_exception_handler(Exception, _handle_unexpected)
    app.include_router(api_router)
    return app


app = create_app()


def run_server(host: str | None = None, port: int | None = None) -> None:
    """Run the FastAPI server."""
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json)
    uvicorn.run(
        app,
        host=host or settings.host,
        port=port or settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run_server()
