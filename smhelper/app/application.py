"""FastAPI application setup"""
import logging
import os
import sys
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from smhelper import __version__
from smhelper.auth import AdminGate, TokenIssuer
from smhelper.config import Settings
from smhelper.errors import ServiceError
from smhelper.routes import admin_router, download_router, tokens_router
from smhelper.services import VideoDownloader
from smhelper.state import TokenStore, create_token_store

from .middleware import RequestIdFilter, RequestIdMiddleware

_logger = logging.getLogger("smhelper")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s request_id=%(request_id)s %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the application logger (safe to call more than once)."""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if not _logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(RequestIdFilter())
        _logger.addHandler(handler)
    _logger.setLevel(level)
    _logger.propagate = False


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[TokenStore] = None,
    downloader: Optional[VideoDownloader] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    setup_logging()
    settings = settings or Settings.from_env()

    app = FastAPI(
        title="Social Media Helper API",
        description="API for downloading short videos with per-token request limits",
        version=__version__,
    )

    store = store or create_token_store(settings.store)
    app.state.settings = settings
    app.state.token_store = store
    app.state.issuer = TokenIssuer(settings.token, store)
    app.state.admin_gate = AdminGate(settings.admin)
    app.state.downloader = downloader or VideoDownloader(settings.automation)
    _logger.info(
        "App configured store=%s download_root=%s headless=%s",
        type(store).__name__,
        settings.automation.download_root,
        settings.automation.headless,
    )

    app.add_middleware(RequestIdMiddleware)
    app.add_exception_handler(ServiceError, service_error_handler)

    app.include_router(admin_router)
    app.include_router(tokens_router)
    app.include_router(download_router)

    return app


def start_api(app: Optional[FastAPI] = None, host: str = "0.0.0.0", port: int = 8000) -> None:
    """Start the API server"""
    app = app or create_app()
    _logger.info("Starting uvicorn host=%s port=%s", host, port)
    uvicorn.run(app, host=host, port=port)
