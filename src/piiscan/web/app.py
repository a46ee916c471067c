"""FastAPI application factory for the piiscan HTTP API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from piiscan import __version__
from piiscan.config import PiiScanConfig
from piiscan.errors import RateLimitedError, ScanError
from piiscan.scanner.engine import ScanEngine
from piiscan.storage.db import get_db

logger = logging.getLogger(__name__)


def create_app(
    config: PiiScanConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    config = config or PiiScanConfig.load()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.db = await get_db(config.data_dir / "piiscan.db")
        yield
        await app.state.db.close()

    app = FastAPI(
        title="piiscan",
        version=__version__,
        docs_url="/api/docs",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.engine = ScanEngine(config, transport=transport)

    from piiscan.web.api.languages import router as languages_router
    from piiscan.web.api.scans import router as scans_router

    app.include_router(scans_router, prefix="/api")
    app.include_router(languages_router, prefix="/api")

    @app.exception_handler(ScanError)
    async def scan_error_handler(request: Request, exc: ScanError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        content = {"error": type(exc).__name__, "detail": exc.message}
        headers = None
        if isinstance(exc, RateLimitedError):
            content["remaining"] = exc.remaining
            if exc.retry_after is not None:
                headers = {"Retry-After": str(int(exc.retry_after))}
        return JSONResponse(status_code=exc.status_code, content=content, headers=headers)

    return app
