"""
FastAPI application entry point for FoundIt.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from foundit.config import get_settings
from foundit.errors import FoundItError
from foundit.routes import router

logger = logging.getLogger(__name__)


async def handle_foundit_error(request: Request, exc: FoundItError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    app = FastAPI(title="FoundIt API", version="0.1.0")
    app.add_exception_handler(FoundItError, handle_foundit_error)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
