import logging
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from api.url_endpoints import router, redirect_router
from config import Settings, get_settings
from database import init_store
from logging_config import get_logger, setup_logging


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log each request with its status and duration"""

    def __init__(self, app, logger: Optional[logging.Logger] = None):
        super().__init__(app)
        self.logger = logger or get_logger("web")

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        self.logger.info(
            "%s %s from %s - %d (%.2fms)",
            request.method, request.url.path, client_ip, response.status_code, duration_ms
        )
        return response


async def plain_text_exception_handler(request: Request, exc: StarletteHTTPException):
    """Every HTTP error is a one-line plain text body"""
    return PlainTextResponse(
        f"{exc.detail}\n",
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the app, its mapping store and routes from one settings object
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    app = FastAPI(
        title=settings.APP_NAME,
        description="A minimal password protected URL shortening service",
        version=settings.APP_VERSION,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.settings = settings
    app.state.store = init_store(settings)

    app.add_middleware(LoggingMiddleware)
    app.add_exception_handler(StarletteHTTPException, plain_text_exception_handler)

    # Order matters: redirect_router has /{token:path} which catches everything
    app.include_router(router, prefix=settings.ROUTE_PREFIX)
    app.include_router(redirect_router, prefix=settings.ROUTE_PREFIX)

    return app


def run() -> None:
    settings = get_settings()
    app = create_app(settings)
    get_logger().info("Starting server on :%d...", settings.PORT)
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
