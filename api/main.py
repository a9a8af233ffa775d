"""
api/main.py -- FastAPI application entry point for the identity service.

Run with:  uvicorn api.main:app --reload
           python main.py serve

This module is the dispatcher for the credential lifecycle:
  - Lifespan builds the AuthServices container exactly once (signing secret
    fetched from the secret store, repository opened) and parks it on
    app.state.services, where every route reads it.
  - Routing is by method + path only. Anything unmatched, including a known
    path with the wrong method, is answered 404 {"error": "Not found"}.
  - One failure boundary wraps routing and handler execution. Any exception
    that escapes a handler is logged server-side and answered with a generic
    500. The request body is never logged: it carries passwords and tokens.

Middleware stack (outermost to innermost):
  1. CORSMiddleware     -- permissive cross-origin headers (CORS_ALLOW_ORIGINS)
  2. log_requests       -- one access-log line per request, no bodies
  3. failure_boundary   -- converts escaped exceptions into the generic 500
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from auth.services import get_services, reset_services
from core.config import get_settings

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("identity.api")

# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the service container on startup and release it on shutdown.

    get_services() is memoized, so the secret store is consulted once per
    process no matter how many times the container is asked for. On shutdown
    the memo is dropped so a restarted app (e.g. in tests) rebuilds cleanly.
    """
    logger.info("Identity service starting up")
    app.state.services = get_services()
    yield
    app.state.services.close()
    reset_services()
    logger.info("Identity service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Identity Service",
    description="Registration, login, token renewal and password reset.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() and @app.middleware both insert at the outside of the
# stack, so registration order is innermost first: failure_boundary, then
# log_requests, then CORS. CORS being outermost means even a 500 produced by
# the boundary carries the cross-origin header.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def failure_boundary(request: Request, call_next):
    """Turn any exception escaping routing or a handler into a generic 500.

    Logged: method, path, exception message and traceback. Not logged: the
    request body, headers or query string.
    """
    try:
        return await call_next(request)
    except Exception as exc:
        logger.error(
            "Unhandled exception on %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content=ErrorResponse(error="Internal server error").body())


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP exceptions in the {"error": ...} envelope.

    405 is folded into 404: routing is strictly by method + path, so a known
    path with the wrong method is simply not a route.
    """
    if exc.status_code in (404, 405):
        return JSONResponse(status_code=404, content=ErrorResponse(error="Not found").body())
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).body(),
        headers=getattr(exc, "headers", None),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return liveness and current version."""
    return HealthResponse(version=__version__)
