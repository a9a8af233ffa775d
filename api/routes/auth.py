"""
api/routes/auth.py -- Credential lifecycle REST endpoints.

Routes:
  POST /auth/register        -- create account; returns userId, email, token pair
  POST /auth/login           -- email + password; returns userId, email, token pair
  POST /auth/refresh         -- rotate a refresh token into a new token pair
  POST /auth/reset-request   -- issue a password-reset secret
  POST /auth/reset-complete  -- consume a reset secret and set a new password
  GET  /auth/me              -- identity of the bearer of an access token

The route functions are thin: read the raw body, hand it to the protocol
handler in auth/handlers.py, serialize the AuthResult. Handlers do bcrypt
work, so they run in the threadpool instead of on the event loop.

A body that is not valid JSON raises here and is answered by the failure
boundary in api/main.py.

Security:
  [M5] Cache-Control: no-store on every response, since most carry tokens
       or reset secrets.
"""

from __future__ import annotations

import json
from collections.abc import Callable

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api.models import (
    ErrorResponse,
    MeResponse,
    MessageResponse,
    ResetRequestResponse,
    SessionResponse,
    TokenPairResponse,
)
from auth import handlers
from auth.dependencies import require_user_id
from auth.models import AuthResult
from auth.services import AuthServices

# Auth policy:
# - POST /auth/register, /auth/login, /auth/refresh,
#        /auth/reset-request, /auth/reset-complete:  public
# - GET  /auth/me:                                   requires access token (require_user_id)
router = APIRouter(prefix="/auth")

_ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _read_json(request: Request):
    """Return the decoded JSON body, or None when the request has no body."""
    raw = await request.body()
    if not raw.strip():
        return None
    return json.loads(raw)


def _respond(result: AuthResult) -> JSONResponse:
    resp = JSONResponse(status_code=result.status_code, content=result.body)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


async def _dispatch(request: Request, handler: Callable[[object, AuthServices], AuthResult]) -> JSONResponse:
    body = await _read_json(request)
    services: AuthServices = request.app.state.services
    result = await run_in_threadpool(handler, body, services)
    return _respond(result)


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/register", response_model=SessionResponse, responses={**_ERRORS, 409: {"model": ErrorResponse}})
async def register(request: Request) -> JSONResponse:
    """Register a new account and sign it in.

    A taken email returns 409. Unlike login, registration does reveal that an
    account exists for the email.
    """
    return await _dispatch(request, handlers.register)


@router.post("/login", response_model=SessionResponse, responses=_ERRORS)
async def login(request: Request) -> JSONResponse:
    """Authenticate with email and password.

    Unknown email and wrong password return the same 401 body.
    """
    return await _dispatch(request, handlers.login)


@router.post("/refresh", response_model=TokenPairResponse, responses=_ERRORS)
async def refresh(request: Request) -> JSONResponse:
    """Exchange a refresh token for a new access token and a new refresh token."""
    return await _dispatch(request, handlers.refresh)


@router.post("/reset-request", response_model=ResetRequestResponse, responses=_ERRORS)
async def reset_request(request: Request) -> JSONResponse:
    """Issue a password-reset secret valid for one hour.

    The response does not depend on whether the email is registered.
    """
    return await _dispatch(request, handlers.reset_request)


@router.post("/reset-complete", response_model=MessageResponse, responses=_ERRORS)
async def reset_complete(request: Request) -> JSONResponse:
    """Set a new password using a reset secret. Each secret works once."""
    return await _dispatch(request, handlers.reset_complete)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/me", response_model=MeResponse, responses={401: {"model": ErrorResponse}})
async def me(request: Request, user_id: str = Depends(require_user_id)) -> JSONResponse:
    """Return the identity behind the presented access token."""
    services: AuthServices = request.app.state.services
    user = await run_in_threadpool(services.users.get_user_by_id, user_id)
    if user is None:
        # Token is still within its lifetime but the account is gone.
        raise HTTPException(status_code=401, detail=handlers.INVALID_TOKEN)
    return _respond(
        AuthResult(200, MeResponse(userId=user.user_id, email=user.email, createdAt=user.created_at).model_dump())
    )
