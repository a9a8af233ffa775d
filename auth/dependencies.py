"""
auth/dependencies.py -- Resource Guard for endpoints that need a caller identity.

validate_token() is the framework-free guard: give it the request headers and
the TokenService, get back a GuardResult. Endpoints outside the identity
service can call it directly and return result.to_dict() on failure.

require_user_id() wraps it as a FastAPI dependency and raises HTTP 401 on
failure; the application's HTTPException handler renders {"error": detail}.

Only the exact form "Authorization: Bearer <token>" is accepted. Header-name
lookup is case-insensitive; the "Bearer" scheme is not. A missing or
malformed header is answered with "No token provided" before any token
verification runs. Every verification failure (bad signature, expired,
refresh token presented as access token, missing userId) collapses into the
single message "Invalid or expired token".

Layer rule: may import fastapi (dependency injection) but not api/.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from fastapi import HTTPException, Request

from auth.tokens import ACCESS, TokenError, TokenService

NO_TOKEN = "No token provided"
INVALID_TOKEN = "Invalid or expired token"


@dataclass
class GuardResult:
    success: bool
    user_id: str | None = None
    status_code: int | None = None
    error: str | None = None

    @classmethod
    def denied(cls, error: str) -> GuardResult:
        return cls(success=False, status_code=401, error=error)

    def to_dict(self) -> dict:
        if self.success:
            return {"success": True, "userId": self.user_id}
        return {"success": False, "statusCode": self.status_code, "error": self.error}


def extract_bearer_token(headers: Mapping[str, str]) -> str | None:
    """Return the credential from an "Authorization: Bearer <token>" header, else None."""
    header = None
    for name, value in headers.items():
        if name.lower() == "authorization":
            header = value
            break
    if not header:
        return None

    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


def validate_token(headers: Mapping[str, str], tokens: TokenService) -> GuardResult:
    """Authenticate a request from its headers. Never raises for bad input."""
    token = extract_bearer_token(headers)
    if token is None:
        return GuardResult.denied(NO_TOKEN)

    try:
        claims = tokens.validate_token(token)
    except TokenError:
        return GuardResult.denied(INVALID_TOKEN)

    # A refresh token must not authorize resource access.
    if claims.get("type") != ACCESS:
        return GuardResult.denied(INVALID_TOKEN)

    user_id = claims.get("userId")
    if not user_id or not isinstance(user_id, str):
        return GuardResult.denied(INVALID_TOKEN)

    return GuardResult(success=True, user_id=user_id)


def require_user_id(request: Request) -> str:
    """Require a valid access token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user_id: str = Depends(require_user_id)): ...
    """
    result = validate_token(request.headers, request.app.state.services.tokens)
    if not result.success:
        raise HTTPException(
            status_code=result.status_code or 401,
            detail=result.error,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return result.user_id
