"""
API response models for the identity service REST endpoints.

These Pydantic v2 models document the HTTP contract (OpenAPI schema and the
error envelope). They are intentionally separate from the dataclasses in
auth/models.py, which own the internal domain representation. Request bodies
are not modelled here: auth/validation.py checks them so that every failure
comes back as a 400 with itemized reasons rather than FastAPI's 422.

Field names are camelCase because that is the wire format the clients use.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

# ---------------------------------------------------------------------------
# Success responses
# ---------------------------------------------------------------------------


class SessionResponse(BaseModel):
    """Response for POST /auth/register and POST /auth/login."""

    model_config = ConfigDict(frozen=True)

    userId: str
    email: str
    accessToken: str
    refreshToken: str


class TokenPairResponse(BaseModel):
    """Response for POST /auth/refresh. Both tokens are newly issued."""

    model_config = ConfigDict(frozen=True)

    accessToken: str
    refreshToken: str


class ResetRequestResponse(BaseModel):
    """Response for POST /auth/reset-request, identical for known and unknown emails."""

    model_config = ConfigDict(frozen=True)

    message: str
    resetToken: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class MeResponse(BaseModel):
    """Response for GET /auth/me."""

    model_config = ConfigDict(frozen=True)

    userId: str
    email: str
    createdAt: str


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response.

    details is only present on validation failures, where it lists every
    reason the request was rejected.
    """

    model_config = ConfigDict(frozen=True)

    error: str
    details: Optional[list[str]] = None

    def body(self) -> dict:
        return self.model_dump(exclude_none=True)
