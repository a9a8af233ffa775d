"""
auth/handlers.py -- The five credential-lifecycle protocols.

Each handler takes the decoded JSON body (None when the request had no body)
and the AuthServices container, and returns an AuthResult. Expected outcomes
(validation failures, bad credentials, conflicts) are turned into a result at
the point of detection. Anything unexpected (storage errors, bugs) is left to
propagate: the application's failure boundary in api/main.py turns it into a
generic 500. Handlers never catch broad exceptions themselves.

Anti-enumeration rules:
  login           unknown email and wrong password return the identical 401,
                  and both run one bcrypt verification [C1].
  refresh         malformed, expired, wrong-type and orphaned tokens all
                  return the identical 401.
  reset-request   known and unknown emails return the identical 200 shape,
                  including a reset secret; only the known case stores it.
                  The unknown case runs one bcrypt verification so it costs
                  about as much as hashing the stored secret.
  reset-complete  unknown, expired and already-used secrets return the
                  identical 401. The secret is spent by one conditional
                  UPDATE, so two completions racing on it cannot both win.

Register is the deliberate exception: a taken email returns 409.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from auth.models import AuthResult, UserRecord
from auth.services import AuthServices
from auth.store import DuplicateEmailError
from auth.tokens import REFRESH, TokenError

logger = logging.getLogger("identity.auth")

BODY_REQUIRED = "Request body is required"
VALIDATION_FAILED = "Validation failed"
EMAIL_TAKEN = "Email already registered"
INVALID_CREDENTIALS = "Invalid credentials"
INVALID_TOKEN = "Invalid or expired token"
INVALID_RESET_TOKEN = "Invalid or expired reset token"
RESET_REQUESTED = "If the email exists, a reset token has been generated"
RESET_COMPLETE = "Password reset successful"


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str) -> AuthResult:
    return AuthResult(status_code, {"error": message})


def _invalid(details: list[str]) -> AuthResult:
    return AuthResult(400, {"error": VALIDATION_FAILED, "details": details})


def _token_pair(services: AuthServices, user: UserRecord) -> dict:
    return {
        "accessToken": services.tokens.generate_access_token(user.user_id, user.email),
        "refreshToken": services.tokens.generate_refresh_token(user.user_id),
    }


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------


def register(body: dict | None, services: AuthServices) -> AuthResult:
    """Create an account and return {userId, email, accessToken, refreshToken}."""
    if body is None:
        return _error(400, BODY_REQUIRED)

    validation = services.validation.validate_registration_payload(body)
    if not validation.valid:
        return _invalid(validation.errors)

    email: str = body["email"]
    if services.users.get_user_by_email(email) is not None:
        return _error(409, EMAIL_TAKEN)

    user = UserRecord(
        user_id=str(uuid.uuid4()),
        email=email,
        hashed_password=services.passwords.hash_password(body["password"]),
        created_at=_now().isoformat(),
    )
    try:
        services.users.create_user(user.user_id, user.email, user.hashed_password, user.created_at)
    except DuplicateEmailError:
        # Lost the race against a concurrent registration for the same email.
        return _error(409, EMAIL_TAKEN)

    logger.info("User registered user_id=%s", user.user_id)
    return AuthResult(200, {"userId": user.user_id, "email": user.email, **_token_pair(services, user)})


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


def login(body: dict | None, services: AuthServices) -> AuthResult:
    """Exchange email + password for a fresh token pair."""
    if body is None:
        return _error(400, BODY_REQUIRED)

    validation = services.validation.validate_login_payload(body)
    if not validation.valid:
        return _invalid(validation.errors)

    password: str = body["password"]
    user = services.users.get_user_by_email(body["email"])
    if user is None:
        # Equalize timing -- do NOT return before running bcrypt [C1]
        services.passwords.burn_verification(password)
        return _error(401, INVALID_CREDENTIALS)

    if not services.passwords.verify_password(password, user.hashed_password):
        return _error(401, INVALID_CREDENTIALS)

    logger.info("Login succeeded user_id=%s", user.user_id)
    return AuthResult(200, {"userId": user.user_id, "email": user.email, **_token_pair(services, user)})


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------


def refresh(body: dict | None, services: AuthServices) -> AuthResult:
    """Redeem a refresh token for a new access token AND a new refresh token."""
    if body is None:
        return _error(400, BODY_REQUIRED)

    raw = body.get("refreshToken") if isinstance(body, dict) else None
    if not raw or not isinstance(raw, str):
        return _invalid(["refreshToken is required and must be a string"])

    try:
        claims = services.tokens.validate_token(raw)
    except TokenError as exc:
        logger.debug("Refresh rejected: %s", exc)
        return _error(401, INVALID_TOKEN)

    # An access token must never be redeemable here.
    if claims.get("type") != REFRESH:
        return _error(401, INVALID_TOKEN)

    user_id = claims.get("userId")
    if not user_id or not isinstance(user_id, str):
        return _error(401, INVALID_TOKEN)

    user = services.users.get_user_by_id(user_id)
    if user is None:
        return _error(401, INVALID_TOKEN)

    return AuthResult(200, _token_pair(services, user))


# ---------------------------------------------------------------------------
# Password reset: request
# ---------------------------------------------------------------------------


def reset_request(body: dict | None, services: AuthServices) -> AuthResult:
    """Issue a single-use reset secret.

    The secret is returned in the response body, not sent out-of-band. The
    response is the same whether or not the email belongs to an account.
    """
    if body is None:
        return _error(400, BODY_REQUIRED)

    email = body.get("email") if isinstance(body, dict) else None
    if not email or not isinstance(email, str):
        return _invalid(["email is required and must be a string"])
    if not services.validation.validate_email(email):
        return _invalid(["Invalid email format"])

    user = services.users.get_user_by_email(email)
    reset_token = services.tokens.generate_reset_token()

    if user is None:
        # Equalize timing with the hash-and-store path below [C1]
        services.passwords.burn_verification(reset_token)
        logger.debug("Reset requested for unknown email; nothing stored")
        return AuthResult(200, {"message": RESET_REQUESTED, "resetToken": reset_token})

    expiry = _now() + timedelta(seconds=services.settings.reset_token_expire_seconds)
    services.users.set_reset_token(
        user.user_id,
        services.passwords.hash_password(reset_token),
        expiry.isoformat(),
        lookup=services.tokens.reset_lookup_hash(reset_token),
    )
    logger.info("Reset token issued user_id=%s", user.user_id)
    return AuthResult(200, {"message": RESET_REQUESTED, "resetToken": reset_token})


# ---------------------------------------------------------------------------
# Password reset: complete
# ---------------------------------------------------------------------------


def _find_reset_holder(raw_token: str, services: AuthServices) -> UserRecord | None:
    """Return the user whose stored reset hash matches raw_token, or None.

    "index" mode reads one row by HMAC digest; "scan" mode walks every user
    page by page and stops at the first bcrypt match.
    """
    passwords = services.passwords
    if services.settings.reset_token_lookup == "index":
        user = services.users.get_user_by_reset_lookup(services.tokens.reset_lookup_hash(raw_token))
        if user is not None and user.reset_token and passwords.verify_password(raw_token, user.reset_token):
            return user
        return None

    for page in services.users.iter_user_pages(services.settings.user_scan_page_size):
        for user in page:
            if user.reset_token and passwords.verify_password(raw_token, user.reset_token):
                return user
    return None


def reset_complete(body: dict | None, services: AuthServices) -> AuthResult:
    """Consume a reset secret and set a new password."""
    if body is None:
        return _error(400, BODY_REQUIRED)
    if not isinstance(body, dict):
        return _invalid(["resetToken is required and must be a string"])

    raw_token = body.get("resetToken")
    if not raw_token or not isinstance(raw_token, str):
        return _invalid(["resetToken is required and must be a string"])

    new_password = body.get("newPassword")
    if not new_password or not isinstance(new_password, str):
        return _invalid(["newPassword is required and must be a string"])

    strength = services.passwords.validate_password_requirements(new_password)
    if not strength.valid:
        return _invalid(strength.errors)

    user = _find_reset_holder(raw_token, services)
    if user is None:
        return _error(401, INVALID_RESET_TOKEN)

    # Fail-closed: a missing or unreadable expiry counts as expired.
    expires_at = user.reset_expires_at()
    if expires_at is None or _now() > expires_at:
        return _error(401, INVALID_RESET_TOKEN)

    new_hash = services.passwords.hash_password(new_password)
    if not services.users.complete_reset(user.user_id, user.reset_token, new_hash):
        # Another completion spent this secret after we read it.
        return _error(401, INVALID_RESET_TOKEN)

    logger.info("Password reset completed user_id=%s", user.user_id)
    return AuthResult(200, {"message": RESET_COMPLETE})
