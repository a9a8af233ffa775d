"""
auth/tokens.py -- Signed bearer tokens and password-reset secrets.

Security design decisions:
  JWT: python-jose with HS256. One symmetric key, fetched from the secret
       store once per process (auth/services.py), signs every token.

       Access tokens carry {userId, email, type: "access"} and live 1 hour.
       Refresh tokens carry {userId, type: "refresh"} and live 7 days; the
       email is left out so a leaked refresh token reveals less.

       Every token also carries iat and a random jti, so two tokens issued for
       the same user in the same second are still distinct. Refresh rotation
       depends on this.

       There is no server-side revocation. A token stays valid until exp.

  Verification raises TokenExpiredError or InvalidTokenError. Both subclass
       TokenError; callers catch the base class and answer with one generic
       message, so expired, forged and malformed tokens look the same from
       outside.

  Reset secrets: secrets.token_urlsafe(32) gives 256 bits of entropy. The
       secret is returned to the caller once; the store keeps a bcrypt hash of
       it plus HMAC-SHA256(signing key, secret). The HMAC digest is
       deterministic, which makes it usable as an indexed lookup key; the
       bcrypt hash is still verified after the lookup.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import uuid
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

ALGORITHM = "HS256"
ACCESS = "access"
REFRESH = "refresh"


class TokenError(Exception):
    """Base class for every token verification failure."""


class TokenExpiredError(TokenError):
    pass


class InvalidTokenError(TokenError):
    pass


class TokenService:
    def __init__(
        self,
        secret: str,
        access_expire_seconds: int = 3600,
        refresh_expire_seconds: int = 7 * 24 * 3600,
    ) -> None:
        self._secret = secret
        self.access_expire_seconds = access_expire_seconds
        self.refresh_expire_seconds = refresh_expire_seconds

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def generate_access_token(self, user_id: str, email: str) -> str:
        """Sign an access token: {userId, email, type: "access"}, exp = now + 1h."""
        claims = {"userId": user_id, "email": email, "type": ACCESS}
        return self._sign(claims, self.access_expire_seconds)

    def generate_refresh_token(self, user_id: str) -> str:
        """Sign a refresh token: {userId, type: "refresh"}, exp = now + 7d."""
        return self._sign({"userId": user_id, "type": REFRESH}, self.refresh_expire_seconds)

    def _sign(self, claims: dict, lifetime: int) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **claims,
            "iat": now,
            "exp": now + timedelta(seconds=lifetime),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def validate_token(self, token: str) -> dict:
        """Verify signature and expiry and return the claims.

        Raises TokenExpiredError for a well-formed token past its exp, and
        InvalidTokenError for everything else (bad signature, garbage input,
        wrong algorithm, non-string token).
        """
        if not isinstance(token, str) or not token:
            raise InvalidTokenError("Invalid token")
        try:
            claims = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except ExpiredSignatureError as exc:
            raise TokenExpiredError("Token expired") from exc
        except JWTError as exc:
            raise InvalidTokenError("Invalid token") from exc
        if not isinstance(claims, dict):
            raise InvalidTokenError("Invalid token format")
        return claims

    def extract_user_id(self, token: str) -> str:
        claims = self.validate_token(token)
        user_id = claims.get("userId")
        if not user_id or not isinstance(user_id, str):
            raise InvalidTokenError("Token does not contain valid userId")
        return user_id

    # ------------------------------------------------------------------
    # Reset secrets
    # ------------------------------------------------------------------

    @staticmethod
    def generate_reset_token() -> str:
        return secrets.token_urlsafe(32)

    def reset_lookup_hash(self, raw_token: str) -> str:
        """Return HMAC-SHA256(signing key, raw_token) as hex.

        Keyed with the signing secret, so someone holding a copy of the user
        table cannot confirm a guessed secret without also holding the key.
        """
        return hmac.new(self._secret.encode("utf-8"), raw_token.encode("utf-8"), hashlib.sha256).hexdigest()
