"""
auth/models.py -- Domain dataclasses for identity and credential entities.

Pattern: Data class (pure data container, minimal logic). Stores and handlers
do the work; these types only own shape.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class UserRecord:
    """A registered identity. One per email address.

    user_id and created_at are assigned at registration and never change.
    hashed_password is replaced wholesale on password reset.

    reset_token / reset_token_expiry describe an outstanding password reset:
    reset_token is the bcrypt hash of the secret handed to the caller (the
    plaintext is never stored), reset_token_expiry an ISO 8601 timestamp.
    They are written together and cleared together. A record carrying only
    one of the two is treated as having no usable reset (fail-closed).

    reset_token_lookup is the HMAC digest of the same secret, used as an
    indexed lookup key so reset completion does not scan every user.
    """

    user_id: str
    email: str
    hashed_password: str
    created_at: str
    reset_token: str | None = None
    reset_token_expiry: str | None = None
    reset_token_lookup: str | None = None

    def reset_expires_at(self) -> datetime | None:
        """Return the parsed reset expiry, or None if the pair is incomplete or unparsable."""
        if not self.reset_token or not self.reset_token_expiry:
            return None
        try:
            expiry = datetime.fromisoformat(self.reset_token_expiry)
        except ValueError:
            return None
        # Naive timestamps cannot be compared safely against an aware "now".
        if expiry.tzinfo is None:
            return None
        return expiry


@dataclass
class AuthResult:
    """Outcome of one protocol handler: an HTTP status and a JSON-serializable body."""

    status_code: int
    body: dict = field(default_factory=dict)

