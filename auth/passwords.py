"""
auth/passwords.py -- bcrypt hashing and verification of secrets.

Used for account passwords and, generically, for password-reset secrets: both
are stored only as salted bcrypt hashes and checked with bcrypt.checkpw.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection trips over bcrypt 4.x, and direct usage has no compatibility shim.

bcrypt only looks at the first 72 bytes of its input, and recent releases
raise on anything longer. _encode() truncates to 72 UTF-8 bytes on both the
hash and verify paths, so long passwords behave the same on every release.
"""

from __future__ import annotations

import logging

import bcrypt

from auth.policy import PasswordPolicy, ValidationResult

logger = logging.getLogger("identity.auth")

BCRYPT_MAX_BYTES = 72


def _encode(secret: str) -> bytes:
    return secret.encode("utf-8")[:BCRYPT_MAX_BYTES]


class PasswordService:
    """Adaptive salted hashing with a fixed work factor.

    Two hashes of the same input differ (random salt), so callers must compare
    with verify_password(), never with ==.
    """

    def __init__(self, rounds: int = 10, policy: PasswordPolicy | None = None) -> None:
        self.rounds = rounds
        self.policy = policy or PasswordPolicy()
        # Timing equalization [C1]: computed once so the first unknown-email
        # login is not measurably faster than the rest.
        self._dummy_hash = self.hash_password("identity-timing-dummy")

    def hash_password(self, plain: str) -> str:
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify_password(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed. Malformed hashes verify as False."""
        try:
            return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except (ValueError, TypeError, AttributeError):
            logger.warning("Stored hash could not be checked; treating as mismatch")
            return False

    def burn_verification(self, plain: str) -> None:
        """Run one bcrypt check against a dummy hash and discard the result.

        Called when there is no real hash to compare against (unknown email),
        so the response takes as long as a wrong-password response.
        """
        self.verify_password(plain, self._dummy_hash)

    def validate_password_requirements(self, password: object) -> ValidationResult:
        return self.policy.check(password)
