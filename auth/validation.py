"""
auth/validation.py -- Structural validation of auth request payloads.

Validation here is about shape only. Whether a password is *correct* is
decided by bcrypt in the login handler, which is why validate_login_payload
checks password presence and never strength: an account created under an
older policy must still be able to log in.
"""

from __future__ import annotations

import re

from auth.policy import PASSWORD_REQUIRED, PasswordPolicy, ValidationResult

INVALID_BODY = "Invalid request body"
EMAIL_REQUIRED = "Email is required"
INVALID_EMAIL = "Invalid email format"

# local@domain.tld -- local part and domain from a conservative character set,
# at least one dot in the domain, final label alphabetic and >= 2 chars.
_EMAIL_RE = re.compile(r"[a-zA-Z0-9._-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")


class ValidationService:
    def __init__(self, policy: PasswordPolicy | None = None) -> None:
        self.policy = policy or PasswordPolicy()

    def validate_email(self, email: object) -> bool:
        """Return True if email is a non-empty string in local@domain.tld form."""
        if not email or not isinstance(email, str):
            return False
        return _EMAIL_RE.fullmatch(email) is not None

    def validate_password(self, password: object) -> ValidationResult:
        return self.policy.check(password)

    def validate_registration_payload(self, body: object) -> ValidationResult:
        """Validate a registration body: email format plus the full password policy."""
        if not isinstance(body, dict):
            return ValidationResult.from_errors([INVALID_BODY])

        errors = self._email_errors(body.get("email"))
        password = body.get("password")
        if not password:
            errors.append(PASSWORD_REQUIRED)
        else:
            errors.extend(self.validate_password(password).errors)
        return ValidationResult.from_errors(errors)

    def validate_login_payload(self, body: object) -> ValidationResult:
        """Validate a login body: email format plus password *presence* only."""
        if not isinstance(body, dict):
            return ValidationResult.from_errors([INVALID_BODY])

        errors = self._email_errors(body.get("email"))
        password = body.get("password")
        if not password or not isinstance(password, str):
            errors.append(PASSWORD_REQUIRED)
        return ValidationResult.from_errors(errors)

    def _email_errors(self, email: object) -> list[str]:
        if not email:
            return [EMAIL_REQUIRED]
        if not self.validate_email(email):
            return [INVALID_EMAIL]
        return []
