"""
auth/policy.py -- The password strength policy, in one place.

Registration (via ValidationService) and reset completion (via
PasswordService.validate_password_requirements) both evaluate new passwords.
Both delegate here so the two flows can never drift apart.

Rules are evaluated independently and cumulatively: a caller submitting
"abc" learns every rule it breaks in one round trip, not one at a time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

PASSWORD_REQUIRED = "Password is required"


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: list[str]) -> ValidationResult:
        return cls(valid=not errors, errors=list(errors))


class PasswordPolicy:
    """Minimum length plus upper-case, lower-case and digit character classes."""

    _UPPER = re.compile(r"[A-Z]")
    _LOWER = re.compile(r"[a-z]")
    _DIGIT = re.compile(r"[0-9]")

    def __init__(self, min_length: int = 8) -> None:
        self.min_length = min_length

    def check(self, password: object) -> ValidationResult:
        """Evaluate every rule against password and return all failures.

        A missing, empty or non-string password yields only the "required"
        error; character-class rules are meaningless without a string.
        """
        if not password or not isinstance(password, str):
            return ValidationResult.from_errors([PASSWORD_REQUIRED])

        errors: list[str] = []
        if len(password) < self.min_length:
            errors.append(f"Password must be at least {self.min_length} characters")
        if not self._UPPER.search(password):
            errors.append("Password must contain at least 1 uppercase letter")
        if not self._LOWER.search(password):
            errors.append("Password must contain at least 1 lowercase letter")
        if not self._DIGIT.search(password):
            errors.append("Password must contain at least 1 number")
        return ValidationResult.from_errors(errors)
