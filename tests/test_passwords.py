"""Unit tests for auth/passwords.py.

Covers:
- Random salt: two hashes of the same input differ, both verify
- Verification is exact and case-sensitive
- Malformed stored hashes verify as False instead of raising
- Inputs past bcrypt's 72-byte window hash and verify without error
"""

import pytest

from auth.passwords import PasswordService


@pytest.fixture(scope="module")
def passwords() -> PasswordService:
    return PasswordService(rounds=4)


class TestHashing:
    def test_hashes_differ_but_both_verify(self, passwords: PasswordService) -> None:
        first = passwords.hash_password("Passw0rd")
        second = passwords.hash_password("Passw0rd")
        assert first != second
        assert passwords.verify_password("Passw0rd", first)
        assert passwords.verify_password("Passw0rd", second)

    def test_hash_is_not_plaintext(self, passwords: PasswordService) -> None:
        hashed = passwords.hash_password("Passw0rd")
        assert "Passw0rd" not in hashed
        assert hashed.startswith("$2")

    def test_work_factor_is_applied(self, passwords: PasswordService) -> None:
        assert passwords.hash_password("Passw0rd").split("$")[2] == "04"


class TestVerification:
    def test_wrong_password(self, passwords: PasswordService) -> None:
        assert not passwords.verify_password("wrong", passwords.hash_password("Passw0rd"))

    def test_case_sensitive(self, passwords: PasswordService) -> None:
        assert not passwords.verify_password("passw0rd", passwords.hash_password("Passw0rd"))

    @pytest.mark.parametrize("stored", ["", "not-a-bcrypt-hash", "$2b$04$short"])
    def test_malformed_hash_is_mismatch(self, passwords: PasswordService, stored: str) -> None:
        assert passwords.verify_password("Passw0rd", stored) is False

    def test_long_input_round_trips(self, passwords: PasswordService) -> None:
        """bcrypt sees only 72 bytes; long secrets must not raise on any bcrypt release."""
        long_secret = "Aa1" + "x" * 200
        hashed = passwords.hash_password(long_secret)
        assert passwords.verify_password(long_secret, hashed)

    def test_burn_verification_returns_nothing(self, passwords: PasswordService) -> None:
        assert passwords.burn_verification("anything") is None
