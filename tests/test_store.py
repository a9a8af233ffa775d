"""Unit tests for auth/store.py (UserRepository).

Covers:
- create_user / get_user_by_id / get_user_by_email round-trip
- Duplicate email raises DuplicateEmailError (unique index)
- Lookups are exact: no case folding on email
- set_reset_token / clear_reset_token write and clear all reset columns together
- complete_reset spends a reset at most once, in one statement
- Error messages never include bound parameters (hashes)
- get_user_by_reset_lookup finds the holder of an outstanding reset
- iter_user_pages visits every user once, in bounded pages, and can stop early
"""

import uuid
from collections.abc import Generator

import pytest
from sqlalchemy.exc import IntegrityError

from auth.store import DuplicateEmailError, UserRepository

CREATED = "2026-01-01T00:00:00+00:00"


@pytest.fixture
def repo() -> Generator[UserRepository, None, None]:
    db_url = f"sqlite:///file:test_store_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    r = UserRepository(db_url)
    yield r
    r.close()


def _add(repo: UserRepository, email: str, user_id: str | None = None) -> str:
    user_id = user_id or str(uuid.uuid4())
    repo.create_user(user_id, email, "$2b$04$hash", CREATED)
    return user_id


class TestCreateAndRead:
    def test_round_trip(self, repo: UserRepository) -> None:
        user_id = _add(repo, "a@b.com")
        by_id = repo.get_user_by_id(user_id)
        by_email = repo.get_user_by_email("a@b.com")
        assert by_id == by_email
        assert by_id.email == "a@b.com"
        assert by_id.created_at == CREATED
        assert by_id.reset_token is None
        assert by_id.reset_token_expiry is None

    def test_missing_user(self, repo: UserRepository) -> None:
        assert repo.get_user_by_id("nope") is None
        assert repo.get_user_by_email("nobody@b.com") is None

    def test_duplicate_email(self, repo: UserRepository) -> None:
        _add(repo, "a@b.com")
        with pytest.raises(DuplicateEmailError):
            _add(repo, "a@b.com")

    def test_duplicate_user_id_is_not_duplicate_email(self, repo: UserRepository) -> None:
        _add(repo, "a@b.com", user_id="same-id")
        with pytest.raises(IntegrityError):
            _add(repo, "c@d.com", user_id="same-id")

    def test_errors_do_not_carry_bound_parameters(self, repo: UserRepository) -> None:
        """Error text reaches the server log; hashes must not ride along."""
        _add(repo, "a@b.com", user_id="same-id")
        with pytest.raises(IntegrityError) as excinfo:
            repo.create_user("same-id", "c@d.com", "$2b$04$leakedhash", CREATED)
        assert "leakedhash" not in str(excinfo.value)

    def test_email_is_case_sensitive(self, repo: UserRepository) -> None:
        """A@B.com and a@b.com are different accounts."""
        _add(repo, "a@b.com")
        assert repo.get_user_by_email("A@B.com") is None
        _add(repo, "A@B.com")
        assert repo.get_user_by_email("A@B.com").email == "A@B.com"


class TestUpdates:
    def test_update_password_only_touches_hash(self, repo: UserRepository) -> None:
        user_id = _add(repo, "a@b.com")
        repo.set_reset_token(user_id, "reset-hash", "2026-01-01T01:00:00+00:00", lookup="digest")
        repo.update_password(user_id, "$2b$04$new")
        user = repo.get_user_by_id(user_id)
        assert user.hashed_password == "$2b$04$new"
        assert user.reset_token == "reset-hash"
        assert user.email == "a@b.com"

    def test_set_and_clear_reset(self, repo: UserRepository) -> None:
        user_id = _add(repo, "a@b.com")
        repo.set_reset_token(user_id, "reset-hash", "2026-01-01T01:00:00+00:00", lookup="digest")
        user = repo.get_user_by_id(user_id)
        assert (user.reset_token, user.reset_token_expiry, user.reset_token_lookup) == (
            "reset-hash",
            "2026-01-01T01:00:00+00:00",
            "digest",
        )

        repo.clear_reset_token(user_id)
        user = repo.get_user_by_id(user_id)
        assert user.reset_token is None
        assert user.reset_token_expiry is None
        assert user.reset_token_lookup is None

    def test_later_reset_overwrites_earlier(self, repo: UserRepository) -> None:
        user_id = _add(repo, "a@b.com")
        repo.set_reset_token(user_id, "first", "2026-01-01T01:00:00+00:00", lookup="d1")
        repo.set_reset_token(user_id, "second", "2026-01-01T02:00:00+00:00", lookup="d2")
        assert repo.get_user_by_reset_lookup("d1") is None
        assert repo.get_user_by_reset_lookup("d2").reset_token == "second"


class TestCompleteReset:
    def test_spends_reset_and_sets_password(self, repo: UserRepository) -> None:
        user_id = _add(repo, "a@b.com")
        repo.set_reset_token(user_id, "reset-hash", "2026-01-01T01:00:00+00:00", lookup="digest")
        assert repo.complete_reset(user_id, "reset-hash", "$2b$04$new") is True
        user = repo.get_user_by_id(user_id)
        assert user.hashed_password == "$2b$04$new"
        assert (user.reset_token, user.reset_token_expiry, user.reset_token_lookup) == (None, None, None)

    def test_second_spend_writes_nothing(self, repo: UserRepository) -> None:
        user_id = _add(repo, "a@b.com")
        repo.set_reset_token(user_id, "reset-hash", "2026-01-01T01:00:00+00:00", lookup="digest")
        assert repo.complete_reset(user_id, "reset-hash", "$2b$04$first") is True
        assert repo.complete_reset(user_id, "reset-hash", "$2b$04$second") is False
        assert repo.get_user_by_id(user_id).hashed_password == "$2b$04$first"

    def test_replaced_reset_is_not_spent(self, repo: UserRepository) -> None:
        user_id = _add(repo, "a@b.com")
        repo.set_reset_token(user_id, "old-hash", "2026-01-01T01:00:00+00:00", lookup="d1")
        repo.set_reset_token(user_id, "new-hash", "2026-01-01T02:00:00+00:00", lookup="d2")
        assert repo.complete_reset(user_id, "old-hash", "$2b$04$new") is False
        user = repo.get_user_by_id(user_id)
        assert user.hashed_password == "$2b$04$hash"
        assert user.reset_token == "new-hash"


class TestResetLookup:
    def test_finds_holder(self, repo: UserRepository) -> None:
        user_id = _add(repo, "a@b.com")
        _add(repo, "c@d.com")
        repo.set_reset_token(user_id, "h", "2026-01-01T01:00:00+00:00", lookup="digest")
        assert repo.get_user_by_reset_lookup("digest").user_id == user_id

    def test_unknown_digest(self, repo: UserRepository) -> None:
        _add(repo, "a@b.com")
        assert repo.get_user_by_reset_lookup("digest") is None


class TestPagination:
    def test_visits_every_user_once(self, repo: UserRepository) -> None:
        ids = {_add(repo, f"user{i}@b.com") for i in range(7)}
        pages = list(repo.iter_user_pages(page_size=3))
        assert [len(p) for p in pages] == [3, 3, 1]
        assert {u.user_id for p in pages for u in p} == ids

    def test_exact_multiple_of_page_size(self, repo: UserRepository) -> None:
        for i in range(4):
            _add(repo, f"user{i}@b.com")
        assert [len(p) for p in repo.iter_user_pages(page_size=2)] == [2, 2]

    def test_empty_table(self, repo: UserRepository) -> None:
        assert list(repo.iter_user_pages(page_size=5)) == []
        assert repo.get_all_users() == []

    def test_consumer_can_stop_early(self, repo: UserRepository) -> None:
        for i in range(6):
            _add(repo, f"user{i}@b.com")
        pages = repo.iter_user_pages(page_size=2)
        first = next(pages)
        assert len(first) == 2
        pages.close()

    def test_get_all_users(self, repo: UserRepository) -> None:
        for i in range(5):
            _add(repo, f"user{i}@b.com")
        assert len(repo.get_all_users(page_size=2)) == 5
