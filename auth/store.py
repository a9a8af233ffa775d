"""
auth/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper. UserRepository is the repository;
_row_to_user is the mapper. Handlers never touch SQL directly.

Keys and indexes:
  user_id             primary key (UUID4 string, assigned by the caller).
  email               secondary lookup key, UNIQUE index. Registration still
                      checks for an existing email first; the index turns the
                      remaining check-then-insert race into DuplicateEmailError
                      instead of a silent second account.
  reset_token_lookup  HMAC digest of an outstanding reset secret, indexed so
                      reset completion is a single keyed read.

Emails are stored and matched exactly as given (no case folding).

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from sqlalchemy import Column, Index, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import UserRecord

logger = logging.getLogger("identity.store")

_DEFAULT_DB_URL = "sqlite:///identity.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("user_id", String(36), primary_key=True),
    Column("email", String(320), nullable=False),
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("reset_token", Text),  # bcrypt hash of the reset secret
    Column("reset_token_expiry", String(32)),  # ISO 8601, UTC
    Column("reset_token_lookup", String(64)),  # HMAC-SHA256 hex of the reset secret
    Index("ix_users_email", "email", unique=True),
    Index("ix_users_reset_token_lookup", "reset_token_lookup"),
)


class DuplicateEmailError(Exception):
    """Raised by create_user when the email is already registered."""


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by a writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserRepository:
    """Repository for UserRecord entities.

    Usage:
        repo = UserRepository("sqlite:///identity.db")
        repo.create_user(str(uuid4()), "a@b.com", hashed, created_at)
        user = repo.get_user_by_email("a@b.com")
        repo.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, hide_parameters=True)
        if db_url.startswith("sqlite") and "mode=memory" not in db_url and ":memory:" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user_id: str, email: str, hashed_password: str, created_at: str) -> None:
        """Insert a new user record.

        Raises DuplicateEmailError if the email is already taken. Any other
        IntegrityError (e.g. a reused user_id) propagates unchanged.
        """
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _users.insert().values(
                        user_id=user_id,
                        email=email,
                        hashed_password=hashed_password,
                        created_at=created_at,
                    )
                )
        except IntegrityError as exc:
            # SQLite names the column, PostgreSQL the index; both contain "email".
            if "email" in str(exc.orig).lower():
                raise DuplicateEmailError(email) from exc
            raise

    def update_password(self, user_id: str, hashed_password: str) -> None:
        """Replace the password hash. No other column is touched."""
        with self.engine.begin() as conn:
            conn.execute(_users.update().where(_users.c.user_id == user_id).values(hashed_password=hashed_password))

    def set_reset_token(self, user_id: str, token_hash: str, expiry: str | None, lookup: str | None = None) -> None:
        """Store an outstanding reset: hash and expiry are always written together.

        A later request overwrites the earlier one, so only the most recently
        issued secret can complete a reset.
        """
        with self.engine.begin() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.user_id == user_id)
                .values(reset_token=token_hash, reset_token_expiry=expiry, reset_token_lookup=lookup)
            )

    def clear_reset_token(self, user_id: str) -> None:
        """Remove every reset column in one statement."""
        with self.engine.begin() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.user_id == user_id)
                .values(reset_token=None, reset_token_expiry=None, reset_token_lookup=None)
            )

    def complete_reset(self, user_id: str, expected_reset_hash: str, hashed_password: str) -> bool:
        """Set a new password and spend the outstanding reset in one statement.

        The UPDATE only matches while reset_token still equals
        expected_reset_hash. Returns False when the reset was already spent or
        replaced, in which case nothing is written.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.user_id == user_id)
                .where(_users.c.reset_token == expected_reset_hash)
                .values(
                    hashed_password=hashed_password,
                    reset_token=None,
                    reset_token_expiry=None,
                    reset_token_lookup=None,
                )
            )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_user_by_id(self, user_id: str) -> UserRecord | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.user_id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_user_by_email(self, email: str) -> UserRecord | None:
        """Look up a user by exact email via the unique email index."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_user_by_reset_lookup(self, lookup: str) -> UserRecord | None:
        """Return the user holding an outstanding reset with this HMAC digest."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.reset_token_lookup == lookup)).fetchone()
        return _row_to_user(row) if row is not None else None

    def iter_user_pages(self, page_size: int = 100) -> Iterator[list[UserRecord]]:
        """Yield every user, page_size records at a time, ordered by user_id.

        Keyset pagination (WHERE user_id > last_seen) keeps each page a bounded
        indexed range read, and lets a consumer stop early without fetching
        the rest of the table.
        """
        last_seen: str | None = None
        while True:
            query = _users.select().order_by(_users.c.user_id).limit(page_size)
            if last_seen is not None:
                query = query.where(_users.c.user_id > last_seen)
            with self.engine.connect() as conn:
                rows = conn.execute(query).fetchall()
            if not rows:
                return
            yield [_row_to_user(r) for r in rows]
            if len(rows) < page_size:
                return
            last_seen = rows[-1].user_id

    def get_all_users(self, page_size: int = 100) -> list[UserRecord]:
        """Return every user record (full paginated scan)."""
        return [user for page in self.iter_user_pages(page_size) for user in page]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> UserRecord:
    return UserRecord(
        user_id=row.user_id,
        email=row.email,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
        reset_token=row.reset_token,
        reset_token_expiry=row.reset_token_expiry,
        reset_token_lookup=row.reset_token_lookup,
    )
