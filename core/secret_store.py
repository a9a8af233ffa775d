"""
core/secret_store.py -- Secret store collaborators for the signing key.

The service needs exactly one secret: the symmetric key that signs access and
refresh tokens. It is fetched once, when the service container is built
(auth/services.py), and held in memory for the life of the process.

Backends:
  EnvSecretStore:      process environment. Secret "jwt-secret" is read from
                       JWT_SECRET (upper-cased, non-alphanumerics -> "_").
  FileSecretStore:     one file per secret inside a directory, the layout used
                       by Docker and Kubernetes secret mounts (/run/secrets).
  InMemorySecretStore: fixed mapping, for tests and embedding.

Security notes:
  [M6] Secrets shorter than 32 characters are rejected. HS256 signing and the
       HMAC reset-lookup digest both rely on key entropy.
  [M7] Outside debug mode a missing secret is a hard startup failure. In debug
       mode a random key is generated with a warning.

Layer rule: core/ may not import from api/ or auth/.
"""

from __future__ import annotations

import logging
import os
import re
import secrets
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from core.config import Settings

logger = logging.getLogger("identity.secrets")

MIN_SECRET_LENGTH = 32


class SecretStoreError(Exception):
    """Raised when a secret cannot be retrieved or fails policy checks."""


class SecretStore(Protocol):
    def get_secret(self, name: str) -> str: ...


class EnvSecretStore:
    """Read secrets from environment variables."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    @staticmethod
    def env_name(name: str) -> str:
        return re.sub(r"[^A-Za-z0-9]+", "_", name).strip("_").upper()

    def get_secret(self, name: str) -> str:
        var = self.env_name(name)
        value = self._environ.get(var, "")
        if not value:
            raise SecretStoreError(f"Secret {name!r} is not set (expected environment variable {var}).")
        return value


class FileSecretStore:
    """Read secrets from files named after the secret inside a directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def get_secret(self, name: str) -> str:
        # Secret names are file names, never paths.
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise SecretStoreError(f"Invalid secret name {name!r}.")
        path = self.directory / name
        try:
            value = path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise SecretStoreError(f"Failed to read secret {name!r} from {self.directory}: {exc}") from exc
        if not value:
            raise SecretStoreError(f"Secret file for {name!r} is empty.")
        return value


class InMemorySecretStore:
    def __init__(self, values: Mapping[str, str]) -> None:
        self._values = dict(values)

    def get_secret(self, name: str) -> str:
        try:
            return self._values[name]
        except KeyError:
            raise SecretStoreError(f"Secret {name!r} is not set.") from None


def build_secret_store(settings: Settings) -> SecretStore:
    """Return the secret store backend selected by settings.secret_store."""
    if settings.secret_store == "file":
        return FileSecretStore(settings.secrets_dir)
    return EnvSecretStore()


def load_signing_secret(store: SecretStore, name: str, debug: bool = False) -> str:
    """Fetch the token signing secret and enforce the key policy [M6][M7].

    Dev mode (debug=True): a missing secret is replaced with a random key and
        a warning. Tokens will not validate after a restart.
    Production mode: a missing secret raises SecretStoreError.
    Both modes: secrets shorter than MIN_SECRET_LENGTH raise SecretStoreError.
    """
    try:
        secret = store.get_secret(name)
    except SecretStoreError:
        if not debug:
            raise
        logger.warning("WARNING: Using auto-generated signing secret. Tokens will not survive a restart.")
        return secrets.token_hex(32)
    if len(secret) < MIN_SECRET_LENGTH:
        raise SecretStoreError(f"Secret {name!r} must be at least {MIN_SECRET_LENGTH} characters.")
    return secret
