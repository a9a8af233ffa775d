"""
auth/services.py -- The service container handed to every protocol handler.

AuthServices bundles the four collaborators a handler may need. It is built
once per process: build_services() fetches the signing secret from the secret
store, constructs the services around it, and from then on everything in the
container is read-only. Handlers receive the container as a parameter; none
of them reach for module-level state.

get_services() memoizes the container with lru_cache (the same singleton
pattern as core.config.get_settings). reset_services() is the rebuild hook
for tests and for the application shutdown path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from auth.passwords import PasswordService
from auth.policy import PasswordPolicy
from auth.store import UserRepository
from auth.tokens import TokenService
from auth.validation import ValidationService
from core.config import Settings, get_settings
from core.secret_store import SecretStore, build_secret_store, load_signing_secret

logger = logging.getLogger("identity.auth")


@dataclass(frozen=True)
class AuthServices:
    settings: Settings
    validation: ValidationService
    passwords: PasswordService
    tokens: TokenService
    users: UserRepository

    def close(self) -> None:
        self.users.close()


def build_services(
    settings: Settings,
    secret_store: SecretStore | None = None,
    users: UserRepository | None = None,
) -> AuthServices:
    """Construct a fresh AuthServices container.

    secret_store defaults to the backend named in settings; users defaults to
    a UserRepository on settings.database_url.
    """
    store = secret_store or build_secret_store(settings)
    secret = load_signing_secret(store, settings.jwt_secret_name, debug=settings.debug)

    policy = PasswordPolicy()
    services = AuthServices(
        settings=settings,
        validation=ValidationService(policy),
        passwords=PasswordService(rounds=settings.bcrypt_rounds, policy=policy),
        tokens=TokenService(
            secret,
            access_expire_seconds=settings.access_token_expire_seconds,
            refresh_expire_seconds=settings.refresh_token_expire_seconds,
        ),
        users=users or UserRepository(settings.database_url),
    )
    logger.info(
        "Auth services initialized (secret_store=%s, reset_lookup=%s)",
        settings.secret_store,
        settings.reset_token_lookup,
    )
    return services


@lru_cache
def get_services() -> AuthServices:
    """Return the process-wide AuthServices, building it on first call."""
    return build_services(get_settings())


def reset_services() -> None:
    """Drop the memoized container so the next get_services() rebuilds it."""
    get_services.cache_clear()
