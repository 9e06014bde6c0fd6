from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

from .core.errors import AuthError, RegistryError
from .core.records import Identity

logger = logging.getLogger(__name__)


class AuthProvider(Protocol):
    def authenticate(self, bootstrap_token: str | None = None) -> Identity: ...
    def current_identity(self) -> Identity | None: ...


class AuthState(str, Enum):
    PENDING = "pending"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class IdentityResolver:
    """Establish exactly one session identity before the registry is touched.

    Order: reuse the provider's live credential, then the bootstrap token (if any),
    then anonymous sign-in. When everything fails the resolver settles in
    `AuthState.UNAUTHENTICATED` and raises `AuthError`.
    """

    def __init__(self, provider: AuthProvider, *, bootstrap_token: str | None = None) -> None:
        self._provider = provider
        self._bootstrap_token = bootstrap_token
        self._state = AuthState.PENDING
        self._identity: Identity | None = None

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def identity(self) -> Identity | None:
        return self._identity

    def resolve_identity(self) -> Identity:
        if self._state is AuthState.AUTHENTICATED and self._identity is not None:
            return self._identity

        try:
            existing = self._provider.current_identity()
        except RegistryError as ex:
            logger.warning("Could not check existing credential, signing in again: %s", ex)
            existing = None
        if existing is not None:
            return self._settle(existing)

        if self._bootstrap_token:
            try:
                return self._settle(self._provider.authenticate(self._bootstrap_token))
            except RegistryError as ex:
                logger.warning("Bootstrap token sign-in failed, falling back to anonymous: %s", ex)

        try:
            return self._settle(self._provider.authenticate(None))
        except RegistryError as ex:
            self._state = AuthState.UNAUTHENTICATED
            self._identity = None
            logger.error("Authentication failed: %s", ex)
            if isinstance(ex, AuthError):
                raise
            raise AuthError(f"Authentication failed: {ex}") from ex

    def _settle(self, identity: Identity) -> Identity:
        self._identity = identity
        self._state = AuthState.AUTHENTICATED
        return identity
