from __future__ import annotations


class RegistryError(Exception):
    """Base class for every error surfaced by the registry."""


class AuthError(RegistryError):
    """No identity could be established (or the store rejected the credential)."""


class ValidationError(RegistryError):
    """A write was rejected before reaching the store."""

    def __init__(self, message: str, *, fields: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.fields = tuple(fields)


class StoreError(RegistryError):
    """Transport or backend failure reported by the document store."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
