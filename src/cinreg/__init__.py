from __future__ import annotations

from .adapter import RegistryStoreAdapter, snapshot_from_documents, validate_entry
from .config import RegistryConfig, configure_logging
from .core.cin import MIN_CIN_LENGTH, is_valid_cin, normalize_cin
from .core.errors import AuthError, RegistryError, StoreError, ValidationError
from .core.records import Identity, LookupResult, LookupStatus, Record, Snapshot
from .core.store import DocumentStore, InMemoryDocumentStore, Subscription
from .identity import AuthState, IdentityResolver
from .session import RegistrySession, connect
from .view import FormMode, FormState, RegistryView, lookup

__all__ = [
    "MIN_CIN_LENGTH",
    "normalize_cin",
    "is_valid_cin",
    "RegistryError",
    "AuthError",
    "ValidationError",
    "StoreError",
    "Identity",
    "Record",
    "Snapshot",
    "LookupStatus",
    "LookupResult",
    "DocumentStore",
    "InMemoryDocumentStore",
    "Subscription",
    "RegistryConfig",
    "configure_logging",
    "AuthState",
    "IdentityResolver",
    "RegistryStoreAdapter",
    "snapshot_from_documents",
    "validate_entry",
    "FormMode",
    "FormState",
    "RegistryView",
    "lookup",
    "RegistrySession",
    "connect",
]
