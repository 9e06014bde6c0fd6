from __future__ import annotations

from .cin import MIN_CIN_LENGTH, is_valid_cin, normalize_cin
from .errors import AuthError, RegistryError, StoreError, ValidationError
from .records import EMPTY_SNAPSHOT, Identity, LookupResult, LookupStatus, Record, Snapshot
from .store import STORE, DocumentStore, InMemoryDocumentStore, Subscription, collection_path

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
    "EMPTY_SNAPSHOT",
    "LookupStatus",
    "LookupResult",
    "DocumentStore",
    "InMemoryDocumentStore",
    "Subscription",
    "STORE",
    "collection_path",
]
