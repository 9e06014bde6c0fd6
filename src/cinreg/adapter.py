from __future__ import annotations

import logging
from typing import Callable

from .core.cin import MIN_CIN_LENGTH, normalize_cin
from .core.errors import AuthError, StoreError, ValidationError
from .core.records import Identity, Record, Snapshot
from .core.store import Document, DocumentStore, Subscription

logger = logging.getLogger(__name__)

SnapshotHandler = Callable[[Snapshot], None]
ErrorHandler = Callable[[Exception], None]

INCOMPLETE_FIELDS_MESSAGE = "All fields (CIN, Owner Name, SSSS) must be complete."


def snapshot_from_documents(docs: list[Document]) -> Snapshot:
    """Build a sorted Snapshot from raw store documents, skipping unusable ones.

    A document only counts if its `cin` is already canonical, and each CIN
    appears at most once.
    """
    records: dict[str, Record] = {}
    for doc in docs:
        try:
            record = Record.from_document(doc)
        except (TypeError, ValueError) as ex:
            logger.warning("Skipping malformed registry document: %s", ex)
            continue
        if normalize_cin(record.cin) != record.cin:
            logger.warning("Skipping registry document with non-canonical cin %r", record.cin)
            continue
        if record.cin in records:
            logger.warning("Skipping duplicate registry document for %s", record.cin)
            continue
        records[record.cin] = record
    return Snapshot.from_records(records.values())


def validate_entry(cin: str, owner_name: str, ssss: str) -> Record:
    """Check a form submission and return the canonical Record to write.

    Raises ValidationError naming every failing field.
    """
    key = normalize_cin(cin)
    name = (owner_name or "").strip()
    code = (ssss or "").strip()

    bad: list[str] = []
    if len(key) < MIN_CIN_LENGTH:
        bad.append("cin")
    if not name:
        bad.append("owner_name")
    if not code:
        bad.append("ssss")
    if bad:
        raise ValidationError(INCOMPLETE_FIELDS_MESSAGE, fields=tuple(bad))

    return Record(cin=key, owner_name=name, ssss=code)


class RegistryStoreAdapter:
    """CRUD bridge between registry intents and the document store.

    Every call is scoped to `(namespace, identity)`. Writes never touch local
    state: callers see the effect only through the next subscription Snapshot.
    """

    def __init__(self, store: DocumentStore, namespace: str) -> None:
        if not namespace:
            raise ValueError("namespace cannot be empty")
        self.store = store
        self.namespace = namespace

    @staticmethod
    def _require_identity(identity: Identity | None) -> Identity:
        if identity is None:
            raise AuthError("Error: Registry connection not ready.")
        return identity

    def subscribe(
        self,
        identity: Identity | None,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler | None = None,
    ) -> Subscription:
        ident = self._require_identity(identity)

        def _on_change(docs: list[Document]) -> None:
            on_snapshot(snapshot_from_documents(docs))

        def _on_error(ex: Exception) -> None:
            logger.error("Registry subscription error: %s", ex)
            if on_error is not None:
                on_error(ex if isinstance(ex, StoreError) else StoreError(str(ex)))

        try:
            return self.store.subscribe_collection(self.namespace, ident, _on_change, _on_error)
        except StoreError:
            raise
        except Exception as ex:
            raise StoreError(f"Failed to subscribe: {ex}") from ex

    def save(self, identity: Identity | None, cin: str, owner_name: str, ssss: str) -> str:
        ident = self._require_identity(identity)
        record = validate_entry(cin, owner_name, ssss)
        try:
            self.store.upsert(self.namespace, ident, record.cin, record.to_document())
        except StoreError:
            raise
        except Exception as ex:
            raise StoreError(str(ex)) from ex
        logger.info("Saved CIN %s", record.cin)
        return record.cin

    def delete(self, identity: Identity | None, cin: str) -> str:
        ident = self._require_identity(identity)
        key = normalize_cin(cin)
        if not key:
            raise ValidationError("CIN is required to delete an entry.", fields=("cin",))
        try:
            self.store.remove(self.namespace, ident, key)
        except StoreError:
            raise
        except Exception as ex:
            raise StoreError(str(ex)) from ex
        logger.info("Deleted CIN %s", key)
        return key
