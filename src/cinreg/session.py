from __future__ import annotations

import logging
import threading

from .adapter import RegistryStoreAdapter
from .config import RegistryConfig
from .core.errors import AuthError, StoreError, ValidationError
from .core.records import Identity, LookupResult, Snapshot
from .core.store import DocumentStore, Subscription
from .identity import IdentityResolver
from .view import FormMode, PendingDelete, RegistryView

logger = logging.getLogger(__name__)

NOT_READY_MESSAGE = "Error: Registry connection not ready."


class RegistrySession:
    """One user's registry screen: identity, live subscription and view state.

    `start()` resolves the identity first and only then subscribes. When no
    identity can be established the session stays up with every registry
    operation disabled.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: RegistryConfig | None = None,
        *,
        view: RegistryView | None = None,
    ) -> None:
        self.config = config or RegistryConfig()
        self.store = store
        self.resolver = IdentityResolver(store, bootstrap_token=self.config.bootstrap_token)
        self.adapter = RegistryStoreAdapter(store, self.config.app_id)
        self.view = view or RegistryView()
        self._lock = threading.RLock()
        self._identity: Identity | None = None
        self._subscription: Subscription | None = None

    def __enter__(self) -> "RegistrySession":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def ready(self) -> bool:
        return self._identity is not None

    @property
    def snapshot(self) -> Snapshot:
        return self.view.snapshot

    def start(self) -> Identity | None:
        try:
            identity = self.resolver.resolve_identity()
        except AuthError as ex:
            logger.error("Registry disabled, no identity: %s", ex)
            self.set_identity(None)
            self.view.message = NOT_READY_MESSAGE
            return None
        self.set_identity(identity)
        return identity

    def set_identity(self, identity: Identity | None) -> None:
        """Swap the session identity, tearing down the previous subscription first."""
        with self._lock:
            self._teardown_locked()
            self.view.reset()
            self._identity = identity
            if identity is None:
                return
            try:
                self._subscription = self.adapter.subscribe(identity, self._on_snapshot, self._on_error)
            except StoreError as ex:
                self._on_error(ex)

    def _teardown_locked(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def close(self) -> None:
        with self._lock:
            self._teardown_locked()
            self._identity = None
            self.view.reset()

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        self.view.apply_snapshot(snapshot)

    def _on_error(self, ex: Exception) -> None:
        logger.error("Registry snapshot error: %s", ex)
        self.view.message = f"Error fetching registry data: {ex}"

    # -- commands -----------------------------------------------------------

    def save(self) -> bool:
        """Submit the entry form. Returns True when the store accepted the write."""
        if self._identity is None:
            self.view.message = NOT_READY_MESSAGE
            return False

        form = self.view.form
        verb = "updated" if form.mode is FormMode.EDITING else "added"
        try:
            key = self.adapter.save(self._identity, form.cin, form.owner_name, form.ssss)
        except ValidationError as ex:
            self.view.message = str(ex)
            return False
        except StoreError as ex:
            logger.error("Error saving document: %s", ex)
            self.view.message = f"Failed to save entry: {ex}"
            return False

        self.view.message = f"CIN {key} has been {verb} successfully."
        self.view.clear_form()
        return True

    def request_delete(self, cin: str) -> PendingDelete | None:
        if self._identity is None:
            return None
        return self.view.gate.request(cin)

    def confirm_delete(self) -> bool:
        pending = self.view.gate.confirm()
        try:
            key = self.adapter.delete(self._identity, pending.cin)
        except AuthError:
            self.view.message = NOT_READY_MESSAGE
            return False
        except StoreError as ex:
            logger.error("Error deleting document: %s", ex)
            self.view.message = f"Failed to delete entry: {ex}"
            return False
        self.view.message = f"CIN {key} deleted."
        return True

    def cancel_delete(self) -> None:
        self.view.gate.cancel()

    def lookup(self, query: str) -> LookupResult:
        return self.view.lookup(query)


def connect(config: RegistryConfig | None = None, *, store: DocumentStore | None = None) -> RegistrySession:
    """Open a started session against the configured store.

    With `CINREG_URL` set the session talks HTTP to that server; otherwise it
    uses the process-local store.
    """
    cfg = config or RegistryConfig.from_env()
    if store is None:
        if cfg.store_url:
            from .sdk.client import HttpDocumentStore

            store = HttpDocumentStore(cfg.store_url, poll_interval_s=cfg.poll_interval_s)
        else:
            from .core.store import STORE

            store = STORE

    session = RegistrySession(store, cfg)
    session.start()
    return session
