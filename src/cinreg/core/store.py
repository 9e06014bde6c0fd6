from __future__ import annotations

import copy
import logging
import secrets
import threading
import time
import uuid
from typing import Any, Callable, Protocol

from .errors import AuthError, StoreError
from .records import Identity

logger = logging.getLogger(__name__)

Document = dict[str, Any]
ChangeHandler = Callable[[list[Document]], None]
ErrorHandler = Callable[[Exception], None]


def collection_path(namespace: str, uid: str) -> str:
    return f"artifacts/{namespace}/users/{uid}/cin_registry"


class Subscription:
    """Cancellable handle for a standing collection subscription.

    Delivery and cancellation share a lock: once `unsubscribe()` returns, the
    consumer will not be called again. Cancelling from inside a callback is fine.
    """

    def __init__(self, on_cancel: Callable[[], None] | None = None) -> None:
        self._lock = threading.RLock()
        self._active = True
        self._on_cancel = on_cancel

    @property
    def active(self) -> bool:
        with self._lock:
            return self._active

    def unsubscribe(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
        if self._on_cancel is not None:
            self._on_cancel()

    def deliver(self, fn: Callable[..., None], *args: Any) -> bool:
        with self._lock:
            if not self._active:
                return False
            fn(*args)
            return True


class DocumentStore(Protocol):
    """The hosted document database, seen from the registry."""

    def authenticate(self, bootstrap_token: str | None = None) -> Identity: ...
    def current_identity(self) -> Identity | None: ...
    def subscribe_collection(
        self,
        namespace: str,
        identity: Identity,
        on_change: ChangeHandler,
        on_error: ErrorHandler | None = None,
    ) -> Subscription: ...
    def upsert(self, namespace: str, identity: Identity, key: str, document: Document) -> float: ...
    def remove(self, namespace: str, identity: Identity, key: str) -> None: ...


class _Listener:
    def __init__(self, path: str, on_change: ChangeHandler, on_error: ErrorHandler | None) -> None:
        self.path = path
        self.on_change = on_change
        self.on_error = on_error
        self.subscription: Subscription | None = None


class InMemoryDocumentStore:
    """Process-local document store with auth and change notifications.

    Collections are keyed by `collection_path(namespace, uid)`; each one is a plain
    dict of key -> document. Every mutating call bumps the collection revision and
    pushes the full collection to its listeners.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._lock = threading.RLock()
        # Serializes notifications so listeners observe writes in order.
        self._notify_lock = threading.RLock()
        self._clock = clock
        self._collections: dict[str, dict[str, Document]] = {}
        self._revisions: dict[str, int] = {}
        self._listeners: dict[str, list[_Listener]] = {}
        self._sessions: dict[str, Identity] = {}
        self._custom_tokens: dict[str, str] = {}
        self._current: Identity | None = None

    # -- auth ---------------------------------------------------------------

    def mint_custom_token(self, uid: str) -> str:
        uid = str(uid).strip()
        if not uid:
            raise ValueError("uid cannot be empty")
        token = secrets.token_urlsafe(24)
        with self._lock:
            self._custom_tokens[token] = uid
        return token

    def authenticate(self, bootstrap_token: str | None = None) -> Identity:
        with self._lock:
            if bootstrap_token is not None:
                uid = self._custom_tokens.get(bootstrap_token)
                if uid is None:
                    raise AuthError("Invalid custom token")
                anonymous = False
            else:
                uid = uuid.uuid4().hex
                anonymous = True
            identity = Identity(uid=uid, token=secrets.token_urlsafe(24), anonymous=anonymous)
            self._sessions[identity.token] = identity
            self._current = identity
        logger.info("Signed in %s user %s", "anonymous" if anonymous else "token", identity.display_id)
        return identity

    def current_identity(self) -> Identity | None:
        with self._lock:
            if self._current is None or self._current.token not in self._sessions:
                return None
            return self._current

    def sign_out(self, identity: Identity | None = None) -> None:
        with self._lock:
            target = identity or self._current
            if target is None:
                return
            self._sessions.pop(target.token, None)
            if self._current is not None and self._current.token == target.token:
                self._current = None

    def identity_for_token(self, token: str) -> Identity | None:
        with self._lock:
            return self._sessions.get(token)

    def _path_for_locked(self, namespace: str, identity: Identity) -> str:
        known = self._sessions.get(identity.token)
        if known is None or known.uid != identity.uid:
            raise StoreError("Missing or insufficient permissions.")
        if not namespace:
            raise StoreError("namespace cannot be empty")
        return collection_path(namespace, identity.uid)

    # -- reads --------------------------------------------------------------

    def list_documents(self, namespace: str, identity: Identity) -> list[Document]:
        return self.read_collection(namespace, identity)[1]

    def read_collection(self, namespace: str, identity: Identity) -> tuple[int, list[Document]]:
        """Revision and documents taken together under one lock."""
        with self._lock:
            path = self._path_for_locked(namespace, identity)
            docs = copy.deepcopy(list(self._collections.get(path, {}).values()))
            return self._revisions.get(path, 0), docs

    def revision(self, namespace: str, identity: Identity) -> int:
        with self._lock:
            path = self._path_for_locked(namespace, identity)
            return self._revisions.get(path, 0)

    # -- subscriptions ------------------------------------------------------

    def subscribe_collection(
        self,
        namespace: str,
        identity: Identity,
        on_change: ChangeHandler,
        on_error: ErrorHandler | None = None,
    ) -> Subscription:
        with self._notify_lock:
            with self._lock:
                path = self._path_for_locked(namespace, identity)
                listener = _Listener(path, on_change, on_error)
                listener.subscription = Subscription(on_cancel=lambda: self._drop_listener(listener))
                self._listeners.setdefault(path, []).append(listener)
                docs = copy.deepcopy(list(self._collections.get(path, {}).values()))
            # Initial delivery mirrors a freshly attached change feed.
            self._deliver(listener, docs)
        return listener.subscription

    def _drop_listener(self, listener: _Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(listener.path, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._listeners.pop(listener.path, None)

    def listener_count(self, namespace: str, uid: str) -> int:
        with self._lock:
            return len(self._listeners.get(collection_path(namespace, uid), []))

    def _deliver(self, listener: _Listener, docs: list[Document]) -> None:
        sub = listener.subscription
        if sub is None:
            return
        try:
            sub.deliver(listener.on_change, docs)
        except Exception as ex:
            logger.exception("Listener for %s raised", listener.path)
            if listener.on_error is not None:
                sub.deliver(listener.on_error, ex)

    def _notify(self, path: str) -> None:
        with self._lock:
            listeners = list(self._listeners.get(path, []))
            docs = list(self._collections.get(path, {}).values())
        for listener in listeners:
            self._deliver(listener, copy.deepcopy(docs))

    # -- writes -------------------------------------------------------------

    def upsert(self, namespace: str, identity: Identity, key: str, document: Document) -> float:
        key = str(key)
        if not key or "/" in key:
            raise StoreError(f"Invalid document key: {key!r}")
        with self._notify_lock:
            with self._lock:
                path = self._path_for_locked(namespace, identity)
                updated_at = float(self._clock())
                stored = copy.deepcopy(dict(document))
                stored["updatedAt"] = updated_at
                # setDoc semantics: the key names a slot, later writes overwrite it.
                self._collections.setdefault(path, {})[key] = stored
                self._revisions[path] = self._revisions.get(path, 0) + 1
            logger.debug("Upserted %s/%s", path, key)
            self._notify(path)
        return updated_at

    def remove(self, namespace: str, identity: Identity, key: str) -> None:
        with self._notify_lock:
            with self._lock:
                path = self._path_for_locked(namespace, identity)
                removed = self._collections.get(path, {}).pop(str(key), None)
                if removed is None:
                    return
                self._revisions[path] = self._revisions.get(path, 0) + 1
            logger.debug("Removed %s/%s", path, key)
            self._notify(path)

    def reset(self) -> None:
        with self._lock:
            self._collections.clear()
            self._revisions.clear()
            self._listeners.clear()
            self._sessions.clear()
            self._custom_tokens.clear()
            self._current = None


STORE = InMemoryDocumentStore()
