from __future__ import annotations

import contextlib
import logging
import threading
from typing import Any, Iterator

from ..core.errors import AuthError, StoreError
from ..core.records import Identity
from ..core.store import ChangeHandler, Document, ErrorHandler, Subscription

logger = logging.getLogger(__name__)


class HttpSubscription(Subscription):
    """Change feed over HTTP: poll the collection revision, refetch when it moves.

    Runs on one daemon thread. The first failure is reported to `on_error` and
    ends the subscription; there is no automatic retry.
    """

    def __init__(
        self,
        store: "HttpDocumentStore",
        namespace: str,
        identity: Identity,
        on_change: ChangeHandler,
        on_error: ErrorHandler | None = None,
        *,
        poll_interval_s: float = 0.5,
    ) -> None:
        super().__init__()
        self._store = store
        self._namespace = namespace
        self._identity = identity
        self._on_change = on_change
        self._on_error = on_error
        self._poll_interval_s = float(poll_interval_s)
        self._stop = threading.Event()
        self._last_revision: int | None = None
        self._thread: threading.Thread | None = None
        # Bounded by one in-flight request.
        self._join_timeout_s = store.timeout_s + self._poll_interval_s

    def start(self) -> "HttpSubscription":
        if self._thread is None:
            self._thread = threading.Thread(target=self._run, name="cinreg-feed", daemon=True)
            self._thread.start()
        return self

    def unsubscribe(self) -> None:
        self._stop.set()
        super().unsubscribe()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(self._join_timeout_s)

    def poll(self) -> bool:
        """Fetch once; deliver the collection if it changed. Returns True on delivery."""
        revision = self._store.revision(self._namespace, self._identity)
        if revision == self._last_revision:
            return False
        revision, docs = self._store.fetch_collection(self._namespace, self._identity)
        self._last_revision = revision
        return self.deliver(self._on_change, docs)

    def _run(self) -> None:
        while self.active and not self._stop.is_set():
            try:
                self.poll()
            except Exception as ex:
                logger.error("Change feed for %s stopped: %s", self._namespace, ex)
                err = ex if isinstance(ex, StoreError) else StoreError(str(ex))
                if self._on_error is not None:
                    self.deliver(self._on_error, err)
                self.unsubscribe()
                return
            self._stop.wait(self._poll_interval_s)


class HttpDocumentStore:
    """`DocumentStore` backed by a running cinreg store server."""

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        *,
        poll_interval_s: float = 0.5,
        timeout_s: float = 10.0,
        client: Any | None = None,
        identity: Identity | None = None,
        admin_token: str | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.poll_interval_s = float(poll_interval_s)
        self.timeout_s = float(timeout_s)
        # Optional pre-built httpx.Client (e.g. a FastAPI TestClient).
        self._client = client
        # A previously issued credential to reuse instead of signing in again.
        self._current: Identity | None = identity
        # Only needed for admin routes such as minting custom tokens.
        self._admin_token = admin_token

    @contextlib.contextmanager
    def _http(self) -> Iterator[Any]:
        if self._client is not None:
            yield self._client
            return

        import httpx

        with httpx.Client(base_url=self.base_url, timeout=self.timeout_s) as client:
            yield client

    def _request(
        self,
        method: str,
        path: str,
        *,
        what: str,
        identity: Identity | None = None,
        json: dict[str, Any] | None = None,
        admin: bool = False,
    ) -> Any:
        import httpx

        headers: dict[str, str] = {}
        if identity is not None:
            headers["Authorization"] = f"Bearer {identity.token}"
        if admin and self._admin_token:
            headers["X-Cinreg-Admin"] = self._admin_token
        try:
            with self._http() as client:
                res = client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as ex:
            raise StoreError(f"{what}: {ex}") from ex

        if res.status_code >= 400:
            raise StoreError(f"{what}: {res.status_code} {res.text}", status_code=res.status_code)
        return res.json()

    # -- auth ---------------------------------------------------------------

    def authenticate(self, bootstrap_token: str | None = None) -> Identity:
        body = {"token": bootstrap_token} if bootstrap_token is not None else {}
        try:
            data = self._request("POST", "/api/auth", what="Authentication failed", json=body)
        except StoreError as ex:
            if ex.status_code == 401:
                raise AuthError(str(ex)) from ex
            raise
        try:
            identity = Identity(
                uid=str(data["uid"]),
                token=str(data["token"]),
                anonymous=bool(data.get("anonymous", False)),
            )
        except (KeyError, TypeError) as ex:
            raise AuthError(f"Authentication returned invalid response: {data}") from ex
        self._current = identity
        return identity

    def current_identity(self) -> Identity | None:
        """The cached credential, if the server still accepts it."""
        if self._current is None:
            return None
        try:
            self._request("GET", "/api/auth/me", what="Credential check failed", identity=self._current)
        except StoreError as ex:
            if ex.status_code != 401:
                raise
            logger.info("Cached credential for %s is no longer valid", self._current.display_id)
            self._current = None
        return self._current

    def mint_custom_token(self, uid: str) -> str:
        data = self._request(
            "POST",
            "/api/auth/custom-token",
            what="Failed to mint token",
            json={"uid": uid},
            admin=True,
        )
        return str(data["token"])

    # -- collection ---------------------------------------------------------

    def revision(self, namespace: str, identity: Identity) -> int:
        data = self._request(
            "GET",
            f"/api/namespaces/{namespace}/revision",
            what="Failed to read revision",
            identity=identity,
        )
        return int(data["revision"])

    def fetch_collection(self, namespace: str, identity: Identity) -> tuple[int, list[Document]]:
        data = self._request(
            "GET",
            f"/api/namespaces/{namespace}/records",
            what="Failed to fetch records",
            identity=identity,
        )
        return int(data["revision"]), [dict(d) for d in data["documents"]]

    def list_documents(self, namespace: str, identity: Identity) -> list[Document]:
        return self.fetch_collection(namespace, identity)[1]

    def subscribe_collection(
        self,
        namespace: str,
        identity: Identity,
        on_change: ChangeHandler,
        on_error: ErrorHandler | None = None,
    ) -> Subscription:
        sub = HttpSubscription(
            self,
            namespace,
            identity,
            on_change,
            on_error,
            poll_interval_s=self.poll_interval_s,
        )
        return sub.start()

    def upsert(self, namespace: str, identity: Identity, key: str, document: Document) -> float:
        data = self._request(
            "PUT",
            f"/api/namespaces/{namespace}/records/{key}",
            what="Failed to save document",
            identity=identity,
            json=dict(document),
        )
        return float(data["updatedAt"])

    def remove(self, namespace: str, identity: Identity, key: str) -> None:
        self._request(
            "DELETE",
            f"/api/namespaces/{namespace}/records/{key}",
            what="Failed to delete document",
            identity=identity,
        )
