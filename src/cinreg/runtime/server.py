from __future__ import annotations

import contextlib
import os
import socket
import threading
import time
from dataclasses import dataclass

import uvicorn

from ..api import create_api_app
from ..config import normalize_base_url
from ..core.records import Identity
from ..core.store import STORE, InMemoryDocumentStore
from ..sdk.client import HttpDocumentStore


@dataclass(frozen=True)
class StoreServer:
    host: str
    port: int
    url: str
    server: uvicorn.Server | None = None
    thread: threading.Thread | None = None
    admin_token: str | None = None

    def as_store(self, *, poll_interval_s: float = 0.5, identity: Identity | None = None) -> HttpDocumentStore:
        """HTTP store client pointed at this server."""
        return HttpDocumentStore(
            self.url.rstrip("/"),
            poll_interval_s=poll_interval_s,
            identity=identity,
            admin_token=self.admin_token,
        )

    def stop(self, *, timeout_s: float = 5.0) -> None:
        if self.server is None:
            return
        self.server.should_exit = True
        if self.thread is not None:
            self.thread.join(timeout_s)


def _find_free_port(host: str) -> int:
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind((host, 0))
        return int(s.getsockname()[1])


def _is_server_alive(base_url: str, *, timeout_s: float = 0.2) -> bool:
    """Best-effort probe to determine if a cinreg store server is reachable."""

    import httpx

    try:
        with httpx.Client(base_url=base_url, timeout=timeout_s) as client:
            r = client.get("/healthz")
            if r.status_code != 200:
                return False
            data = r.json()
            return bool(data.get("ok"))
    except (httpx.HTTPError, ValueError):
        return False


def run(
    *,
    host: str = "127.0.0.1",
    port: int = 0,
    store: InMemoryDocumentStore | None = None,
    admin_token: str | None = None,
    log_level: str = "info",
    access_log: bool = False,
    new_server: bool = False,
    connect_timeout_s: float = 0.2,
    startup_timeout_s: float = 5.0,
) -> StoreServer | HttpDocumentStore:
    """Serve the document store over HTTP with a single Python call.

    Behavior:
    - If CINREG_URL is set, we *attach* to that existing server unless `new_server=True`.
    - Otherwise, if `port != 0` and a server is already reachable at http://{host}:{port},
      we attach to it unless `new_server=True`.
    - Otherwise we start a new server on a daemon thread and return a `StoreServer`.

    Notes:
    - `port=0` means "pick a free port", so there's nothing to attach to.
    - Admin routes (token minting, reset) use `admin_token`, falling back to
      CINREG_ADMIN_TOKEN; with neither they stay disabled.
    - Uvicorn's per-request access log is off by default because subscribers poll
      the revision endpoint continuously.
    """

    env_url = normalize_base_url(os.getenv("CINREG_URL", ""))
    admin_token = admin_token or os.getenv("CINREG_ADMIN_TOKEN") or None

    # 1) Try attaching to an explicitly provided server.
    if env_url and not new_server:
        if _is_server_alive(env_url, timeout_s=connect_timeout_s):
            return HttpDocumentStore(env_url, admin_token=admin_token)

    # 2) Try attaching to host/port if they are explicitly chosen.
    if port != 0 and not new_server:
        default_url = normalize_base_url(f"http://{host}:{port}")
        if _is_server_alive(default_url, timeout_s=connect_timeout_s):
            return HttpDocumentStore(default_url, admin_token=admin_token)

    # 3) Start a fresh server.
    if port == 0:
        port = _find_free_port(host)

    app = create_api_app(store if store is not None else STORE, admin_token=admin_token)

    config = uvicorn.Config(app, host=host, port=port, log_level=log_level, access_log=access_log)
    server = uvicorn.Server(config)

    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    # Wait for the socket so a subsequent client call doesn't race with startup.
    deadline = time.monotonic() + startup_timeout_s
    while not server.started and thread.is_alive() and time.monotonic() < deadline:
        time.sleep(0.01)

    return StoreServer(
        host=host,
        port=port,
        url=f"http://{host}:{port}/",
        server=server,
        thread=thread,
        admin_token=admin_token,
    )
