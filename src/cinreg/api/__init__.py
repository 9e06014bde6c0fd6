from __future__ import annotations

import logging
import secrets

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from ..core.errors import AuthError, StoreError
from ..core.records import Identity
from ..core.store import STORE, InMemoryDocumentStore

logger = logging.getLogger(__name__)


def create_api_app(
    store: InMemoryDocumentStore | None = None,
    *,
    admin_token: str | None = None,
) -> FastAPI:
    """HTTP face of the document store.

    Callers sign in through `/api/auth` and then send `Authorization: Bearer <token>`;
    every collection route is scoped to the uid behind that token.

    Minting custom tokens and resetting the store are admin routes: they need
    `X-Cinreg-Admin: <admin_token>` and are disabled (403) when no admin token is set.
    """

    store = store if store is not None else STORE
    app = FastAPI(title="cinreg", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _identity(request: Request) -> Identity:
        header = request.headers.get("authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise HTTPException(status_code=401, detail="Missing bearer token")
        identity = store.identity_for_token(token.strip())
        if identity is None:
            raise HTTPException(status_code=401, detail="Unknown or expired token")
        return identity

    def _require_admin(request: Request) -> None:
        if not admin_token:
            raise HTTPException(status_code=403, detail="Admin routes are disabled")
        supplied = request.headers.get("x-cinreg-admin", "")
        if not secrets.compare_digest(supplied.encode(), admin_token.encode()):
            raise HTTPException(status_code=403, detail="Admin token required")

    @app.get("/healthz")
    def healthz() -> dict[str, bool]:
        return {"ok": True}

    @app.post("/api/auth")
    def authenticate(body: dict | None = None) -> dict:
        token = (body or {}).get("token")
        if token is not None and not isinstance(token, str):
            raise HTTPException(status_code=400, detail="token must be a string")
        try:
            identity = store.authenticate(token or None)
        except AuthError as ex:
            raise HTTPException(status_code=401, detail=str(ex))
        return {"uid": identity.uid, "token": identity.token, "anonymous": identity.anonymous}

    @app.get("/api/auth/me")
    def whoami(request: Request) -> dict:
        identity = _identity(request)
        return {"uid": identity.uid, "token": identity.token, "anonymous": identity.anonymous}

    @app.post("/api/auth/custom-token")
    def mint_custom_token(body: dict, request: Request) -> dict[str, str]:
        _require_admin(request)
        uid = str(body.get("uid") or "").strip()
        if not uid:
            raise HTTPException(status_code=400, detail="uid is required")
        return {"token": store.mint_custom_token(uid)}

    @app.get("/api/namespaces/{namespace}/revision")
    def collection_revision(namespace: str, request: Request) -> dict[str, int]:
        identity = _identity(request)
        try:
            return {"revision": store.revision(namespace, identity)}
        except StoreError as ex:
            raise HTTPException(status_code=403, detail=str(ex))

    @app.get("/api/namespaces/{namespace}/records")
    def list_records(namespace: str, request: Request) -> dict:
        identity = _identity(request)
        try:
            revision, documents = store.read_collection(namespace, identity)
        except StoreError as ex:
            raise HTTPException(status_code=403, detail=str(ex))
        return {"revision": revision, "documents": documents}

    @app.put("/api/namespaces/{namespace}/records/{key}")
    def upsert_record(namespace: str, key: str, body: dict, request: Request) -> dict:
        identity = _identity(request)
        if body.get("cin") != key:
            raise HTTPException(status_code=400, detail="Document cin must match its key")
        try:
            updated_at = store.upsert(namespace, identity, key, body)
        except StoreError as ex:
            raise HTTPException(status_code=400, detail=str(ex))
        return {"ok": True, "key": key, "updatedAt": updated_at}

    @app.delete("/api/namespaces/{namespace}/records/{key}")
    def remove_record(namespace: str, key: str, request: Request) -> dict[str, bool]:
        identity = _identity(request)
        try:
            store.remove(namespace, identity, key)
        except StoreError as ex:
            raise HTTPException(status_code=400, detail=str(ex))
        return {"ok": True}

    @app.post("/api/reset")
    def reset_store(request: Request) -> dict[str, bool]:
        _require_admin(request)
        store.reset()
        logger.info("Store reset")
        return {"ok": True}

    return app
