from __future__ import annotations

import pytest

from cinreg.adapter import RegistryStoreAdapter
from cinreg.api import create_api_app
from cinreg.core.errors import AuthError, StoreError
from cinreg.core.records import Identity
from cinreg.core.store import InMemoryDocumentStore
from cinreg.identity import AuthState, IdentityResolver
from cinreg.sdk.client import HttpDocumentStore, HttpSubscription


def _client(store: InMemoryDocumentStore, *, admin_token: str | None = None):
    try:
        from fastapi.testclient import TestClient
    except Exception as e:  # pragma: no cover
        pytest.skip(f"TestClient not available ({e!r}); install test extras to run this test")
    return TestClient(create_api_app(store, admin_token=admin_token))


def test_auth_and_record_routes() -> None:
    client = _client(InMemoryDocumentStore())

    assert client.get("/healthz").json() == {"ok": True}

    auth = client.post("/api/auth", json={})
    assert auth.status_code == 200
    data = auth.json()
    assert data["anonymous"] is True
    headers = {"Authorization": f"Bearer {data['token']}"}

    assert client.get("/api/namespaces/app/records").status_code == 401
    assert client.get("/api/namespaces/app/records", headers={"Authorization": "Bearer nope"}).status_code == 401

    put = client.put(
        "/api/namespaces/app/records/HIXA8349271055624398",
        json={"cin": "HIXA8349271055624398", "ownerName": "Smith", "ssss": "01A"},
        headers=headers,
    )
    assert put.status_code == 200
    assert isinstance(put.json()["updatedAt"], float)

    listing = client.get("/api/namespaces/app/records", headers=headers).json()
    assert listing["revision"] == 1
    assert [d["cin"] for d in listing["documents"]] == ["HIXA8349271055624398"]

    assert client.delete("/api/namespaces/app/records/HIXA8349271055624398", headers=headers).json() == {"ok": True}
    assert client.delete("/api/namespaces/app/records/HIXA8349271055624398", headers=headers).status_code == 200
    assert client.get("/api/namespaces/app/revision", headers=headers).json() == {"revision": 2}


def test_custom_token_route_requires_admin_token() -> None:
    client = _client(InMemoryDocumentStore(), admin_token="s3cret")
    admin = {"X-Cinreg-Admin": "s3cret"}

    assert client.post("/api/auth/custom-token", json={"uid": "cpra"}).status_code == 403
    assert (
        client.post("/api/auth/custom-token", json={"uid": "cpra"}, headers={"X-Cinreg-Admin": "guess"}).status_code
        == 403
    )

    token = client.post("/api/auth/custom-token", json={"uid": "cpra"}, headers=admin).json()["token"]
    ident = client.post("/api/auth", json={"token": token}).json()
    assert ident["uid"] == "cpra"
    assert ident["anonymous"] is False

    assert client.post("/api/auth", json={"token": "bogus"}).status_code == 401
    assert client.post("/api/auth/custom-token", json={}, headers=admin).status_code == 400


def test_admin_routes_are_disabled_without_admin_token() -> None:
    store = InMemoryDocumentStore()
    client = _client(store)

    victim = client.post("/api/auth", json={}).json()
    headers = {"Authorization": f"Bearer {victim['token']}"}
    client.put(
        "/api/namespaces/app/records/" + "A" * 16,
        json={"cin": "A" * 16, "ownerName": "Victim", "ssss": "secret"},
        headers=headers,
    )

    assert client.post("/api/auth/custom-token", json={"uid": victim["uid"]}).status_code == 403
    assert client.post("/api/reset").status_code == 403
    assert client.post("/api/reset", headers=headers).status_code == 403

    listing = client.get("/api/namespaces/app/records", headers=headers).json()
    assert [d["ownerName"] for d in listing["documents"]] == ["Victim"]


def test_reset_route_with_admin_token() -> None:
    store = InMemoryDocumentStore()
    client = _client(store, admin_token="s3cret")
    token = client.post("/api/auth", json={}).json()["token"]

    assert client.post("/api/reset", headers={"X-Cinreg-Admin": "s3cret"}).json() == {"ok": True}
    assert store.identity_for_token(token) is None


def test_http_store_mints_with_admin_token() -> None:
    store = HttpDocumentStore(client=_client(InMemoryDocumentStore(), admin_token="s3cret"), admin_token="s3cret")

    ident = store.authenticate(store.mint_custom_token("cpra"))
    assert ident.uid == "cpra"

    anonymous = HttpDocumentStore(client=_client(InMemoryDocumentStore(), admin_token="s3cret"))
    with pytest.raises(StoreError) as exc:
        anonymous.mint_custom_token("cpra")
    assert exc.value.status_code == 403


def test_put_rejects_cin_that_differs_from_key() -> None:
    client = _client(InMemoryDocumentStore())
    headers = {"Authorization": f"Bearer {client.post('/api/auth', json={}).json()['token']}"}

    mismatched = client.put(
        "/api/namespaces/app/records/" + "B" * 16,
        json={"cin": "A" * 16, "ownerName": "Dup", "ssss": "1"},
        headers=headers,
    )
    missing = client.put("/api/namespaces/app/records/" + "B" * 16, json={"ownerName": "X"}, headers=headers)

    assert mismatched.status_code == 400
    assert missing.status_code == 400
    assert client.get("/api/namespaces/app/records", headers=headers).json()["documents"] == []


def test_http_store_round_trip_through_adapter() -> None:
    store = HttpDocumentStore(client=_client(InMemoryDocumentStore()))
    ident = store.authenticate()
    assert store.current_identity() == ident

    adapter = RegistryStoreAdapter(store, "app")
    adapter.save(ident, "B" * 16, "Bee", "2")
    adapter.save(ident, "hixa-834927-105562-4398", "Smith", "01A")

    revision, docs = store.fetch_collection("app", ident)
    assert revision == 2
    assert sorted(d["cin"] for d in docs) == ["B" * 16, "HIXA8349271055624398"]

    adapter.delete(ident, "HIXA-834927-105562-4398")
    assert [d["cin"] for d in store.list_documents("app", ident)] == ["B" * 16]


def test_http_store_bad_bootstrap_token() -> None:
    store = HttpDocumentStore(client=_client(InMemoryDocumentStore()))

    with pytest.raises(AuthError):
        store.authenticate("bogus")


def test_http_store_rejects_forged_identity() -> None:
    store = HttpDocumentStore(client=_client(InMemoryDocumentStore()))
    adapter = RegistryStoreAdapter(store, "app")

    with pytest.raises(StoreError) as exc:
        adapter.save(Identity(uid="u", token="forged"), "A" * 16, "A", "1")
    assert exc.value.status_code == 401


def test_http_store_drops_credential_the_server_no_longer_accepts() -> None:
    backing = InMemoryDocumentStore()
    store = HttpDocumentStore(client=_client(backing))
    stale = store.authenticate()
    assert store.current_identity() == stale

    backing.reset()
    assert store.current_identity() is None

    resolver = IdentityResolver(store)
    fresh = resolver.resolve_identity()
    assert resolver.state is AuthState.AUTHENTICATED
    assert fresh.token != stale.token

    RegistryStoreAdapter(store, "app").save(fresh, "A" * 16, "Ay", "1")
    assert [d["cin"] for d in store.list_documents("app", fresh)] == ["A" * 16]


def test_whoami_route() -> None:
    client = _client(InMemoryDocumentStore())
    ident = client.post("/api/auth", json={}).json()

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {ident['token']}"})
    assert me.json()["uid"] == ident["uid"]
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_http_subscription_polls_for_changes() -> None:
    store = HttpDocumentStore(client=_client(InMemoryDocumentStore()))
    ident = store.authenticate()
    seen: list[list[dict]] = []

    # Not started: drive the feed by hand.
    sub = HttpSubscription(store, "app", ident, seen.append)

    assert sub.poll() is True
    assert sub.poll() is False
    store.upsert("app", ident, "A" * 16, {"cin": "A" * 16, "ownerName": "A", "ssss": "1"})
    assert sub.poll() is True
    assert [len(s) for s in seen] == [0, 1]

    sub.unsubscribe()
    store.upsert("app", ident, "B" * 16, {"cin": "B" * 16, "ownerName": "B", "ssss": "2"})
    assert sub.poll() is False
    assert len(seen) == 2

