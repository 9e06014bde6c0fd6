from __future__ import annotations

import threading

from cinreg.config import RegistryConfig
from cinreg.core.store import InMemoryDocumentStore
from cinreg.runtime.server import StoreServer, run
from cinreg.sdk.client import HttpDocumentStore
from cinreg.session import RegistrySession

from conftest import wait_for


def test_two_views_stay_in_sync_over_http() -> None:
    server = run(host="127.0.0.1", port=0, store=InMemoryDocumentStore(), new_server=True, log_level="warning")
    assert isinstance(server, StoreServer)

    try:
        writer_store = server.as_store(poll_interval_s=0.05)
        writer = RegistrySession(writer_store, RegistryConfig(app_id="e2e"))
        ident = writer.start()
        assert ident is not None

        # Second view of the same tenant, reusing the writer's credential.
        reader_store = server.as_store(poll_interval_s=0.05, identity=ident)
        reader = RegistrySession(reader_store, RegistryConfig(app_id="e2e"))
        assert reader.start() == ident

        assert wait_for(lambda: writer.view.revision >= 1 and reader.view.revision >= 1)

        writer.view.update_form(cin="hixa-834927-105562-4398", owner_name="Smith", ssss="01A")
        assert writer.save()

        assert wait_for(lambda: reader.view.entry_count == 1)
        assert reader.lookup("HIXA8349271055624398").owner_name == "Smith"

        reader.request_delete("HIXA8349271055624398")
        assert reader.confirm_delete()
        assert wait_for(lambda: writer.view.entry_count == 0)

        writer.close()
        reader.close()
    finally:
        server.stop()


def test_run_attaches_to_existing_server() -> None:
    server = run(host="127.0.0.1", port=0, store=InMemoryDocumentStore(), new_server=True, log_level="warning")
    assert isinstance(server, StoreServer)

    try:
        attached = run(host=server.host, port=server.port)
        assert isinstance(attached, HttpDocumentStore)
        assert attached.base_url == f"http://{server.host}:{server.port}"
    finally:
        server.stop()


def test_unsubscribe_stops_the_feed_thread() -> None:
    server = run(host="127.0.0.1", port=0, store=InMemoryDocumentStore(), new_server=True, log_level="warning")
    assert isinstance(server, StoreServer)

    try:
        store = server.as_store(poll_interval_s=0.05)
        ident = store.authenticate()
        seen: list[list[dict]] = []
        sub = store.subscribe_collection("e2e", ident, seen.append)
        assert wait_for(lambda: len(seen) >= 1)

        sub.unsubscribe()

        assert not any(t.name == "cinreg-feed" and t.is_alive() for t in threading.enumerate())
    finally:
        server.stop()
