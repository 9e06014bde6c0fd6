from __future__ import annotations

import time
from typing import Callable

import pytest

from cinreg.core.errors import StoreError
from cinreg.core.store import InMemoryDocumentStore


class RecordingStore(InMemoryDocumentStore):
    """In-memory store that remembers every write it was asked to perform."""

    def __init__(self) -> None:
        super().__init__()
        self.writes: list[tuple[str, str]] = []
        self.fail_writes = False

    def upsert(self, namespace, identity, key, document):  # type: ignore[override]
        self.writes.append(("upsert", key))
        if self.fail_writes:
            raise StoreError("backend unavailable")
        return super().upsert(namespace, identity, key, document)

    def remove(self, namespace, identity, key):  # type: ignore[override]
        self.writes.append(("remove", key))
        if self.fail_writes:
            raise StoreError("backend unavailable")
        super().remove(namespace, identity, key)


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


def wait_for(pred: Callable[[], bool], timeout_s: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        if pred():
            return True
        time.sleep(0.02)
    return pred()
