from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator

from .cin import normalize_cin


@dataclass(frozen=True)
class Identity:
    """Session credential scoping every registry operation.

    `uid` is the opaque tenant id; `token` is what the store expects back on each call.
    """

    uid: str
    token: str
    anonymous: bool = False

    @property
    def display_id(self) -> str:
        # Header shows only a short prefix of the uid.
        return f"{self.uid[:8]}..."


@dataclass(frozen=True, kw_only=True)
class Record:
    """One citizen entry.

    Notes:
    - `cin` is already canonical and doubles as the storage key.
    - `updated_at` is assigned by the store on write (unix seconds); None until the
      store has echoed the record back.
    """

    cin: str
    owner_name: str
    ssss: str
    updated_at: float | None = None

    def to_document(self) -> dict[str, Any]:
        # `updatedAt` is stamped by the store.
        return {"cin": self.cin, "ownerName": self.owner_name, "ssss": self.ssss}

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Record":
        cin = doc.get("cin")
        if not isinstance(cin, str) or not cin:
            raise ValueError(f"document has no usable cin: {doc!r}")
        updated_at = doc.get("updatedAt")
        return cls(
            cin=cin,
            owner_name=str(doc.get("ownerName") or ""),
            ssss=str(doc.get("ssss") or ""),
            updated_at=float(updated_at) if updated_at is not None else None,
        )


@dataclass(frozen=True)
class Snapshot:
    """Full registry contents as of the latest notification, ordered by `cin`."""

    records: tuple[Record, ...] = ()

    @classmethod
    def from_records(cls, records: Iterable[Record]) -> "Snapshot":
        return cls(tuple(sorted(records, key=lambda r: r.cin)))

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def find(self, cin: str) -> Record | None:
        for record in self.records:
            if record.cin == cin:
                return record
        return None


EMPTY_SNAPSHOT = Snapshot()


class LookupStatus(str, Enum):
    FOUND = "Found"
    NOT_FOUND = "Not Found"


@dataclass(frozen=True)
class LookupResult:
    status: LookupStatus
    cin: str
    owner_name: str | None = None
    ssss: str | None = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND

    @classmethod
    def for_record(cls, record: Record) -> "LookupResult":
        return cls(LookupStatus.FOUND, record.cin, record.owner_name, record.ssss)

    @classmethod
    def not_found(cls, query: str) -> "LookupResult":
        return cls(LookupStatus.NOT_FOUND, normalize_cin(query))
