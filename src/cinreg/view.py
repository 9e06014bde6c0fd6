from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from enum import Enum

from .core.cin import normalize_cin
from .core.records import EMPTY_SNAPSHOT, LookupResult, Record, Snapshot


def lookup(snapshot: Snapshot, query: str) -> LookupResult:
    """Exact-match lookup of `query` (normalized first) against the current Snapshot."""
    key = normalize_cin(query)
    found = snapshot.find(key)
    if found is None:
        return LookupResult.not_found(key)
    return LookupResult.for_record(found)


# -- entry form -------------------------------------------------------------


class FormMode(str, Enum):
    IDLE = "idle"
    CREATING = "creating"
    EDITING = "editing"


@dataclass(frozen=True)
class FormState:
    mode: FormMode = FormMode.IDLE
    cin: str = ""
    owner_name: str = ""
    ssss: str = ""

    @property
    def cin_locked(self) -> bool:
        # The CIN is the storage key; an update never rewrites it.
        return self.mode is FormMode.EDITING

    @property
    def title(self) -> str:
        return "Update Citizen Record" if self.mode is FormMode.EDITING else "New Citizen Entry"


IDLE_FORM = FormState()


def begin_edit(state: FormState, record: Record) -> FormState:  # noqa: ARG001
    # Any in-progress create is discarded; only one of CREATING/EDITING is active.
    return FormState(
        mode=FormMode.EDITING,
        cin=record.cin,
        owner_name=record.owner_name,
        ssss=record.ssss or "",
    )


def update_fields(
    state: FormState,
    *,
    cin: str | None = None,
    owner_name: str | None = None,
    ssss: str | None = None,
) -> FormState:
    if state.mode is FormMode.EDITING and cin is not None and cin != state.cin:
        raise ValueError("CIN is fixed for editing mode.")

    mode = FormMode.CREATING if state.mode is FormMode.IDLE else state.mode
    return replace(
        state,
        mode=mode,
        cin=state.cin if cin is None else cin,
        owner_name=state.owner_name if owner_name is None else owner_name,
        ssss=state.ssss if ssss is None else ssss,
    )


def clear_form(state: FormState) -> FormState:  # noqa: ARG001
    return IDLE_FORM


def cancel_edit(state: FormState) -> FormState:
    if state.mode is not FormMode.EDITING:
        return state
    return IDLE_FORM


# -- delete confirmation ----------------------------------------------------


@dataclass(frozen=True)
class PendingDelete:
    cin: str

    @property
    def message(self) -> str:
        return f"Are you sure you want to permanently delete CIN {self.cin}?"


class ConfirmationGate:
    """Holds at most one destructive action awaiting confirm/cancel."""

    def __init__(self) -> None:
        self._pending: PendingDelete | None = None

    @property
    def pending(self) -> PendingDelete | None:
        return self._pending

    def request(self, cin: str) -> PendingDelete:
        key = normalize_cin(cin)
        if not key:
            raise ValueError("cin cannot be empty")
        self._pending = PendingDelete(cin=key)
        return self._pending

    def confirm(self) -> PendingDelete:
        pending = self._pending
        if pending is None:
            raise RuntimeError("No delete is awaiting confirmation")
        self._pending = None
        return pending

    def cancel(self) -> PendingDelete | None:
        pending, self._pending = self._pending, None
        return pending


# -- view state -------------------------------------------------------------


class RegistryView:
    """Everything a registry screen renders from.

    Owns the single Snapshot; `apply_snapshot` swaps it in one assignment under a
    lock, so readers see either the old or the new collection, never a mix.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._snapshot: Snapshot = EMPTY_SNAPSHOT
        self._revision = 0
        self.form: FormState = IDLE_FORM
        self.gate = ConfirmationGate()
        self.lookup_result: LookupResult | None = None
        self.message: str = ""

    @property
    def snapshot(self) -> Snapshot:
        with self._lock:
            return self._snapshot

    @property
    def revision(self) -> int:
        """Number of Snapshots applied so far."""
        with self._lock:
            return self._revision

    @property
    def entry_count(self) -> int:
        return len(self.snapshot)

    @property
    def heading(self) -> str:
        return f"Full Citizen Registry ({self.entry_count} Entries)"

    @property
    def is_error_message(self) -> bool:
        return "Error" in self.message

    def apply_snapshot(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshot = snapshot
            self._revision += 1

    def reset(self) -> None:
        with self._lock:
            self._snapshot = EMPTY_SNAPSHOT
            self._revision = 0
        self.form = IDLE_FORM
        self.gate.cancel()
        self.lookup_result = None

    def lookup(self, query: str) -> LookupResult:
        self.lookup_result = lookup(self.snapshot, query)
        return self.lookup_result

    def begin_edit(self, record: Record) -> FormState:
        self.form = begin_edit(self.form, record)
        self.message = ""
        return self.form

    def update_form(
        self,
        *,
        cin: str | None = None,
        owner_name: str | None = None,
        ssss: str | None = None,
    ) -> FormState:
        self.form = update_fields(self.form, cin=cin, owner_name=owner_name, ssss=ssss)
        return self.form

    def clear_form(self) -> FormState:
        self.form = clear_form(self.form)
        return self.form

    def cancel_edit(self) -> FormState:
        self.form = cancel_edit(self.form)
        return self.form
