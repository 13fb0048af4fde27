"""Single-note operations on a customer's append-only notes collection."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from ...errors import CustomerNotFoundError, NoteNotFoundError
from ...models.domain import CustomerNote, CustomerRecord
from ...persistence.customers import CustomerStore


def _load(store: CustomerStore, account_id: str, customer_id: str) -> CustomerRecord:
    record = store.get(account_id, customer_id)
    if record is None:
        raise CustomerNotFoundError(f"Customer '{customer_id}' not found")
    return record


def _clean(text: str) -> str:
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValueError("Note text cannot be empty.")
    return cleaned


def _find(record: CustomerRecord, note_id: str) -> CustomerNote:
    for note in record.notes:
        if note.id == note_id:
            return note
    raise NoteNotFoundError(f"Note '{note_id}' not found")


def add_note(
    store: CustomerStore,
    account_id: str,
    customer_id: str,
    text: str,
    *,
    now: Optional[datetime] = None,
) -> CustomerNote:
    now = now or datetime.now(timezone.utc)
    record = _load(store, account_id, customer_id)
    note = CustomerNote(id=str(uuid.uuid4()), text=_clean(text), created_at=now)
    record.notes.append(note)
    record.updated_at = now
    store.update(record)
    return note


def edit_note(
    store: CustomerStore,
    account_id: str,
    customer_id: str,
    note_id: str,
    text: str,
    *,
    now: Optional[datetime] = None,
) -> CustomerNote:
    now = now or datetime.now(timezone.utc)
    record = _load(store, account_id, customer_id)
    note = _find(record, note_id)
    note.text = _clean(text)
    note.updated_at = now
    record.updated_at = now
    store.update(record)
    return note


def delete_note(
    store: CustomerStore,
    account_id: str,
    customer_id: str,
    note_id: str,
    *,
    now: Optional[datetime] = None,
) -> None:
    record = _load(store, account_id, customer_id)
    note = _find(record, note_id)
    record.notes = [item for item in record.notes if item.id != note.id]
    record.updated_at = now or datetime.now(timezone.utc)
    store.update(record)
