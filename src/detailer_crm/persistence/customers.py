"""Customer record persistence.

Two stores implement the same contract: ``SupabaseCustomerStore`` for
production and ``InMemoryCustomerStore`` when Supabase is not configured
(local development, tests). Every write is a single call so a row upsert is
either fully applied or not applied at all.
"""

from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from ..models.domain import CanonicalIdentity, CustomerNote, CustomerRecord
from ..services.identity.normalize import normalize_phone

logger = logging.getLogger(__name__)


class CustomerStore(Protocol):
    def find_candidates(self, account_id: str, identity: CanonicalIdentity) -> list[CustomerRecord]:
        """Every record of the account sharing ``identity.last10``."""

    def get(self, account_id: str, customer_id: str) -> Optional[CustomerRecord]: ...

    def list(self, account_id: str) -> list[CustomerRecord]: ...

    def create(self, record: CustomerRecord) -> CustomerRecord: ...

    def update(self, record: CustomerRecord) -> CustomerRecord: ...


class InMemoryCustomerStore:
    """Process-local store. Returns copies so callers must ``update`` to persist changes."""

    def __init__(self) -> None:
        self._records: dict[str, CustomerRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def _copy(self, record: CustomerRecord) -> CustomerRecord:
        clone = copy.deepcopy(record)
        backfill_identity(clone)
        return clone

    def find_candidates(self, account_id: str, identity: CanonicalIdentity) -> list[CustomerRecord]:
        if identity.last10 is None:
            return []
        with self._lock:
            records = [self._copy(r) for r in self._records.values() if r.account_id == account_id]
        return [record for record in records if record.phone_last10 == identity.last10]

    def get(self, account_id: str, customer_id: str) -> Optional[CustomerRecord]:
        with self._lock:
            record = self._records.get(customer_id)
            if record is None or record.account_id != account_id:
                return None
            return self._copy(record)

    def list(self, account_id: str) -> list[CustomerRecord]:
        with self._lock:
            records = [self._copy(r) for r in self._records.values() if r.account_id == account_id]
        return sorted(records, key=lambda r: (r.updated_at, r.id), reverse=True)

    def create(self, record: CustomerRecord) -> CustomerRecord:
        with self._lock:
            if record.id in self._records:
                raise ValueError(f"Customer '{record.id}' already exists")
            self._records[record.id] = copy.deepcopy(record)
        return copy.deepcopy(record)

    def update(self, record: CustomerRecord) -> CustomerRecord:
        with self._lock:
            current = self._records.get(record.id)
            if current is None or current.account_id != record.account_id:
                raise KeyError(f"Customer '{record.id}' not found")
            self._records[record.id] = copy.deepcopy(record)
        return copy.deepcopy(record)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


# ---------------------------------------------------------------------------
# Supabase mapping
# ---------------------------------------------------------------------------

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_ts(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def note_to_dict(note: CustomerNote) -> dict[str, Any]:
    return {
        "id": note.id,
        "text": note.text,
        "createdAt": _iso(note.created_at),
        "updatedAt": _iso(note.updated_at),
        "source": note.source,
        "fingerprint": note.fingerprint,
    }


def note_from_dict(payload: dict[str, Any]) -> CustomerNote:
    return CustomerNote(
        id=str(payload["id"]),
        text=str(payload.get("text") or ""),
        created_at=_parse_ts(payload.get("createdAt")) or datetime.now(timezone.utc),
        updated_at=_parse_ts(payload.get("updatedAt")),
        source=str(payload.get("source") or "manual"),
        fingerprint=payload.get("fingerprint"),
    )


def record_to_row(record: CustomerRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "account_id": record.account_id,
        "customer_phone": record.phone,
        "phone_e164": record.phone_e164,
        "phone_last10": record.phone_last10,
        "customer_name": record.name,
        "customer_email": record.email,
        "address": record.address,
        "customer_type": record.customer_type,
        "vehicles": list(record.vehicles),
        "services": list(record.services),
        "notes": [note_to_dict(note) for note in record.notes],
        "completed_service_count": record.completed_service_count,
        "last_completed_service_at": _iso(record.last_completed_service_at),
        "data": record.data,
        "created_at": _iso(record.created_at),
        "updated_at": _iso(record.updated_at),
    }


def migrate_legacy_notes(record: CustomerRecord) -> bool:
    """Move an older snapshot's single ``data.notes`` string into the notes list.

    The legacy text becomes the first note. Returns whether anything moved.
    """
    legacy = record.data.pop("notes", None)
    if not isinstance(legacy, str) or not legacy.strip():
        return False
    note_id = f"legacy-{record.id}"
    if any(note.id == note_id for note in record.notes):
        return False
    record.notes.insert(
        0,
        CustomerNote(
            id=note_id,
            text=legacy.strip(),
            created_at=record.created_at,
            source="legacy",
        ),
    )
    return True


def backfill_identity(record: CustomerRecord) -> bool:
    """Derive missing identity columns from the stored phone.

    Records saved before phone normalization only carry ``phone``; both
    columns are derived from it. Returns whether anything was filled in.
    """
    if record.phone_last10 is not None:
        return False
    derived = normalize_phone(record.phone)
    if derived.last10 is None:
        return False
    record.phone_last10 = derived.last10
    if record.phone_e164 is None or record.phone_e164[-10:] != derived.last10:
        record.phone_e164 = derived.e164
    return True


def row_to_record(row: dict[str, Any]) -> CustomerRecord:
    now = datetime.now(timezone.utc)
    record = CustomerRecord(
        id=str(row["id"]),
        account_id=str(row["account_id"]),
        phone=str(row.get("customer_phone") or ""),
        phone_e164=row.get("phone_e164"),
        phone_last10=row.get("phone_last10"),
        created_at=_parse_ts(row.get("created_at")) or now,
        updated_at=_parse_ts(row.get("updated_at")) or now,
        name=row.get("customer_name"),
        email=row.get("customer_email"),
        address=row.get("address"),
        customer_type=row.get("customer_type"),
        vehicles=list(row.get("vehicles") or []),
        services=list(row.get("services") or []),
        notes=[note_from_dict(item) for item in (row.get("notes") or [])],
        completed_service_count=int(row.get("completed_service_count") or 0),
        last_completed_service_at=_parse_ts(row.get("last_completed_service_at")),
        data=dict(row.get("data") or {}),
    )
    migrate_legacy_notes(record)
    backfill_identity(record)
    return record


class SupabaseCustomerStore:
    """Customer store backed by a Supabase table."""

    def __init__(self, client: Any, table: str) -> None:
        self.client = client
        self.table = table

    def _query(self):
        return self.client.table(self.table)

    def find_candidates(self, account_id: str, identity: CanonicalIdentity) -> list[CustomerRecord]:
        # E.164 matches are a subset of last10 matches, so one filter covers both strategies.
        # Rows without phone_last10 predate normalization and are matched on their derived identity.
        if identity.last10 is None:
            return []
        response = (
            self._query()
            .select("*")
            .eq("account_id", account_id)
            .or_(f"phone_last10.eq.{identity.last10},phone_last10.is.null")
            .execute()
        )
        records = [row_to_record(row) for row in (response.data or [])]
        return [record for record in records if record.phone_last10 == identity.last10]

    def get(self, account_id: str, customer_id: str) -> Optional[CustomerRecord]:
        response = (
            self._query()
            .select("*")
            .eq("account_id", account_id)
            .eq("id", customer_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return row_to_record(rows[0]) if rows else None

    def list(self, account_id: str) -> list[CustomerRecord]:
        response = (
            self._query()
            .select("*")
            .eq("account_id", account_id)
            .order("updated_at", desc=True)
            .execute()
        )
        return [row_to_record(row) for row in (response.data or [])]

    def create(self, record: CustomerRecord) -> CustomerRecord:
        response = self._query().insert(record_to_row(record)).execute()
        rows = response.data or []
        return row_to_record(rows[0]) if rows else record

    def update(self, record: CustomerRecord) -> CustomerRecord:
        payload = record_to_row(record)
        payload.pop("id")
        payload.pop("created_at")
        response = (
            self._query()
            .update(payload)
            .eq("id", record.id)
            .eq("account_id", record.account_id)
            .execute()
        )
        rows = response.data or []
        if not rows:
            raise KeyError(f"Customer '{record.id}' not found")
        return row_to_record(rows[0])
