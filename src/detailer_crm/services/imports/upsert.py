"""Create-or-merge persistence of imported rows.

Merge rules never regress data that is already on file: empty cells never
blank a field, list fields grow by ordered union, notes are append-only and
counters only ever move up.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Callable, Optional, Sequence

from ...errors import PersistenceFailure
from ...models.domain import CustomerNote, CustomerRecord, ImportRow
from ...persistence.customers import CustomerStore
from ..identity.matcher import DEFAULT_STRATEGIES, MatchStrategy, find_match
from ..identity.normalize import merge_unique

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass(slots=True)
class UpsertOutcome:
    record: CustomerRecord
    created: bool
    matched_by: Optional[str] = None


def _visit_timestamp(value: Optional[date]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _stored_date(value: Any) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _pick_date(existing: Any, incoming: Optional[date], *, earliest: bool) -> Optional[str]:
    current = _stored_date(existing)
    if incoming is None:
        return current.isoformat() if current else None
    if current is None:
        return incoming.isoformat()
    chosen = min(current, incoming) if earliest else max(current, incoming)
    return chosen.isoformat()


def _stored_decimal(value: Any) -> Decimal:
    """Numeric extension value already on file; anything unreadable counts as zero."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        current = Decimal(str(value).strip())
    except ArithmeticError:
        return Decimal("0")
    return current if current.is_finite() else Decimal("0")


def _max_decimal(existing: Any, incoming: Decimal) -> Decimal:
    return max(_stored_decimal(existing), incoming)


def _max_int(existing: Any, incoming: int) -> int:
    return max(int(_stored_decimal(existing)), incoming)


def _apply_extension_data(data: dict[str, Any], row: ImportRow) -> dict[str, Any]:
    merged = dict(data)

    first_visit = _pick_date(merged.get("importedFirstVisit"), row.first_visit, earliest=True)
    if first_visit:
        merged["importedFirstVisit"] = first_visit
    last_visit = _pick_date(merged.get("importedLastVisit"), row.last_visit, earliest=False)
    if last_visit:
        merged["importedLastVisit"] = last_visit

    if row.visit_count is not None:
        merged["importedVisitCount"] = _max_int(merged.get("importedVisitCount"), row.visit_count)
    if row.lifetime_value or "importedLifetimeValue" in merged:
        merged["importedLifetimeValue"] = float(_max_decimal(merged.get("importedLifetimeValue"), row.lifetime_value))

    for key, value in (("location", row.location), ("technician", row.technician)):
        if value:
            merged[key] = value
    for key, flag in (("pets", row.has_pets), ("kids", row.has_kids), ("stateValid", row.state_valid)):
        if flag is not None:
            merged[key] = flag
    return merged


def _import_note(row: ImportRow, now: datetime, id_factory: IdFactory) -> CustomerNote:
    return CustomerNote(
        id=id_factory(),
        text=row.notes or "",
        created_at=now,
        source="import",
        fingerprint=row.fingerprint,
    )


def build_record(
    account_id: str,
    row: ImportRow,
    now: datetime,
    id_factory: IdFactory = _new_id,
) -> CustomerRecord:
    """A brand-new customer seeded entirely from ``row``."""
    identity = row.identity
    record = CustomerRecord(
        id=id_factory(),
        account_id=account_id,
        phone=identity.e164 or row.raw_phone,
        phone_e164=identity.e164,
        phone_last10=identity.last10,
        created_at=now,
        updated_at=now,
        name=row.name,
        email=row.email,
        address=row.address,
        customer_type=row.customer_type,
        vehicles=list(row.vehicles),
        services=list(row.services),
        completed_service_count=row.visit_count or 0,
        last_completed_service_at=_visit_timestamp(row.last_visit),
        data=_apply_extension_data({}, row),
    )
    if row.notes:
        record.notes.append(_import_note(row, now, id_factory))
    return record


def merge_row(
    existing: CustomerRecord,
    row: ImportRow,
    now: datetime,
    id_factory: IdFactory = _new_id,
) -> CustomerRecord:
    """Fold ``row`` into a copy of ``existing``."""
    identity = row.identity
    merged = CustomerRecord(
        id=existing.id,
        account_id=existing.account_id,
        phone=existing.phone,
        phone_e164=existing.phone_e164,
        phone_last10=existing.phone_last10 or identity.last10,
        created_at=existing.created_at,
        updated_at=now,
        name=row.name or existing.name,
        email=row.email or existing.email,
        address=row.address or existing.address,
        customer_type=row.customer_type or existing.customer_type,
        vehicles=merge_unique(existing.vehicles, row.vehicles),
        services=merge_unique(existing.services, row.services),
        notes=list(existing.notes),
        completed_service_count=max(existing.completed_service_count, row.visit_count or 0),
        last_completed_service_at=existing.last_completed_service_at,
        data=_apply_extension_data(existing.data, row),
    )
    if identity.e164 is not None and merged.phone_e164 in (None, identity.e164) and merged.phone != identity.e164:
        # record predates normalization; store the canonical form
        merged.phone_e164 = identity.e164
        merged.phone = identity.e164

    last_visit = _visit_timestamp(row.last_visit)
    if last_visit and (merged.last_completed_service_at is None or last_visit > merged.last_completed_service_at):
        merged.last_completed_service_at = last_visit

    if row.notes and not any(note.fingerprint == row.fingerprint for note in merged.notes):
        merged.notes.append(_import_note(row, now, id_factory))
    return merged


def upsert_row(
    store: CustomerStore,
    account_id: str,
    row: ImportRow,
    *,
    now: Optional[datetime] = None,
    strategies: Sequence[MatchStrategy] = DEFAULT_STRATEGIES,
    id_factory: IdFactory = _new_id,
) -> UpsertOutcome:
    """Match ``row`` against the account's customers and create or merge it.

    Exactly one store write happens per call. Storage errors surface as
    ``PersistenceFailure`` so the caller can record them against the row.
    """
    now = now or datetime.now(timezone.utc)
    try:
        candidates = store.find_candidates(account_id, row.identity)
    except Exception as exc:
        raise PersistenceFailure(f"Customer lookup failed: {exc}") from exc

    match = find_match(row.identity, candidates, strategies)
    if match is None:
        record = build_record(account_id, row, now, id_factory)
        try:
            saved = store.create(record)
        except Exception as exc:
            raise PersistenceFailure(f"Failed to create customer: {exc}") from exc
        logger.debug("Row %d created customer %s", row.row_number, saved.id)
        return UpsertOutcome(record=saved, created=True)

    record = merge_row(match.record, row, now, id_factory)
    try:
        saved = store.update(record)
    except Exception as exc:
        raise PersistenceFailure(f"Failed to update customer {record.id}: {exc}") from exc
    logger.debug("Row %d merged into customer %s via %s", row.row_number, saved.id, match.strategy)
    return UpsertOutcome(record=saved, created=False, matched_by=match.strategy)
