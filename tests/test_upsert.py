from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from itertools import count

import pytest

from detailer_crm.errors import PersistenceFailure
from detailer_crm.models.domain import CustomerRecord, ImportRow
from detailer_crm.persistence.customers import InMemoryCustomerStore
from detailer_crm.services.identity.normalize import normalize_phone
from detailer_crm.services.imports.upsert import upsert_row

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _ids():
    sequence = count(1)
    return lambda: f"id-{next(sequence)}"


def _row(phone: str = "(212) 555-1234", fingerprint: str = "fp-1", **fields) -> ImportRow:
    return ImportRow(
        row_number=2,
        raw_phone=phone,
        identity=normalize_phone(phone),
        fingerprint=fingerprint,
        **fields,
    )


def test_creates_customer_when_no_match() -> None:
    store = InMemoryCustomerStore()
    row = _row(name="Ann", vehicles=["Kia Soul"], visit_count=3, last_visit=date(2025, 5, 1), notes="Dog")

    outcome = upsert_row(store, "acct", row, now=NOW, id_factory=_ids())

    assert outcome.created
    record = outcome.record
    assert record.phone == "+12125551234"
    assert record.phone_last10 == "2125551234"
    assert record.completed_service_count == 3
    assert record.last_completed_service_at == datetime(2025, 5, 1, tzinfo=timezone.utc)
    assert [note.text for note in record.notes] == ["Dog"]
    assert record.notes[0].source == "import"
    assert record.data["importedVisitCount"] == 3
    assert len(store) == 1


def test_merge_keeps_existing_values_for_empty_cells() -> None:
    store = InMemoryCustomerStore()
    upsert_row(store, "acct", _row(name="Ann", email="ann@example.com", address="1 Elm"), now=NOW, id_factory=_ids())

    outcome = upsert_row(
        store, "acct", _row(phone="212.555.1234", fingerprint="fp-2", name="Ann B."), now=NOW + timedelta(hours=1)
    )

    assert not outcome.created
    assert outcome.matched_by == "e164"
    assert outcome.record.name == "Ann B."
    assert outcome.record.email == "ann@example.com"
    assert outcome.record.address == "1 Elm"
    assert outcome.record.updated_at == NOW + timedelta(hours=1)
    assert len(store) == 1


def test_merge_unions_lists_and_keeps_counters_monotonic() -> None:
    store = InMemoryCustomerStore()
    upsert_row(
        store,
        "acct",
        _row(
            vehicles=["Toyota Camry", "Honda Civic"],
            services=["Wash"],
            visit_count=5,
            lifetime_value=Decimal("500"),
            last_visit=date(2025, 3, 1),
            first_visit=date(2024, 1, 1),
        ),
        now=NOW,
    )

    outcome = upsert_row(
        store,
        "acct",
        _row(
            fingerprint="fp-2",
            vehicles=["Honda Civic", "Ford F-150"],
            services=["Wax", "Wash"],
            visit_count=2,
            lifetime_value=Decimal("120"),
            last_visit=date(2024, 12, 1),
            first_visit=date(2023, 6, 1),
        ),
        now=NOW,
    )

    record = outcome.record
    assert record.vehicles == ["Toyota Camry", "Honda Civic", "Ford F-150"]
    assert record.services == ["Wash", "Wax"]
    assert record.completed_service_count == 5
    assert record.last_completed_service_at == datetime(2025, 3, 1, tzinfo=timezone.utc)
    assert record.data["importedLifetimeValue"] == 500.0
    assert record.data["importedFirstVisit"] == "2023-06-01"
    assert record.data["importedLastVisit"] == "2025-03-01"


def test_notes_append_without_duplicating_identical_rows() -> None:
    store = InMemoryCustomerStore()
    upsert_row(store, "acct", _row(notes="Gate code 1234"), now=NOW)
    upsert_row(store, "acct", _row(notes="Gate code 1234"), now=NOW)
    outcome = upsert_row(store, "acct", _row(fingerprint="fp-2", notes="Prefers mornings"), now=NOW)

    assert [note.text for note in outcome.record.notes] == ["Gate code 1234", "Prefers mornings"]


def test_legacy_record_matched_by_last10_gets_upgraded() -> None:
    store = InMemoryCustomerStore()
    store.create(
        CustomerRecord(
            id="legacy",
            account_id="acct",
            phone="212-555-1234",
            phone_e164=None,
            phone_last10="2125551234",
            created_at=NOW,
            updated_at=NOW,
        )
    )

    outcome = upsert_row(store, "acct", _row(), now=NOW)

    assert outcome.matched_by == "last10"
    assert outcome.record.id == "legacy"
    assert outcome.record.phone_e164 == "+12125551234"
    assert outcome.record.phone == "+12125551234"


def test_accounts_are_isolated() -> None:
    store = InMemoryCustomerStore()
    upsert_row(store, "acct-a", _row(), now=NOW)

    outcome = upsert_row(store, "acct-b", _row(), now=NOW)

    assert outcome.created
    assert len(store) == 2


class FailingStore(InMemoryCustomerStore):
    def create(self, record):
        raise ConnectionError("database unavailable")


def test_store_errors_surface_as_persistence_failure() -> None:
    with pytest.raises(PersistenceFailure) as excinfo:
        upsert_row(FailingStore(), "acct", _row(), now=NOW)

    assert excinfo.value.kind == "PersistenceFailure"
    assert "database unavailable" in excinfo.value.message


def test_phone_only_record_is_matched_instead_of_duplicated() -> None:
    store = InMemoryCustomerStore()
    store.create(
        CustomerRecord(
            id="legacy",
            account_id="acct",
            phone="(212) 555-1234",
            phone_e164=None,
            phone_last10=None,
            created_at=NOW,
            updated_at=NOW,
        )
    )

    outcome = upsert_row(store, "acct", _row(phone="212-555-1234", name="Ann"), now=NOW)

    assert not outcome.created
    assert outcome.record.id == "legacy"
    assert outcome.record.phone == "+12125551234"
    assert outcome.record.phone_last10 == "2125551234"
    assert len(store) == 1


def test_unreadable_extension_values_on_file_are_treated_as_zero() -> None:
    store = InMemoryCustomerStore()
    store.create(
        CustomerRecord(
            id="cust",
            account_id="acct",
            phone="+12125551234",
            phone_e164="+12125551234",
            phone_last10="2125551234",
            created_at=NOW,
            updated_at=NOW,
            data={"importedVisitCount": "3 visits", "importedLifetimeValue": "NaN"},
        )
    )

    outcome = upsert_row(store, "acct", _row(visit_count=2, lifetime_value=Decimal("40")), now=NOW)

    assert outcome.record.data["importedVisitCount"] == 2
    assert outcome.record.data["importedLifetimeValue"] == 40.0
