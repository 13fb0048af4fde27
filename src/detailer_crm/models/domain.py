"""Domain models for customer records, imported rows and calendar events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional


@dataclass(frozen=True, slots=True)
class CanonicalIdentity:
    """Normalized phone identity used as the sole customer match key.

    ``last10`` is always set when ``e164`` is, and equals its last 10 digits.
    """

    e164: Optional[str] = None
    last10: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.e164 is None and self.last10 is None


@dataclass(slots=True)
class ImportRow:
    """One parsed spreadsheet record."""

    row_number: int
    raw_phone: str
    identity: CanonicalIdentity
    fingerprint: str
    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    vehicles: list[str] = field(default_factory=list)
    services: list[str] = field(default_factory=list)
    customer_type: Optional[str] = None
    first_visit: Optional[date] = None
    last_visit: Optional[date] = None
    visit_count: Optional[int] = None
    lifetime_value: Decimal = Decimal("0")
    location: Optional[str] = None
    technician: Optional[str] = None
    notes: Optional[str] = None
    has_pets: Optional[bool] = None
    has_kids: Optional[bool] = None
    state_valid: Optional[bool] = None


@dataclass(slots=True)
class CustomerNote:
    id: str
    text: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    source: str = "manual"
    fingerprint: Optional[str] = None


@dataclass(slots=True)
class CustomerRecord:
    """Persisted customer entity, scoped to one detailer account."""

    id: str
    account_id: str
    phone: str
    phone_e164: Optional[str]
    phone_last10: Optional[str]
    created_at: datetime
    updated_at: datetime
    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    customer_type: Optional[str] = None
    vehicles: list[str] = field(default_factory=list)
    services: list[str] = field(default_factory=list)
    notes: list[CustomerNote] = field(default_factory=list)
    completed_service_count: int = 0
    last_completed_service_at: Optional[datetime] = None
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def identity(self) -> CanonicalIdentity:
        return CanonicalIdentity(e164=self.phone_e164, last10=self.phone_last10)


@dataclass(slots=True)
class CalendarEvent:
    """Read-only job/booking event supplied by the calendar collaborator."""

    id: str
    start: datetime
    status: str = "confirmed"
    phone: Optional[str] = None
    description: Optional[str] = None
    title: Optional[str] = None
    services: list[str] = field(default_factory=list)
