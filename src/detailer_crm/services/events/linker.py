"""Associate a customer with their calendar jobs by phone identity."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from ...models.domain import CalendarEvent, CanonicalIdentity
from ..identity.matcher import identities_match
from ..identity.normalize import extract_embedded_phone, normalize_phone

CANCELLED_STATUS = "cancelled"


@dataclass(slots=True)
class LinkedJobs:
    upcoming: list[CalendarEvent] = field(default_factory=list)
    past: list[CalendarEvent] = field(default_factory=list)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def event_phone(event: CalendarEvent) -> str:
    """Dedicated phone field first, then a ``Phone:`` line in the description."""
    if event.phone and event.phone.strip():
        return event.phone.strip()
    return extract_embedded_phone(event.description)


def is_cancelled(event: CalendarEvent) -> bool:
    return (event.status or "").strip().lower() in {CANCELLED_STATUS, "canceled"}


def link_events(
    identity: CanonicalIdentity,
    events: Iterable[CalendarEvent],
    *,
    now: Optional[datetime] = None,
) -> LinkedJobs:
    """Split the customer's non-cancelled events into upcoming and past jobs.

    Upcoming jobs are soonest first; past jobs most recent first.
    """
    now = _aware(now or datetime.now(timezone.utc))
    linked = LinkedJobs()
    if identity.is_empty:
        return linked

    for event in events:
        if is_cancelled(event):
            continue
        if not identities_match(identity, normalize_phone(event_phone(event))):
            continue
        if _aware(event.start) >= now:
            linked.upcoming.append(event)
        else:
            linked.past.append(event)

    linked.upcoming.sort(key=lambda e: _aware(e.start))
    linked.past.sort(key=lambda e: _aware(e.start), reverse=True)
    return linked
