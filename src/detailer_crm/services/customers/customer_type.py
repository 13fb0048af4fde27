"""Customer type derived from completed service history."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

CustomerType = Literal["new", "returning"]


def customer_type_from_history(
    completed_service_count: Optional[int],
    last_completed_service_at: Optional[datetime],
    reference: Optional[datetime] = None,
) -> CustomerType:
    """A customer is returning once they have a completed service before ``reference``."""
    count = completed_service_count or 0
    if last_completed_service_at is None or count <= 0:
        return "new"
    if count > 1:
        return "returning"

    reference = reference or datetime.now(timezone.utc)
    last = last_completed_service_at
    if last.tzinfo is None:
        last = last.replace(tzinfo=timezone.utc)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    return "returning" if last < reference else "new"
