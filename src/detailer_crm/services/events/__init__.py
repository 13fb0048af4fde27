"""Calendar event linking."""

from .linker import LinkedJobs, event_phone, is_cancelled, link_events

__all__ = ["LinkedJobs", "event_phone", "is_cancelled", "link_events"]
