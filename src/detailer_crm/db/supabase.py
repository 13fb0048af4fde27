"""Supabase client used by the customer store."""

import logging
from functools import lru_cache

from supabase import Client, create_client

from ..config import settings

logger = logging.getLogger(__name__)


def supabase_configured() -> bool:
    return bool(settings.supabase_url and settings.supabase_key)


@lru_cache()
def get_supabase_client() -> Client | None:
    """Shared client, or ``None`` when the API should fall back to the in-memory store.

    Creating the client does not open a connection; the first query may still
    fail with a network error.
    """
    if not supabase_configured():
        logger.warning("Supabase credentials not configured; customers are kept in memory")
        return None

    try:
        return create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logger.error(f"Failed to create Supabase client for {settings.supabase_url}: {e}")
        return None
