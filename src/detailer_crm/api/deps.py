"""FastAPI dependencies shared by the route modules."""

from __future__ import annotations

from fastapi import Header, HTTPException, status

from ..config import settings
from ..db.supabase import get_supabase_client
from ..persistence.customers import CustomerStore, InMemoryCustomerStore, SupabaseCustomerStore

# Used whenever Supabase is not configured (local development).
memory_store = InMemoryCustomerStore()


def get_customer_store() -> CustomerStore:
    client = get_supabase_client()
    if client is None:
        return memory_store
    return SupabaseCustomerStore(client, settings.customers_table)


def get_account_id(x_account_id: str | None = Header(default=None)) -> str:
    """Detailer account scope, set by the upstream auth layer."""
    if not x_account_id or not x_account_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-Account-Id header is required.")
    return x_account_id.strip()
