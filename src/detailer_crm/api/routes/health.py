"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings
from ...db.supabase import get_supabase_client, supabase_configured

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database() -> dict:
    """Report which customer store backs the API and whether it answers."""
    if not supabase_configured():
        return {
            "configured": False,
            "store": "memory",
            "message": "Supabase not configured. Set CRM_SUPABASE_URL and CRM_SUPABASE_KEY environment variables.",
        }

    supabase = get_supabase_client()
    if supabase is None:
        return {
            "configured": True,
            "store": "memory",
            "connected": False,
            "message": "Supabase client could not be created; falling back to the in-memory store.",
        }

    try:
        supabase.table(settings.customers_table).select("id").limit(1).execute()
    except Exception as exc:
        return {
            "configured": True,
            "store": "supabase",
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }
    return {
        "configured": True,
        "store": "supabase",
        "connected": True,
        "message": f"Database connected. Table '{settings.customers_table}' is reachable.",
    }
