"""
Supabase client singleton.

The interaction store and the health checks share one client per process.
"""

from functools import lru_cache
from typing import Any, Dict, Optional

from supabase import Client, create_client

from config.settings import get_settings


class SupabaseClientError(Exception):
    """Raised when Supabase client cannot be created."""
    pass


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Get the singleton Supabase client instance.

    Raises:
        SupabaseClientError: If settings are missing or the client cannot be created
    """
    try:
        settings = get_settings()
        return create_client(settings.supabase_url, settings.supabase_service_key)
    except Exception as e:
        raise SupabaseClientError(f"Failed to create Supabase client: {e}") from e


def get_supabase_client_optional() -> Optional[Client]:
    """
    Get the Supabase client, returning None if it cannot be created.

    Useful for graceful degradation when Supabase is not configured.
    """
    try:
        return get_supabase_client()
    except SupabaseClientError:
        return None


def check_table(client: Optional[Client], table: str) -> Dict[str, Any]:
    """
    Probe a table with a one-row select.

    Returns:
        {"status": "connected" | "empty" | "not_configured" | "error", "error": str | None}
    """
    if client is None:
        return {"status": "not_configured", "error": None}
    try:
        result = client.table(table).select("user_id").limit(1).execute()
    except Exception as e:
        return {"status": "error", "error": str(e)}
    return {"status": "connected" if result.data else "empty", "error": None}
