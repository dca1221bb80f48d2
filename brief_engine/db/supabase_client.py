"""Supabase client initialization."""

from functools import lru_cache
from typing import Any

import httpx
from supabase import Client, create_client

from brief_engine.core.config import get_settings
from brief_engine.core.errors import StoreUnavailable


def is_store_configured() -> bool:
    """True when Supabase credentials are present."""
    settings = get_settings()
    return bool(settings.SUPABASE_URL and settings.SUPABASE_SERVICE_ROLE_KEY)


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Get Supabase client instance (cached singleton).

    Returns:
        Supabase client configured with service role key

    Raises:
        StoreUnavailable: If Supabase is not configured or client initialization fails
    """
    if not is_store_configured():
        raise StoreUnavailable("Supabase is not configured; persistence is disabled")

    settings = get_settings()
    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        raise StoreUnavailable(f"Failed to initialize Supabase client: {e}") from e


def execute(query: Any) -> Any:
    """
    Execute a PostgREST query, mapping transport failures to StoreUnavailable.

    API-level errors (constraint violations, bad filters) propagate unchanged.
    """
    try:
        return query.execute()
    except httpx.HTTPError as e:
        raise StoreUnavailable(f"Supabase unreachable: {e}") from e
