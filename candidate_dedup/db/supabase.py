"""Supabase client singleton.

Provides ``get_supabase()`` which returns a lazily-initialized, process-wide
Supabase client built from ``settings``, and ``ping()`` used by the health
check.
"""

from supabase import Client, create_client

from candidate_dedup.core.config import settings
from candidate_dedup.core.constants import CANDIDATES_TABLE

_client: Client | None = None


def get_supabase() -> Client:
    """Return the singleton Supabase client, creating it on first call."""
    global _client
    if _client is None:
        _client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    return _client


def ping() -> bool:
    """Run a one-row read against ``candidates``; raises when unreachable."""
    result = get_supabase().table(CANDIDATES_TABLE).select("id").limit(1).execute()
    return result is not None
