# shopflow/core/supabase_client.py
from functools import lru_cache

from supabase import Client, create_client

from shopflow.core.config import get_settings

settings = get_settings()


@lru_cache
def _client(key: str) -> Client:
    return create_client(settings.SUPABASE_URL, key)


def supabase_public() -> Client:
    """Anon-key client; resolves access tokens when no JWT secret is set."""
    return _client(settings.SUPABASE_KEY)


def supabase_admin() -> Client:
    """
    Service-role client for product image Storage. Backend only.

    Raises:
        RuntimeError: if SUPABASE_SERVICE_ROLE_KEY is not set.
    """
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("SUPABASE_SERVICE_ROLE_KEY is required for image uploads")
    return _client(settings.SUPABASE_SERVICE_ROLE_KEY)
