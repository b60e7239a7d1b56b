"""Supabase client used as the authentication provider."""

from functools import lru_cache

from supabase import Client, create_client

from app.config import settings
from app.core.errors import InternalError


@lru_cache(maxsize=1)
def _auth_client() -> Client:
    return create_client(settings.supabase_url, settings.supabase_key)


def get_supabase() -> Client:
    if not settings.supabase_url or not settings.supabase_key:
        raise InternalError("Authentication provider is not configured")
    return _auth_client()
