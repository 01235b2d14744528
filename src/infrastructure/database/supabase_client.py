from __future__ import annotations

import os

from supabase import Client, create_client

# Simple reusable singleton client getter for repositories/storage
_CLIENT_SINGLETON: Client | None = None


def supabase_disabled() -> bool:
    return os.getenv("SUPABASE_DISABLED", "0") == "1"


def get_supabase_client() -> Client | None:
    """Service-role client shared by the repositories and storage adapter.

    Returns None when Supabase is disabled or not configured; callers then
    fall back to local storage and in-memory tables.
    """
    global _CLIENT_SINGLETON
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if supabase_disabled() or not url or not key:
        return None
    if _CLIENT_SINGLETON is None:
        _CLIENT_SINGLETON = create_client(url, key)
    return _CLIENT_SINGLETON
