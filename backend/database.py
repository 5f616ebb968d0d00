"""
Supabase client for the public dashboard service.

One synchronous REST client per process, created lazily on first use. It
carries no request state, so sharing it across requests is safe; every
request still re-reads all rows.
"""

import logging

from supabase import Client, create_client

from public_dashboard.config import get_settings

logger = logging.getLogger(__name__)

_supabase_client = None


def get_supabase() -> Client:
    """Lazy-initialize the service-role Supabase client."""
    global _supabase_client
    if _supabase_client is None:
        settings = get_settings()
        if not settings.supabase_configured:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
        _supabase_client = create_client(settings.supabase_url, settings.supabase_key)
        logger.info("Supabase client initialized")
    return _supabase_client
