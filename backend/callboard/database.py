"""
Supabase client access.

The service-role client bypasses row-level security, so every service that
uses it scopes its queries by the caller's UserContext explicitly.
"""

import logging
from typing import Optional

from supabase import Client, create_client

from callboard.config import SUPABASE_SERVICE_ROLE_KEY, SUPABASE_URL

logger = logging.getLogger(__name__)

_supabase_service: Optional[Client] = None


def get_supabase_service() -> Client:
    """Get or create the service-role Supabase client."""
    global _supabase_service
    if _supabase_service is None:
        if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        _supabase_service = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)
        logger.info("Supabase service client initialized")
    return _supabase_service
