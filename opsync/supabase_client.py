import logging
from typing import Optional

from supabase import create_client, Client

from opsync.config import SUPABASE_URL, SUPABASE_KEY

logger = logging.getLogger(__name__)

_client: Optional[Client] = None


def get_supabase() -> Client:
    """Return the shared Supabase client, creating it on first use."""
    global _client
    if _client is None:
        if not SUPABASE_URL or not SUPABASE_KEY:
            logger.warning("SUPABASE_URL or SUPABASE_KEY not found in environment variables.")
        _client = create_client(SUPABASE_URL, SUPABASE_KEY)
    return _client
