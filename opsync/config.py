"""
Environment configuration.

Values are read once at import; `.env` in the working directory is loaded
first so local runs behave like the deployed service.
"""

import os
from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_KEY = os.environ.get("SUPABASE_KEY", "")

# Apps Script / sheet endpoint shared by every collection unless overridden
SHEET_API_URL = os.environ.get("SHEET_API_URL", "")
SOURCE_URLS = {
    "tickets": os.environ.get("TICKETS_SOURCE_URL", SHEET_API_URL),
    "incidents": os.environ.get("INCIDENTS_SOURCE_URL", SHEET_API_URL),
}

# Upper bound of one atomic write request against the store
SYNC_BATCH_SIZE = int(os.environ.get("SYNC_BATCH_SIZE", "500"))

FETCH_TIMEOUT = float(os.environ.get("FETCH_TIMEOUT", "30"))
FETCH_MAX_RETRIES = int(os.environ.get("FETCH_MAX_RETRIES", "3"))
PUSH_TIMEOUT = float(os.environ.get("PUSH_TIMEOUT", "15"))

# Set to "false", "0", "no" or "disabled" to turn off the outbound mirror
PUSH_ENABLED = os.environ.get("PUSH_ENABLED", "true").lower() not in ("false", "0", "no", "disabled")

# sync_state keys are "{collection}_sync_guard"
SYNC_STATE_TABLE = "sync_state"
SYNC_LOGS_TABLE = "sync_logs"


def source_url_for(collection: str) -> str:
    return SOURCE_URLS.get(collection) or SHEET_API_URL
