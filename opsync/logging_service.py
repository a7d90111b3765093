import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from opsync.config import SYNC_LOGS_TABLE

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Create a consistently formatted logger."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger


class SyncLogger:
    """
    Writes sync lifecycle events to the sync_logs table and the standard logger.

    Writing to the table is best-effort: a failed insert is logged as a
    warning and never propagates into the sync that produced the event.
    """

    def __init__(self, service_name: str, client: Any = None):
        self.service_name = service_name
        self._client = client
        self.logger = setup_logger(f'SyncLogger.{service_name}')

    @property
    def client(self):
        if self._client is None:
            from opsync.supabase_client import get_supabase
            self._client = get_supabase()
        return self._client

    def log(self, event_type: str, status: str, message: str, details: Optional[Dict] = None):
        log_msg = f"[{self.service_name}_{event_type}] {message}"
        if status in ("error", "fatal"):
            self.logger.error(log_msg)
        elif status == "warning":
            self.logger.warning(log_msg)
        else:
            self.logger.info(log_msg)

        try:
            payload = {
                'event_type': f"{self.service_name}_{event_type}",
                'status': status,
                'message': message[:500] if message else '',
                'created_at': datetime.now(timezone.utc).isoformat(),
            }
            if details:
                payload['details'] = json.loads(json.dumps(details, default=str))
            self.client.table(SYNC_LOGS_TABLE).insert(payload).execute()
        except Exception as e:
            self.logger.warning(f"Failed to write to sync_logs: {e}")

    def log_start(self, sync_type: str = "sync"):
        self.log('start', 'info', f"Starting {sync_type}")

    def log_success(self, event_type: str, message: str, details: Optional[Dict] = None):
        self.log(event_type, 'success', message, details)

    def log_warning(self, event_type: str, message: str, details: Optional[Dict] = None):
        self.log(event_type, 'warning', message, details)

    def log_error(self, event_type: str, message: str, details: Optional[Dict] = None):
        self.log(event_type, 'error', message, details)
