"""
Outbound push of local mutations to the external sheet.

Contract: best-effort, fire-and-forget. Each push runs as a detached task
that the triggering operation never awaits. Failures are logged and
dropped: no retry, nothing surfaced to the caller, and cancelling the
caller does not cancel the push.
"""

import asyncio
import json
import logging
from typing import Optional, Set

import httpx

from opsync.config import PUSH_ENABLED, PUSH_TIMEOUT
from opsync.errors import PushError
from opsync.models import NormalizedRecord
from opsync.schema import CollectionSchema

logger = logging.getLogger("OutboundPush")

PUSH_ACTIONS = ("create", "update", "delete")


class OutboundPusher:

    def __init__(
        self,
        schema: CollectionSchema,
        url: Optional[str],
        enabled: bool = PUSH_ENABLED,
        timeout: float = PUSH_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.schema = schema
        self.url = url
        self.enabled = enabled
        self.timeout = timeout
        self.transport = transport
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def push(self, action: str, record: NormalizedRecord) -> Optional[asyncio.Task]:
        """Schedule a push and return immediately. Returns the task, or None when skipped."""
        if action not in PUSH_ACTIONS:
            raise ValueError(f"Unknown push action: {action}")
        if not self.enabled or not self.url:
            logger.debug(f"[{self.schema.name}] Outbound push disabled, skipping {action} {record.natural_key}")
            return None

        payload = self.schema.to_outbound(record, action)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"[{self.schema.name}] No running event loop, dropping {action} push for {record.natural_key}")
            return None

        task = loop.create_task(self._send(payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _send(self, payload: dict) -> bool:
        key = payload.get(self.schema.outbound_name("natural_key") or "", "")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True, transport=self.transport) as client:
                response = await client.post(
                    self.url,
                    content=json.dumps(payload),
                    headers={"Content-Type": "text/plain;charset=utf-8"},
                )
                if response.is_error:
                    raise PushError(f"Source answered {response.status_code}")
            logger.info(f"[{self.schema.name}] Pushed {payload['action']} for {key}")
            return True
        except asyncio.CancelledError:
            logger.warning(f"[{self.schema.name}] Push {payload['action']} for {key} cancelled")
            return False
        except Exception as e:
            logger.error(f"[{self.schema.name}] Push {payload['action']} for {key} failed: {e}")
            return False

    async def drain(self):
        """Wait for every in-flight push to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
