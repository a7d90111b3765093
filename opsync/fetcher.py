"""
Source fetcher for the external sheet endpoint.

The endpoint is an Apps Script web app that answers either with a JSON
array of row objects, a JSON envelope {status, message?, data: [...]}, or a
published CSV export. Any failure becomes a FetchError and nothing else in
the run happens.
"""

import csv
import io
import json
import logging
from typing import Any, List, Optional

import httpx

from opsync.config import FETCH_MAX_RETRIES, FETCH_TIMEOUT
from opsync.errors import FetchError
from opsync.models import ExternalRecord
from opsync.utils import retry_on_error

logger = logging.getLogger("SourceFetcher")


def parse_csv(text: str) -> List[ExternalRecord]:
    """Parse a CSV export with a header row; headers are trimmed, blank lines skipped."""
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    header = None
    rows = []
    for line in reader:
        if not any(cell.strip() for cell in line):
            continue
        if header is None:
            header = [h.strip() for h in line]
            continue
        rows.append({name: (line[i] if i < len(line) else "") for i, name in enumerate(header) if name})
    return rows


def extract_rows(payload: Any) -> List[ExternalRecord]:
    """Unwrap a decoded JSON body into a list of rows, enforcing the envelope rules."""
    if isinstance(payload, dict):
        if payload.get("status") == "error":
            raise FetchError(payload.get("message") or "Unknown Script Error")
        payload = payload.get("data") or []

    if not isinstance(payload, list):
        raise FetchError(f"Unexpected response shape: {type(payload).__name__}")
    return payload


class SourceFetcher:
    """
    Reads every row of one collection from the external endpoint.

    Usage:
        fetcher = SourceFetcher("https://script.google.com/macros/s/.../exec")
        rows = await fetcher.fetch()
    """

    def __init__(
        self,
        url: Optional[str],
        timeout: float = FETCH_TIMEOUT,
        max_retries: int = FETCH_MAX_RETRIES,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.transport = transport

    async def _get(self) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self.transport,
        ) as client:
            response = await client.get(self.url)
            response.raise_for_status()
            return response

    def _decode(self, response: httpx.Response) -> List[ExternalRecord]:
        content_type = response.headers.get("content-type", "").lower()
        text = response.text

        # Sign-in and error pages come back as 200 text/html
        if "html" in content_type:
            raise FetchError(f"Source answered with an HTML page ({content_type})")

        if "csv" in content_type:
            return parse_csv(text)

        try:
            payload = json.loads(text)
        except ValueError:
            # Published sheets answer with CSV under a text/plain content type
            if content_type.startswith("text/plain") and "\n" in text.strip() and "," in text:
                return parse_csv(text)
            raise FetchError("Response is neither JSON nor CSV")

        return extract_rows(payload)

    async def fetch(self) -> List[ExternalRecord]:
        if not self.url:
            raise FetchError("No source URL configured")

        get = retry_on_error(max_retries=self.max_retries, base_delay=self.retry_delay)(self._get)
        try:
            response = await get()
        except httpx.HTTPStatusError as e:
            raise FetchError(f"Failed to fetch data from source ({e.response.status_code})") from e
        except (httpx.HTTPError, OSError) as e:
            raise FetchError(f"Failed to fetch data from source: {e}") from e

        rows = self._decode(response)
        if not rows:
            raise FetchError("No data received (sheet might be empty or name mismatch)")

        logger.info(f"Fetched {len(rows)} rows from source")
        return rows
