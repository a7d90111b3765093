"""
Date normalization for values coming out of the external sheet.

normalize_date() never raises. Anything it cannot read becomes the current
instant; callers rely on every normalized record carrying a timestamp.
"""

import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

logger = logging.getLogger("DateNormalizer")

# Unambiguous month-name layouts accepted by the general pass
GENERAL_FORMATS = (
    "%Y/%m/%d",
    "%b %d %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
)

# Sheet-specific day-first layouts, tried in order after the general pass
TWO_DIGIT_YEAR_FORMAT = "%d/%m/%y"
FOUR_DIGIT_YEAR_FORMAT = "%d/%m/%Y"

_SEPARATORS = re.compile(r"[-/]")


def to_iso_instant(dt: datetime) -> str:
    """Render a datetime as a UTC ISO-8601 instant ending in 'Z'."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    timespec = "milliseconds" if dt.microsecond else "seconds"
    return dt.isoformat(timespec=timespec).replace("+00:00", "Z")


def parse_instant(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO instant produced by to_iso_instant (or stored by the app)."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _parse_general(text: str) -> Optional[datetime]:
    dt = parse_instant(text)
    if dt is not None:
        return dt

    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError, OverflowError):
        pass

    for fmt in GENERAL_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _parse_two_digit_year(text: str) -> Optional[datetime]:
    try:
        parsed = datetime.strptime(text, TWO_DIGIT_YEAR_FORMAT)
    except ValueError:
        return None

    if parsed.year < 2000:
        try:
            parsed = parsed.replace(year=parsed.year + 100)
            if parsed.year < 2000:
                raw_year = _SEPARATORS.split(text)[2]
                parsed = parsed.replace(year=2000 + int(raw_year))
        except (ValueError, IndexError):
            return None
    return parsed


def _parse_four_digit_year(text: str) -> Optional[datetime]:
    try:
        return datetime.strptime(text, FOUR_DIGIT_YEAR_FORMAT)
    except ValueError:
        return None


def normalize_date(value: Any, now: Optional[datetime] = None) -> str:
    """
    Convert an arbitrary date value into a canonical ISO-8601 UTC instant.

    Order: general parsing (ISO-8601, RFC 2822, month-name layouts), then
    d/M/yy with century correction, then d/M/yyyy. Unreadable or empty
    input falls back to `now` (the current instant when not given).
    """
    if isinstance(value, datetime):
        try:
            return to_iso_instant(value)
        except OverflowError:
            logger.debug(f"Datetime {value!r} out of range, using current time")
            return to_iso_instant(now or datetime.now(timezone.utc))

    text = str(value).strip() if value is not None else ""
    if text:
        for parse in (_parse_general, _parse_two_digit_year, _parse_four_digit_year):
            # Instants at the edge of the calendar overflow when shifted to UTC
            try:
                parsed = parse(text)
                if parsed is not None:
                    return to_iso_instant(parsed)
            except (ValueError, OverflowError):
                continue
        logger.debug(f"Unparseable date '{text}', using current time")

    return to_iso_instant(now or datetime.now(timezone.utc))
