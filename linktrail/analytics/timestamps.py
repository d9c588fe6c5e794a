"""
Click timestamp normalisation.

Stored click timestamps were written by several generations of clients:

    2024-05-01T17:15:00.123456789Z                    UTC instant
    2024-05-01T10:15-07:00[America/Los_Angeles]       zoned, self-describing
    2024-05-01T10:15:00-07:00                         offset
    2024-05-01T10:15:00                               bare local time

Each parser below is a pure function returning an aware datetime in the
canonical zone, or None when the text is not in its format. They are tried
in the fixed order of TIMESTAMP_PARSERS and the first success wins.
"""

import re
from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

Parser = Callable[[str, tzinfo], Optional[datetime]]

_FRACTION = re.compile(r"\.(\d+)")
_ZONED = re.compile(r"^(?P<base>[^\[\]]+)\[(?P<region>[^\[\]]+)\]$")


def _fromisoformat(text: str) -> Optional[datetime]:
    """datetime.fromisoformat with fractions of any length truncated to microseconds."""
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text.strip(), count=1)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _strip_z(text: str) -> Optional[str]:
    if text[-1:] in ("Z", "z"):
        return text[:-1] + "+00:00"
    return None


def parse_utc_instant(text: str, zone: tzinfo) -> Optional[datetime]:
    if "[" in text:
        return None
    base = _strip_z(text.strip())
    if base is None:
        return None
    parsed = _fromisoformat(base)
    if parsed is None:
        return None
    return parsed.replace(tzinfo=timezone.utc).astimezone(zone)


def parse_zoned(text: str, zone: tzinfo) -> Optional[datetime]:
    match = _ZONED.match(text.strip())
    if not match:
        return None
    try:
        region = ZoneInfo(match.group("region"))
    except (ZoneInfoNotFoundError, ValueError):
        return None
    base = match.group("base")
    parsed = _fromisoformat(_strip_z(base) or base)
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=region)
    return parsed.astimezone(zone)


def parse_offset(text: str, zone: tzinfo) -> Optional[datetime]:
    text = text.strip()
    if "[" in text or _strip_z(text) is not None:
        return None
    parsed = _fromisoformat(text)
    if parsed is None or parsed.tzinfo is None:
        return None
    return parsed.astimezone(zone)


def parse_local(text: str, zone: tzinfo) -> Optional[datetime]:
    text = text.strip()
    if "[" in text:
        return None
    parsed = _fromisoformat(text)
    if parsed is None or parsed.tzinfo is not None:
        return None
    return parsed.replace(tzinfo=zone)


TIMESTAMP_PARSERS: Tuple[Parser, ...] = (
    parse_utc_instant,
    parse_zoned,
    parse_offset,
    parse_local,
)


def normalize_timestamp(text: Optional[str], zone: tzinfo) -> Optional[datetime]:
    """
    Parse a stored click timestamp into the canonical zone.

    Returns:
        Optional[datetime]: Aware datetime in `zone`, or None if no format matched.
    """
    if not text or not text.strip():
        return None
    for parser in TIMESTAMP_PARSERS:
        parsed = parser(text, zone)
        if parsed is not None:
            return parsed
    return None
