"""
Domain entities for LinkTrail.

Two entity kinds share one physical table:
    - LinkRecord: a short ID and its destination plus per-link metadata.
    - ClickEvent: one immutable record per successful resolution.

Device and browser classes are closed vocabularies with an explicit
fallback member; countries stay open-ended strings.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

DEFAULT_TAG = "None"
DEFAULT_REFERER = "Direct"
UNKNOWN_COUNTRY = "Unknown"


def utc_now_iso(now: Optional[datetime] = None) -> str:
    """Render an instant as UTC ISO-8601 with a trailing "Z" (e.g. 2024-05-01T10:15:00.123456Z)."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class DeviceType(str, Enum):
    DESKTOP = "Desktop"
    MOBILE = "Mobile"
    TABLET = "Tablet"

    @classmethod
    def coerce(cls, value: Optional[str]) -> "DeviceType":
        """Map a stored value onto the vocabulary; anything unrecognised counts as Desktop."""
        for member in cls:
            if member.value == value:
                return member
        return cls.DESKTOP


class Browser(str, Enum):
    CHROME = "Chrome"
    FIREFOX = "Firefox"
    SAFARI = "Safari"
    EDGE = "Edge"
    INTERNET_EXPLORER = "Internet Explorer"
    OTHER = "Other"

    @classmethod
    def coerce(cls, value: Optional[str]) -> "Browser":
        """Map a stored value onto the vocabulary; unknown browsers overflow into Other."""
        for member in cls:
            if member.value == value:
                return member
        return cls.OTHER


class Granularity(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass
class LinkRecord:
    """
    A shortened link.

    Attributes:
        short_id (str): Row key; unique across all links once claimed.
        original_url (str): Destination URL.
        created_at (int): Creation time, epoch seconds.
        tag (str): Free-text tag, "None" when the caller gave none.
        owner_id (Optional[str]): "provider#subject" of the owner, None for anonymous links.
        is_private (bool): Private links are only visible to their owner.
        click_count (int): Resolution counter kept on the link row.
        last_access (Optional[str]): ISO-8601 time of the latest resolution.
    """

    short_id: str
    original_url: str
    created_at: int
    tag: str = DEFAULT_TAG
    owner_id: Optional[str] = None
    is_private: bool = False
    click_count: int = 0
    last_access: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ClickEvent:
    """One resolution of a short link. Written once, never updated."""

    short_id: str
    timestamp: str
    ip_address: str = ""
    user_agent: str = ""
    referer: str = DEFAULT_REFERER
    country: str = UNKNOWN_COUNTRY
    device_type: str = DeviceType.DESKTOP.value
    browser: str = Browser.OTHER.value
    row_key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
