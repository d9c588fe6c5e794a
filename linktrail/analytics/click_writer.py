"""
ClickEventWriter – append one immutable click row per resolution.

Responsibilities:
    - Work out the client IP behind proxies
    - Classify device and browser from the user agent
    - Resolve the country (failures become "Unknown")
    - Hand the event to the repository, which owns the row key

Classification is substring based and order sensitive: modern user agents
embed several vendor tokens (Edge says Chrome and Safari, Chrome says Safari),
so the most specific check runs first.
"""

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from ..models import DEFAULT_REFERER, Browser, ClickEvent, DeviceType, utc_now_iso
from ..storage.repository import LinkRecordRepository
from .geolocation import BaseGeolocator

logger = logging.getLogger(__name__)

# Checked in order; the first usable value wins.
CLIENT_IP_HEADERS: Tuple[str, ...] = (
    "X-Forwarded-For",
    "X-Real-IP",
    "Proxy-Client-IP",
    "WL-Proxy-Client-IP",
    "HTTP_CLIENT_IP",
    "HTTP_X_FORWARDED_FOR",
)


@dataclass
class RequestContext:
    """The parts of an incoming request that click logging needs."""

    remote_addr: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


def resolve_client_ip(context: RequestContext) -> str:
    for name in CLIENT_IP_HEADERS:
        value = context.header(name)
        if not value:
            continue
        value = value.strip()
        if not value or value.lower() == "unknown":
            continue
        return value.split(",")[0].strip()
    return context.remote_addr or ""


def classify_device(user_agent: Optional[str]) -> DeviceType:
    ua = (user_agent or "").lower()
    if "mobile" in ua:
        return DeviceType.MOBILE
    if "tablet" in ua:
        return DeviceType.TABLET
    return DeviceType.DESKTOP


def classify_browser(user_agent: Optional[str]) -> Browser:
    if not user_agent:
        return Browser.OTHER
    ua = user_agent.lower()
    if "edg/" in ua or "edge/" in ua:
        return Browser.EDGE
    if "firefox/" in ua:
        return Browser.FIREFOX
    if "safari/" in ua and "chrome/" in ua and "chromium/" not in ua:
        return Browser.CHROME
    if "safari/" in ua and "chrome/" not in ua:
        return Browser.SAFARI
    if "trident/" in ua or "msie " in ua:
        return Browser.INTERNET_EXPLORER
    return Browser.OTHER


class ClickEventWriter:
    def __init__(self, repository: LinkRecordRepository, geolocator: BaseGeolocator):
        self.repository = repository
        self.geolocator = geolocator

    def log_click(self, short_id: str, context: RequestContext) -> ClickEvent:
        """
        Record one click for `short_id`.

        Args:
            short_id (str): Link that was resolved.
            context (RequestContext): Remote address and request headers.

        Returns:
            ClickEvent: The stored event, with its row key filled in.
        """
        ip = resolve_client_ip(context)
        user_agent = context.header("User-Agent") or ""
        event = ClickEvent(
            short_id=short_id,
            timestamp=utc_now_iso(),
            ip_address=ip,
            user_agent=user_agent,
            referer=context.header("Referer") or DEFAULT_REFERER,
            country=self.geolocator.country_for(ip),
            device_type=classify_device(user_agent).value,
            browser=classify_browser(user_agent).value,
        )
        self.repository.save_click_event(event)
        logger.debug("Logged click %s (%s/%s/%s)", event.row_key, event.device_type, event.browser, event.country)
        return event
