"""
IP geolocation collaborators.

Responsibilities:
    - Resolve a client IP address to a country name
    - Never raise: every failure maps to "Unknown"

LLM Prompt Example:
    "Show how to wrap a flaky third-party lookup so that it can never fail
    the request that triggered it."
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import requests

from ..config import settings
from ..models import UNKNOWN_COUNTRY

__all__ = ["BaseGeolocator", "IpApiGeolocator", "StaticGeolocator"]

logger = logging.getLogger(__name__)


class BaseGeolocator(ABC):
    """Abstract base for pluggable IP-to-country lookups."""

    @abstractmethod
    def country_for(self, ip: str) -> str:  # pragma: no cover
        """
        Return the country name for `ip`, or "Unknown".

        Implementations must not raise.
        """
        raise NotImplementedError


class IpApiGeolocator(BaseGeolocator):
    """
    Lookup against an ip-api.com compatible JSON endpoint.

    GET {base_url}/{ip} -> {"status": "success", "country": "Germany", ...}
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or settings.GEO_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.GEO_TIMEOUT
        self.session = session or requests.Session()

    def country_for(self, ip: str) -> str:
        if not ip:
            return UNKNOWN_COUNTRY
        try:
            resp = self.session.get(f"{self.base_url}/{ip}", timeout=self.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Geolocation lookup failed for %s: %s", ip, exc)
            return UNKNOWN_COUNTRY

        if not isinstance(payload, dict):
            return UNKNOWN_COUNTRY
        country = payload.get("country")
        if not isinstance(country, str) or not country.strip():
            return UNKNOWN_COUNTRY
        return country.strip()


class StaticGeolocator(BaseGeolocator):
    """Fixed IP -> country table. Useful offline and in tests."""

    def __init__(self, table: Optional[Dict[str, str]] = None, default: str = UNKNOWN_COUNTRY):
        self.table = dict(table or {})
        self.default = default

    def country_for(self, ip: str) -> str:
        return self.table.get(ip, self.default)
