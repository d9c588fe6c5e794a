"""
LinkManager module for LinkTrail.

Responsibilities:
    - Validate URLs and aliases
    - Create links through the IDAllocator (alias-first, else hashed IDs)
    - Resolve links, enforcing privacy, and bump the click counter
    - Delete links with ownership checks
    - List links by tag or owner
    - Hand click logging and analytics to their components

Design notes:
    - Storage is an injected dependency (repository over any BaseKeyValueStore).
    - Aliases act as vanity IDs and take precedence when provided.
    - Click logging is a separate call after resolve, so the HTTP layer decides
      when a resolution counts as a click.
    - Every caller identity is an opaque "provider#subject" string supplied by
      the authentication layer in front of this service.

LLM Prompt Example:
    "Explain how a thin service layer keeps ownership and privacy rules out of
    the storage layer while the repository keeps row-key knowledge out of the
    service layer."
"""

import logging
import re
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
from urllib.parse import urlparse

from ..analytics.aggregator import AnalyticsAggregator, ReferenceDate
from ..analytics.click_writer import ClickEventWriter, RequestContext
from ..analytics.geolocation import BaseGeolocator, IpApiGeolocator
from ..errors import Forbidden, LinkTrailError, MalformedInput, NotFound
from ..models import DEFAULT_TAG, ClickEvent, Granularity, LinkRecord, utc_now_iso
from ..storage.repository import LinkRecordRepository
from .id_allocator import RESERVED_IDS, IDAllocator

logger = logging.getLogger(__name__)

Base62Pattern = re.compile(r"^[0-9a-zA-Z]+$")
MAX_ALIAS_LENGTH = 32


def _as_bool(value: Union[str, bool, None]) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() == "true"


class LinkManager:
    """
    Coordinates creation, resolution and deletion rules for short links.

    LLM Prompt Example:
        "Show how DI lets tests run the whole service against an in-memory
        store and a static geolocator."
    """

    def __init__(
        self,
        repository: LinkRecordRepository,
        allocator: Optional[IDAllocator] = None,
        click_writer: Optional[ClickEventWriter] = None,
        aggregator: Optional[AnalyticsAggregator] = None,
        geolocator: Optional[BaseGeolocator] = None,
    ):
        """
        Args:
            repository (LinkRecordRepository): Entity access over the shared table.
            allocator (Optional[IDAllocator]): Short-ID allocation; built from config if omitted.
            click_writer (Optional[ClickEventWriter]): Click logging; uses `geolocator` if omitted.
            aggregator (Optional[AnalyticsAggregator]): Analytics; canonical zone from config if omitted.
            geolocator (Optional[BaseGeolocator]): Country lookup for the default click writer.
        """
        self.repository = repository
        self.allocator = allocator or IDAllocator(repository)
        self.click_writer = click_writer or ClickEventWriter(repository, geolocator or IpApiGeolocator())
        self.aggregator = aggregator or AnalyticsAggregator(repository)

    # ---------------------------------------------------------------------
    # Validation Helpers
    # ---------------------------------------------------------------------
    def _validate_url(self, url: str) -> None:
        """
        Validate that a URL has an http/https scheme and a netloc.

        Raises:
            MalformedInput: If the URL is malformed.
        """
        parsed = urlparse(url or "")
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise MalformedInput("Invalid URL format")

    def _validate_alias(self, alias: str) -> None:
        """
        Validate alias characters and length (max 32, Base62 only).

        Base62 keeps aliases clear of the "_" separator used in click row keys
        and the "#" used in user row keys. Route words under /api/ (RESERVED_IDS)
        are refused.
        """
        if not Base62Pattern.match(alias):
            raise MalformedInput("Alias must contain only 0-9a-zA-Z")
        if len(alias) > MAX_ALIAS_LENGTH:
            raise MalformedInput("Alias too long")
        if alias in RESERVED_IDS:
            raise MalformedInput("Alias is reserved")

    @staticmethod
    def _check_visibility(record: LinkRecord, requester_id: Optional[str]) -> None:
        if not record.is_private:
            return
        if requester_id is None:
            raise Forbidden("Authentication required for private URLs")
        if requester_id != record.owner_id:
            raise Forbidden("You don't have permission to access this URL")

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    def shorten(
        self,
        url: str,
        alias: Optional[str] = None,
        tag: Optional[str] = None,
        owner_id: Optional[str] = None,
        is_private: bool = False,
    ) -> str:
        """
        Create a short link.

        Rules:
            - URL must be http/https with a host.
            - Alias, if given, must be Base62 and <= 32 chars, and free.
            - Private links need an owner.
            - Tag defaults to the "None" sentinel.

        Returns:
            str: The claimed short ID.

        Raises:
            MalformedInput, Forbidden, AliasConflict, AllocationExhausted
        """
        self._validate_url(url)
        if alias:
            self._validate_alias(alias)
        if is_private and not owner_id:
            raise Forbidden("Authentication required for private URLs")

        now = time.time()
        template = LinkRecord(
            short_id="",
            original_url=url,
            created_at=int(now),
            tag=tag.strip() if tag and tag.strip() else DEFAULT_TAG,
            owner_id=owner_id or None,
            is_private=bool(is_private),
            click_count=0,
            last_access=utc_now_iso(),
        )
        short_id = self.allocator.allocate(template, alias=alias or None)
        logger.info("Created link %s -> %s (owner=%s, private=%s)", short_id, url, owner_id, is_private)
        return short_id

    def bulk_shorten(
        self, items: Iterable[Mapping[str, Any]], owner_id: Optional[str] = None
    ) -> Dict[str, str]:
        """
        Shorten several URLs; a failing item does not abort the batch.

        Args:
            items: Mappings with "url" and optional "tag" / "is_private".
            owner_id: Owner applied to every created link.

        Returns:
            Dict[str, str]: url -> short ID, or url -> "Error: <message>".
        """
        results: Dict[str, str] = {}
        for item in items:
            url = item.get("url") or ""
            try:
                results[url] = self.shorten(
                    url,
                    tag=item.get("tag"),
                    owner_id=owner_id,
                    is_private=_as_bool(item.get("is_private", item.get("isPrivate"))),
                )
            except LinkTrailError as exc:
                results[url] = f"Error: {exc}"
        return results

    def get_link(self, short_id: str, requester_id: Optional[str] = None) -> LinkRecord:
        """
        Fetch a link, enforcing privacy.

        Raises:
            NotFound: Unknown ID.
            Forbidden: Private link and the requester is not its owner.
        """
        record = self.repository.get_by_id(short_id)
        if record is None:
            raise NotFound("URL not found")
        self._check_visibility(record, requester_id)
        return record

    def resolve(self, short_id: str, requester_id: Optional[str] = None) -> str:
        """Return the destination URL and count the resolution on the link row."""
        record = self.get_link(short_id, requester_id)
        if not self.repository.increment_clicks(short_id):
            # Deleted between the read and the increment.
            raise NotFound("URL not found")
        return record.original_url

    def log_click(self, short_id: str, context: RequestContext) -> ClickEvent:
        return self.click_writer.log_click(short_id, context)

    def delete(self, short_id: str, owner_id: Optional[str]) -> None:
        """
        Delete a link.

        Ownerless links can be deleted by any caller; owned links only by their owner.
        """
        record = self.repository.get_by_id(short_id)
        if record is None:
            raise NotFound("URL not found")
        if record.owner_id is not None and record.owner_id != owner_id:
            raise Forbidden("You do not have permission to delete this URL")
        self.repository.delete(short_id)

    def list_by_tag(self, tag: str, owner_id: Optional[str] = None) -> List[LinkRecord]:
        return self.repository.list_by_tag(tag, owner_id)

    def list_by_owner(self, owner_id: str) -> List[LinkRecord]:
        return self.repository.list_by_owner(owner_id)

    def get_analytics(
        self,
        short_id: str,
        granularity: Union[str, Granularity] = Granularity.DAILY,
        date: ReferenceDate = None,
    ) -> Dict[str, Any]:
        """
        Bucketed click analytics for a link.

        Raises:
            NotFound: Unknown ID.
            MalformedInput: Unknown granularity.
        """
        if not self.repository.exists(short_id):
            raise NotFound("URL not found")
        return self.aggregator.aggregate(short_id, granularity, date)
