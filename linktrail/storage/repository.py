"""
LinkRecordRepository – entity mapping onto the shared wide-column table.

Responsibilities:
    - Own the row-key scheme (nobody else may build or parse keys)
    - Own the column-family layout
    - Map LinkRecord rows and ClickEvent rows to and from cells

Row keys:
    - link rows:  "{short_id}"
    - user rows:  "user#{provider}#{subject}" (written elsewhere, skipped here)
    - click rows: "{short_id}_{timestamp}_{token}"

Column families:
    short_urls:   original_url, tag, owner_id
    metadata:     click_count, last_access, is_private, created_at
    click_events: timestamp, ip_address, user_agent, referer, country,
                  device_type, browser

Scalability:
    list_by_owner / list_by_tag scan the whole table. That is fine at the
    target scale; a secondary index keyed by owner/tag is the fix if it is not.
"""

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from ..models import DEFAULT_REFERER, DEFAULT_TAG, UNKNOWN_COUNTRY, ClickEvent, LinkRecord, utc_now_iso
from .base import BaseKeyValueStore, Cell, Row

logger = logging.getLogger(__name__)

USER_ROW_PREFIX = "user#"
CLICK_KEY_SEPARATOR = "_"

CF_SHORT_URLS = "short_urls"
COL_ORIGINAL_URL = "original_url"
COL_TAG = "tag"
COL_OWNER_ID = "owner_id"

CF_METADATA = "metadata"
COL_CLICK_COUNT = "click_count"
COL_LAST_ACCESS = "last_access"
COL_IS_PRIVATE = "is_private"
COL_CREATED_AT = "created_at"

CF_CLICK_EVENTS = "click_events"
CLICK_COLUMNS = ("timestamp", "ip_address", "user_agent", "referer", "country", "device_type", "browser")

_FRACTION = re.compile(r"\.(\d+)")

REQUIRED_LINK_COLUMNS = (
    (CF_SHORT_URLS, COL_ORIGINAL_URL),
    (CF_SHORT_URLS, COL_TAG),
    (CF_METADATA, COL_CLICK_COUNT),
    (CF_METADATA, COL_LAST_ACCESS),
)


def user_row_key(provider: str, subject: str) -> str:
    return f"{USER_ROW_PREFIX}{provider}#{subject}"


def _epoch_from_iso(text: str) -> int:
    """Epoch seconds of an ISO-8601 instant; naive values are taken as UTC."""
    value = text.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    # Java instants carry up to nanoseconds; fromisoformat wants exactly six digits.
    value = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


class LinkRecordRepository:
    """Maps LinkRecord and ClickEvent entities onto a BaseKeyValueStore."""

    def __init__(self, store: BaseKeyValueStore):
        self.store = store

    # ------------------------------------------------------------------
    # Row <-> entity mapping
    # ------------------------------------------------------------------
    @staticmethod
    def _link_cells(record: LinkRecord) -> List[Cell]:
        last_access = record.last_access or utc_now_iso(
            datetime.fromtimestamp(record.created_at, tz=timezone.utc)
        )
        cells = [
            Cell(CF_SHORT_URLS, COL_ORIGINAL_URL, record.original_url),
            Cell(CF_SHORT_URLS, COL_TAG, record.tag or DEFAULT_TAG),
            Cell(CF_METADATA, COL_CLICK_COUNT, str(record.click_count)),
            Cell(CF_METADATA, COL_LAST_ACCESS, last_access),
            Cell(CF_METADATA, COL_CREATED_AT, str(record.created_at)),
            Cell(CF_METADATA, COL_IS_PRIVATE, "true" if record.is_private else "false"),
        ]
        if record.owner_id:
            cells.append(Cell(CF_SHORT_URLS, COL_OWNER_ID, record.owner_id))
        return cells

    @staticmethod
    def _is_link_row(row: Row) -> bool:
        if row.key.startswith(USER_ROW_PREFIX):
            return False
        return all(row.get(fam, col) for fam, col in REQUIRED_LINK_COLUMNS)

    @staticmethod
    def _record_from_row(row: Row) -> Optional[LinkRecord]:
        """
        Build a LinkRecord, tolerating rows written by older schema versions.

        Missing owner -> None, missing privacy flag -> False, missing
        created_at -> derived from last_access. Returns None when the row
        cannot be read as a link at all.
        """
        last_access = row.get(CF_METADATA, COL_LAST_ACCESS)
        try:
            click_count = int(row.get(CF_METADATA, COL_CLICK_COUNT))
            created_raw = row.get(CF_METADATA, COL_CREATED_AT)
            created_at = int(created_raw) if created_raw else _epoch_from_iso(last_access)
        except (TypeError, ValueError):
            logger.warning("Skipping unreadable link row %r", row.key)
            return None

        return LinkRecord(
            short_id=row.key,
            original_url=row.get(CF_SHORT_URLS, COL_ORIGINAL_URL),
            created_at=created_at,
            tag=row.get(CF_SHORT_URLS, COL_TAG),
            owner_id=row.get(CF_SHORT_URLS, COL_OWNER_ID) or None,
            is_private=(row.get(CF_METADATA, COL_IS_PRIVATE) or "").strip().lower() == "true",
            click_count=click_count,
            last_access=last_access,
        )

    def _scan_links(self) -> Iterable[LinkRecord]:
        for row in self.store.read_rows():
            if not self._is_link_row(row):
                continue
            record = self._record_from_row(row)
            if record is not None:
                yield record

    # ------------------------------------------------------------------
    # Link records
    # ------------------------------------------------------------------
    def put(self, record: LinkRecord) -> None:
        """Upsert every known attribute of `record` in one row mutation."""
        self.store.mutate_row(record.short_id, self._link_cells(record))

    def create(self, record: LinkRecord) -> bool:
        """Write `record` only if its row does not exist. Returns False when the ID is taken."""
        created = self.store.check_and_mutate_row(record.short_id, self._link_cells(record))
        if created:
            logger.info("Claimed short id %s", record.short_id)
        return created

    def get_by_id(self, short_id: str) -> Optional[LinkRecord]:
        if not short_id:
            return None
        row = self.store.read_row(short_id)
        if row is None or not self._is_link_row(row):
            return None
        return self._record_from_row(row)

    def exists(self, short_id: str) -> bool:
        return self.get_by_id(short_id) is not None

    def increment_clicks(self, short_id: str) -> bool:
        """
        Bump the click counter and refresh last_access in one store step.

        A link deleted between the existence check and the increment stays
        deleted; the store refuses to bump a missing row.

        Returns:
            bool: False if the link does not exist.
        """
        if not self.exists(short_id):
            return False
        value = self.store.increment(
            short_id,
            CF_METADATA,
            COL_CLICK_COUNT,
            extra_cells=[Cell(CF_METADATA, COL_LAST_ACCESS, utc_now_iso())],
        )
        return value is not None

    def delete(self, short_id: str) -> None:
        self.store.delete_row(short_id)
        logger.info("Deleted link row %s", short_id)

    def list_by_owner(self, owner_id: str) -> List[LinkRecord]:
        return [r for r in self._scan_links() if r.owner_id is not None and r.owner_id == owner_id]

    def list_by_tag(self, tag: str, owner_id: Optional[str] = None) -> List[LinkRecord]:
        """
        Links carrying `tag`.

        With an owner, only that owner's links (private ones included).
        Without one, only public links.
        """
        if owner_id is not None:
            return [r for r in self._scan_links() if r.tag == tag and r.owner_id == owner_id]
        return [r for r in self._scan_links() if r.tag == tag and not r.is_private]

    # ------------------------------------------------------------------
    # Click events
    # ------------------------------------------------------------------
    @staticmethod
    def click_row_key(short_id: str, timestamp: str) -> str:
        return CLICK_KEY_SEPARATOR.join((short_id, timestamp, uuid.uuid4().hex))

    def save_click_event(self, event: ClickEvent) -> str:
        """Append one click row. Returns the generated row key."""
        row_key = self.click_row_key(event.short_id, event.timestamp)
        cells = [
            Cell(CF_CLICK_EVENTS, "timestamp", event.timestamp),
            Cell(CF_CLICK_EVENTS, "ip_address", event.ip_address or ""),
            Cell(CF_CLICK_EVENTS, "user_agent", event.user_agent or ""),
            Cell(CF_CLICK_EVENTS, "referer", event.referer or DEFAULT_REFERER),
            Cell(CF_CLICK_EVENTS, "country", event.country or UNKNOWN_COUNTRY),
            Cell(CF_CLICK_EVENTS, "device_type", event.device_type),
            Cell(CF_CLICK_EVENTS, "browser", event.browser),
        ]
        if not self.store.check_and_mutate_row(row_key, cells):
            # uuid4 tokens make this practically unreachable; events are never overwritten.
            raise RuntimeError(f"click row {row_key!r} already exists")
        event.row_key = row_key
        return row_key

    def get_click_events(self, short_id: str) -> List[ClickEvent]:
        """All click events recorded for `short_id`, in key order."""
        prefix = short_id + CLICK_KEY_SEPARATOR
        events = []
        for row in self.store.read_rows(prefix=prefix, family=CF_CLICK_EVENTS):
            values = {col: row.get(CF_CLICK_EVENTS, col) or "" for col in CLICK_COLUMNS}
            events.append(ClickEvent(short_id=short_id, row_key=row.key, **values))
        return events
