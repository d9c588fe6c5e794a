"""
AnalyticsAggregator – fold raw click events into bucketed distributions.

Responsibilities:
    - Scan every click event of one link
    - Normalise each timestamp into the canonical zone (see timestamps.py)
    - Bucket by hour of day (daily), Sunday-start week (weekly) or calendar
      month (monthly), over a fixed window
    - Count device, browser and country for every admitted event

Design notes:
    - One canonical zone per aggregator, never the caller's zone, so week and
      month boundaries are the same for every caller.
    - A malformed event is dropped, never fatal: one bad row must not fail
      the whole query.
    - total_clicks is the sum of the temporal buckets. It comes from the event
      log and can differ from the counter kept on the link row.

Example output (daily):
    {
        "short_id": "abc123",
        "granularity": "daily",
        "timezone": "America/Los_Angeles",
        "date": "2024-05-01",
        "clicks_per_hour": {0: 0, ..., 10: 2, ..., 23: 0},
        "device_distribution": {"Desktop": 1, "Mobile": 1, "Tablet": 0},
        "browser_distribution": {"Chrome": 2, "Firefox": 0, ...},
        "country_distribution": {"United States": 0, ..., "Unknown": 2},
        "total_clicks": 2
    }

LLM Prompt Example:
    "Explain why trailing windows are built from calendar-aligned bucket keys
    instead of a fixed number of seconds before now."
"""

import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from ..config import settings
from ..errors import MalformedInput
from ..models import UNKNOWN_COUNTRY, Browser, DeviceType, Granularity
from ..storage.repository import LinkRecordRepository
from .timestamps import normalize_timestamp

logger = logging.getLogger(__name__)

TRAILING_PERIODS = 12

DEFAULT_COUNTRIES: Tuple[str, ...] = (
    "United States",
    "China",
    "India",
    "United Kingdom",
    "Germany",
    UNKNOWN_COUNTRY,
)

BUCKET_FIELDS = {
    Granularity.DAILY: "clicks_per_hour",
    Granularity.WEEKLY: "clicks_per_week",
    Granularity.MONTHLY: "clicks_per_month",
}

ReferenceDate = Union[None, str, date, datetime]
BucketKey = Union[int, str]


def week_start(day: date) -> date:
    """The Sunday on or before `day`."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


class AnalyticsAggregator:
    def __init__(
        self,
        repository: LinkRecordRepository,
        zone: Union[None, str, tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            repository (LinkRecordRepository): Source of click events.
            zone (str | tzinfo, optional): Canonical zone; defaults to settings.ANALYTICS_TZ.
            clock (callable, optional): Returns the current aware datetime; injectable for tests.
        """
        zone = zone or settings.ANALYTICS_TZ
        self.zone: tzinfo = ZoneInfo(zone) if isinstance(zone, str) else zone
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.repository = repository

    # ------------------------------------------------------------------
    # Reference date
    # ------------------------------------------------------------------
    def today(self) -> date:
        return self.clock().astimezone(self.zone).date()

    def resolve_reference_date(self, reference: ReferenceDate) -> date:
        """
        Turn the caller's reference date into a calendar day in the canonical zone.

        Unparseable input falls back to today instead of failing the request.
        """
        if reference is None:
            return self.today()
        if isinstance(reference, datetime):
            if reference.tzinfo is None:
                return reference.date()
            return reference.astimezone(self.zone).date()
        if isinstance(reference, date):
            return reference
        if isinstance(reference, str) and reference.strip():
            try:
                return date.fromisoformat(reference.strip())
            except ValueError:
                logger.debug("Invalid reference date %r, using today", reference)
        return self.today()

    # ------------------------------------------------------------------
    # Bucket layouts: (ordered zeroed buckets, moment -> key or None)
    # ------------------------------------------------------------------
    def _daily_buckets(self, day: date) -> Tuple[Dict[BucketKey, int], Callable[[datetime], Optional[BucketKey]]]:
        start = datetime.combine(day, time.min, tzinfo=self.zone).astimezone(timezone.utc)
        end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=self.zone).astimezone(timezone.utc)
        buckets: Dict[BucketKey, int] = {hour: 0 for hour in range(24)}

        def bucket_of(moment: datetime) -> Optional[BucketKey]:
            if start <= moment.astimezone(timezone.utc) < end:
                return moment.hour
            return None

        return buckets, bucket_of

    def _weekly_buckets(self, day: date) -> Tuple[Dict[BucketKey, int], Callable[[datetime], Optional[BucketKey]]]:
        current = week_start(day)
        buckets: Dict[BucketKey, int] = {
            (current - timedelta(weeks=TRAILING_PERIODS - 1 - i)).isoformat(): 0
            for i in range(TRAILING_PERIODS)
        }

        def bucket_of(moment: datetime) -> Optional[BucketKey]:
            return week_start(moment.date()).isoformat()

        return buckets, bucket_of

    def _monthly_buckets(self, day: date) -> Tuple[Dict[BucketKey, int], Callable[[datetime], Optional[BucketKey]]]:
        buckets: Dict[BucketKey, int] = {
            month_key(*shift_month(day.year, day.month, i - (TRAILING_PERIODS - 1))): 0
            for i in range(TRAILING_PERIODS)
        }

        def bucket_of(moment: datetime) -> Optional[BucketKey]:
            return month_key(moment.year, moment.month)

        return buckets, bucket_of

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def aggregate(
        self,
        short_id: str,
        granularity: Union[str, Granularity] = Granularity.DAILY,
        reference_date: ReferenceDate = None,
    ) -> Dict[str, Any]:
        """
        Bucket all click events of `short_id`.

        Args:
            short_id (str): Link to report on.
            granularity (str | Granularity): "daily", "weekly" or "monthly".
            reference_date: Day to report (daily) or the last day of the window
                (weekly/monthly). Defaults to today in the canonical zone.

        Returns:
            Dict[str, Any]: Temporal buckets, distributions and total_clicks.

        Raises:
            MalformedInput: Unknown granularity.
        """
        try:
            granularity = Granularity(granularity)
        except ValueError:
            raise MalformedInput(f"Unknown granularity: {granularity!r}") from None

        day = self.resolve_reference_date(reference_date)
        layout = {
            Granularity.DAILY: self._daily_buckets,
            Granularity.WEEKLY: self._weekly_buckets,
            Granularity.MONTHLY: self._monthly_buckets,
        }[granularity]
        buckets, bucket_of = layout(day)

        devices: Dict[str, int] = {member.value: 0 for member in DeviceType}
        browsers: Dict[str, int] = {member.value: 0 for member in Browser}
        countries: Dict[str, int] = {name: 0 for name in DEFAULT_COUNTRIES}

        skipped = 0
        for event in self.repository.get_click_events(short_id):
            moment = normalize_timestamp(event.timestamp, self.zone)
            if moment is None:
                skipped += 1
                continue
            key = bucket_of(moment)
            if key not in buckets:
                continue

            buckets[key] += 1
            devices[DeviceType.coerce(event.device_type).value] += 1
            browsers[Browser.coerce(event.browser).value] += 1
            country = (event.country or "").strip() or UNKNOWN_COUNTRY
            countries[country] = countries.get(country, 0) + 1

        if skipped:
            logger.debug("Skipped %d click events with unparseable timestamps for %s", skipped, short_id)

        keys: List[BucketKey] = list(buckets)
        result: Dict[str, Any] = {
            "short_id": short_id,
            "granularity": granularity.value,
            "timezone": str(self.zone),
            "date": day.isoformat(),
        }
        if granularity is not Granularity.DAILY:
            result["window_start"] = keys[0]
            result["window_end"] = keys[-1]
        result[BUCKET_FIELDS[granularity]] = buckets
        result["device_distribution"] = devices
        result["browser_distribution"] = browsers
        result["country_distribution"] = countries
        result["total_clicks"] = sum(buckets.values())
        return result
