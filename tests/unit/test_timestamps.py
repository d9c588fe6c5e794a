"""
Unit tests for click timestamp normalisation.

Every stored format must land on the same instant in the canonical zone.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from linktrail.analytics.timestamps import (
    normalize_timestamp,
    parse_local,
    parse_offset,
    parse_utc_instant,
    parse_zoned,
)

LA = ZoneInfo("America/Los_Angeles")
EXPECTED = datetime(2024, 5, 1, 10, 15, tzinfo=LA)


@pytest.mark.parametrize(
    "text",
    [
        "2024-05-01T17:15:00Z",
        "2024-05-01T17:15:00.000000000Z",
        "2024-05-01T13:15-04:00[America/New_York]",
        "2024-05-01T13:15[America/New_York]",
        "2024-05-01T19:15:00+02:00",
        "2024-05-01T10:15:00",
    ],
)
def test_all_formats_normalise_to_same_instant(text):
    moment = normalize_timestamp(text, LA)
    assert moment == EXPECTED
    assert moment.hour == 10
    assert moment.utcoffset() == EXPECTED.utcoffset()


def test_fraction_truncated_to_microseconds():
    moment = normalize_timestamp("2024-05-01T17:15:00.123456789Z", LA)
    assert moment.microsecond == 123456


@pytest.mark.parametrize("text", ["", "   ", None, "not-a-time", "2024-13-40T99:00:00", "2024-05-01T10:15[Not/AZone]"])
def test_unparseable_returns_none(text):
    assert normalize_timestamp(text, LA) is None


def test_parsers_reject_other_formats():
    assert parse_utc_instant("2024-05-01T10:15:00", LA) is None
    assert parse_zoned("2024-05-01T17:15:00Z", LA) is None
    assert parse_offset("2024-05-01T17:15:00Z", LA) is None
    assert parse_offset("2024-05-01T10:15:00", LA) is None
    assert parse_local("2024-05-01T19:15:00+02:00", LA) is None
