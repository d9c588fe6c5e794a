"""
Unit tests for LinkManager business rules.

Focus:
    - URL and alias validation
    - privacy and ownership rules on resolve/delete
    - bulk shortening with per-item errors
"""

import pytest

from linktrail.analytics.click_writer import RequestContext
from linktrail.errors import AliasConflict, Forbidden, MalformedInput, NotFound

OWNER = "github#1"
OTHER = "google#2"


def test_shorten_and_resolve(manager, repository):
    sid = manager.shorten("https://example.com/page")
    assert manager.resolve(sid) == "https://example.com/page"
    assert repository.get_by_id(sid).click_count == 1


def test_shorten_same_url_twice_gets_new_id(manager):
    first = manager.shorten("https://example.com/page")
    second = manager.shorten("https://example.com/page")
    assert first != second
    assert manager.resolve(second) == "https://example.com/page"


def test_popular_url_keeps_getting_new_ids(manager):
    # more shortens of one URL than the allocator has attempts per claim
    ids = [manager.shorten("https://example.com/popular") for _ in range(manager.allocator.max_attempts + 4)]
    assert len(set(ids)) == len(ids)
    assert all(manager.resolve(i) == "https://example.com/popular" for i in ids)


def test_shorten_records_metadata(manager, repository):
    sid = manager.shorten("https://example.com", tag="  news ", owner_id=OWNER, is_private=True)
    rec = repository.get_by_id(sid)
    assert rec.tag == "news"
    assert rec.owner_id == OWNER
    assert rec.is_private is True
    assert rec.click_count == 0


def test_default_tag_sentinel(manager, repository):
    sid = manager.shorten("https://example.com")
    assert repository.get_by_id(sid).tag == "None"


@pytest.mark.parametrize("url", ["", "example.com", "ftp://example.com", "https://", "javascript:alert(1)"])
def test_invalid_url(manager, url):
    with pytest.raises(MalformedInput, match="Invalid URL format"):
        manager.shorten(url)


@pytest.mark.parametrize("alias", ["bad_alias", "has space", "x#y", "a" * 33, "urls", "shorten", "bulk-shorten"])
def test_invalid_alias(manager, alias):
    with pytest.raises(MalformedInput):
        manager.shorten("https://example.com", alias=alias)


def test_alias_conflict(manager):
    assert manager.shorten("https://a.example", alias="promo") == "promo"
    with pytest.raises(AliasConflict):
        manager.shorten("https://b.example", alias="promo")
    assert manager.resolve("promo") == "https://a.example"


def test_private_requires_owner(manager):
    with pytest.raises(Forbidden):
        manager.shorten("https://example.com", is_private=True)


def test_private_link_visibility(manager):
    sid = manager.shorten("https://secret.example", owner_id=OWNER, is_private=True)
    with pytest.raises(Forbidden, match="Authentication required"):
        manager.resolve(sid)
    with pytest.raises(Forbidden, match="permission"):
        manager.resolve(sid, OTHER)
    assert manager.resolve(sid, OWNER) == "https://secret.example"


def test_resolve_unknown(manager):
    with pytest.raises(NotFound):
        manager.resolve("nope")


def test_delete_rules(manager, repository):
    owned = manager.shorten("https://owned.example", owner_id=OWNER)
    anon = manager.shorten("https://anon.example")

    with pytest.raises(Forbidden):
        manager.delete(owned, OTHER)
    manager.delete(owned, OWNER)
    assert repository.get_by_id(owned) is None

    manager.delete(anon, OTHER)
    assert repository.get_by_id(anon) is None

    with pytest.raises(NotFound):
        manager.delete(anon, OWNER)


def test_bulk_shorten_reports_item_errors(manager, repository):
    results = manager.bulk_shorten(
        [
            {"url": "https://one.example", "tag": "t"},
            {"url": "not a url"},
            {"url": "https://two.example", "isPrivate": "true"},
        ],
        owner_id=OWNER,
    )
    assert results["not a url"] == "Error: Invalid URL format"
    assert repository.get_by_id(results["https://one.example"]).tag == "t"
    assert repository.get_by_id(results["https://two.example"]).is_private is True


def test_list_by_tag_and_owner(manager):
    a = manager.shorten("https://a.example", tag="news", owner_id=OWNER)
    b = manager.shorten("https://b.example", tag="news", owner_id=OWNER, is_private=True)
    c = manager.shorten("https://c.example", tag="news")

    assert {r.short_id for r in manager.list_by_tag("news")} == {a, c}
    assert {r.short_id for r in manager.list_by_tag("news", OWNER)} == {a, b}
    assert {r.short_id for r in manager.list_by_owner(OWNER)} == {a, b}


def test_log_click_and_analytics(manager):
    sid = manager.shorten("https://example.com")
    event = manager.log_click(sid, RequestContext("203.0.113.9", {"User-Agent": "curl/8.4.0"}))
    assert event.country == "Germany"

    result = manager.get_analytics(sid, "monthly")
    assert result["short_id"] == sid
    assert result["granularity"] == "monthly"


def test_analytics_unknown_link(manager):
    with pytest.raises(NotFound):
        manager.get_analytics("nope")


def test_analytics_bad_granularity(manager):
    sid = manager.shorten("https://example.com")
    with pytest.raises(MalformedInput):
        manager.get_analytics(sid, "yearly")


def test_route_word_alias_is_refused(manager, repository):
    with pytest.raises(MalformedInput, match="reserved"):
        manager.shorten("https://example.com", alias="urls")
    assert repository.get_by_id("urls") is None
