import re

import pytest

from linktrail.manager.strategies import (
    HMACSHA256Strategy,
    Hash32Strategy,
    RandomStrategy,
    SHA256Strategy,
    encode_base62,
    get_strategy_from_config,
    string_hash32,
)

BASE62 = re.compile(r"^[0-9a-zA-Z]+$")


@pytest.mark.parametrize(
    "text, expected",
    [
        ("", 0),
        ("a", 97),
        ("hello", 99162322),
        ("Aa", 2112),
        ("BB", 2112),
        ("polygenelubricants", 0x80000000),
    ],
)
def test_string_hash32_known_values(text, expected):
    assert string_hash32(text) == expected


def test_hash32_is_unpadded_lowercase_hex():
    s = Hash32Strategy()
    assert s.generate("Aa") == "840"
    assert s.generate("a") == "61"
    assert s.generate("polygenelubricants") == "80000000"
    assert s.generate("hello") == "5e918d2"
    assert s.generate("https://example.com/x", length=20) == s.generate("https://example.com/x")


def test_hash32_salt_changes_candidate():
    s = Hash32Strategy()
    assert s.generate("BB", salt="1f2e") == "%x" % string_hash32("BB|1f2e")
    assert s.generate("BB", salt="1f2e") != s.generate("BB")
    assert s.generate("BB", salt="") == s.generate("BB")


def test_encode_base62_edges():
    assert encode_base62(0) == "0"
    assert encode_base62(61) == "Z"
    assert encode_base62(62) == "10"
    with pytest.raises(ValueError):
        encode_base62(-1)


def test_sha256_deterministic_and_length_clamped():
    s = SHA256Strategy()
    a = s.generate("https://example.com", length=10)
    assert a == s.generate("https://example.com", length=10)
    assert len(a) == 10 and BASE62.match(a)
    assert len(s.generate("https://example.com", length=1)) == 4
    assert s.generate("https://example.com", length=10, salt="ab12") != a


def test_hmac_depends_on_secret():
    url = "https://example.com"
    assert HMACSHA256Strategy("k1").generate(url) != HMACSHA256Strategy("k2").generate(url)


def test_random_strategy_shape():
    code = RandomStrategy().generate("ignored", length=12)
    assert len(code) == 12 and BASE62.match(code)


@pytest.mark.parametrize(
    "name, cls",
    [
        ("hash32", Hash32Strategy),
        ("SHA256", SHA256Strategy),
        ("hmac-sha256", HMACSHA256Strategy),
        ("random", RandomStrategy),
        ("no-such-strategy", Hash32Strategy),
    ],
)
def test_get_strategy_from_config(name, cls):
    assert isinstance(get_strategy_from_config(name), cls)
