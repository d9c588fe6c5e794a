import requests

from linktrail.analytics.geolocation import IpApiGeolocator, StaticGeolocator


class FakeResponse:
    def __init__(self, payload=None, status=200, bad_json=False):
        self.payload = payload
        self.status = status
        self.bad_json = bad_json

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        if self.bad_json:
            raise ValueError("not json")
        return self.payload


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        if self.exc:
            raise self.exc
        return self.response


def test_successful_lookup():
    session = FakeSession(FakeResponse({"status": "success", "country": "Germany"}))
    geo = IpApiGeolocator(base_url="http://geo.test/json/", timeout=1.5, session=session)
    assert geo.country_for("203.0.113.9") == "Germany"
    assert session.calls == [("http://geo.test/json/203.0.113.9", 1.5)]


def test_network_error_is_unknown():
    geo = IpApiGeolocator(session=FakeSession(exc=requests.ConnectionError("down")))
    assert geo.country_for("203.0.113.9") == "Unknown"


def test_http_error_is_unknown():
    geo = IpApiGeolocator(session=FakeSession(FakeResponse(status=503)))
    assert geo.country_for("203.0.113.9") == "Unknown"


def test_bad_payloads_are_unknown():
    for response in (
        FakeResponse(bad_json=True),
        FakeResponse(["not", "a", "dict"]),
        FakeResponse({"status": "fail", "message": "private range"}),
        FakeResponse({"country": "   "}),
    ):
        geo = IpApiGeolocator(session=FakeSession(response))
        assert geo.country_for("10.0.0.1") == "Unknown"


def test_empty_ip_skips_lookup():
    session = FakeSession(FakeResponse({"country": "Germany"}))
    assert IpApiGeolocator(session=session).country_for("") == "Unknown"
    assert session.calls == []


def test_static_geolocator():
    geo = StaticGeolocator({"1.2.3.4": "India"})
    assert geo.country_for("1.2.3.4") == "India"
    assert geo.country_for("5.6.7.8") == "Unknown"
