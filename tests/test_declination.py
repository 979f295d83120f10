"""Tests for the declination lookup (network access is mocked)."""

import datetime

import pytest
import requests

import declination
from declination import (
    DeclinationLookupError,
    DeclinationWorker,
    apply_declination,
    build_query,
    lookup_declination,
    parse_reply,
)
from georeferencing import Georeferencing
from models import LatLon, ParameterUpdate, ProjectedCoord

GRID = ParameterUpdate.UPDATE_GRID_PARAMETER
GEOGRAPHIC = ParameterUpdate.UPDATE_GEOGRAPHIC_PARAMETER

REPLY = """<?xml version="1.0" encoding="UTF-8"?>
<maggridresult>
  <result>
    <date>2026.79452</date>
    <elevation units="km">0.0</elevation>
    <latitude units="Degree">48.5</latitude>
    <longitude units="Degree">12.1</longitude>
    <declination units="Degree">4.61823</declination>
    <declnation_sv units="Degree">0.14</declnation_sv>
  </result>
</maggridresult>
"""

ERROR_REPLY = """<?xml version="1.0" encoding="UTF-8"?>
<maggridresult>
  <errors>Latitude must be between -90 and 90</errors>
</maggridresult>
"""


class FakeResponse:
    def __init__(self, text, status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


@pytest.fixture
def fake_get(monkeypatch, fresh_settings):
    calls = []

    def install(response=None, exc=None):
        def get(url, params=None, timeout=None):
            calls.append({"url": url, "params": params, "timeout": timeout})
            if exc is not None:
                raise exc
            return response
        monkeypatch.setattr(declination.requests, "get", get)
        return calls

    return install


def test_build_query():
    query = build_query(LatLon.from_degrees(48.5, 12.1), datetime.date(2026, 10, 18))
    assert query["lat1"] == pytest.approx(48.5)
    assert query["lon1"] == pytest.approx(12.1)
    assert (query["startYear"], query["startMonth"], query["startDay"]) == (2026, 10, 18)
    assert query["resultFormat"] == "xml"
    assert "key" not in query
    assert build_query(LatLon(), datetime.date(2026, 1, 1), "secret")["key"] == "secret"


def test_parse_reply():
    assert parse_reply(REPLY) == pytest.approx(4.61823)


@pytest.mark.parametrize("text, message", [
    (ERROR_REPLY, "Latitude must be between"),
    ("<errors>Invalid key</errors>", "Invalid key"),
    ("<maggridresult><result></result></maggridresult>", "Declination value not found."),
    ("not xml at all", "Could not parse data"),
    ("<maggridresult><result><declination>n/a</declination></result></maggridresult>",
     "Could not parse data"),
])
def test_parse_reply_errors(text, message):
    with pytest.raises(DeclinationLookupError, match=message):
        parse_reply(text)


def test_lookup_declination(fake_get):
    calls = fake_get(FakeResponse(REPLY))
    value = lookup_declination(LatLon.from_degrees(48.5, 12.1), datetime.date(2026, 10, 18))

    assert value == pytest.approx(4.61823)
    assert len(calls) == 1
    assert calls[0]["url"].endswith("calculateDeclination")
    assert calls[0]["params"]["resultFormat"] == "xml"
    assert calls[0]["timeout"] == 10.0


def test_lookup_uses_configured_service(fake_get, monkeypatch):
    monkeypatch.setenv("GEOREF_DECLINATION_SERVICE_URL", "https://example.org/decl")
    monkeypatch.setenv("GEOREF_DECLINATION_API_KEY", "abc")
    calls = fake_get(FakeResponse(REPLY))

    lookup_declination(LatLon.from_degrees(1.0, 2.0))

    assert calls[0]["url"] == "https://example.org/decl"
    assert calls[0]["params"]["key"] == "abc"
    today = datetime.date.today()
    assert calls[0]["params"]["startYear"] == today.year


def test_lookup_http_error(fake_get):
    fake_get(FakeResponse("", status_code=503))
    with pytest.raises(DeclinationLookupError, match="503"):
        lookup_declination(LatLon.from_degrees(48.5, 12.1))


def test_lookup_network_error(fake_get):
    fake_get(exc=requests.ConnectionError("no route to host"))
    with pytest.raises(DeclinationLookupError, match="no route to host"):
        lookup_declination(LatLon.from_degrees(48.5, 12.1))


@pytest.fixture
def georef(fake_crs_factory):
    georef = Georeferencing(fake_crs_factory)
    georef.set_projected_ref_point(ProjectedCoord(12000.0, 48000.0), GEOGRAPHIC)
    georef.set_projected_crs("FAKE", "fake", [], GEOGRAPHIC)
    return georef


def test_apply_declination_grid_update(georef):
    assert apply_declination(georef, 4.61823, GRID)
    assert georef.declination == 4.62
    assert georef.grivation == pytest.approx(4.62 - 12.0)


def test_apply_declination_geographic_update(georef):
    assert apply_declination(georef, 4.61823, GEOGRAPHIC)
    assert georef.grivation == round(4.61823 - 12.0, 2)
    assert georef.declination == pytest.approx(georef.grivation + 12.0)


def test_apply_declination_needs_geospatial_state():
    georef = Georeferencing()
    assert not apply_declination(georef, 3.0, GRID)
    assert georef.declination is None
    assert georef.grivation == 0.0


def test_worker_reports_result(monkeypatch):
    monkeypatch.setattr(declination, "lookup_declination", lambda latlon, date: 2.5)
    worker = DeclinationWorker(LatLon.from_degrees(48.0, 9.0))
    results, failures = [], []
    worker.result.connect(results.append)
    worker.failed.connect(failures.append)

    worker.run()

    assert results == [2.5]
    assert failures == []


def test_worker_reports_failure(monkeypatch):
    def fail(latlon, date):
        raise DeclinationLookupError("Declination value not found.")

    monkeypatch.setattr(declination, "lookup_declination", fail)
    worker = DeclinationWorker(LatLon.from_degrees(48.0, 9.0))
    failures = []
    worker.failed.connect(failures.append)

    worker.run()

    assert failures == ["Declination value not found."]
