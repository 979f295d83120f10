"""Shared fixtures for the georeferencing tests."""

import math

import pytest
from PyQt5.QtCore import QCoreApplication

from models import LatLon, ProjectedCoord
from settings import reset_settings


@pytest.fixture(scope="session", autouse=True)
def qapp():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def fresh_settings(monkeypatch):
    """Settings reloaded from a clean environment for the duration of a test."""
    for name in ("GEOREF_DECLINATION_SERVICE_URL", "GEOREF_DECLINATION_API_KEY",
                 "GEOREF_DECLINATION_TIMEOUT", "GEOREF_GEOGRAPHIC_CRS"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


class FakeCRS:
    """Simple invertible CRS: 1000 units per degree, defined for |lat| <= 80.

    Convergence equals the longitude in degrees and the grid scale factor
    grows with latitude, so both change when the reference point moves.
    """

    def __init__(self, spec):
        self.spec = spec

    def forward(self, latlon):
        if abs(latlon.latitude_degrees) > 80:
            return None
        return ProjectedCoord(latlon.longitude_degrees * 1000.0, latlon.latitude_degrees * 1000.0)

    def inverse(self, projected):
        lat = projected.northing / 1000.0
        if abs(lat) > 80:
            return None
        return LatLon(math.radians(lat), math.radians(projected.easting / 1000.0))

    def convergence(self, latlon):
        return latlon.longitude_degrees

    def grid_scale_factor(self, latlon):
        return 1.0 + latlon.latitude_degrees / 1000.0


@pytest.fixture
def fake_crs_factory():
    return FakeCRS
