"""Online lookup of the magnetic declination at the reference point.

The NOAA geomagnetic calculator is queried with resultFormat=xml. A successful
reply looks like:

    <maggridresult>
      <result>
        <date>2026.79</date>
        <latitude>48.5</latitude>
        <longitude>12.1</longitude>
        <declination>4.21</declination>
        ...
      </result>
    </maggridresult>

Service errors come back as an <errors> element.
"""

import datetime
import logging
import xml.etree.ElementTree as ET
from typing import Optional

import requests
from PyQt5.QtCore import QThread, pyqtSignal

from georeferencing import Georeferencing, round_declination
from models import GeoreferencingState, LatLon, ParameterUpdate
from settings import get_settings

logger = logging.getLogger(__name__)


class DeclinationLookupError(RuntimeError):
    """The declination service did not deliver a usable value."""


def build_query(latlon: LatLon, date: datetime.date, api_key: str = "") -> dict:
    """Query parameters for the declination calculator."""
    query = {
        "lat1": latlon.latitude_degrees,
        "lon1": latlon.longitude_degrees,
        "startYear": date.year,
        "startMonth": date.month,
        "startDay": date.day,
        "resultFormat": "xml",
    }
    if api_key:
        query["key"] = api_key
    return query


def parse_reply(text: str) -> float:
    """Extract the declination in degrees from an XML reply.

    Raises:
        DeclinationLookupError: if the reply carries errors, is not XML, or
                                has no numeric declination.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise DeclinationLookupError(f"Could not parse data: {exc}") from exc

    errors = [root] if root.tag == "errors" else root.findall("errors")
    messages = [" ".join(e.itertext()).strip() for e in errors]
    messages = [m for m in messages if m]

    node = root.find("result/declination") if root.tag == "maggridresult" else None
    if node is not None:
        try:
            return float((node.text or "").strip())
        except ValueError as exc:
            raise DeclinationLookupError(f"Could not parse data: {node.text!r}") from exc

    if messages:
        raise DeclinationLookupError(" ".join(messages))
    raise DeclinationLookupError("Declination value not found.")


def lookup_declination(latlon: LatLon, date: Optional[datetime.date] = None) -> float:
    """Fetch the magnetic declination (degrees) for latlon on date (default: today).

    Raises:
        DeclinationLookupError: on network, HTTP or data errors.
    """
    settings = get_settings()
    date = date or datetime.date.today()
    query = build_query(latlon, date, settings.declination_api_key)
    logger.info(
        "Requesting declination for %.6f, %.6f on %s",
        latlon.latitude_degrees, latlon.longitude_degrees, date.isoformat(),
    )
    try:
        resp = requests.get(
            settings.declination_service_url,
            params=query,
            timeout=settings.declination_timeout,
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise DeclinationLookupError(f"Declination request failed: {exc}") from exc
    return parse_reply(resp.text)


def apply_declination(georef: Georeferencing, declination: float, update: ParameterUpdate) -> bool:
    """Apply a looked-up declination like a manual edit.

    With UPDATE_GRID_PARAMETER the geographic side is in control and the
    declination itself is set. With UPDATE_GEOGRAPHIC_PARAMETER the grid side
    is in control and the matching grivation is set instead. Only a
    GEOSPATIAL georeferencing accepts the value.
    """
    if georef.state is not GeoreferencingState.GEOSPATIAL:
        logger.warning("Declination reply ignored: georeferencing is %s", georef.state.name)
        return False
    if update is ParameterUpdate.UPDATE_GRID_PARAMETER:
        return georef.set_declination(round_declination(declination))
    georef.set_grivation(round_declination(declination - georef.convergence))
    return True


class DeclinationWorker(QThread):
    """Runs lookup_declination() off the calling thread."""
    result = pyqtSignal(float)
    failed = pyqtSignal(str)

    def __init__(self, latlon: LatLon, date: Optional[datetime.date] = None, parent=None):
        super().__init__(parent)
        self._latlon = latlon
        self._date = date

    def run(self):
        try:
            self.result.emit(lookup_declination(self._latlon, self._date))
        except DeclinationLookupError as exc:
            self.failed.emit(str(exc))
