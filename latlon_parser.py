"""Parse and format free-form latitude/longitude text.

Accepted input, field by field (fields are separated by whitespace):

  48.52887 12.14037            signed decimal degrees, latitude first
  48.52887N 12.14037E          hemisphere letters, anywhere in the field
  48°31'43.932"N 12°8'25.332"E degrees, minutes and seconds
  48°31'43.932'' N             doubled apostrophe for seconds

A field with N or S is a latitude, one with E or W a longitude. Without a
letter the first field is the latitude and later fields the longitude.

Spaces inside a single coordinate ("S 48° 31' 43.932") are not supported.
"""

import math
from typing import Optional

from models import LatLon

_NUMBER_CHARS = frozenset("0123456789.-")
_WHITESPACE = frozenset(" \t\r\n")
_DEGREE_SIGN = "°"
_UTF8_LEAD_BYTE = "Â"   # seen when UTF-8 "°" was decoded as Latin-1


def _to_float(buffer: str) -> float:
    if not buffer:
        return 0.0
    return float(buffer)


def parse_latlon(text: str) -> Optional[LatLon]:
    """Return the coordinates in text, or None if the text cannot be parsed."""
    try:
        return _parse(text)
    except ValueError:
        return None


def _parse(text: str) -> Optional[LatLon]:
    buffer = ""
    latitude = 0.0
    longitude = 0.0
    latitude_set = False

    letter = None
    degrees = 0.0
    degrees_set = False
    minutes_set = False

    length = len(text)
    i = 0
    while i <= length:
        c = text[i].upper() if i < length else " "

        if c in _NUMBER_CHARS:
            buffer += c
        elif c == _DEGREE_SIGN:
            degrees = _to_float(buffer)
            degrees_set = True
            buffer = ""
        elif c == _UTF8_LEAD_BYTE:
            pass
        elif c == '"' or (c == "'" and i < length - 1 and text[i + 1] == "'"):
            degrees += _to_float(buffer) / 3600.0
            buffer = ""
        elif c == "'":
            degrees += _to_float(buffer) / 60.0
            minutes_set = True
            buffer = ""
        elif c in ("N", "E", "S", "W"):
            letter = c
        elif c in _WHITESPACE:
            if buffer or degrees_set:
                if buffer:
                    if not degrees_set:
                        degrees = _to_float(buffer)
                    elif not minutes_set:
                        degrees += _to_float(buffer) / 60.0
                    else:
                        degrees += _to_float(buffer) / 3600.0
                    buffer = ""

                if letter in ("S", "W"):
                    degrees = -degrees

                if letter in ("N", "S"):
                    latitude = degrees
                    latitude_set = True
                elif letter in ("E", "W"):
                    longitude = degrees
                elif latitude_set:
                    longitude = degrees
                else:
                    latitude = degrees
                    latitude_set = True

                letter = None
                degrees = 0.0
                degrees_set = False
                minutes_set = False
        else:
            return None
        i += 1

    return LatLon(math.radians(latitude), math.radians(longitude))


def _dms(value: float, precision: int) -> str:
    total = round(abs(value) * 3600.0, precision)
    degrees = int(total // 3600)
    minutes = int((total - degrees * 3600) // 60)
    seconds = total - degrees * 3600 - minutes * 60
    return f"{degrees}{_DEGREE_SIGN}{minutes}'{seconds:.{precision}f}\""


def format_latlon(latlon: LatLon, style: str = "decimal", precision: Optional[int] = None) -> str:
    """Format coordinates so that parse_latlon() reads them back.

    Args:
        latlon:    Coordinates to format.
        style:     "decimal" (signed degrees), "hemisphere" (degrees with
                   N/S/E/W) or "dms" (degrees, minutes, seconds with N/S/E/W).
        precision: Decimal places of the degrees (or seconds for "dms").
    """
    lat = latlon.latitude_degrees
    lon = latlon.longitude_degrees
    ns = "N" if lat >= 0 else "S"
    ew = "E" if lon >= 0 else "W"

    if style == "decimal":
        p = 9 if precision is None else precision
        return f"{lat:.{p}f} {lon:.{p}f}"
    if style == "hemisphere":
        p = 9 if precision is None else precision
        return f"{abs(lat):.{p}f}{ns} {abs(lon):.{p}f}{ew}"
    if style == "dms":
        p = 5 if precision is None else precision
        return f"{_dms(lat, p)}{ns} {_dms(lon, p)}{ew}"
    raise ValueError(f"Unknown coordinate format style: {style!r}")
