"""Data models for the georeferencing engine."""

import math
from dataclasses import dataclass
from enum import Enum


class GeoreferencingState(Enum):
    """Validity state of a Georeferencing."""
    LOCAL = 0                 # no CRS, map <-> ground only
    GEOSPATIAL = 1            # CRS selected and usable at the reference point
    BROKEN_GEOSPATIAL = 2     # CRS selected but not usable


class ParameterUpdate(Enum):
    """Which side of a georeferencing is derived when a reference point changes.

    UPDATE_GRID_PARAMETER keeps the geographic parameters (geographic point,
    declination, auxiliary scale factor) and recomputes the grid ones.
    UPDATE_GEOGRAPHIC_PARAMETER does the opposite.
    """
    UPDATE_GRID_PARAMETER = 0
    UPDATE_GEOGRAPHIC_PARAMETER = 1


@dataclass(frozen=True)
class LatLon:
    """Geographic coordinates in radians."""
    latitude: float = 0.0
    longitude: float = 0.0

    @classmethod
    def from_degrees(cls, latitude: float, longitude: float) -> "LatLon":
        return cls(math.radians(latitude), math.radians(longitude))

    @property
    def latitude_degrees(self) -> float:
        return math.degrees(self.latitude)

    @property
    def longitude_degrees(self) -> float:
        return math.degrees(self.longitude)

    def normalized(self) -> "LatLon":
        """Return a copy with the longitude wrapped to (-pi, pi]."""
        lon = math.remainder(self.longitude, 2 * math.pi)
        if lon == -math.pi:
            lon = math.pi
        return LatLon(self.latitude, lon)


@dataclass(frozen=True)
class MapCoord:
    """Map coordinates in millimetres. North is -y."""
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class ProjectedCoord:
    """Coordinates in the projected CRS (usually metres)."""
    easting: float = 0.0
    northing: float = 0.0
