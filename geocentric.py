"""Geographic to geocentric (earth-centred cartesian) coordinates."""

import math
from typing import Tuple

from ellipsoid import EllipsoidParameters
from models import LatLon


def to_cartesian(
    latlon: LatLon,
    params: EllipsoidParameters,
    height: float = 0.0,
) -> Tuple[float, float, float]:
    """Return (x, y, z) in metres for a point at height above the ellipsoid."""
    alpha = math.acos(params.b / params.a)
    sin_lat = math.sin(latlon.latitude)
    cos_lat = math.cos(latlon.latitude)
    n = params.a / math.sqrt(1 - (sin_lat * math.sin(alpha)) ** 2)

    x = (n + height) * cos_lat * math.cos(latlon.longitude)
    y = (n + height) * cos_lat * math.sin(latlon.longitude)
    z = (math.cos(alpha) ** 2 * n + height) * sin_lat
    return x, y, z
