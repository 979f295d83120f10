"""Legacy "GPS projection": a tangent-plane projection on the ellipsoid.

The forward direction is closed-form. The inverse is found with
Newton-Raphson, starting at the tangent point. Map y is inverted, so the
projected northing is -y.
"""

import logging
import math
from dataclasses import dataclass

from ellipsoid import EllipsoidParameters
from models import LatLon, MapCoord

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 20
INSIGNIFICANT_CHANGE = 1e-9   # radians


@dataclass(frozen=True)
class InverseSolution:
    """Result of the Newton-Raphson inverse, including convergence details."""
    latlon: LatLon
    iterations: int
    converged: bool


def _easting_northing(latitude: float, longitude: float, params: EllipsoidParameters):
    sin_l = math.sin(latitude)
    cos_l = math.cos(latitude)
    dlon = longitude - params.center_longitude
    v = params.a / math.sqrt(1 - params.e_sq * sin_l * sin_l)
    easting = v * cos_l * math.sin(dlon)
    northing = (
        v * (sin_l * params.cos_center_latitude - cos_l * params.sin_center_latitude * math.cos(dlon))
        + params.e_sq * (params.v0 * params.sin_center_latitude - v * sin_l) * params.cos_center_latitude
    )
    return easting, northing


def to_map_coord(latlon: LatLon, params: EllipsoidParameters) -> MapCoord:
    """Project geographic coordinates onto the tangent plane."""
    easting, northing = _easting_northing(latlon.latitude, latlon.longitude, params)
    return MapCoord(easting, -northing)


def solve_inverse(
    map_coord: MapCoord,
    params: EllipsoidParameters,
    max_iterations: int = MAX_ITERATIONS,
    tolerance: float = INSIGNIFICANT_CHANGE,
) -> InverseSolution:
    """Find the geographic coordinates of a tangent-plane point.

    Iterates at most max_iterations times and stops as soon as the larger of
    the latitude and longitude corrections drops below tolerance. When the
    limit is reached first, the last iterate is returned with
    converged=False.
    """
    target_e = map_coord.x
    target_n = -map_coord.y

    latitude = params.center_latitude
    longitude = params.center_longitude
    iterations = 0
    converged = False
    while iterations < max_iterations:
        iterations += 1
        sin_l = math.sin(latitude)
        cos_l = math.cos(latitude)
        sin_dlon = math.sin(longitude - params.center_longitude)
        cos_dlon = math.cos(longitude - params.center_longitude)

        denominator_inner = 1 - params.e_sq * sin_l * sin_l
        v = params.a / math.sqrt(denominator_inner)
        p = params.a * (1 - params.e_sq) / denominator_inner ** 1.5

        test_e, test_n = _easting_northing(latitude, longitude, params)

        j11 = -p * sin_l * sin_dlon
        j12 = v * cos_l * cos_dlon
        j21 = p * (cos_l * params.cos_center_latitude + sin_l * params.sin_center_latitude * cos_dlon)
        j22 = v * params.sin_center_latitude * cos_l * sin_dlon
        d = j11 * j22 - j12 * j21
        if d == 0:
            logger.debug("Singular Jacobian at iteration %d", iterations)
            break

        de = target_e - test_e
        dn = target_n - test_n
        d_latitude = (j22 * de - j12 * dn) / d
        d_longitude = (-j21 * de + j11 * dn) / d
        latitude += d_latitude
        longitude += d_longitude

        if max(abs(d_latitude), abs(d_longitude)) < tolerance:
            converged = True
            break

    if not converged:
        logger.warning(
            "Inverse GPS projection of (%g, %g) did not converge after %d iterations",
            map_coord.x, map_coord.y, iterations,
        )
    return InverseSolution(LatLon(latitude, longitude), iterations, converged)


def to_latlon(map_coord: MapCoord, params: EllipsoidParameters) -> LatLon:
    """Inverse projection. Returns the last iterate even without convergence."""
    return solve_inverse(map_coord, params).latlon
