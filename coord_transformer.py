"""Projected CRS support using pyproj.

A ProjectedCRS converts between geographic coordinates (the configured
geographic CRS, WGS84 by default) and one projected CRS given by a user
specification (EPSG code, PROJ string, WKT, ...). It also reports the meridian
convergence and the grid scale factor at a point.

Note: always_xy=True is used for both transformers so coordinates are always
ordered (longitude, latitude) and (easting, northing), regardless of the axis
order declared by the CRS. Convergence and grid scale factor come from
pyproj's projection factors (Proj.get_factors) of the projected CRS.

Failures are reported by value: forward() and inverse() return None when the
transformation is undefined at a point. An unusable specification raises
pyproj's CRSError from the constructor.
"""

import logging
import math
from typing import Optional, Tuple

from pyproj import CRS, Proj, Transformer
from pyproj.exceptions import CRSError, ProjError

from models import LatLon, ProjectedCoord
from settings import get_settings

logger = logging.getLogger(__name__)


class ProjectedCRS:
    """Forward/inverse transformation between geographic and projected coordinates."""

    def __init__(self, spec: str, geographic_crs: Optional[str] = None):
        if not spec or not spec.strip():
            raise CRSError("Empty CRS specification")
        self.spec = spec
        geographic = geographic_crs or get_settings().geographic_crs
        try:
            self.crs = CRS.from_user_input(spec.strip())
            self.geographic_crs = CRS.from_user_input(geographic)
            self._forward = Transformer.from_crs(self.geographic_crs, self.crs, always_xy=True)
            self._inverse = Transformer.from_crs(self.crs, self.geographic_crs, always_xy=True)
        except CRSError:
            raise
        except ProjError as exc:
            raise CRSError(f"Cannot use CRS '{spec}': {exc}") from exc
        try:
            self._proj = Proj(self.crs)
        except ProjError as exc:
            logger.warning("No projection factors for CRS '%s': %s", spec, exc)
            self._proj = None

    @property
    def name(self) -> str:
        return self.crs.name or self.spec

    def _project(self, lon_deg: float, lat_deg: float) -> Optional[Tuple[float, float]]:
        try:
            x, y = self._forward.transform(lon_deg, lat_deg)
        except ProjError as exc:
            logger.debug("Forward transformation failed: %s", exc)
            return None
        if not (math.isfinite(x) and math.isfinite(y)):
            return None
        return x, y

    def forward(self, latlon: LatLon) -> Optional[ProjectedCoord]:
        """Geographic to projected coordinates, or None if undefined."""
        result = self._project(latlon.longitude_degrees, latlon.latitude_degrees)
        if result is None:
            return None
        return ProjectedCoord(*result)

    def inverse(self, projected: ProjectedCoord) -> Optional[LatLon]:
        """Projected to geographic coordinates, or None if undefined."""
        try:
            lon, lat = self._inverse.transform(projected.easting, projected.northing)
        except ProjError as exc:
            logger.debug("Inverse transformation failed: %s", exc)
            return None
        if not (math.isfinite(lon) and math.isfinite(lat)):
            return None
        return LatLon.from_degrees(lat, lon)

    def _factors(self, latlon: LatLon):
        """pyproj projection factors at latlon, or None where undefined."""
        if self._proj is None:
            return None
        try:
            factors = self._proj.get_factors(latlon.longitude_degrees, latlon.latitude_degrees)
        except ProjError as exc:
            logger.debug("Projection factors failed: %s", exc)
            return None
        if not (math.isfinite(factors.meridian_convergence) and math.isfinite(factors.meridional_scale)):
            return None
        return factors

    def convergence(self, latlon: LatLon) -> float:
        """Meridian convergence in degrees.

        This is the bearing of grid north measured clockwise from true north,
        i.e. positive east of the central meridian on the northern hemisphere.
        """
        factors = self._factors(latlon)
        if factors is None:
            logger.warning("Cannot determine convergence at %s", latlon)
            return 0.0
        return float(factors.meridian_convergence)

    def grid_scale_factor(self, latlon: LatLon) -> float:
        """Scale factor along the meridian (equal in all directions for conformal CRSs)."""
        factors = self._factors(latlon)
        if factors is None:
            logger.warning("Cannot determine grid scale factor at %s", latlon)
            return 1.0
        return float(factors.meridional_scale)
