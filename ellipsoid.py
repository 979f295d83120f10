"""Reference ellipsoid and tangent point for the legacy GPS projection.

All derived constants are computed when the parameters are created. The
tangent point is changed with with_center(), which returns a new object, so
the derived values always match the tangent point they were computed for.
"""

import math
from dataclasses import dataclass, field, replace

WGS84_SEMI_MAJOR_AXIS = 6378137.0
WGS84_SEMI_MINOR_AXIS = 6356752.3142


@dataclass(frozen=True)
class EllipsoidParameters:
    """Ellipsoid semi-axes (metres) and tangent point (radians)."""
    a: float = WGS84_SEMI_MAJOR_AXIS
    b: float = WGS84_SEMI_MINOR_AXIS
    center_latitude: float = 0.0
    center_longitude: float = 0.0

    e_sq: float = field(init=False, repr=False)
    sin_center_latitude: float = field(init=False, repr=False)
    cos_center_latitude: float = field(init=False, repr=False)
    v0: float = field(init=False, repr=False)

    def __post_init__(self):
        if not (self.b > 0 and self.a >= self.b):
            raise ValueError(f"Invalid ellipsoid axes: a={self.a}, b={self.b}")
        e_sq = (self.a * self.a - self.b * self.b) / (self.a * self.a)
        sin_c = math.sin(self.center_latitude)
        object.__setattr__(self, "e_sq", e_sq)
        object.__setattr__(self, "sin_center_latitude", sin_c)
        object.__setattr__(self, "cos_center_latitude", math.cos(self.center_latitude))
        object.__setattr__(self, "v0", self.a / math.sqrt(1 - e_sq * sin_c * sin_c))

    def with_center(self, center_latitude: float, center_longitude: float) -> "EllipsoidParameters":
        """Return parameters for the same ellipsoid with another tangent point."""
        return replace(self, center_latitude=center_latitude, center_longitude=center_longitude)

    def prime_vertical_radius(self, latitude: float) -> float:
        """Radius of curvature in the prime vertical, v = a / sqrt(1 - e² sin² lat)."""
        sin_l = math.sin(latitude)
        return self.a / math.sqrt(1 - self.e_sq * sin_l * sin_l)

    def meridian_radius(self, latitude: float) -> float:
        """Radius of curvature in the meridian, p = a(1 - e²) / (1 - e² sin² lat)^1.5."""
        sin_l = math.sin(latitude)
        return self.a * (1 - self.e_sq) / (1 - self.e_sq * sin_l * sin_l) ** 1.5


WGS84 = EllipsoidParameters()
