"""The georeferencing of a map: map <-> projected <-> geographic coordinates.

A Georeferencing ties one map reference point to a projected reference point
(through grivation, combined scale factor and map scale) and, when a CRS is
selected, to a geographic reference point (through the CRS). Every setter is
a single transaction that leaves all fields consistent; Qt signals fire after
the transaction for each aspect that changed.

Map coordinates are millimetres with y pointing down. Angles are degrees,
except in LatLon values which are radians.
"""

import logging
import math
from contextlib import contextmanager
from typing import Callable, Iterable, Optional

from PyQt5.QtCore import QObject, pyqtSignal
from pyproj.exceptions import ProjError

from coord_transformer import ProjectedCRS
from models import (
    GeoreferencingState,
    LatLon,
    MapCoord,
    ParameterUpdate,
    ProjectedCoord,
)

logger = logging.getLogger(__name__)

DECLINATION_PRECISION = 2
SCALE_FACTOR_PRECISION = 6

LOCAL = GeoreferencingState.LOCAL
GEOSPATIAL = GeoreferencingState.GEOSPATIAL
BROKEN_GEOSPATIAL = GeoreferencingState.BROKEN_GEOSPATIAL


def round_declination(value: float) -> float:
    """Round an angle to the precision used for declination and grivation input."""
    return round(value, DECLINATION_PRECISION)


def round_scale_factor(value: float) -> float:
    return round(value, SCALE_FACTOR_PRECISION)


# Attributes copied by assign(), i.e. the complete state of a Georeferencing.
_STATE_ATTRIBUTES = (
    "_crs_factory",
    "_crs",
    "_state",
    "_error_text",
    "_scale_denominator",
    "_map_ref_point",
    "_projected_ref_point",
    "_geographic_ref_point",
    "_crs_id",
    "_crs_spec",
    "_crs_parameters",
    "_grivation",
    "_declination",
    "_combined_scale_factor",
    "_auxiliary_scale_factor",
    "_grid_scale_factor",
)


class Georeferencing(QObject):
    """Georeferencing state of a map with a Local/Geospatial/BrokenGeospatial state machine."""

    state_changed = pyqtSignal()
    transformation_changed = pyqtSignal()
    projection_changed = pyqtSignal()
    declination_changed = pyqtSignal()
    auxiliary_scale_factor_changed = pyqtSignal()

    def __init__(self, crs_factory: Optional[Callable] = None, parent: Optional[QObject] = None):
        """Create a local georeferencing at scale 1:1000.

        Args:
            crs_factory: Callable building a CRS object from a specification
                         string. Defaults to coord_transformer.ProjectedCRS.
            parent:      Optional Qt parent.
        """
        super().__init__(parent)
        self._crs_factory = crs_factory or ProjectedCRS
        self._crs = None
        self._state = LOCAL
        self._error_text = ""
        self._scale_denominator = 1000
        self._map_ref_point = MapCoord()
        self._projected_ref_point = ProjectedCoord()
        self._geographic_ref_point = None
        self._crs_id = ""
        self._crs_spec = ""
        self._crs_parameters = ()
        self._grivation = 0.0
        self._declination = None
        self._combined_scale_factor = 1.0
        self._auxiliary_scale_factor = 1.0
        self._grid_scale_factor = 1.0

    def __repr__(self):
        return (
            f"Georeferencing(state={self._state.name}, scale=1:{self._scale_denominator}, "
            f"map_ref={self._map_ref_point}, projected_ref={self._projected_ref_point}, "
            f"crs_id={self._crs_id!r}, grivation={self._grivation})"
        )

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def state(self) -> GeoreferencingState:
        return self._state

    @property
    def error_text(self) -> str:
        """Why the georeferencing is broken; empty unless BROKEN_GEOSPATIAL."""
        return self._error_text

    @property
    def scale_denominator(self) -> int:
        return self._scale_denominator

    @property
    def map_ref_point(self) -> MapCoord:
        return self._map_ref_point

    @property
    def projected_ref_point(self) -> ProjectedCoord:
        return self._projected_ref_point

    @property
    def geographic_ref_point(self) -> Optional[LatLon]:
        return self._geographic_ref_point

    @property
    def crs_id(self) -> str:
        return self._crs_id

    @property
    def crs_spec(self) -> str:
        return self._crs_spec

    @property
    def crs_parameters(self) -> tuple:
        return self._crs_parameters

    @property
    def grivation(self) -> float:
        """Rotation from grid north to map north, in degrees."""
        return self._grivation

    @property
    def declination(self) -> Optional[float]:
        """Magnetic declination at the reference point in degrees, if known."""
        return self._declination

    @property
    def combined_scale_factor(self) -> float:
        return self._combined_scale_factor

    @property
    def auxiliary_scale_factor(self) -> float:
        return self._auxiliary_scale_factor

    @property
    def grid_scale_factor(self) -> float:
        """Grid scale factor at the reference point (last known, 1.0 when local)."""
        return self._grid_scale_factor

    @property
    def convergence(self) -> float:
        """Meridian convergence at the geographic reference point, in degrees.

        Computed from the CRS on each access; 0.0 unless GEOSPATIAL.
        """
        if self._state is not GEOSPATIAL:
            return 0.0
        return self._crs.convergence(self._geographic_ref_point)

    def has_declination(self) -> bool:
        return self._declination is not None

    def has_geographic_ref_point(self) -> bool:
        return self._geographic_ref_point is not None

    def is_valid(self) -> bool:
        """False while BROKEN_GEOSPATIAL. Callers must not commit an invalid georeferencing."""
        if self._state is LOCAL or self._state is GEOSPATIAL:
            return True
        if self._state is BROKEN_GEOSPATIAL:
            return False
        raise AssertionError(f"Unhandled georeferencing state: {self._state}")

    # ------------------------------------------------------------------
    # Coordinate conversion
    # ------------------------------------------------------------------

    def _ground_scale(self) -> float:
        # millimetres on the map to metres in the grid
        return self._combined_scale_factor * self._scale_denominator / 1000.0

    def map_to_projected(self, map_coord: MapCoord) -> ProjectedCoord:
        s = self._ground_scale()
        g = math.radians(self._grivation)
        cos_g, sin_g = math.cos(g), math.sin(g)
        dx = map_coord.x - self._map_ref_point.x
        dy = map_coord.y - self._map_ref_point.y
        return ProjectedCoord(
            self._projected_ref_point.easting + s * (cos_g * dx - sin_g * dy),
            self._projected_ref_point.northing - s * (sin_g * dx + cos_g * dy),
        )

    def projected_to_map(self, projected: ProjectedCoord) -> MapCoord:
        s = self._ground_scale()
        g = math.radians(self._grivation)
        cos_g, sin_g = math.cos(g), math.sin(g)
        de = projected.easting - self._projected_ref_point.easting
        dn = projected.northing - self._projected_ref_point.northing
        return MapCoord(
            self._map_ref_point.x + (cos_g * de - sin_g * dn) / s,
            self._map_ref_point.y - (sin_g * de + cos_g * dn) / s,
        )

    def projected_to_geographic(self, projected: ProjectedCoord) -> Optional[LatLon]:
        """None unless GEOSPATIAL and the CRS can convert the point."""
        if self._state is not GEOSPATIAL:
            return None
        return self._crs.inverse(projected)

    def geographic_to_projected(self, latlon: LatLon) -> Optional[ProjectedCoord]:
        """None unless GEOSPATIAL and the CRS can convert the point."""
        if self._state is not GEOSPATIAL:
            return None
        return self._crs.forward(latlon)

    def map_to_geographic(self, map_coord: MapCoord) -> Optional[LatLon]:
        return self.projected_to_geographic(self.map_to_projected(map_coord))

    def geographic_to_map(self, latlon: LatLon) -> Optional[MapCoord]:
        projected = self.geographic_to_projected(latlon)
        if projected is None:
            return None
        return self.projected_to_map(projected)

    # ------------------------------------------------------------------
    # Transactions and change notification
    # ------------------------------------------------------------------

    def _aspects(self) -> dict:
        return {
            "state": (self._state,),
            "projection": (
                self._crs_id,
                self._crs_spec,
                self._crs_parameters,
                self._geographic_ref_point,
                self._error_text,
            ),
            "transformation": (
                self._scale_denominator,
                self._map_ref_point,
                self._projected_ref_point,
                self._grivation,
                self._combined_scale_factor,
            ),
            "declination": (self._declination,),
            "auxiliary": (self._auxiliary_scale_factor,),
        }

    @contextmanager
    def _transaction(self):
        before = self._aspects()
        yield
        after = self._aspects()
        signals = (
            ("state", self.state_changed),
            ("projection", self.projection_changed),
            ("transformation", self.transformation_changed),
            ("declination", self.declination_changed),
            ("auxiliary", self.auxiliary_scale_factor_changed),
        )
        for aspect, signal in signals:
            if before[aspect] != after[aspect]:
                signal.emit()

    def _set_state(self, state: GeoreferencingState, error_text: str = ""):
        if state is not self._state:
            logger.info("Georeferencing state %s -> %s", self._state.name, state.name)
        if error_text:
            logger.warning("Georeferencing broken: %s", error_text)
        self._state = state
        self._error_text = error_text

    def _break(self, error_text: str) -> bool:
        self._geographic_ref_point = None
        self._set_state(BROKEN_GEOSPATIAL, error_text)
        return False

    def _update_dependent_parameters(self, update: ParameterUpdate):
        """Re-derive angles and scale factors after the reference point moved (GEOSPATIAL only)."""
        latlon = self._geographic_ref_point
        self._grid_scale_factor = self._crs.grid_scale_factor(latlon)
        convergence = self._crs.convergence(latlon)
        if update is ParameterUpdate.UPDATE_GEOGRAPHIC_PARAMETER:
            self._declination = self._grivation + convergence
            self._auxiliary_scale_factor = self._combined_scale_factor / self._grid_scale_factor
        elif update is ParameterUpdate.UPDATE_GRID_PARAMETER:
            if self._declination is None:
                self._declination = self._grivation + convergence
            else:
                self._grivation = self._declination - convergence
            self._combined_scale_factor = self._auxiliary_scale_factor * self._grid_scale_factor
        else:
            raise ValueError(f"Unknown parameter update: {update!r}")

    def _update_geographic_ref_point(self, update: ParameterUpdate) -> bool:
        """Derive the geographic reference point from the projected one."""
        if self._crs is None:
            return self._break(self._error_text or "No usable CRS")
        latlon = self._crs.inverse(self._projected_ref_point)
        if latlon is None:
            return self._break(
                "Cannot convert projected reference point ({:.3f}, {:.3f}) to geographic coordinates".format(
                    self._projected_ref_point.easting, self._projected_ref_point.northing
                )
            )
        self._geographic_ref_point = latlon
        self._set_state(GEOSPATIAL)
        self._update_dependent_parameters(update)
        return True

    def _update_projected_ref_point(self, latlon: LatLon, update: ParameterUpdate) -> bool:
        """Derive the projected reference point from a geographic one."""
        if self._crs is None:
            return self._break(self._error_text or "No usable CRS")
        projected = self._crs.forward(latlon)
        if projected is None:
            return self._break(
                "Cannot convert geographic reference point ({:.7f}°, {:.7f}°) to projected coordinates".format(
                    latlon.latitude_degrees, latlon.longitude_degrees
                )
            )
        self._geographic_ref_point = latlon
        self._projected_ref_point = projected
        self._set_state(GEOSPATIAL)
        self._update_dependent_parameters(update)
        return True

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def set_local_state(self):
        """Drop the CRS. Grivation and scale factors are kept as plain numbers."""
        with self._transaction():
            self._crs = None
            self._crs_id = ""
            self._crs_spec = ""
            self._crs_parameters = ()
            self._geographic_ref_point = None
            self._declination = None
            self._grid_scale_factor = 1.0
            self._set_state(LOCAL)

    def set_projected_crs(
        self,
        crs_id: str,
        spec: str,
        parameters: Iterable[str],
        update: ParameterUpdate,
    ) -> bool:
        """Select a CRS and re-establish the reference point under it.

        With UPDATE_GRID_PARAMETER an existing geographic reference point is
        kept and the projected one recomputed; otherwise the projected point
        is kept and the geographic one recomputed. Only an empty spec selects
        the local state; a blank one is an invalid specification.

        Returns:
            True if the result is GEOSPATIAL (or LOCAL for an empty spec).
        """
        if not spec:
            self.set_local_state()
            return True

        with self._transaction():
            self._crs_id = crs_id
            self._crs_spec = spec
            self._crs_parameters = tuple(parameters)
            try:
                self._crs = self._crs_factory(spec)
            except ProjError as exc:
                self._crs = None
                return self._break(f"Invalid CRS specification '{spec}': {exc}")

            if update is ParameterUpdate.UPDATE_GRID_PARAMETER and self._geographic_ref_point is not None:
                return self._update_projected_ref_point(self._geographic_ref_point, update)
            return self._update_geographic_ref_point(update)

    def set_scale_denominator(self, value: int):
        value = int(value)
        if value <= 0:
            raise ValueError(f"Scale denominator must be positive, got {value}")
        with self._transaction():
            self._scale_denominator = value

    def set_map_ref_point(self, point: MapCoord) -> bool:
        """Move the map reference point without changing the transformation.

        The projected reference point becomes the current projection of the
        new map point; grid parameters stay fixed and the geographic side is
        re-derived.
        """
        with self._transaction():
            self._projected_ref_point = self.map_to_projected(point)
            self._map_ref_point = point
            if self._state is LOCAL:
                return True
            return self._update_geographic_ref_point(ParameterUpdate.UPDATE_GEOGRAPHIC_PARAMETER)

    def set_projected_ref_point(self, point: ProjectedCoord, update: ParameterUpdate) -> bool:
        """Set the projected reference point and derive the geographic one from it."""
        with self._transaction():
            self._projected_ref_point = point
            if self._state is LOCAL:
                return True
            return self._update_geographic_ref_point(update)

    def set_geographic_ref_point(self, latlon: LatLon, update: ParameterUpdate) -> bool:
        """Set the geographic reference point and derive the projected one from it.

        Not possible in the local state, where False is returned and nothing
        changes.
        """
        if self._state is LOCAL:
            logger.debug("Ignoring geographic reference point in local state")
            return False
        with self._transaction():
            return self._update_projected_ref_point(latlon, update)

    def set_grivation(self, value: float):
        """Set the grivation; in GEOSPATIAL state the declination follows."""
        with self._transaction():
            self._grivation = value
            if self._state is GEOSPATIAL:
                self._declination = value + self.convergence

    def set_declination(self, value: float) -> bool:
        """Set the declination; in GEOSPATIAL state the grivation follows.

        Returns False (and changes nothing) in the local state, which has no
        declination.
        """
        if self._state is LOCAL:
            logger.debug("Ignoring declination in local state")
            return False
        with self._transaction():
            self._declination = value
            if self._state is GEOSPATIAL:
                self._grivation = value - self.convergence
        return True

    def set_combined_scale_factor(self, value: float):
        if value <= 0:
            raise ValueError(f"Combined scale factor must be positive, got {value}")
        with self._transaction():
            self._combined_scale_factor = value
            self._auxiliary_scale_factor = value / self._grid_scale_factor

    def set_auxiliary_scale_factor(self, value: float):
        if value <= 0:
            raise ValueError(f"Auxiliary scale factor must be positive, got {value}")
        with self._transaction():
            self._auxiliary_scale_factor = value
            self._combined_scale_factor = value * self._grid_scale_factor

    # ------------------------------------------------------------------
    # Working copies
    # ------------------------------------------------------------------

    def copy(self) -> "Georeferencing":
        """Return an independent working copy (without Qt parent or connections)."""
        other = Georeferencing(self._crs_factory)
        other.assign(self)
        return other

    def assign(self, other: "Georeferencing"):
        """Take over the complete state of other, emitting signals for what changed."""
        with self._transaction():
            for name in _STATE_ATTRIBUTES:
                setattr(self, name, getattr(other, name))
