"""Restore a Georeferencing from its persisted record.

The record is replayed through the public setters: first the local
transformation (scale, reference points, grivation, combined scale factor),
then the CRS with UPDATE_GEOGRAPHIC_PARAMETER, so the stored grid parameters
stay in control and the geographic ones are derived again.
"""

import json
import logging
from pathlib import Path
from typing import Callable, Optional, Union

from georeferencing import Georeferencing
from models import GeoreferencingState, MapCoord, ParameterUpdate, ProjectedCoord

logger = logging.getLogger(__name__)


def parse_record(record: dict, crs_factory: Optional[Callable] = None) -> Georeferencing:
    """Build a Georeferencing from a record made by georef_writer.build_record().

    Raises:
        RuntimeError: if the record is malformed.
    """
    georef = Georeferencing(crs_factory)
    try:
        georef.set_scale_denominator(int(record.get("scaleDenominator", 1000)))

        mp = record.get("mapRefPoint") or {}
        georef.set_map_ref_point(MapCoord(float(mp.get("x", 0.0)), float(mp.get("y", 0.0))))

        pp = record.get("projectedRefPoint") or {}
        georef.set_projected_ref_point(
            ProjectedCoord(float(pp.get("easting", 0.0)), float(pp.get("northing", 0.0))),
            ParameterUpdate.UPDATE_GEOGRAPHIC_PARAMETER,
        )
        georef.set_grivation(float(record.get("grivation", 0.0)))
        georef.set_combined_scale_factor(float(record.get("combinedScaleFactor", 1.0)))

        crs = record.get("projectedCrs")
        if crs:
            georef.set_projected_crs(
                str(crs.get("id", "")),
                str(crs["spec"]),
                [str(p) for p in crs.get("parameters", [])],
                ParameterUpdate.UPDATE_GEOGRAPHIC_PARAMETER,
            )
            declination = record.get("declination")
            if georef.state is GeoreferencingState.BROKEN_GEOSPATIAL and declination is not None:
                # Not derivable without a working CRS; keep what was stored.
                georef.set_declination(float(declination))
    except (KeyError, TypeError, ValueError) as exc:
        raise RuntimeError(f"Invalid georeferencing record: {exc}") from exc

    return georef


def read_georeferencing(path: Union[str, Path], crs_factory: Optional[Callable] = None) -> Georeferencing:
    """Load a georeferencing saved by georef_writer.write_georeferencing().

    Raises:
        RuntimeError: if the file cannot be read or is not a valid record.
    """
    try:
        record = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise RuntimeError(f"Reading georeferencing from {path} failed: {exc}") from exc
    if not isinstance(record, dict):
        raise RuntimeError(f"Reading georeferencing from {path} failed: not a record")
    georef = parse_record(record, crs_factory)
    logger.info("Georeferencing read from %s (%s)", path, georef.state.name)
    return georef
