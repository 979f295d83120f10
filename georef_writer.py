"""Build and save the persisted record of a Georeferencing.

The record is a plain dict (stored as JSON). Angles are degrees. The
geographic reference point is written for information only; it is derived
again from the CRS when the record is read.
"""

import json
import logging
from pathlib import Path
from typing import Union

from georeferencing import Georeferencing

logger = logging.getLogger(__name__)


def build_record(georef: Georeferencing) -> dict:
    """Convert a Georeferencing into its persisted record."""
    record = {
        "scaleDenominator": georef.scale_denominator,
        "mapRefPoint": {
            "x": georef.map_ref_point.x,
            "y": georef.map_ref_point.y,
        },
        "projectedCrs": None,
        "projectedRefPoint": {
            "easting": georef.projected_ref_point.easting,
            "northing": georef.projected_ref_point.northing,
        },
        "grivation": georef.grivation,
        "declination": georef.declination,
        "combinedScaleFactor": georef.combined_scale_factor,
        "auxiliaryScaleFactor": georef.auxiliary_scale_factor,
    }
    if georef.crs_spec:
        record["projectedCrs"] = {
            "id": georef.crs_id,
            "spec": georef.crs_spec,
            "parameters": list(georef.crs_parameters),
        }
    latlon = georef.geographic_ref_point
    if latlon is not None:
        record["geographicRefPoint"] = {
            "latitude": latlon.latitude_degrees,      # rad -> deg
            "longitude": latlon.longitude_degrees,
        }
    return record


def write_georeferencing(path: Union[str, Path], georef: Georeferencing) -> dict:
    """Save the georeferencing record as JSON.

    Returns:
        The record that was written.

    Raises:
        RuntimeError: if the file cannot be written.
    """
    record = build_record(georef)
    try:
        Path(path).write_text(json.dumps(record, indent=2), encoding="utf-8")
    except OSError as exc:
        raise RuntimeError(f"Writing georeferencing to {path} failed: {exc}") from exc
    logger.info("Georeferencing written to %s", path)
    return record
