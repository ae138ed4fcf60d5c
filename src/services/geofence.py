"""Geofence validator - is a coordinate pair inside Guinea."""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Union
from shapely.geometry import Point, shape
from shapely.geometry.base import BaseGeometry
from shapely.prepared import PreparedGeometry, prep

from src.utils.config import AppConfig
from src.utils.errors import GeofenceDataError
from src.utils.logging import get_structured_logger
from src.utils.parsing import is_coordinate_pair

logger = get_structured_logger(__name__)


@lru_cache(maxsize=4)
def load_reference_geometry(path: Union[str, Path]) -> PreparedGeometry:
    """
    Load the first feature of a GeoJSON FeatureCollection as a prepared geometry.

    Cached per path for the life of the process. Any failure is an
    infrastructure error, never an "outside" answer.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            collection = json.load(fh)
        geometry: BaseGeometry = shape(collection["features"][0]["geometry"])
    except Exception as e:
        logger.error("Failed to load geofence dataset", path=str(path), error=str(e), exc_info=True)
        raise GeofenceDataError(f"Failed to load geofence dataset {path}: {e}")

    if geometry.is_empty or geometry.geom_type not in ("Polygon", "MultiPolygon"):
        raise GeofenceDataError(f"Geofence dataset {path} holds no polygon")

    logger.info("Geofence dataset loaded", path=str(path), geometry_type=geometry.geom_type)
    return prep(geometry)


def inside_guinea(coordinates: Any, geojson_path: Optional[Union[str, Path]] = None) -> bool:
    """
    True when ``[lng, lat]`` lies inside (or on the border of) the reference area.

    Malformed input is simply outside; the dataset is not even loaded.
    """
    if not is_coordinate_pair(coordinates):
        return False

    area = load_reference_geometry(str(geojson_path or AppConfig.GEOFENCE_PATH))
    longitude, latitude = coordinates
    return area.covers(Point(longitude, latitude))
