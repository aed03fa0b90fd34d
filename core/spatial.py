"""
Spatial and geometry utilities.

Centralizes coordinate validation, great-circle distance and the GeoJSON
shapes used to hand a ride route to (and read it back from) the remote
ride authority. Internally routes are ``(lat, lon)`` pairs; GeoJSON uses
``[lon, lat]``.
"""

from __future__ import annotations

import json
import logging
import math
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)


class GeometryService:
    """Authoritative geometry operations for the tracking engine."""

    EARTH_RADIUS_M = 6371000.0

    @staticmethod
    def validate_coordinate_pair(
        coord: Sequence[Any],
    ) -> tuple[bool, list[float] | None]:
        """Validate a [lon, lat] coordinate pair."""
        if not isinstance(coord, (list, tuple)) or len(coord) < 2:
            return False, None
        try:
            lon = float(coord[0])
            lat = float(coord[1])
        except (TypeError, ValueError, IndexError):
            return False, None
        if not (-180 <= lon <= 180 and -90 <= lat <= 90):
            return False, None
        return True, [lon, lat]

    @staticmethod
    def haversine_distance(
        lon1: float,
        lat1: float,
        lon2: float,
        lat2: float,
    ) -> float:
        """Great-circle distance in meters using the Haversine formula."""
        phi1 = math.radians(lat1)
        phi2 = math.radians(lat2)
        dphi = math.radians(lat2 - lat1)
        dlmb = math.radians(lon2 - lon1)
        a = (
            math.sin(dphi / 2) ** 2
            + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
        )
        return 2 * GeometryService.EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))

    @staticmethod
    def parse_geojson(value: Any) -> dict[str, Any] | None:
        """Parse GeoJSON geometry from a dict or JSON string."""
        if value is None:
            return None
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return None
        if isinstance(value, dict):
            if value.get("type") == "Feature":
                geometry = value.get("geometry")
                return geometry if isinstance(geometry, dict) else None
            if "type" in value:
                return value
        return None

    @staticmethod
    def feature_from_geometry(
        geometry: dict[str, Any] | None,
        properties: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build a GeoJSON Feature from geometry and properties."""
        return {
            "type": "Feature",
            "geometry": geometry,
            "properties": properties or {},
        }


def route_to_feature(path: Iterable[tuple[float, float]]) -> dict[str, Any]:
    """
    Convert a ``(lat, lon)`` route into a GeoJSON LineString Feature.

    A LineString is produced even for a single point, since the remote side
    stores ``route_data.geometry.coordinates`` as a line from the first fix.
    """
    coordinates = [[lon, lat] for lat, lon in path]
    return GeometryService.feature_from_geometry(
        {"type": "LineString", "coordinates": coordinates},
    )


def route_from_geojson(value: Any) -> list[tuple[float, float]]:
    """
    Read a ``(lat, lon)`` route back out of a GeoJSON Feature/geometry.

    Invalid pairs are skipped rather than failing the whole route.
    """
    geometry = GeometryService.parse_geojson(value)
    if not geometry:
        return []

    raw = geometry.get("coordinates")
    if geometry.get("type") == "Point":
        raw = [raw]
    if not isinstance(raw, list):
        return []

    path: list[tuple[float, float]] = []
    skipped = 0
    for coord in raw:
        is_valid, pair = GeometryService.validate_coordinate_pair(coord)
        if not is_valid or pair is None:
            skipped += 1
            continue
        path.append((pair[1], pair[0]))

    if skipped:
        logger.warning("Skipped %d invalid coordinates while reading route", skipped)
    return path
