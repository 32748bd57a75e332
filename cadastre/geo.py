"""Projected-coordinate handling for pillar lookups.

Pillar coordinates are recorded as easting/northing strings in the
configured projected CRS (UTM zone 32N on WGS 84 unless overridden) and
converted to WGS 84 latitude/longitude for distance ranking.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from pyproj import Transformer

EARTH_RADIUS_KM = 6371.0
DEFAULT_SOURCE_CRS = "EPSG:32632"
DEFAULT_NEARBY_LIMIT = 10

T = TypeVar("T")

# Cache for pyproj transformers (source CRS -> transformer)
_transformer_cache: dict[str, Transformer] = {}


@dataclass(frozen=True)
class ProjectedPoint:
    easting: float
    northing: float


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


def _get_transformer(source_crs: str) -> Transformer:
    if source_crs not in _transformer_cache:
        _transformer_cache[source_crs] = Transformer.from_crs(source_crs, "EPSG:4326", always_xy=True)
    return _transformer_cache[source_crs]


def project(easting: float, northing: float, *, source_crs: str = DEFAULT_SOURCE_CRS) -> tuple[float, float]:
    """Convert a projected easting/northing to ``(latitude, longitude)`` in degrees."""
    lon, lat = _get_transformer(source_crs).transform(easting, northing)
    return lat, lon


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_point(raw: Any) -> ProjectedPoint | None:
    """Return the projected point held in ``raw``, or None when it should be skipped."""
    if not isinstance(raw, Mapping):
        return None
    easting = _as_float(raw.get("easting"))
    northing = _as_float(raw.get("northing"))
    if easting is None or northing is None:
        return None
    return ProjectedPoint(easting=easting, northing=northing)


def to_geographic(point: ProjectedPoint, *, source_crs: str = DEFAULT_SOURCE_CRS) -> GeoPoint | None:
    lat, lon = project(point.easting, point.northing, source_crs=source_crs)
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    return GeoPoint(latitude=lat, longitude=lon)


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def nearby(
    center: GeoPoint,
    candidates: Iterable[tuple[T, Any]],
    radius_km: float,
    limit: int = DEFAULT_NEARBY_LIMIT,
    *,
    source_crs: str = DEFAULT_SOURCE_CRS,
) -> list[tuple[T, float]]:
    """Rank ``(item, raw_coordinates)`` pairs by distance from ``center``.

    Candidates whose coordinates do not parse or project are skipped. Equal
    distances keep their input order.
    """
    if radius_km < 0:
        raise ValueError("radius_km must be non-negative")
    if limit < 1:
        raise ValueError("limit must be at least 1")
    ranked: list[tuple[T, float]] = []
    for item, raw in candidates:
        point = parse_point(raw)
        if point is None:
            continue
        geo = to_geographic(point, source_crs=source_crs)
        if geo is None:
            continue
        dist = distance_km(center, geo)
        if dist <= radius_km:
            ranked.append((item, dist))
    ranked.sort(key=lambda x: x[1])
    return ranked[:limit]
