"""
Study-area boundary parsing and point-in-polygon tests.

Boundaries arrive as GeoJSON-style mappings: a Polygon, a MultiPolygon, a
Feature wrapping one of those, or a FeatureCollection (only its first feature
is used). Every ring of every polygon is flattened, in document order, into a
single sequence of rings. A point is inside the boundary when the ray-casting
test places it inside at least one ring; rings are independent inclusion
regions, so interior rings do not punch holes.
"""

import logging
from collections.abc import Mapping, Sequence
from functools import lru_cache
from typing import List, Optional, Tuple

import numpy as np
import pyproj
from shapely.geometry import MultiPolygon, Polygon

from geovote.surface.constants import (
    HORIZONTAL_EDGE_EPSILON,
    MAX_PAIRS_PER_CHUNK,
    WEB_MERCATOR,
    WGS84,
)
from geovote.surface.models import Boundary, BoundingBox

logger = logging.getLogger(__name__)


@lru_cache(maxsize=4)
def get_transformer(source_crs, target_crs=WGS84):
    """
    Get a cached transformer between two coordinate reference systems.

    Transformers are immutable, so sharing them between calls is safe.
    """
    return pyproj.Transformer.from_crs(source_crs, target_crs, always_xy=True)


def _is_web_mercator(geojson) -> bool:
    crs = geojson.get("crs")
    if not isinstance(crs, Mapping):
        return False
    name = str((crs.get("properties") or {}).get("name", ""))
    return "3857" in name


def _reproject_rings(rings, transformer):
    reprojected = []
    for ring in rings:
        xs, ys = transformer.transform(
            np.asarray([c[0] for c in ring], dtype=np.float64),
            np.asarray([c[1] for c in ring], dtype=np.float64),
        )
        reprojected.append([[float(x), float(y)] for x, y in zip(xs, ys)])
    return reprojected


def reproject_geometry(geometry, transformer):
    """Reproject the coordinates of a Polygon or MultiPolygon mapping."""
    if not isinstance(geometry, Mapping):
        return geometry

    geometry_type = geometry.get("type")
    coordinates = geometry.get("coordinates")
    if geometry_type == "Polygon":
        coordinates = _reproject_rings(coordinates, transformer)
    elif geometry_type == "MultiPolygon":
        coordinates = [_reproject_rings(p, transformer) for p in coordinates]
    else:
        return geometry

    return {**geometry, "coordinates": coordinates}


def to_wgs84(geojson):
    """
    Returns the GeoJSON object with its coordinates in longitude/latitude.

    Boundary files exported from web mapping tools often declare a Web
    Mercator (EPSG:3857) ``crs`` member; those are reprojected. Anything else
    is assumed to already be in WGS84 and is returned unchanged.

    Raises:
        TypeError, ValueError, IndexError, KeyError: If the coordinates of a
            Web Mercator geometry are missing or not numeric
    """
    if not isinstance(geojson, Mapping) or not _is_web_mercator(geojson):
        return geojson

    transformer = get_transformer(WEB_MERCATOR)
    crs = {"type": "name", "properties": {"name": "urn:ogc:def:crs:EPSG::4326"}}

    if geojson.get("type") == "FeatureCollection":
        features = [
            {**f, "geometry": reproject_geometry(f.get("geometry"), transformer)}
            for f in geojson.get("features") or []
            if isinstance(f, Mapping)
        ]
        return {**geojson, "features": features, "crs": crs}

    if geojson.get("type") == "Feature":
        geometry = reproject_geometry(geojson.get("geometry"), transformer)
        return {**geojson, "geometry": geometry, "crs": crs}

    return {**reproject_geometry(geojson, transformer), "crs": crs}


def _parse_ring(ring) -> Optional[Tuple[Tuple[float, float], ...]]:
    if not isinstance(ring, Sequence) or isinstance(ring, str):
        return None
    try:
        vertices = tuple((float(v[0]), float(v[1])) for v in ring)
    except (TypeError, ValueError, IndexError):
        return None
    if len(set(vertices)) < 3:
        return None
    return vertices


def _polygon_rings(geometry) -> List:
    geometry_type = geometry.get("type")
    coordinates = geometry.get("coordinates")
    if not isinstance(coordinates, Sequence) or len(coordinates) == 0:
        return []

    if geometry_type == "Polygon":
        return list(coordinates)
    if geometry_type == "MultiPolygon":
        return [
            ring
            for polygon in coordinates
            if isinstance(polygon, Sequence)
            for ring in polygon
        ]
    return []


def bounding_box(rings) -> BoundingBox:
    lngs = [lng for ring in rings for lng, _ in ring]
    lats = [lat for ring in rings for _, lat in ring]
    return BoundingBox(min(lngs), max(lngs), min(lats), max(lats))


def parse_boundary(geometry) -> Optional[Boundary]:
    """
    Parse a GeoJSON boundary into a Boundary.

    Args:
        geometry: A Polygon, MultiPolygon, Feature or FeatureCollection mapping

    Returns:
        The parsed Boundary, or None if no usable ring was found. Malformed
        input never raises.
    """
    if not isinstance(geometry, Mapping):
        return None

    try:
        geometry = to_wgs84(geometry)
    except (TypeError, ValueError, IndexError, KeyError):
        return None
    geometry_type = geometry.get("type")

    if geometry_type == "FeatureCollection":
        features = geometry.get("features")
        if not isinstance(features, Sequence) or len(features) == 0:
            return None
        return parse_boundary(features[0])

    if geometry_type == "Feature":
        return parse_boundary(geometry.get("geometry"))

    rings = [r for r in map(_parse_ring, _polygon_rings(geometry)) if r is not None]
    if not rings:
        return None

    return Boundary(rings=tuple(rings), bbox=bounding_box(rings))


def coerce_boundary(boundary) -> Optional[Boundary]:
    """
    Accepts a parsed Boundary or raw GeoJSON. GeoJSON that cannot be parsed is
    reported and treated as no boundary, leaving the surface unrestricted.
    """
    if boundary is None or isinstance(boundary, Boundary):
        return boundary

    parsed = parse_boundary(boundary)
    if parsed is None:
        logger.warning("Could not parse boundary, clipping disabled")
    return parsed


def _ring_contains(lat: float, lng: float, ring) -> bool:
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i]
        xj, yj = ring[j]
        j = i

        if abs(yj - yi) < HORIZONTAL_EDGE_EPSILON:
            continue

        if ((yi > lat) != (yj > lat)) and (lng < (xj - xi) * (lat - yi) / (yj - yi) + xi):
            inside = not inside

    return inside


def is_inside(lat: float, lng: float, boundary: Optional[Boundary]) -> bool:
    """
    Ray-casting point-in-polygon test.

    A missing boundary places every point inside. Points outside the cached
    bounding box are rejected without visiting any ring.
    """
    if boundary is None:
        return True

    if not boundary.bbox.contains(lat, lng):
        return False

    return any(_ring_contains(lat, lng, ring) for ring in boundary.rings)


def _ring_edges(ring):
    vertices = np.asarray(ring, dtype=np.float64)
    xi, yi = vertices[:, 0], vertices[:, 1]
    xj, yj = np.roll(xi, 1), np.roll(yi, 1)
    keep = np.abs(yj - yi) >= HORIZONTAL_EDGE_EPSILON
    return xi[keep], yi[keep], xj[keep], yj[keep]


def contains(lats, lngs, boundary: Optional[Boundary]) -> np.ndarray:
    """
    Vectorised is_inside over arrays of latitudes and longitudes.

    Each edge test performs the same floating point operations as is_inside,
    so both functions agree point for point.
    """
    lats = np.asarray(lats, dtype=np.float64)
    lngs = np.asarray(lngs, dtype=np.float64)

    if boundary is None:
        return np.ones(lats.shape, dtype=bool)

    bbox = boundary.bbox
    inside = np.zeros(lats.shape, dtype=bool)
    candidates = np.flatnonzero(
        (lngs >= bbox.min_lng) & (lngs <= bbox.max_lng)
        & (lats >= bbox.min_lat) & (lats <= bbox.max_lat)
    )
    if candidates.size == 0:
        return inside

    for ring in boundary.rings:
        xi, yi, xj, yj = _ring_edges(ring)
        if xi.size == 0:
            continue

        pending = candidates[~inside[candidates]]
        step = max(1, MAX_PAIRS_PER_CHUNK // xi.size)
        for start in range(0, pending.size, step):
            idx = pending[start:start + step]
            lat = lats[idx][:, None]
            lng = lngs[idx][:, None]
            crosses = ((yi > lat) != (yj > lat)) & (
                lng < (xj - xi) * (lat - yi) / (yj - yi) + xi
            )
            inside[idx] = np.count_nonzero(crosses, axis=1) % 2 == 1

    return inside


def boundary_centroid(boundary: Boundary) -> Tuple[float, float]:
    """
    Returns the (lat, lng) centroid of the area enclosed by the boundary rings.

    Falls back to the centre of the bounding box when the rings enclose no
    area.
    """
    geometry = MultiPolygon([Polygon(ring) for ring in boundary.rings])
    centroid = geometry.centroid
    if centroid.is_empty or geometry.area == 0:
        bbox = boundary.bbox
        return (bbox.min_lat + bbox.max_lat) / 2, (bbox.min_lng + bbox.max_lng) / 2
    return centroid.y, centroid.x
