"""
Inverse distance weighted interpolation of vote scores.

Unlike the kernel density surface, IDW yields a score field bounded by the
lowest and highest vote. Distances are measured directly in degrees of
latitude and longitude, not in projected meters, which stretches the field
east-west away from the equator; surfaces produced by the mapping front end
depend on that shape.
"""

import logging
import math
from typing import Iterable, Optional, Tuple

import numpy as np

from geovote.surface.boundary import coerce_boundary
from geovote.surface.constants import (
    DEFAULT_IDW_POWER,
    IDW_EPSILON,
    MAX_GRID_CELLS,
    MAX_PAIRS_PER_CHUNK,
)
from geovote.surface.grid import (
    ProgressCallback,
    choose_projection,
    grid_extent,
    plan_grid,
    rasterize,
)
from geovote.surface.models import Grid, coerce_points, require_positive

logger = logging.getLogger(__name__)


def idw(lat: float, lng: float, points, power: float = DEFAULT_IDW_POWER) -> float:
    """
    Interpolate a score at (lat, lng).

    Points are filtered by coerce_points, as in idw_grid: records with an
    undefined value or a negative score are dropped. Returns the weight of the
    first point closer than IDW_EPSILON degrees, if any, and 0.0 when there
    are no points.
    """
    numerator = 0.0
    denominator = 0.0

    for point in coerce_points(points):
        distance = math.sqrt((lat - point.lat) ** 2 + (lng - point.lng) ** 2)
        if distance < IDW_EPSILON:
            return point.weight

        weight = 1 / distance ** power
        numerator += weight * point.weight
        denominator += weight

    return numerator / denominator if denominator > 0 else 0.0


def _idw_evaluator(plat, plng, scores, power):
    step = max(1, MAX_PAIRS_PER_CHUNK // plat.size)

    def evaluate(xs, ys, lats, lngs):
        result = np.empty(lats.size, dtype=np.float64)
        for start in range(0, lats.size, step):
            dlat = lats[start:start + step, None] - plat
            dlng = lngs[start:start + step, None] - plng
            distance = np.sqrt(dlat * dlat + dlng * dlng)

            near = distance < IDW_EPSILON
            with np.errstate(divide="ignore", invalid="ignore"):
                weights = 1 / distance ** power
                block = (weights * scores).sum(axis=1) / weights.sum(axis=1)

            coincident = near.any(axis=1)
            block[coincident] = scores[near[coincident].argmax(axis=1)]
            result[start:start + step] = block
        return result

    return evaluate


def idw_grid(
    points: Iterable,
    cell_size: float,
    boundary=None,
    *,
    power: float = DEFAULT_IDW_POWER,
    padding: float = 0.0,
    max_cells: int = MAX_GRID_CELLS,
    reference: Optional[Tuple[float, float]] = None,
    progress: Optional[ProgressCallback] = None,
) -> Grid:
    """
    Rasterize an IDW score surface with the same grid planning and boundary
    masking as the density engine.

    Args:
        points: WeightedPoint instances or {lat, lng, weight} mappings
        cell_size: Grid cell edge length in meters
        boundary: Parsed Boundary, raw GeoJSON, or None
        power: Distance exponent
        padding: Meters added around the points' extent when no boundary is
            given
        max_cells: Cell-count ceiling
        reference: Optional (lat, lng) anchor for the local projection
        progress: Called with (rows_done, total_rows) after each row
    """
    cell_size = require_positive("cell size", cell_size)

    valid_points = coerce_points(points)
    if not valid_points:
        logger.warning("No valid points provided for interpolation")
        return Grid.empty()

    parsed_boundary = coerce_boundary(boundary)
    projection = choose_projection(valid_points, parsed_boundary, reference)
    extent = grid_extent(valid_points, parsed_boundary, padding, projection)
    spec = plan_grid(projection, extent, cell_size, max_cells)

    plat = np.fromiter((p.lat for p in valid_points), dtype=np.float64)
    plng = np.fromiter((p.lng for p in valid_points), dtype=np.float64)
    scores = np.fromiter((p.weight for p in valid_points), dtype=np.float64)

    logger.debug(f"Interpolating {len(valid_points)} points with power {power}")
    return rasterize(spec, parsed_boundary, _idw_evaluator(plat, plng, scores, power), progress)
