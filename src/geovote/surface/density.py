"""
Weighted kernel density estimation over a study area.

Each vote spreads its weight over the surrounding cells through a Gaussian
kernel whose bandwidth is given in meters. The density of a cell is

    sum_i(weight_i * K(d_i / bandwidth)) / bandwidth**2

where d_i is the planar distance from the cell centre to vote i. Dividing by
the squared bandwidth keeps surfaces computed with different bandwidths
comparable.
"""

import logging
import math
from typing import Iterable, Optional, Tuple

import numpy as np
from scipy.spatial import cKDTree

from geovote.surface.boundary import coerce_boundary
from geovote.surface.constants import (
    BANDWIDTH_PADDING_FACTOR,
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

GAUSSIAN_NORMALIZER = 1 / math.sqrt(2 * math.pi)


def gaussian_kernel(distance, bandwidth):
    """
    Standard Gaussian kernel K(u) = (1 / sqrt(2 pi)) * exp(-u**2 / 2) evaluated
    at u = distance / bandwidth. Accepts scalars or numpy arrays.
    """
    u = distance / bandwidth
    return GAUSSIAN_NORMALIZER * np.exp(-0.5 * u * u)


def _exact_evaluator(px, py, weights, bandwidth):
    area = bandwidth * bandwidth
    step = max(1, MAX_PAIRS_PER_CHUNK // px.size)

    def evaluate(xs, ys, lats, lngs):
        density = np.empty(xs.size, dtype=np.float64)
        for start in range(0, xs.size, step):
            dx = xs[start:start + step, None] - px
            dy = ys[start:start + step, None] - py
            distance = np.sqrt(dx * dx + dy * dy)
            density[start:start + step] = (
                gaussian_kernel(distance, bandwidth) * weights
            ).sum(axis=1)
        return density / area

    return evaluate


def _truncated_evaluator(px, py, weights, bandwidth, cutoff):
    """
    Sums only the votes within ``cutoff`` bandwidths of each cell, found with a
    KD-tree. Every skipped term is below weight * K(cutoff) / bandwidth**2.
    """
    area = bandwidth * bandwidth
    tree = cKDTree(np.column_stack((px, py)))
    radius = cutoff * bandwidth

    def evaluate(xs, ys, lats, lngs):
        cells = cKDTree(np.column_stack((xs, ys)))
        pairs = cells.sparse_distance_matrix(tree, radius, output_type="ndarray")
        contributions = gaussian_kernel(pairs["v"], bandwidth) * weights[pairs["j"]]
        return np.bincount(pairs["i"], weights=contributions, minlength=xs.size) / area

    return evaluate


def weighted_kde(
    points: Iterable,
    bandwidth: float,
    cell_size: float,
    boundary=None,
    *,
    max_cells: int = MAX_GRID_CELLS,
    reference: Optional[Tuple[float, float]] = None,
    cutoff: Optional[float] = None,
    progress: Optional[ProgressCallback] = None,
) -> Grid:
    """
    Rasterize a weighted kernel density surface.

    Args:
        points: WeightedPoint instances or {lat, lng, weight} mappings
        bandwidth: Gaussian kernel bandwidth in meters
        cell_size: Requested grid cell edge length in meters; coarsened when
            the grid would exceed ``max_cells``
        boundary: Parsed Boundary, raw GeoJSON, or None for an unrestricted
            surface. GeoJSON that cannot be parsed disables clipping.
        max_cells: Cell-count ceiling
        reference: Optional (lat, lng) anchor for the local projection
        cutoff: When set, ignore votes further than ``cutoff`` bandwidths from
            a cell. None sums every vote for every cell.
        progress: Called with (rows_done, total_rows) after each row

    Returns:
        The density Grid, or the empty grid when there is nothing to display.

    Raises:
        PreconditionError: If bandwidth or cell size is not positive, or a
            point record is malformed
    """
    bandwidth = require_positive("bandwidth", bandwidth)
    cell_size = require_positive("cell size", cell_size)
    if cutoff is not None:
        cutoff = require_positive("cutoff", cutoff)

    valid_points = coerce_points(points)
    if not valid_points:
        logger.warning("No valid points provided for density estimation")
        return Grid.empty()

    if all(p.weight == 0 for p in valid_points):
        logger.warning("All point weights are zero, nothing to estimate")
        return Grid.empty()

    parsed_boundary = coerce_boundary(boundary)
    projection = choose_projection(valid_points, parsed_boundary, reference)

    padding = 0 if parsed_boundary else bandwidth * BANDWIDTH_PADDING_FACTOR
    extent = grid_extent(valid_points, parsed_boundary, padding, projection)
    spec = plan_grid(projection, extent, cell_size, max_cells)

    lats = np.fromiter((p.lat for p in valid_points), dtype=np.float64)
    lngs = np.fromiter((p.lng for p in valid_points), dtype=np.float64)
    weights = np.fromiter((p.weight for p in valid_points), dtype=np.float64)
    px, py = projection.to_meters(lats, lngs)

    if cutoff is None:
        evaluate = _exact_evaluator(px, py, weights, bandwidth)
    else:
        evaluate = _truncated_evaluator(px, py, weights, bandwidth, cutoff)

    logger.debug(
        f"Estimating density from {len(valid_points)} points, "
        f"bandwidth {bandwidth} m, cell size {spec.cell_size:.2f} m"
    )
    return rasterize(spec, parsed_boundary, evaluate, progress)
