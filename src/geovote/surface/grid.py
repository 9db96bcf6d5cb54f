"""
Grid planning and row scanning shared by the surface estimators.

A grid is planned in projected meters: its extent is either the boundary's
bounding box or the padded extent of the points, its dimensions follow from
the cell size, and an oversized grid is coarsened under a fixed cell ceiling.
Rows are then scanned north to south; cells whose centres fall outside the
boundary are masked and the rest are handed to an estimator-specific
evaluation function.
"""

import dataclasses
import logging
import math
from typing import Callable, Optional, Sequence, Tuple

import numpy as np

from geovote.surface.boundary import boundary_centroid, contains
from geovote.surface.constants import MAX_COARSENING_PASSES, MAX_GRID_CELLS
from geovote.surface.models import (
    Boundary,
    GeoBounds,
    Grid,
    GridCeilingError,
    WeightedPoint,
)
from geovote.surface.projection import LocalProjection

logger = logging.getLogger(__name__)

# (x, y, lat, lng) arrays of unmasked cell centres -> cell values
CellEvaluator = Callable[[np.ndarray, np.ndarray, np.ndarray, np.ndarray], np.ndarray]
ProgressCallback = Callable[[int, int], None]

Extent = Tuple[float, float, float, float]  # min_x, min_y, max_x, max_y


@dataclasses.dataclass(frozen=True)
class GridSpec:
    projection: LocalProjection
    min_x: float
    min_y: float
    max_x: float
    max_y: float
    cell_size: float
    width: int
    height: int

    @property
    def cell_count(self) -> int:
        return self.width * self.height

    def column_centers(self) -> np.ndarray:
        return self.min_x + np.arange(self.width) * self.cell_size + self.cell_size / 2

    def row_center(self, row: int) -> float:
        return self.max_y - row * self.cell_size - self.cell_size / 2

    def geo_bounds(self) -> GeoBounds:
        """Geographic rectangle covered by the grid's cells."""
        south, west = self.projection.to_geo(
            self.min_x, self.max_y - self.height * self.cell_size
        )
        north, east = self.projection.to_geo(
            self.min_x + self.width * self.cell_size, self.max_y
        )
        return GeoBounds(south=south, west=west, north=north, east=east)


def choose_projection(
    points: Sequence[WeightedPoint],
    boundary: Optional[Boundary],
    reference: Optional[Tuple[float, float]] = None,
) -> LocalProjection:
    """
    Anchors the local projection at an explicit (lat, lng) reference when one
    is given, else at the boundary's centroid, else at the points' centroid.
    """
    if reference is not None:
        return LocalProjection(float(reference[0]), float(reference[1]))
    if boundary is not None:
        return LocalProjection(*boundary_centroid(boundary))
    return LocalProjection.for_points(points)


def grid_extent(
    points: Sequence[WeightedPoint],
    boundary: Optional[Boundary],
    padding: float,
    projection: LocalProjection,
) -> Extent:
    """
    Returns the planar extent to rasterize. A boundary's bounding box is used
    as is; the points' extent is grown by ``padding`` meters on every side.
    """
    if boundary is not None:
        bbox = boundary.bbox
        min_x, min_y = projection.to_meters(bbox.min_lat, bbox.min_lng)
        max_x, max_y = projection.to_meters(bbox.max_lat, bbox.max_lng)
        return min_x, min_y, max_x, max_y

    lats = np.fromiter((p.lat for p in points), dtype=np.float64)
    lngs = np.fromiter((p.lng for p in points), dtype=np.float64)
    xs, ys = projection.to_meters(lats, lngs)
    return (
        float(xs.min()) - padding,
        float(ys.min()) - padding,
        float(xs.max()) + padding,
        float(ys.max()) + padding,
    )


def dimensions(extent: Extent, cell_size: float) -> Tuple[int, int]:
    min_x, min_y, max_x, max_y = extent
    width = max(0, math.ceil((max_x - min_x) / cell_size))
    height = max(0, math.ceil((max_y - min_y) / cell_size))
    return width, height


def _fitting_cell_size(extent: Extent, max_cells: int) -> float:
    """
    Smallest cell size c with (W/c + 1) * (H/c + 1) <= max_cells, which bounds
    the rounded-up cell count ceil(W/c) * ceil(H/c) by the ceiling.

    A single-cell ceiling has no such c; one cell spanning the longer side of
    the extent is used instead.
    """
    min_x, min_y, max_x, max_y = extent
    w, h = max_x - min_x, max_y - min_y
    if max_cells <= 1:
        return max(w, h)

    a, b = w * h, w + h
    u = (-b + math.sqrt(b * b + 4 * a * (max_cells - 1))) / (2 * a)
    if u <= 0:
        return max(w, h)
    return 1 / u


def plan_grid(
    projection: LocalProjection,
    extent: Extent,
    cell_size: float,
    max_cells: int = MAX_GRID_CELLS,
) -> GridSpec:
    """
    Size a grid over ``extent``, coarsening the cell size when the cell count
    would exceed ``max_cells``.

    The first pass scales the cell size by the square root of the overflow
    ratio. Rounding partial cells up can leave that grid a few cells over the
    ceiling, in which case the second pass uses the cell size that bounds the
    rounded-up count. The loop allows at most MAX_COARSENING_PASSES passes.

    Raises:
        GridCeilingError: If the grid is still too large after coarsening
    """
    for attempt in range(MAX_COARSENING_PASSES + 1):
        width, height = dimensions(extent, cell_size)
        if width * height <= max_cells:
            return GridSpec(projection, *extent, cell_size, width, height)
        if attempt == MAX_COARSENING_PASSES:
            break

        if attempt == 0:
            adjusted = cell_size * math.sqrt((width * height) / max_cells)
        else:
            adjusted = max(cell_size, _fitting_cell_size(extent, max_cells))
        logger.warning(
            f"Grid of {width}x{height} cells exceeds {max_cells}, "
            f"adjusting cell size from {cell_size:.2f} to {adjusted:.2f} m"
        )
        cell_size = adjusted

    raise GridCeilingError(
        f"Grid of {width}x{height} cells still exceeds the ceiling of {max_cells} "
        f"after {MAX_COARSENING_PASSES} coarsening passes"
    )


def rasterize(
    spec: GridSpec,
    boundary: Optional[Boundary],
    evaluate: CellEvaluator,
    progress: Optional[ProgressCallback] = None,
) -> Grid:
    """
    Scan the grid row by row (north first), mask cells outside the boundary
    and fill the others with ``evaluate``.

    Returns the empty grid when no cell is left unmasked.
    """
    if spec.cell_count == 0:
        logger.warning("Grid has no cells")
        return Grid.empty(spec.cell_size)

    logger.info(
        f"Grid: {spec.width}x{spec.height} cells, "
        f"boundary: {'enabled' if boundary is not None else 'disabled'}"
    )

    values = np.full(spec.cell_count, np.nan, dtype=np.float64)
    xs = spec.column_centers()
    min_value = math.inf
    max_value = -math.inf
    valid_cells = 0

    for row in range(spec.height):
        y = spec.row_center(row)
        ys = np.full(spec.width, y)
        lats, lngs = spec.projection.to_geo(xs, ys)
        inside = contains(lats, lngs, boundary)

        if inside.any():
            row_values = evaluate(xs[inside], ys[inside], lats[inside], lngs[inside])
            start = row * spec.width
            values[start:start + spec.width][inside] = row_values
            min_value = min(min_value, float(row_values.min()))
            max_value = max(max_value, float(row_values.max()))
            valid_cells += row_values.size

        if progress is not None:
            progress(row + 1, spec.height)

    if valid_cells == 0:
        logger.warning("No valid cells within boundary")
        return Grid.empty(spec.cell_size)

    logger.info(
        f"Calculated grid: {spec.width}x{spec.height} cells, "
        f"valid: {valid_cells}, clipped: {spec.cell_count - valid_cells}, "
        f"value range: {min_value:.6f} - {max_value:.6f}"
    )

    return Grid(
        width=spec.width,
        height=spec.height,
        cell_size=spec.cell_size,
        values=values,
        min=min_value,
        max=max_value,
        bounds=spec.geo_bounds(),
    )
