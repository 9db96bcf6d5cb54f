"""
Data models for the surface package.

This module contains the dataclasses passed between the projection, boundary
and estimator modules, along with the exceptions they raise.
"""

import dataclasses
import math
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np


class SurfaceError(Exception):
    """Base class for errors raised by the surface engine."""


class PreconditionError(SurfaceError, ValueError):
    """Raised when a caller passes parameters the engine cannot work with."""


class InvalidPointError(PreconditionError):
    """Raised when a point record holds a value that is not a number."""


class GridCeilingError(SurfaceError):
    """Raised when coarsening fails to bring a grid under the cell ceiling."""


@dataclasses.dataclass(frozen=True)
class WeightedPoint:
    """A single vote: a location and its favorability weight."""

    lat: float
    lng: float
    weight: float


@dataclasses.dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in geographic degrees."""

    min_lng: float
    max_lng: float
    min_lat: float
    max_lat: float

    def contains(self, lat, lng) -> bool:
        return not (
            lng < self.min_lng
            or lng > self.max_lng
            or lat < self.min_lat
            or lat > self.max_lat
        )


Ring = Tuple[Tuple[float, float], ...]


@dataclasses.dataclass(frozen=True)
class Boundary:
    """
    A study-area boundary flattened into an ordered sequence of rings.

    Each ring is a tuple of (lng, lat) vertices. The bounding box covers every
    ring and is computed once, when the boundary is parsed.
    """

    rings: Tuple[Ring, ...]
    bbox: BoundingBox


@dataclasses.dataclass(frozen=True)
class GeoBounds:
    """Geographic rectangle covered by a grid."""

    south: float
    west: float
    north: float
    east: float

    def to_dict(self) -> Dict[str, float]:
        return dataclasses.asdict(self)


@dataclasses.dataclass
class Grid:
    """
    A rasterized surface.

    ``values`` is a flat, row-major float array of ``width * height`` cells
    with row 0 at the northern edge. Masked cells hold NaN.
    """

    width: int
    height: int
    cell_size: float
    values: np.ndarray
    min: float
    max: float
    bounds: Optional[GeoBounds]

    @classmethod
    def empty(cls, cell_size: float = 0.0) -> "Grid":
        return cls(
            width=0,
            height=0,
            cell_size=cell_size,
            values=np.empty(0, dtype=np.float64),
            min=0.0,
            max=0.0,
            bounds=None,
        )

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    @property
    def masked(self) -> np.ndarray:
        return np.isnan(self.values)

    @property
    def valid_cells(self) -> int:
        return int(np.count_nonzero(~self.masked))

    def as_array(self) -> np.ndarray:
        """Return the values as a (height, width) array, north row first."""
        return self.values.reshape(self.height, self.width)

    def value_at(self, row: int, col: int) -> Optional[float]:
        value = self.values[row * self.width + col]
        return None if math.isnan(value) else float(value)

    def grid_data(self) -> List[Optional[float]]:
        return [None if math.isnan(v) else float(v) for v in self.values.tolist()]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "cell_size": self.cell_size,
            "grid_data": self.grid_data(),
            "min": self.min,
            "max": self.max,
            "bounds": self.bounds.to_dict() if self.bounds else None,
        }


def _number(record, key: str) -> Optional[float]:
    """
    Returns the numeric value stored under ``key``, or None when the value is
    missing or NaN. Values that cannot be read as numbers are rejected.
    """
    if isinstance(record, Mapping):
        value = record.get(key)
        if value is None and key == "weight":
            value = record.get("score")
    else:
        value = getattr(record, key, None)

    if value is None:
        return None

    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidPointError(f"Point {key} is not a number: {value!r}")

    if math.isnan(number):
        return None
    return number


def coerce_points(records: Iterable[Any]) -> List[WeightedPoint]:
    """
    Build the list of usable points from caller records.

    Records may be WeightedPoint instances or mappings with ``lat``, ``lng`` and
    ``weight`` (or ``score``) keys. Records with an undefined coordinate or
    weight, or with a negative weight, are skipped. The input is not modified.

    Raises:
        InvalidPointError: If a record holds a non-numeric value
    """
    points = []
    for record in records or []:
        lat = _number(record, "lat")
        lng = _number(record, "lng")
        weight = _number(record, "weight")
        if lat is None or lng is None or weight is None:
            continue
        if weight < 0:
            continue
        points.append(WeightedPoint(lat, lng, weight))
    return points


def require_positive(name: str, value) -> float:
    """Checks that a bandwidth or cell size is a positive, finite number."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise PreconditionError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(number) or number <= 0:
        raise PreconditionError(f"{name} must be positive, got {value!r}")
    return number
