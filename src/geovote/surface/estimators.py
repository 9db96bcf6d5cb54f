"""Surface estimator strategies.

This module provides a common interface over the two ways of turning votes
into a surface: weighted kernel density ("kde") and inverse distance weighted
score interpolation ("idw"). Both share grid planning, the cell ceiling and
boundary masking; they differ only in how an unmasked cell is valued.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from geovote.surface import density, idw
from geovote.surface.constants import (
    BANDWIDTH_PADDING_FACTOR,
    DEFAULT_BANDWIDTH,
    DEFAULT_IDW_POWER,
    MAX_GRID_CELLS,
)
from geovote.surface.grid import ProgressCallback
from geovote.surface.models import Grid, require_positive


class SurfaceEstimator(ABC):
    """Abstract base class for surface estimators."""

    name = ""

    def __init__(
        self,
        max_cells: int = MAX_GRID_CELLS,
        reference: Optional[Tuple[float, float]] = None,
    ):
        self.max_cells = max_cells
        self.reference = reference

    @abstractmethod
    def estimate(
        self,
        points,
        cell_size: float,
        boundary=None,
        progress: Optional[ProgressCallback] = None,
    ) -> Grid:
        """Rasterize a surface from the points.

        Args:
            points: WeightedPoint instances or {lat, lng, weight} mappings
            cell_size: Requested cell edge length in meters
            boundary: Parsed Boundary, raw GeoJSON, or None
            progress: Called with (rows_done, total_rows) after each row

        Returns:
            The surface Grid, or the empty grid when there is nothing to show
        """
        pass

    def describe(self) -> Dict[str, object]:
        return {"estimator": self.name, "max_cells": self.max_cells}


class KernelDensityEstimator(SurfaceEstimator):
    name = "kde"

    def __init__(
        self,
        bandwidth: float = DEFAULT_BANDWIDTH,
        cutoff: Optional[float] = None,
        max_cells: int = MAX_GRID_CELLS,
        reference: Optional[Tuple[float, float]] = None,
    ):
        super().__init__(max_cells, reference)
        self.bandwidth = require_positive("bandwidth", bandwidth)
        self.cutoff = cutoff

    def estimate(self, points, cell_size, boundary=None, progress=None) -> Grid:
        return density.weighted_kde(
            points,
            self.bandwidth,
            cell_size,
            boundary,
            max_cells=self.max_cells,
            reference=self.reference,
            cutoff=self.cutoff,
            progress=progress,
        )

    def describe(self):
        return {**super().describe(), "bandwidth": self.bandwidth, "cutoff": self.cutoff}


class IdwEstimator(SurfaceEstimator):
    name = "idw"

    def __init__(
        self,
        power: float = DEFAULT_IDW_POWER,
        padding: float = 0.0,
        max_cells: int = MAX_GRID_CELLS,
        reference: Optional[Tuple[float, float]] = None,
    ):
        super().__init__(max_cells, reference)
        self.power = power
        self.padding = padding

    def estimate(self, points, cell_size, boundary=None, progress=None) -> Grid:
        return idw.idw_grid(
            points,
            cell_size,
            boundary,
            power=self.power,
            padding=self.padding,
            max_cells=self.max_cells,
            reference=self.reference,
            progress=progress,
        )

    def describe(self):
        return {**super().describe(), "power": self.power, "padding": self.padding}


def lookup(name: str) -> type:
    """
    Determine which estimator class to use for the given estimator name.
    """
    estimators = {
        KernelDensityEstimator.name: KernelDensityEstimator,
        IdwEstimator.name: IdwEstimator,
    }

    try:
        return estimators[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown estimator {name!r}, expected one of {', '.join(sorted(estimators))}"
        )


def from_config(configuration) -> SurfaceEstimator:
    """Builds the estimator named in the configuration."""
    estimator_class = lookup(configuration.estimator)
    if estimator_class is IdwEstimator:
        return IdwEstimator(
            power=configuration.idw_power,
            padding=configuration.bandwidth * BANDWIDTH_PADDING_FACTOR,
            max_cells=configuration.max_cells,
            reference=configuration.reference,
        )
    return KernelDensityEstimator(
        bandwidth=configuration.bandwidth,
        cutoff=configuration.cutoff,
        max_cells=configuration.max_cells,
        reference=configuration.reference,
    )
