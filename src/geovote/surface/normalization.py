import dataclasses

import numpy as np

from geovote.surface.constants import DEFAULT_NORMALIZE_MAX, DEFAULT_NORMALIZE_MIN
from geovote.surface.models import Grid


def normalize_values(
    values,
    old_min: float,
    old_max: float,
    new_min: float = DEFAULT_NORMALIZE_MIN,
    new_max: float = DEFAULT_NORMALIZE_MAX,
) -> np.ndarray:
    """
    Affinely rescale values from [old_min, old_max] into [new_min, new_max].

    None and NaN entries are masked and stay NaN. When old_min equals old_max
    every unmasked value maps to new_min.
    """
    if isinstance(values, np.ndarray):
        data = values.astype(np.float64)
    else:
        data = np.array([np.nan if v is None else v for v in values], dtype=np.float64)
    masked = np.isnan(data)

    if old_max == old_min:
        result = np.full(data.shape, float(new_min))
    else:
        result = (data - old_min) / (old_max - old_min) * (new_max - new_min) + new_min

    result[masked] = np.nan
    return result


def normalize(
    grid: Grid,
    old_min: float,
    old_max: float,
    new_min: float = DEFAULT_NORMALIZE_MIN,
    new_max: float = DEFAULT_NORMALIZE_MAX,
) -> Grid:
    """Returns a copy of the grid with its unmasked cells rescaled."""
    if grid.is_empty:
        return Grid.empty(grid.cell_size)

    values = normalize_values(grid.values, old_min, old_max, new_min, new_max)
    valid = values[~np.isnan(values)]
    if valid.size == 0:
        return dataclasses.replace(grid, values=values)

    return dataclasses.replace(
        grid,
        values=values,
        min=float(valid.min()),
        max=float(valid.max()),
    )
