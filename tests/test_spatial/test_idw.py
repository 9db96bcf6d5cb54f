"""
Tests for inverse distance weighted interpolation.
"""

import math

import numpy as np
import pytest

from geovote.surface.idw import idw, idw_grid
from geovote.surface.models import PreconditionError, WeightedPoint


@pytest.fixture
def votes():
    return [
        WeightedPoint(35.70, 51.40, 5),
        WeightedPoint(35.72, 51.36, 3),
        WeightedPoint(35.66, 51.45, 1),
        WeightedPoint(35.75, 51.42, 4),
    ]


class TestIdw:
    """Test suite for the scalar interpolation."""

    def test_no_points(self):
        assert idw(35.7, 51.4, []) == 0.0

    def test_coincident_point_returns_its_score(self, votes):
        assert idw(35.70, 51.40, votes) == 5

    def test_within_epsilon_is_coincident(self, votes):
        assert idw(35.70 + 5e-5, 51.40, votes) == 5

    def test_first_coincident_point_wins(self):
        points = [WeightedPoint(35.7, 51.4, 2), WeightedPoint(35.7, 51.4, 9)]
        assert idw(35.7, 51.4, points) == 2

    def test_weighted_average(self):
        """Test the inverse-square average between two points."""
        points = [WeightedPoint(0.0, 0.0, 10), WeightedPoint(0.0, 3.0, 1)]
        # Distances 1 and 2 degrees, weights 1 and 1/4
        expected = (1 * 10 + 0.25 * 1) / (1 + 0.25)
        assert idw(0.0, 1.0, points) == pytest.approx(expected)

    def test_power(self):
        points = [WeightedPoint(0.0, 0.0, 10), WeightedPoint(0.0, 3.0, 1)]
        expected = (1 * 10 + 0.5 * 1) / (1 + 0.5)
        assert idw(0.0, 1.0, points, power=1) == pytest.approx(expected)

    def test_distance_is_measured_in_degrees(self):
        """Test that a degree of longitude counts as much as a degree of latitude."""
        points = [WeightedPoint(1.0, 0.0, 10), WeightedPoint(0.0, 1.0, 0)]
        assert idw(0.0, 0.0, points) == pytest.approx(5.0)

    def test_bounded_by_scores(self, votes):
        for lat, lng in [(35.5, 51.0), (35.71, 51.39), (36.0, 52.0)]:
            assert 1 <= idw(lat, lng, votes) <= 5

    def test_unusable_records_are_dropped(self):
        """Test that negative and undefined scores take no part in the average."""
        points = [
            {"lat": 0.0, "lng": 0.0, "weight": 4},
            {"lat": 0.0, "lng": 0.5, "weight": -3},
            {"lat": 0.0, "lng": 0.6, "weight": None},
        ]
        assert idw(0.0, 1.0, points) == pytest.approx(4)

    def test_mappings_with_score_key(self):
        points = [{"lat": 35.7, "lng": 51.4, "score": 4}]
        assert idw(35.8, 51.5, points) == pytest.approx(4)


class TestIdwGrid:
    """Test suite for the rasterized score surface."""

    def test_empty_points(self):
        assert idw_grid([], 100).is_empty

    def test_bad_cell_size(self, votes):
        with pytest.raises(PreconditionError):
            idw_grid(votes, 0)

    def test_cells_match_scalar_interpolation(self, votes):
        grid = idw_grid(votes, 1000, padding=2000)
        bounds = grid.bounds
        lat_step = (bounds.north - bounds.south) / grid.height
        lng_step = (bounds.east - bounds.west) / grid.width

        for row in range(grid.height):
            lat = bounds.north - (row + 0.5) * lat_step
            for col in range(grid.width):
                lng = bounds.west + (col + 0.5) * lng_step
                assert grid.value_at(row, col) == pytest.approx(idw(lat, lng, votes), rel=1e-9)

    def test_values_bounded_by_scores(self, votes):
        grid = idw_grid(votes, 500, padding=1000)
        assert grid.min >= 1
        assert grid.max <= 5
        assert grid.valid_cells == grid.width * grid.height

    def test_padding_grows_the_grid(self, votes):
        tight = idw_grid(votes, 1000)
        padded = idw_grid(votes, 1000, padding=2000)
        assert padded.width == pytest.approx(tight.width + 4, abs=1)
        assert padded.height == pytest.approx(tight.height + 4, abs=1)

    def test_boundary_masks_cells(self, votes):
        ring = [[51.38, 35.68], [51.38, 35.73], [51.43, 35.73], [51.43, 35.68], [51.38, 35.68]]
        boundary = {"type": "Polygon", "coordinates": [ring]}
        unrestricted = idw_grid(votes, 500, padding=2000)
        clipped = idw_grid(votes, 500, boundary)

        assert clipped.valid_cells > 0
        assert clipped.bounds.west == pytest.approx(51.38)
        assert clipped.bounds.north == pytest.approx(35.73)
        assert clipped.width * clipped.height < unrestricted.width * unrestricted.height

    def test_zero_scores_are_kept(self):
        """Test that zero scores are interpolated rather than discarded."""
        points = [WeightedPoint(35.70, 51.40, 0), WeightedPoint(35.72, 51.42, 0)]
        grid = idw_grid(points, 500, padding=1000)
        assert not grid.is_empty
        assert (grid.min, grid.max) == (0.0, 0.0)

    def test_grid_is_deterministic(self, votes):
        first = idw_grid(votes, 750, padding=1500)
        second = idw_grid(votes, 750, padding=1500)
        assert np.array_equal(first.values, second.values, equal_nan=True)

    def test_no_nan_in_unrestricted_grid(self, votes):
        grid = idw_grid(votes, 1000, padding=2000)
        assert not any(math.isnan(v) for v in grid.values)
