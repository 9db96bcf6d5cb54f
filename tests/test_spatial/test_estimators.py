"""
Tests for the estimator strategies.
"""

import numpy as np
import pytest

from geovote.surface import estimators
from geovote.surface.config import Config
from geovote.surface.density import weighted_kde
from geovote.surface.idw import idw_grid
from geovote.surface.models import PreconditionError, WeightedPoint


@pytest.fixture
def votes():
    return [
        WeightedPoint(35.70, 51.40, 5),
        WeightedPoint(35.72, 51.36, 3),
        WeightedPoint(35.66, 51.45, 1),
    ]


@pytest.fixture
def configuration(tmp_path):
    return Config(
        votes_file=str(tmp_path / "votes.csv"),
        boundary_file=None,
        estimator="idw",
        bandwidth=1500.0,
        cell_size=250.0,
        max_cells=20000,
        idw_power=3.0,
        cutoff=None,
        reference_lat=None,
        reference_lng=None,
        output_file=str(tmp_path / "surface.json"),
        normalize=True,
        normalize_min=0.0,
        normalize_max=1.0,
    )


class TestLookup:
    """Test suite for finding an estimator by name."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("kde", estimators.KernelDensityEstimator),
            ("KDE", estimators.KernelDensityEstimator),
            ("idw", estimators.IdwEstimator),
        ],
    )
    def test_known_names(self, name, expected):
        assert estimators.lookup(name) is expected

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown estimator"):
            estimators.lookup("kriging")


class TestFromConfig:
    """Test suite for building an estimator from configuration."""

    def test_idw(self, configuration):
        estimator = estimators.from_config(configuration)

        assert isinstance(estimator, estimators.IdwEstimator)
        assert estimator.power == 3.0
        assert estimator.padding == 3000.0
        assert estimator.max_cells == 20000

    def test_kde(self, configuration):
        configuration.estimator = "kde"
        configuration.cutoff = 4.0
        configuration.reference_lat = 35.6892
        configuration.reference_lng = 51.389

        estimator = estimators.from_config(configuration)

        assert isinstance(estimator, estimators.KernelDensityEstimator)
        assert estimator.bandwidth == 1500.0
        assert estimator.cutoff == 4.0
        assert estimator.reference == (35.6892, 51.389)


class TestEstimate:
    """Test suite for delegating to the surface engines."""

    def test_kde_matches_function(self, votes):
        estimator = estimators.KernelDensityEstimator(bandwidth=800)
        expected = weighted_kde(votes, 800, 400)
        result = estimator.estimate(votes, 400)
        assert np.array_equal(result.values, expected.values, equal_nan=True)

    def test_idw_matches_function(self, votes):
        estimator = estimators.IdwEstimator(power=2, padding=1000)
        expected = idw_grid(votes, 400, padding=1000)
        result = estimator.estimate(votes, 400)
        assert np.array_equal(result.values, expected.values, equal_nan=True)

    def test_estimator_ceiling_is_applied(self, votes):
        estimator = estimators.KernelDensityEstimator(bandwidth=1000, max_cells=1000)
        grid = estimator.estimate(votes, 10)
        assert grid.width * grid.height <= 1000

    def test_bad_bandwidth(self):
        with pytest.raises(PreconditionError):
            estimators.KernelDensityEstimator(bandwidth=-1)


class TestDescribe:
    """Test suite for estimator parameter summaries."""

    def test_kde(self):
        description = estimators.KernelDensityEstimator(bandwidth=900, cutoff=3).describe()
        assert description == {
            "estimator": "kde",
            "max_cells": 500000,
            "bandwidth": 900.0,
            "cutoff": 3,
        }

    def test_idw(self):
        description = estimators.IdwEstimator(power=1.5, padding=200).describe()
        assert description == {
            "estimator": "idw",
            "max_cells": 500000,
            "power": 1.5,
            "padding": 200,
        }
