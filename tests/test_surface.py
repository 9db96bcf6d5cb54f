import json
import logging
from unittest.mock import patch

import pytest

from geovote.surface import config, surface
from geovote.surface.models import Grid

# Unit tests for the 'surface' module functions.
#
# The test boundary is the surface module's interface with the filesystem and
# the readers & estimators modules. End-to-end tests write their inputs under
# pytest's tmp_path; the others mock the readers.


@pytest.fixture
def votes_file(tmp_path):
    p = tmp_path / "votes.csv"
    p.write_text(
        "lat,lng,weight\n35.70,51.40,5\n35.72,51.36,3\n35.66,51.45,1\n35.75,51.42,4.5\n",
        encoding="utf-8",
    )
    return p


@pytest.fixture
def boundary_file(tmp_path):
    ring = [[51.30, 35.60], [51.30, 35.80], [51.50, 35.80], [51.50, 35.60], [51.30, 35.60]]
    p = tmp_path / "boundary.geojson"
    p.write_text(json.dumps({"type": "Polygon", "coordinates": [ring]}), encoding="utf-8")
    return p


@pytest.fixture
def test_config(tmp_path, votes_file, boundary_file):
    return config.Config(
        votes_file=str(votes_file),
        boundary_file=str(boundary_file),
        estimator="kde",
        bandwidth=1000.0,
        cell_size=1000.0,
        max_cells=500000,
        idw_power=2.0,
        cutoff=None,
        reference_lat=None,
        reference_lng=None,
        output_file=str(tmp_path / "surface.json"),
        normalize=True,
        normalize_min=0.0,
        normalize_max=1.0,
    )


def test_banner():
    assert len(surface.banner()) > 0


def test_init_logging_adds_handlers(tmp_path):
    logger = logging.getLogger(surface.LOGGER_NAME)
    existing = list(logger.handlers)
    try:
        surface.init_logging(str(tmp_path / "geovote.log"))
        added = [h for h in logger.handlers if h not in existing]
        assert len(added) == 2
        assert any(isinstance(h, logging.FileHandler) for h in added)
    finally:
        for handler in logger.handlers:
            if handler not in existing:
                handler.close()
                logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)


def test_progress_logger_reports_in_steps(caplog):
    caplog.set_level(logging.DEBUG, logger=surface.LOGGER_NAME)
    report = surface.progress_logger(step=25)

    for row in range(1, 101):
        report(row, 100)

    messages = [r.getMessage() for r in caplog.records if "rows" in r.getMessage()]
    assert messages == [
        "Computed 25/100 rows (25%)",
        "Computed 50/100 rows (50%)",
        "Computed 75/100 rows (75%)",
        "Computed 100/100 rows (100%)",
    ]


def test_build_surface_normalizes(test_config, votes_file, boundary_file):
    points, boundary = surface.load_inputs(test_config)

    grid, raw_range = surface.build_surface(points, boundary, test_config)

    assert (grid.min, grid.max) == (0.0, 1.0)
    assert raw_range[0] > 0
    assert raw_range[1] > raw_range[0]


def test_build_surface_raw_values(test_config):
    test_config.normalize = False
    points, boundary = surface.load_inputs(test_config)

    grid, raw_range = surface.build_surface(points, boundary, test_config)

    assert (grid.min, grid.max) == raw_range


def test_build_surface_empty(test_config):
    grid, raw_range = surface.build_surface([], None, test_config)
    assert grid.is_empty
    assert raw_range == (0.0, 0.0)


def test_surface_document(test_config):
    document = surface.surface_document(Grid.empty(), (0.0, 0.0), test_config)

    assert document["width"] == 0
    assert document["grid_data"] == []
    assert document["bounds"] is None
    assert document["normalized"] is False
    assert document["parameters"]["estimator"] == "kde"
    assert document["parameters"]["bandwidth"] == 1000.0


@patch("geovote.surface.readers.read_boundary", return_value={"type": "Point", "coordinates": [0, 0]})
@patch("geovote.surface.readers.read_votes", return_value=[{"lat": 35.7, "lng": 51.4, "weight": 1}])
def test_load_inputs_with_unusable_boundary(votes_mock, boundary_mock, test_config, caplog):
    points, boundary = surface.load_inputs(test_config)

    assert points == [{"lat": 35.7, "lng": 51.4, "weight": 1}]
    assert boundary is None
    assert "clipping disabled" in caplog.text
    boundary_mock.assert_called_once_with(test_config.boundary_file)


@patch("geovote.surface.readers.read_boundary")
@patch("geovote.surface.readers.read_votes", return_value=[])
def test_load_inputs_without_boundary(votes_mock, boundary_mock, test_config):
    test_config.boundary_file = None
    _, boundary = surface.load_inputs(test_config)
    assert boundary is None
    assert not boundary_mock.called


def test_compute_writes_surface(test_config):
    grid = surface.compute(test_config)

    with open(test_config.output_file) as f:
        document = json.load(f)

    assert document["width"] == grid.width
    assert document["height"] == grid.height
    assert len(document["grid_data"]) == grid.width * grid.height
    assert document["min"] == 0.0
    assert document["max"] == 1.0
    assert document["normalized"] is True
    assert set(document["bounds"]) == {"south", "west", "north", "east"}


def test_compute_idw_surface(test_config):
    test_config.estimator = "idw"
    test_config.normalize = False

    grid = surface.compute(test_config)

    assert 1.0 <= grid.min <= grid.max <= 5.0


def test_compute_with_invalid_configuration(test_config, tmp_path):
    test_config.votes_file = str(tmp_path / "missing.csv")
    with pytest.raises(config.ValidationError, match="votes_file"):
        surface.compute(test_config)


def test_init_config(tmp_path, capsys):
    path = tmp_path / "surface.ini"
    answers = ["votes.csv", "", "idw", "1500", "250", "out.json", "False"]

    with patch("geovote.surface.surface.Prompt.ask", side_effect=answers):
        result = surface.init_config(str(path))

    assert result == str(path)
    cfg = config.configuration(config.config_parser_factory(str(path)), {})
    assert cfg.votes_file == "votes.csv"
    assert cfg.boundary_file is None
    assert cfg.estimator == "idw"
    assert cfg.bandwidth == 1500.0
    assert cfg.cell_size == 250.0
    assert cfg.output_file == "out.json"
    assert cfg.normalize is False
