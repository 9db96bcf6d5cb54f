"""
Readers for vote and boundary files.

Votes are exported from the vote store either as CSV (one row per vote, with
``lat``, ``lng`` and ``weight`` or ``score`` columns) or as a GeoJSON
FeatureCollection of Point features carrying the score in their properties.
"""

import json
import logging
from pathlib import Path
from typing import List

import pandas as pd
from funcy import keep

logger = logging.getLogger(__name__)

WEIGHT_COLUMNS = ("weight", "score")


class ReaderError(Exception):
    """Raised when an input file cannot be read."""


def _read_json(path):
    try:
        with open(path) as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise ReaderError(f"Unable to read {path}: {e}") from e


def read_boundary(path):
    """Returns the GeoJSON object stored at path."""
    return _read_json(path)


def votes_from_dataframe(df: pd.DataFrame) -> List[dict]:
    missing = [c for c in ("lat", "lng") if c not in df.columns]
    weight_column = next((c for c in WEIGHT_COLUMNS if c in df.columns), None)
    if missing or weight_column is None:
        raise ReaderError(
            f"Vote table needs lat, lng and weight or score columns, found {list(df.columns)}"
        )

    return [
        {"lat": lat, "lng": lng, "weight": weight}
        for lat, lng, weight in zip(df["lat"], df["lng"], df[weight_column])
    ]


def _feature_vote(feature):
    if not isinstance(feature, dict):
        raise ReaderError(f"Vote feature is not an object: {feature!r}")
    geometry = feature.get("geometry") or {}
    if not isinstance(geometry, dict) or geometry.get("type") != "Point":
        return None
    coordinates = geometry.get("coordinates")
    if not isinstance(coordinates, (list, tuple)) or len(coordinates) < 2:
        raise ReaderError(f"Point feature has malformed coordinates: {coordinates!r}")
    lng, lat = coordinates[:2]
    properties = feature.get("properties") or {}
    # Missing scores stay undefined; coerce_points drops them
    return {"lat": lat, "lng": lng, "weight": properties.get("score")}


def votes_from_geojson(geojson) -> List[dict]:
    if not isinstance(geojson, dict) or geojson.get("type") != "FeatureCollection":
        raise ReaderError("Vote GeoJSON must be a FeatureCollection")
    return list(keep(_feature_vote, geojson.get("features") or []))


def read_votes(path) -> List[dict]:
    """
    Read vote records from a CSV or GeoJSON file.

    Returns:
        A list of {lat, lng, weight} mappings, ready for the estimators

    Raises:
        ReaderError: If the file is missing, unreadable, or of an unknown type
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".csv":
        try:
            df = pd.read_csv(path)
        except (OSError, ValueError) as e:
            raise ReaderError(f"Unable to read {path}: {e}") from e
        votes = votes_from_dataframe(df)
    elif suffix in (".geojson", ".json"):
        votes = votes_from_geojson(_read_json(path))
    else:
        raise ReaderError(f"Unsupported vote file type: {suffix or path.name}")

    logger.info(f"Read {len(votes)} votes from {path}")
    return votes
