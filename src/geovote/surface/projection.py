"""
Local planar projection for city-scale study areas.

Geographic coordinates are mapped onto an equirectangular plane measured in
meters and centred on a reference point, so that Euclidean distances and a
fixed kernel bandwidth are meaningful. The approximation is good to a few
meters across a city; it is not valid near the poles or across extents of
more than a few hundred kilometers.
"""

import dataclasses
import math

import numpy as np

from geovote.surface.constants import METERS_PER_DEGREE


@dataclasses.dataclass(frozen=True)
class LocalProjection:
    ref_lat: float
    ref_lng: float

    @classmethod
    def for_points(cls, points) -> "LocalProjection":
        """Anchors a projection at the mean position of the given points."""
        lats = np.fromiter((p.lat for p in points), dtype=np.float64)
        lngs = np.fromiter((p.lng for p in points), dtype=np.float64)
        return cls(float(lats.mean()), float(lngs.mean()))

    @property
    def meters_per_degree_lng(self) -> float:
        return METERS_PER_DEGREE * math.cos(math.radians(self.ref_lat))

    def to_meters(self, lat, lng):
        """
        Project latitude/longitude (scalars or numpy arrays) to planar (x, y)
        meters relative to the reference point.
        """
        y = (lat - self.ref_lat) * METERS_PER_DEGREE
        x = (lng - self.ref_lng) * self.meters_per_degree_lng
        return x, y

    def to_geo(self, x, y):
        """Inverse of to_meters; returns (lat, lng)."""
        lng = x / self.meters_per_degree_lng + self.ref_lng
        lat = y / METERS_PER_DEGREE + self.ref_lat
        return lat, lng
