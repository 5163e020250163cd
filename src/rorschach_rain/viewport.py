"""
Spherical Web Mercator viewport.

Headless stand-in for the interactive map widget: it owns the projection math
that the compositor and the contour extractor only ever call through the
``Viewport`` interface.
"""
import math
from typing import Tuple

import numpy as np

from .models import GeoBounds, LatLng, Viewport

MAX_SIN_LAT = 0.9999


class MercatorViewport(Viewport):
    """A fixed view of ``width`` x ``height`` pixels centred on ``center``"""

    def __init__(self, center: LatLng, zoom: int, width: int, height: int,
                 tile_size: int = 256):
        self.center = center
        self._zoom = int(zoom)
        self._size = (int(width), int(height))
        self.tile_size = tile_size

        cx, cy = self.project(center.lat, center.lng)
        self.origin = (round(cx - width / 2), round(cy - height / 2))

    @property
    def zoom(self) -> int:
        return self._zoom

    @property
    def size(self) -> Tuple[int, int]:
        return self._size

    @property
    def world_size(self) -> float:
        return self.tile_size * 2 ** self._zoom

    @property
    def geo_bounds(self) -> GeoBounds:
        width, height = self._size
        north, west = self.container_point_to_lat_lng(0, 0)
        south, east = self.container_point_to_lat_lng(width, height)
        return GeoBounds(south=float(south), west=float(west),
                         north=float(north), east=float(east))

    def project(self, lat, lng):
        scale = self.world_size
        sin_lat = np.clip(np.sin(np.radians(lat)), -MAX_SIN_LAT, MAX_SIN_LAT)
        x = scale * (np.asarray(lng) + 180.0) / 360.0
        y = scale * (0.5 - np.log((1 + sin_lat) / (1 - sin_lat)) / (4 * math.pi))
        return x, y

    def unproject(self, x, y):
        scale = self.world_size
        lng = np.asarray(x) / scale * 360.0 - 180.0
        n = math.pi - 2 * math.pi * np.asarray(y) / scale
        lat = np.degrees(np.arctan(np.sinh(n)))
        return lat, lng

    def lat_lng_to_container_point(self, lat, lng):
        x, y = self.project(lat, lng)
        return x - self.origin[0], y - self.origin[1]

    def container_point_to_lat_lng(self, x, y):
        return self.unproject(np.asarray(x) + self.origin[0], np.asarray(y) + self.origin[1])
