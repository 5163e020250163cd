from __future__ import annotations

import threading
from typing import List, Tuple

import numpy as np
import pytest

from rorschach_rain.config import RorschachConfig
from rorschach_rain.downloaders.feed_client import FeedClient
from rorschach_rain.exceptions import TileFetchError
from rorschach_rain.models import GeoBounds, TileKey, Viewport


class LinearViewport(Viewport):
    """Equirectangular test view: one pixel is ``deg_per_px`` degrees on both axes."""

    def __init__(self, width: int = 100, height: int = 100, west: float = 0.0,
                 north: float = 10.0, deg_per_px: float = 0.1, zoom: int = 3,
                 origin: Tuple[float, float] = (0.0, 0.0)) -> None:
        self._size = (width, height)
        self.west = west
        self.north = north
        self.deg_per_px = deg_per_px
        self._zoom = zoom
        self.origin = origin

    @property
    def zoom(self) -> int:
        return self._zoom

    @property
    def size(self) -> Tuple[int, int]:
        return self._size

    @property
    def geo_bounds(self) -> GeoBounds:
        width, height = self._size
        return GeoBounds(
            south=self.north - height * self.deg_per_px,
            west=self.west,
            north=self.north,
            east=self.west + width * self.deg_per_px,
        )

    def project(self, lat, lng):
        x = (np.asarray(lng) - self.west) / self.deg_per_px + self.origin[0]
        y = (self.north - np.asarray(lat)) / self.deg_per_px + self.origin[1]
        return x, y

    def unproject(self, x, y):
        lng = self.west + (np.asarray(x) - self.origin[0]) * self.deg_per_px
        lat = self.north - (np.asarray(y) - self.origin[1]) * self.deg_per_px
        return lat, lng

    def lat_lng_to_container_point(self, lat, lng):
        x, y = self.project(lat, lng)
        return x - self.origin[0], y - self.origin[1]

    def container_point_to_lat_lng(self, x, y):
        return self.unproject(np.asarray(x) + self.origin[0], np.asarray(y) + self.origin[1])


class ControlledFetcher:
    """Tile source that counts calls, can be held open, and can fail on demand."""

    def __init__(self, tile_size: int = 256) -> None:
        self.tile_size = tile_size
        self.calls: List[TileKey] = []
        self.release = threading.Event()
        self.release.set()
        self.failures_left = 0
        self.missing: set = set()
        self._lock = threading.Lock()

    def image_for(self, key: TileKey) -> np.ndarray:
        tile = np.zeros((self.tile_size, self.tile_size, 4), dtype=np.uint8)
        tile[..., 0] = (key.x * 40) % 256
        tile[..., 1] = (key.y * 40) % 256
        tile[..., 3] = 255
        return tile

    def __call__(self, key: TileKey) -> np.ndarray:
        with self._lock:
            self.calls.append(key)
            fail = self.failures_left > 0 or key in self.missing
            if self.failures_left > 0:
                self.failures_left -= 1
        self.release.wait(timeout=5)
        if fail:
            raise TileFetchError(f"boom {key}")
        return self.image_for(key)


@pytest.fixture
def config() -> RorschachConfig:
    return RorschachConfig(
        feed_url="https://feed.test/weather-maps.json",
        tile_url_template="https://tiles.test{path}/256/{z}/{x}/{y}/2/1_1.png",
        namer_api_key="test-key",
        namer_url="https://namer.test/generate",
        namer_fallback_delay=3.0,
        random_seed=7,
    )


@pytest.fixture
def fetcher() -> ControlledFetcher:
    return ControlledFetcher()


@pytest.fixture
def linear_viewport() -> LinearViewport:
    return LinearViewport()


@pytest.fixture
def no_retry_wait(monkeypatch):
    """Make the feed client's retry loop fail fast."""
    monkeypatch.setattr(FeedClient.fetch_metadata.retry, "sleep", lambda seconds: None)


def block_buffer(size: int = 100, top: int = 30, left: int = 30, side: int = 40) -> np.ndarray:
    buffer = np.zeros((size, size, 4), dtype=np.uint8)
    buffer[top:top + side, left:left + side] = 255
    return buffer
