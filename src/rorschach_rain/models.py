# models.py
import math
from abc import ABC, abstractmethod
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class LatLng:
    """A geographic point in decimal degrees"""
    lat: float
    lng: float


@dataclass(frozen=True)
class GeoBounds:
    """A lat/lng rectangle"""
    south: float
    west: float
    north: float
    east: float

    @property
    def lat_span(self) -> float:
        return self.north - self.south

    @property
    def lng_span(self) -> float:
        return self.east - self.west

    @property
    def diagonal(self) -> float:
        """Planar diagonal in degrees, no geodesic correction"""
        return math.hypot(self.lat_span, self.lng_span)

    @property
    def center(self) -> LatLng:
        return LatLng((self.south + self.north) / 2, (self.west + self.east) / 2)

    @property
    def north_west(self) -> LatLng:
        return LatLng(self.north, self.west)

    @property
    def south_east(self) -> LatLng:
        return LatLng(self.south, self.east)

    def contains(self, point: LatLng) -> bool:
        return (self.south <= point.lat <= self.north
                and self.west <= point.lng <= self.east)


@dataclass(frozen=True)
class PixelBounds:
    """A rectangle in container pixel space"""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def from_corners(cls, x1: float, y1: float, x2: float, y2: float) -> "PixelBounds":
        return cls(min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def scaled(self, factor: float) -> "PixelBounds":
        return PixelBounds(self.min_x * factor, self.min_y * factor,
                           self.max_x * factor, self.max_y * factor)


@dataclass(frozen=True)
class TileKey:
    """Identifies one raster tile of one frame"""
    path: str
    zoom: int
    x: int
    y: int


class TileState(Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


@dataclass
class CachedTile:
    """A tile owned by the cache; image is a 256x256x4 uint8 array once READY"""
    key: TileKey
    state: TileState = TileState.PENDING
    image: Optional[np.ndarray] = field(default=None, repr=False)
    future: Optional[Future] = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class Frame:
    """One timestamped precipitation snapshot"""
    timestamp: int
    path: str


@dataclass(frozen=True)
class FrameSequence:
    """Frames from the metadata feed, past frames first then nowcast"""
    host: str
    frames: Tuple[Frame, ...]
    past_count: int

    @property
    def initial_index(self) -> int:
        # Nowcast frames are often not rendered yet, start on the newest past frame
        if self.past_count > 0:
            return self.past_count - 1
        return len(self.frames) - 1

    def __len__(self) -> int:
        return len(self.frames)


@dataclass(frozen=True)
class Segment:
    """One boundary segment in geographic coordinates"""
    p1: LatLng
    p2: LatLng

    @property
    def length(self) -> float:
        return math.hypot(self.p2.lat - self.p1.lat, self.p2.lng - self.p1.lng)


@dataclass(frozen=True)
class Blob:
    """Unordered boundary segments of a precipitation mass"""
    segments: Tuple[Segment, ...]
    bounding_box: GeoBounds
    center: LatLng

    @classmethod
    def from_segments(cls, segments: Sequence[Segment]) -> Optional["Blob"]:
        """Build a blob, or return None when there are no segments"""
        if not segments:
            return None

        lats = [p.lat for seg in segments for p in (seg.p1, seg.p2)]
        lngs = [p.lng for seg in segments for p in (seg.p1, seg.p2)]
        box = GeoBounds(south=min(lats), west=min(lngs), north=max(lats), east=max(lngs))
        return cls(segments=tuple(segments), bounding_box=box, center=box.center)


@dataclass(frozen=True)
class ClassificationMetrics:
    magnitude: float
    normalized_magnitude: float
    aspect_ratio: float
    ruggedness: float
    category: str


@dataclass(frozen=True)
class ClassificationResult:
    label: str
    icon: str
    adjective: str
    metrics: Optional[ClassificationMetrics] = None


@dataclass
class CompositeResult:
    """Composited frame buffer plus tile coverage"""
    buffer: np.ndarray
    loaded: int
    total: int

    @property
    def fully_synced(self) -> bool:
        return self.total > 0 and self.loaded == self.total


class RenderMode(str, Enum):
    RADAR = "radar"
    INKBLOT = "inkblot"
    BOTH = "both"


class Viewport(ABC):
    """
    Current map view as supplied by the map widget.

    Projection methods accept scalars or numpy arrays. World pixel coordinates
    are at ``zoom``; container coordinates are relative to the top-left corner
    of the visible area.
    """

    @property
    @abstractmethod
    def zoom(self) -> int:
        ...

    @property
    @abstractmethod
    def size(self) -> Tuple[int, int]:
        """(width, height) in pixels"""

    @property
    @abstractmethod
    def geo_bounds(self) -> GeoBounds:
        ...

    @abstractmethod
    def project(self, lat, lng):
        """Geographic point to world pixel (x, y)"""

    @abstractmethod
    def unproject(self, x, y):
        """World pixel to geographic (lat, lng)"""

    @abstractmethod
    def lat_lng_to_container_point(self, lat, lng):
        ...

    @abstractmethod
    def container_point_to_lat_lng(self, x, y):
        ...

    @property
    def pixel_bounds(self) -> PixelBounds:
        width, height = self.size
        return PixelBounds(0, 0, width, height)
