# utils.py
import re
import math
from datetime import datetime, timezone
from typing import Iterator, Tuple
import pytz

from .models import TileKey, Viewport


def sanitize_filename(filename: str) -> str:
    """Remove invalid characters from filename"""
    return re.sub(r'[\\/:*?"<>|]', '', filename)


def tile_range(viewport: Viewport, tile_size: int = 256) -> Tuple[int, int, int, int]:
    """Tile coordinate rectangle (x0, y0, x1, y1) covering the viewport, end-exclusive"""
    bounds = viewport.geo_bounds
    nw_x, nw_y = viewport.project(bounds.north, bounds.west)
    se_x, se_y = viewport.project(bounds.south, bounds.east)

    return (math.floor(nw_x / tile_size), math.floor(nw_y / tile_size),
            math.ceil(se_x / tile_size), math.ceil(se_y / tile_size))


def covering_tiles(viewport: Viewport, tile_size: int = 256) -> Iterator[Tuple[int, int]]:
    """Yield tile coordinates covering the viewport in raster-scan order"""
    x0, y0, x1, y1 = tile_range(viewport, tile_size)
    for x in range(x0, x1):
        for y in range(y0, y1):
            yield x, y


def build_tile_url(template: str, key: TileKey) -> str:
    """Substitute a tile key into a URL template"""
    return (template
            .replace('{path}', key.path)
            .replace('{z}', str(key.zoom))
            .replace('{x}', str(key.x))
            .replace('{y}', str(key.y)))


def convert_utc_to_local(utc_time: datetime, tz_name: str) -> datetime:
    """Convert a naive UTC datetime to the given timezone"""
    utc = pytz.utc
    local_tz = pytz.timezone(tz_name)
    return utc.localize(utc_time).astimezone(local_tz)


def frame_datetime(timestamp: int, tz_name: str) -> datetime:
    """Epoch seconds to an aware datetime in the display timezone"""
    utc_time = datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=None)
    return convert_utc_to_local(utc_time, tz_name)


def format_frame_time(timestamp: int, tz_name: str) -> str:
    """Human readable frame time for status displays"""
    return frame_datetime(timestamp, tz_name).strftime('%H:%M:%S %d/%m/%Y %Z')
