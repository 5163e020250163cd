# processors/compositor.py
import logging
import numpy as np
from ..downloaders.tile_cache import TileCache
from ..models import CompositeResult, Frame, TileKey, Viewport
from ..utils import covering_tiles

class FrameCompositor:
    """Draws the cached tiles of one frame into a viewport-sized RGBA buffer"""

    def __init__(self, cache: TileCache, tile_size: int = 256):
        self.cache = cache
        self.tile_size = tile_size
        self.logger = logging.getLogger(__name__)

    def blit(self, buffer: np.ndarray, image: np.ndarray, left: int, top: int) -> None:
        """Copy image into buffer at (left, top), clipped to the buffer"""
        height, width = buffer.shape[:2]
        img_h, img_w = image.shape[:2]

        x0, y0 = max(left, 0), max(top, 0)
        x1, y1 = min(left + img_w, width), min(top + img_h, height)
        if x0 >= x1 or y0 >= y1:
            return

        buffer[y0:y1, x0:x1] = image[y0 - top:y1 - top, x0 - left:x1 - left]

    def composite(self, frame: Frame, viewport: Viewport) -> CompositeResult:
        """Composite every READY tile covering the viewport, raster-scan order"""
        width, height = viewport.size
        buffer = np.zeros((height, width, 4), dtype=np.uint8)
        zoom = viewport.zoom

        loaded_count = 0
        total_count = 0

        for x, y in covering_tiles(viewport, self.tile_size):
            total_count += 1

            # Screen position of the tile's north-west corner
            tile_lat, tile_lng = viewport.unproject(x * self.tile_size, y * self.tile_size)
            draw_x, draw_y = viewport.lat_lng_to_container_point(tile_lat, tile_lng)

            tile = self.cache.get(TileKey(frame.path, zoom, x, y))
            if tile is None:
                continue

            self.blit(buffer, tile.image, int(round(float(draw_x))), int(round(float(draw_y))))
            loaded_count += 1

        return CompositeResult(buffer=buffer, loaded=loaded_count, total=total_count)
