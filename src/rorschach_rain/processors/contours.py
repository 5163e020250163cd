# processors/contours.py
import logging
import math
from typing import List, Optional, Tuple
import cv2
import numpy as np
from ..models import Blob, LatLng, PixelBounds, Segment, Viewport
from . import ink

# Segment endpoints per cell index (TL*8 + TR*4 + BR*2 + BL), as
# ((x1, y1), (x2, y2)) in cell-relative units. Edge midpoints only.
# Saddles 5 and 10 always join the two inside corners through the cell,
# cutting off the two outside corners.
CELL_SEGMENTS: Tuple[Tuple[Tuple[Tuple[float, float], Tuple[float, float]], ...], ...] = (
    (),                                                   # 0
    (((0, 0.5), (0.5, 1)),),                              # 1: BL
    (((0.5, 1), (1, 0.5)),),                              # 2: BR
    (((0, 0.5), (1, 0.5)),),                              # 3: BL + BR
    (((0.5, 0), (1, 0.5)),),                              # 4: TR
    (((0, 0.5), (0.5, 0)), ((0.5, 1), (1, 0.5))),         # 5: BL + TR (saddle)
    (((0.5, 0), (0.5, 1)),),                              # 6: TR + BR
    (((0, 0.5), (0.5, 0)),),                              # 7: TR + BR + BL
    (((0, 0.5), (0.5, 0)),),                              # 8: TL
    (((0.5, 0), (0.5, 1)),),                              # 9: TL + BL
    (((0.5, 0), (1, 0.5)), ((0, 0.5), (0.5, 1))),         # 10: TL + BR (saddle)
    (((0.5, 0), (1, 0.5)),),                              # 11: TL + BR + BL
    (((0, 0.5), (1, 0.5)),),                              # 12: TL + TR
    (((0.5, 1), (1, 0.5)),),                              # 13: TL + TR + BL
    (((0, 0.5), (0.5, 1)),),                              # 14: TL + TR + BR
    (),                                                   # 15
)


class ContourExtractor:
    """Marching squares over the smoothed alpha of a binarized buffer"""

    def __init__(self, scale: float = 0.75, threshold: int = 60,
                 blur_radius: float = 8.0, contrast_percent: float = 400.0):
        self.scale = scale
        self.threshold = threshold
        self.blur_radius = blur_radius
        self.contrast_percent = contrast_percent
        self.logger = logging.getLogger(__name__)

    def downsample(self, buffer: np.ndarray) -> np.ndarray:
        """RGBA buffer at the working resolution"""
        height, width = buffer.shape[:2]
        sm_width = int(math.floor(width * self.scale))
        sm_height = int(math.floor(height * self.scale))

        rgba = np.ascontiguousarray(buffer)
        if sm_width < 1 or sm_height < 1:
            return np.zeros((max(sm_height, 0), max(sm_width, 0), 4), dtype=np.uint8)
        if (sm_width, sm_height) == (width, height):
            return rgba.copy()
        return cv2.resize(rgba, (sm_width, sm_height), interpolation=cv2.INTER_AREA)

    def working_alpha(self, buffer: np.ndarray, clip_rect: Optional[PixelBounds] = None) -> np.ndarray:
        """Smoothed, clipped alpha on the working grid; the blur radius is in working pixels"""
        small = self.downsample(buffer)
        if small.size:
            small = ink.stylize(small, self.blur_radius, self.contrast_percent)
        alpha = small[..., 3]

        if clip_rect is not None:
            alpha = self.apply_clip(alpha, clip_rect)
        return alpha

    def apply_clip(self, alpha: np.ndarray, clip_rect: PixelBounds) -> np.ndarray:
        """Zero every sample outside the clip rectangle (given in buffer pixels)"""
        scaled = clip_rect.scaled(self.scale)
        x0 = max(int(math.floor(scaled.min_x)), 0)
        y0 = max(int(math.floor(scaled.min_y)), 0)
        x1 = max(int(math.ceil(scaled.max_x)), x0)
        y1 = max(int(math.ceil(scaled.max_y)), y0)

        clipped = np.zeros_like(alpha)
        clipped[y0:y1, x0:x1] = alpha[y0:y1, x0:x1]
        return clipped

    def cell_indices(self, mask: np.ndarray) -> np.ndarray:
        """4-bit marching squares index for every 2x2 block of the mask"""
        m = mask.astype(np.uint8)
        tl = m[:-1, :-1]
        tr = m[:-1, 1:]
        br = m[1:, 1:]
        bl = m[1:, :-1]
        return tl * 8 + tr * 4 + br * 2 + bl

    def trace(self, mask: np.ndarray) -> List[Tuple[float, float, float, float]]:
        """Segments (x1, y1, x2, y2) in working-resolution pixels, row-major order"""
        if mask.shape[0] < 2 or mask.shape[1] < 2:
            return []

        indices = self.cell_indices(mask)
        rows, cols = np.nonzero((indices != 0) & (indices != 15))

        segments = []
        for y, x in zip(rows.tolist(), cols.tolist()):
            for (px1, py1), (px2, py2) in CELL_SEGMENTS[indices[y, x]]:
                segments.append((x + px1, y + py1, x + px2, y + py2))
        return segments

    def extract(self, buffer: np.ndarray, viewport: Viewport,
                clip_rect: Optional[PixelBounds] = None) -> Optional[Blob]:
        """Outline of the ink in a binarized buffer as a Blob, or None if there is no boundary"""
        # Step 1: Downsample, smooth on the working grid, hard edge at the selection
        alpha = self.working_alpha(buffer, clip_rect)

        # Step 2: Threshold and trace
        mask = alpha > self.threshold
        cells = self.trace(mask)
        if not cells:
            self.logger.info("No shape boundary found")
            return None

        # Step 3: Back to buffer pixels, then to geographic coordinates
        points = np.asarray(cells, dtype=np.float64) / self.scale
        lat1, lng1 = viewport.container_point_to_lat_lng(points[:, 0], points[:, 1])
        lat2, lng2 = viewport.container_point_to_lat_lng(points[:, 2], points[:, 3])

        segments = [
            Segment(LatLng(a_lat, a_lng), LatLng(b_lat, b_lng))
            for a_lat, a_lng, b_lat, b_lng in zip(
                np.asarray(lat1, dtype=float).tolist(), np.asarray(lng1, dtype=float).tolist(),
                np.asarray(lat2, dtype=float).tolist(), np.asarray(lng2, dtype=float).tolist())
        ]

        blob = Blob.from_segments(segments)
        self.logger.info(f"Extracted {len(segments)} outline segments")
        return blob
