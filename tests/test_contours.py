from __future__ import annotations

import numpy as np
import pytest

from conftest import block_buffer
from rorschach_rain.models import PixelBounds
from rorschach_rain.processors import ink
from rorschach_rain.processors.contours import CELL_SEGMENTS, ContourExtractor

SCALE = 0.75
DEG_PER_PX = 0.1
CELL_DEG = DEG_PER_PX / SCALE


@pytest.fixture
def extractor():
    # Unblurred so the traced edge sits on the drawn edge
    return ContourExtractor(scale=SCALE, threshold=60, blur_radius=0)


def test_empty_mask_returns_no_blob(extractor, linear_viewport):
    buffer = np.zeros((100, 100, 4), dtype=np.uint8)
    assert extractor.extract(buffer, linear_viewport) is None


def test_fully_filled_mask_has_no_boundary(extractor, linear_viewport):
    buffer = np.full((100, 100, 4), 255, dtype=np.uint8)
    assert extractor.extract(buffer, linear_viewport) is None


def test_filled_rectangle_bounding_box(extractor, linear_viewport):
    blob = extractor.extract(block_buffer(), linear_viewport)

    assert blob is not None
    assert len(blob.segments) > 0

    # Pixels 30..70 on a 0.1 deg/px view north=10, west=0
    box = blob.bounding_box
    tolerance = 2 * CELL_DEG
    assert box.west == pytest.approx(3.0, abs=tolerance)
    assert box.east == pytest.approx(7.0, abs=tolerance)
    assert box.north == pytest.approx(7.0, abs=tolerance)
    assert box.south == pytest.approx(3.0, abs=tolerance)

    assert box.contains(blob.center)
    assert blob.center.lat == pytest.approx(5.0, abs=tolerance)
    assert blob.center.lng == pytest.approx(5.0, abs=tolerance)


def test_segments_are_cell_sized(extractor, linear_viewport):
    blob = extractor.extract(block_buffer(), linear_viewport)

    longest = max(segment.length for segment in blob.segments)
    assert longest <= CELL_DEG + 1e-9


def test_clip_excluding_all_ink_returns_no_blob(extractor, linear_viewport):
    buffer = block_buffer()
    assert extractor.extract(buffer, linear_viewport) is not None

    clip = PixelBounds(0, 0, 20, 20)
    assert extractor.extract(buffer, linear_viewport, clip) is None


def test_clip_edge_becomes_shape_edge(extractor, linear_viewport):
    clip = PixelBounds.from_corners(50, 100, 0, 0)
    blob = extractor.extract(block_buffer(), linear_viewport, clip)

    assert blob is not None
    assert blob.bounding_box.east == pytest.approx(5.0, abs=2 * CELL_DEG)
    assert blob.bounding_box.west == pytest.approx(3.0, abs=2 * CELL_DEG)


def test_faint_ink_below_threshold_is_ignored(extractor, linear_viewport):
    buffer = block_buffer()
    buffer[..., 3] = np.where(buffer[..., 3] > 0, 50, 0)

    assert extractor.extract(buffer, linear_viewport) is None


def test_cell_indices_follow_corner_weights(extractor):
    mask = np.zeros((3, 3), dtype=bool)
    mask[1, 1] = True

    indices = extractor.cell_indices(mask)

    # TL*8 + TR*4 + BR*2 + BL*1
    assert indices.tolist() == [[2, 1], [4, 8]]


def test_saddle_cases_join_inside_corners(extractor):
    tl_br = np.array([[1, 0], [0, 1]], dtype=bool)
    tr_bl = np.array([[0, 1], [1, 0]], dtype=bool)

    assert extractor.trace(tl_br) == [(0.5, 0, 1, 0.5), (0, 0.5, 0.5, 1)]
    assert extractor.trace(tr_bl) == [(0, 0.5, 0.5, 0), (0.5, 1, 1, 0.5)]


def test_lookup_table_shape():
    assert len(CELL_SEGMENTS) == 16
    assert CELL_SEGMENTS[0] == CELL_SEGMENTS[15] == ()
    assert all(len(CELL_SEGMENTS[i]) == 2 for i in (5, 10))
    assert all(len(CELL_SEGMENTS[i]) == 1 for i in range(1, 15) if i not in (5, 10))
    # Complementary cells trace the same edge
    for i in range(1, 15):
        if i not in (5, 10):
            assert set(CELL_SEGMENTS[i][0]) == set(CELL_SEGMENTS[15 - i][0])


def test_output_does_not_depend_on_call_history(extractor, linear_viewport):
    first = extractor.extract(block_buffer(), linear_viewport)
    second = extractor.extract(block_buffer(), linear_viewport)

    assert first == second


def two_masses() -> np.ndarray:
    # 80 px squares with a 20 px gap: working-grid columns 30..90 and 105..165
    buffer = np.zeros((160, 260, 4), dtype=np.uint8)
    buffer[40:120, 40:120] = 255
    buffer[40:120, 140:220] = 255
    return buffer


def test_blur_radius_is_measured_on_the_working_grid():
    extractor = ContourExtractor(scale=SCALE, threshold=60, blur_radius=8, contrast_percent=400)

    alpha = extractor.working_alpha(two_masses())

    assert alpha.shape == (120, 195)
    # Gap is bridged along the middle row
    assert alpha[60, 97] > 60
    assert (alpha[60, 30:165] > 60).all()


def test_blurring_before_downsampling_leaves_the_gap_open():
    source_blurred = ink.stylize(two_masses(), 8, 400)
    alpha = ContourExtractor(scale=SCALE, threshold=60, blur_radius=0).working_alpha(source_blurred)

    assert alpha[60, 97] < 60


def test_default_extractor_merges_nearby_masses(linear_viewport):
    merged = ContourExtractor().extract(two_masses(), linear_viewport)
    sharp = ContourExtractor(blur_radius=0).extract(two_masses(), linear_viewport)

    # Gap spans lng 12..14 around lat 2; the bridged shape has no edge there
    def in_gap(segment):
        return 11.0 < segment.p1.lng < 15.0 and 0.5 < segment.p1.lat < 3.5

    assert [s for s in sharp.segments if in_gap(s)]
    assert not [s for s in merged.segments if in_gap(s)]
