from __future__ import annotations

import numpy as np
import pytest

from conftest import LinearViewport
from rorschach_rain.downloaders.tile_cache import TileCache
from rorschach_rain.models import Frame, TileKey
from rorschach_rain.processors.compositor import FrameCompositor

FRAME = Frame(timestamp=1700000000, path="/v2/radar/1700000000")


@pytest.fixture
def cache(fetcher):
    cache = TileCache(fetcher, max_workers=2)
    yield cache
    cache.close()


@pytest.fixture
def viewport():
    # Tiles x = 0, 1, 2 at y = 0, drawn at container x = -128, 128, 384
    return LinearViewport(width=512, height=256, deg_per_px=0.125, origin=(128.0, 0.0))


def test_cold_cache_reports_no_coverage_and_blank_buffer(cache, viewport):
    result = FrameCompositor(cache).composite(FRAME, viewport)

    assert result.buffer.shape == (256, 512, 4)
    assert result.loaded == 0
    assert result.total == 3
    assert not result.fully_synced
    assert not result.buffer.any()


def test_ready_tiles_are_drawn_at_screen_position(cache, fetcher, viewport):
    compositor = FrameCompositor(cache)
    compositor.composite(FRAME, viewport)
    assert cache.drain(timeout=5)

    result = compositor.composite(FRAME, viewport)

    assert result.loaded == result.total == 3
    assert result.fully_synced

    tiles = {x: fetcher.image_for(TileKey(FRAME.path, viewport.zoom, x, 0)) for x in range(3)}
    # Left half of the view shows the right half of tile 0
    assert np.array_equal(result.buffer[:, 0:128], tiles[0][:, 128:256])
    assert np.array_equal(result.buffer[:, 128:384], tiles[1])
    assert np.array_equal(result.buffer[:, 384:512], tiles[2][:, 0:128])


def test_missing_tile_leaves_region_blank(cache, fetcher, viewport):
    fetcher.missing.add(TileKey(FRAME.path, viewport.zoom, 1, 0))
    compositor = FrameCompositor(cache)
    compositor.composite(FRAME, viewport)
    assert cache.drain(timeout=5)

    result = compositor.composite(FRAME, viewport)

    assert (result.loaded, result.total) == (2, 3)
    assert not result.buffer[:, 128:384].any()
    assert result.buffer[:, 0:128, 3].all()


def test_composite_is_idempotent_for_fixed_cache_state(cache, viewport):
    compositor = FrameCompositor(cache)
    compositor.composite(FRAME, viewport)
    assert cache.drain(timeout=5)

    first = compositor.composite(FRAME, viewport)
    second = compositor.composite(FRAME, viewport)

    assert first.buffer.tobytes() == second.buffer.tobytes()
    assert first.buffer is not second.buffer


def test_blit_clips_to_buffer(cache):
    compositor = FrameCompositor(cache)
    buffer = np.zeros((10, 10, 4), dtype=np.uint8)
    image = np.full((4, 4, 4), 9, dtype=np.uint8)

    compositor.blit(buffer, image, -2, 8)

    assert buffer[8:10, 0:2].sum() == 2 * 2 * 4 * 9
    assert buffer.sum() == 2 * 2 * 4 * 9

    compositor.blit(buffer, image, 20, 20)
    assert buffer.sum() == 2 * 2 * 4 * 9
