# downloaders/tile_cache.py
import logging
import threading
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Dict, Optional, Sequence
import numpy as np
from ..models import CachedTile, Frame, TileKey, TileState, Viewport
from ..utils import covering_tiles

TileSource = Callable[[TileKey], np.ndarray]


class TileCache:
    """
    Holds fetched radar tiles keyed by (path, zoom, x, y).

    ``get`` never blocks: a missing tile schedules one background fetch and
    returns None until the tile is READY. At most one fetch per key is in
    flight. Failed fetches are not cached, so the next ``get`` retries.

    ``max_tiles`` bounds the number of READY tiles with LRU eviction; None or
    0 keeps every tile for the lifetime of the cache.
    """

    def __init__(self, fetcher: TileSource, max_workers: int = 4,
                 max_tiles: Optional[int] = None, tile_size: int = 256,
                 preload_limit: int = 5):
        self.fetcher = fetcher
        self.max_tiles = max_tiles or None
        self.tile_size = tile_size
        self.preload_limit = preload_limit
        self.logger = logging.getLogger(__name__)

        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="tile-fetch")
        self._tiles: "OrderedDict[TileKey, CachedTile]" = OrderedDict()
        self._in_flight: Dict[TileKey, CachedTile] = {}
        self._lock = threading.Lock()
        self._closed = False

        self.fetch_count = 0
        self.failure_count = 0

    def get(self, key: TileKey) -> Optional[CachedTile]:
        """Return the READY tile for key, or None after scheduling a fetch"""
        with self._lock:
            tile = self._tiles.get(key)
            if tile is not None:
                self._tiles.move_to_end(key)
                return tile

            if key in self._in_flight or self._closed:
                return None

            tile = CachedTile(key=key)
            self._in_flight[key] = tile
            self.fetch_count += 1
            tile.future = self._executor.submit(self._fetch, tile)

        return None

    def _fetch(self, tile: CachedTile) -> None:
        """Runs on a worker thread; publishes the result into the cache"""
        try:
            image = self.fetcher(tile.key)
        except Exception as e:
            with self._lock:
                tile.state = TileState.FAILED
                self._in_flight.pop(tile.key, None)
                self.failure_count += 1
            self.logger.debug(f"Tile fetch failed for {tile.key}: {e}")
            return

        with self._lock:
            tile.image = image
            tile.state = TileState.READY
            self._in_flight.pop(tile.key, None)
            self._tiles[tile.key] = tile
            self._evict()

    def _evict(self) -> None:
        if not self.max_tiles:
            return

        while len(self._tiles) > self.max_tiles:
            key, _ = self._tiles.popitem(last=False)
            self.logger.debug(f"Evicted tile {key}")

    def preload(self, frames: Sequence[Frame], viewport: Viewport) -> None:
        """Warm the cache for the upcoming frames at the current view"""
        zoom = viewport.zoom
        tiles = list(covering_tiles(viewport, self.tile_size))

        for frame in list(frames)[:self.preload_limit]:
            for x, y in tiles:
                self.get(TileKey(frame.path, zoom, x, y))

    def state(self, key: TileKey) -> Optional[TileState]:
        with self._lock:
            if key in self._tiles:
                return TileState.READY
            if key in self._in_flight:
                return TileState.PENDING
        return None

    def is_in_flight(self, key: TileKey) -> bool:
        with self._lock:
            return key in self._in_flight

    def __len__(self) -> int:
        with self._lock:
            return len(self._tiles)

    def __contains__(self, key: TileKey) -> bool:
        with self._lock:
            return key in self._tiles

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for outstanding fetches; True when none are left"""
        with self._lock:
            futures = [tile.future for tile in self._in_flight.values() if tile.future]
        if not futures:
            return True

        _, not_done = wait(futures, timeout=timeout)
        return not not_done

    def close(self) -> None:
        """Stop accepting fetches and shut the worker pool down"""
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=True, cancel_futures=True)
        with self._lock:
            # Cancelled fetches never publish
            self._in_flight.clear()
        self.logger.info(f"Tile cache closed with {len(self)} tiles")
