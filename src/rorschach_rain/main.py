# main.py
import argparse
import logging
import sys
import time
from typing import Callable, List, Optional
import requests
from .analyzers.namer import GeminiShapeNamer
from .config import RorschachConfig
from .downloaders.feed_client import FeedClient
from .downloaders.tile_cache import TileCache
from .downloaders.tile_fetcher import TileFetcher
from .models import LatLng, PixelBounds, RenderMode, Viewport
from .processors.annotator import annotate
from .session import AnalysisStatus, RenderResult, RorschachSession
from .utils import frame_datetime, format_frame_time, sanitize_filename
from .viewport import MercatorViewport


def configure_logging(log_file: str, level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout)
        ]
    )


def build_session(config: RorschachConfig, use_namer: bool = False) -> RorschachSession:
    """Wire up the cache, feed client and analyzers for one session"""
    http = requests.Session()
    cache = TileCache(
        TileFetcher(config, http),
        max_workers=config.tile_workers,
        max_tiles=config.tile_cache_max_tiles,
        tile_size=config.tile_size,
        preload_limit=config.preload_frames,
    )
    namer = GeminiShapeNamer(config, http) if use_namer else None
    return RorschachSession(config, cache, feed_client=FeedClient(config, http), namer=namer)


class RenderLoop:
    """Calls composite_and_render once per display tick"""

    def __init__(self, session: RorschachSession, fps: float = 60.0,
                 sleep: Callable[[float], None] = time.sleep):
        self.session = session
        self.interval = 1.0 / fps if fps > 0 else 0.0
        self.sleep = sleep
        self.ticks = 0
        self.logger = logging.getLogger(__name__)

    def tick(self, viewport: Viewport) -> Optional[RenderResult]:
        self.ticks += 1
        return self.session.composite_and_render(viewport)

    def run_until_synced(self, viewport: Viewport, max_ticks: int) -> Optional[RenderResult]:
        """Render until every covering tile is drawn or max_ticks is reached"""
        result = None
        for _ in range(max_ticks):
            started = time.perf_counter()
            result = self.tick(viewport)
            if result is None or result.fully_synced:
                break
            self.sleep(max(0.0, self.interval - (time.perf_counter() - started)))

        if result is not None and not result.fully_synced:
            self.logger.warning(
                f"Gave up waiting for tiles after {self.ticks} ticks "
                f"({result.composite.loaded}/{result.composite.total} loaded)")
        return result


def parse_args(argv: Optional[List[str]], config: RorschachConfig) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='rorschach-rain',
        description="Find shapes in the current precipitation radar")
    parser.add_argument('--lat', type=float, default=config.default_center[0])
    parser.add_argument('--lng', type=float, default=config.default_center[1])
    parser.add_argument('--zoom', type=int, default=config.default_zoom)
    parser.add_argument('--width', type=int, default=config.viewport_width)
    parser.add_argument('--height', type=int, default=config.viewport_height)
    parser.add_argument('--frame', type=int, default=None,
                        help="frame index (default: newest past frame)")
    parser.add_argument('--mode', choices=[m.value for m in RenderMode], default=RenderMode.INKBLOT.value)
    parser.add_argument('--select', type=float, nargs=4, metavar=('X1', 'Y1', 'X2', 'Y2'),
                        help="analyse only this pixel rectangle")
    parser.add_argument('--namer', action='store_true', help="ask the external shape namer")
    parser.add_argument('--seed', type=int, default=config.random_seed)
    parser.add_argument('--max-ticks', type=int, default=600)
    parser.add_argument('--output', nargs='?', const='', default=None,
                        help="save the annotated frame as PNG (named after the frame time if no path is given)")
    parser.add_argument('--verbose', action='store_true')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point"""
    config = RorschachConfig()
    args = parse_args(argv, config)
    config.random_seed = args.seed

    configure_logging(config.log_file, logging.DEBUG if args.verbose else logging.INFO)
    logger = logging.getLogger(__name__)

    missing = config.validate(use_namer=args.namer)
    if missing:
        logger.error(f"Missing required configuration: {', '.join(missing)}")
        return 1

    session = build_session(config, use_namer=args.namer)
    try:
        if not session.load_frames():
            logger.error("Could not load radar frames")
            return 1

        viewport = MercatorViewport(LatLng(args.lat, args.lng), args.zoom,
                                    args.width, args.height, config.tile_size)
        index = session.current_index if args.frame is None else args.frame
        if not session.show_frame(index, viewport):
            logger.error(f"Frame index {index} out of range (0-{len(session.frames) - 1})")
            return 1
        session.set_mode(args.mode)

        frame = session.current_frame
        logger.info(f"Showing frame {format_frame_time(frame.timestamp, config.display_timezone)}")

        RenderLoop(session, config.fps).run_until_synced(viewport, args.max_ticks)

        clip_rect = PixelBounds.from_corners(*args.select) if args.select else None
        outcome = session.identify(viewport, clip_rect, use_namer=args.namer)

        if outcome.error:
            logger.warning(outcome.error)
        if outcome.status == AnalysisStatus.NO_SHAPE:
            print(session.status.text)
        else:
            result = outcome.result
            print(f"{result.icon} {result.adjective} {result.label}".replace('  ', ' ').strip())
            if result.metrics is not None:
                print(f"  category={result.metrics.category} "
                      f"normalized_magnitude={result.metrics.normalized_magnitude:.3f} "
                      f"aspect_ratio={result.metrics.aspect_ratio:.2f} "
                      f"ruggedness={result.metrics.ruggedness:.2f}")

        if args.output is not None:
            when = frame_datetime(frame.timestamp, config.display_timezone)
            image = annotate(session.last_render, viewport, outcome.blob, outcome.result,
                             when, session.is_nowcast(), clip_rect)
            output = args.output or sanitize_filename(f"{when.isoformat()}.png")
            image.save(output)
            logger.info(f"Saved annotated frame to {output}")

        return 0

    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
        return 130
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
