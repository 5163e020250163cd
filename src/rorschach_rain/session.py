# session.py
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple
import numpy as np
from .analyzers.classifier import ShapeClassifier
from .analyzers.namer import ShapeNamer, crop_for_namer
from .config import RorschachConfig
from .downloaders.feed_client import FeedClient
from .downloaders.tile_cache import TileCache
from .exceptions import FeedUnavailableError, NamerError
from .models import (Blob, ClassificationResult, CompositeResult, Frame, FrameSequence,
                     PixelBounds, RenderMode, Viewport)
from .processors import ink
from .processors.compositor import FrameCompositor
from .processors.contours import ContourExtractor

# Status texts shown to the user
CONNECTING = 'CONNECTING...'
ONLINE = 'ONLINE'
SCANNING = 'SCANNING...'
OFFLINE = 'OFFLINE MODE'
PLAYING = 'PLAYING'
ANALYZING = 'ANALYZING...'
NAMING = 'VISION ANALYSIS...'
NO_SHAPE = 'NO SHAPE DETECTED'
COMPLETE = 'ANALYSIS COMPLETE'
ERROR = 'ERROR'


class StatusBoard:
    """Current user-facing status line plus its history"""

    def __init__(self):
        self.text = ''
        self.blink = False
        self.history: List[Tuple[str, bool]] = []
        self.logger = logging.getLogger(__name__)

    def update(self, text: str, blink: bool = False) -> None:
        if (text, blink) == (self.text, self.blink):
            return
        self.text = text
        self.blink = blink
        self.history.append((text, blink))
        self.logger.info(f"Status: {text}")


class AnalysisStatus(str, Enum):
    COMPLETE = "complete"
    NO_SHAPE = "no_shape"


@dataclass
class AnalysisOutcome:
    """Result of one identify request"""
    status: AnalysisStatus
    blob: Optional[Blob] = None
    result: Optional[ClassificationResult] = None
    source: str = "local"
    error: Optional[str] = None


@dataclass
class RenderResult:
    image: np.ndarray
    composite: CompositeResult = field(repr=False)

    @property
    def fully_synced(self) -> bool:
        return self.composite.fully_synced


class RorschachSession:
    """Owns the tile cache, frame index and analysis for one viewer"""

    def __init__(self, config: RorschachConfig, cache: TileCache,
                 feed_client: Optional[FeedClient] = None,
                 classifier: Optional[ShapeClassifier] = None,
                 namer: Optional[ShapeNamer] = None,
                 status: Optional[StatusBoard] = None,
                 rng: Optional[random.Random] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.cache = cache
        self.feed_client = feed_client
        self.rng = rng or random.Random(config.random_seed)
        self.classifier = classifier or ShapeClassifier(self.rng)
        self.namer = namer
        self.status = status or StatusBoard()
        self.sleep = sleep
        self.logger = logging.getLogger(__name__)

        self.compositor = FrameCompositor(cache, config.tile_size)
        self.extractor = ContourExtractor(config.extract_scale, config.alpha_threshold,
                                          config.extract_blur_px, config.extract_contrast_pct)

        self.sequence: Optional[FrameSequence] = None
        self.frames: List[Frame] = []
        self.current_index = 0
        self.mode = RenderMode.RADAR
        self.last_composite: Optional[CompositeResult] = None
        self.last_render: Optional[np.ndarray] = None

        self.logger.info("RorschachSession initialized")

    # Frames

    def load_frames(self) -> bool:
        """Fetch the frame index; False leaves the session in offline mode"""
        self.status.update(CONNECTING, True)
        try:
            self.sequence = self.feed_client.fetch_frames()
        except FeedUnavailableError as e:
            self.logger.error(f"Radar feed unavailable: {e}")
            self.status.update(OFFLINE, False)
            return False

        self.frames = list(self.sequence.frames)
        if not self.frames:
            self.logger.error("Radar feed contained no frames")
            self.status.update(ERROR, True)
            return False

        self.current_index = self.sequence.initial_index
        self.status.update(ONLINE, False)
        return True

    @property
    def current_frame(self) -> Optional[Frame]:
        if not self.frames:
            return None
        return self.frames[self.current_index]

    def is_nowcast(self, index: Optional[int] = None) -> bool:
        index = self.current_index if index is None else index
        return self.sequence is not None and index >= self.sequence.past_count

    def show_frame(self, index: int, viewport: Optional[Viewport] = None) -> bool:
        """Select a frame and warm the cache for it and the next few"""
        if not 0 <= index < len(self.frames):
            return False

        self.current_index = index
        if viewport is not None:
            upcoming = self.frames[index:index + self.config.preload_frames]
            self.cache.preload(upcoming, viewport)
        return True

    def next_frame(self, viewport: Optional[Viewport] = None) -> bool:
        """Animation step with wrap-around"""
        if not self.frames:
            return False
        return self.show_frame((self.current_index + 1) % len(self.frames), viewport)

    def set_mode(self, mode) -> None:
        self.mode = RenderMode(mode)

    # Rendering

    def render(self, composite: CompositeResult) -> np.ndarray:
        """Rendered RGBA frame for the current display mode"""
        buffer = composite.buffer
        blank = np.zeros_like(buffer)

        if self.mode == RenderMode.RADAR:
            return ink.blend_over(blank, buffer, self.config.radar_opacity)

        blots = ink.stylize(ink.binarize(buffer), self.config.render_blur_px,
                            self.config.render_contrast_pct)
        if self.mode == RenderMode.INKBLOT:
            return ink.blend_over(blank, blots, self.config.ink_opacity)

        radar = ink.blend_over(blank, buffer, self.config.both_radar_opacity)
        return ink.blend_over(radar, blots, self.config.both_ink_opacity)

    def refresh(self, viewport: Viewport) -> Optional[RenderResult]:
        """Composite and render the current frame for viewport, status untouched"""
        frame = self.current_frame
        if frame is None:
            return None

        composite = self.compositor.composite(frame, viewport)
        image = self.render(composite)
        self.last_composite = composite
        self.last_render = image
        return RenderResult(image=image, composite=composite)

    def composite_and_render(self, viewport: Viewport) -> Optional[RenderResult]:
        """Once per display frame; never waits on tile I/O"""
        rendered = self.refresh(viewport)
        if rendered is None:
            return None

        if rendered.fully_synced:
            self.status.update(ONLINE, False)
        else:
            self.status.update(SCANNING, True)
        return rendered

    # Analysis

    def extract_blob(self, viewport: Viewport, clip_rect: Optional[PixelBounds] = None) -> Optional[Blob]:
        """Re-composite for this viewport, binarize and trace the outline"""
        # Segments are projected through viewport, so the buffer must match it
        rendered = self.refresh(viewport)
        if rendered is None:
            return None

        mask = ink.binarize(rendered.composite.buffer)
        return self.extractor.extract(mask, viewport, clip_rect)

    def analyze_local(self, viewport: Viewport, clip_rect: Optional[PixelBounds] = None,
                      blob: Optional[Blob] = None) -> AnalysisOutcome:
        self.status.update(ANALYZING, True)

        if blob is None:
            blob = self.extract_blob(viewport, clip_rect)
        if blob is None:
            self.status.update(NO_SHAPE, False)
            return AnalysisOutcome(status=AnalysisStatus.NO_SHAPE)

        result = self.classifier.classify(blob, viewport, self.rng)
        self.status.update(COMPLETE, False)
        return AnalysisOutcome(status=AnalysisStatus.COMPLETE, blob=blob, result=result)

    def analyze_with_namer(self, viewport: Viewport,
                           clip_rect: Optional[PixelBounds] = None) -> AnalysisOutcome:
        blob = self.extract_blob(viewport, clip_rect)
        if blob is None and clip_rect is None:
            self.status.update(NO_SHAPE, False)
            return AnalysisOutcome(status=AnalysisStatus.NO_SHAPE)

        self.status.update(NAMING, True)
        try:
            if self.namer is None:
                raise NamerError("No shape namer configured")
            if self.last_render is None:
                raise NamerError("Nothing has been rendered yet")

            image = crop_for_namer(self.last_render, clip_rect, self.config.namer_max_edge)
            category = self.rng.choice(self.config.namer_categories)
            noun = self.namer.name(image, category)
        except NamerError as e:
            self.logger.error(f"Shape namer failed: {e}")
            self.status.update(ERROR, True)
            self.sleep(self.config.namer_fallback_delay)

            outcome = self.analyze_local(viewport, clip_rect, blob)
            outcome.error = f"API ERROR: {e}"
            return outcome

        metrics = self.classifier.measure(blob, viewport) if blob is not None else None
        result = ClassificationResult(label=noun, icon="✨", adjective="", metrics=metrics)
        self.status.update(COMPLETE, False)
        return AnalysisOutcome(status=AnalysisStatus.COMPLETE, blob=blob, result=result, source="namer")

    def identify(self, viewport: Viewport, clip_rect: Optional[PixelBounds] = None,
                 use_namer: bool = False) -> AnalysisOutcome:
        """Outline and name the precipitation in view (or in the selection)"""
        if self.mode == RenderMode.RADAR:
            self.set_mode(RenderMode.INKBLOT)

        if use_namer:
            return self.analyze_with_namer(viewport, clip_rect)
        return self.analyze_local(viewport, clip_rect)

    def close(self) -> None:
        self.cache.close()
        self.logger.info("RorschachSession closed")
