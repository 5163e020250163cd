# config.py
from dataclasses import dataclass
from typing import Optional, Tuple, List
import os
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


@dataclass
class RorschachConfig:
    """Configuration for the radar ink-blot system"""
    # Metadata feed and tile transport
    feed_url: str = os.getenv(
        'FEED_URL', "https://api.rainviewer.com/public/weather-maps.json")
    tile_url_template: str = os.getenv(
        'TILE_URL_TEMPLATE',
        "https://tilecache.rainviewer.com{path}/256/{z}/{x}/{y}/2/1_1.png")
    feed_timeout: float = _env_float('FEED_TIMEOUT', 30.0)
    tile_timeout: float = _env_float('TILE_TIMEOUT', 30.0)
    tile_workers: int = _env_int('TILE_WORKERS', 4)
    # 0 keeps every tile for the lifetime of the process
    tile_cache_max_tiles: int = _env_int('TILE_CACHE_MAX_TILES', 0)

    # Map defaults (Portland, OR)
    tile_size: int = 256
    default_center: Tuple[float, float] = (45.5152, -122.6784)
    default_zoom: int = 7
    viewport_width: int = 1280
    viewport_height: int = 720
    preload_frames: int = 5

    # Rendering
    render_blur_px: float = 3.0
    render_contrast_pct: float = 200.0
    radar_opacity: float = 0.8
    ink_opacity: float = 0.9
    both_radar_opacity: float = 0.5
    both_ink_opacity: float = 0.8
    fps: float = 60.0

    # Outline extraction
    extract_blur_px: float = 8.0
    extract_contrast_pct: float = 400.0
    extract_scale: float = 0.75
    alpha_threshold: int = 60

    # External shape namer
    namer_api_key: str = os.getenv('NAMER_API_KEY', '')
    namer_url: str = os.getenv(
        'NAMER_URL',
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-flash-latest:generateContent")
    namer_timeout: float = _env_float('NAMER_TIMEOUT', 20.0)
    namer_fallback_delay: float = 3.0
    namer_max_edge: int = 800
    namer_jpeg_quality: int = 80
    namer_categories: List[str] = None

    # Misc
    display_timezone: str = os.getenv('DISPLAY_TIMEZONE', 'America/Los_Angeles')
    log_file: str = os.getenv('LOG_FILE', 'rorschach_rain.log')
    random_seed: Optional[int] = None

    def __post_init__(self):
        if self.namer_categories is None:
            self.namer_categories = [
                'Monster', 'Sci-Fi Vehicle', 'Animal', 'Food',
                'Tool', 'Human Face', 'Mythical Creature'
            ]

    def validate(self, use_namer: bool = False) -> List[str]:
        """Return the names of required settings that are missing"""
        required_fields = ['feed_url', 'tile_url_template']
        if use_namer:
            required_fields += ['namer_api_key', 'namer_url']

        return [field for field in required_fields if not getattr(self, field)]
