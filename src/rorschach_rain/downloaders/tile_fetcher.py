# downloaders/tile_fetcher.py
import io
import logging
import cv2
import numpy as np
import requests
from PIL import Image, UnidentifiedImageError
from ..config import RorschachConfig
from ..exceptions import TileFetchError
from ..models import TileKey
from ..utils import build_tile_url

class TileFetcher:
    """Downloads one radar tile and decodes it to an RGBA array"""

    def __init__(self, config: RorschachConfig, session: requests.Session = None):
        self.config = config
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    def decode(self, content: bytes) -> np.ndarray:
        """Decode image bytes into a tile_size x tile_size x 4 uint8 array"""
        try:
            with Image.open(io.BytesIO(content)) as image:
                rgba = np.asarray(image.convert('RGBA'), dtype=np.uint8)
        except (UnidentifiedImageError, OSError) as e:
            raise TileFetchError(f"Undecodable tile image: {e}")

        size = self.config.tile_size
        if rgba.shape[:2] != (size, size):
            rgba = cv2.resize(rgba, (size, size), interpolation=cv2.INTER_LINEAR)
        return rgba

    def __call__(self, key: TileKey) -> np.ndarray:
        """Fetch a single tile, raising TileFetchError on any failure"""
        url = build_tile_url(self.config.tile_url_template, key)
        try:
            response = self.session.get(url, timeout=self.config.tile_timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise TileFetchError(f"Failed to fetch {url}: {e}")

        return self.decode(response.content)
