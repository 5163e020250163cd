# analyzers/namer.py
"""
External shape naming.

A namer looks at the rendered ink blot and answers with a single noun. The
session treats it as optional: any failure raises NamerError and the caller
falls back to the local ShapeClassifier.
"""
import base64
import io
import logging
from abc import ABC, abstractmethod
from typing import Optional
import numpy as np
import requests
from PIL import Image
from ..config import RorschachConfig
from ..exceptions import NamerError
from ..models import PixelBounds

PROMPT_TEMPLATE = (
    "Look at this Rorschach inkblot. The image shows WHITE shapes on a BLACK background. "
    "Focus on the WHITE organic shapes. IMPORTANT: Look at the internal black negative space "
    "(holes) within the white shapes, they often form eyes, mouths, or facial features. "
    "It is NOT a map, island, archipelago, or cloud. "
    "Use your imagination. If this shape (including its internal details) were a {category}, "
    "what specific one would it be? "
    "Answer with just the noun (e.g. \"Dragon\", \"Spaceship\", \"Pizza\"). Do not add period."
)


def crop_for_namer(image: np.ndarray, clip_rect: Optional[PixelBounds] = None,
                   max_edge: int = 800) -> Image.Image:
    """Crop a rendered RGBA frame, flatten it onto black and shrink it to max_edge"""
    height, width = image.shape[:2]
    x0, y0, x1, y1 = 0, 0, width, height
    if clip_rect is not None:
        x0 = min(max(int(clip_rect.min_x), 0), width)
        y0 = min(max(int(clip_rect.min_y), 0), height)
        x1 = min(max(int(round(clip_rect.max_x)), x0), width)
        y1 = min(max(int(round(clip_rect.max_y)), y0), height)
    if x1 - x0 < 1 or y1 - y0 < 1:
        raise NamerError("Selection is empty")

    crop = Image.fromarray(np.ascontiguousarray(image[y0:y1, x0:x1]), 'RGBA')
    background = Image.new('RGBA', crop.size, (0, 0, 0, 255))
    flattened = Image.alpha_composite(background, crop).convert('RGB')

    scale = min(1.0, max_edge / max(flattened.size))
    if scale < 1.0:
        new_size = (max(1, int(flattened.width * scale)), max(1, int(flattened.height * scale)))
        flattened = flattened.resize(new_size, Image.Resampling.LANCZOS)
    return flattened


def encode_jpeg(image: Image.Image, quality: int = 80) -> str:
    """Base64 JPEG payload"""
    out = io.BytesIO()
    image.save(out, format='JPEG', quality=quality)
    return base64.b64encode(out.getvalue()).decode('ascii')


class ShapeNamer(ABC):
    """Names the shape in an image, guided by a category hint"""

    @abstractmethod
    def name(self, image: Image.Image, category: str) -> str:
        """Return a single noun; raise NamerError on failure"""


class GeminiShapeNamer(ShapeNamer):
    """Shape namer backed by a generateContent style vision endpoint"""

    def __init__(self, config: RorschachConfig, session: requests.Session = None):
        self.config = config
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    def build_payload(self, image: Image.Image, category: str) -> dict:
        return {
            'contents': [{
                'parts': [
                    {'text': PROMPT_TEMPLATE.format(category=category)},
                    {'inline_data': {
                        'mime_type': 'image/jpeg',
                        'data': encode_jpeg(image, self.config.namer_jpeg_quality),
                    }},
                ]
            }]
        }

    def name(self, image: Image.Image, category: str) -> str:
        if not self.config.namer_api_key:
            raise NamerError("No namer API key configured")

        try:
            response = self.session.post(
                self.config.namer_url,
                params={'key': self.config.namer_api_key},
                json=self.build_payload(image, category),
                timeout=self.config.namer_timeout,
            )
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise NamerError(f"Namer request failed: {e}")

        if isinstance(data, dict) and data.get('error'):
            error = data['error']
            message = error.get('message') if isinstance(error, dict) else str(error)
            raise NamerError(message or "API Error")
        if not response.ok:
            raise NamerError(f"Namer returned HTTP {response.status_code}")

        try:
            text = data['candidates'][0]['content']['parts'][0]['text']
        except (KeyError, IndexError, TypeError):
            raise NamerError("Vision API returned no content")

        noun = text.strip().rstrip('.').upper()
        if not noun:
            raise NamerError("Vision API returned an empty answer")

        self.logger.info(f"Namer identified: {noun}")
        return noun
