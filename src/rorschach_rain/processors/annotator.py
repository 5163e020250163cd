# processors/annotator.py
from datetime import datetime
from typing import Optional
import numpy as np
from PIL import Image, ImageDraw, ImageFont
from ..models import Blob, ClassificationResult, PixelBounds, Viewport

OUTLINE_COLOR = (255, 0, 0, 255)
OUTLINE_WIDTH = 5
BACKGROUND = (0, 0, 0, 255)


def load_font(font_size: int, font_path: Optional[str] = None):
    try:
        return ImageFont.truetype(font_path or "DejaVuSans.ttf", font_size)
    except IOError:
        return ImageFont.load_default()


def draw_outlines(image: Image.Image, blob: Blob, viewport: Viewport) -> Image.Image:
    """Draw the blob's boundary segments in container pixels"""
    draw = ImageDraw.Draw(image)
    for segment in blob.segments:
        x1, y1 = viewport.lat_lng_to_container_point(segment.p1.lat, segment.p1.lng)
        x2, y2 = viewport.lat_lng_to_container_point(segment.p2.lat, segment.p2.lng)
        draw.line([(float(x1), float(y1)), (float(x2), float(y2))],
                  fill=OUTLINE_COLOR, width=OUTLINE_WIDTH)
    return image


def add_caption(image: Image.Image, text: str, x: float, y: float, font_size: int = 32) -> Image.Image:
    """Centre a caption on (x, y)"""
    draw = ImageDraw.Draw(image)
    font = load_font(font_size)
    text_bbox = draw.textbbox((0, 0), text, font=font)
    text_width = text_bbox[2] - text_bbox[0]
    text_height = text_bbox[3] - text_bbox[1]
    draw.text((x - text_width / 2, y - text_height / 2), text, font=font,
              fill="white", stroke_width=2, stroke_fill="black")
    return image


def add_timestamp(image: Image.Image, timestamp: datetime, is_forecast: bool = False) -> Image.Image:
    """Frame time in the bottom-left corner; nowcast frames are marked"""
    draw = ImageDraw.Draw(image)
    font = load_font(24)
    timestamp_text = timestamp.strftime('%d. %B %Y - %H:%M')
    text = "Nowcast" if is_forecast else ""
    full_text = f"{timestamp_text}\n{text}" if text else timestamp_text
    text_bbox = draw.textbbox((0, 0), full_text, font=font)
    text_height = text_bbox[3] - text_bbox[1]
    margin = 10
    x = margin
    y = image.size[1] - text_height - margin
    draw.text((x, y), full_text, font=font, fill="white")
    return image


def annotate(frame_image: np.ndarray, viewport: Viewport, blob: Optional[Blob] = None,
             result: Optional[ClassificationResult] = None,
             timestamp: Optional[datetime] = None, is_forecast: bool = False,
             clip_rect: Optional[PixelBounds] = None) -> Image.Image:
    """Flatten a rendered frame onto black and draw the analysis on top"""
    layer = Image.fromarray(np.ascontiguousarray(frame_image), 'RGBA')
    image = Image.alpha_composite(Image.new('RGBA', layer.size, BACKGROUND), layer)

    if blob is not None:
        image = draw_outlines(image, blob, viewport)

    if result is not None:
        caption = f"{result.adjective} {result.label}".strip()
        if blob is not None:
            cx, cy = viewport.lat_lng_to_container_point(blob.center.lat, blob.center.lng)
        elif clip_rect is not None:
            cx = (clip_rect.min_x + clip_rect.max_x) / 2
            cy = (clip_rect.min_y + clip_rect.max_y) / 2
        else:
            cx, cy = image.size[0] / 2, image.size[1] / 2
        image = add_caption(image, caption, float(cx), float(cy))

    if timestamp is not None:
        image = add_timestamp(image, timestamp, is_forecast)

    return image.convert('RGB')
