# processors/ink.py
"""
Ink transform: turns composited radar into white ink blots.

``stylize`` follows canvas filter semantics: the gaussian blur runs on
premultiplied RGBA with transparent edges, and the contrast stretch then acts
on the colour channels only. Alpha carries the blurred coverage, which is what
the contour extractor thresholds.
"""
import numpy as np
from scipy.ndimage import gaussian_filter


def binarize(buffer: np.ndarray) -> np.ndarray:
    """Every pixel with alpha > 0 becomes opaque white; others are untouched"""
    result = buffer.copy()
    result[buffer[..., 3] > 0] = 255
    return result


def stylize(buffer: np.ndarray, blur_radius: float, contrast_percent: float) -> np.ndarray:
    """Gaussian blur of the given radius followed by a contrast expansion"""
    rgba = buffer.astype(np.float32)
    alpha = rgba[..., 3:4] / 255.0

    premultiplied = np.concatenate([rgba[..., :3] * alpha, rgba[..., 3:4]], axis=-1)
    if blur_radius > 0:
        premultiplied = gaussian_filter(premultiplied, sigma=(blur_radius, blur_radius, 0),
                                        mode='constant', cval=0.0)

    blurred_alpha = premultiplied[..., 3:4]
    with np.errstate(divide='ignore', invalid='ignore'):
        rgb = np.where(blurred_alpha > 0, premultiplied[..., :3] * 255.0 / blurred_alpha, 0.0)

    factor = contrast_percent / 100.0
    rgb = (rgb - 127.5) * factor + 127.5

    result = np.concatenate([rgb, blurred_alpha], axis=-1)
    return np.clip(np.rint(result), 0, 255).astype(np.uint8)


def blend_over(dst: np.ndarray, src: np.ndarray, opacity: float = 1.0) -> np.ndarray:
    """Source-over composite of src onto dst with a global opacity"""
    src_f = src.astype(np.float32) / 255.0
    dst_f = dst.astype(np.float32) / 255.0

    src_a = src_f[..., 3:4] * opacity
    dst_a = dst_f[..., 3:4]
    out_a = src_a + dst_a * (1.0 - src_a)

    with np.errstate(divide='ignore', invalid='ignore'):
        out_rgb = np.where(
            out_a > 0,
            (src_f[..., :3] * src_a + dst_f[..., :3] * dst_a * (1.0 - src_a)) / out_a,
            0.0)

    out = np.concatenate([out_rgb, out_a], axis=-1) * 255.0
    return np.clip(np.rint(out), 0, 255).astype(np.uint8)
