"""Perceptual per-pixel differencing over RGBA arrays.

Follows the pixelmatch algorithm: pixels are compared in YIQ space after
blending against white, and differences that look like anti-aliasing
(a pixel sitting on a brightness gradient whose extreme neighbours are
flat in both images) are reported separately instead of being counted.

The image is processed in bands of rows so a 4096x4096 comparison never
materialises more than a band's worth of float arrays at once, and the
anti-aliasing test only runs on the pixels that already exceed the
colour threshold.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

# Largest possible YIQ delta between two colours
MAX_YIQ_DELTA = 35215

AA_COLOR = (255, 255, 0)
DIFF_COLOR = (255, 0, 0)

BAND_ROWS = 256

# 3x3 neighbourhood, x outer and y inner; the order decides ties between
# equally bright neighbours.
_NEIGHBOURS = tuple(
    (dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1) if (dx, dy) != (0, 0)
)


@dataclass
class PixelDiff:
    mismatched: int
    mask: np.ndarray  # bool (height, width), True where a mismatch was counted
    diff_image: Optional[np.ndarray] = None  # uint8 (height, width, 4)


def _blend(c, a):
    return 255.0 + (c - 255.0) * a


def _rgb2y(r, g, b):
    return r * 0.29889531 + g * 0.58662247 + b * 0.11448223


def _rgb2i(r, g, b):
    return r * 0.59597799 - g * 0.27417610 - b * 0.32180189


def _rgb2q(r, g, b):
    return r * 0.21147017 - g * 0.52261711 + b * 0.31114694


def _blended_channels(pixels: np.ndarray):
    p = pixels.astype(np.float64)
    a = p[..., 3] / 255.0
    return _blend(p[..., 0], a), _blend(p[..., 1], a), _blend(p[..., 2], a)


def _luma(pixels: np.ndarray) -> np.ndarray:
    return _rgb2y(*_blended_channels(pixels))


def color_delta(p1: np.ndarray, p2: np.ndarray) -> np.ndarray:
    """Signed squared YIQ distance; negative when the first pixel is brighter.

    Identical RGBA values give exactly 0.
    """
    r1, g1, b1 = _blended_channels(p1)
    r2, g2, b2 = _blended_channels(p2)
    y1 = _rgb2y(r1, g1, b1)
    y2 = _rgb2y(r2, g2, b2)
    y = y1 - y2
    i = _rgb2i(r1, g1, b1) - _rgb2i(r2, g2, b2)
    q = _rgb2q(r1, g1, b1) - _rgb2q(r2, g2, b2)
    delta = 0.5053 * y * y + 0.299 * i * i + 0.1957 * q * q
    delta = np.where(y1 > y2, -delta, delta)
    same = np.all(p1 == p2, axis=-1)
    return np.where(same, 0.0, delta)


def _pack(image: np.ndarray) -> np.ndarray:
    """View an (h, w, 4) uint8 image as (h, w) uint32 for whole-pixel equality."""
    h, w = image.shape[:2]
    return np.ascontiguousarray(image).view(np.uint32).reshape(h, w)


def _on_edge(xs, ys, width, height):
    return (xs == 0) | (xs == width - 1) | (ys == 0) | (ys == height - 1)


def _neighbour(xs, ys, dx, dy, width, height):
    nx = xs + dx
    ny = ys + dy
    valid = (nx >= 0) & (nx < width) & (ny >= 0) & (ny < height)
    return np.clip(nx, 0, width - 1), np.clip(ny, 0, height - 1), valid


def _many_siblings(packed: np.ndarray, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """True where more than two neighbours share the exact pixel value."""
    height, width = packed.shape
    value = packed[ys, xs]
    count = _on_edge(xs, ys, width, height).astype(np.int32)
    for dx, dy in _NEIGHBOURS:
        nx, ny, valid = _neighbour(xs, ys, dx, dy, width, height)
        count += valid & (packed[ny, nx] == value)
    return count > 2


def _antialiased(
    image: np.ndarray, packed: np.ndarray, other_packed: np.ndarray,
    xs: np.ndarray, ys: np.ndarray,
) -> np.ndarray:
    height, width = packed.shape
    n = xs.shape[0]
    center_luma = _luma(image[ys, xs])
    center = packed[ys, xs]

    zeroes = _on_edge(xs, ys, width, height).astype(np.int32)
    min_delta = np.zeros(n)
    max_delta = np.zeros(n)
    min_x = xs.copy()
    min_y = ys.copy()
    max_x = xs.copy()
    max_y = ys.copy()

    for dx, dy in _NEIGHBOURS:
        nx, ny, valid = _neighbour(xs, ys, dx, dy, width, height)
        delta = center_luma - _luma(image[ny, nx])
        delta = np.where(packed[ny, nx] == center, 0.0, delta)

        is_zero = valid & (delta == 0)
        zeroes += is_zero

        darker = valid & ~is_zero & (delta < min_delta)
        min_delta = np.where(darker, delta, min_delta)
        min_x = np.where(darker, nx, min_x)
        min_y = np.where(darker, ny, min_y)

        brighter = valid & ~is_zero & ~darker & (delta > max_delta)
        max_delta = np.where(brighter, delta, max_delta)
        max_x = np.where(brighter, nx, max_x)
        max_y = np.where(brighter, ny, max_y)

    # Flat area or no gradient on one side: a real difference
    gradient = (zeroes <= 2) & (min_delta != 0) & (max_delta != 0)
    result = np.zeros(n, dtype=bool)
    if not gradient.any():
        return result

    idx = np.nonzero(gradient)[0]
    mx, my, Mx, My = min_x[idx], min_y[idx], max_x[idx], max_y[idx]
    flat_min = _many_siblings(packed, mx, my) & _many_siblings(other_packed, mx, my)
    flat_max = _many_siblings(packed, Mx, My) & _many_siblings(other_packed, Mx, My)
    result[idx] = flat_min | flat_max
    return result


def _gray(image: np.ndarray, alpha: float) -> np.ndarray:
    p = image.astype(np.float64)
    y = _rgb2y(p[..., 0], p[..., 1], p[..., 2])
    val = np.clip(np.rint(_blend(y, alpha * p[..., 3] / 255.0)), 0, 255).astype(np.uint8)
    out = np.empty(image.shape[:2] + (4,), dtype=np.uint8)
    out[..., 0] = val
    out[..., 1] = val
    out[..., 2] = val
    out[..., 3] = 255
    return out


def pixelmatch(
    img1: np.ndarray,
    img2: np.ndarray,
    threshold: float = 0.1,
    include_aa: bool = False,
    alpha: float = 0.1,
    output: bool = True,
    band_rows: int = BAND_ROWS,
) -> PixelDiff:
    """Count perceptually different pixels between two same-sized RGBA arrays.

    Args:
        img1, img2: uint8 arrays of shape (height, width, 4).
        threshold: 0..1 colour distance below which pixels are equal.
        include_aa: count anti-aliased pixels as mismatches.
        alpha: opacity of the faded first image in the diff output.
        output: render the diff image (grey copy, red mismatches, yellow AA).
    """
    if img1.shape != img2.shape:
        raise ValueError(f"Image shapes differ: {img1.shape} vs {img2.shape}")
    height, width = img1.shape[:2]
    mask = np.zeros((height, width), dtype=bool)

    if np.array_equal(img1, img2):
        return PixelDiff(0, mask, _gray(img1, alpha) if output else None)

    diff_image = np.empty((height, width, 4), dtype=np.uint8) if output else None
    max_delta = MAX_YIQ_DELTA * threshold * threshold
    packed1 = _pack(img1)
    packed2 = _pack(img2)
    mismatched = 0

    for top in range(0, height, band_rows):
        bottom = min(top + band_rows, height)
        delta = color_delta(img1[top:bottom], img2[top:bottom])
        ys, xs = np.nonzero(np.abs(delta) > max_delta)
        ys = ys + top

        if include_aa or xs.size == 0:
            aa = np.zeros(xs.shape[0], dtype=bool)
        else:
            aa = (_antialiased(img1, packed1, packed2, xs, ys)
                  | _antialiased(img2, packed2, packed1, xs, ys))

        counted = ~aa
        mask[ys[counted], xs[counted]] = True
        mismatched += int(counted.sum())

        if diff_image is not None:
            diff_image[top:bottom] = _gray(img1[top:bottom], alpha)
            diff_image[ys[aa], xs[aa], :3] = AA_COLOR
            diff_image[ys[counted], xs[counted], :3] = DIFF_COLOR

    return PixelDiff(mismatched, mask, diff_image)
