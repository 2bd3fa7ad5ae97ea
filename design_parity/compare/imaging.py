"""Raster decoding, cropping and encoding helpers built on Pillow and numpy."""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass
from typing import Union

import numpy as np
from PIL import Image

from design_parity.models.comparison import Bounds


@dataclass(frozen=True)
class RasterImage:
    """Decoded RGBA pixels; treated as read-only, crops produce new images."""
    data: np.ndarray  # shape (height, width, 4), uint8
    width: int
    height: int
    channels: int = 4

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def pixel_count(self) -> int:
        return self.width * self.height


ImageInput = Union[bytes, bytearray, str, RasterImage, Image.Image]


def decode_image(source: ImageInput) -> RasterImage:
    """Decode PNG/JPEG bytes, a base64 string or a PIL image to RGBA."""
    if isinstance(source, RasterImage):
        return source
    if isinstance(source, Image.Image):
        pil = source
    else:
        raw = base64.b64decode(source) if isinstance(source, str) else bytes(source)
        pil = Image.open(io.BytesIO(raw))
        pil.load()
    rgba = pil.convert("RGBA")
    data = np.asarray(rgba, dtype=np.uint8).copy()
    data.flags.writeable = False
    return RasterImage(data=data, width=rgba.width, height=rgba.height)


def get_image_dimensions(source: ImageInput) -> tuple[int, int]:
    """Width and height without decoding pixel data when given bytes."""
    if isinstance(source, RasterImage):
        return source.size
    if isinstance(source, Image.Image):
        return source.size
    raw = base64.b64decode(source) if isinstance(source, str) else bytes(source)
    with Image.open(io.BytesIO(raw)) as pil:
        return pil.size


def crop(image: RasterImage, bounds: Bounds) -> RasterImage:
    """Return the sub-image at `bounds`, clipped to the image extent."""
    x0 = max(0, min(bounds.x, image.width))
    y0 = max(0, min(bounds.y, image.height))
    x1 = max(x0, min(bounds.x + bounds.width, image.width))
    y1 = max(y0, min(bounds.y + bounds.height, image.height))
    data = image.data[y0:y1, x0:x1].copy()
    data.flags.writeable = False
    return RasterImage(data=data, width=x1 - x0, height=y1 - y0)


def to_pil(image: RasterImage) -> Image.Image:
    return Image.fromarray(np.ascontiguousarray(image.data), mode="RGBA")


def encode_png(image: RasterImage) -> bytes:
    buf = io.BytesIO()
    to_pil(image).save(buf, format="PNG")
    return buf.getvalue()


def encode_png_base64(image: RasterImage) -> str:
    return base64.b64encode(encode_png(image)).decode("ascii")


def resize_image(image: RasterImage, width: int, height: int) -> RasterImage:
    """Stretch to exactly width x height. Never used before comparing."""
    return decode_image(to_pil(image).resize((width, height)))


def generate_diff_thumbnail(diff: ImageInput, max_side: int = 512) -> str:
    """Downscale a diff image so its longest side is at most `max_side`; base64 PNG."""
    pil = to_pil(decode_image(diff))
    scale = min(max_side / pil.width, max_side / pil.height, 1.0)
    new_size = (max(1, round(pil.width * scale)), max(1, round(pil.height * scale)))
    if new_size != pil.size:
        pil = pil.resize(new_size, Image.LANCZOS)
    buf = io.BytesIO()
    pil.save(buf, format="PNG", optimize=True)
    return base64.b64encode(buf.getvalue()).decode("ascii")
