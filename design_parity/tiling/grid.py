"""Chunk grid geometry for targets too large to rasterize in one piece."""

from __future__ import annotations

import math

from design_parity.models.comparison import Bounds
from design_parity.models.tiling import Chunk, ChunkGrid

TILING_THRESHOLD = 4096
DEFAULT_CHUNK_SIZE = 2048

MAX_PIXELS = 32 * 1024 * 1024
SAFE_PIXELS = 16 * 1024 * 1024


def needs_tiling(width: int, height: int, threshold: int = TILING_THRESHOLD) -> bool:
    return width > threshold or height > threshold


def calculate_chunk_grid(width: int, height: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> ChunkGrid:
    """Split width x height into row-major chunks; the last row and column are clipped."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid target size {width}x{height}")
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    columns = math.ceil(width / chunk_size)
    rows = math.ceil(height / chunk_size)
    chunks = []
    for row in range(rows):
        for col in range(columns):
            x = col * chunk_size
            y = row * chunk_size
            w = min(chunk_size, width - x)
            h = min(chunk_size, height - y)
            chunks.append(Chunk(
                id=f"{col},{row}", col=col, row=row,
                x=x, y=y, width=w, height=h, pixel_count=w * h,
            ))
    return ChunkGrid(columns=columns, rows=rows, chunks=chunks)


def chunk_bounds(chunk: Chunk) -> Bounds:
    return Bounds(x=chunk.x, y=chunk.y, width=chunk.width, height=chunk.height)


def validate_image_size(width: int, height: int) -> dict:
    """Whether a reference of this size can be exported and decoded at all."""
    pixels = width * height
    if pixels > MAX_PIXELS:
        scale = math.sqrt(MAX_PIXELS / pixels)
        return {
            "safe": False,
            "reason": "exceeds_export_limit",
            "recommended_scale": math.floor(scale * 100) / 100,
        }
    if pixels > SAFE_PIXELS:
        return {
            "safe": True,
            "reason": "large_but_processable",
            "warning": "Large image - it will be processed in chunks",
        }
    return {"safe": True}
