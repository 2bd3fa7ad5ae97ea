"""Tiling grid and per-chunk result data structures."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class Chunk(BaseModel):
    id: str  # "col,row"
    col: int
    row: int
    x: int
    y: int
    width: int
    height: int
    pixel_count: int


class ChunkGrid(BaseModel):
    columns: int
    rows: int
    chunks: list[Chunk] = Field(default_factory=list)


class ChunkResult(Chunk):
    match_score: float = 0.0
    diff_thumbnail: Optional[str] = None  # base64 PNG
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class ConsolidatedResult(BaseModel):
    overall_score: float
    passed: bool
    total_chunks: int
    failed_chunks: int  # below pass threshold, errored chunks included
    errored_chunks: int = 0
    problem_areas: list[ChunkResult] = Field(default_factory=list)
