"""Image comparison result data structures."""

from __future__ import annotations

import math
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

Severity = Literal["minor", "moderate", "critical"]

GRID_AREAS: tuple[tuple[str, str, str], ...] = (
    ("top-left", "top-center", "top-right"),
    ("middle-left", "center", "middle-right"),
    ("bottom-left", "bottom-center", "bottom-right"),
)


class Bounds(BaseModel):
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    @field_validator("x", "y", "width", "height", mode="before")
    @classmethod
    def round_half_up(cls, v):
        # Design exports use fractional pixel coordinates
        if isinstance(v, float):
            return math.floor(v + 0.5)
        return v

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def right(self) -> int:
        return self.x + self.width


class Dimensions(BaseModel):
    width: int
    height: int


class Region(BaseModel):
    """One cell of the 3x3 grid whose local mismatch passed the reporting floor."""
    area: str
    bounds: Bounds
    mismatch_percent: float
    severity: Severity
    possible_cause: str


class ComparisonResult(BaseModel):
    match_score: float = Field(ge=0.0, le=100.0)
    mismatched_pixels: int = Field(ge=0)
    total_pixels: int = Field(ge=0)
    dimensions: Dimensions
    regions: list[Region] = Field(default_factory=list)
    threshold: float = 0.1
    diff_image_base64: Optional[str] = None

    @property
    def passed_pixels(self) -> int:
        return self.total_pixels - self.mismatched_pixels
