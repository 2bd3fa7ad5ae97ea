"""Per-mode check inputs and results."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from design_parity.models.comparison import Bounds, Region
from design_parity.models.design import Dependency, ImplementationOrderEntry, SectionResult


# --- Browser-supplied inputs ---------------------------------------------------

class ExpectedElement(BaseModel):
    selector: str
    description: str = ""
    required: bool = True


class AssetSpec(BaseModel):
    selector: str
    type: Literal["image", "background", "icon"] = "image"
    description: str = ""


class ValidationInputs(BaseModel):
    """Data gathered from the live page by the caller (DOM queries, snapshots).

    Keys of `bounds_map` and `asset_info` are CSS selectors.
    """
    bounds_map: dict[str, Bounds] = Field(default_factory=dict)
    parent_selector: Optional[str] = None
    selectors: list[str] = Field(default_factory=list)
    expected_bounds: dict[str, Bounds] = Field(default_factory=dict)  # design-side bounds per selector
    expected_elements: list[ExpectedElement] = Field(default_factory=list)
    dom_snapshot: Any = None  # str (HTML / a11y text) or {"elements": [...]}
    asset_checks: list[AssetSpec] = Field(default_factory=list)
    asset_info: dict[str, dict[str, Any]] = Field(default_factory=dict)


# --- Layout --------------------------------------------------------------------

class LayoutIssue(BaseModel):
    severity: str  # critical, moderate, warning
    element: str
    issue: str  # not_found, invalid_dimensions, overflow, position, dimensions
    message: str
    parent: Optional[str] = None
    overflow_px: Optional[int] = None
    overflow_details: Optional[dict[str, int]] = None


class LayoutResult(BaseModel):
    status: Literal["PASS", "WARNING", "FAIL"]
    elements_checked: int = 0
    issues: list[LayoutIssue] = Field(default_factory=list)
    checked: list[dict[str, Any]] = Field(default_factory=list)
    fix_suggestions: list[str] = Field(default_factory=list)
    summary: str = ""


# --- Elements ------------------------------------------------------------------

class ElementCheck(BaseModel):
    selector: str
    description: str = ""
    status: Literal["found", "missing"]
    required: bool = True
    suggestion: Optional[str] = None


class ElementsResult(BaseModel):
    status: Literal["PASS", "FAIL"]
    total: int = 0
    found: int = 0
    missing: int = 0
    elements: list[ElementCheck] = Field(default_factory=list)
    fix_suggestions: list[str] = Field(default_factory=list)


# --- Assets --------------------------------------------------------------------

class AssetCheck(BaseModel):
    selector: str
    type: str = "image"
    description: str = ""
    status: str  # loaded, loading, broken, placeholder, missing, empty, not_found, unknown
    issue: Optional[str] = None


class AssetsResult(BaseModel):
    status: Literal["PASS", "FAIL"]
    total: int = 0
    loaded: int = 0
    broken: int = 0
    assets: list[AssetCheck] = Field(default_factory=list)
    fix_suggestions: list[str] = Field(default_factory=list)


# --- Visual --------------------------------------------------------------------

class SectionsSummary(BaseModel):
    status: str
    overall_score: float
    sections: list[SectionResult] = Field(default_factory=list)
    dependencies: list[Dependency] = Field(default_factory=list)
    implementation_order: list[ImplementationOrderEntry] = Field(default_factory=list)
    next_action: str = ""


class ChunkingSummary(BaseModel):
    frame_size: dict[str, int]
    chunk_size: int
    columns: int
    rows: int
    total_chunks: int
    processed_chunks: int
    failed_chunks: int
    errored_chunks: int = 0
    grid_map: str = ""
    problem_areas: list[dict[str, Any]] = Field(default_factory=list)


class VisualResult(BaseModel):
    status: Literal["PASS", "FAIL", "PARTIAL", "ERROR"]
    path: Literal["direct", "tiled"] = "direct"
    match_score: float = 0.0
    pass_threshold: float = 90.0
    mismatched_pixels: int = 0
    total_pixels: int = 0
    regions: list[Region] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    diff_image_base64: Optional[str] = None
    sections: Optional[SectionsSummary] = None
    chunking: Optional[ChunkingSummary] = None
    error: Optional[str] = None  # error kind when status is ERROR
    message: str = ""
    hint: str = ""
    error_details: dict[str, Any] = Field(default_factory=dict)
