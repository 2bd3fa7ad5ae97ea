"""Design tree and section planning data structures."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from design_parity.models.comparison import Bounds

# Accept both snake_case and the camelCase keys of design-tool exports
_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Color(BaseModel):
    r: float = 0.0  # 0-1 channel values, as exported by design tools
    g: float = 0.0
    b: float = 0.0
    a: float = 1.0


class Fill(BaseModel):
    type: str = "SOLID"  # SOLID, GRADIENT_LINEAR, IMAGE, ...
    visible: bool = True
    color: Optional[Color] = None
    opacity: Optional[float] = None


class TextStyle(BaseModel):
    model_config = _CAMEL

    font_family: Optional[str] = None
    font_size: Optional[float] = None
    font_weight: Optional[int] = None
    line_height_px: Optional[float] = None
    letter_spacing: Optional[float] = None
    text_align_horizontal: Optional[str] = None


class DesignNode(BaseModel):
    """A resolved node of the design tree (parent owns children, no back-references)."""
    model_config = _CAMEL

    node_id: str = Field(validation_alias=AliasChoices("node_id", "nodeId", "id"))
    name: str = ""
    type: str = "FRAME"
    bounds: Optional[Bounds] = Field(
        default=None, validation_alias=AliasChoices("bounds", "absoluteBoundingBox")
    )
    fills: list[Fill] = Field(default_factory=list)
    background_color: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("background_color", "bgColor")
    )  # hex, takes precedence over fills
    children: list["DesignNode"] = Field(default_factory=list)

    # Layout / style attributes used for the CSS tree
    layout_mode: Optional[str] = None  # HORIZONTAL, VERTICAL
    item_spacing: Optional[float] = None
    primary_axis_align_items: Optional[str] = None
    counter_axis_align_items: Optional[str] = None
    padding_top: Optional[float] = None
    padding_right: Optional[float] = None
    padding_bottom: Optional[float] = None
    padding_left: Optional[float] = None
    corner_radius: Optional[float] = None
    strokes: list[Fill] = Field(default_factory=list)
    stroke_weight: Optional[float] = None
    style: Optional[TextStyle] = None
    characters: Optional[str] = None


class Section(BaseModel):
    id: str
    name: str
    bounds: Bounds
    bg_color: str = "#ffffff"
    min_y: int = 0  # absolute design coordinates of the band
    max_y: int = 0
    nodes: list[DesignNode] = Field(default_factory=list)


class TransitionElement(BaseModel):
    id: str
    name: str
    type: str = ""
    bounds: Bounds
    spans_sections: list[str] = Field(default_factory=list)


class Dependency(BaseModel):
    element: str
    element_id: str
    type: str = "cross_section_element"
    affected_sections: list[str]
    depends_on: list[str]
    explanation: str
    recommendation: str = ""


class ImplementationOrderEntry(BaseModel):
    priority: int
    section_id: str
    section_name: str = ""
    reason: str


class SectionProblem(BaseModel):
    area: str
    severity: str
    description: str


class SectionResult(BaseModel):
    id: str
    name: str
    status: str  # PASS, FAIL, ERROR
    match_score: float = 0.0
    bounds: Bounds
    bg_color: str = "#ffffff"
    error: Optional[str] = None
    problems: list[SectionProblem] = Field(default_factory=list)
    css_tree: Optional[dict[str, Any]] = None
    recommendations: list[str] = Field(default_factory=list)
