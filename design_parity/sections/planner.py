"""Split a design into horizontal bands and order their build.

A design frame's top-level children are scanned once, top to bottom, and
grouped into sections by background colour and vertical gap. Children
that straddle several sections become transition elements; each yields a
dependency on the first section it touches, and the implementation order
schedules base sections before the sections they bleed into.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from design_parity.models.comparison import Bounds, Region
from design_parity.models.design import (
    Color,
    DesignNode,
    Dependency,
    ImplementationOrderEntry,
    Section,
    SectionProblem,
    TransitionElement,
)

logger = logging.getLogger(__name__)

SECTION_GAP_PX = 50
NEUTRAL_COLOR = "#ffffff"
DEFAULT_CSS_DEPTH = 4

FORCED_REASON = "Circular dependency or independent section"
INDEPENDENT_REASON = "Independent section"

SECTION_KEYWORDS: dict[str, list[str]] = {
    "hero": ["hero", "header", "banner", "top", "welcome"],
    "about": ["about", "team", "info", "description", "story"],
    "features": ["feature", "services", "capability", "benefit"],
    "pricing": ["price", "plan", "cost", "billing"],
    "contact": ["contact", "footer", "reach", "connect"],
    "cta": ["cta", "call-to-action", "action", "button"],
    "testimonial": ["testimonial", "review", "feedback", "quote"],
    "faq": ["faq", "question", "answer", "qa"],
    "gallery": ["gallery", "portfolio", "showcase", "grid"],
    "form": ["form", "input", "field", "signup"],
    "nav": ["nav", "navigation", "menu"],
    "section": ["section", "container", "wrapper"],
}

ALIGNMENT_CSS = {
    "MIN": "flex-start",
    "CENTER": "center",
    "MAX": "flex-end",
    "SPACE_BETWEEN": "space-between",
}


@dataclass
class SectionGroup:
    """A band found by the grouping scan, in absolute design coordinates."""
    nodes: list[DesignNode] = field(default_factory=list)
    bg_color: Optional[str] = None
    min_y: int = 0
    max_y: int = 0


# ---------------------------------------------------------------------------
# Colours
# ---------------------------------------------------------------------------

def color_to_hex(color: Color | None) -> Optional[str]:
    """Lowercase #rrggbb, or rgba(...) for translucent colours."""
    if color is None:
        return None
    r, g, b = (round(c * 255) for c in (color.r, color.g, color.b))
    if color.a < 1:
        return f"rgba({r}, {g}, {b}, {color.a:.2f})"
    return f"#{r:02x}{g:02x}{b:02x}"


def get_background_color(node: DesignNode) -> Optional[str]:
    """The node's flat background: explicit colour first, else its first visible solid fill."""
    if node.background_color:
        return node.background_color.lower()
    for fill in node.fills:
        if fill.type == "SOLID" and fill.visible and fill.color is not None:
            return color_to_hex(fill.color)
    return None


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------

def _starts_new_color_band(bg_color: Optional[str], running: Optional[str], neutral: str) -> bool:
    if not bg_color or bg_color == running:
        return False
    # A neutral fill does not split a band that has no colour of its own
    return not (bg_color == neutral and running is None)


def group_into_sections(
    children: list[DesignNode],
    gap: int = SECTION_GAP_PX,
    neutral_color: str = NEUTRAL_COLOR,
) -> list[SectionGroup]:
    """Single pass over `children` in their given order.

    A new group starts when a child's background differs from the running
    colour, or when its top is more than `gap` px from the previous child's
    top. Children without bounds are skipped.
    """
    neutral = neutral_color.lower()
    groups: list[SectionGroup] = []
    current: SectionGroup | None = None
    running_color: Optional[str] = None
    previous_y = 0

    for child in children:
        if child.bounds is None:
            continue

        bg_color = get_background_color(child)
        top = child.bounds.y
        bottom = child.bounds.bottom

        color_changed = _starts_new_color_band(bg_color, running_color, neutral)
        significant_gap = abs(top - previous_y) > gap

        if current is None:
            current = SectionGroup(nodes=[child], bg_color=bg_color, min_y=top, max_y=bottom)
            running_color = bg_color
        elif color_changed or (significant_gap and current.nodes):
            groups.append(current)
            running_color = bg_color or running_color
            current = SectionGroup(nodes=[child], bg_color=running_color, min_y=top, max_y=bottom)
        else:
            current.nodes.append(child)
            current.max_y = max(current.max_y, bottom)

        previous_y = top

    if current is not None and current.nodes:
        groups.append(current)

    logger.debug("Grouped %d children into %d sections", len(children), len(groups))
    return groups


def infer_section_name(element_name: str) -> Optional[str]:
    """Guess a section role from a layer name ("Hero Banner" -> "Hero")."""
    lower = element_name.lower()
    for section_name, keywords in SECTION_KEYWORDS.items():
        if any(kw in lower for kw in keywords):
            return section_name.capitalize()
    return None


def build_sections(
    groups: list[SectionGroup],
    frame: DesignNode | None = None,
    fallback_width: int = 0,
) -> list[Section]:
    """Turn groups into `section-N` records with frame-relative bounds."""
    offset_y = frame.bounds.y if frame is not None and frame.bounds is not None else 0
    width = frame.bounds.width if frame is not None and frame.bounds is not None else fallback_width

    sections = []
    for index, group in enumerate(groups):
        first = group.nodes[0]
        sections.append(Section(
            id=f"section-{index}",
            name=infer_section_name(first.name) or first.name or f"Section {index + 1}",
            bounds=Bounds(x=0, y=group.min_y - offset_y, width=width, height=group.max_y - group.min_y),
            bg_color=group.bg_color or NEUTRAL_COLOR,
            min_y=group.min_y,
            max_y=group.max_y,
            nodes=group.nodes,
        ))
    return sections


# ---------------------------------------------------------------------------
# Dependencies and ordering
# ---------------------------------------------------------------------------

def find_transition_elements(
    sections: list[Section] | list[SectionGroup],
    children: list[DesignNode],
) -> list[TransitionElement]:
    """Children whose [top, bottom) overlaps more than one section's [min_y, max_y)."""
    transitions = []
    for child in children:
        if child.bounds is None:
            continue
        top = child.bounds.y
        bottom = child.bounds.bottom
        spans = [
            f"section-{i}"
            for i, section in enumerate(sections)
            if top < section.max_y and bottom > section.min_y
        ]
        if len(spans) > 1:
            transitions.append(TransitionElement(
                id=child.node_id,
                name=child.name,
                type=child.type,
                bounds=child.bounds,
                spans_sections=spans,
            ))
    return transitions


def build_dependency_map(transitions: list[TransitionElement]) -> list[Dependency]:
    dependencies = []
    for element in transitions:
        if len(element.spans_sections) < 2:
            continue
        base, *rest = element.spans_sections
        dependencies.append(Dependency(
            element=element.name,
            element_id=element.id,
            affected_sections=list(element.spans_sections),
            depends_on=[base],
            explanation=(
                f"{element.name} spans from {base} to {', '.join(rest)}. "
                "Implements visual connection between sections."
            ),
            recommendation=f"Validate {base} first, then validate with dependent sections visible",
        ))
    return dependencies


def calculate_implementation_order(
    sections: list[Section],
    dependencies: list[Dependency],
) -> list[ImplementationOrderEntry]:
    """Schedule sections so each comes after the sections it depends on.

    Passes repeat over the unscheduled sections in index order. When a pass
    schedules nothing, every remaining section is forced in index order, so
    the result is always a permutation of the section ids.
    """
    ids = [f"section-{i}" for i in range(len(sections))]
    scheduled: set[str] = set()
    order: list[ImplementationOrderEntry] = []

    def schedule(index: int, reason: str) -> None:
        order.append(ImplementationOrderEntry(
            priority=len(order) + 1,
            section_id=ids[index],
            section_name=sections[index].name,
            reason=reason,
        ))
        scheduled.add(ids[index])

    while len(scheduled) < len(sections):
        progressed = False
        for index, section_id in enumerate(ids):
            if section_id in scheduled:
                continue
            deps = [d for d in dependencies if section_id in d.affected_sections]
            # A section never waits on itself
            ready = all(
                dep_id in scheduled
                for d in deps
                for dep_id in d.depends_on
                if dep_id != section_id
            )
            if ready:
                schedule(index, deps[0].explanation if deps else INDEPENDENT_REASON)
                progressed = True

        if not progressed:
            logger.warning("Dependency cycle among sections, forcing remaining order")
            for index, section_id in enumerate(ids):
                if section_id not in scheduled:
                    schedule(index, FORCED_REASON)

    return order


# ---------------------------------------------------------------------------
# CSS hints and per-section verdicts
# ---------------------------------------------------------------------------

def _stroke_style(node: DesignNode) -> Optional[dict]:
    for stroke in node.strokes:
        if stroke.type == "SOLID" and stroke.visible:
            return {
                "color": (color_to_hex(stroke.color) or "#000000").upper(),
                "width": node.stroke_weight or 1,
                "opacity": stroke.opacity if stroke.opacity is not None else 1,
            }
    return None


def extract_css_tree(node: DesignNode | None, max_depth: int = DEFAULT_CSS_DEPTH, depth: int = 0) -> Optional[dict[str, Any]]:
    """CSS-like description of a node and its descendants down to `max_depth`."""
    if node is None or depth > max_depth:
        return None

    css: dict[str, Any] = {}
    if node.bounds is not None:
        css["width"] = node.bounds.width
        css["height"] = node.bounds.height

    solid = next((f for f in node.fills if f.type == "SOLID" and f.visible), None)
    if solid is not None:
        css["backgroundColor"] = (color_to_hex(solid.color) or "#000000").upper()
        if solid.opacity is not None and solid.opacity < 1:
            css["opacity"] = solid.opacity

    if node.layout_mode:
        css["display"] = "flex"
        css["flexDirection"] = "column" if node.layout_mode == "VERTICAL" else "row"
        if node.item_spacing:
            css["gap"] = node.item_spacing
        if node.primary_axis_align_items:
            css["justifyContent"] = ALIGNMENT_CSS.get(node.primary_axis_align_items, "flex-start")
        if node.counter_axis_align_items:
            css["alignItems"] = ALIGNMENT_CSS.get(node.counter_axis_align_items, "flex-start")

    paddings = (node.padding_top, node.padding_right, node.padding_bottom, node.padding_left)
    if any(p is not None for p in paddings):
        css["padding"] = dict(zip(("top", "right", "bottom", "left"), (p or 0 for p in paddings)))

    if node.corner_radius:
        css["borderRadius"] = node.corner_radius

    stroke = _stroke_style(node)
    if stroke:
        css["border"] = stroke

    if node.type == "TEXT" and node.style is not None:
        css["fontFamily"] = node.style.font_family or "sans-serif"
        css["fontSize"] = node.style.font_size or 12
        css["fontWeight"] = node.style.font_weight or 400
        if node.style.line_height_px:
            css["lineHeight"] = node.style.line_height_px
        if node.style.letter_spacing:
            css["letterSpacing"] = node.style.letter_spacing
        if node.style.text_align_horizontal:
            css["textAlign"] = node.style.text_align_horizontal.lower()

    result: dict[str, Any] = {"name": node.name, "type": node.type, "css": css}
    if node.type == "TEXT" and node.characters:
        result["text"] = node.characters[:100]

    if node.children and depth < max_depth:
        children = [extract_css_tree(c, max_depth, depth + 1) for c in node.children]
        result["children"] = [c for c in children if c]

    return result


def analyze_section_problems(regions: list[Region], limit: int = 5) -> list[SectionProblem]:
    """Section-level problems from comparison regions, critical first."""
    problems = [
        SectionProblem(
            area=r.area,
            severity="critical" if r.mismatch_percent > 15 else "moderate",
            description=f"{r.mismatch_percent:.1f}% pixels differ in {r.area} region",
        )
        for r in regions
        if r.mismatch_percent > 5
    ]
    problems.sort(key=lambda p: 0 if p.severity == "critical" else 1)
    return problems[:limit]


def determine_section_status(match_score: float, pass_threshold: float) -> str:
    return "PASS" if match_score >= pass_threshold else "FAIL"


def determine_overall_status(failed: int, total: int) -> str:
    if failed == 0 and total > 0:
        return "PASS"
    if 0 < failed < total:
        return "PARTIAL"
    return "FAIL"


def plan_sections(
    frame: DesignNode,
    gap: int = SECTION_GAP_PX,
    neutral_color: str = NEUTRAL_COLOR,
    fallback_width: int = 0,
) -> tuple[list[Section], list[Dependency], list[ImplementationOrderEntry]]:
    """Sections, dependencies and build order for a frame's top-level children."""
    groups = group_into_sections(frame.children, gap=gap, neutral_color=neutral_color)
    sections = build_sections(groups, frame, fallback_width=fallback_width)
    transitions = find_transition_elements(sections, frame.children)
    dependencies = build_dependency_map(transitions)
    order = calculate_implementation_order(sections, dependencies)
    return sections, dependencies, order
