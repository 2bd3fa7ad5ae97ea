"""Layout checks over element bounds reported by the browser."""

from __future__ import annotations

from design_parity.models.checks import LayoutIssue, LayoutResult
from design_parity.models.comparison import Bounds

LAYOUT_FIX_SUGGESTIONS = [
    "Check CSS flex/grid properties on parent container",
    "Verify min-width/max-width constraints",
    "Check if content needs to wrap at this viewport width",
    "Consider using overflow: hidden or overflow: auto on parent",
]


def calculate_overflow(parent: Bounds, child: Bounds) -> dict:
    """How far `child` sticks out of `parent` on each side, in px."""
    overflow = {
        "left": max(0, parent.x - child.x),
        "right": max(0, child.right - parent.right),
        "top": max(0, parent.y - child.y),
        "bottom": max(0, child.bottom - parent.bottom),
    }
    return {
        "has_overflow": any(v > 0 for v in overflow.values()),
        "overflow": overflow,
        "max_overflow": max(overflow.values()),
        "total_overflow": sum(overflow.values()),
        "directions": [(d, px) for d, px in overflow.items() if px > 0],
    }


def compare_bounds(expected: Bounds, actual: Bounds, tolerance: int = 2) -> dict:
    diff = {
        "x": actual.x - expected.x,
        "y": actual.y - expected.y,
        "width": actual.width - expected.width,
        "height": actual.height - expected.height,
    }
    max_deviation = max(abs(v) for v in diff.values())
    return {
        "diff": diff,
        "within_tolerance": max_deviation <= tolerance,
        "max_deviation": max_deviation,
    }


def is_element_inside(container: Bounds, element: Bounds, margin: int = 0) -> bool:
    return (
        element.x >= container.x - margin
        and element.y >= container.y - margin
        and element.right <= container.right + margin
        and element.bottom <= container.bottom + margin
    )


def get_relative_position(container: Bounds, element: Bounds) -> dict:
    rel_x = element.x - container.x
    rel_y = element.y - container.y
    return {
        "relative_x": rel_x,
        "relative_y": rel_y,
        "percent_x": rel_x / container.width * 100 if container.width else 0.0,
        "percent_y": rel_y / container.height * 100 if container.height else 0.0,
    }


def compare_element_position(expected: Bounds, actual: Bounds, tolerance_px: int = 5) -> dict:
    dx = actual.x - expected.x
    dy = actual.y - expected.y
    within = abs(dx) <= tolerance_px and abs(dy) <= tolerance_px
    result = {"deviation": {"x": dx, "y": dy}, "within_tolerance": within}
    if not within:
        result["message"] = (
            f"Element is {abs(dx)}px {'right' if dx > 0 else 'left'} and "
            f"{abs(dy)}px {'down' if dy > 0 else 'up'} from expected position"
        )
    return result


def compare_element_dimensions(expected: Bounds, actual: Bounds, tolerance_percent: float = 2.0) -> dict:
    width_diff = actual.width - expected.width
    height_diff = actual.height - expected.height
    width_dev = abs(width_diff) / expected.width * 100 if expected.width else 0.0
    height_dev = abs(height_diff) / expected.height * 100 if expected.height else 0.0
    within = width_dev <= tolerance_percent and height_dev <= tolerance_percent

    result = {
        "diff": {"width": width_diff, "height": height_diff},
        "deviation_percent": {"width": round(width_dev, 1), "height": round(height_dev, 1)},
        "within_tolerance": within,
    }
    if not within:
        parts = []
        if width_dev > tolerance_percent:
            parts.append(f"width {'larger' if width_diff > 0 else 'smaller'} by {abs(width_diff)}px ({width_dev:.1f}%)")
        if height_dev > tolerance_percent:
            parts.append(f"height {'larger' if height_diff > 0 else 'smaller'} by {abs(height_diff)}px ({height_dev:.1f}%)")
        result["message"] = "Element " + " and ".join(parts)
    return result


def validate_layout(
    selectors: list[str],
    bounds_map: dict[str, Bounds],
    parent_selector: str | None = None,
    expected_bounds: dict[str, Bounds] | None = None,
    tolerance_px: int = 5,
    tolerance_percent: float = 2.0,
) -> LayoutResult:
    """Check each selector's bounds: presence, sanity, overflow and design deviation.

    Missing elements are warnings; negative sizes and overflow beyond
    `tolerance_px` are critical; position/size drift from `expected_bounds`
    is moderate.
    """
    expected_bounds = expected_bounds or {}
    parent = bounds_map.get(parent_selector) if parent_selector else None
    issues: list[LayoutIssue] = []
    checked: list[dict] = []

    if parent_selector and parent is None:
        issues.append(LayoutIssue(
            severity="warning", element=parent_selector, issue="not_found",
            message=f'Parent element "{parent_selector}" not found in browser bounds',
        ))

    for selector in selectors:
        bounds = bounds_map.get(selector)
        if bounds is None:
            issues.append(LayoutIssue(
                severity="warning", element=selector, issue="not_found",
                message=f'Element "{selector}" not found in browser bounds',
            ))
            checked.append({"selector": selector, "status": "not_found"})
            continue

        if bounds.width < 0 or bounds.height < 0:
            issues.append(LayoutIssue(
                severity="critical", element=selector, issue="invalid_dimensions",
                message=f"Element has invalid dimensions: {bounds.width}x{bounds.height}",
            ))
            checked.append({"selector": selector, "status": "invalid_dimensions"})
            continue

        status = "ok"
        if parent is not None:
            ov = calculate_overflow(parent, bounds)
            if ov["has_overflow"] and ov["max_overflow"] > tolerance_px:
                directions = ", ".join(f"{d}: {px}px" for d, px in ov["directions"] if px > tolerance_px)
                issues.append(LayoutIssue(
                    severity="critical", element=selector, parent=parent_selector, issue="overflow",
                    overflow_px=ov["max_overflow"], overflow_details=ov["overflow"],
                    message=f"Element overflows container ({directions})",
                ))
                status = "overflow"

        expected = expected_bounds.get(selector)
        if expected is not None:
            position = compare_element_position(expected, bounds, tolerance_px)
            if not position["within_tolerance"]:
                issues.append(LayoutIssue(
                    severity="moderate", element=selector, issue="position", message=position["message"],
                ))
                status = "deviates" if status == "ok" else status
            dims = compare_element_dimensions(expected, bounds, tolerance_percent)
            if not dims["within_tolerance"]:
                issues.append(LayoutIssue(
                    severity="moderate", element=selector, issue="dimensions", message=dims["message"],
                ))
                status = "deviates" if status == "ok" else status

        checked.append({"selector": selector, "status": status})

    critical = sum(1 for i in issues if i.severity == "critical")
    moderate = sum(1 for i in issues if i.severity == "moderate")
    warnings = sum(1 for i in issues if i.severity == "warning")

    if critical or moderate:
        status = "FAIL"
        summary = f"{critical + moderate} layout issue(s) detected"
    elif warnings:
        status = "WARNING"
        summary = f"{warnings} element(s) not found in DOM"
    else:
        status = "PASS"
        summary = f"All {len(selectors)} elements within bounds"

    return LayoutResult(
        status=status,
        elements_checked=len(selectors),
        issues=issues,
        checked=checked,
        fix_suggestions=LAYOUT_FIX_SUGGESTIONS if issues else [],
        summary=summary,
    )
