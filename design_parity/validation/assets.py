"""Asset loading checks from per-selector browser info."""

from __future__ import annotations

from typing import Any, Optional

from design_parity.models.checks import AssetCheck, AssetSpec, AssetsResult


def _image_status(info: dict[str, Any]) -> tuple[str, Optional[str]]:
    if not info.get("complete", True):
        return "loading", "Image still loading"
    w = info.get("naturalWidth", info.get("natural_width", 0))
    h = info.get("naturalHeight", info.get("natural_height", 0))
    if not w or not h:
        return "broken", "Failed to load (0 dimensions)"
    if w == 1 and h == 1:
        return "placeholder", "1x1 pixel placeholder"
    return "loaded", None


def _background_status(info: dict[str, Any]) -> tuple[str, Optional[str]]:
    bg = info.get("backgroundImage", info.get("background_image"))
    if not bg or bg == "none":
        return "missing", "No background-image set"
    if info.get("loaded") is False:
        return "broken", "Background failed to load"
    return "loaded", None


def _icon_status(info: dict[str, Any]) -> tuple[str, Optional[str]]:
    tag = (info.get("tagName") or info.get("tag_name") or "").lower()
    if tag == "svg":
        inner = info.get("innerHTML") or info.get("inner_html") or ""
        if len(inner) > 10:
            return "loaded", None
        return "empty", "SVG is empty"
    content = info.get("content")
    if content and content != "none":
        return "loaded", None
    return "unknown", "Icon has no SVG markup or pseudo-element content"


_CHECKERS = {
    "image": _image_status,
    "background": _background_status,
    "icon": _icon_status,
}

# Statuses that count against the asset score
BROKEN_STATUSES = {"broken", "missing", "empty", "unknown", "not_found"}


def check_asset(spec: AssetSpec, info: dict[str, Any] | None) -> AssetCheck:
    if info is None:
        return AssetCheck(
            selector=spec.selector, type=spec.type, description=spec.description,
            status="not_found", issue="Element not found in DOM",
        )
    status, issue = _CHECKERS[spec.type](info)
    return AssetCheck(
        selector=spec.selector, type=spec.type, description=spec.description,
        status=status, issue=issue,
    )


def validate_assets(checks: list[AssetSpec], asset_info: dict[str, dict[str, Any]]) -> AssetsResult:
    results = [check_asset(spec, asset_info.get(spec.selector)) for spec in checks]
    loaded = sum(1 for r in results if r.status == "loaded")
    broken = sum(1 for r in results if r.status in BROKEN_STATUSES)

    return AssetsResult(
        status="FAIL" if broken else "PASS",
        total=len(checks),
        loaded=loaded,
        broken=broken,
        assets=results,
        fix_suggestions=[
            "Check file paths (case-sensitive)",
            "Verify assets were exported from the design",
            "Check CORS for external URLs",
        ] if broken else [],
    )
