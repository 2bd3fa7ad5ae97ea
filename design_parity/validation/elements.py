"""Element presence checks against a DOM snapshot."""

from __future__ import annotations

import json
from typing import Any

from design_parity.models.checks import ElementCheck, ElementsResult, ExpectedElement


def element_in_snapshot(snapshot: Any, selector: str) -> bool:
    """Whether `selector` is present in a snapshot.

    A string snapshot is searched as text. A dict with an "elements" list is
    matched on each element's selector, id (for "#id") or class name (for
    ".cls"). Anything else is searched in its JSON form.
    """
    if snapshot is None:
        return False
    if isinstance(snapshot, str):
        return selector in snapshot
    if isinstance(snapshot, dict) and isinstance(snapshot.get("elements"), list):
        bare = selector.lstrip("#.")
        for el in snapshot["elements"]:
            if not isinstance(el, dict):
                continue
            if el.get("selector") == selector:
                return True
            if selector.startswith("#") and el.get("id") == bare:
                return True
            if selector.startswith(".") and bare in (el.get("className") or el.get("class_name") or "").split():
                return True
        return False
    return selector in json.dumps(snapshot, default=str)


def validate_elements(expected: list[ExpectedElement], snapshot: Any) -> ElementsResult:
    checks: list[ElementCheck] = []
    found = 0
    missing = 0

    for element in expected:
        if element_in_snapshot(snapshot, element.selector):
            found += 1
            checks.append(ElementCheck(
                selector=element.selector, description=element.description,
                status="found", required=element.required,
            ))
        else:
            if element.required:
                missing += 1
            checks.append(ElementCheck(
                selector=element.selector, description=element.description,
                status="missing", required=element.required,
                suggestion=f"Element not found: {element.selector}",
            ))

    return ElementsResult(
        status="FAIL" if missing else "PASS",
        total=len(expected),
        found=found,
        missing=missing,
        elements=checks,
        fix_suggestions=[
            "Verify CSS selectors",
            "Check if elements are conditionally rendered",
            "Ensure elements are not hidden",
        ] if missing else [],
    )
