"""JSON report output."""

from __future__ import annotations

import base64
import json
import logging
from pathlib import Path

from design_parity.models.report import BreakpointsReport, ValidationReport

logger = logging.getLogger(__name__)


def extract_diff_image(report: ValidationReport, image_path: Path) -> bool:
    """Write the visual diff PNG to `image_path` and drop it from the report details.

    Returns False when the report carries no diff image.
    """
    visual = report.details.get("visual")
    if not isinstance(visual, dict) or not visual.get("diff_image_base64"):
        return False
    image_path.parent.mkdir(parents=True, exist_ok=True)
    image_path.write_bytes(base64.b64decode(visual["diff_image_base64"]))
    visual["diff_image_base64"] = None
    visual["diff_image_path"] = str(image_path)
    logger.debug("Diff image written to %s", image_path)
    return True


def generate_json_report(
    report: ValidationReport,
    output_path: Path,
    separate_diff_image: bool = True,
) -> None:
    """Write a machine-readable JSON report.

    With `separate_diff_image` the base64 diff is saved as a sibling PNG
    (``<name>.diff.png``) instead of being inlined.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    report = report.model_copy(deep=True)
    if separate_diff_image:
        extract_diff_image(report, output_path.with_suffix(".diff.png"))

    with open(output_path, "w") as f:
        json.dump(report.model_dump(), f, indent=2, default=str)


def generate_breakpoints_json_report(
    report: BreakpointsReport,
    output_path: Path,
    separate_diff_image: bool = True,
) -> None:
    """Write a breakpoint sweep; each diff goes to ``<name>.<breakpoint>.diff.png``."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    report = report.model_copy(deep=True)
    if separate_diff_image:
        for bp in report.breakpoints:
            if bp.report is not None:
                extract_diff_image(bp.report, output_path.with_name(f"{output_path.stem}.{bp.breakpoint}.diff.png"))

    with open(output_path, "w") as f:
        json.dump(report.model_dump(), f, indent=2, default=str)
