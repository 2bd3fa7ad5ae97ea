"""Run the requested checks and merge them into one report."""

from __future__ import annotations

import asyncio
import logging
import math
from collections import Counter
from typing import Awaitable, Callable, Optional

import httpx

from design_parity.browser.capture import CAPTURE_HINTS, ScreenshotCapturer
from design_parity.browser.session import BrowserSessionManager
from design_parity.compare.comparator import display_score
from design_parity.compare.regions import severity_for
from design_parity.errors import BrowserUnavailableError
from design_parity.models.checks import (
    AssetsResult,
    ElementsResult,
    LayoutResult,
    ValidationInputs,
    VisualResult,
)
from design_parity.models.config import CompareOptions, ValidatorConfig, Viewport
from design_parity.models.design import DesignNode
from design_parity.models.report import (
    CDP_CONNECTION_REFUSED,
    COMPARISON_ERROR,
    DIMENSION_MISMATCH,
    MODES,
    REFERENCE_FETCH_ERROR,
    SEVERITY_ORDER,
    VIEWPORT_NOT_FOUND,
    BreakpointResult,
    BreakpointsReport,
    Issue,
    ValidationReport,
)
from design_parity.tiling.reference import ReferenceSource
from design_parity.validation.assets import validate_assets
from design_parity.validation.elements import validate_elements
from design_parity.validation.layout import validate_layout
from design_parity.validation.visual import VisualValidator

logger = logging.getLogger(__name__)

LAYOUT_SCORES = {"PASS": 100, "WARNING": 50}

# Per-check status as counted by a breakpoint sweep
CHECK_STATUS = {"PASS": "PASS", "WARNING": "WARNING", "PARTIAL": "WARNING", "FAIL": "FAIL"}

PRIORITY_FIXES = (
    ("layout", "Fix element overflow issues - elements extending beyond containers"),
    ("elements", "Add missing required elements to the DOM"),
    ("assets", "Fix broken images/icons - check file paths and loading"),
    ("visual", "Address visual differences - check colors, fonts, spacing"),
)


def viewport_from_target(target: DesignNode | None) -> Optional[Viewport]:
    if target is None or target.bounds is None:
        return None
    if target.bounds.width <= 0 or target.bounds.height <= 0:
        return None
    return Viewport(width=target.bounds.width, height=target.bounds.height, name=target.name or "target")


def calculate_score(results: dict) -> int:
    """Mean of the enabled mode scores, rounded to an integer."""
    scores: list[float] = []
    visual: VisualResult | None = results.get("visual")
    if visual is not None:
        scores.append(visual.match_score)
    layout: LayoutResult | None = results.get("layout")
    if layout is not None:
        scores.append(LAYOUT_SCORES.get(layout.status, 0))
    elements: ElementsResult | None = results.get("elements")
    if elements is not None:
        scores.append(100 if elements.status == "PASS" else 0)
    assets: AssetsResult | None = results.get("assets")
    if assets is not None:
        scores.append(100 if assets.status == "PASS" else 0)
    # half up, matching Bounds
    return math.floor(sum(scores) / len(scores) + 0.5) if scores else 0


def _chunk_issue(chunk: dict) -> Issue:
    if chunk.get("error"):
        return Issue(severity="critical", type="visual", location=f"chunk {chunk['chunk_id']}",
                     message=f"Chunk could not be validated: {chunk['error']}")
    return Issue(
        severity=severity_for(100 - chunk["match_score"]),
        type="visual",
        location=f"chunk {chunk['chunk_id']}",
        message=f"Chunk matches {chunk['match_score']:.1f}%",
    )


def _visual_issues(visual: VisualResult) -> list[Issue]:
    issues: list[Issue] = []
    if visual.chunking is not None:
        issues.extend(_chunk_issue(p) for p in visual.chunking.problem_areas)
    elif visual.sections is not None:
        for section in visual.sections.sections:
            if section.status == "ERROR":
                issues.append(Issue(severity="critical", type="visual", location=section.name,
                                    message=f"Section could not be compared: {section.error}"))
            for problem in section.problems:
                issues.append(Issue(severity=problem.severity, type="visual",
                                    location=f"{section.name}: {problem.area}", message=problem.description))
    else:
        for region in visual.regions:
            issues.append(Issue(severity=region.severity, type="visual",
                                location=region.area, message=region.possible_cause))
    return issues


def aggregate_issues(results: dict) -> list[Issue]:
    """Issues from every mode, ordered critical, moderate, warning, minor."""
    issues: list[Issue] = []
    visual: VisualResult | None = results.get("visual")
    if visual is not None:
        issues.extend(_visual_issues(visual))

    layout: LayoutResult | None = results.get("layout")
    if layout is not None:
        for li in layout.issues:
            issues.append(Issue(severity=li.severity, type="layout", location=li.element, message=li.message))

    elements: ElementsResult | None = results.get("elements")
    if elements is not None:
        for el in elements.elements:
            if el.status == "missing" and el.required:
                issues.append(Issue(severity="critical", type="elements", location=el.selector,
                                    message=f"Required element missing from DOM: {el.selector}"))

    assets: AssetsResult | None = results.get("assets")
    if assets is not None:
        for asset in assets.assets:
            if asset.status != "loaded":
                issues.append(Issue(
                    severity="critical" if asset.status == "broken" else "moderate",
                    type="assets",
                    location=asset.selector,
                    message=asset.issue or f"Asset failed to load: {asset.selector}",
                ))

    issues.sort(key=lambda i: SEVERITY_ORDER.get(i.severity, len(SEVERITY_ORDER)))
    return issues


def aggregate_recommendations(results: dict, limit: int = 10) -> list[str]:
    """De-duplicated recommendations in mode order, capped at `limit`."""
    recs: list[str] = []
    visual: VisualResult | None = results.get("visual")
    if visual is not None:
        recs.extend(visual.recommendations)
    for key in ("layout", "elements", "assets"):
        result = results.get(key)
        if result is not None:
            recs.extend(result.fix_suggestions)
    return list(dict.fromkeys(recs))[:limit]


def status_for_score(score: float, pass_threshold: float) -> str:
    if score >= pass_threshold:
        return "PASS"
    if score >= 50:
        return "PARTIAL"
    return "FAIL"


def error_report(mode: str, kind: str, message: str, hint: str = "", issue_type: str = "environment",
                 location: str = "browser", details: dict | None = None) -> ValidationReport:
    return ValidationReport(
        status="ERROR",
        score=0,
        mode=mode,
        issues=[Issue(severity="critical", type=issue_type, location=location, message=message)],
        recommendations=[hint] if hint else [],
        details=details or {},
        error=kind,
        hint=hint,
        summary=f"{kind}: {message}",
    )


def summarize_breakpoint(viewport: Viewport, report: ValidationReport) -> BreakpointResult:
    """Count one viewport's checks as PASS, WARNING or FAIL and pick its status."""
    base = {"breakpoint": viewport.name or f"{viewport.width}px",
            "width": viewport.width, "height": viewport.height, "report": report}
    if report.status == "ERROR":
        return BreakpointResult(**base, status="ERROR", reason=report.summary,
                                priority_fixes=[report.hint] if report.hint else [])

    statuses = {key: CHECK_STATUS.get(detail.get("status"), "FAIL") for key, detail in report.details.items()}
    counts = Counter(statuses.values())
    if counts["FAIL"]:
        status = "FAIL"
    elif counts["WARNING"]:
        status = "WARNING"
    else:
        status = "PASS"
    return BreakpointResult(
        **base,
        status=status,
        score=report.score,
        checks_passed=counts["PASS"],
        checks_warned=counts["WARNING"],
        checks_failed=counts["FAIL"],
        priority_fixes=[action for key, action in PRIORITY_FIXES if statuses.get(key) == "FAIL"],
    )


def rollup_breakpoints(results: list[BreakpointResult]) -> BreakpointsReport:
    """Overall verdict: FAIL if any breakpoint failed or errored, else WARNING if any warned."""
    counts = Counter(r.status for r in results)
    failed = counts["FAIL"] + counts["ERROR"]
    if failed:
        status = "FAIL"
    elif counts["WARNING"]:
        status = "WARNING"
    else:
        status = "PASS"
    failing = [r.breakpoint for r in results if r.status in ("FAIL", "ERROR")]
    return BreakpointsReport(
        status=status,
        total=len(results),
        passed=counts["PASS"],
        warnings=counts["WARNING"],
        failed=failed,
        not_tested=counts["NOT_TESTED"],
        breakpoints=results,
        recommendation=f"Focus on fixing: {', '.join(failing)}" if failing else "",
        summary=f"{counts['PASS']}/{len(results)} breakpoints passed",
    )


class Validator:
    """Runs visual, layout, element and asset checks against a live page.

    Browser and input failures abort the call into an ERROR report; failures
    of a single chunk or section are reported inside a normal report.
    """

    def __init__(
        self,
        config: ValidatorConfig | None = None,
        session_manager: BrowserSessionManager | None = None,
        capturer: ScreenshotCapturer | None = None,
        reference_transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or ValidatorConfig()
        self.session_manager = session_manager or BrowserSessionManager(self.config.browser)
        self.capturer = capturer or ScreenshotCapturer(self.config.browser, self.session_manager)
        self.visual = VisualValidator(
            self.config, self.capturer, reference_transport=reference_transport, sleep=sleep
        )

    async def validate(
        self,
        mode: str = "visual",
        target: DesignNode | None = None,
        url: str = "",
        viewport: Viewport | None = None,
        options: CompareOptions | None = None,
        reference: ReferenceSource | None = None,
        inputs: ValidationInputs | None = None,
        port: int | None = None,
    ) -> ValidationReport:
        if mode not in MODES and mode != "full":
            return error_report(mode, "INVALID_MODE", f"Unknown validation mode: {mode}",
                                hint=f"Use one of: {', '.join(MODES + ('full',))}",
                                issue_type="input", location="mode")

        options = options or self.config.compare
        inputs = inputs or ValidationInputs()
        port = port or self.config.browser.port
        results: dict = {}

        if mode in ("visual", "full"):
            report = await self._run_visual(mode, target, url, viewport, options, reference, port, results)
            if report is not None:
                return report

        if mode in ("layout", "full"):
            selectors = inputs.selectors or list(inputs.bounds_map)
            results["layout"] = validate_layout(
                selectors,
                inputs.bounds_map,
                parent_selector=inputs.parent_selector,
                expected_bounds=inputs.expected_bounds,
                tolerance_px=self.config.tolerance_px,
                tolerance_percent=self.config.tolerance_percent,
            )

        if mode in ("elements", "full") and inputs.expected_elements:
            results["elements"] = validate_elements(inputs.expected_elements, inputs.dom_snapshot)

        if mode in ("assets", "full") and inputs.asset_checks:
            results["assets"] = validate_assets(inputs.asset_checks, inputs.asset_info)

        score = calculate_score(results)
        status = status_for_score(score, options.pass_threshold)
        issues = aggregate_issues(results)
        recommendations = aggregate_recommendations(results, self.config.max_recommendations)

        logger.info("Validation (%s) finished: %s, score %d, %d issue(s)", mode, status, score, len(issues))
        return ValidationReport(
            status=status,
            score=score,
            mode=mode,
            issues=issues,
            recommendations=recommendations,
            details={k: v.model_dump() for k, v in results.items()},
            summary=self._summary(status, score, options.pass_threshold, results, issues),
        )

    async def validate_breakpoints(
        self,
        viewports: list[Viewport] | None = None,
        mode: str = "visual",
        url: str = "",
        references: dict[str, ReferenceSource] | None = None,
        targets: dict[str, DesignNode] | None = None,
        inputs: dict[str, ValidationInputs] | None = None,
        options: CompareOptions | None = None,
        port: int | None = None,
    ) -> BreakpointsReport:
        """Run `validate` once per viewport, in order, and roll the verdicts up.

        `references`, `targets` and `inputs` are keyed by viewport name. A
        visual breakpoint without a reference image is reported NOT_TESTED.
        """
        viewports = viewports or self.config.breakpoints
        references = references or {}
        targets = targets or {}
        inputs = inputs or {}
        results: list[BreakpointResult] = []

        for viewport in viewports:
            if mode in ("visual", "full") and viewport.name not in references:
                logger.warning("No reference image for breakpoint %s, skipping", viewport.name)
                results.append(BreakpointResult(
                    breakpoint=viewport.name, width=viewport.width, height=viewport.height,
                    status="NOT_TESTED", reason="No reference image for this breakpoint",
                ))
                continue

            report = await self.validate(
                mode=mode,
                target=targets.get(viewport.name),
                url=url,
                viewport=viewport,
                options=options,
                reference=references.get(viewport.name),
                inputs=inputs.get(viewport.name),
                port=port,
            )
            result = summarize_breakpoint(viewport, report)
            logger.info("Breakpoint %s (%dx%d): %s", result.breakpoint, viewport.width, viewport.height, result.status)
            results.append(result)

        rollup = rollup_breakpoints(results)
        logger.info("Breakpoint sweep finished: %s, %s", rollup.status, rollup.summary)
        return rollup

    async def _run_visual(
        self, mode, target, url, viewport, options, reference, port, results
    ) -> ValidationReport | None:
        """Fill results["visual"]; return an ERROR report when the call must abort."""
        viewport = viewport or viewport_from_target(target)
        if viewport is None:
            return error_report(
                mode, VIEWPORT_NOT_FOUND,
                "Viewport not provided and cannot be derived from the target bounds",
                hint="Provide a viewport with width and height, or a target with bounds",
                issue_type="input", location="viewport",
            )
        if reference is None:
            return error_report(
                mode, REFERENCE_FETCH_ERROR, "No reference image given",
                hint="Pass a reference image URL, path or bytes",
                issue_type="input", location="reference",
            )

        try:
            await self.session_manager.ensure_ready(port)
        except BrowserUnavailableError as e:
            logger.error("Browser unavailable on port %d: %s", port, e)
            return error_report(mode, e.kind, e.message or str(e),
                                hint=e.hint or CAPTURE_HINTS[CDP_CONNECTION_REFUSED],
                                details={"port": port})
        except httpx.HTTPError as e:
            logger.error("Browser readiness check on port %d failed: %s", port, e)
            return error_report(mode, CDP_CONNECTION_REFUSED, str(e),
                                hint=CAPTURE_HINTS[CDP_CONNECTION_REFUSED], details={"port": port})

        visual = await self.visual.validate(url, reference, viewport, options, target=target, port=port)
        if visual.status == "ERROR":
            input_error = visual.error in (DIMENSION_MISMATCH, COMPARISON_ERROR, REFERENCE_FETCH_ERROR)
            return error_report(
                mode, visual.error or "ERROR", visual.message, hint=visual.hint,
                issue_type="input" if input_error else "environment",
                location="comparison" if input_error else "browser",
                details={"visual": visual.model_dump(), "viewport": viewport.model_dump()},
            )
        results["visual"] = visual
        return None

    @staticmethod
    def _summary(status: str, score: float, pass_threshold: float, results: dict, issues: list[Issue]) -> str:
        parts = [f"{status}: score {score}% (pass at {pass_threshold:g}%)"]
        visual: VisualResult | None = results.get("visual")
        if visual is not None:
            shown = display_score(visual.match_score)
            if visual.chunking is not None:
                parts.append(f"visual {shown}% across {visual.chunking.total_chunks} chunks")
            elif visual.sections is not None:
                parts.append(f"visual {shown}% across {len(visual.sections.sections)} sections")
            else:
                parts.append(f"visual {shown}%")
        if issues:
            parts.append(f"{len(issues)} issue(s)")
        return ", ".join(parts)
