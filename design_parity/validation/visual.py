"""Screenshot vs reference comparison: direct, tiled or per section."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from design_parity.browser.capture import CaptureResult, ScreenshotCapturer
from design_parity.compare.comparator import compare_or_error, display_score
from design_parity.compare.imaging import RasterImage, crop, decode_image
from design_parity.errors import DesignParityError, ReferenceFetchError
from design_parity.models.checks import ChunkingSummary, SectionsSummary, VisualResult
from design_parity.models.comparison import Region
from design_parity.models.config import CompareOptions, ValidatorConfig, Viewport
from design_parity.models.design import DesignNode, SectionResult
from design_parity.models.report import COMPARISON_ERROR
from design_parity.sections.planner import (
    analyze_section_problems,
    determine_overall_status,
    determine_section_status,
    extract_css_tree,
    plan_sections,
)
from design_parity.tiling.grid import calculate_chunk_grid, chunk_bounds, needs_tiling, validate_image_size
from design_parity.tiling.orchestrator import TileOrchestrator
from design_parity.tiling.reference import ReferenceImageFetcher, ReferenceSource

logger = logging.getLogger(__name__)


def generate_recommendations(regions: list[Region]) -> list[str]:
    """Fix hints for a failed direct comparison, most urgent first."""
    recs: list[str] = []
    if any(r.severity == "critical" for r in regions):
        recs.append("Check for missing elements in critical regions")
        recs.append("Verify all images and icons are loading")
    if any(r.severity == "moderate" for r in regions):
        recs.append("Check font family and weight")
        recs.append("Verify exact hex colors from the design")
        recs.append("Check spacing and padding values")
    for region in regions[:3]:
        recs.append(f"Check {region.area}: {region.possible_cause}")
    return list(dict.fromkeys(recs))


class VisualValidator:
    def __init__(
        self,
        config: ValidatorConfig,
        capturer: ScreenshotCapturer,
        tile_orchestrator: TileOrchestrator | None = None,
        reference_transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.capturer = capturer
        self.tiles = tile_orchestrator or TileOrchestrator(config.tiling)
        self._reference_transport = reference_transport
        self._sleep = sleep

    def reference_fetcher(self, source: ReferenceSource) -> ReferenceImageFetcher:
        return ReferenceImageFetcher(
            source, self.config.reference, transport=self._reference_transport, sleep=self._sleep
        )

    async def validate(
        self,
        url: str,
        reference: ReferenceSource,
        viewport: Viewport,
        options: CompareOptions,
        target: DesignNode | None = None,
        port: int | None = None,
    ) -> VisualResult:
        fetcher = self.reference_fetcher(reference)
        if needs_tiling(viewport.width, viewport.height, self.config.tiling.threshold_px):
            return await self.validate_tiled(url, fetcher, viewport, options, port)
        return await self.validate_direct(url, fetcher, viewport, options, target, port)

    # ------------------------------------------------------------------
    # Direct path
    # ------------------------------------------------------------------

    async def validate_direct(
        self,
        url: str,
        fetcher: ReferenceImageFetcher,
        viewport: Viewport,
        options: CompareOptions,
        target: DesignNode | None = None,
        port: int | None = None,
    ) -> VisualResult:
        threshold = options.pass_threshold
        try:
            try:
                reference = await fetcher.image()
            except ReferenceFetchError as e:
                return VisualResult(status="ERROR", pass_threshold=threshold,
                                    error=e.kind, message=e.message, hint=e.hint)
            except (ValueError, OSError) as e:
                return VisualResult(status="ERROR", pass_threshold=threshold, error=COMPARISON_ERROR,
                                    message=f"Reference image could not be decoded: {e}",
                                    hint="Check that the reference is a PNG or JPEG image")

            capture = await self.capturer.capture(url, viewport, port)
            if not capture.success:
                return self._capture_error(capture, threshold)

            outcome = compare_or_error(reference, capture.data, options)
            if not outcome.success:
                return VisualResult(
                    status="ERROR", pass_threshold=threshold, error=outcome.error,
                    message=outcome.message, error_details=outcome.details,
                    hint="Resize the browser viewport to match the reference dimensions exactly"
                    if outcome.details else "Check that both images are valid",
                )

            comparison = outcome.result
            passed = comparison.match_score >= threshold
            result = VisualResult(
                status="PASS" if passed else "FAIL",
                path="direct",
                match_score=comparison.match_score,
                pass_threshold=threshold,
                mismatched_pixels=comparison.mismatched_pixels,
                total_pixels=comparison.total_pixels,
                regions=comparison.regions,
                recommendations=[] if passed else generate_recommendations(comparison.regions),
                diff_image_base64=comparison.diff_image_base64 if options.include_diff_image else None,
            )

            if target is not None and target.children:
                sections = self.validate_sections(
                    reference, decode_image(capture.data), target, viewport, options
                )
                result.sections = sections
                result.status = sections.status
                if sections.status != "PASS":
                    result.recommendations = list(dict.fromkeys(
                        result.recommendations
                        + [r for s in sections.sections for r in s.recommendations]
                        + [sections.next_action]
                    ))
            return result
        finally:
            fetcher.clear()

    @staticmethod
    def _capture_error(capture: CaptureResult, threshold: float) -> VisualResult:
        return VisualResult(status="ERROR", pass_threshold=threshold, error=capture.error,
                            message=capture.message, hint=capture.hint)

    # ------------------------------------------------------------------
    # Per-section re-scoping
    # ------------------------------------------------------------------

    def validate_sections(
        self,
        reference: RasterImage,
        rendered: RasterImage,
        frame: DesignNode,
        viewport: Viewport,
        options: CompareOptions,
    ) -> SectionsSummary:
        """Compare each section's crop of both images; failures stay local to their section."""
        cfg = self.config.sections
        sections, dependencies, order = plan_sections(
            frame, gap=cfg.gap_px, neutral_color=cfg.neutral_color, fallback_width=viewport.width
        )
        section_options = options.model_copy(update={"include_diff_image": False})
        results: list[SectionResult] = []
        total_score = 0.0
        failed = 0

        for section in sections:
            base = {"id": section.id, "name": section.name, "bounds": section.bounds, "bg_color": section.bg_color}
            try:
                outcome = compare_or_error(
                    crop(reference, section.bounds), crop(rendered, section.bounds), section_options
                )
                if not outcome.success:
                    logger.warning("Section %s (%s) could not be compared: %s",
                                   section.id, section.name, outcome.message)
                    results.append(SectionResult(**base, status="ERROR", error=outcome.error))
                    failed += 1
                    continue

                score = outcome.result.match_score
                status = determine_section_status(score, options.pass_threshold)
                problems = analyze_section_problems(outcome.result.regions)
                recs: list[str] = []
                if problems:
                    critical = [p.area for p in problems if p.severity == "critical"]
                    if critical:
                        recs.append("Fix critical regions in " + section.name + ": " + ", ".join(critical))
                    recs.append("Verify CSS properties match the design exactly")
                    recs.append("Check that all images and icons are loading")

                results.append(SectionResult(
                    **base,
                    status=status,
                    match_score=score,
                    problems=problems,
                    css_tree=extract_css_tree(section.nodes[0]) if section.nodes else None,
                    recommendations=recs,
                ))
                total_score += score
                if status == "FAIL":
                    failed += 1
            except (DesignParityError, ValueError, OSError) as e:
                logger.warning("Section %s failed: %s", section.id, e)
                results.append(SectionResult(**base, status="ERROR", error=str(e)))
                failed += 1

        overall = total_score / len(results) if results else 0.0
        status = determine_overall_status(failed, len(results))
        if status == "PASS":
            next_action = "All sections validated successfully"
        else:
            first = order[0] if order else None
            next_action = (
                f"{failed} section(s) need fixes. Start with section "
                f"{first.section_id if first else 'section-0'} ({first.section_name if first else 'first section'})"
            )

        logger.info("Validated %d sections: %.1f%% overall, %d below threshold",
                    len(results), overall, failed)
        return SectionsSummary(
            status=status,
            overall_score=overall,
            sections=results,
            dependencies=dependencies,
            implementation_order=order,
            next_action=next_action,
        )

    # ------------------------------------------------------------------
    # Tiled path
    # ------------------------------------------------------------------

    async def validate_tiled(
        self,
        url: str,
        fetcher: ReferenceImageFetcher,
        viewport: Viewport,
        options: CompareOptions,
        port: int | None = None,
    ) -> VisualResult:
        threshold = options.pass_threshold
        size_check = validate_image_size(viewport.width, viewport.height)
        if not size_check["safe"]:
            return VisualResult(
                status="ERROR", path="tiled", pass_threshold=threshold, error=COMPARISON_ERROR,
                message=f"Target {viewport.width}x{viewport.height} exceeds the maximum raster size",
                hint=f"Export the reference at scale {size_check['recommended_scale']} or split the target",
                error_details=size_check,
            )
        if "warning" in size_check:
            logger.warning("%s (%dx%d)", size_check["warning"], viewport.width, viewport.height)

        chunk_size = self.config.tiling.chunk_size
        grid = calculate_chunk_grid(viewport.width, viewport.height, chunk_size)
        logger.info("Target %dx%d exceeds %dpx, validating %d chunks (%dx%d grid)",
                    viewport.width, viewport.height, self.config.tiling.threshold_px,
                    len(grid.chunks), grid.columns, grid.rows)

        async def rendered_chunk(chunk) -> CaptureResult:
            return await self.capturer.capture_region(url, chunk_bounds(chunk), viewport, port)

        results = await self.tiles.run_tiled(grid, fetcher, rendered_chunk, options)
        summary = self.tiles.summarize(grid, results, threshold)
        consolidated = summary["consolidated"]

        chunking = ChunkingSummary(
            frame_size={"width": viewport.width, "height": viewport.height},
            chunk_size=chunk_size,
            columns=grid.columns,
            rows=grid.rows,
            total_chunks=len(grid.chunks),
            processed_chunks=sum(1 for r in results if not r.failed),
            failed_chunks=consolidated.failed_chunks,
            errored_chunks=consolidated.errored_chunks,
            grid_map=summary["grid_map"],
            problem_areas=[
                {
                    "chunk_id": p.id,
                    "position": {"x": p.x, "y": p.y},
                    "size": {"width": p.width, "height": p.height},
                    "match_score": display_score(p.match_score),
                    "error": p.error,
                    "diff_thumbnail": f"data:image/png;base64,{p.diff_thumbnail}" if p.diff_thumbnail else None,
                }
                for p in consolidated.problem_areas
            ],
        )
        return VisualResult(
            status="PASS" if consolidated.passed else "FAIL",
            path="tiled",
            match_score=consolidated.overall_score,
            pass_threshold=threshold,
            total_pixels=viewport.width * viewport.height,
            recommendations=summary["recommendations"],
            chunking=chunking,
        )
