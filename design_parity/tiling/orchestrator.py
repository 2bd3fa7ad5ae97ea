"""Validate oversized targets chunk by chunk."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

import httpx

from design_parity.browser.capture import CaptureResult
from design_parity.compare.comparator import compare_or_error
from design_parity.compare.imaging import RasterImage, generate_diff_thumbnail
from design_parity.errors import DesignParityError
from design_parity.models.config import CompareOptions, TilingConfig
from design_parity.models.tiling import Chunk, ChunkGrid, ChunkResult, ConsolidatedResult
from design_parity.tiling.grid import chunk_bounds
from design_parity.tiling.reference import ReferenceImageFetcher

logger = logging.getLogger(__name__)

RenderedFetcher = Callable[[Chunk], Awaitable[CaptureResult]]


def consolidate_chunk_results(
    results: list[ChunkResult],
    pass_threshold: float,
    max_problem_areas: int = 6,
) -> ConsolidatedResult:
    """Pixel-weighted overall score; the worst failing chunks become problem areas."""
    total_pixels = 0
    weighted = 0.0
    failing: list[ChunkResult] = []

    for result in results:
        weighted += result.match_score * result.pixel_count
        total_pixels += result.pixel_count
        if result.match_score < pass_threshold:
            failing.append(result)

    overall = weighted / total_pixels if total_pixels > 0 else 0.0
    problem_areas = sorted(failing, key=lambda r: r.match_score)[:max_problem_areas]

    return ConsolidatedResult(
        overall_score=overall,
        passed=overall >= pass_threshold,
        total_chunks=len(results),
        failed_chunks=len(failing),
        errored_chunks=sum(1 for r in results if r.failed),
        problem_areas=problem_areas,
    )


def generate_grid_map(results: list[ChunkResult], columns: int, rows: int, pass_threshold: float) -> str:
    """ASCII map of the grid with one PASS/FAIL cell per chunk."""
    by_position = {(r.col, r.row): r for r in results}
    divider = "+" + "------+" * columns
    lines = [divider]
    for row in range(rows):
        line = "|"
        for col in range(columns):
            chunk = by_position.get((col, row))
            line += (" PASS " if chunk is not None and chunk.match_score >= pass_threshold else " FAIL ") + "|"
        lines.append(line)
        lines.append(divider)
    return "\n".join(lines)


def generate_chunked_recommendations(problem_areas: list[ChunkResult], columns: int, rows: int) -> list[str]:
    if not problem_areas:
        return ["All chunks passed validation"]

    avg_col = sum(p.col for p in problem_areas) / len(problem_areas)
    avg_row = sum(p.row for p in problem_areas) / len(problem_areas)

    if avg_row < rows / 3:
        area = "top"
    elif avg_row > rows * 2 / 3:
        area = "bottom"
    else:
        area = "central"
    if avg_col < columns / 3:
        area += " left"
    elif avg_col > columns * 2 / 3:
        area += " right"

    worst = problem_areas[0]
    recs = [
        f"Focus on the {area} area - highest concentration of problems",
        f"Chunk {worst.id} has the worst score ({worst.match_score:.1f}%) - prioritize it",
    ]
    if len(problem_areas) > 3:
        recs.append(f"{len(problem_areas)} chunks with problems - consider reviewing the overall layout")
    return recs


class TileOrchestrator:
    """Runs the per-chunk fetch / capture / compare loop for one target.

    Chunks are processed one at a time in row-major order. A chunk that
    fails for any reason is recorded with score 0 and the loop moves on.
    Only the worst `max_thumbnails` failing chunks, the same ones
    consolidation reports as problem areas, get a diff thumbnail.
    """

    def __init__(self, config: TilingConfig | None = None):
        self.config = config or TilingConfig()

    async def run_tiled(
        self,
        grid: ChunkGrid,
        reference_fetcher: ReferenceImageFetcher,
        rendered_fetcher: RenderedFetcher,
        options: CompareOptions | None = None,
    ) -> list[ChunkResult]:
        options = options or CompareOptions()
        chunk_options = options.model_copy(update={"include_diff_image": False})
        results: list[ChunkResult] = []
        # (score, index, diff) of the worst failing chunks so far, best evicted first
        worst: list[tuple[float, int, Optional[RasterImage]]] = []
        total = len(grid.chunks)

        try:
            for index, chunk in enumerate(grid.chunks):
                logger.info("Validating chunk %s [%d/%d] (%dx%d at %d,%d)",
                            chunk.id, index + 1, total, chunk.width, chunk.height, chunk.x, chunk.y)
                result, diff = await self._run_chunk(chunk, reference_fetcher, rendered_fetcher, chunk_options)
                if result.failed:
                    logger.warning("Chunk %s failed: %s", chunk.id, result.error)
                results.append(result)
                if result.match_score < options.pass_threshold:
                    worst.append((result.match_score, index, diff))
                    worst.sort(key=lambda w: (w[0], w[1]))
                    del worst[self.config.max_thumbnails:]
        finally:
            reference_fetcher.clear()

        for _, index, diff in worst:
            if diff is not None:
                results[index].diff_thumbnail = generate_diff_thumbnail(diff, self.config.thumbnail_size)
        return results

    async def _run_chunk(
        self,
        chunk: Chunk,
        reference_fetcher: ReferenceImageFetcher,
        rendered_fetcher: RenderedFetcher,
        options: CompareOptions,
    ) -> tuple[ChunkResult, Optional[RasterImage]]:
        """Score one chunk; the diff raster is kept only when it falls below the threshold."""
        base = chunk.model_dump()
        try:
            reference = await reference_fetcher.region(chunk_bounds(chunk))

            capture = await rendered_fetcher(chunk)
            if not capture.success:
                return ChunkResult(**base, match_score=0.0, error=capture.error or capture.message), None

            outcome = compare_or_error(reference, capture.data, options, keep_diff=True)
            if not outcome.success:
                return ChunkResult(**base, match_score=0.0, error=outcome.error), None

            score = outcome.result.match_score
            diff = outcome.diff if score < options.pass_threshold else None
            return ChunkResult(**base, match_score=score), diff

        except (DesignParityError, httpx.HTTPError, ValueError, OSError) as e:
            return ChunkResult(**base, match_score=0.0, error=str(e)), None

    def summarize(self, grid: ChunkGrid, results: list[ChunkResult], pass_threshold: float) -> dict:
        """Consolidated score, grid map and recommendations for a finished run."""
        consolidated = consolidate_chunk_results(results, pass_threshold, self.config.max_thumbnails)
        return {
            "consolidated": consolidated,
            "grid_map": generate_grid_map(results, grid.columns, grid.rows, pass_threshold),
            "recommendations": generate_chunked_recommendations(
                consolidated.problem_areas, grid.columns, grid.rows
            ),
        }
