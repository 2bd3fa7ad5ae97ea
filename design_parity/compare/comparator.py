"""Pixel-level comparison of a reference and a rendered image."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from design_parity.compare.imaging import ImageInput, RasterImage, decode_image, encode_png_base64
from design_parity.compare.pixel_diff import pixelmatch
from design_parity.compare.regions import analyze_regions
from design_parity.errors import DimensionMismatchError
from design_parity.models.comparison import ComparisonResult, Dimensions
from design_parity.models.config import CompareOptions
from design_parity.models.report import COMPARISON_ERROR, DIMENSION_MISMATCH

logger = logging.getLogger(__name__)


def diff_images(
    reference: ImageInput,
    rendered: ImageInput,
    options: CompareOptions | None = None,
    keep_diff: bool = False,
) -> tuple[ComparisonResult, Optional[RasterImage]]:
    """Compare two same-sized images, returning the diff raster unencoded.

    The diff is only rendered when `keep_diff` is set.

    Raises:
        DimensionMismatchError: the images differ in width or height. No
            resizing is ever attempted.
    """
    options = options or CompareOptions()
    img_a = decode_image(reference)
    img_b = decode_image(rendered)

    if img_a.size != img_b.size:
        raise DimensionMismatchError(img_a.size, img_b.size)

    total = img_a.pixel_count
    if total == 0:
        raise ValueError("Cannot compare empty images")

    diff = pixelmatch(
        img_a.data,
        img_b.data,
        threshold=options.threshold,
        include_aa=options.include_aa,
        alpha=options.alpha,
        output=keep_diff,
    )
    score = (total - diff.mismatched) / total * 100

    raster = None
    if diff.diff_image is not None:
        raster = RasterImage(diff.diff_image, img_a.width, img_a.height)

    logger.debug("Compared %dx%d: %d mismatched pixels (%.1f%%)",
                 img_a.width, img_a.height, diff.mismatched, score)

    result = ComparisonResult(
        match_score=score,
        mismatched_pixels=diff.mismatched,
        total_pixels=total,
        dimensions=Dimensions(width=img_a.width, height=img_a.height),
        regions=analyze_regions(diff.mask),
        threshold=options.threshold,
    )
    return result, raster


def compare_images(
    reference: ImageInput,
    rendered: ImageInput,
    options: CompareOptions | None = None,
) -> ComparisonResult:
    """Compare two same-sized images; the diff is inlined as base64 PNG when requested.

    Raises:
        DimensionMismatchError: the images differ in width or height.
    """
    options = options or CompareOptions()
    result, diff = diff_images(reference, rendered, options, keep_diff=options.include_diff_image)
    if diff is not None:
        result.diff_image_base64 = encode_png_base64(diff)
    return result


def display_score(score: float) -> float:
    """One-decimal score for output; a partial match never shows as 100."""
    rounded = round(score, 1)
    if rounded >= 100 and score < 100:
        return 99.9
    return rounded


@dataclass
class ComparisonOutcome:
    """Either a result or a tagged error; what the aggregator consumes."""
    success: bool
    result: Optional[ComparisonResult] = None
    error: Optional[str] = None
    message: str = ""
    details: dict = field(default_factory=dict)
    diff: Optional[RasterImage] = None  # only with keep_diff


def compare_or_error(
    reference: ImageInput,
    rendered: ImageInput,
    options: CompareOptions | None = None,
    keep_diff: bool = False,
) -> ComparisonOutcome:
    try:
        if keep_diff:
            result, diff = diff_images(reference, rendered, options, keep_diff=True)
            return ComparisonOutcome(success=True, result=result, diff=diff)
        return ComparisonOutcome(success=True, result=compare_images(reference, rendered, options))
    except DimensionMismatchError as e:
        logger.warning("%s", e.message)
        return ComparisonOutcome(
            success=False, error=DIMENSION_MISMATCH,
            message=f"{e.message}. {e.hint}", details=e.details,
        )
    except (ValueError, OSError) as e:
        # PIL raises UnidentifiedImageError (an OSError) for undecodable input
        logger.warning("Image comparison failed: %s", e)
        return ComparisonOutcome(success=False, error=COMPARISON_ERROR, message=str(e))
