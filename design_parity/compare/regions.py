"""Locate mismatches on a 3x3 grid and guess what went wrong in each cell."""

from __future__ import annotations

import numpy as np

from design_parity.models.comparison import GRID_AREAS, Bounds, Region

REGION_REPORT_PERCENT = 5.0

# (lower bound exclusive, cause), checked in order
CAUSE_TABLE: tuple[tuple[float, str], ...] = (
    (50.0, "Major element missing or significantly different"),
    (30.0, "Element missing, wrong position, or significantly wrong size"),
    (15.0, "Color difference, font mismatch, or spacing issue"),
)
DEFAULT_CAUSE = "Minor difference - possibly font rendering or anti-aliasing"

SEVERITY_RANK = {"critical": 0, "moderate": 1, "minor": 2}


def infer_possible_cause(mismatch_percent: float) -> str:
    for floor, cause in CAUSE_TABLE:
        if mismatch_percent > floor:
            return cause
    return DEFAULT_CAUSE


def severity_for(mismatch_percent: float) -> str:
    if mismatch_percent > 30:
        return "critical"
    if mismatch_percent > 15:
        return "moderate"
    return "minor"


def grid_cells(width: int, height: int, columns: int = 3, rows: int = 3) -> list[tuple[int, int, Bounds]]:
    """(row, col, bounds) for each cell; the last row and column absorb the remainder."""
    cell_w = width // columns
    cell_h = height // rows
    cells = []
    for row in range(rows):
        for col in range(columns):
            x = col * cell_w
            y = row * cell_h
            end_x = width if col == columns - 1 else x + cell_w
            end_y = height if row == rows - 1 else y + cell_h
            cells.append((row, col, Bounds(x=x, y=y, width=end_x - x, height=end_y - y)))
    return cells


def analyze_regions(mask: np.ndarray) -> list[Region]:
    """Regions whose local mismatch share exceeds the reporting floor, critical first."""
    height, width = mask.shape
    regions: list[Region] = []
    for row, col, b in grid_cells(width, height):
        cell_pixels = b.width * b.height
        if cell_pixels == 0:
            continue
        mismatches = int(np.count_nonzero(mask[b.y:b.bottom, b.x:b.right]))
        percent = mismatches / cell_pixels * 100
        if percent > REGION_REPORT_PERCENT:
            regions.append(Region(
                area=GRID_AREAS[row][col],
                bounds=b,
                mismatch_percent=round(percent, 1),
                severity=severity_for(percent),
                possible_cause=infer_possible_cause(percent),
            ))
    regions.sort(key=lambda r: SEVERITY_RANK[r.severity])
    return regions
