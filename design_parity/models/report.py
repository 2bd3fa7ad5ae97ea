"""Validation report data structures returned to callers."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

Status = Literal["PASS", "FAIL", "PARTIAL", "ERROR"]
Mode = Literal["visual", "layout", "elements", "assets", "full"]

MODES: tuple[str, ...] = ("visual", "layout", "elements", "assets")

# Error kinds a calling agent can branch on
CDP_CONNECTION_REFUSED = "CDP_CONNECTION_REFUSED"
CDP_TIMEOUT = "CDP_TIMEOUT"
CDP_ERROR = "CDP_ERROR"
CHROME_NOT_FOUND = "CHROME_NOT_FOUND"
DIMENSION_MISMATCH = "DIMENSION_MISMATCH"
COMPARISON_ERROR = "COMPARISON_ERROR"
VIEWPORT_NOT_FOUND = "VIEWPORT_NOT_FOUND"
REFERENCE_FETCH_ERROR = "REFERENCE_FETCH_ERROR"

SEVERITY_ORDER = {"critical": 0, "moderate": 1, "warning": 2, "minor": 3}


class Issue(BaseModel):
    severity: str  # critical, moderate, warning, minor
    type: str  # visual, layout, elements, assets, environment, input
    location: str = "unknown"
    message: str


class ValidationReport(BaseModel):
    status: Status
    score: float = 0.0
    mode: str = "visual"
    issues: list[Issue] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None  # error kind when status is ERROR
    hint: Optional[str] = None
    summary: str = ""

    @property
    def passed(self) -> bool:
        return self.status == "PASS"


class BreakpointResult(BaseModel):
    """One viewport's run within a breakpoint sweep."""
    breakpoint: str
    width: int
    height: int
    status: Literal["PASS", "WARNING", "FAIL", "ERROR", "NOT_TESTED"]
    score: float = 0.0
    checks_passed: int = 0
    checks_warned: int = 0
    checks_failed: int = 0
    priority_fixes: list[str] = Field(default_factory=list)
    reason: str = ""  # why the breakpoint was skipped or errored
    report: Optional[ValidationReport] = None


class BreakpointsReport(BaseModel):
    status: Literal["PASS", "WARNING", "FAIL"]
    total: int = 0
    passed: int = 0
    warnings: int = 0
    failed: int = 0  # FAIL and ERROR breakpoints
    not_tested: int = 0
    breakpoints: list[BreakpointResult] = Field(default_factory=list)
    recommendation: str = ""
    summary: str = ""

    @property
    def all_passed(self) -> bool:
        return self.status == "PASS"
