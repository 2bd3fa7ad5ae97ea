"""Exception hierarchy for the validation pipeline."""

from __future__ import annotations

from design_parity.models.report import (
    CDP_CONNECTION_REFUSED,
    CDP_TIMEOUT,
    CHROME_NOT_FOUND,
    DIMENSION_MISMATCH,
    REFERENCE_FETCH_ERROR,
)


class DesignParityError(Exception):
    """Base class; `kind` is the machine-readable error code."""

    kind = "ERROR"
    hint = ""

    def __init__(self, message: str = "", hint: str | None = None):
        super().__init__(message)
        self.message = message
        if hint is not None:
            self.hint = hint


class BrowserUnavailableError(DesignParityError):
    kind = CDP_CONNECTION_REFUSED


class ChromeNotFound(BrowserUnavailableError):
    kind = CHROME_NOT_FOUND
    hint = "Install Chrome/Chromium or set browser.chrome_path in the config"


class LaunchTimeout(BrowserUnavailableError):
    kind = CDP_TIMEOUT
    hint = "Chrome was spawned but never opened its debugging port; start it manually with --remote-debugging-port"


class DimensionMismatchError(DesignParityError):
    kind = DIMENSION_MISMATCH
    hint = "Resize the browser viewport to match the reference dimensions exactly"

    def __init__(self, reference_size: tuple[int, int], rendered_size: tuple[int, int]):
        self.reference_size = reference_size
        self.rendered_size = rendered_size
        w1, h1 = reference_size
        w2, h2 = rendered_size
        super().__init__(f"Images have different dimensions: {w1}x{h1} vs {w2}x{h2}")

    @property
    def details(self) -> dict:
        return {
            "reference_dimensions": {"width": self.reference_size[0], "height": self.reference_size[1]},
            "rendered_dimensions": {"width": self.rendered_size[0], "height": self.rendered_size[1]},
        }


class ReferenceFetchError(DesignParityError):
    kind = REFERENCE_FETCH_ERROR
    hint = "Check network connectivity and that the reference image URL is still valid"
