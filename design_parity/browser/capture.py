"""Drive a debuggable Chrome to render a URL at a viewport and screenshot it."""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
from playwright.async_api import Browser, Error as PlaywrightError, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from design_parity.browser.session import BrowserSessionManager, get_session_manager
from design_parity.errors import BrowserUnavailableError, ChromeNotFound, LaunchTimeout
from design_parity.models.comparison import Bounds
from design_parity.models.config import BrowserConfig, Viewport
from design_parity.models.report import (
    CDP_CONNECTION_REFUSED,
    CDP_ERROR,
    CDP_TIMEOUT,
    CHROME_NOT_FOUND,
)
from design_parity.utils.retry import with_timeout

logger = logging.getLogger(__name__)

CAPTURE_HINTS = {
    CDP_CONNECTION_REFUSED: "Start Chrome with --remote-debugging-port and make sure the port is free",
    CDP_TIMEOUT: "Check that the URL is reachable and loads within the navigation timeout",
    CHROME_NOT_FOUND: "Install Chrome/Chromium or set browser.chrome_path in the config",
    CDP_ERROR: "Check the browser console and that the URL is valid",
}


@dataclass
class CaptureResult:
    success: bool
    data: Optional[bytes] = None  # PNG
    error: Optional[str] = None  # error kind
    message: str = ""

    @property
    def hint(self) -> str:
        return CAPTURE_HINTS.get(self.error or "", "")


def classify_capture_error(error: BaseException) -> str:
    """Map an exception raised while capturing to an error kind."""
    if isinstance(error, ChromeNotFound):
        return CHROME_NOT_FOUND
    if isinstance(error, (LaunchTimeout, TimeoutError, PlaywrightTimeoutError, httpx.TimeoutException)):
        return CDP_TIMEOUT
    if isinstance(error, (httpx.ConnectError, ConnectionRefusedError)):
        return CDP_CONNECTION_REFUSED
    if isinstance(error, BrowserUnavailableError):
        return error.kind
    message = str(error)
    if "ECONNREFUSED" in message or "Connection refused" in message:
        return CDP_CONNECTION_REFUSED
    if "timeout" in message.lower():
        return CDP_TIMEOUT
    return CDP_ERROR


class ScreenshotCapturer:
    """Captures full-viewport or clipped screenshots over the DevTools protocol.

    Each capture opens its own protocol connection and always closes it,
    whatever the outcome; the browser process itself stays up.
    """

    def __init__(
        self,
        config: BrowserConfig | None = None,
        session_manager: BrowserSessionManager | None = None,
        playwright_factory: Callable = async_playwright,
    ):
        self.config = config or BrowserConfig()
        self.session_manager = session_manager or get_session_manager(self.config)
        self._playwright_factory = playwright_factory

    async def capture(self, url: str, viewport: Viewport, port: int | None = None) -> CaptureResult:
        """Screenshot the whole viewport after the page has loaded."""
        return await self._capture(url, viewport, clip=None, port=port)

    async def capture_region(
        self, url: str, region: Bounds, full_viewport: Viewport, port: int | None = None
    ) -> CaptureResult:
        """Screenshot `region` of a page laid out at `full_viewport`."""
        return await self._capture(url, full_viewport, clip=region, port=port)

    async def _capture(
        self, url: str, viewport: Viewport, clip: Bounds | None, port: int | None
    ) -> CaptureResult:
        port = port or self.config.port
        try:
            await self.session_manager.ensure_ready(port)
            async with self._playwright_factory() as p:
                data = await self._drive(p, url, viewport, clip, port)
            logger.debug("Captured %s at %dx%d (%d bytes)", url, viewport.width, viewport.height, len(data))
            return CaptureResult(success=True, data=data)
        except (BrowserUnavailableError, PlaywrightError, httpx.HTTPError, TimeoutError, OSError) as e:
            kind = classify_capture_error(e)
            logger.warning("Capture of %s failed (%s): %s", url, kind, e)
            return CaptureResult(success=False, error=kind, message=f"{e} (port {port})")

    async def _drive(self, playwright, url: str, viewport: Viewport, clip: Bounds | None, port: int) -> bytes:
        nav_timeout = self.config.navigation_timeout_seconds
        nav_ms = int(nav_timeout * 1000)
        endpoint = f"http://{self.config.host}:{port}"

        browser: Browser = await with_timeout(
            playwright.chromium.connect_over_cdp(endpoint),
            self.config.connect_timeout_seconds,
            f"Connection to Chrome on port {port} timed out",
        )
        page = None
        cdp = None
        try:
            context = browser.contexts[0] if browser.contexts else await browser.new_context()
            page = await context.new_page()
            cdp = await context.new_cdp_session(page)

            await cdp.send("Emulation.setDeviceMetricsOverride", {
                "width": viewport.width,
                "height": viewport.height,
                "deviceScaleFactor": 1,
                "mobile": False,
            })
            await cdp.send("Page.enable")

            await with_timeout(page.goto(url, wait_until="commit", timeout=0), nav_timeout,
                               f"Page navigation timeout after {nav_ms}ms")
            await with_timeout(page.wait_for_load_state("load", timeout=0), nav_timeout,
                               f"Page load timeout after {nav_ms}ms")

            if clip is not None:
                await page.evaluate("() => window.scrollTo(0, 0)")

            # Fonts and late images
            await asyncio.sleep(self.config.settle_delay_ms / 1000)

            params: dict = {"format": "png"}
            if clip is not None:
                params["clip"] = {
                    "x": clip.x,
                    "y": clip.y,
                    "width": clip.width,
                    "height": clip.height,
                    "scale": 1,
                }
            result = await with_timeout(cdp.send("Page.captureScreenshot", params), nav_timeout,
                                        f"Screenshot capture timeout after {nav_ms}ms")
            return base64.b64decode(result["data"])
        finally:
            await self._close_quietly(cdp, page, browser)

    @staticmethod
    async def _close_quietly(cdp, page, browser) -> None:
        # The connection may already be gone; closing is best effort.
        if cdp is not None:
            try:
                await cdp.detach()
            except PlaywrightError as e:
                logger.debug("CDP session detach failed: %s", e)
        if page is not None:
            try:
                await page.close()
            except PlaywrightError as e:
                logger.debug("Page close failed: %s", e)
        try:
            await browser.close()
        except PlaywrightError as e:
            logger.debug("Browser disconnect failed: %s", e)
