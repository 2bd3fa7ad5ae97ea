"""Tests for the screenshot capturer."""

import asyncio
from unittest.mock import AsyncMock, Mock

import httpx
import pytest
from helpers import make_png
from playwright.async_api import Error as PlaywrightError

from design_parity.browser.capture import CAPTURE_HINTS, ScreenshotCapturer, classify_capture_error
from design_parity.errors import ChromeNotFound, LaunchTimeout
from design_parity.models.comparison import Bounds
from design_parity.models.config import BrowserConfig, Viewport


class TestClassifyCaptureError:
    """Tests for mapping capture exceptions to error kinds."""

    def test_chrome_not_found(self):
        """Test a missing binary maps to CHROME_NOT_FOUND."""
        assert classify_capture_error(ChromeNotFound("no chrome")) == "CHROME_NOT_FOUND"

    def test_timeouts(self):
        """Test hangs map to CDP_TIMEOUT."""
        assert classify_capture_error(TimeoutError("Page load timeout")) == "CDP_TIMEOUT"
        assert classify_capture_error(LaunchTimeout("slow")) == "CDP_TIMEOUT"

    def test_connection_refused(self):
        """Test refused connections map to CDP_CONNECTION_REFUSED."""
        assert classify_capture_error(ConnectionRefusedError()) == "CDP_CONNECTION_REFUSED"
        assert classify_capture_error(
            PlaywrightError("connect ECONNREFUSED 127.0.0.1:9222")
        ) == "CDP_CONNECTION_REFUSED"

    def test_other_errors(self):
        """Test anything else maps to CDP_ERROR."""
        assert classify_capture_error(PlaywrightError("net::ERR_NAME_NOT_RESOLVED")) == "CDP_ERROR"

    def test_every_kind_has_hint(self):
        """Test each capture error kind carries a hint."""
        for kind in ("CDP_CONNECTION_REFUSED", "CDP_TIMEOUT", "CHROME_NOT_FOUND", "CDP_ERROR"):
            assert CAPTURE_HINTS[kind]


class TestScreenshotCapturer:
    """Tests for ScreenshotCapturer."""

    @pytest.fixture
    def capturer(self, browser_config, ready_session_manager, playwright_factory) -> ScreenshotCapturer:
        return ScreenshotCapturer(browser_config, ready_session_manager, playwright_factory=playwright_factory)

    @pytest.mark.asyncio
    async def test_capture_full_viewport(self, capturer, playwright_factory, mock_cdp, mock_page):
        """Test a capture sets the viewport, loads the page and returns PNG bytes."""
        result = await capturer.capture("http://localhost:3000", Viewport(width=60, height=60))

        assert result.success is True
        assert result.data == make_png(60, 60)
        playwright_factory.playwright.chromium.connect_over_cdp.assert_awaited_once_with("http://127.0.0.1:9333")
        mock_cdp.send.assert_any_await("Emulation.setDeviceMetricsOverride", {
            "width": 60, "height": 60, "deviceScaleFactor": 1, "mobile": False,
        })
        mock_cdp.send.assert_any_await("Page.enable")
        mock_cdp.send.assert_any_await("Page.captureScreenshot", {"format": "png"})
        mock_page.goto.assert_awaited_once_with("http://localhost:3000", wait_until="commit", timeout=0)
        mock_page.wait_for_load_state.assert_awaited_once()
        mock_page.evaluate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_capture_region_clips(self, capturer, mock_cdp, mock_page):
        """Test a region capture scrolls to the top and clips at scale 1."""
        region = Bounds(x=10, y=20, width=30, height=40)
        result = await capturer.capture_region("http://localhost:3000", region, Viewport(width=60, height=60))

        assert result.success is True
        mock_page.evaluate.assert_awaited_once_with("() => window.scrollTo(0, 0)")
        mock_cdp.send.assert_any_await("Page.captureScreenshot", {
            "format": "png",
            "clip": {"x": 10, "y": 20, "width": 30, "height": 40, "scale": 1},
        })

    @pytest.mark.asyncio
    async def test_connection_closed_after_success(self, capturer, mock_browser, mock_page, mock_cdp):
        """Test the CDP session, page and connection are closed."""
        await capturer.capture("http://localhost:3000", Viewport(width=60, height=60))

        mock_cdp.detach.assert_awaited_once()
        mock_page.close.assert_awaited_once()
        mock_browser.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_navigation_failure(self, capturer, mock_browser, mock_page):
        """Test a navigation error becomes a tagged failure and still closes the connection."""
        mock_page.goto.side_effect = PlaywrightError("net::ERR_CONNECTION_RESET")

        result = await capturer.capture("http://localhost:3000", Viewport(width=60, height=60))

        assert result.success is False
        assert result.error == "CDP_ERROR"
        assert "ERR_CONNECTION_RESET" in result.message
        assert result.hint == CAPTURE_HINTS["CDP_ERROR"]
        mock_browser.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_load_timeout(self, ready_session_manager, playwright_factory, mock_browser, mock_page):
        """Test a page that never finishes loading times out."""
        async def hang(*args, **kwargs):
            await asyncio.sleep(10)

        mock_page.wait_for_load_state.side_effect = hang
        config = BrowserConfig(port=9333, settle_delay_ms=0, navigation_timeout_seconds=0.01)
        capturer = ScreenshotCapturer(config, ready_session_manager, playwright_factory=playwright_factory)

        result = await capturer.capture("http://localhost:3000", Viewport(width=60, height=60))

        assert result.success is False
        assert result.error == "CDP_TIMEOUT"
        assert "Page load timeout" in result.message
        mock_browser.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connect_refused(self, capturer, playwright_factory):
        """Test a refused CDP connection is reported as such."""
        playwright_factory.playwright.chromium.connect_over_cdp.side_effect = PlaywrightError(
            "connect ECONNREFUSED 127.0.0.1:9333"
        )

        result = await capturer.capture("http://localhost:3000", Viewport(width=60, height=60))

        assert result.success is False
        assert result.error == "CDP_CONNECTION_REFUSED"
        assert "port 9333" in result.message

    @pytest.mark.asyncio
    async def test_browser_unavailable(self, browser_config, playwright_factory):
        """Test an unavailable browser fails before connecting."""
        manager = Mock()
        manager.ensure_ready = AsyncMock(side_effect=ChromeNotFound("Chrome not found"))
        capturer = ScreenshotCapturer(browser_config, manager, playwright_factory=playwright_factory)

        result = await capturer.capture("http://localhost:3000", Viewport(width=60, height=60))

        assert result.success is False
        assert result.error == "CHROME_NOT_FOUND"
        playwright_factory.playwright.chromium.connect_over_cdp.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_readiness_error_is_tagged(self, browser_config, playwright_factory):
        """Test an HTTP error from the readiness check is tagged, not raised."""
        manager = Mock()
        manager.ensure_ready = AsyncMock(side_effect=httpx.ConnectError("refused"))
        capturer = ScreenshotCapturer(browser_config, manager, playwright_factory=playwright_factory)

        result = await capturer.capture("http://localhost:3000", Viewport(width=60, height=60))

        assert result.error == "CDP_CONNECTION_REFUSED"
