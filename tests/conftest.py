"""Pytest configuration and shared fixtures."""

import base64
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, Mock

import pytest
from helpers import make_png

from design_parity.models.config import BrowserConfig, CompareOptions, ValidatorConfig, Viewport


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def validator_config() -> ValidatorConfig:
    """Config with timing shortened for tests."""
    config = ValidatorConfig()
    config.browser.settle_delay_ms = 0
    config.browser.poll_interval_seconds = 0
    config.reference.retry_delay_seconds = 0
    return config


@pytest.fixture
def browser_config() -> BrowserConfig:
    """Browser config on a non-default port with no settle delay."""
    return BrowserConfig(port=9333, settle_delay_ms=0, poll_interval_seconds=0)


@pytest.fixture
def compare_options() -> CompareOptions:
    """Default comparison options."""
    return CompareOptions()


@pytest.fixture
def viewport() -> Viewport:
    """Small viewport matching the sample images."""
    return Viewport(width=60, height=60, name="test")


# ============================================================================
# Browser Fixtures
# ============================================================================


@pytest.fixture
def ready_session_manager() -> Mock:
    """Session manager whose browser is always reachable."""
    manager = Mock()
    manager.ensure_ready = AsyncMock()
    return manager


@pytest.fixture
def mock_cdp():
    """CDP session returning a 60x60 white screenshot."""
    screenshot = base64.b64encode(make_png(60, 60)).decode("ascii")

    async def send(method, params=None):
        if method == "Page.captureScreenshot":
            return {"data": screenshot}
        return {}

    cdp = Mock()
    cdp.send = AsyncMock(side_effect=send)
    cdp.detach = AsyncMock()
    return cdp


@pytest.fixture
def mock_page():
    """Playwright page whose navigation succeeds immediately."""
    page = Mock()
    page.goto = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.evaluate = AsyncMock()
    page.close = AsyncMock()
    return page


@pytest.fixture
def mock_browser(mock_page, mock_cdp):
    """CDP-connected browser with one default context."""
    context = Mock()
    context.new_page = AsyncMock(return_value=mock_page)
    context.new_cdp_session = AsyncMock(return_value=mock_cdp)
    browser = Mock()
    browser.contexts = [context]
    browser.close = AsyncMock()
    return browser


@pytest.fixture
def playwright_factory(mock_browser):
    """Stand-in for async_playwright() yielding a driver that connects to mock_browser."""
    pw = Mock()
    pw.chromium.connect_over_cdp = AsyncMock(return_value=mock_browser)

    @asynccontextmanager
    async def factory():
        yield pw

    factory.playwright = pw
    return factory


# ============================================================================
# HTTP Fixtures
# ============================================================================


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Awaitable sleep that returns immediately and records its delays."""
    return AsyncMock()
