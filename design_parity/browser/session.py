"""Keep one debuggable Chrome reachable per port."""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
import sys
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from design_parity.errors import BrowserUnavailableError, ChromeNotFound, LaunchTimeout
from design_parity.models.config import BrowserConfig

logger = logging.getLogger(__name__)

KNOWN_CHROME_PATHS: dict[str, list[str]] = {
    "darwin": [
        "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
        "/Applications/Chromium.app/Contents/MacOS/Chromium",
    ],
    "linux": [
        "/usr/bin/google-chrome",
        "/usr/bin/google-chrome-stable",
        "/usr/bin/chromium-browser",
        "/usr/bin/chromium",
    ],
    "win32": [
        "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
        "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
        "C:\\Program Files\\Chromium\\Application\\chrome.exe",
    ],
}

CHROME_ARGS = [
    "--headless=new",
    "--disable-gpu",
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    "--window-size=1920,1080",
    "--disable-web-resources",
    "--disable-default-apps",
    "--no-first-run",
]


def find_chrome_path(
    platform_name: Optional[str] = None,
    override: Optional[str] = None,
    path_exists: Callable[[str], bool] = os.path.exists,
) -> Optional[str]:
    """Return the first installed Chrome binary for the platform, or None."""
    override = override or os.environ.get("CHROME_PATH")
    if override:
        return override if path_exists(override) else None
    for candidate in KNOWN_CHROME_PATHS.get(platform_name or sys.platform, []):
        if path_exists(candidate):
            return candidate
    return None


def spawn_detached(args: list[str]) -> subprocess.Popen:
    """Start a process that outlives the caller."""
    kwargs: dict = {
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.DEVNULL,
        "stderr": subprocess.DEVNULL,
        "close_fds": True,
    }
    if sys.platform == "win32":
        kwargs["creationflags"] = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        kwargs["start_new_session"] = True
    return subprocess.Popen(args, **kwargs)


@dataclass
class BrowserSession:
    """Handle for the browser behind one debugging port.

    state: absent -> launching -> ready -> (crashed | absent)
    """
    port: int
    state: str = "absent"
    process: Optional[subprocess.Popen] = None
    launching: Optional[asyncio.Future] = None
    auto_launched: bool = False


class BrowserSessionManager:
    """Ensures a Chrome instance is reachable on a debugging port.

    A spawned browser is left running across calls so later validations
    reuse it; the manager never terminates it.
    """

    def __init__(
        self,
        config: BrowserConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        spawn: Callable[[list[str]], subprocess.Popen] = spawn_detached,
        path_exists: Callable[[str], bool] = os.path.exists,
        sleep: Callable[[float], object] = asyncio.sleep,
    ):
        self.config = config or BrowserConfig()
        self._transport = transport
        self._spawn = spawn
        self._path_exists = path_exists
        self._sleep = sleep
        self._sessions: dict[int, BrowserSession] = {}

    def session(self, port: int) -> BrowserSession:
        if port not in self._sessions:
            self._sessions[port] = BrowserSession(port=port)
        return self._sessions[port]

    async def check_port(self, port: int) -> bool:
        """GET /json/version on the debugging port.

        Raises httpx.ConnectError when nothing listens on the port.
        """
        url = f"http://{self.config.host}:{port}/json/version"
        async with httpx.AsyncClient(
            timeout=self.config.check_timeout_seconds, transport=self._transport
        ) as client:
            resp = await client.get(url)
            return resp.status_code == 200

    async def ensure_ready(self, port: int | None = None) -> BrowserSession:
        """Return once a browser answers on `port`, launching one if needed."""
        port = port or self.config.port
        session = self.session(port)

        if session.launching is not None:
            logger.debug("Chrome launch already in flight on port %d, waiting", port)
            await asyncio.shield(session.launching)
            return session

        try:
            if await self.check_port(port):
                session.state = "ready"
                return session
        except httpx.ConnectError:
            if session.state == "ready":
                logger.warning("Chrome on port %d is no longer reachable, relaunching", port)
                session.state = "crashed"
            else:
                logger.info("No Chrome listening on port %d", port)

        await self._launch(session)
        return session

    async def _launch(self, session: BrowserSession) -> None:
        # No await between the check and the assignment, so concurrent
        # callers always find the same task here.
        if session.launching is None:
            session.state = "launching"
            session.launching = asyncio.ensure_future(self._spawn_and_wait(session))
            session.launching.add_done_callback(lambda task, s=session: self._launch_settled(s, task))
        await asyncio.shield(session.launching)

    @staticmethod
    def _launch_settled(session: BrowserSession, task: asyncio.Future) -> None:
        session.launching = None
        if task.cancelled() or task.exception() is not None:
            session.state = "absent"
            session.process = None
        else:
            session.state = "ready"

    async def _spawn_and_wait(self, session: BrowserSession) -> None:
        chrome_path = find_chrome_path(
            override=self.config.chrome_path, path_exists=self._path_exists
        )
        if not chrome_path:
            raise ChromeNotFound(f"Chrome not found on this system ({sys.platform})")

        args = [chrome_path, f"--remote-debugging-port={session.port}", *CHROME_ARGS]
        logger.info("Launching Chrome on port %d: %s", session.port, chrome_path)
        session.process = self._spawn(args)
        session.auto_launched = True
        await self._wait_for_port(session)
        logger.info("Chrome ready on port %d (pid %s)", session.port,
                    getattr(session.process, "pid", "?"))

    async def _wait_for_port(self, session: BrowserSession) -> None:
        deadline = time.monotonic() + self.config.launch_timeout_seconds
        while True:
            try:
                if await self.check_port(session.port):
                    return
            except httpx.HTTPError as e:
                logger.debug("Port %d not ready yet: %s", session.port, e)

            process = session.process
            if process is not None and process.poll() is not None:
                raise BrowserUnavailableError(
                    f"Chrome exited with code {process.returncode} before opening port {session.port}"
                )
            if time.monotonic() >= deadline:
                raise LaunchTimeout(
                    f"Timed out waiting for Chrome on port {session.port} "
                    f"({self.config.launch_timeout_seconds:.0f}s)"
                )
            await self._sleep(self.config.poll_interval_seconds)

    async def check_available(self, port: int | None = None) -> dict:
        """Non-raising availability check used by reports and the CLI."""
        port = port or self.config.port
        try:
            session = await self.ensure_ready(port)
            return {"available": True, "port": port, "auto_launched": session.auto_launched}
        except (BrowserUnavailableError, httpx.HTTPError) as e:
            hint = getattr(e, "hint", "") or f"Start Chrome with --remote-debugging-port={port}"
            return {"available": False, "port": port, "error": str(e), "hint": hint}


_default_manager: BrowserSessionManager | None = None


def get_session_manager(config: BrowserConfig | None = None) -> BrowserSessionManager:
    """Process-wide manager used when callers do not inject their own."""
    global _default_manager
    if _default_manager is None:
        _default_manager = BrowserSessionManager(config)
    return _default_manager
