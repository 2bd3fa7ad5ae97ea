"""Reference image fetching with bounded retries and a per-run cache."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

import httpx

from design_parity.compare.imaging import RasterImage, crop, decode_image
from design_parity.errors import ReferenceFetchError
from design_parity.models.comparison import Bounds
from design_parity.models.config import ReferenceConfig
from design_parity.utils.retry import RetryError, retry_async, with_timeout

logger = logging.getLogger(__name__)

ReferenceSource = Union[str, Path, bytes]


class ReferenceImageFetcher:
    """Loads the full reference image once and hands out crops of it.

    `source` is an http(s) URL, a local path, or already-encoded image bytes.
    Call `clear()` when the run is over to release the decoded pixels.
    """

    def __init__(
        self,
        source: ReferenceSource,
        config: ReferenceConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.source = source
        self.config = config or ReferenceConfig()
        self._transport = transport
        self._sleep = sleep
        self._raw: Optional[bytes] = None
        self._image: Optional[RasterImage] = None

    @property
    def is_remote(self) -> bool:
        return isinstance(self.source, str) and self.source.startswith(("http://", "https://"))

    @property
    def cached(self) -> bool:
        return self._raw is not None

    async def fetch(self) -> bytes:
        """Encoded reference bytes, downloaded at most once per run."""
        if self._raw is not None:
            return self._raw

        if isinstance(self.source, bytes):
            self._raw = self.source
        elif self.is_remote:
            self._raw = await self._download(str(self.source))
        else:
            path = Path(self.source)
            if not path.exists():
                raise ReferenceFetchError(f"Reference image not found: {path}")
            self._raw = path.read_bytes()
        return self._raw

    async def image(self) -> RasterImage:
        if self._image is None:
            self._image = decode_image(await self.fetch())
        return self._image

    async def region(self, bounds: Bounds) -> RasterImage:
        return crop(await self.image(), bounds)

    def clear(self) -> None:
        self._raw = None
        self._image = None

    async def _download(self, url: str) -> bytes:
        timeout = self.config.fetch_timeout_seconds
        async with httpx.AsyncClient(
            timeout=timeout,
            transport=self._transport,
            headers=self.config.headers(),
            follow_redirects=True,
        ) as client:

            async def attempt() -> bytes:
                resp = await client.get(url)
                resp.raise_for_status()
                return resp.content

            try:
                # One deadline covers every attempt
                data = await with_timeout(
                    retry_async(
                        attempt,
                        max_attempts=self.config.max_attempts,
                        delay_seconds=self.config.retry_delay_seconds,
                        retry_on=(httpx.HTTPError,),
                        label="Reference image download",
                        sleep=self._sleep,
                    ),
                    timeout,
                    f"Reference image download timed out after {timeout:.0f}s",
                )
            except RetryError as e:
                raise ReferenceFetchError(
                    f"Failed to fetch reference image after {e.attempts} attempts: {e.last_error}"
                ) from e
            except TimeoutError as e:
                raise ReferenceFetchError(str(e)) from e

        logger.info("Fetched reference image (%d bytes)", len(data))
        return data
