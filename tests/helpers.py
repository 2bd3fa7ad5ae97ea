"""Image, design-tree and browser builders shared by the tests."""

import io
from typing import Optional

import httpx
from PIL import Image

from design_parity.browser.capture import CaptureResult
from design_parity.models.comparison import Bounds
from design_parity.models.design import Color, DesignNode, Fill

# ============================================================================
# Images
# ============================================================================

WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)
RED = (255, 0, 0, 255)
GREEN = (0, 160, 0, 255)
BLUE = (0, 0, 255, 255)


def make_image(width: int, height: int, color=WHITE, blocks: Optional[list] = None) -> Image.Image:
    """Solid RGBA image with optional (x, y, w, h, color) rectangles painted on top."""
    img = Image.new("RGBA", (width, height), color)
    for x, y, w, h, block_color in blocks or []:
        img.paste(Image.new("RGBA", (w, h), block_color), (x, y))
    return img


def png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def make_png(width: int, height: int, color=WHITE, blocks: Optional[list] = None) -> bytes:
    return png_bytes(make_image(width, height, color, blocks))


def crop_png(img: Image.Image, bounds: Bounds) -> bytes:
    return png_bytes(img.crop((bounds.x, bounds.y, bounds.right, bounds.bottom)))


def band_image(width: int, band_height: int, colors: list) -> Image.Image:
    """Horizontal bands of `band_height` px, one per colour, top to bottom."""
    blocks = [(0, i * band_height, width, band_height, c) for i, c in enumerate(colors)]
    return make_image(width, band_height * len(colors), WHITE, blocks)


# ============================================================================
# Design trees
# ============================================================================


def solid(r: float, g: float, b: float) -> Fill:
    return Fill(type="SOLID", color=Color(r=r, g=g, b=b))


WHITE_FILL = solid(1, 1, 1)
BLUE_FILL = solid(0, 0, 1)
GREEN_FILL = solid(0, 160 / 255, 0)
RED_FILL = solid(1, 0, 0)


def node(node_id: str, y: int, height: int, fill: Optional[Fill] = None, width: int = 60,
         name: Optional[str] = None, **kwargs) -> DesignNode:
    return DesignNode(
        node_id=node_id,
        name=name or f"Node {node_id}",
        bounds=Bounds(x=0, y=y, width=width, height=height),
        fills=[fill] if fill else [],
        **kwargs,
    )


def frame(children: list[DesignNode], width: int = 60, height: int = 60, y: int = 0) -> DesignNode:
    return DesignNode(
        node_id="0:1",
        name="Landing Page",
        bounds=Bounds(x=0, y=y, width=width, height=height),
        children=children,
    )


# ============================================================================
# Browser and HTTP
# ============================================================================


def capture_ok(data: bytes) -> CaptureResult:
    return CaptureResult(success=True, data=data)


def version_response() -> httpx.Response:
    return httpx.Response(200, json={"Browser": "HeadlessChrome/120.0", "Protocol-Version": "1.3"})


def refuse(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Connection refused", request=request)
