from __future__ import annotations

import asyncio
import base64
from io import BytesIO
from typing import Any

from fake_chrome import FakeChrome, connected_dispatcher
from PIL import Image

from mcp_servers.chrome_devtools.tools.base import HTML_LIMIT
from mcp_servers.chrome_devtools.tools.capture import AX_NODE_LIMIT, downscale_image


def _png(width: int, height: int) -> str:
    buffer = BytesIO()
    Image.new("RGBA", (width, height), (200, 10, 10, 255)).save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode()


def _size(data_b64: str) -> tuple[int, int]:
    with Image.open(BytesIO(base64.b64decode(data_b64))) as img:
        return img.size


def test_downscale_keeps_aspect_ratio() -> None:
    data, width, height = downscale_image(_png(400, 200), "png", 100)
    assert (width, height) == (100, 50)
    assert _size(data) == (100, 50)


def test_downscale_leaves_narrow_images_untouched() -> None:
    original = _png(80, 40)
    assert downscale_image(original, "png", 100) == (original, 80, 40)
    assert downscale_image(original, "png", None) == (original, 80, 40)


def test_downscale_jpeg_drops_alpha() -> None:
    data, width, height = downscale_image(_png(300, 300), "jpeg", 150, quality=70)
    assert (width, height) == (150, 150)
    with Image.open(BytesIO(base64.b64decode(data))) as img:
        assert img.format == "JPEG"


def test_downscale_empty_capture() -> None:
    assert downscale_image("", "png", 100) == ("", 0, 0)


def test_screenshot_returns_image_content() -> None:
    async def _main() -> None:
        async with FakeChrome() as chrome:
            captured = _png(64, 32)
            chrome.on_command("Page.captureScreenshot", lambda params, sid: {"data": captured})
            async with connected_dispatcher(chrome) as dispatcher:
                result = await dispatcher.call("screenshot", {})
            assert result.is_error is False
            assert result.data["width"] == 64
            assert result.data["height"] == 32
            assert result.data["message"] == "Screenshot captured (png)"
            image = result.to_content_list()[1]
            assert image == {"type": "image", "data": captured, "mimeType": "image/png"}
            assert chrome.commands("Page.captureScreenshot")[0]["params"] == {"format": "png"}

    asyncio.run(_main())


def test_screenshot_jpeg_clip_full_page_and_max_width() -> None:
    async def _main() -> None:
        async with FakeChrome() as chrome:
            chrome.on_command("Page.captureScreenshot", lambda params, sid: {"data": _png(1000, 500)})
            async with connected_dispatcher(chrome) as dispatcher:
                result = await dispatcher.call(
                    "screenshot",
                    {
                        "format": "jpeg",
                        "quality": 60,
                        "fullPage": True,
                        "clipX": 0,
                        "clipY": 10,
                        "clipWidth": 300,
                        "clipHeight": 200,
                        "maxWidth": 250,
                    },
                )
            params = chrome.commands("Page.captureScreenshot")[0]["params"]
            assert params["quality"] == 60
            assert params["captureBeyondViewport"] is True
            assert params["clip"] == {"x": 0, "y": 10, "width": 300, "height": 200, "scale": 1}
            assert (result.data["width"], result.data["height"]) == (250, 125)
            assert result.content[1].mime_type == "image/jpeg"
            assert result.data["message"] == "Screenshot captured (jpeg, full page)"

    asyncio.run(_main())


def test_screenshot_rejects_out_of_range_quality() -> None:
    async def _main() -> None:
        async with FakeChrome() as chrome, connected_dispatcher(chrome) as dispatcher:
            result = await dispatcher.call("screenshot", {"quality": 150})
            assert result.is_error is True
            assert "quality" in result.data["error"]
            assert chrome.commands("Page.captureScreenshot") == []

    asyncio.run(_main())


def test_get_html_small_and_truncated() -> None:
    async def _main() -> None:
        async with FakeChrome() as chrome:
            pages = {"outer": "<html><body>hi</body></html>"}

            def evaluator(expression: str) -> Any:
                if expression.endswith("innerHTML"):
                    return "x" * (HTML_LIMIT + 10)
                return pages["outer"]

            chrome.evaluator = evaluator
            async with connected_dispatcher(chrome) as dispatcher:
                small = await dispatcher.call("get_html", {})
                big = await dispatcher.call("get_html", {"outerHTML": False})

            assert small.data == {"success": True, "html": pages["outer"], "size": 28, "truncated": False}
            assert big.data["truncated"] is True
            assert len(big.data["html"]) == HTML_LIMIT
            assert big.data["totalSize"] == HTML_LIMIT + 10
            assert "execute_script" in big.data["suggestion"]

    asyncio.run(_main())


def test_print_to_pdf_params() -> None:
    async def _main() -> None:
        async with FakeChrome() as chrome:
            chrome.on_command("Page.printToPDF", lambda params, sid: {"data": "JVBERi0="})
            async with connected_dispatcher(chrome) as dispatcher:
                result = await dispatcher.call("print_to_pdf", {"landscape": True, "paperWidth": 8.5})
            assert result.data["data"] == "JVBERi0="
            params = chrome.commands("Page.printToPDF")[0]["params"]
            assert params == {
                "landscape": True,
                "displayHeaderFooter": False,
                "printBackground": True,
                "scale": 1,
                "paperWidth": 8.5,
            }

    asyncio.run(_main())


def test_page_metrics_and_accessibility_tree() -> None:
    async def _main() -> None:
        async with FakeChrome() as chrome:
            chrome.on_command(
                "Page.getLayoutMetrics",
                lambda params, sid: {"contentSize": {"width": 1, "height": 2}, "cssLayoutViewport": {}},
            )
            nodes = [{"nodeId": str(i)} for i in range(AX_NODE_LIMIT + 5)]
            chrome.on_command("Accessibility.getFullAXTree", lambda params, sid: {"nodes": nodes})
            async with connected_dispatcher(chrome) as dispatcher:
                metrics = await dispatcher.call("get_page_metrics", {})
                tree = await dispatcher.call("get_accessibility_tree", {})
            assert metrics.data["metrics"]["contentSize"] == {"width": 1, "height": 2}
            assert tree.data["nodeCount"] == AX_NODE_LIMIT + 5
            assert len(tree.data["nodes"]) == AX_NODE_LIMIT
            assert chrome.commands("Accessibility.enable")

    asyncio.run(_main())
